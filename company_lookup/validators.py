"""
Client-side input validation.

Validators never raise; each returns a ``ValidationResult`` carrying either
the cleaned value or a human-readable error.
"""

import re
from typing import Any

from pydantic import BaseModel

from company_lookup.constants import SearchConfig

TICKER_PATTERN = re.compile(r"^[A-Z]{1,5}(\.[A-Z]{1,2})?$")
FILING_FORM_PATTERN = re.compile(r"^[A-Z0-9\s/-]+$")

# Basic script-injection screening
SUSPICIOUS_PATTERNS = [
    re.compile(r"<script[^>]*>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"<iframe[^>]*>", re.IGNORECASE),
]

_WHITESPACE = re.compile(r"\s+")


class ValidationResult(BaseModel):
    is_valid: bool
    value: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, value: Any) -> "ValidationResult":
        return cls(is_valid=True, value=value)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(is_valid=False, error=error)


def normalize_query(query: str | None) -> str:
    """Trim and collapse runs of whitespace to a single space."""
    if not query:
        return ""
    return _WHITESPACE.sub(" ", str(query)).strip()


def validate_search_query(query: str | None) -> ValidationResult:
    """A valid query comes back unchanged apart from whitespace normalization."""
    if not query or not str(query).strip():
        return ValidationResult.fail("Search query is required")

    normalized = normalize_query(query)

    if len(normalized) < SearchConfig.MIN_QUERY_LENGTH:
        return ValidationResult.fail(
            f"Query must be at least {SearchConfig.MIN_QUERY_LENGTH} characters"
        )

    if len(normalized) > SearchConfig.MAX_QUERY_LENGTH:
        return ValidationResult.fail(
            f"Query cannot exceed {SearchConfig.MAX_QUERY_LENGTH} characters"
        )

    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(normalized):
            return ValidationResult.fail("Query contains invalid characters")

    return ValidationResult.ok(normalized)


def validate_ticker(ticker: str | None) -> ValidationResult:
    if not ticker:
        return ValidationResult.fail("Ticker is required")

    symbol = str(ticker).strip().upper()
    if not TICKER_PATTERN.match(symbol):
        return ValidationResult.fail(
            "Invalid ticker format. Use 1-5 letters (e.g., TSLA, BRK.A)"
        )
    return ValidationResult.ok(symbol)


def validate_cik(cik: str | int | None) -> ValidationResult:
    """Strip non-digits and zero-pad to the ten digits SEC uses."""
    if cik is None or cik == "":
        return ValidationResult.fail("CIK is required")

    digits = re.sub(r"\D", "", str(cik).strip())
    if not digits:
        return ValidationResult.fail("CIK must contain digits")
    if len(digits) > 10:
        return ValidationResult.fail("CIK cannot be more than 10 digits")
    return ValidationResult.ok(digits.zfill(10))


def validate_filing_form(form: str | None) -> ValidationResult:
    if not form:
        return ValidationResult.fail("Filing form is required")

    form_type = str(form).strip().upper()
    if not FILING_FORM_PATTERN.match(form_type):
        return ValidationResult.fail("Invalid filing form format")
    return ValidationResult.ok(form_type)


def validate_limit(limit: Any, maximum: int = 100) -> ValidationResult:
    """Optional positive integer no larger than ``maximum``."""
    if limit is None or limit == "":
        return ValidationResult.ok(None)

    try:
        number = float(limit)
    except (TypeError, ValueError):
        return ValidationResult.fail("Value must be a number")

    if not number.is_integer():
        return ValidationResult.fail("Value must be an integer")
    if number < 1:
        return ValidationResult.fail("Value must be at least 1")
    if number > maximum:
        return ValidationResult.fail(f"Value cannot exceed {maximum}")
    return ValidationResult.ok(int(number))


def sanitize_string(text: str | None) -> str:
    """Remove angle brackets and quotes, then normalize whitespace."""
    if not text:
        return ""
    cleaned = re.sub(r"[<>]", "", str(text))
    cleaned = re.sub(r"['\"]", "", cleaned)
    return normalize_query(cleaned)


def validate_and_sanitize_search(query: str | None) -> ValidationResult:
    result = validate_search_query(query)
    if not result.is_valid:
        return result
    return ValidationResult.ok(sanitize_string(result.value))
