"""
Service layer exceptions and failure classification.

Every transport or HTTP failure is mapped onto a closed set of error kinds
before it leaves the request layer, so callers only ever see ``ApiError``.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx


class ErrorKind(str, Enum):
    """Closed taxonomy of request failures."""

    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMIT = "RATE_LIMIT"
    SERVER_ERROR = "SERVER_ERROR"
    API_ERROR = "API_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


SERVER_ERROR_STATUSES = frozenset({500, 502, 503, 504})

FALLBACK_MESSAGES = {
    ErrorKind.NETWORK_ERROR: "Network error. Please check your internet connection.",
    ErrorKind.TIMEOUT_ERROR: "The request timed out. Please try again.",
    ErrorKind.VALIDATION_ERROR: "Invalid request parameters.",
    ErrorKind.NOT_FOUND: "The requested resource was not found.",
    ErrorKind.RATE_LIMIT: "Too many requests. Please try again later.",
    ErrorKind.SERVER_ERROR: "Server error. Please try again later.",
    ErrorKind.API_ERROR: "Request failed.",
    ErrorKind.UNKNOWN_ERROR: "An unexpected error occurred.",
}


@dataclass(frozen=True)
class ErrorRecord:
    """Immutable description of a classified failure."""

    kind: ErrorKind
    message: str
    status_code: int | None = None
    retry_after: str | None = None
    errors: tuple[Any, ...] = ()
    cause: BaseException | None = field(default=None, compare=False, repr=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "status_code": self.status_code,
            "retry_after": self.retry_after,
            "errors": list(self.errors),
        }


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class ApiError(ServiceError):
    """A request failed; ``record`` says how."""

    def __init__(self, record: ErrorRecord, service_id: str | None = None):
        self.record = record
        super().__init__(record.message, service_id=service_id)

    @property
    def kind(self) -> ErrorKind:
        return self.record.kind

    @property
    def status_code(self) -> int | None:
        return self.record.status_code

    @property
    def retry_after(self) -> str | None:
        return self.record.retry_after

    @classmethod
    def validation(cls, message: str) -> "ApiError":
        """Client-side validation failure, raised before any request is made."""
        return cls(
            ErrorRecord(
                kind=ErrorKind.VALIDATION_ERROR,
                message=message,
                errors=(message,),
            )
        )


def kind_for_status(status_code: int | None) -> ErrorKind:
    """
    Map an HTTP status onto an error kind.

    ``None`` means no response was received at all.
    """
    if status_code is None:
        return ErrorKind.NETWORK_ERROR
    if status_code == 400:
        return ErrorKind.VALIDATION_ERROR
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    if status_code == 429:
        return ErrorKind.RATE_LIMIT
    if status_code in SERVER_ERROR_STATUSES:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.API_ERROR


def _response_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _server_message(body: dict[str, Any]) -> str | None:
    message = body.get("message")
    if isinstance(message, str) and message:
        return message
    detail = body.get("detail")
    if isinstance(detail, str) and detail:
        return detail
    return None


def _classify_response(response: httpx.Response, cause: BaseException) -> ErrorRecord:
    status = response.status_code
    kind = kind_for_status(status)
    body = _response_body(response)

    fallback = FALLBACK_MESSAGES[kind]
    if kind == ErrorKind.API_ERROR:
        fallback = f"Request failed with status {status}."

    errors: tuple[Any, ...] = ()
    if kind == ErrorKind.VALIDATION_ERROR:
        raw_errors = body.get("errors") or []
        errors = tuple(raw_errors) if isinstance(raw_errors, list) else (raw_errors,)

    retry_after = None
    if kind == ErrorKind.RATE_LIMIT:
        retry_after = response.headers.get("retry-after")

    return ErrorRecord(
        kind=kind,
        message=_server_message(body) or fallback,
        status_code=status,
        retry_after=retry_after,
        errors=errors,
        cause=cause,
    )


def classify(failure: BaseException) -> ErrorRecord:
    """
    Classify any failure into an ErrorRecord.

    Pure and idempotent: classifying an ApiError returns its own record.
    """
    if isinstance(failure, ApiError):
        return failure.record

    if isinstance(failure, httpx.HTTPStatusError):
        return _classify_response(failure.response, failure)

    if isinstance(failure, (httpx.TimeoutException, asyncio.TimeoutError)):
        return ErrorRecord(
            kind=ErrorKind.TIMEOUT_ERROR,
            message=FALLBACK_MESSAGES[ErrorKind.TIMEOUT_ERROR],
            cause=failure,
        )

    if isinstance(failure, httpx.TransportError):
        return ErrorRecord(
            kind=kind_for_status(None),
            message=FALLBACK_MESSAGES[ErrorKind.NETWORK_ERROR],
            cause=failure,
        )

    return ErrorRecord(
        kind=ErrorKind.UNKNOWN_ERROR,
        message=str(failure) or FALLBACK_MESSAGES[ErrorKind.UNKNOWN_ERROR],
        cause=failure,
    )


def to_api_error(failure: BaseException, service_id: str | None = None) -> ApiError:
    """Classify ``failure`` and wrap it, leaving an existing ApiError untouched."""
    if isinstance(failure, ApiError):
        return failure
    error = ApiError(classify(failure), service_id=service_id)
    error.__cause__ = failure
    return error
