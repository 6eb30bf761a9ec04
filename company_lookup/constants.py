"""
Constants shared by the request layer and the search orchestrator.
"""

from datetime import timedelta


class Endpoints:
    """Backend API paths, relative to the configured base URL."""

    HEALTH = "/health"
    HEALTH_SIMPLE = "/health/simple"

    SEARCH = "/search"
    SEARCH_SUGGESTIONS = "/search/suggestions"
    SEARCH_VALIDATE = "/search/validate"

    COMPANY_LOOKUP = "/company/lookup"
    COMPANY_BY_TICKER = "/company"

    STOCK_QUOTE = "/stock"
    STOCK_BATCH = "/stock/batch"

    FILINGS = "/filings"


class CacheTTL:
    """Per-operation cache lifetimes. Shorter for more volatile data."""

    DEFAULT = timedelta(minutes=5)
    SEARCH = timedelta(minutes=2)
    COMPANY = timedelta(minutes=10)
    STOCK = timedelta(minutes=1)
    FILINGS = timedelta(minutes=30)


class SearchConfig:
    MIN_QUERY_LENGTH = 2
    MAX_QUERY_LENGTH = 100
    DEBOUNCE_DELAY = 0.3  # seconds
    SUGGESTION_DELAY = 0.1  # seconds
    MAX_SUGGESTIONS = 5
    MAX_RESULTS = 10


DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

REQUEST_ID_HEADER = "X-Request-ID"

RECENT_SEARCHES_KEY = "company_lookup_recent_searches"
MAX_RECENT_SEARCHES = 10

# Common SEC form types
FILING_FORMS = {
    "10-K": "Annual Report",
    "10-Q": "Quarterly Report",
    "8-K": "Current Report",
    "DEF 14A": "Proxy Statement",
    "S-1": "Registration Statement",
    "4": "Insider Trading",
}
