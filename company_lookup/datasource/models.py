"""
Typed response models for the company lookup backend.

Every endpoint wraps its payload in the same envelope; ``ApiResponse[T]``
pins the payload type per endpoint so a renamed backend field fails loudly
at parse time instead of silently rendering blank.
"""

from enum import Enum
from typing import Annotated, Any, Generic, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

T = TypeVar("T")


class ResponseStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    PARTIAL = "partial"


class BackendModel(BaseModel):
    """Base for payload models; unknown backend fields are kept."""

    model_config = ConfigDict(extra="allow", frozen=True)


def _cik_to_str(value: Any) -> Any:
    # The backend sends CIKs as numbers in some payloads and strings in others
    if isinstance(value, int):
        return str(value)
    return value


CikStr = Annotated[str | None, BeforeValidator(_cik_to_str)]


class ApiResponse(BackendModel, Generic[T]):
    """Response envelope shared by every endpoint."""

    status: ResponseStatus
    message: str | None = None
    errors: list[Any] = Field(default_factory=list)
    data: T | None = None

    @property
    def is_success(self) -> bool:
        return self.status == ResponseStatus.SUCCESS


# ============================================================================
# Search
# ============================================================================


class SearchResult(BackendModel):
    """A company matching a search query."""

    ticker: str | None = None
    name: str | None = None
    cik: CikStr = None
    exchange: str | None = None
    match_type: str | None = None
    match_score: float | None = None


class SearchData(BackendModel):
    query: str | None = None
    results: list[SearchResult] = Field(default_factory=list)
    total_results: int | None = None


class Suggestion(BackendModel):
    """Type-ahead suggestion."""

    text: str
    ticker: str | None = None
    company_name: str | None = None
    type: str | None = None  # 'ticker' | 'company'
    match_score: float | None = None


class SuggestionData(BackendModel):
    suggestions: list[Suggestion] = Field(default_factory=list)


class QueryValidation(BackendModel):
    is_valid: bool
    issues: list[str] | None = None


# ============================================================================
# Company, stock and filings
# ============================================================================


class CompanyProfile(BackendModel):
    name: str | None = None
    ticker: str | None = None
    cik: CikStr = None
    exchange: str | None = None
    industry: str | None = None
    sector: str | None = None
    description: str | None = None
    website: str | None = None
    headquarters: str | None = None
    market_cap: float | None = None
    employees: int | None = None


class StockQuote(BackendModel):
    symbol: str | None = None
    price: float | None = None
    currency: str = "USD"
    change: float | None = None
    change_percent: float | None = None
    volume: int | None = None
    market_cap: float | None = None
    last_updated: str | None = None
    market_state: str | None = None  # REGULAR | CLOSED | PRE | POST


class StockData(StockQuote):
    """
    Quote plus extended trading data.

    The backend sends either a bare quote or a nested ``quote`` with the
    extended fields alongside; ``current`` resolves both shapes.
    """

    quote: StockQuote | None = None
    open_price: float | None = None
    high_price: float | None = None
    low_price: float | None = None
    previous_close: float | None = None
    fifty_two_week_high: float | None = None
    fifty_two_week_low: float | None = None
    pe_ratio: float | None = None
    eps: float | None = None
    dividend_yield: float | None = None
    beta: float | None = None

    @property
    def current(self) -> StockQuote:
        return self.quote or self


class BatchQuotes(BackendModel):
    quotes: list[StockData] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


class Filing(BackendModel):
    form: str
    filing_date: str | None = None
    accession_number: str | None = None
    description: str | None = None
    file_size: int | None = None
    filing_url: str | None = None
    period_end_date: str | None = None


class FilingsData(BackendModel):
    cik: CikStr = None
    company_name: str | None = None
    filings: list[Filing] = Field(default_factory=list)


class InvestmentAnalysis(BackendModel):
    """AI-generated educational summary. Not investment advice."""

    summary: str | None = None
    key_metrics: Any = None
    financial_metrics: Any = None
    performance_insights: Any = None
    risk_assessment: Any = None
    recent_developments: Any = None
    technical_analysis: Any = None
    educational_considerations: Any = None
    disclaimer: str | None = None


class CompanyLookup(BackendModel):
    """Everything the dashboard shows for one company."""

    company: CompanyProfile | None = None
    stock_quote: StockData | None = None
    recent_filings: list[Filing] = Field(default_factory=list)
    investment_analysis: InvestmentAnalysis | None = None
    data_sources: Any = None
    last_updated: str | None = None


class HealthStatus(BackendModel):
    """Health endpoints answer with a bare status, not the usual envelope."""

    status: str


# Endpoint envelopes
SearchResponse = ApiResponse[SearchData]
SuggestionResponse = ApiResponse[SuggestionData]
ValidationResponse = ApiResponse[QueryValidation]
CompanyLookupResponse = ApiResponse[CompanyLookup]
CompanyResponse = ApiResponse[CompanyLookup]
StockResponse = ApiResponse[StockData]
BatchQuotesResponse = ApiResponse[BatchQuotes]
FilingsResponse = ApiResponse[FilingsData]
