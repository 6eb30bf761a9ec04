"""
CompanyLookupApi - One method per backend capability.

Every cached read follows the same template:
    cache key -> hit: return the cached envelope
              -> miss: request through the retry policy, parse the typed
                 envelope, cache it if successful, return it
Failures propagate as ApiError untouched.
"""

from pathlib import Path
from typing import Any, Sequence, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError

from company_lookup.constants import CacheTTL, Endpoints, SearchConfig
from company_lookup.datasource.models import (
    ApiResponse,
    BatchQuotesResponse,
    CompanyLookupResponse,
    CompanyResponse,
    FilingsResponse,
    HealthStatus,
    SearchResponse,
    StockResponse,
    SuggestionResponse,
    ValidationResponse,
)
from company_lookup.services.cache import ResponseCache
from company_lookup.services.client import HttpClient, RequestDescriptor
from company_lookup.services.errors import ApiError, ErrorKind, ErrorRecord
from company_lookup.services.retry import RetryPolicy
from company_lookup.settings import Settings
from company_lookup.storage.recent_searches import (
    JsonFileStorage,
    MemoryStorage,
    RecentSearchStore,
)
from company_lookup.validators import (
    validate_cik,
    validate_filing_form,
    validate_limit,
    validate_ticker,
)

M = TypeVar("M", bound=BaseModel)


class CompanyLookupApi:
    """
    Facade over the company lookup backend.

    Usage:
        async with CompanyLookupApi.from_settings(Settings.from_env()) as api:
            response = await api.search_companies("tesla", limit=10)
            if response.is_success:
                for result in response.data.results:
                    print(result.ticker, result.name)
    """

    SERVICE_ID = "company_lookup"

    def __init__(
        self,
        http: HttpClient,
        cache: ResponseCache | None = None,
        retry: RetryPolicy | None = None,
        recent_searches: RecentSearchStore | None = None,
    ):
        self.http = http
        self.cache = cache or ResponseCache()
        self.retry = retry or RetryPolicy()
        self.recent_searches = recent_searches or RecentSearchStore(MemoryStorage())

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompanyLookupApi":
        """Wire one session's worth of services from configuration."""
        return cls(
            http=HttpClient(
                settings.base_url,
                timeout=settings.request_timeout,
                debug=settings.debug,
            ),
            cache=ResponseCache(max_size=settings.cache_max_size, debug=settings.debug),
            retry=RetryPolicy(
                max_attempts=settings.retry_attempts,
                base_delay=settings.retry_delay,
            ),
            recent_searches=RecentSearchStore(
                JsonFileStorage(Path(settings.recent_searches_path))
            ),
        )

    # ------------------------------------------------------------------
    # Request template
    # ------------------------------------------------------------------

    def _parse(self, model: type[M], payload: dict[str, Any], endpoint: str) -> M:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Unexpected response shape from {endpoint}: {e}")
            raise ApiError(
                ErrorRecord(
                    kind=ErrorKind.UNKNOWN_ERROR,
                    message="Unexpected response format from the server.",
                    cause=e,
                ),
                service_id=self.SERVICE_ID,
            ) from e

    async def _fetch(
        self,
        descriptor: RequestDescriptor,
        model: type[ApiResponse[Any]],
        use_cache: bool = True,
    ) -> Any:
        should_cache = use_cache and descriptor.cacheable
        cache_key = descriptor.cache_key

        if should_cache:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Cache hit for {cache_key}")
                return cached

        payload = await self.retry.execute(lambda: self.http.get_json(descriptor))
        response = self._parse(model, payload, descriptor.endpoint)

        if should_cache and response.is_success:
            self.cache.set(cache_key, response, descriptor.ttl)

        return response

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def _health(self, endpoint: str) -> HealthStatus:
        payload = await self.http.get_json(
            RequestDescriptor.build(endpoint, cacheable=False)
        )
        return self._parse(HealthStatus, payload, endpoint)

    async def check_health(self) -> HealthStatus:
        return await self._health(Endpoints.HEALTH)

    async def check_health_simple(self) -> HealthStatus:
        return await self._health(Endpoints.HEALTH_SIMPLE)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search_companies(
        self,
        query: str,
        limit: int | None = None,
        use_cache: bool = True,
    ) -> SearchResponse:
        """Full company search, ranked by the backend."""
        descriptor = RequestDescriptor.build(
            Endpoints.SEARCH,
            {"q": query, "limit": limit},
            ttl=CacheTTL.SEARCH,
        )
        return await self._fetch(descriptor, SearchResponse, use_cache)

    async def get_search_suggestions(
        self,
        query: str,
        limit: int = SearchConfig.MAX_SUGGESTIONS,
        use_cache: bool = True,
    ) -> SuggestionResponse:
        descriptor = RequestDescriptor.build(
            Endpoints.SEARCH_SUGGESTIONS,
            {"q": query, "limit": limit},
            ttl=CacheTTL.SEARCH,
        )
        return await self._fetch(descriptor, SuggestionResponse, use_cache)

    async def validate_search_query(
        self, query: str, use_cache: bool = True
    ) -> ValidationResponse:
        descriptor = RequestDescriptor.build(
            Endpoints.SEARCH_VALIDATE,
            {"q": query},
            ttl=CacheTTL.SEARCH,
        )
        return await self._fetch(descriptor, ValidationResponse, use_cache)

    # ------------------------------------------------------------------
    # Company
    # ------------------------------------------------------------------

    async def lookup_company(
        self,
        query: str,
        include_stock: bool = True,
        include_filings: bool = True,
        filings_limit: int = 5,
        use_cache: bool = True,
    ) -> CompanyLookupResponse:
        """Profile, quote, filings and AI analysis bundled in one call."""
        descriptor = RequestDescriptor.build(
            Endpoints.COMPANY_LOOKUP,
            {
                "q": query,
                "include_stock": include_stock,
                "include_filings": include_filings,
                "filings_limit": filings_limit,
            },
            ttl=CacheTTL.COMPANY,
        )
        return await self._fetch(descriptor, CompanyLookupResponse, use_cache)

    async def get_company_by_ticker(
        self, ticker: str, use_cache: bool = True
    ) -> CompanyResponse:
        symbol = self._checked_ticker(ticker)
        descriptor = RequestDescriptor.build(
            f"{Endpoints.COMPANY_BY_TICKER}/{symbol}",
            ttl=CacheTTL.COMPANY,
        )
        return await self._fetch(descriptor, CompanyResponse, use_cache)

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------

    async def get_stock_quote(
        self,
        ticker: str,
        detailed: bool = False,
        use_cache: bool = True,
    ) -> StockResponse:
        symbol = self._checked_ticker(ticker)
        descriptor = RequestDescriptor.build(
            f"{Endpoints.STOCK_QUOTE}/{symbol}",
            {"detailed": detailed},
            ttl=CacheTTL.STOCK,
        )
        return await self._fetch(descriptor, StockResponse, use_cache)

    async def get_batch_stock_quotes(self, tickers: Sequence[str]) -> BatchQuotesResponse:
        """
        Quotes for several tickers at once.

        Never cached: the ticker set changes from call to call, so a cached
        combination is rarely asked for again.
        """
        symbols = [self._checked_ticker(t) for t in tickers]
        if not symbols:
            raise ApiError.validation("At least one ticker is required")

        descriptor = RequestDescriptor.build(
            Endpoints.STOCK_BATCH,
            {"tickers": symbols},
            cacheable=False,
        )
        return await self._fetch(descriptor, BatchQuotesResponse, use_cache=False)

    # ------------------------------------------------------------------
    # SEC filings
    # ------------------------------------------------------------------

    async def get_company_filings(
        self,
        cik: str | int,
        limit: int = 10,
        form_types: Sequence[str] | None = None,
        use_cache: bool = True,
    ) -> FilingsResponse:
        checked = validate_cik(cik)
        if not checked.is_valid:
            raise ApiError.validation(checked.error)

        checked_limit = validate_limit(limit)
        if not checked_limit.is_valid:
            raise ApiError.validation(f"Invalid filings limit: {checked_limit.error}")

        forms = []
        for form in form_types or []:
            checked_form = validate_filing_form(form)
            if not checked_form.is_valid:
                raise ApiError.validation(f"{checked_form.error}: {form!r}")
            forms.append(checked_form.value)

        descriptor = RequestDescriptor.build(
            f"{Endpoints.FILINGS}/{checked.value}",
            {"limit": checked_limit.value, "form_types": forms or None},
            ttl=CacheTTL.FILINGS,
        )
        return await self._fetch(descriptor, FilingsResponse, use_cache)

    # ------------------------------------------------------------------
    # Cache and recent searches
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_cache_stats(self) -> dict[str, Any]:
        return {
            **self.cache.get_stats().to_dict(),
            "entries": self.cache.entries(),
        }

    def save_recent_search(self, query: str) -> list[str]:
        return self.recent_searches.add(query)

    def get_recent_searches(self) -> list[str]:
        return self.recent_searches.load()

    def clear_recent_searches(self) -> None:
        self.recent_searches.clear()

    @staticmethod
    def _checked_ticker(ticker: str) -> str:
        checked = validate_ticker(ticker)
        if not checked.is_valid:
            raise ApiError.validation(checked.error)
        return checked.value

    async def close(self) -> None:
        await self.http.close()

    async def __aenter__(self) -> "CompanyLookupApi":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
