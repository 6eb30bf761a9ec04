"""
SearchOrchestrator - Debounced search-as-you-type state machine.

Phases:
- IDLE: nothing to show (never searched, cleared, or query too short)
- AWAITING_DEBOUNCE: a keystroke arrived, the search timer is armed
- LOADING: a search request is in flight
- SUCCESS: results for the latest issued search are shown
- ERROR: the latest issued search failed

Transitions:
- any → AWAITING_DEBOUNCE: set_query()
- AWAITING_DEBOUNCE → IDLE: timer fires with a query below the minimum length
- AWAITING_DEBOUNCE → LOADING: timer fires with a usable query
- LOADING → SUCCESS / ERROR: the latest issued search completes
- any → IDLE: clear()

Two independent debouncers drive the flow: a slow one for the full search
and a fast one for suggestions. Every issued fetch takes the next number
of its sequence; a response whose number is no longer the latest is
dropped, so the last *issued* search wins even if an older one resolves
later.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from company_lookup.constants import SearchConfig
from company_lookup.datasource.lookup_api import CompanyLookupApi
from company_lookup.datasource.models import (
    CompanyLookup,
    QueryValidation,
    SearchResult,
    Suggestion,
)
from company_lookup.search.debounce import Debouncer
from company_lookup.search.notices import ErrorNotice, describe_error
from company_lookup.services.errors import (
    ApiError,
    ErrorKind,
    ErrorRecord,
    to_api_error,
)
from company_lookup.validators import normalize_query, validate_search_query


class SearchPhase(str, Enum):
    IDLE = "idle"
    AWAITING_DEBOUNCE = "awaiting-debounce"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class SearchState(BaseModel):
    """Read-only snapshot handed to the rendering layer."""

    model_config = ConfigDict(frozen=True)

    phase: SearchPhase = SearchPhase.IDLE
    query: str = ""
    debounced_query: str = ""
    results: list[SearchResult] = Field(default_factory=list)
    suggestions: list[Suggestion] = Field(default_factory=list)
    loading: bool = False
    details_loading: bool = False
    error: str | None = None
    notice: ErrorNotice | None = None
    has_searched: bool = False

    @property
    def has_results(self) -> bool:
        return len(self.results) > 0

    @property
    def is_empty(self) -> bool:
        """Searched, and found nothing."""
        return self.has_searched and not self.results

    @property
    def has_suggestions(self) -> bool:
        return len(self.suggestions) > 0


class SearchEvent(BaseModel):
    """Outcome of a completed search, or of clear()."""

    model_config = ConfigDict(frozen=True)

    query: str
    results: list[SearchResult] = Field(default_factory=list)
    has_results: bool = False
    error: str | None = None


@dataclass
class SearchOptions:
    debounce_delay: float = SearchConfig.DEBOUNCE_DELAY
    suggestion_delay: float = SearchConfig.SUGGESTION_DELAY
    min_query_length: int = SearchConfig.MIN_QUERY_LENGTH
    max_results: int = SearchConfig.MAX_RESULTS
    max_suggestions: int = SearchConfig.MAX_SUGGESTIONS
    enable_suggestions: bool = True
    auto_search: bool = True
    # Cancel a superseded in-flight fetch instead of only ignoring its result
    cancel_superseded: bool = True


SearchObserver = Callable[[SearchEvent], None]
StateListener = Callable[[SearchState], None]


class SearchOrchestrator:
    """
    One search widget's worth of state.

    Usage:
        orchestrator = SearchOrchestrator(api)
        orchestrator.watch(render)
        orchestrator.set_query("T")
        orchestrator.set_query("TSLA")  # only this one is searched
    """

    def __init__(
        self,
        api: CompanyLookupApi,
        options: SearchOptions | None = None,
    ):
        self._api = api
        self.options = options or SearchOptions()
        self._state = SearchState()
        self._recent: list[str] = api.get_recent_searches()

        self._search_debouncer: Debouncer[str] = Debouncer(
            self.options.debounce_delay, self._on_search_timer, name="search"
        )
        self._suggestion_debouncer: Debouncer[str] = Debouncer(
            self.options.suggestion_delay, self._on_suggestion_timer, name="suggestions"
        )

        self._search_seq = 0
        self._suggestion_seq = 0
        self._search_task: asyncio.Task[None] | None = None
        self._suggestion_task: asyncio.Task[None] | None = None

        self._observers: list[SearchObserver] = []
        self._listeners: list[StateListener] = []

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def recent_searches(self) -> list[str]:
        return list(self._recent)

    @property
    def is_valid_query(self) -> bool:
        return len(normalize_query(self._state.query)) >= self.options.min_query_length

    def subscribe(self, observer: SearchObserver) -> Callable[[], None]:
        """Receive a SearchEvent after each completed search and on clear()."""
        self._observers.append(observer)
        return lambda: self._observers.remove(observer)

    def watch(self, listener: StateListener) -> Callable[[], None]:
        """Receive every new state snapshot."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _update(self, **changes) -> None:
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Search state listener failed")

    def _emit(self, event: SearchEvent) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception("Search observer failed")

    # ------------------------------------------------------------------
    # Keystrokes
    # ------------------------------------------------------------------

    def set_query(self, text: str) -> None:
        """Record a keystroke and (re)arm the debounce timers."""
        if self.options.auto_search:
            self._update(query=text, phase=SearchPhase.AWAITING_DEBOUNCE)
            self._search_debouncer.trigger(text)
        else:
            self._update(query=text)

        if self.options.enable_suggestions:
            self._suggestion_debouncer.trigger(text)

    def set_query_only(self, text: str) -> None:
        """Update the input without searching or suggesting."""
        self._update(query=text)

    def _on_search_timer(self, text: str, seq: int) -> None:
        self._start_search(text)

    def _on_suggestion_timer(self, text: str, seq: int) -> None:
        self._start_suggestions(text)

    # ------------------------------------------------------------------
    # Full search
    # ------------------------------------------------------------------

    def _supersede_search(self) -> int:
        self._search_seq += 1
        task = self._search_task
        if self.options.cancel_superseded and task is not None and not task.done():
            task.cancel()
        return self._search_seq

    def _start_search(self, text: str) -> asyncio.Task[None] | None:
        query = normalize_query(text)
        self._update(debounced_query=query)

        if len(query) < self.options.min_query_length:
            self._supersede_search()
            self._update(
                phase=SearchPhase.IDLE,
                results=[],
                loading=False,
                error=None,
                notice=None,
                has_searched=False,
            )
            return None

        checked = validate_search_query(query)
        if not checked.is_valid:
            self._supersede_search()
            self._apply_failure(
                query,
                ErrorRecord(
                    kind=ErrorKind.VALIDATION_ERROR,
                    message=checked.error,
                    errors=(checked.error,),
                ),
            )
            return None

        seq = self._supersede_search()
        self._update(phase=SearchPhase.LOADING, loading=True, error=None, notice=None)
        self._search_task = asyncio.create_task(self._run_search(checked.value, seq))
        return self._search_task

    async def _run_search(self, query: str, seq: int) -> None:
        try:
            response = await self._api.search_companies(
                query, limit=self.options.max_results
            )
        except Exception as e:
            if seq != self._search_seq:
                return
            logger.warning(f"Search for '{query}' failed: {e}")
            self._apply_failure(query, to_api_error(e).record)
            return

        if seq != self._search_seq:
            logger.debug(f"Discarding superseded search results for '{query}'")
            return

        if not response.is_success:
            self._apply_failure(
                query,
                ErrorRecord(
                    kind=ErrorKind.API_ERROR,
                    message=response.message or "Search failed",
                    errors=tuple(response.errors),
                ),
            )
            return

        results = list(response.data.results) if response.data else []
        self._update(
            phase=SearchPhase.SUCCESS,
            results=results,
            loading=False,
            error=None,
            notice=None,
            has_searched=True,
        )
        if results:
            self._recent = self._api.save_recent_search(query)

        self._emit(SearchEvent(query=query, results=results, has_results=bool(results)))

    def _apply_failure(self, query: str, record: ErrorRecord) -> None:
        self._update(
            phase=SearchPhase.ERROR,
            results=[],
            loading=False,
            error=record.message,
            notice=describe_error(record),
            has_searched=True,
        )
        self._emit(SearchEvent(query=query, error=record.message))

    async def search(self, query: str | None = None) -> SearchState:
        """Search right away, skipping the debounce window."""
        self._search_debouncer.cancel()
        if query is not None:
            self._update(query=query)

        task = self._start_search(self._state.query)
        if task is not None:
            # wait() rather than await: a superseding call may cancel this task
            await asyncio.wait({task})
        return self._state

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    def _supersede_suggestions(self) -> int:
        self._suggestion_seq += 1
        task = self._suggestion_task
        if self.options.cancel_superseded and task is not None and not task.done():
            task.cancel()
        return self._suggestion_seq

    def _start_suggestions(self, text: str) -> asyncio.Task[None] | None:
        query = normalize_query(text)
        seq = self._supersede_suggestions()

        if not self.options.enable_suggestions or len(query) < self.options.min_query_length:
            self._update(suggestions=[])
            return None

        self._suggestion_task = asyncio.create_task(self._run_suggestions(query, seq))
        return self._suggestion_task

    async def _run_suggestions(self, query: str, seq: int) -> None:
        try:
            response = await self._api.get_search_suggestions(
                query, limit=self.options.max_suggestions
            )
        except Exception as e:
            logger.warning(f"Suggestions for '{query}' failed: {e}")
            suggestions: list[Suggestion] = []
        else:
            suggestions = (
                list(response.data.suggestions)
                if response.is_success and response.data
                else []
            )

        if seq != self._suggestion_seq:
            return
        self._update(suggestions=suggestions[: self.options.max_suggestions])

    # ------------------------------------------------------------------
    # Company details and validation
    # ------------------------------------------------------------------

    async def lookup_company(self, query: str | None = None) -> CompanyLookup:
        """
        Fetch the full company bundle for ``query`` (default: current input).

        Raises:
            ApiError: after recording the failure in the state
        """
        text = normalize_query(self._state.query if query is None else query)
        self._update(details_loading=True, error=None, notice=None)

        try:
            response = await self._api.lookup_company(text)
        except Exception as e:
            error = to_api_error(e)
            self._update(
                details_loading=False,
                error=error.record.message,
                notice=describe_error(error.record),
            )
            raise error

        if not response.is_success or response.data is None:
            record = ErrorRecord(
                kind=ErrorKind.API_ERROR,
                message=response.message or "Company lookup failed",
                errors=tuple(response.errors),
            )
            self._update(
                details_loading=False,
                error=record.message,
                notice=describe_error(record),
            )
            raise ApiError(record)

        self._update(details_loading=False)
        return response.data

    async def validate_query(self, query: str | None = None) -> QueryValidation:
        """Ask the backend whether a query is usable. Never raises."""
        text = normalize_query(self._state.query if query is None else query)
        try:
            response = await self._api.validate_search_query(text)
        except Exception as e:
            logger.warning(f"Query validation failed: {e}")
            return QueryValidation(is_valid=False, issues=["Validation failed"])

        return response.data or QueryValidation(is_valid=False)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Reset everything and tell observers the results are gone."""
        self._search_debouncer.cancel()
        self._suggestion_debouncer.cancel()
        self._supersede_search()
        self._supersede_suggestions()

        self._state = SearchState()
        self._update()
        self._emit(SearchEvent(query=""))

    async def wait_for_pending(self) -> None:
        """Wait until in-flight search and suggestion fetches settle."""
        tasks = {
            task
            for task in (self._search_task, self._suggestion_task)
            if task is not None and not task.done()
        }
        if tasks:
            await asyncio.wait(tasks)

    def close(self) -> None:
        """Dispose of the widget: timers, in-flight fetches and observers."""
        self._search_debouncer.cancel()
        self._suggestion_debouncer.cancel()
        for task in (self._search_task, self._suggestion_task):
            if task is not None and not task.done():
                task.cancel()
        self._observers.clear()
        self._listeners.clear()
