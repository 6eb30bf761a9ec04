"""Tests for the debounced search orchestrator."""

import asyncio

import pytest

from company_lookup.datasource.models import (
    CompanyLookupResponse,
    SearchResponse,
    SuggestionResponse,
    ValidationResponse,
)
from company_lookup.search import (
    NoticeAction,
    SearchOptions,
    SearchOrchestrator,
    SearchPhase,
)
from company_lookup.services.errors import ApiError, ErrorKind, ErrorRecord
from company_lookup.storage.recent_searches import (
    JsonFileStorage,
    MemoryStorage,
    RecentSearchStore,
)

from conftest import search_payload

FAST = SearchOptions(debounce_delay=0.02, suggestion_delay=0.01)


class FakeApi:
    """
    Stand-in for CompanyLookupApi.

    Searches block on ``gates[query]`` when one is set, then raise
    ``errors[query]`` or return ``responses[query]`` (empty results by default).
    """

    def __init__(self, recent: list[str] | None = None):
        self.gates: dict[str, asyncio.Event] = {}
        self.responses: dict[str, SearchResponse] = {}
        self.errors: dict[str, Exception] = {}
        self.search_calls: list[str] = []
        self.suggestion_calls: list[str] = []
        self.suggestion_error: Exception | None = None
        self.lookup_response: CompanyLookupResponse | None = None
        self.lookup_error: Exception | None = None
        self.validation_error: Exception | None = None
        self.store = RecentSearchStore(MemoryStorage())
        for query in reversed(recent or []):
            self.store.add(query)

    def respond(self, query: str, *tickers: str, status: str = "success") -> None:
        self.responses[query] = SearchResponse.model_validate(
            search_payload(*tickers, status=status)
        )

    async def search_companies(self, query, limit=None, use_cache=True):
        self.search_calls.append(query)
        gate = self.gates.get(query)
        if gate is not None:
            await gate.wait()
        if query in self.errors:
            raise self.errors[query]
        if query in self.responses:
            return self.responses[query]
        return SearchResponse.model_validate(search_payload())

    async def get_search_suggestions(self, query, limit=5, use_cache=True):
        self.suggestion_calls.append(query)
        if self.suggestion_error is not None:
            raise self.suggestion_error
        return SuggestionResponse.model_validate(
            {"status": "success", "data": {"suggestions": [{"text": query.upper()}]}}
        )

    async def lookup_company(self, query, **kwargs):
        if self.lookup_error is not None:
            raise self.lookup_error
        return self.lookup_response

    async def validate_search_query(self, query, use_cache=True):
        if self.validation_error is not None:
            raise self.validation_error
        return ValidationResponse.model_validate(
            {"status": "success", "data": {"is_valid": True}}
        )

    def save_recent_search(self, query):
        return self.store.add(query)

    def get_recent_searches(self):
        return self.store.load()


async def settle(orchestrator: SearchOrchestrator, delay: float = 0.06) -> None:
    """Let debounce timers fire, then wait for the fetches they start."""
    await asyncio.sleep(delay)
    await orchestrator.wait_for_pending()


def server_error(message: str = "Server error. Please try again later.") -> ApiError:
    return ApiError(
        ErrorRecord(kind=ErrorKind.SERVER_ERROR, message=message, status_code=503)
    )


class TestDebouncedSearch:
    """Tests for set_query() and the debounce window."""

    @pytest.mark.asyncio
    async def test_typing_burst_issues_one_search(self):
        """Test keystrokes 50ms apart inside a 300ms window search once."""
        api = FakeApi()
        api.respond("TSLA", "TSLA")
        orchestrator = SearchOrchestrator(api, SearchOptions(enable_suggestions=False))

        for text in ["T", "TS", "TSL", "TSLA"]:
            orchestrator.set_query(text)
            await asyncio.sleep(0.05)

        await settle(orchestrator, delay=0.4)

        assert api.search_calls == ["TSLA"]
        assert orchestrator.state.phase == SearchPhase.SUCCESS
        assert orchestrator.state.results[0].ticker == "TSLA"

    @pytest.mark.asyncio
    async def test_phase_after_keystroke(self):
        """Test a keystroke arms the timer before any request."""
        orchestrator = SearchOrchestrator(FakeApi(), FAST)
        orchestrator.set_query("tes")
        assert orchestrator.state.phase == SearchPhase.AWAITING_DEBOUNCE
        assert orchestrator.state.query == "tes"
        orchestrator.close()

    @pytest.mark.asyncio
    async def test_below_threshold_makes_no_request(self):
        """Test a one-character query leaves the widget idle."""
        api = FakeApi()
        orchestrator = SearchOrchestrator(api, FAST)

        orchestrator.set_query("T")
        await settle(orchestrator)

        assert api.search_calls == []
        assert api.suggestion_calls == []
        assert orchestrator.state.phase == SearchPhase.IDLE
        assert orchestrator.state.results == []
        assert not orchestrator.state.has_searched

    @pytest.mark.asyncio
    async def test_shortening_query_returns_to_idle(self):
        """Test deleting back below the threshold clears previous results."""
        api = FakeApi()
        api.respond("tesla", "TSLA")
        orchestrator = SearchOrchestrator(api, FAST)

        await orchestrator.search("tesla")
        orchestrator.set_query("t")
        await settle(orchestrator)

        assert orchestrator.state.phase == SearchPhase.IDLE
        assert orchestrator.state.results == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("cancel_superseded", [False, True])
    async def test_last_issued_search_wins(self, cancel_superseded):
        """Test a slow earlier search cannot overwrite a later one."""
        api = FakeApi()
        api.gates["A"] = asyncio.Event()
        api.respond("A", "AAA")
        api.respond("AB", "ABC")
        orchestrator = SearchOrchestrator(
            api,
            SearchOptions(
                debounce_delay=0.01,
                min_query_length=1,
                enable_suggestions=False,
                cancel_superseded=cancel_superseded,
            ),
        )

        orchestrator.set_query("A")
        await asyncio.sleep(0.03)
        orchestrator.set_query("AB")
        await settle(orchestrator, delay=0.03)

        api.gates["A"].set()
        await asyncio.sleep(0.01)

        assert api.search_calls == ["A", "AB"]
        assert [r.ticker for r in orchestrator.state.results] == ["ABC"]
        assert orchestrator.state.debounced_query == "AB"
        assert orchestrator.state.phase == SearchPhase.SUCCESS

    @pytest.mark.asyncio
    async def test_auto_search_off(self):
        """Test keystrokes alone do not search when auto_search is off."""
        api = FakeApi()
        orchestrator = SearchOrchestrator(
            api, SearchOptions(debounce_delay=0.01, auto_search=False, enable_suggestions=False)
        )

        orchestrator.set_query("tesla")
        await settle(orchestrator, delay=0.03)
        assert api.search_calls == []

        await orchestrator.search()
        assert api.search_calls == ["tesla"]


class TestSearchOutcomes:
    """Tests for success and failure handling."""

    @pytest.mark.asyncio
    async def test_success_records_recent_search_and_emits(self):
        """Test a successful search updates state, recents and observers."""
        api = FakeApi()
        api.respond("tesla", "TSLA", "TSLA.X")
        orchestrator = SearchOrchestrator(api, FAST)
        events = []
        orchestrator.subscribe(events.append)

        state = await orchestrator.search("tesla")

        assert state.phase == SearchPhase.SUCCESS
        assert state.has_searched
        assert not state.loading
        assert len(state.results) == 2
        assert orchestrator.recent_searches == ["tesla"]
        assert events[-1].query == "tesla"
        assert events[-1].has_results

    @pytest.mark.asyncio
    async def test_empty_success_not_recorded(self):
        """Test a search with no matches is shown as empty but not remembered."""
        api = FakeApi()
        orchestrator = SearchOrchestrator(api, FAST)

        state = await orchestrator.search("zzzz corp")

        assert state.phase == SearchPhase.SUCCESS
        assert state.is_empty
        assert orchestrator.recent_searches == []

    @pytest.mark.asyncio
    async def test_failure_clears_results(self):
        """Test a failed search drops old results and carries a notice."""
        api = FakeApi()
        api.respond("tesla", "TSLA")
        api.errors["ford"] = server_error()
        orchestrator = SearchOrchestrator(api, FAST)
        events = []
        orchestrator.subscribe(events.append)

        await orchestrator.search("tesla")
        state = await orchestrator.search("ford")

        assert state.phase == SearchPhase.ERROR
        assert state.results == []
        assert state.has_searched
        assert state.error == "Server error. Please try again later."
        assert state.notice.kind == ErrorKind.SERVER_ERROR
        assert state.notice.action == NoticeAction.RETRY
        assert events[-1].error == state.error

    @pytest.mark.asyncio
    async def test_non_success_envelope_is_error(self):
        """Test status=error in a 200 response is treated as a failure."""
        api = FakeApi()
        api.respond("tesla", "TSLA", status="error")
        orchestrator = SearchOrchestrator(api, FAST)

        state = await orchestrator.search("tesla")

        assert state.phase == SearchPhase.ERROR
        assert state.notice.kind == ErrorKind.API_ERROR
        assert state.results == []

    @pytest.mark.asyncio
    async def test_suspicious_query_rejected_locally(self):
        """Test a script-like query fails validation without a request."""
        api = FakeApi()
        orchestrator = SearchOrchestrator(api, FAST)

        state = await orchestrator.search("<script>alert(1)</script>")

        assert api.search_calls == []
        assert state.phase == SearchPhase.ERROR
        assert state.notice.kind == ErrorKind.VALIDATION_ERROR
        assert state.notice.details == ["Query contains invalid characters"]

    @pytest.mark.asyncio
    async def test_query_is_normalized(self):
        """Test extra whitespace is collapsed before searching."""
        api = FakeApi()
        orchestrator = SearchOrchestrator(api, FAST)

        state = await orchestrator.search("  tesla    motors ")

        assert api.search_calls == ["tesla motors"]
        assert state.debounced_query == "tesla motors"

    @pytest.mark.asyncio
    async def test_listeners_see_every_snapshot(self):
        """Test state listeners observe loading then success."""
        api = FakeApi()
        api.respond("tesla", "TSLA")
        orchestrator = SearchOrchestrator(api, FAST)
        phases = []
        unwatch = orchestrator.watch(lambda state: phases.append(state.phase))

        await orchestrator.search("tesla")
        unwatch()
        await orchestrator.search("tesla")

        assert SearchPhase.LOADING in phases
        assert phases[-1] == SearchPhase.SUCCESS
        assert phases.count(SearchPhase.SUCCESS) == 1


class TestSuggestions:
    """Tests for the suggestion flow."""

    @pytest.mark.asyncio
    async def test_suggestions_loaded(self):
        """Test suggestions arrive on their own faster timer."""
        api = FakeApi()
        orchestrator = SearchOrchestrator(api, FAST)

        orchestrator.set_query("tes")
        await settle(orchestrator)

        assert api.suggestion_calls == ["tes"]
        assert orchestrator.state.has_suggestions
        assert orchestrator.state.suggestions[0].text == "TES"

    @pytest.mark.asyncio
    async def test_suggestion_failure_is_silent(self):
        """Test a failed suggestion fetch does not touch the search error."""
        api = FakeApi()
        api.respond("tesla", "TSLA")
        api.suggestion_error = server_error()
        orchestrator = SearchOrchestrator(api, FAST)

        orchestrator.set_query("tesla")
        await settle(orchestrator)

        assert orchestrator.state.suggestions == []
        assert orchestrator.state.error is None
        assert orchestrator.state.phase == SearchPhase.SUCCESS


class TestLifecycle:
    """Tests for clear(), recents and company details."""

    @pytest.mark.asyncio
    async def test_recent_searches_loaded_at_start(self):
        """Test persisted searches are available immediately."""
        orchestrator = SearchOrchestrator(FakeApi(recent=["tesla", "apple"]), FAST)
        assert orchestrator.recent_searches == ["tesla", "apple"]

    @pytest.mark.asyncio
    async def test_clear_resets_and_emits(self):
        """Test clear() empties the state and notifies observers."""
        api = FakeApi()
        api.respond("tesla", "TSLA")
        orchestrator = SearchOrchestrator(api, FAST)
        events = []
        orchestrator.subscribe(events.append)

        await orchestrator.search("tesla")
        orchestrator.clear()

        assert orchestrator.state.phase == SearchPhase.IDLE
        assert orchestrator.state.query == ""
        assert orchestrator.state.results == []
        assert events[-1].query == ""
        assert not events[-1].has_results

    @pytest.mark.asyncio
    @pytest.mark.parametrize("cancel_superseded", [False, True])
    async def test_clear_discards_in_flight_search(self, cancel_superseded):
        """Test a search resolving after clear() does not repopulate results."""
        api = FakeApi()
        api.gates["tesla"] = asyncio.Event()
        api.respond("tesla", "TSLA")
        orchestrator = SearchOrchestrator(
            api,
            SearchOptions(
                debounce_delay=0.01,
                enable_suggestions=False,
                cancel_superseded=cancel_superseded,
            ),
        )

        orchestrator.set_query("tesla")
        await asyncio.sleep(0.03)
        assert orchestrator.state.phase == SearchPhase.LOADING

        orchestrator.clear()
        api.gates["tesla"].set()
        await orchestrator.wait_for_pending()
        await asyncio.sleep(0)

        assert orchestrator.state.phase == SearchPhase.IDLE
        assert orchestrator.state.results == []
        assert orchestrator.recent_searches == []

    @pytest.mark.asyncio
    async def test_lookup_company(self):
        """Test details loading for the current query."""
        api = FakeApi()
        api.lookup_response = CompanyLookupResponse.model_validate(
            {"status": "success", "data": {"company": {"name": "Tesla", "ticker": "TSLA"}}}
        )
        orchestrator = SearchOrchestrator(api, FAST)
        orchestrator.set_query_only("tesla")

        details = await orchestrator.lookup_company()

        assert details.company.ticker == "TSLA"
        assert not orchestrator.state.details_loading

    @pytest.mark.asyncio
    async def test_lookup_company_failure(self):
        """Test a failed lookup is recorded and re-raised."""
        api = FakeApi()
        api.lookup_error = ApiError(
            ErrorRecord(kind=ErrorKind.NOT_FOUND, message="No such company", status_code=404)
        )
        orchestrator = SearchOrchestrator(api, FAST)

        with pytest.raises(ApiError) as exc_info:
            await orchestrator.lookup_company("zzzz")

        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert orchestrator.state.error == "No such company"
        assert orchestrator.state.notice.action == NoticeAction.SEARCH_AGAIN
        assert not orchestrator.state.details_loading

    @pytest.mark.asyncio
    async def test_lookup_company_without_data(self):
        """Test an envelope with no data is a failure."""
        api = FakeApi()
        api.lookup_response = CompanyLookupResponse.model_validate(
            {"status": "error", "message": "Lookup unavailable"}
        )
        orchestrator = SearchOrchestrator(api, FAST)

        with pytest.raises(ApiError):
            await orchestrator.lookup_company("tesla")

        assert orchestrator.state.error == "Lookup unavailable"

    @pytest.mark.asyncio
    async def test_validate_query_never_raises(self):
        """Test backend validation failures become an invalid result."""
        api = FakeApi()
        api.validation_error = server_error()
        orchestrator = SearchOrchestrator(api, FAST)

        result = await orchestrator.validate_query("tesla")

        assert not result.is_valid
        assert result.issues == ["Validation failed"]

    @pytest.mark.asyncio
    async def test_corrupt_recent_file_does_not_break_search(self, tmp_path):
        """Test a successful search still completes and emits with a corrupt store."""
        path = tmp_path / "recent.json"
        path.write_text("not json at all")
        api = FakeApi()
        api.store = RecentSearchStore(JsonFileStorage(path))
        api.respond("tesla", "TSLA")
        orchestrator = SearchOrchestrator(api, FAST)
        events = []
        orchestrator.subscribe(events.append)

        state = await orchestrator.search("tesla")

        assert state.phase == SearchPhase.SUCCESS
        assert [e.query for e in events] == ["tesla"]
        assert orchestrator._search_task.exception() is None
        assert orchestrator.recent_searches == ["tesla"]
