"""
Search-as-you-type orchestration.

Provides:
- Debouncer: cancellable timer with sequence numbers
- SearchOrchestrator: debounced search and suggestion state machine
- describe_error: user-facing notices for failed requests
"""

from company_lookup.search.debounce import Debouncer
from company_lookup.search.notices import ErrorNotice, NoticeAction, describe_error
from company_lookup.search.orchestrator import (
    SearchEvent,
    SearchOptions,
    SearchOrchestrator,
    SearchPhase,
    SearchState,
)

__all__ = [
    "Debouncer",
    "ErrorNotice",
    "NoticeAction",
    "describe_error",
    "SearchEvent",
    "SearchOptions",
    "SearchOrchestrator",
    "SearchPhase",
    "SearchState",
]
