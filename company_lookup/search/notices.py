"""User-facing descriptions of request failures."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from company_lookup.services.errors import ErrorKind, ErrorRecord


class NoticeAction(str, Enum):
    RETRY = "retry"
    SEARCH_AGAIN = "search_again"


class ErrorNotice(BaseModel):
    """What the rendering layer shows for a failed request."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    title: str
    message: str
    action: NoticeAction | None = None
    details: list[str] = Field(default_factory=list)


TITLES = {
    ErrorKind.NETWORK_ERROR: "Connection problem",
    ErrorKind.TIMEOUT_ERROR: "Request timed out",
    ErrorKind.VALIDATION_ERROR: "Invalid search",
    ErrorKind.NOT_FOUND: "No company found",
    ErrorKind.RATE_LIMIT: "Too many requests",
    ErrorKind.SERVER_ERROR: "Server error",
    ErrorKind.API_ERROR: "Request failed",
    ErrorKind.UNKNOWN_ERROR: "Something went wrong",
}

RETRYABLE_NOTICES = frozenset(
    {
        ErrorKind.NETWORK_ERROR,
        ErrorKind.TIMEOUT_ERROR,
        ErrorKind.SERVER_ERROR,
        ErrorKind.API_ERROR,
        ErrorKind.UNKNOWN_ERROR,
    }
)


def _field_issue(issue: object) -> str:
    if isinstance(issue, dict):
        field = issue.get("field") or issue.get("loc")
        message = issue.get("message") or issue.get("msg") or ""
        if isinstance(field, (list, tuple)):
            field = ".".join(str(part) for part in field)
        return f"{field}: {message}" if field else str(message)
    return str(issue)


def describe_error(record: ErrorRecord) -> ErrorNotice:
    action = None
    if record.kind in RETRYABLE_NOTICES:
        action = NoticeAction.RETRY
    elif record.kind == ErrorKind.NOT_FOUND:
        action = NoticeAction.SEARCH_AGAIN

    details: list[str] = []
    if record.kind == ErrorKind.VALIDATION_ERROR:
        details = [_field_issue(issue) for issue in record.errors]
    elif record.kind == ErrorKind.RATE_LIMIT and record.retry_after:
        # Retry-After is either delta-seconds or an HTTP date
        if record.retry_after.isdigit():
            details = [f"Try again in {record.retry_after} seconds."]
        else:
            details = [f"Try again after {record.retry_after}."]

    return ErrorNotice(
        kind=record.kind,
        title=TITLES[record.kind],
        message=record.message,
        action=action,
        details=details,
    )
