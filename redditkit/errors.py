"""Exception hierarchy for Reddit API failures.

Every failure in the request pipeline surfaces as a ``RedditError``
subclass. HTTP failures keep their status code; transport failures and
JSON decoding failures are chained to the original exception.
"""

from typing import Any, Optional


class RedditError(Exception):
    """Base class for all redditkit errors."""

    default_message = "Reddit API error"

    def __init__(
        self, message: Optional[str] = None, status_code: Optional[int] = None
    ) -> None:
        self.message = message or self.default_message
        self.status_code = status_code
        super().__init__(self.message)


class BadRequest(RedditError):
    """Malformed query or parameters, HTTP 400, or an API-level error list."""

    default_message = "Bad request"


class Forbidden(RedditError):
    """Credentials missing, rejected or unrenewable, or HTTP 401/403."""

    default_message = "Forbidden"


class AuthenticationRequired(Forbidden):
    """An identity endpoint was called on an anonymous session."""

    default_message = "This endpoint requires an authorized session"


class NotFound(RedditError):
    """HTTP 404."""

    default_message = "Resource not found"


class BadResponse(RedditError):
    """Unparseable payload or an unexpected HTTP status (including 429 and 5xx)."""

    default_message = "Unexpected response from Reddit"


class Transient(RedditError):
    """Network or transport failure: DNS, timeout, connection reset."""

    default_message = "Could not reach Reddit"


class SessionStateError(RedditError):
    """A session operation was requested from a state that does not allow it."""

    default_message = "Invalid session state"


def check_api_errors(value: Any) -> Any:
    """Raise BadRequest for an ``api_type=json`` body that lists errors.

    Reddit reports each error as ``[CODE, message, field]``; they are
    rendered as ``CODE: message`` and joined. Bodies without errors are
    returned unchanged.
    """
    body = value.get("json") if isinstance(value, dict) else None
    errors = body.get("errors") if isinstance(body, dict) else None
    if errors:
        messages = []
        for error in errors:
            if isinstance(error, (list, tuple)):
                messages.append(": ".join(str(part) for part in error[:2]))
            else:
                messages.append(str(error))
        raise BadRequest("; ".join(messages))
    return value
