"""Pydantic v2 value objects for authentication and listing queries."""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class UserAgent(BaseModel):
    """Application identity sent with every request."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    author: str

    @property
    def header(self) -> str:
        """Render the User-Agent header value."""
        return f"{self.name}/{self.version} by {self.author}"


class OAuthApp(BaseModel):
    """A registered Reddit OAuth application."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["script", "installed", "web"] = "script"
    client_id: str
    # Installed apps have no secret; Reddit expects an empty password.
    client_secret: Optional[str] = Field(default=None, repr=False)


class Credentials(BaseModel):
    """Login credentials for the password grant."""

    model_config = ConfigDict(frozen=True)

    username: str
    password: str = Field(repr=False)
    app: OAuthApp


class Token(BaseModel):
    """An OAuth2 bearer token and its lifetime."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(repr=False)
    expires_at: float
    scope: str = ""

    @property
    def expires(self) -> datetime:
        return datetime.fromtimestamp(self.expires_at, tz=timezone.utc)

    def is_expired(self, now: float) -> bool:
        """Return True once ``now`` has reached the expiry instant."""
        return now >= self.expires_at


class SortTime(str, Enum):
    """Time window for top/controversial listings."""

    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


class Sort(str, Enum):
    """Listing sort order."""

    HOT = "hot"
    NEW = "new"
    TOP = "top"
    CONTROVERSIAL = "controversial"
    RISING = "rising"
    BEST = "best"

    @property
    def timed(self) -> bool:
        return self in (Sort.TOP, Sort.CONTROVERSIAL)

    def params(self, time: Optional[SortTime] = None) -> dict[str, str]:
        """Query parameters for a subreddit listing sorted this way.

        The time window only applies to top and controversial; it defaults
        to ``day`` there, matching Reddit's own default.
        """
        if not self.timed:
            return {}
        return {"t": (time or SortTime.DAY).value}

    def comment_params(self) -> dict[str, str]:
        """Query parameters for a comment page sorted this way."""
        if self is Sort.BEST:
            return {"sort": "confidence"}
        return {"sort": self.value}
