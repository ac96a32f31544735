"""Typed Reddit resources ("things") and listing envelopes.

Every resource Reddit returns is wrapped as ``{"kind": <prefix>, "data": {...}}``.
The two-character prefix selects the model through ``THING_TYPES``; the
model's ``fullname`` is ``<prefix>_<id>``.

Comments come in two shapes. ``LoadedComment`` is a real comment with its
replies; ``MoreComments`` is Reddit's "load more" marker that only lists
the IDs of children not yet fetched. ``Comment`` is the union of both, so
code walking a tree has to deal with the unresolved case.
"""

from datetime import datetime, timezone
from typing import Any, Callable, ClassVar, Generic, Iterator, Optional, TypeVar, Union

from pydantic import BaseModel, Field, ValidationError

from redditkit.errors import BadResponse

T = TypeVar("T")


class Listing(BaseModel, Generic[T]):
    """One page of a cursor-paginated result set, in server order."""

    children: list[T] = Field(default_factory=list)
    before: Optional[str] = None
    after: Optional[str] = None

    def __iter__(self) -> Iterator[T]:  # type: ignore[override]
        return iter(self.children)

    def __len__(self) -> int:
        return len(self.children)

    def __getitem__(self, index: int) -> T:
        return self.children[index]


class Thing(BaseModel):
    """A resource addressable by fullname."""

    KIND: ClassVar[str] = ""

    id: str

    @property
    def fullname(self) -> str:
        return f"{self.KIND}_{self.id}"

    @classmethod
    def from_value(cls, value: Any) -> "Thing":
        """Build the model from a ``{"kind", "data"}`` JSON wrapper.

        Raises:
            BadResponse: If the wrapper has another kind or the data does
                not fit the model.
        """
        if not isinstance(value, dict) or value.get("kind") != cls.KIND:
            kind = value.get("kind") if isinstance(value, dict) else type(value).__name__
            raise BadResponse(f"Expected a {cls.KIND} thing, got {kind!r}")
        try:
            return cls.model_validate(value.get("data") or {})
        except ValidationError as e:
            raise BadResponse(f"Malformed {cls.KIND} data: {e}") from e


class LoadedComment(Thing):
    """A fully loaded comment."""

    KIND: ClassVar[str] = "t1"

    author: str = "[deleted]"
    body: str = ""
    created_utc: float = 0.0
    parent_id: str = ""
    link_id: str = ""
    subreddit: str = ""
    score: int = 0
    depth: int = 0
    replies: Listing = Field(default_factory=Listing)

    @classmethod
    def from_value(cls, value: Any) -> "LoadedComment":
        """Build a flat comment; nested replies are attached by the tree parser."""
        if isinstance(value, dict) and isinstance(value.get("data"), dict):
            data = dict(value["data"])
            data.pop("replies", None)
            value = {"kind": value.get("kind"), "data": data}
        return super().from_value(value)

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.created_utc, tz=timezone.utc)


class MoreComments(BaseModel):
    """A "load more" stub: replies that exist but were not sent yet.

    ``children`` keeps Reddit's order. An empty ``children`` list marks a
    "continue this thread" link, which is resolved from the parent's own
    comment page instead of the morechildren endpoint.
    """

    KIND: ClassVar[str] = "more"

    id: str = "_"
    parent_id: str
    count: int = 0
    depth: int = 0
    children: list[str] = Field(default_factory=list)
    link_id: Optional[str] = None

    @classmethod
    def from_value(cls, value: Any, link_id: Optional[str] = None) -> "MoreComments":
        if not isinstance(value, dict) or value.get("kind") != cls.KIND:
            raise BadResponse("Expected a 'more' stub")
        try:
            stub = cls.model_validate(value.get("data") or {})
        except ValidationError as e:
            raise BadResponse(f"Malformed 'more' stub: {e}") from e
        if stub.link_id is None and link_id is not None:
            stub.link_id = link_id
        return stub

    @property
    def is_continue_thread(self) -> bool:
        return not self.children


Comment = Union[LoadedComment, MoreComments]


class Account(Thing):
    """A user account."""

    KIND: ClassVar[str] = "t2"

    name: str
    created_utc: float = 0.0
    link_karma: int = 0
    comment_karma: int = 0
    is_mod: bool = False


class Post(Thing):
    """A link or self post."""

    KIND: ClassVar[str] = "t3"

    subreddit: str = ""
    title: str = ""
    selftext: str = ""
    author: str = "[deleted]"
    score: int = 0
    num_comments: int = 0
    created_utc: float = 0.0
    url: str = ""
    permalink: str = ""
    stickied: bool = False

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.created_utc, tz=timezone.utc)


class Message(Thing):
    """A private message."""

    KIND: ClassVar[str] = "t4"

    author: Optional[str] = None
    dest: str = ""
    subject: str = ""
    body: str = ""
    created_utc: float = 0.0
    new: bool = False


class Subreddit(Thing):
    """Subreddit metadata."""

    KIND: ClassVar[str] = "t5"

    display_name: str
    title: str = ""
    subscribers: Optional[int] = None
    public_description: str = ""
    created_utc: float = 0.0
    over18: bool = False


THING_TYPES: dict[str, type[Thing]] = {
    model.KIND: model
    for model in (LoadedComment, Account, Post, Message, Subreddit)
}


def parse_thing(value: Any) -> Thing:
    """Dispatch a ``{"kind", "data"}`` wrapper to its model by prefix."""
    kind = value.get("kind") if isinstance(value, dict) else None
    model = THING_TYPES.get(kind)
    if model is None:
        raise BadResponse(f"Unknown thing kind: {kind!r}")
    return model.from_value(value)


def parse_listing(
    value: Any, parse_child: Callable[[Any], T] = parse_thing
) -> Listing[T]:
    """Parse a Listing envelope, converting each child with ``parse_child``.

    Raises:
        BadResponse: If ``value`` is not a Listing envelope.
    """
    if not isinstance(value, dict) or value.get("kind") != "Listing":
        raise BadResponse("Expected a Listing")
    data = value.get("data") or {}
    if not isinstance(data, dict):
        raise BadResponse("Listing data is not an object")
    children = data.get("children") or []
    if not isinstance(children, list):
        raise BadResponse("Listing children is not a list")
    parsed = [parse_child(child) for child in children]
    try:
        return Listing(children=parsed, before=data.get("before"), after=data.get("after"))
    except ValidationError as e:
        raise BadResponse(f"Malformed Listing cursors: {e}") from e
