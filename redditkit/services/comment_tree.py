"""Comment trees: parsing nested comment listings and resolving "more" stubs.

A post's comment page is a two-element JSON array: the post itself, then a
Listing of top-level comments. Each comment carries its own ``replies``
Listing (or an empty string), so the tree is parsed recursively. Where
Reddit truncated the thread it sends a ``more`` entry instead, listing the
IDs of the missing children.

Resolving a stub fetches those children from ``/api/morechildren``, which
answers with a flat, depth-first list. The flat list is re-nested by
``parent_id`` and goes through the same recursive parse before it takes
the stub's place in the tree.
"""

import logging
from typing import Any, Callable, Iterator, Optional

from redditkit.errors import BadRequest, BadResponse, check_api_errors
from redditkit.models.schemas import Sort
from redditkit.models.things import (
    Comment,
    Listing,
    LoadedComment,
    MoreComments,
    parse_listing,
)
from redditkit.services.executor import RequestExecutor

logger = logging.getLogger(__name__)

_MORECHILDREN_BATCH = 100  # IDs per /api/morechildren request


def _strip_prefix(name: str, prefix: str) -> str:
    return name[len(prefix):] if name.startswith(prefix) else name


def _parse_loaded(entry: dict, link_id: Optional[str]) -> LoadedComment:
    comment = LoadedComment.from_value(entry)
    data = entry.get("data") or {}
    comment.replies = materialize(data.get("replies"), comment.link_id or link_id)
    return comment


def _parse_more(entry: dict, link_id: Optional[str]) -> MoreComments:
    return MoreComments.from_value(entry, link_id)


_COMMENT_PARSERS: dict[str, Callable[[dict, Optional[str]], Comment]] = {
    LoadedComment.KIND: _parse_loaded,
    MoreComments.KIND: _parse_more,
}


def parse_comment(entry: Any, link_id: Optional[str] = None) -> Comment:
    """Parse one comment-listing child into a loaded comment or a stub."""
    kind = entry.get("kind") if isinstance(entry, dict) else None
    parser = _COMMENT_PARSERS.get(kind)
    if parser is None:
        raise BadResponse(f"Unexpected entry in comment listing: {kind!r}")
    return parser(entry, link_id)


def materialize(value: Any, link_id: Optional[str] = None) -> Listing[Comment]:
    """Parse a comment Listing, recursing into every comment's replies.

    Args:
        value: A Listing envelope. Reddit sends an empty string for a
            comment without replies; that (and None) gives an empty Listing.
        link_id: Fullname of the post, recorded on stubs so they can be
            resolved later.

    Raises:
        BadResponse: If the payload is not a comment Listing.
    """
    if value in ("", None):
        return Listing()
    return parse_listing(value, lambda entry: parse_comment(entry, link_id))


def _renest(things: list[dict], parent_id: str) -> list[dict]:
    """Turn morechildren's flat list back into nested listing entries.

    Children whose parent is ``parent_id`` become the top level; every other
    entry goes under its parent from the same batch. Entries whose parent
    is not in the batch are kept at the top level.
    """
    top: list[dict] = []
    by_name: dict[str, list[dict]] = {}

    for thing in things:
        data = dict(thing.get("data") or {})
        entry = {"kind": thing.get("kind"), "data": data}
        if entry["kind"] == LoadedComment.KIND:
            replies: list[dict] = []
            data["replies"] = {"kind": "Listing", "data": {"children": replies}}
            by_name[data.get("name") or f"t1_{data.get('id')}"] = replies

        parent = data.get("parent_id")
        if parent == parent_id:
            top.append(entry)
        elif parent in by_name:
            by_name[parent].append(entry)
        else:
            logger.warning(
                f"Comment {data.get('id')} has parent {parent} outside the "
                f"fetched batch; keeping it at the top level"
            )
            top.append(entry)

    return top


def _morechildren_things(value: Any) -> list[dict]:
    if not isinstance(value, dict) or not isinstance(value.get("json"), dict):
        raise BadResponse("Unexpected morechildren payload")
    check_api_errors(value)
    data = value["json"].get("data") or {}
    if not isinstance(data, dict):
        raise BadResponse("Unexpected morechildren payload")
    things = data.get("things") or []
    if not isinstance(things, list) or not all(
        isinstance(thing, dict) and isinstance(thing.get("data"), dict) for thing in things
    ):
        raise BadResponse("Unexpected entries in morechildren payload")
    return things


def _load_thread(executor: RequestExecutor, stub: MoreComments) -> list[Comment]:
    """Resolve a "continue this thread" stub from the parent comment's page."""
    if not stub.parent_id.startswith(f"{LoadedComment.KIND}_"):
        raise BadRequest(f"Cannot continue a thread under {stub.parent_id}")
    post_id = _strip_prefix(stub.link_id, "t3_")
    comment_id = _strip_prefix(stub.parent_id, "t1_")

    value = executor.get(f"comments/{post_id}/_/{comment_id}")
    if not isinstance(value, list) or len(value) < 2:
        raise BadResponse("Unexpected comment page payload")

    for node in materialize(value[1], stub.link_id).children:
        if isinstance(node, LoadedComment) and node.fullname == stub.parent_id:
            return list(node.replies.children)
    raise BadResponse(f"Comment {stub.parent_id} missing from its own thread page")


def load_more(executor: RequestExecutor, stub: MoreComments) -> list[Comment]:
    """Fetch the comments a stub stands for, in Reddit's order.

    Args:
        executor: Executor that sends the requests.
        stub: The "more" stub. It must know its post's fullname (``link_id``).

    Returns:
        The fetched comments, nested among themselves. They may contain
        further stubs.

    Raises:
        BadRequest: If the stub has no ``link_id`` or Reddit reports errors.
        RedditError: Any executor failure.
    """
    if not stub.link_id:
        raise BadRequest("Cannot resolve a stub without the post's fullname")
    if stub.is_continue_thread:
        return _load_thread(executor, stub)

    things: list[dict] = []
    for start in range(0, len(stub.children), _MORECHILDREN_BATCH):
        batch = stub.children[start:start + _MORECHILDREN_BATCH]
        value = executor.get(
            "api/morechildren",
            {
                "api_type": "json",
                "link_id": stub.link_id,
                "children": ",".join(batch),
            },
        )
        things.extend(_morechildren_things(value))

    logger.debug(f"Loaded {len(things)} entries for stub under {stub.parent_id}")
    listing = {"kind": "Listing", "data": {"children": _renest(things, stub.parent_id)}}
    return list(materialize(listing, stub.link_id).children)


def _stub_key(stub: MoreComments) -> tuple:
    return (stub.id, stub.parent_id, tuple(stub.children))


def _locate(listing: Listing, stub: MoreComments) -> Optional[tuple[Listing, int]]:
    for index, node in enumerate(listing.children):
        if node is stub:
            return listing, index
        if isinstance(node, LoadedComment):
            found = _locate(node.replies, stub)
            if found is not None:
                return found
    return None


class CommentTree:
    """The comment tree of one post, with on-demand stub resolution."""

    def __init__(
        self,
        executor: RequestExecutor,
        post_id: str,
        comments: Listing[Comment],
    ) -> None:
        """Wrap an already materialized tree.

        Args:
            executor: Executor used to resolve stubs.
            post_id: Post ID, with or without the ``t3_`` prefix.
            comments: Top-level comments of the post.
        """
        self._executor = executor
        self.post_id = _strip_prefix(post_id, "t3_")
        self.comments = comments
        self._resolved: dict[tuple, list[Comment]] = {}

    @property
    def link_id(self) -> str:
        return f"t3_{self.post_id}"

    def walk(self) -> Iterator[LoadedComment]:
        """Yield every loaded comment, depth-first in tree order."""
        yield from _walk(self.comments)

    def stubs(self) -> Iterator[MoreComments]:
        """Yield every unresolved stub, in tree order."""
        yield from _stubs(self.comments)

    def resolve(self, stub: MoreComments) -> list[Comment]:
        """Load a stub's comments and put them where the stub was.

        Siblings and ancestors keep their order. If the fetch fails the
        error propagates and the tree is left untouched. Resolving a stub
        that was already resolved returns the earlier result without a new
        request.

        Raises:
            ValueError: If the stub is not part of this tree.
            RedditError: Any failure while fetching.
        """
        key = _stub_key(stub)
        if key in self._resolved:
            return self._resolved[key]

        location = _locate(self.comments, stub)
        if location is None:
            raise ValueError("Stub is not part of this comment tree")

        target = stub if stub.link_id else stub.model_copy(update={"link_id": self.link_id})
        replacement = load_more(self._executor, target)

        siblings, index = location
        siblings.children[index:index + 1] = replacement
        self._resolved[key] = replacement
        logger.debug(
            f"Resolved stub under {stub.parent_id} into {len(replacement)} entries"
        )
        return replacement

    def resolve_all(self, limit: Optional[int] = None) -> int:
        """Resolve stubs in tree order, including ones revealed by earlier
        resolutions, until none are left or ``limit`` resolutions were made.

        Returns:
            Number of stubs resolved.
        """
        resolved = 0
        attempted: set[tuple] = set()
        while limit is None or resolved < limit:
            stub = next((s for s in self.stubs() if _stub_key(s) not in attempted), None)
            if stub is None:
                break
            attempted.add(_stub_key(stub))
            self.resolve(stub)
            resolved += 1
        return resolved


def _walk(listing: Listing) -> Iterator[LoadedComment]:
    for node in listing.children:
        if isinstance(node, LoadedComment):
            yield node
            yield from _walk(node.replies)


def _stubs(listing: Listing) -> Iterator[MoreComments]:
    for node in listing.children:
        if isinstance(node, MoreComments):
            yield node
        else:
            yield from _stubs(node.replies)


def get_comment_tree(
    executor: RequestExecutor,
    post_id: str,
    sort: Optional[Sort] = None,
) -> CommentTree:
    """Fetch a post's comment page and materialize its comment tree.

    The post itself (first section of the response) is discarded.

    Raises:
        BadResponse: If the page does not have the post/comments shape.
        RedditError: Any executor failure.
    """
    post_id = _strip_prefix(post_id, "t3_")
    params = sort.comment_params() if sort else None
    value = executor.get(f"comments/{post_id}", params)

    if not isinstance(value, list) or len(value) < 2:
        raise BadResponse("Unexpected comment page payload")

    comments = materialize(value[1], f"t3_{post_id}")
    logger.debug(f"Materialized {len(comments.children)} top-level entries for {post_id}")
    return CommentTree(executor, post_id, comments)
