"""Cursor-driven iteration over Reddit listing endpoints."""

import logging
from typing import Any, Callable, Generic, Iterator, Optional, TypeVar

from redditkit.errors import RedditError
from redditkit.models.things import Listing, parse_listing, parse_thing
from redditkit.services.executor import RequestExecutor

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MAX_PAGE_LIMIT = 100  # Reddit caps listings at 100 items per request


class Paginator(Generic[T]):
    """Lazy sequence of listing pages for one query.

    The first request carries no cursor; every following request sends the
    previous page's ``after`` cursor. Iteration stops after a page without
    ``after``, or at an empty page (which is not yielded).

    A Paginator is single-use: once exhausted, or once a fetch has failed,
    it yields nothing more. Build a new one to start over from the first
    page.
    """

    def __init__(
        self,
        executor: RequestExecutor,
        path: str,
        params: Optional[dict] = None,
        *,
        limit: int = _MAX_PAGE_LIMIT,
        authenticated: bool = False,
        parse_child: Callable[[Any], T] = parse_thing,
    ) -> None:
        """Set up the query. Nothing is fetched until the first page is pulled.

        Args:
            executor: Executor that sends the requests.
            path: Listing endpoint path, e.g. ``r/python/new``.
            params: Query parameters identifying the query (sort, time window).
            limit: Items per page (capped at 100).
            authenticated: Fetch through the OAuth host as the session's user.
            parse_child: Converts each raw listing child into an item.
        """
        self._executor = executor
        self._path = path
        self._params = dict(params or {})
        self._limit = min(limit, _MAX_PAGE_LIMIT)
        self._authenticated = authenticated
        self._parse_child = parse_child
        self._after: Optional[str] = None
        self._exhausted = False
        self.pages_fetched = 0

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def __iter__(self) -> "Paginator[T]":
        return self

    def __next__(self) -> Listing[T]:
        if self._exhausted:
            raise StopIteration

        params = dict(self._params)
        params["limit"] = self._limit
        if self._after:
            params["after"] = self._after

        try:
            value = self._executor.get(self._path, params, authenticated=self._authenticated)
            page = parse_listing(value, self._parse_child)
        except RedditError:
            self._exhausted = True
            raise

        self.pages_fetched += 1
        logger.debug(
            f"Fetched page {self.pages_fetched} of {self._path}: "
            f"{len(page.children)} items, after={page.after}"
        )

        if not page.children:
            self._exhausted = True
            raise StopIteration

        self._after = page.after
        if not page.after:
            self._exhausted = True
        return page

    def items(self) -> Iterator[T]:
        """Yield the items of every remaining page, in order."""
        for page in self:
            yield from page.children
