"""Continuous feed of new comments in a subreddit (or all of Reddit).

Reddit has no push API for comments, so the stream polls
``/r/<subreddit>/comments``, which lists the newest comments first.

It runs in two modes. Backfill drains older pages until it runs out of
history or reaches the watermark the stream was started with, then emits
what it found oldest-first. Live-tail then re-reads the newest page
forever, emitting only comments newer than the watermark and never an ID
it has already emitted, and sleeps between polls that find nothing.

Comment IDs are base-36 counters, so comparing them numerically orders
comments by creation.
"""

import logging
import time
from collections import deque
from typing import Callable, Iterator, Optional

from redditkit.models.things import LoadedComment
from redditkit.services.executor import RequestExecutor
from redditkit.services.paginator import Paginator

logger = logging.getLogger(__name__)

_SEEN_LIMIT = 1000  # IDs remembered for de-duplication
_DEFAULT_POLL_INTERVAL = 5.0


def _id_value(comment_id: str) -> int:
    return int(comment_id, 36)


class CommentStream:
    """Unbounded, de-duplicated, oldest-first stream of new comments.

    Iterating yields flat ``LoadedComment`` objects (no replies). The stream
    ends only when the consumer stops pulling, or when a request fails, in
    which case the error propagates. Iterating again picks up after the
    last emitted comment.
    """

    def __init__(
        self,
        executor: RequestExecutor,
        subreddit: str = "all",
        *,
        after_id: Optional[str] = None,
        poll_interval: float = _DEFAULT_POLL_INTERVAL,
        page_limit: int = 100,
        max_backfill_pages: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Configure the stream. Nothing is fetched until iteration starts.

        Args:
            executor: Executor that sends the requests.
            subreddit: Subreddit name, or ``all``.
            after_id: Watermark from an earlier run; only newer comments are
                emitted. Accepts a bare ID or a ``t1_`` fullname.
            poll_interval: Seconds to wait after a poll with nothing new.
            page_limit: Comments per request.
            max_backfill_pages: Stop backfilling after this many pages.
                ``None`` drains everything Reddit still lists.
            sleep: Waits between polls; replaceable in tests.
        """
        self._executor = executor
        self.subreddit = subreddit
        self._path = f"r/{subreddit}/comments"
        self._poll_interval = poll_interval
        self._page_limit = page_limit
        self._max_backfill_pages = max_backfill_pages
        self._sleep = sleep
        self._watermark: Optional[str] = None
        if after_id:
            self._watermark = after_id[3:] if after_id.startswith("t1_") else after_id
        self._seen: deque[str] = deque()
        self._seen_ids: set[str] = set()

    @property
    def watermark(self) -> Optional[str]:
        """ID of the newest comment emitted so far."""
        return self._watermark

    def __iter__(self) -> Iterator[LoadedComment]:
        yield from self._backfill()
        logger.info(f"Live-tailing r/{self.subreddit} after {self._watermark}")
        while True:
            fresh = self._poll()
            if not fresh:
                self._sleep(self._poll_interval)
                continue
            for comment in fresh:
                yield self._emit(comment)

    def _paginator(self) -> Paginator[LoadedComment]:
        return Paginator(
            self._executor,
            self._path,
            limit=self._page_limit,
            parse_child=LoadedComment.from_value,
        )

    def _is_new(self, comment: LoadedComment) -> bool:
        if comment.id in self._seen_ids:
            return False
        if self._watermark is None:
            return True
        return _id_value(comment.id) > _id_value(self._watermark)

    def _emit(self, comment: LoadedComment) -> LoadedComment:
        self._seen.append(comment.id)
        self._seen_ids.add(comment.id)
        if len(self._seen) > _SEEN_LIMIT:
            self._seen_ids.discard(self._seen.popleft())
        if self._watermark is None or _id_value(comment.id) > _id_value(self._watermark):
            self._watermark = comment.id
        return comment

    def _backfill(self) -> Iterator[LoadedComment]:
        if self._max_backfill_pages == 0:
            return

        collected: dict[str, LoadedComment] = {}
        reached_watermark = False
        paginator = self._paginator()

        for page in paginator:
            for comment in page.children:
                if not self._is_new(comment):
                    reached_watermark = True
                    break
                collected.setdefault(comment.id, comment)
            if reached_watermark:
                break
            if self._max_backfill_pages is not None and paginator.pages_fetched >= self._max_backfill_pages:
                break

        logger.info(
            f"Backfilled {len(collected)} comments from r/{self.subreddit} "
            f"over {paginator.pages_fetched} pages"
        )
        for comment in sorted(collected.values(), key=lambda c: _id_value(c.id)):
            yield self._emit(comment)

    def _poll(self) -> list[LoadedComment]:
        page = next(self._paginator(), None)
        if page is None:
            return []
        fresh = {c.id: c for c in page.children if self._is_new(c)}
        logger.debug(f"Polled r/{self.subreddit}: {len(fresh)} new of {len(page.children)}")
        return sorted(fresh.values(), key=lambda c: _id_value(c.id))
