"""Unit tests for CommentStream backfill and live-tail polling."""

from itertools import islice
from unittest.mock import MagicMock

import pytest

from redditkit.errors import BadResponse
from redditkit.services.comment_stream import CommentStream
from tests.fixtures.reddit_responses import comment, listing


class StopPolling(Exception):
    """Raised by the fake sleep to end an otherwise endless stream."""


def _page(ids: list[str], after=None) -> dict:
    """A /comments page; ``ids`` are given newest first, like Reddit sends them."""
    return listing([comment(i, parent_id="t3_p1") for i in ids], after=after)


def _ids(comments) -> list[str]:
    return [c.id for c in comments]


@pytest.fixture
def sleep() -> MagicMock:
    return MagicMock()


def _stream(executor, sleep, **kwargs) -> CommentStream:
    kwargs.setdefault("poll_interval", 5.0)
    return CommentStream(executor, "python", sleep=sleep, **kwargs)


# ---------------------------------------------------------------------------
# Tests: backfill
# ---------------------------------------------------------------------------

class TestBackfill:
    """Tests for draining history before live-tailing."""

    def test_backfill_then_live_tail(self, executor, http, mock_response, sleep, sent) -> None:
        """History comes out oldest first, then new comments from the live poll."""
        http.send.side_effect = [
            mock_response(_page(["c05", "c04", "c03"], after="t1_c03")),
            mock_response(_page(["c02", "c01"])),
            mock_response(_page(["c07", "c06", "c05"])),
        ]
        stream = _stream(executor, sleep)

        emitted = list(islice(stream, 7))

        assert _ids(emitted) == ["c01", "c02", "c03", "c04", "c05", "c06", "c07"]
        requests = sent()
        assert requests[0].url.path == "/r/python/comments.json"
        assert requests[1].url.params["after"] == "t1_c03"
        assert "after" not in requests[2].url.params
        assert stream.watermark == "c07"
        sleep.assert_not_called()

    def test_stops_at_watermark(self, executor, http, mock_response, sleep) -> None:
        """Backfill stops at the first comment that is not newer than after_id."""
        http.send.side_effect = [
            mock_response(_page(["c05", "c04", "c03", "c02"], after="t1_c02")),
        ]
        stream = _stream(executor, sleep, after_id="t1_c03")

        emitted = list(islice(stream, 2))

        assert _ids(emitted) == ["c04", "c05"]
        assert http.send.call_count == 1
        assert stream.watermark == "c05"

    def test_max_backfill_pages(self, executor, http, mock_response, sleep) -> None:
        http.send.side_effect = [
            mock_response(_page(["c05", "c04"], after="t1_c04")),
            mock_response(_page(["c06", "c05", "c04"])),
        ]
        stream = _stream(executor, sleep, max_backfill_pages=1)

        emitted = list(islice(stream, 3))

        assert _ids(emitted) == ["c04", "c05", "c06"]
        assert http.send.call_count == 2

    def test_ids_compare_as_base36(self, executor, http, mock_response, sleep) -> None:
        """A longer ID is a newer comment even when it sorts lower as text."""
        http.send.side_effect = [
            mock_response(_page(["100", "zz"])),
        ]
        stream = _stream(executor, sleep)

        emitted = list(islice(stream, 2))

        assert _ids(emitted) == ["zz", "100"]
        assert stream.watermark == "100"


# ---------------------------------------------------------------------------
# Tests: live tail
# ---------------------------------------------------------------------------

class TestLiveTail:
    """Tests for polling the newest page."""

    def test_deduplicates_across_polls(self, executor, http, mock_response, sleep) -> None:
        """Overlapping polls emit each comment once, oldest first."""
        http.send.side_effect = [
            mock_response(_page(["c02", "c01"])),
            mock_response(_page(["c04", "c03", "c02", "c01"])),
        ]
        stream = _stream(executor, sleep, max_backfill_pages=0)

        emitted = list(islice(stream, 4))

        assert _ids(emitted) == ["c01", "c02", "c03", "c04"]
        assert http.send.call_count == 2

    def test_sleeps_when_nothing_new(self, executor, http, mock_response, sleep) -> None:
        http.send.side_effect = [
            mock_response(_page(["c02", "c01"])),
            mock_response(_page(["c02", "c01"])),
            mock_response(_page(["c03", "c02"])),
        ]
        stream = _stream(executor, sleep, max_backfill_pages=0, poll_interval=2.5)

        emitted = list(islice(stream, 3))

        assert _ids(emitted) == ["c01", "c02", "c03"]
        sleep.assert_called_once_with(2.5)

    def test_empty_page_sleeps(self, executor, http, mock_response, sleep) -> None:
        http.send.return_value = mock_response(listing([]))
        sleep.side_effect = StopPolling

        with pytest.raises(StopPolling):
            list(_stream(executor, sleep, max_backfill_pages=0))

        assert http.send.call_count == 1

    def test_older_late_arrivals_are_skipped(self, executor, http, mock_response, sleep) -> None:
        """Nothing at or below the watermark is emitted."""
        http.send.side_effect = [
            mock_response(_page(["c05"])),
            mock_response(_page(["c06", "c03"])),
        ]
        stream = _stream(executor, sleep, max_backfill_pages=0)

        emitted = list(islice(stream, 2))

        assert _ids(emitted) == ["c05", "c06"]

    def test_request_failure_propagates(self, executor, http, mock_response, sleep) -> None:
        http.send.side_effect = [
            mock_response(_page(["c01"])),
            mock_response({}, status_code=503),
        ]
        stream = iter(_stream(executor, sleep, max_backfill_pages=0))

        assert next(stream).id == "c01"
        with pytest.raises(BadResponse):
            next(stream)

    def test_resumes_after_watermark(self, executor, http, mock_response, sleep) -> None:
        """Iterating a stream again continues after the last emitted comment."""
        http.send.side_effect = [
            mock_response(_page(["c02", "c01"])),
            mock_response(_page(["c03", "c02", "c01"])),
        ]
        stream = _stream(executor, sleep, max_backfill_pages=0)

        first = list(islice(stream, 2))
        second = list(islice(stream, 1))

        assert _ids(first) == ["c01", "c02"]
        assert _ids(second) == ["c03"]
