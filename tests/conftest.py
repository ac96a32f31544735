"""Shared test fixtures for redditkit.

No test touches the network: the httpx client is a MagicMock whose
``send`` (API calls) and ``post`` (token exchange) return mock responses.
"""

from unittest.mock import MagicMock

import httpx
import pytest

from redditkit.models.schemas import Credentials, OAuthApp, UserAgent
from redditkit.services.executor import RequestExecutor
from redditkit.services.session import Session
from tests.fixtures.reddit_responses import token


class FakeClock:
    """Controllable replacement for time.time()."""

    def __init__(self, now: float = 1700000000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def mock_response():
    """Factory for mock httpx.Response objects."""
    def _make(json_data=None, status_code: int = 200, invalid_json: bool = False):
        resp = MagicMock(spec=httpx.Response)
        resp.status_code = status_code
        if invalid_json:
            resp.json.side_effect = ValueError("Expecting value: line 1 column 1")
        else:
            resp.json.return_value = json_data
        return resp
    return _make


@pytest.fixture
def http() -> MagicMock:
    """Stand-in for httpx.Client."""
    return MagicMock(spec=httpx.Client)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def user_agent() -> UserAgent:
    return UserAgent(name="redditkit-tests", version="1.2.0", author="test_author")


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(
        username="helpful_user",
        password="hunter2",
        app=OAuthApp(kind="script", client_id="client-id", client_secret="client-secret"),
    )


@pytest.fixture
def session(http: MagicMock, user_agent: UserAgent, clock: FakeClock) -> Session:
    """Anonymous session backed by the mock client and fake clock."""
    return Session(http, user_agent, clock=clock)


@pytest.fixture
def authorized_session(session: Session, http: MagicMock, mock_response, credentials):
    """Session already logged in with a one-hour token."""
    http.post.return_value = mock_response(token())
    session.authorize(credentials)
    http.post.reset_mock()
    return session


@pytest.fixture
def executor(http: MagicMock, session: Session, user_agent: UserAgent) -> RequestExecutor:
    return RequestExecutor(http, session, user_agent)


@pytest.fixture
def sent(http: MagicMock):
    """Return the requests passed to http.send so far, in order."""
    def _sent() -> list[httpx.Request]:
        return [call.args[0] for call in http.send.call_args_list]
    return _sent
