"""Request dispatch and response classification.

Public data lives under ``www.reddit.com`` as ``.json`` endpoints;
endpoints that act as a user live under ``oauth.reddit.com`` and need a
bearer token from the Session. Every request carries the application's
User-Agent, which Reddit uses to tell clients apart (and throttles when
it is missing or generic).

Nothing here retries. Any httpx failure becomes ``Transient``; an HTTP
failure becomes the error class matching its status.
"""

import logging
from typing import Any, Optional

import httpx

from redditkit.errors import (
    BadRequest,
    BadResponse,
    Forbidden,
    NotFound,
    RedditError,
    Transient,
)
from redditkit.models.schemas import UserAgent
from redditkit.services.session import Session

logger = logging.getLogger(__name__)

_WWW_URL = "https://www.reddit.com"
_OAUTH_URL = "https://oauth.reddit.com"

_STATUS_ERRORS: dict[int, type[RedditError]] = {
    400: BadRequest,
    401: Forbidden,
    403: Forbidden,
    404: NotFound,
}


def classify(response: httpx.Response) -> Any:
    """Return the decoded JSON body of a successful response.

    Raises:
        BadRequest: On HTTP 400.
        Forbidden: On HTTP 401 or 403.
        NotFound: On HTTP 404.
        BadResponse: On any other status, or a 2xx body that is not JSON.
    """
    status = response.status_code
    if 200 <= status < 300:
        try:
            return response.json()
        except ValueError as e:
            raise BadResponse(
                "Reddit returned a body that is not JSON", status_code=status
            ) from e

    error_class = _STATUS_ERRORS.get(status, BadResponse)
    raise error_class(f"Reddit returned HTTP {status}", status_code=status)


class RequestExecutor:
    """Builds, signs and sends single requests for one connection."""

    def __init__(
        self,
        http: httpx.Client,
        session: Session,
        user_agent: UserAgent,
        www_url: str = _WWW_URL,
        oauth_url: str = _OAUTH_URL,
    ) -> None:
        self._http = http
        self._session = session
        self._user_agent = user_agent
        self._www_url = www_url.rstrip("/")
        self._oauth_url = oauth_url.rstrip("/")

    def build(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        data: Optional[dict] = None,
        authenticated: bool = False,
    ) -> httpx.Request:
        """Build a request for a Reddit API path.

        Args:
            method: HTTP method.
            path: API path without host, e.g. ``r/python/new``.
            params: Query parameters.
            data: Form body for POST requests.
            authenticated: Target the OAuth host instead of the public one.

        Returns:
            An unsent ``httpx.Request``.
        """
        path = path.strip("/")
        if authenticated:
            url = f"{self._oauth_url}/{path}"
        else:
            if not path.endswith(".json"):
                path += ".json"
            url = f"{self._www_url}/{path}"

        query = dict(params or {})
        query.setdefault("raw_json", 1)  # no HTML entity escaping in bodies
        return httpx.Request(method, url, params=query, data=data)

    def run(self, request: httpx.Request) -> Any:
        """Send a request that needs no identity and classify the response."""
        request.headers["User-Agent"] = self._user_agent.header
        logger.debug(f"{request.method} {request.url}")

        try:
            response = self._http.send(request)
        except httpx.HTTPError as e:
            logger.warning(f"Transport failure for {request.method} {request.url.path}: {e}")
            raise Transient(f"Could not reach Reddit: {e}") from e

        try:
            return classify(response)
        except RedditError as e:
            logger.warning(
                f"{request.method} {request.url.path} failed: "
                f"{type(e).__name__} (HTTP {response.status_code})"
            )
            raise

    def run_authenticated(self, request: httpx.Request) -> Any:
        """Send a request as the session's user.

        The session is asked for a token first; if it cannot produce one,
        its error is raised and nothing is sent.
        """
        token = self._session.token_for_request()
        request.headers["Authorization"] = f"bearer {token}"
        return self.run(request)

    def get(
        self,
        path: str,
        params: Optional[dict] = None,
        authenticated: bool = False,
    ) -> Any:
        """GET a path and return its decoded JSON body."""
        request = self.build("GET", path, params=params, authenticated=authenticated)
        if authenticated:
            return self.run_authenticated(request)
        return self.run(request)

    def post(self, path: str, data: Optional[dict] = None) -> Any:
        """POST a form to an OAuth path as the session's user."""
        request = self.build("POST", path, data=data, authenticated=True)
        return self.run_authenticated(request)
