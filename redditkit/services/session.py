"""OAuth2 session state for one connection.

A Session starts anonymous. ``authorize()`` exchanges a username and
password for a bearer token (the password grant used by script apps).
``token_for_request()`` hands that token to the request executor and,
once it has expired, repeats the same grant exchange exactly once with
the credentials originally supplied.

State machine::

    ANONYMOUS -> AUTHENTICATING -> AUTHENTICATED -> EXPIRED -> REAUTHENTICATING
                       |                ^                            |
                       v                +----------------------------+
                    FAILED <-----------------------------------------+

A FAILED session keeps reporting Forbidden without touching the network
until ``authorize()`` is called again.
"""

import logging
import time
from enum import Enum
from typing import Callable, Optional

import httpx

from redditkit.errors import (
    AuthenticationRequired,
    BadResponse,
    Forbidden,
    SessionStateError,
    Transient,
)
from redditkit.models.schemas import Credentials, Token, UserAgent

logger = logging.getLogger(__name__)

_TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
_DEFAULT_TOKEN_LIFETIME = 3600.0  # seconds, used when the server omits expires_in


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"
    REAUTHENTICATING = "reauthenticating"
    FAILED = "failed"


class Session:
    """Credential and bearer-token state for a single connection.

    Not thread-safe. One Session belongs to one ``Reddit`` instance.
    """

    def __init__(
        self,
        http: httpx.Client,
        user_agent: UserAgent,
        token_url: str = _TOKEN_URL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize an anonymous session.

        Args:
            http: HTTP client used for the token exchange.
            user_agent: Identification sent with the token request.
            token_url: OAuth2 token endpoint.
            clock: Returns the current time as a Unix timestamp.
        """
        self._http = http
        self._user_agent = user_agent
        self._token_url = token_url
        self._clock = clock
        self._credentials: Optional[Credentials] = None
        self._token: Optional[Token] = None
        self._state = SessionState.ANONYMOUS

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def token(self) -> Optional[Token]:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._state == SessionState.AUTHENTICATED

    def authorize(self, credentials: Credentials) -> Token:
        """Log in with the password grant.

        Args:
            credentials: Account and OAuth application to log in with.

        Returns:
            The newly issued token.

        Raises:
            SessionStateError: If the session is not anonymous or failed.
            Forbidden: If Reddit rejects the credentials. The session moves
                to FAILED; nothing is retried.
            Transient: If the token endpoint is unreachable. The session
                stays in its previous state.
        """
        if self._state not in (SessionState.ANONYMOUS, SessionState.FAILED):
            raise SessionStateError(
                f"Cannot authorize a session that is {self._state.value}"
            )

        previous = self._state
        self._state = SessionState.AUTHENTICATING
        try:
            token = self._grant(credentials)
        except Forbidden:
            self._token = None
            self._state = SessionState.FAILED
            logger.error(f"Credentials for '{credentials.username}' were rejected")
            raise
        except BaseException:
            self._state = previous
            raise

        self._credentials = credentials
        self._token = token
        self._state = SessionState.AUTHENTICATED
        logger.info(f"Authorized as '{credentials.username}' (scope: {token.scope or 'n/a'})")
        return token

    def token_for_request(self) -> str:
        """Return a live bearer token, re-authenticating once if it expired.

        Raises:
            AuthenticationRequired: If the session was never authorized.
            Forbidden: If the session failed, or re-authentication was
                rejected.
            Transient: If re-authentication could not reach Reddit. The
                session stays EXPIRED so a later call tries again.
        """
        if self._state == SessionState.ANONYMOUS:
            raise AuthenticationRequired()
        if self._state == SessionState.FAILED:
            raise Forbidden("Session credentials were rejected; authorize again")
        if self._state in (SessionState.AUTHENTICATING, SessionState.REAUTHENTICATING):
            raise SessionStateError(f"Session is {self._state.value}")

        if self._state == SessionState.AUTHENTICATED and not self._token.is_expired(self._clock()):
            return self._token.access_token

        self._state = SessionState.EXPIRED
        return self._reauthenticate()

    def _reauthenticate(self) -> str:
        logger.info("Access token expired, re-authenticating")
        self._state = SessionState.REAUTHENTICATING
        try:
            token = self._grant(self._credentials)
        except Forbidden:
            self._token = None
            self._state = SessionState.FAILED
            logger.error(
                f"Re-authentication for '{self._credentials.username}' was rejected"
            )
            raise
        except BaseException:
            self._state = SessionState.EXPIRED
            raise

        self._token = token
        self._state = SessionState.AUTHENTICATED
        return token.access_token

    def _grant(self, credentials: Credentials) -> Token:
        """Perform one password-grant exchange against the token endpoint."""
        issued_at = self._clock()
        app = credentials.app
        try:
            response = self._http.post(
                self._token_url,
                data={
                    "grant_type": "password",
                    "username": credentials.username,
                    "password": credentials.password,
                },
                auth=(app.client_id, app.client_secret or ""),
                headers={"User-Agent": self._user_agent.header},
            )
        except httpx.HTTPError as e:
            logger.warning(f"Token endpoint unreachable: {e}")
            raise Transient(f"Could not reach the token endpoint: {e}") from e

        status = response.status_code
        if status in (400, 401, 403):
            raise Forbidden(f"Token request rejected (HTTP {status})", status_code=status)
        if not 200 <= status < 300:
            raise BadResponse(f"Token endpoint returned HTTP {status}", status_code=status)

        try:
            payload = response.json()
        except ValueError as e:
            raise BadResponse("Token endpoint returned a body that is not JSON") from e
        if not isinstance(payload, dict):
            raise BadResponse("Token endpoint returned an unexpected payload")

        # Reddit answers a wrong password with HTTP 200 and an error field.
        if "error" in payload:
            raise Forbidden(f"Token request rejected: {payload['error']}", status_code=status)
        access_token = payload.get("access_token")
        if not access_token:
            raise Forbidden("Token endpoint returned no access token", status_code=status)

        try:
            lifetime = float(payload.get("expires_in", _DEFAULT_TOKEN_LIFETIME))
        except (TypeError, ValueError) as e:
            raise BadResponse("Token endpoint returned an invalid expires_in") from e

        return Token(
            access_token=access_token,
            expires_at=issued_at + lifetime,
            scope=payload.get("scope", "") or "",
        )
