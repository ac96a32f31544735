"""Reddit connection facade.

A ``Reddit`` instance owns one HTTP client, one Session and one
RequestExecutor. Several instances can coexist, each logged in (or not)
on its own. Every method blocks until Reddit answers.
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from redditkit.config import Settings, get_settings
from redditkit.errors import BadRequest, BadResponse, NotFound, check_api_errors
from redditkit.models.schemas import Credentials, OAuthApp, Sort, SortTime, Token, UserAgent
from redditkit.models.things import Account, Comment, MoreComments, Post, Thing, parse_listing
from redditkit.services.comment_stream import CommentStream
from redditkit.services.comment_tree import CommentTree, get_comment_tree, load_more
from redditkit.services.executor import RequestExecutor
from redditkit.services.paginator import Paginator
from redditkit.services.session import Session

logger = logging.getLogger(__name__)


class Reddit:
    """A connection to Reddit as one application and, optionally, one user."""

    def __init__(
        self,
        name: str,
        version: str,
        author: str,
        *,
        settings: Optional[Settings] = None,
        http: Optional[httpx.Client] = None,
    ) -> None:
        """Create an anonymous connection.

        Args:
            name: Unique application name.
            version: Application version.
            author: Reddit username of the application's author.
            settings: Endpoints and defaults; read from the environment
                when omitted.
            http: HTTP client to use. One is created (and later closed)
                when omitted.
        """
        self._settings = settings or get_settings()
        self.user_agent = UserAgent(name=name, version=version, author=author)
        self._owns_http = http is None
        self._http = http or httpx.Client(follow_redirects=True)
        self.session = Session(
            self._http,
            self.user_agent,
            token_url=self._settings.REDDIT_TOKEN_URL,
        )
        self.executor = RequestExecutor(
            self._http,
            self.session,
            self.user_agent,
            www_url=self._settings.REDDIT_WWW_URL,
            oauth_url=self._settings.REDDIT_OAUTH_URL,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Reddit":
        """Build a connection from settings, logging in if credentials are set."""
        settings = settings or get_settings()
        user_agent = settings.user_agent()
        reddit = cls(
            user_agent.name,
            user_agent.version,
            user_agent.author,
            settings=settings,
        )
        credentials = settings.credentials()
        if credentials is not None:
            reddit.session.authorize(credentials)
        else:
            logger.info("Reddit credentials not configured. Running anonymously.")
        return reddit

    def __enter__(self) -> "Reddit":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client if this connection created it."""
        if self._owns_http:
            self._http.close()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def authorize(self, username: str, password: str, app: OAuthApp) -> Token:
        """Log in as a user for the endpoints that require one.

        Raises:
            Forbidden: If Reddit rejects the credentials.
        """
        credentials = Credentials(username=username, password=password, app=app)
        return self.session.authorize(credentials)

    # ------------------------------------------------------------------
    # Listings and comments
    # ------------------------------------------------------------------

    def get_posts(
        self,
        subreddit: str,
        sort: Sort = Sort.HOT,
        time: Optional[SortTime] = None,
    ) -> Paginator[Post]:
        """Page through a subreddit's posts.

        Args:
            subreddit: Subreddit name.
            sort: Sort order.
            time: Time window, used by top and controversial only.
        """
        return Paginator(
            self.executor,
            f"r/{subreddit}/{sort.value}",
            sort.params(time),
            limit=self._settings.REDDIT_PAGE_LIMIT,
            parse_child=Post.from_value,
        )

    def get_comment_tree(self, post_id: str, sort: Optional[Sort] = None) -> CommentTree:
        """Load a post's comment tree. Stubs stay unresolved until asked."""
        return get_comment_tree(self.executor, post_id, sort)

    def more_children(self, link_id: str, children: list[str]) -> list[Comment]:
        """Fetch hidden comments of a post by ID.

        Args:
            link_id: Fullname of the post (``t3_...``).
            children: Comment IDs, in the order they should come back.
        """
        if not link_id.startswith("t3_"):
            link_id = f"t3_{link_id}"
        stub = MoreComments(
            parent_id=link_id,
            count=len(children),
            children=list(children),
            link_id=link_id,
        )
        return load_more(self.executor, stub)

    def get_comments(
        self,
        subreddit: str,
        after_id: Optional[str] = None,
        max_backfill_pages: Optional[int] = None,
    ) -> CommentStream:
        """Stream new comments from a subreddit, oldest first.

        Args:
            subreddit: Subreddit name, or ``all`` for every subreddit.
            after_id: Only comments newer than this ID are emitted.
            max_backfill_pages: Limit on history pages read before tailing.
        """
        return CommentStream(
            self.executor,
            subreddit,
            after_id=after_id,
            poll_interval=self._settings.REDDIT_STREAM_POLL_INTERVAL,
            page_limit=self._settings.REDDIT_PAGE_LIMIT,
            max_backfill_pages=max_backfill_pages,
        )

    # ------------------------------------------------------------------
    # Things and accounts
    # ------------------------------------------------------------------

    def load_thing(self, fullname: str) -> Thing:
        """Load any thing by fullname.

        Raises:
            NotFound: If Reddit knows no thing with that fullname.
        """
        value = self.executor.get("api/info", {"id": fullname})
        listing = parse_listing(value)
        if not listing.children:
            raise NotFound(f"No thing named {fullname}")
        return listing.children[0]

    def get_user(self, name: str) -> Account:
        """Get a user's public profile."""
        value = self.executor.get(f"user/{name}/about")
        return Account.from_value(value)

    def get_self(self) -> Account:
        """Get the logged-in user's account. Requires authorization."""
        value = self.executor.get("api/v1/me", authenticated=True)
        # /api/v1/me returns the account data without the thing wrapper
        try:
            return Account.model_validate(value)
        except ValidationError as e:
            raise BadResponse(f"Malformed account data: {e}") from e

    # ------------------------------------------------------------------
    # Actions (require authorization)
    # ------------------------------------------------------------------

    def submit_self(
        self, subreddit: str, title: str, text: str, sendreplies: bool = True
    ) -> Any:
        """Submit a self post and return Reddit's raw response."""
        value = self.executor.post(
            "api/submit",
            {
                "api_type": "json",
                "sr": subreddit,
                "kind": "self",
                "title": title,
                "text": text,
                "sendreplies": "true" if sendreplies else "false",
            },
        )
        return check_api_errors(value)

    def comment(self, text: str, thing: str) -> Any:
        """Reply to a post or comment by fullname and return the raw response."""
        value = self.executor.post(
            "api/comment",
            {"api_type": "json", "text": text, "thing_id": thing},
        )
        return check_api_errors(value)

    def set_sticky(self, sticky: bool, slot: Optional[int], fullname: str) -> None:
        """Sticky or unsticky a post.

        Args:
            sticky: True to sticky the post, False to unsticky it.
            slot: Optional announcement slot, 1 or 2.
            fullname: Fullname of the post.

        Raises:
            BadRequest: If ``slot`` is not 1 or 2. Nothing is sent.
        """
        data = {
            "api_type": "json",
            "state": "true" if sticky else "false",
            "id": fullname,
        }
        if slot is not None:
            if slot not in (1, 2):
                raise BadRequest(f"Sticky slot must be 1 or 2, got {slot}")
            data["num"] = str(slot)
        check_api_errors(self.executor.post("api/set_subreddit_sticky", data))

    def message(self, to: str, subject: str, body: str) -> None:
        """Send a private message."""
        value = self.executor.post(
            "api/compose",
            {"api_type": "json", "to": to, "subject": subject, "text": body},
        )
        check_api_errors(value)
