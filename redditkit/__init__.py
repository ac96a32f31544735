"""redditkit: a synchronous client for Reddit's JSON and OAuth2 API."""

from redditkit.client import Reddit
from redditkit.config import Settings, get_settings
from redditkit.errors import (
    AuthenticationRequired,
    BadRequest,
    BadResponse,
    Forbidden,
    NotFound,
    RedditError,
    SessionStateError,
    Transient,
)
from redditkit.models.schemas import Credentials, OAuthApp, Sort, SortTime, Token, UserAgent
from redditkit.models.things import (
    Account,
    Comment,
    Listing,
    LoadedComment,
    Message,
    MoreComments,
    Post,
    Subreddit,
    Thing,
)
from redditkit.services.comment_stream import CommentStream
from redditkit.services.comment_tree import CommentTree
from redditkit.services.paginator import Paginator
from redditkit.services.session import Session, SessionState

__version__ = "0.1.0"
