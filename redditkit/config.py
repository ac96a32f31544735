"""Client settings loaded from environment / .env file."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from redditkit.models.schemas import Credentials, OAuthApp, UserAgent


class Settings(BaseSettings):
    """redditkit settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OAuth application and account
    REDDIT_CLIENT_ID: Optional[str] = None
    REDDIT_CLIENT_SECRET: Optional[str] = None
    REDDIT_APP_KIND: Literal["script", "installed", "web"] = "script"
    REDDIT_USERNAME: Optional[str] = None
    REDDIT_PASSWORD: Optional[str] = None

    # Client identification (User-Agent)
    REDDIT_APP_NAME: str = "redditkit"
    REDDIT_APP_VERSION: str = "0.1.0"
    REDDIT_APP_AUTHOR: str = "anonymous"

    # Endpoints
    REDDIT_WWW_URL: str = "https://www.reddit.com"
    REDDIT_OAUTH_URL: str = "https://oauth.reddit.com"
    REDDIT_TOKEN_URL: str = "https://www.reddit.com/api/v1/access_token"

    # Listings and streams
    REDDIT_PAGE_LIMIT: int = 100
    REDDIT_STREAM_POLL_INTERVAL: float = 5.0

    def user_agent(self) -> UserAgent:
        """Build the client identification triple."""
        return UserAgent(
            name=self.REDDIT_APP_NAME,
            version=self.REDDIT_APP_VERSION,
            author=self.REDDIT_APP_AUTHOR,
        )

    def credentials(self) -> Optional[Credentials]:
        """Build login credentials, or None when any required piece is missing."""
        if not (self.REDDIT_CLIENT_ID and self.REDDIT_USERNAME and self.REDDIT_PASSWORD):
            return None
        return Credentials(
            username=self.REDDIT_USERNAME,
            password=self.REDDIT_PASSWORD,
            app=OAuthApp(
                kind=self.REDDIT_APP_KIND,
                client_id=self.REDDIT_CLIENT_ID,
                client_secret=self.REDDIT_CLIENT_SECRET,
            ),
        )


@lru_cache
def get_settings() -> Settings:
    """Return cached client settings."""
    return Settings()
