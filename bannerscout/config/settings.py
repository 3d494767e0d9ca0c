"""Configuration management using Pydantic settings."""
import logging
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

ENV_FILE_PATH = Path(__file__).parent.parent.parent / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Providers
    # "imdb" (scraped site) or "tmdb" (structured API)
    default_provider: str = Field(default="imdb", description="Provider used when a request names none")
    imdb_base_url: str = Field(default="https://www.imdb.com", description="Base URL of the scraped movie database site")

    # TMDB (The Movie Database) - Optional, the app starts without it and fails on first TMDB call
    tmdb_api_key: str = Field(default="", description="TMDB API Key (v3) for movie/TV show images")
    tmdb_image_base_url: str = Field(default="https://image.tmdb.org/t/p/original")
    tmdb_poster_base_url: str = Field(default="https://image.tmdb.org/t/p/w300")
    provider_timeout_seconds: float = Field(default=15.0, description="Timeout for search/discovery calls")

    # Result cache
    cache_ttl_seconds: int = Field(default=3600, description="Lifetime of a cache entry (1 hour)")
    cache_check_period_seconds: int = Field(default=120, description="Interval of the expiry sweep (2 minutes)")

    # Image verification
    probe_timeout_seconds: float = Field(default=5.0, description="Timeout for the HEAD metadata probe")
    fetch_timeout_seconds: float = Field(default=10.0, description="Timeout for the full image download")
    min_image_bytes: int = Field(default=50_000, description="Smaller files are not real banners")
    max_image_bytes: int = Field(default=10_000_000, description="Larger files are implausible")
    fast_reject_enabled: bool = Field(default=True, description="Pre-filter candidates by URL size hints")

    # Resolver
    max_search_results: int = Field(default=10, description="Maximum number of search matches returned")
    batch_pause_seconds: float = Field(default=0.2, description="Politeness delay between verification batches")

    # Authentication - single account, password stored as a werkzeug hash
    auth_username: str = Field(default="admin")
    auth_password_hash: str = Field(default="", description="werkzeug.security.generate_password_hash output")
    login_max_attempts: int = Field(default=5)
    login_window_seconds: int = Field(default=15 * 60)

    # Web App Configuration
    flask_secret_key: str = Field(default="bannerscout-secret-key-change-in-production")
    session_cookie_secure: bool = Field(default=False, description="Only send the session cookie over HTTPS")
    session_lifetime_hours: int = Field(default=24)
    web_server_host: str = Field(default="0.0.0.0", description="Host for Flask web server")
    web_server_port: int = Field(default=3000, description="Port for Flask web server")

    def get_default_provider(self) -> str:
        """Return the configured default provider, falling back to imdb."""
        provider = (self.default_provider or "").strip().lower()
        if provider not in ("imdb", "tmdb"):
            logger.warning(f"Unknown DEFAULT_PROVIDER '{self.default_provider}', using imdb")
            return "imdb"
        return provider

    model_config = SettingsConfigDict(
        env_file=ENV_FILE_PATH,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance with error handling
try:
    if ENV_FILE_PATH.exists():
        logger.info(f"Loading .env file from: {ENV_FILE_PATH}")
    else:
        logger.debug(f".env file not found at {ENV_FILE_PATH}, using environment and defaults")

    settings = Settings()

    if not settings.tmdb_api_key:
        logger.warning("TMDB_API_KEY not set - TMDB endpoints will fail until it is configured")

except Exception as e:
    logger.error(f"Failed to load settings: {e}")
    logger.error(f"Check the .env file at: {ENV_FILE_PATH}")
    raise
