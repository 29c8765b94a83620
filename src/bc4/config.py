"""Configuration management with pydantic-settings for bc4-core.

- pydantic-settings v2 for type-safe configuration
- Automatic .env file loading with proper precedence
- BC4_ environment variable prefix
- SecretStr for the access token
- Frozen config (thread-safe, immutable after load)

The CLI layer resolves the OAuth access token and account ID (token storage
and refresh live there) and hands them to this core through the environment
or by constructing ``Bc4Config`` directly.
"""

import logging
from functools import lru_cache
from urllib.parse import urlsplit

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("bc4.config")

__all__ = [
    "DEFAULT_BASE_URL",
    "Bc4Config",
    "get_config",
    "reset_config",
]

DEFAULT_BASE_URL = "https://3.basecampapi.com"


class Bc4Config(BaseSettings):
    """Configuration for the Basecamp API-access core.

    Loads from (in order of precedence):
    1. Environment variables (highest priority)
    2. .env file in the working directory
    3. Default values (lowest priority)

    Attributes:
        access_token: OAuth bearer token (resolved by the CLI layer)
        account_id: Basecamp account ID, prefixed to every request path
        base_url: Basecamp API root (default: https://3.basecampapi.com)
        api_domain: Host suffix treated as "ours" when converting Link URLs
        rate_limit_max_tokens: Token bucket capacity (Basecamp: 50 requests)
        rate_limit_window_seconds: Window the capacity refills over (10s)
        page_delay_ms: Courtesy delay between page fetches
        connect_timeout: httpx connect timeout (seconds)
        read_timeout: httpx read timeout (seconds)
        write_timeout: httpx write timeout (seconds)
        pool_timeout: httpx pool acquisition timeout (seconds)

    Logging is configured separately from BC4_LOG_LEVEL and BC4_LOG_FORMAT
    when the package is imported (see bc4.logging_config).
    """

    model_config = SettingsConfigDict(
        env_prefix="BC4_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        validate_default=True,
        frozen=True,
        extra="ignore",
    )

    access_token: SecretStr = Field(
        default=SecretStr(""),
        description="OAuth bearer token for the Basecamp API",
    )

    account_id: str = Field(
        default="",
        description="Basecamp account ID (numeric)",
    )

    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Basecamp API root URL",
    )

    api_domain: str = Field(
        default="basecampapi.com",
        description="Host (or parent domain) of the API, used for Link URL conversion",
    )

    rate_limit_max_tokens: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Requests allowed per rate limit window",
    )

    rate_limit_window_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=3600.0,
        description="Rate limit window in seconds",
    )

    page_delay_ms: int = Field(
        default=100,
        ge=0,
        le=10000,
        description="Delay between paginated requests in milliseconds",
    )

    connect_timeout: float = Field(default=5.0, gt=0.0, le=120.0)
    read_timeout: float = Field(default=30.0, gt=0.0, le=600.0)
    write_timeout: float = Field(default=10.0, gt=0.0, le=600.0)
    pool_timeout: float = Field(default=5.0, gt=0.0, le=120.0)

    @field_validator("base_url", mode="after")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an absolute http(s) URL and drop any trailing slash."""
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"BC4_BASE_URL must be an absolute http(s) URL, got '{v}'")
        return v.rstrip("/")

    @field_validator("account_id", mode="after")
    @classmethod
    def validate_account_id(cls, v: str) -> str:
        """Account IDs are numeric path segments."""
        v = v.strip()
        if v and not v.isdigit():
            raise ValueError(f"BC4_ACCOUNT_ID must be numeric, got '{v}'")
        return v

    @model_validator(mode="after")
    def warn_missing_credentials(self) -> "Bc4Config":
        """Credentials are optional at load time; the client checks them on use."""
        if not self.access_token.get_secret_value() or not self.account_id:
            logger.debug(
                "config_missing_credentials",
                extra={
                    "has_token": bool(self.access_token.get_secret_value()),
                    "has_account": bool(self.account_id),
                },
            )
        return self


@lru_cache(maxsize=1)
def get_config() -> Bc4Config:
    """Get the process-wide configuration.

    First call loads from environment + .env file, subsequent calls return
    the cached instance.

    Raises:
        pydantic.ValidationError: If configuration values are invalid.
    """
    return Bc4Config()


def reset_config() -> None:
    """Reset the cached configuration (test helper)."""
    get_config.cache_clear()
