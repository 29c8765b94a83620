"""bc4-core - API-access core of the bc4 Basecamp command-line client.

Provides:
- Configuration management with environment overrides
- Structured logging
- Async Basecamp API client with a shared token-bucket rate limiter
- Link-header pagination and parallel activity aggregation
- Markdown <-> Basecamp rich text conversion

Python Version: 3.10+ required
"""

# Logging Configuration - configure before other imports
from .logging_config import StructuredFormatter, configure_logging

# Initialize structured logging on module import
configure_logging()

from .__version__ import USER_AGENT, __version__
from .api import (
    ActivityListOptions,
    BasecampClient,
    CancelToken,
    Paginator,
    RateLimiter,
    list_recordings,
)
from .config import Bc4Config, get_config, reset_config
from .errors import (
    APIError,
    AuthenticationError,
    BasecampError,
    CancellationError,
    DecodeError,
    NotFoundError,
    RateLimitedError,
    RequestError,
    ValidationError,
)
from .markdown import Converter, markdown_to_rich_text, rich_text_to_markdown

__all__ = [
    "APIError",
    "ActivityListOptions",
    "AuthenticationError",
    "BasecampClient",
    "BasecampError",
    "Bc4Config",
    "CancelToken",
    "CancellationError",
    "Converter",
    "DecodeError",
    "NotFoundError",
    "Paginator",
    "RateLimitedError",
    "RateLimiter",
    "RequestError",
    "StructuredFormatter",
    "USER_AGENT",
    "ValidationError",
    "__version__",
    "configure_logging",
    "get_config",
    "list_recordings",
    "markdown_to_rich_text",
    "reset_config",
    "rich_text_to_markdown",
]
