"""Version information for bc4-core.

Single source of truth for version number and the User-Agent sent to Basecamp.
Follows PEP 440 and semantic versioning principles.
"""

__version__ = "0.9.0"
__version_info__ = tuple(int(part) for part in __version__.split("."))

# Basecamp requires an identifying User-Agent on every API request
USER_AGENT = f"bc4/{__version__} (bc4-core)"
