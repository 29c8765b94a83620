"""Markdown <-> Basecamp rich text conversion."""

from .converter import (
    MARKDOWN_TRIGGERS,
    SUPPORTED_TAGS,
    Converter,
    markdown_to_rich_text,
    rich_text_to_markdown,
    validate_rich_text,
)

__all__ = [
    "Converter",
    "MARKDOWN_TRIGGERS",
    "SUPPORTED_TAGS",
    "markdown_to_rich_text",
    "rich_text_to_markdown",
    "validate_rich_text",
]
