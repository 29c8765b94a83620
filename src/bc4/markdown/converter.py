"""Markdown to Basecamp rich text (and back).

Basecamp stores formatted text as a restricted HTML dialect: one heading
level, ``<div>`` paragraphs, ``<pre>`` for all code, ``<strike>`` instead of
``<del>``, and ``href`` as the only attribute on links.

Markdown -> rich text is two stages: render with markdown-it-py (CommonMark
plus GFM tables, strikethrough and autolinks, with hard line breaks), then an
ordered string rewrite into the Basecamp dialect. Rewrite order matters:
code tags are rewritten before list boundaries are normalized. The result is
checked against the tag allow-list before it is returned.

Rich text -> Markdown is best effort and lossy; it is meant for display,
never for re-submission.

Reference: https://github.com/basecamp/bc3-api/blob/master/rich_text.md
"""

import logging
import re

from markdown_it import MarkdownIt

from .. import metrics
from ..errors import ValidationError

logger = logging.getLogger("bc4.markdown")

__all__ = [
    "MARKDOWN_TRIGGERS",
    "SUPPORTED_TAGS",
    "Converter",
    "markdown_to_rich_text",
    "rich_text_to_markdown",
    "validate_rich_text",
]

# Tags Basecamp accepts in rich text (standard set + chatbot extras + attachments)
SUPPORTED_TAGS = frozenset(
    {
        "div",
        "h1",
        "br",
        "strong",
        "em",
        "strike",
        "a",
        "pre",
        "ol",
        "ul",
        "li",
        "blockquote",
        # Chatbot additional tags
        "table",
        "tr",
        "td",
        "th",
        "thead",
        "tbody",
        "details",
        "summary",
        "figure",
        "figcaption",
        "img",
        # Basecamp-specific
        "bc-attachment",
    }
)

ALLOWED_LINK_ATTRIBUTES = frozenset({"href"})

# Substrings that mean a single line needs the full Markdown pass. Anything
# else on one line is sent as-is, so simple titles are not wrapped in <div>.
MARKDOWN_TRIGGERS = (
    "**",
    "*",
    "~~",
    "`",
    "[",
    "]",
    "(",
    ")",
    "#",
    ">",
    "+",
    "<",
    "&",
    "@",
    "http://",
    "https://",
    "mailto:",
)

# Leading list markers: "- item", "+ item", "1. item"
_LIST_MARKER_RE = re.compile(r"^[-+]\s")
_NUMBERED_MARKER_RE = re.compile(r"^\d+\.")

RAW_HTML_OMITTED = "<!-- raw HTML omitted -->"

_TAG_RE = re.compile(r"<(/?)([a-zA-Z][a-zA-Z0-9-]*)[^>]*>")
_LINK_TAG_RE = re.compile(r"<a\b([^>]*)>", re.IGNORECASE)
_ATTRIBUTE_RE = re.compile(r"""([^\s=/>]+)(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+))?""")
_HREF_RE = re.compile(r"""\bhref\s*=\s*("[^"]*"|'[^']*')""", re.IGNORECASE)
_SUBHEADING_OPEN_RE = re.compile(r"<h[2-6][^>]*>")
_SUBHEADING_CLOSE_RE = re.compile(r"</h[2-6]>")
_HEADING_ATTRS_RE = re.compile(r"<h1\s[^>]*>")
_PRE_CODE_RE = re.compile(r"<pre><code[^>]*>")
_STRIPPED_ATTRS_RE = re.compile(r' (?:style|class|id)="[^"]*"')
_COMMENT_RE = re.compile(r"<!-- [^>]* -->")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")


def _omit_raw_html(self, tokens, idx, options, env):
    return RAW_HTML_OMITTED


def _omit_raw_html_block(self, tokens, idx, options, env):
    return RAW_HTML_OMITTED + "\n"


def _build_renderer() -> MarkdownIt:
    md = MarkdownIt("commonmark", {"breaks": True, "html": True, "linkify": True})
    md.enable(["table", "strikethrough", "linkify"])
    md.add_render_rule("html_inline", _omit_raw_html)
    md.add_render_rule("html_block", _omit_raw_html_block)
    return md


class Converter:
    """Markdown <-> Basecamp rich text converter.

    Instances are reusable and hold no per-call state.

    Example:
        >>> Converter().to_rich_text("This is **bold** text")
        '<div>This is <strong>bold</strong> text</div>'
    """

    def __init__(self) -> None:
        self._md = _build_renderer()

    # --- Markdown -> rich text ---

    def to_rich_text(self, markdown: str) -> str:
        """Convert Markdown to Basecamp rich text.

        Returns:
            Rich text HTML, the input unchanged for simple one-line plain
            text, or "" for blank input

        Raises:
            ValidationError: If the generated HTML contains unsupported markup
        """
        text = markdown.strip()
        if not text:
            return ""

        if self.is_simple_plain_text(text):
            return text

        html = self._rewrite(self._md.render(text)).strip()
        if html in ("", "<div></div>"):
            return ""

        problem = _find_unsupported(html)
        if problem is not None:
            metrics.rich_text_validation_failures_total.labels(source="converter").inc()
            logger.error(
                "rich_text_validation_failed",
                extra={"problem": problem, "markdown_length": len(markdown)},
            )
            raise ValidationError(f"generated HTML contains unsupported tags: {problem}")
        return html

    @staticmethod
    def is_simple_plain_text(text: str) -> bool:
        """True for one line without Markdown triggers or list markers."""
        if not text.strip() or "\n" in text:
            return False
        if any(trigger in text for trigger in MARKDOWN_TRIGGERS):
            return False
        stripped = text.strip()
        if _LIST_MARKER_RE.match(stripped) or _NUMBERED_MARKER_RE.match(stripped):
            return False
        return True

    def _rewrite(self, html: str) -> str:
        html = html.replace("<p>", "<div>").replace("</p>", "</div>")

        # One heading level
        html = _SUBHEADING_OPEN_RE.sub("<h1>", html)
        html = _SUBHEADING_CLOSE_RE.sub("</h1>", html)
        html = _HEADING_ATTRS_RE.sub("<h1>", html)

        for tag in ("del", "s"):
            html = html.replace(f"<{tag}>", "<strike>").replace(f"</{tag}>", "</strike>")

        # Inline code first, then unwrap fenced blocks and the doubled tags
        html = html.replace("<code>", "<pre>").replace("</code>", "</pre>")
        html = _PRE_CODE_RE.sub("<pre>", html)
        html = html.replace("</code></pre>", "</pre>")
        html = html.replace("<pre><pre>", "<pre>").replace("</pre></pre>", "</pre>")

        for hr in ("<hr />", "<hr/>", "<hr>"):
            html = html.replace(hr, "<br>\n")
        html = html.replace("<br />", "<br>")

        html = _clean_list_formatting(html)
        html = _strip_unsupported(html)

        html = html.replace("&#39;", "'")
        html = _COMMENT_RE.sub("", html)

        html = html.replace("<blockquote>\n", "<blockquote>")
        html = html.replace("\n</blockquote>", "</blockquote>")

        html = _EXCESS_NEWLINES_RE.sub("\n\n", html)
        return html.replace("<br>\n", "<br>")

    # --- Rich text -> Markdown ---

    def to_markdown(self, rich_text: str) -> str:
        """Convert Basecamp rich text to Markdown for display (lossy)."""
        if not rich_text or rich_text == "<div></div>":
            return ""

        text = rich_text.replace("<div>", "<p>").replace("</div>", "</p>")

        text = re.sub(r"<h1[^>]*>", "# ", text)
        text = text.replace("</h1>", "\n\n")
        text = text.replace("<p>", "").replace("</p>", "\n\n")

        for tag, marker in (
            ("strong", "**"),
            ("b", "**"),
            ("em", "*"),
            ("i", "*"),
            ("strike", "~~"),
            ("del", "~~"),
        ):
            text = text.replace(f"<{tag}>", marker).replace(f"</{tag}>", marker)

        for br in ("<br>", "<br/>", "<br />"):
            text = text.replace(br, "\n")

        text = _lists_to_markdown(text)

        text = text.replace("<blockquote>", "> ").replace("</blockquote>", "\n\n")

        text = _links_to_markdown(text)
        text = _code_to_markdown(text)
        text = _decode_entities(text)

        text = _EXCESS_NEWLINES_RE.sub("\n\n", text)
        return text.strip()

    # --- Validation ---

    def validate(self, html: str) -> None:
        """Check rich text against the tag and link-attribute allow-lists.

        Raises:
            ValidationError: Naming the first unsupported tag or attribute
        """
        problem = _find_unsupported(html)
        if problem is not None:
            metrics.rich_text_validation_failures_total.labels(source="standalone").inc()
            raise ValidationError(problem)


def _clean_list_formatting(html: str) -> str:
    # Nested lists
    html = html.replace("</li><ul>", "</li>\n<ul>")
    html = html.replace("</li><ol>", "</li>\n<ol>")
    html = html.replace("</ul></li>", "</ul>\n</li>")
    html = html.replace("</ol></li>", "</ol>\n</li>")

    html = html.replace("</ul><", "</ul>\n<")
    html = html.replace("</ol><", "</ol>\n<")
    html = html.replace("</li><li>", "</li>\n<li>")
    return html.rstrip("\n")


def _strip_link_attributes(match: re.Match) -> str:
    href = _HREF_RE.search(match.group(1))
    if href is None:
        return "<a>"
    return f"<a href={href.group(1)}>"


def _strip_unsupported(html: str) -> str:
    html = _STRIPPED_ATTRS_RE.sub("", html)
    html = _LINK_TAG_RE.sub(_strip_link_attributes, html)
    # Drop unsupported elements (span, ...) but keep their text
    return _TAG_RE.sub(
        lambda m: m.group(0) if m.group(2).lower() in SUPPORTED_TAGS else "",
        html,
    )


def _find_unsupported(html: str) -> str | None:
    """Describe the first allow-list violation, or None if the HTML is acceptable."""
    if not html:
        return None

    for match in _TAG_RE.finditer(html):
        tag = match.group(2).lower()
        if tag not in SUPPORTED_TAGS:
            return f"unsupported HTML tag: {tag}"

    for match in _LINK_TAG_RE.finditer(html):
        for attr in _ATTRIBUTE_RE.finditer(match.group(1)):
            name = attr.group(1).lower()
            if name not in ALLOWED_LINK_ATTRIBUTES:
                return f"unsupported attribute '{name}' on <a> tag (only 'href' is allowed)"
    return None


def _number_items(match: re.Match) -> str:
    counter = 0

    def number(_: re.Match) -> str:
        nonlocal counter
        counter += 1
        return f"{counter}. "

    return re.sub(r"<li>\s*", number, match.group(1)) + "\n"


def _lists_to_markdown(text: str) -> str:
    text = re.sub(r"</li>\s+(?=<li>)", "</li>", text)
    text = re.sub(r"<ol[^>]*>(.*?)</ol>", _number_items, text, flags=re.DOTALL)
    text = re.sub(r"<ul[^>]*>", "", text)
    text = text.replace("</ul>", "\n")
    text = re.sub(r"<li>\s*", "- ", text)
    return re.sub(r"\s*</li>", "\n", text)


def _links_to_markdown(text: str) -> str:
    def link(match: re.Match) -> str:
        url, label = match.group(1), match.group(2)
        if label == url:
            return f"<{url}>"
        return f"[{label}]({url})"

    return re.sub(r"""<a\s[^>]*?href="([^"]*)"[^>]*>(.*?)</a>""", link, text, flags=re.DOTALL)


def _code_to_markdown(text: str) -> str:
    # <pre> next to other text on the same line was inline code
    if re.search(r"[^>\s]\s*<pre>", text) or re.search(r"</pre>\s*[^<\s]", text):
        return text.replace("<pre>", "`").replace("</pre>", "`")
    text = re.sub(r"<pre>\s*", "```\n", text)
    return re.sub(r"\s*</pre>", "\n```", text)


def _decode_entities(text: str) -> str:
    for entity, char in (
        ("&lt;", "<"),
        ("&gt;", ">"),
        ("&quot;", '"'),
        ("&#39;", "'"),
        ("&nbsp;", " "),
        ("&amp;", "&"),
    ):
        text = text.replace(entity, char)
    return text


_default_converter: Converter | None = None


def _converter() -> Converter:
    global _default_converter
    if _default_converter is None:
        _default_converter = Converter()
    return _default_converter


def markdown_to_rich_text(markdown: str) -> str:
    """Convert Markdown with the shared converter (see Converter.to_rich_text)."""
    return _converter().to_rich_text(markdown)


def rich_text_to_markdown(rich_text: str) -> str:
    return _converter().to_markdown(rich_text)


def validate_rich_text(html: str) -> None:
    _converter().validate(html)
