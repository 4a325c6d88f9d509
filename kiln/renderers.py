"""Content renderers for Kiln.

Each renderer converts one kind of source body into HTML.

Key classes:
- MarkdownRenderer: GitHub-flavored or kramdown-style Markdown via mistune,
  with Pygments highlighting for fenced code.
- HTMLRenderer: Passes HTML bodies through unchanged.
- RendererRegistry: Picks a renderer for a source path.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .config import MarkdownOptions
from .errors import RenderError
from .html_utils import escape_html
from .utils import is_html, is_markdown

if TYPE_CHECKING:
    from .protocols import ContentRenderer

GFM_PLUGINS = ["strikethrough", "footnotes", "table", "url", "task_lists"]
KRAMDOWN_PLUGINS = ["footnotes", "table", "def_list", "abbr"]

_FENCE_OPEN_RE = re.compile(r"^( {0,3})(`{3,}|~{3,})(.*)$")


def _generate_heading_id(text: str) -> str:
    """Build the anchor id for a heading, kramdown style.

    Args:
        text: The heading text, possibly containing inline HTML.

    Returns:
        Lowercase, hyphenated id without punctuation.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


def find_unterminated_fence(text: str) -> int | None:
    """Return the 1-based line of a code fence that is never closed.

    A fence closes on a line holding only the same fence character repeated
    at least as many times as the opener, indented by at most three spaces.

    Args:
        text: Markdown source.

    Returns:
        Line number of the unclosed opener, or None if every fence closes.
    """
    open_char = ""
    open_len = 0
    open_line = 0
    for lineno, line in enumerate(text.splitlines(), start=1):
        if open_char:
            stripped = line.strip()
            if (
                len(line) - len(line.lstrip(" ")) <= 3
                and stripped
                and set(stripped) == {open_char}
                and len(stripped) >= open_len
            ):
                open_char = ""
            continue
        match = _FENCE_OPEN_RE.match(line)
        if not match:
            continue
        fence, info = match.group(2), match.group(3)
        if fence[0] == "`" and "`" in info:
            continue
        open_char, open_len, open_line = fence[0], len(fence), lineno
    return open_line if open_char else None


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown renderer adding heading ids and syntax highlighting.

    Attributes:
        highlighter: "rouge", "pygments", or "none".
    """

    def __init__(self, highlighter: str = "rouge"):
        super().__init__(escape=False)
        self.highlighter = highlighter
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a fenced code block, highlighted when the language is known.

        Args:
            code: The code content.
            info: Fence info string; its first word is the language.

        Returns:
            HTML string.
        """
        lang = info.split()[0] if info and info.strip() else ""
        if lang and self.highlighter != "none":
            try:
                lexer = get_lexer_by_name(lang, stripall=False)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(cssclass="highlight")
                highlighted = highlight(code, lexer, formatter)
                if self.highlighter == "rouge":
                    return (
                        f'<div class="language-{escape_html(lang)} highlighter-rouge">'
                        f"{highlighted}</div>\n"
                    )
                return highlighted
        lang_class = f' class="language-{escape_html(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escape_html(code)}</code></pre>\n"


class MarkdownRenderer:
    """Markdown renderer backed by mistune.

    Attributes:
        options: Markdown dialect and highlighter settings.
    """

    def __init__(self, options: MarkdownOptions | None = None):
        self.options = options or MarkdownOptions()

    @property
    def source_type(self) -> str:
        return "markdown"

    def can_render(self, path: Path) -> bool:
        return is_markdown(path)

    def render(self, content: str, path: Path | None = None) -> str:
        """Convert a Markdown body to an HTML fragment.

        Args:
            content: Markdown source.
            path: Source path for error messages.

        Returns:
            Rendered HTML.

        Raises:
            RenderError: If a code fence is never closed.
        """
        line = find_unterminated_fence(content)
        if line is not None:
            raise RenderError(f"Unterminated code fence opened on line {line}", path)
        plugins = GFM_PLUGINS if self.options.input == "GFM" else KRAMDOWN_PLUGINS
        markdown = mistune.create_markdown(
            renderer=_HighlightRenderer(self.options.syntax_highlighter),
            plugins=plugins,
        )
        return markdown(content)


class HTMLRenderer:
    """Passes through HTML content unchanged."""

    @property
    def source_type(self) -> str:
        return "html"

    def can_render(self, path: Path) -> bool:
        return is_html(path)

    def render(self, content: str, path: Path | None = None) -> str:
        return content


class RendererRegistry:
    """Registry for content renderers, checked in registration order."""

    def __init__(self, options: MarkdownOptions | None = None):
        self._renderers: list[ContentRenderer] = []
        self.register(MarkdownRenderer(options))
        self.register(HTMLRenderer())

    def register(self, renderer: ContentRenderer) -> None:
        self._renderers.append(renderer)

    def get_renderer(self, path: Path) -> ContentRenderer | None:
        """Get the first renderer that can handle ``path``, or None."""
        for renderer in self._renderers:
            if renderer.can_render(path):
                return renderer
        return None


def pygments_css(style: str = "default") -> str:
    """Return Pygments CSS rules for the ``.highlight`` class."""
    return HtmlFormatter(style=style).get_style_defs(".highlight")
