"""Markdown to HTML rendering with heading anchors and table-of-contents extraction"""

import re
from html import escape
from typing import Optional

from markdown_it import MarkdownIt
from markdown_it.rules_core import StateCore
from markdown_it.token import Token

from mdsite.core.models import Document, Heading, RenderedPage
from mdsite.core.parser import DEFAULT_PRESET, Highlighter, make_parser
from mdsite.core.shortcodes import expand_callouts
from mdsite.core.tags import filter_tags
from mdsite.core.utils.slug import slugify, unique_slug


ANCHOR_LEVELS = frozenset({1, 2, 3, 4})
TOC_LEVELS = frozenset({1, 2, 3})
TOC_MARKER = re.compile(r'^\s*\[\[toc\]\]\s*$', re.IGNORECASE)
PERMALINK_SYMBOL = '#'


def _heading_level(token: Token) -> int | None:
    """Return the heading level (1-6) for a heading_open token, else None."""
    if token.type == 'heading_open' and token.tag[:1] == 'h' and token.tag[1:].isdigit():
        return int(token.tag[1:])
    return None


def _inline_text(token: Token) -> str:
    """Visible text of an inline token: plain text and code spans only."""
    children = token.children or []
    return ''.join(c.content for c in children if c.type in ('text', 'code_inline'))


def _permalink_tokens(slug: str) -> list[Token]:
    link_open = Token('link_open', 'a', 1, attrs={
        'class': 'header-anchor',
        'href': f"#{slug}",
        'aria-hidden': 'true',
    })
    return [
        link_open,
        Token('text', '', 0, content=PERMALINK_SYMBOL),
        Token('link_close', 'a', -1),
        Token('text', '', 0, content=' '),
    ]


def _heading_anchors(state: StateCore) -> None:
    """Assign unique slugs to every heading; anchor levels 1-4 with a leading permalink."""
    seen: set[str] = set()
    headings: list[Heading] = []
    tokens = state.tokens

    for i, tok in enumerate(tokens):
        level = _heading_level(tok)
        if level is None or i + 1 >= len(tokens):
            continue
        inline = tokens[i + 1]
        text = _inline_text(inline)
        slug = unique_slug(slugify(text), seen)
        headings.append(Heading(level=level, text=text, slug=slug))

        if level in ANCHOR_LEVELS:
            tok.attrSet('id', slug)
            tok.attrSet('tabindex', '-1')
            inline.children = _permalink_tokens(slug) + (inline.children or [])

    state.env['headings'] = headings


def toc_html(headings: list[Heading]) -> str:
    """Render headings as a nested <ul> outline, nesting by relative level."""
    entries = [h for h in headings if h.level in TOC_LEVELS]
    if not entries:
        return '<div class="table-of-contents"></div>'

    parts = ['<div class="table-of-contents">']
    stack: list[int] = []
    for h in entries:
        while len(stack) > 1 and h.level < stack[-1]:
            parts.append('</li></ul>')
            stack.pop()
        if not stack or h.level > stack[-1]:
            parts.append('<ul>')
            stack.append(h.level)
        else:
            parts.append('</li>')
        parts.append(f'<li><a href="#{escape(h.slug)}">{escape(h.text)}</a>')
    parts.append('</li></ul>' * len(stack))
    parts.append('</div>')
    return ''.join(parts)


def _toc_marker(state: StateCore) -> None:
    """Replace a paragraph holding only [[toc]] with the rendered outline."""
    tokens = state.tokens
    headings = state.env.get('headings', [])
    i = 0
    while i + 2 < len(tokens):
        if (
            tokens[i].type == 'paragraph_open'
            and tokens[i + 1].type == 'inline'
            and tokens[i + 2].type == 'paragraph_close'
            and TOC_MARKER.match(tokens[i + 1].content)
        ):
            block = Token('html_block', '', 0, content=toc_html(headings) + '\n', block=True)
            tokens[i:i + 3] = [block]
        i += 1


class MarkdownRenderer:
    """Renders document bodies; callout shortcodes are expanded before parsing.

    Raw HTML in the source is passed through unsanitized: content authors are
    trusted, and embedded scripts or styles are their responsibility.
    """

    def __init__(self, preset: str = DEFAULT_PRESET, highlight: Optional[Highlighter] = None):
        self.md: MarkdownIt = make_parser(preset, highlight)
        self.md.core.ruler.push('heading_anchors', _heading_anchors)
        self.md.core.ruler.push('toc_marker', _toc_marker)

    def _prepare(self, source: str) -> str:
        return expand_callouts(source, self.render_inline)

    def render(self, source: str) -> str:
        html, _ = self.render_with_headings(source)
        return html

    def render_with_headings(self, source: str) -> tuple[str, list[Heading]]:
        env: dict = {}
        html = self.md.render(self._prepare(source), env)
        return html, env.get('headings', [])

    def render_inline(self, source: str) -> str:
        return self.md.renderInline(source)

    def extract_headings(self, source: str) -> list[Heading]:
        """All headings in document order, carrying the slugs their anchors use."""
        env: dict = {}
        self.md.parse(self._prepare(source), env)
        return env.get('headings', [])

    def toc(self, source: str) -> list[Heading]:
        return [h for h in self.extract_headings(source) if h.level in TOC_LEVELS]

    def render_page(self, doc: Document, body: Optional[str] = None) -> RenderedPage:
        """Render a document (or a pre-processed body for it) into a RenderedPage."""
        html, headings = self.render_with_headings(doc.body if body is None else body)
        return RenderedPage(
            document=doc,
            html=html,
            toc=[h for h in headings if h.level in TOC_LEVELS],
            tags=filter_tags(doc.tags),
        )
