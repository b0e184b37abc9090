"""MarkdownIt configuration shared by the page renderer and callouts"""

from html import escape
from typing import Callable, Optional

from markdown_it import MarkdownIt


# highlight(code, lang, attrs) -> html, the same hook markdown-it exposes
Highlighter = Callable[[str, str, str], str]

DEFAULT_PRESET = 'default'


def _literal_fence(self, tokens, idx, options, env) -> str:
    """Emit a fenced block as escaped source text, or hand it to the highlighter."""
    token = tokens[idx]
    lang = token.info.strip().split(maxsplit=1)[0] if token.info else ''
    if options.highlight:
        return options.highlight(token.content, lang, '')
    return escape(f"{token.markup}{token.info}\n{token.content}{token.markup}") + '\n'


def make_parser(preset: str = DEFAULT_PRESET, highlight: Optional[Highlighter] = None) -> MarkdownIt:
    """Build a MarkdownIt instance: raw HTML, hard breaks, linkify, no indented code."""
    md = MarkdownIt(preset, options_update={
        "html": True,
        "breaks": True,
        "linkify": True,
        "highlight": highlight,
    })
    md.enable('linkify', ignoreInvalid=True)
    md.disable('code', ignoreInvalid=True)
    md.add_render_rule('fence', _literal_fence)
    return md


_inline_parser: Optional[MarkdownIt] = None


def render_inline(source: str, md: Optional[MarkdownIt] = None) -> str:
    """Render inline-only Markdown (emphasis, links, code spans); never emits block tags."""
    global _inline_parser
    if md is None:
        if _inline_parser is None:
            _inline_parser = make_parser()
        md = _inline_parser
    return md.renderInline(source)
