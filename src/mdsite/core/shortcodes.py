"""Template-style shortcodes embedded in Markdown bodies

    {% callout "warn", "md" %} ... {% endcallout %}
    {% image "photos/cat.jpg", "A cat", "100vw" %}
    {% asset "cat.jpg", "A cat" %}
"""

import asyncio
import re
from typing import Callable, Optional, Protocol

from mdsite.core.callout import expand_callout


# quoted strings may contain %, bare text may not
QUOTED_ARGS = r"""(?P<args>(?:"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*'|[^%'"])*?)"""
CALLOUT_RE = re.compile(
    r'\{%-?\s*callout\b' + QUOTED_ARGS + r'-?%\}(?P<body>.*?)\{%-?\s*endcallout\s*-?%\}',
    re.DOTALL,
)
IMAGE_RE = re.compile(r'\{%-?\s*(?P<name>image|asset)\b' + QUOTED_ARGS + r'-?%\}')
ARG_RE = re.compile(r'\s*(?:"(?P<dq>(?:[^"\\]|\\.)*)"|\'(?P<sq>(?:[^\'\\]|\\.)*)\')\s*(?:,|$)')
ESCAPE_RE = re.compile(r'\\(.)')


class ImageRenderer(Protocol):
    async def render(self, src: str, alt: str, sizes: Optional[str] = None) -> str: ...
    async def render_asset(self, name: str, alt: str, sizes: Optional[str] = None) -> str: ...


def parse_args(raw: str) -> Optional[list[str]]:
    """Split comma-separated quoted arguments; None if the text is not well formed."""
    raw = raw.strip()
    args: list[str] = []
    pos = 0
    while pos < len(raw):
        m = ARG_RE.match(raw, pos)
        if not m or m.end() == pos:
            return None
        value = m.group('dq') if m.group('dq') is not None else m.group('sq')
        args.append(ESCAPE_RE.sub(r'\1', value))
        pos = m.end()
    return args


def expand_callouts(source: str, inline: Optional[Callable[[str], str]] = None) -> str:
    """Replace every paired callout shortcode with its HTML; malformed ones stay literal."""

    def _replace(m: re.Match) -> str:
        args = parse_args(m.group('args'))
        if args is None or len(args) > 2:
            return m.group(0)
        return expand_callout(m.group('body'), *args, inline=inline)

    return CALLOUT_RE.sub(_replace, source)


async def expand_images(source: str, images: ImageRenderer) -> str:
    """Replace image/asset shortcodes with generated <picture> markup.

    All shortcodes of one body are awaited together; the first failure propagates.
    A shortcode without a path and alt text raises ValueError.
    """
    matches = []
    for m in IMAGE_RE.finditer(source):
        args = parse_args(m.group('args'))
        if args is None or not 2 <= len(args) <= 3:
            raise ValueError(f"Malformed {m.group('name')} shortcode: {m.group(0)}")
        matches.append((m, args))
    if not matches:
        return source

    rendered = await asyncio.gather(*(
        (images.render_asset if m.group('name') == 'asset' else images.render)(*args)
        for m, args in matches
    ))
    parts = []
    last = 0
    for (m, _), markup in zip(matches, rendered):
        parts.append(source[last:m.start()])
        parts.append(markup)
        last = m.end()
    parts.append(source[last:])
    return ''.join(parts)
