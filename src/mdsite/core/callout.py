"""Callout notice boxes: a styled container with an optional icon"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from mdsite.core.parser import render_inline


class CalloutLevel(str, Enum):
    info = "info"
    warn = "warn"
    neutral = "neutral"

    @classmethod
    def parse(cls, value: object) -> "CalloutLevel":
        """Map a raw level to its member; unknown values fall back to neutral."""
        try:
            return cls(value)
        except ValueError:
            return cls.neutral


class CalloutFormat(str, Enum):
    html = "html"
    md = "md"

    @classmethod
    def parse(cls, value: object) -> "CalloutFormat":
        try:
            return cls(value)
        except ValueError:
            return cls.html


@dataclass(frozen=True)
class CalloutStyle:
    background: str
    icon: str = ""


INFO_ICON = (
    '<svg class="w-6 h-6 stroke-current text-sky-600 dark:text-sky-300" fill="none" '
    'stroke="currentColor" viewBox="0 0 24 24" xmlns="http://www.w3.org/2000/svg">'
    '<path stroke-linecap="round" stroke-linejoin="round" stroke-width="2" '
    'd="M13 16h-1v-4h-1m1-4h.01M21 12a9 9 0 11-18 0 9 9 0 0118 0z"></path></svg>'
)
WARN_ICON = (
    '<svg class="w-6 h-6 stroke-current text-yellow-600 dark:text-yellow-300" fill="none" '
    'stroke="currentColor" viewBox="0 0 24 24" xmlns="http://www.w3.org/2000/svg">'
    '<path stroke-linecap="round" stroke-linejoin="round" stroke-width="2" '
    'd="M12 9v2m0 4h.01m-6.938 4h13.856c1.54 0 2.502-1.667 1.732-3L13.732 4c-.77-1.333'
    '-2.694-1.333-3.464 0L3.34 16c-.77 1.333.192 3 1.732 3z"></path></svg>'
)

STYLES: dict[CalloutLevel, CalloutStyle] = {
    CalloutLevel.info: CalloutStyle("bg-blueGray-100 dark:bg-blueGray-700", INFO_ICON),
    CalloutLevel.warn: CalloutStyle("bg-orange-100 dark:bg-orange-700", WARN_ICON),
    CalloutLevel.neutral: CalloutStyle("bg-white"),
}

CONTAINER_CLASSES = (
    "p-4 my-5 {background} bg-opacity-100 dark:bg-opacity-30 rounded shadow-sm "
    "text-sm text-gray-600 dark:text-gray-400 flex items-center"
)


def expand_callout(
    content: str,
    level: str = "info",
    format: str = "html",
    inline: Optional[Callable[[str], str]] = None,
    ) -> str:
    """Wrap content in a callout box styled for level.

    With format "md" the content is trimmed and rendered as inline Markdown
    (no paragraphs, lists or headings); with "html" it is embedded verbatim.
    """
    style = STYLES[CalloutLevel.parse(level)]
    if CalloutFormat.parse(format) is CalloutFormat.md:
        content = (inline or render_inline)(content.strip())

    lines = [f'<div class="{CONTAINER_CLASSES.format(background=style.background)}">']
    if style.icon:
        lines.append(style.icon)
    lines += ['<div class="unprose ml-4">', content, '</div>', '</div>']
    return "\n".join(lines).strip()
