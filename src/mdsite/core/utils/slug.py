"""Slug generation for heading anchors and document identifiers"""

import re


REMOVED_CHARS = re.compile(r"[:'‘’`,!?]")
WHITESPACE = re.compile(r'\s+')
FALLBACK_SLUG = 'section'


def slugify(text: str) -> str:
    """Lowercase text, drop fixed punctuation and join words with single hyphens."""
    text = REMOVED_CHARS.sub('', text.lower()).strip()
    return WHITESPACE.sub('-', text)


def unique_slug(slug: str, seen: set[str]) -> str:
    """Return slug, or slug-2, slug-3, ... if already taken; records the result in seen."""
    base = slug or FALLBACK_SLUG
    candidate, n = base, 1
    while candidate in seen:
        n += 1
        candidate = f"{base}-{n}"
    seen.add(candidate)
    return candidate
