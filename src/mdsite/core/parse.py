"""Document discovery and YAML front matter extraction"""

import re
from pathlib import Path
from typing import Any, Optional

import yaml

from mdsite.core.models import Document
from mdsite.core.utils.hashing import sha256
from mdsite.core.utils.slug import slugify


# closing fence may be YAML's document end marker; the header may be empty
FRONTMATTER_RE = re.compile(r'\A---[ \t]*\n(?P<yaml>(?:.*?\n)??)(?:---|\.\.\.)[ \t]*(?:\n|\Z)', re.DOTALL)
MD_EXTENSIONS = {'.md'}


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Split a document into (front matter mapping, body).

    A leading BOM is dropped and CRLF line endings become LF before matching.
    Text without a leading --- fence is all body.
    """
    text = text.lstrip('\ufeff').replace('\r\n', '\n')
    m = FRONTMATTER_RE.match(text)
    if not m:
        return {}, text
    try:
        data = yaml.safe_load(m.group('yaml'))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid front matter: {e}") from e
    if data is None:
        data = {}
    elif not isinstance(data, dict):
        raise ValueError(f"Invalid front matter: expected a mapping, got {type(data).__name__}")
    return data, text[m.end():]


def discover_files(path: Path) -> list[Path]:
    """Return sorted .md files under path, or [path] if a single file."""
    if path.is_file():
        return [path] if path.suffix in MD_EXTENSIONS else []
    return sorted(p for p in path.rglob('*') if p.suffix in MD_EXTENSIONS and p.is_file())


def parse_file(path: Path, root: Optional[Path] = None) -> Document:
    """Read a markdown file into a Document; path is stored relative to root."""
    raw = path.read_text(encoding='utf-8')
    frontmatter, body = split_frontmatter(raw)
    rel = path.relative_to(root) if root is not None else Path(path.name)
    return Document(
        path=rel.as_posix(),
        slug=str(frontmatter.get('slug') or slugify(path.stem)),
        body=body,
        hash=sha256(raw),
        metadata=frontmatter,
    )

