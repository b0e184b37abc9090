"""Write rendered pages, sidecar JSON and the site-wide tag index"""

import json
from pathlib import Path

from mdsite.core.models import RenderedPage
from mdsite.core.tags import TagIndex


def build_sidecar(page: RenderedPage) -> dict:
    """Sidecar JSON dict: slug, path, hash, date, display tags and table of contents."""
    doc = page.document
    return {
        "slug": doc.slug,
        "path": doc.path,
        "hash": doc.hash,
        "date": doc.date.isoformat() if doc.date else None,
        "tags": page.tags,
        "toc": [h.model_dump() for h in page.toc],
    }


def write_page(page: RenderedPage, output_dir: Path) -> tuple[Path, Path]:
    """Write HTML body + sidecar JSON for a single page.

    Output path mirrors the source directory structure:
      output_dir / Path(doc.path).parent / doc.slug.{html|json}

    Returns (html_path, json_path).
    """
    doc = page.document
    dest_dir = output_dir / Path(doc.path).parent
    dest_dir.mkdir(parents=True, exist_ok=True)

    html_path = dest_dir / f"{doc.slug}.html"
    json_path = dest_dir / f"{doc.slug}.json"
    html_path.write_text(page.html, encoding='utf-8')
    json_path.write_text(json.dumps(build_sidecar(page), indent=2, ensure_ascii=False), encoding='utf-8')
    return html_path, json_path


def write_tag_index(index: TagIndex, output_dir: Path) -> Path:
    """Write tags.json: sorted tag list plus the documents carrying each tag."""
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / "tags.json"
    path.write_text(json.dumps({
        "tags": list(index),
        "pages": {tag: list(index.pages(tag)) for tag in index},
    }, indent=2, ensure_ascii=False), encoding='utf-8')
    return path
