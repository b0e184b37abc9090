"""Build orchestration: parse, aggregate tags, expand images, render and write"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from mdsite.config import Settings
from mdsite.core.export import write_page, write_tag_index
from mdsite.core.images import ImageGenerator
from mdsite.core.markdown import MarkdownRenderer
from mdsite.core.models import Document, RenderedPage
from mdsite.core.parse import discover_files, parse_file
from mdsite.core.shortcodes import expand_images
from mdsite.core.tags import TagIndex, aggregate


logger = logging.getLogger("mdsite.pipeline")


@dataclass
class BuildResult:
    pages: list[tuple[RenderedPage, Path]]     # (page, html_path)
    tags: TagIndex
    tags_path: Path
    images_generated: int = 0
    images_reused: int = 0


def load_documents(source: Path) -> list[Document]:
    """Parse every document under source; a bad file aborts with its path."""
    root = source if source.is_dir() else source.parent
    documents = []
    for p in discover_files(source):
        try:
            documents.append(parse_file(p, root))
        except (OSError, ValueError) as e:
            raise RuntimeError(f"Failed to parse {p}: {e}") from e
    return documents


async def build_page(doc: Document, renderer: MarkdownRenderer, images: ImageGenerator) -> RenderedPage:
    """Expand image shortcodes (async), then render synchronously."""
    try:
        body = await expand_images(doc.body, images)
    except Exception as e:
        raise RuntimeError(f"Failed to build {doc.path}: {e}") from e
    return renderer.render_page(doc, body)


async def run_build(
    settings: Settings,
    path: Optional[str] = None,
    images: Optional[ImageGenerator] = None,
    ) -> BuildResult:
    """Render every document under path (default: settings.content_dir) into settings.output_dir."""
    source = Path(path or settings.content_dir)
    if not source.exists():
        raise RuntimeError(f"Content path not found: {source}")
    output_dir = Path(settings.output_dir)

    documents = load_documents(source)
    tags = aggregate(documents)
    logger.info("Found %d document(s), %d tag(s)", len(documents), len(tags))

    renderer = MarkdownRenderer(settings.parser_config)
    images = images or ImageGenerator.from_settings(settings)
    results = await asyncio.gather(
        *(build_page(doc, renderer, images) for doc in documents), return_exceptions=True
    )
    failures = [r for r in results if isinstance(r, BaseException)]
    if failures:
        raise failures[0]
    pages: list[RenderedPage] = results

    written = []
    for page in pages:
        html_path, _ = write_page(page, output_dir)
        written.append((page, html_path))
        logger.debug("Wrote %s", html_path)
    tags_path = write_tag_index(tags, output_dir)

    logger.info(
        "Built %d page(s); images: %d generated, %d reused",
        len(written), images.generated, images.reused,
    )
    return BuildResult(
        pages=written,
        tags=tags,
        tags_path=tags_path,
        images_generated=images.generated,
        images_reused=images.reused,
    )
