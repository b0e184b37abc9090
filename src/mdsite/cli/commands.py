"""CLI command implementations"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer

from mdsite.config import CONFIG_FILE, Settings, load_config
from mdsite.core.images import ImageGenerator
from mdsite.core.markdown import MarkdownRenderer
from mdsite.core.parse import parse_file
from mdsite.core.pipeline import load_documents, run_build
from mdsite.core.tags import aggregate


logger = logging.getLogger("mdsite.cli")

ConfigOpt = Annotated[Optional[Path], typer.Option("--config", "-c", help=f"Settings file (default: ./{CONFIG_FILE})")]


def _fail(msg: str, cause: Optional[BaseException] = None) -> NoReturn:
    """Report msg on stderr, with the underlying error if any, and exit 1."""
    if cause is not None:
        logger.debug("%s", msg, exc_info=cause)
        msg = f"{msg}: {cause}"
    typer.echo(f"Error: {msg}", err=True)
    raise typer.Exit(1)


def _settings(overrides: Optional[dict] = None, config_file: Optional[Path] = None) -> Settings:
    if config_file is not None and not config_file.is_file():
        _fail(f"Config file not found: {config_file}")
    try:
        return load_config(overrides=overrides, config_file=config_file or CONFIG_FILE)
    except ValueError as e:
        _fail("Invalid configuration", e)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_cmd(
    path: Annotated[Optional[str], typer.Argument(help="Content file or directory (default: content_dir)")] = None,
    out: Annotated[Optional[str], typer.Option("--out-dir", help="Output directory")] = None,
    image_dir: Annotated[Optional[str], typer.Option("--image-dir", help="Image variant output directory")] = None,
    parser: Annotated[Optional[str], typer.Option("--parser-config", help="MarkdownIt preset name")] = None,
    concurrency: Annotated[Optional[int], typer.Option("--max-concurrency", help="Max images processed at once")] = None,
    config: ConfigOpt = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
    ):
    """Run the full pipeline: parse -> tags -> images -> render -> write."""
    _configure_logging(verbose)
    settings = _settings(overrides={
        "output_dir": out, "image_output_dir": image_dir,
        "parser_config": parser, "max_concurrency": concurrency,
    }, config_file=config)
    try:
        result = asyncio.run(run_build(settings, path))
    except (RuntimeError, ValueError) as e:
        _fail("Build failed", e)

    for page, html_path in result.pages:
        typer.echo(f"  {page.document.path} -> {html_path}")
    typer.echo(
        f"Built {len(result.pages)} page(s) to {settings.output_dir}/ - "
        f"{len(result.tags)} tag(s), "
        f"{result.images_generated} image(s) generated, "
        f"{result.images_reused} reused"
    )


def render_cmd(
    path: Annotated[Path, typer.Argument(help="Markdown file to render")],
    toc: Annotated[bool, typer.Option("--toc", help="Print the table of contents instead of HTML")] = False,
    parser: Annotated[Optional[str], typer.Option("--parser-config", help="MarkdownIt preset name")] = None,
    config: ConfigOpt = None,
    ):
    """Render a single document (callouts expanded, images left as shortcodes)."""
    settings = _settings(overrides={"parser_config": parser}, config_file=config)
    if not path.is_file():
        _fail(f"Not a file: {path}")
    try:
        doc = parse_file(path)
    except (OSError, ValueError) as e:
        _fail(f"Cannot read {path}", e)

    renderer = MarkdownRenderer(settings.parser_config)
    if toc:
        for h in renderer.toc(doc.body):
            typer.echo(f"{'  ' * (h.level - 1)}- {h.text} (#{h.slug})")
        return
    typer.echo(renderer.render(doc.body), nl=False)


def tags_cmd(
    path: Annotated[Optional[str], typer.Argument(help="Content file or directory (default: content_dir)")] = None,
    config: ConfigOpt = None,
    ):
    """List the site-wide tag index with page counts."""
    settings = _settings(config_file=config)
    source = Path(path or settings.content_dir)
    if not source.exists():
        _fail(f"Content path not found: {source}")
    try:
        index = aggregate(load_documents(source))
    except RuntimeError as e:
        _fail(str(e))
    if not len(index):
        typer.echo("No tags found.")
        raise typer.Exit(1)
    for tag in index:
        typer.echo(f"{tag} ({len(index.pages(tag))})")


def image_cmd(
    src: Annotated[Path, typer.Argument(help="Source image")],
    alt: Annotated[str, typer.Option("--alt", help="Alternative text (required; may be empty)")],
    sizes: Annotated[Optional[str], typer.Option("--sizes", help="sizes attribute")] = None,
    out: Annotated[Optional[str], typer.Option("--out-dir", help="Image variant output directory")] = None,
    widths: Annotated[Optional[str], typer.Option("--widths", help="Comma-separated widths")] = None,
    formats: Annotated[Optional[str], typer.Option("--formats", help="Comma-separated formats")] = None,
    config: ConfigOpt = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
    ):
    """Generate responsive variants for one image and print the <picture> markup."""
    _configure_logging(verbose)
    settings = _settings(overrides={
        "image_output_dir": out, "image_widths": widths, "image_formats": formats,
    }, config_file=config)
    try:
        images = ImageGenerator.from_settings(settings)
        markup = asyncio.run(images.render(str(src), alt, sizes))
    except (RuntimeError, ValueError) as e:
        _fail(f"Cannot process {src}", e)
    typer.echo(markup)
