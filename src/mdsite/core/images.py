"""Responsive image variants: resize one source into a width x format matrix"""

import asyncio
import io
import logging
from html import escape
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from PIL import Image, ImageOps

from mdsite.core.models import ImageVariant, ImageVariantSet
from mdsite.core.utils.hashing import file_digest


logger = logging.getLogger("mdsite.images")

DEFAULT_WIDTHS = (655, 1310, 1965)
DEFAULT_FORMATS = ("webp", "jpeg", "avif")
DEFAULT_SIZES = "(min-width: 40ch) 90vw, (min-width: 65ch) 90vw, 100vw"

# most capable first; markup offers formats in this order
FORMAT_PRIORITY = ("avif", "webp", "png", "jpeg", "gif")
FALLBACK_FORMATS = ("jpeg", "png", "gif")
PIL_FORMATS = {"avif": "AVIF", "webp": "WEBP", "png": "PNG", "jpeg": "JPEG", "gif": "GIF"}
MIME_TYPES = {f: f"image/{f}" for f in FORMAT_PRIORITY}
FORMAT_ALIASES = {"jpg": "jpeg"}

# encoder(image, width, height, format, dest) writes one variant file
Encoder = Callable[[Image.Image, int, int, str, Path], None]
CacheKey = tuple[str, tuple[int, ...], tuple[str, ...], str]


class ImageError(RuntimeError):
    """A source image could not be read or one of its variants could not be written."""


def normalize_format(fmt: str) -> str:
    fmt = FORMAT_ALIASES.get(fmt.lower().strip(), fmt.lower().strip())
    if fmt not in PIL_FORMATS:
        raise ValueError(f"Unsupported image format: {fmt!r}")
    return fmt


def resolve_widths(widths: Iterable[int], native: int) -> list[int]:
    """Requested widths that do not upscale; the native width stands in for larger ones."""
    requested = {int(w) for w in widths if int(w) > 0}
    kept = sorted(w for w in requested if w <= native)
    if len(kept) < len(requested) or not kept:
        kept.append(native)
    return sorted(set(kept))


def encode_variant(image: Image.Image, width: int, height: int, fmt: str, dest: Path) -> None:
    """Resize with Lanczos resampling and save in the requested format."""
    resized = image if image.size == (width, height) else image.resize(
        (width, height), Image.Resampling.LANCZOS
    )
    if fmt == "jpeg" and resized.mode not in ("RGB", "L"):
        resized = resized.convert("RGB")
    resized.save(dest, PIL_FORMATS[fmt])


def _attrs(values: dict) -> str:
    return " ".join(f'{k}="{escape(str(v), quote=True)}"' for k, v in values.items() if v is not None)


def generate_html(
    variant_set: ImageVariantSet,
    alt: str,
    sizes: Optional[str] = DEFAULT_SIZES,
    loading: str = "lazy",
    decoding: str = "async",
    ) -> str:
    """Build <picture> markup: one <source> per format, best first, and a fallback <img>.

    The <img> points at the smallest fallback-format rendition and carries the
    intrinsic size of the largest one. A single-format set yields a bare <img>.
    """
    if alt is None:
        raise ValueError(f"Missing alt text for image {variant_set.source}")
    formats = sorted(variant_set.variants, key=FORMAT_PRIORITY.index)
    if not formats:
        raise ImageError(f"No variants generated for {variant_set.source}")

    fallback_format = next((f for f in FALLBACK_FORMATS if f in formats), formats[-1])
    fallback = variant_set.variants[fallback_format]
    smallest, largest = fallback[0], fallback[-1]
    multi_width = len(fallback) > 1

    img = {
        "alt": alt,
        "src": smallest.url,
        "width": largest.width,
        "height": largest.height,
        "loading": loading,
        "decoding": decoding,
    }
    if len(formats) == 1:
        if multi_width:
            img["srcset"] = ", ".join(v.srcset_entry for v in fallback)
            img["sizes"] = sizes
        return f"<img {_attrs(img)}>"

    sources = [
        "<source {}>".format(_attrs({
            "type": MIME_TYPES[fmt],
            "srcset": ", ".join(v.srcset_entry for v in variant_set.variants[fmt]),
            "sizes": sizes if len(variant_set.variants[fmt]) > 1 else None,
        }))
        for fmt in formats
    ]
    return f"<picture>{''.join(sources)}<img {_attrs(img)}></picture>"


class ImageGenerator:
    """Generates and caches image variant sets for a build.

    Results are cached per (source, widths, formats, output_dir) and reused
    while the source's modification time is unchanged. Concurrent requests for
    the same key share one in-flight generation; distinct keys run in parallel,
    bounded by max_concurrency worker threads.
    """

    def __init__(
        self,
        output_dir: str | Path = "_site/img",
        url_path: str = "/img/",
        widths: Sequence[int] = DEFAULT_WIDTHS,
        formats: Sequence[str] = DEFAULT_FORMATS,
        asset_dir: str | Path = "site/assets",
        default_sizes: str = DEFAULT_SIZES,
        max_concurrency: int = 4,
        encoder: Optional[Encoder] = None,
        ):
        self.output_dir = Path(output_dir)
        self.url_path = url_path if url_path.endswith("/") else url_path + "/"
        self.widths = tuple(widths)
        self.formats = tuple(normalize_format(f) for f in formats)
        self.asset_dir = Path(asset_dir)
        self.default_sizes = default_sizes
        self.encoder = encoder or encode_variant
        self.generated = 0      # variant files encoded
        self.reused = 0         # variant files already fresh on disk
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._pending: dict[CacheKey, tuple[float, asyncio.Future]] = {}
        self._results: dict[CacheKey, tuple[float, ImageVariantSet]] = {}

    @classmethod
    def from_settings(cls, settings, encoder: Optional[Encoder] = None) -> "ImageGenerator":
        return cls(
            output_dir=settings.image_output_dir,
            url_path=settings.image_url_path,
            widths=settings.image_widths,
            formats=settings.image_formats,
            asset_dir=settings.asset_dir,
            default_sizes=settings.default_sizes,
            max_concurrency=settings.max_concurrency,
            encoder=encoder,
        )

    @staticmethod
    def _mtime(source: Path) -> float:
        try:
            return source.stat().st_mtime
        except OSError as e:
            raise ImageError(f"Cannot read image {source}: {e}") from e

    async def generate(
        self,
        source: str | Path,
        widths: Optional[Sequence[int]] = None,
        formats: Optional[Sequence[str]] = None,
        output_dir: Optional[str | Path] = None,
        ) -> ImageVariantSet:
        """Return the variant set for source, generating only what is missing or stale."""
        source = Path(source)
        widths = tuple(self.widths if widths is None else widths)
        formats = tuple(normalize_format(f) for f in (self.formats if formats is None else formats))
        out = Path(self.output_dir if output_dir is None else output_dir)
        key: CacheKey = (str(source.resolve()), widths, formats, str(out.resolve()))

        mtime = self._mtime(source)
        cached = self._results.get(key)
        if cached is not None and cached[0] == mtime:
            logger.debug("Cache hit for %s", source)
            return cached[1]

        entry = self._pending.get(key)
        if entry is not None and entry[0] == mtime:
            logger.debug("Awaiting in-flight generation for %s", source)
            pending = entry[1]
        else:
            pending = asyncio.ensure_future(self._generate(key, mtime, source, widths, formats, out))
            self._pending[key] = (mtime, pending)
            pending.add_done_callback(lambda f, k=key: self._release(k, f))
        return await asyncio.shield(pending)

    def _release(self, key: CacheKey, future: asyncio.Future) -> None:
        # a newer generation for the same key may have replaced this one
        entry = self._pending.get(key)
        if entry is not None and entry[1] is future:
            del self._pending[key]

    async def _generate(
        self,
        key: CacheKey,
        mtime: float,
        source: Path,
        widths: tuple[int, ...],
        formats: tuple[str, ...],
        out: Path,
        ) -> ImageVariantSet:
        async with self._semaphore:
            result, generated, reused = await asyncio.to_thread(
                self._build, source, mtime, widths, formats, out
            )
        self.generated += generated
        self.reused += reused
        current = self._results.get(key)
        if current is None or current[0] <= mtime:
            self._results[key] = (mtime, result)
        return result

    def _build(
        self,
        source: Path,
        mtime: float,
        widths: tuple[int, ...],
        formats: tuple[str, ...],
        out: Path,
        ) -> tuple[ImageVariantSet, int, int]:
        """Decode source and write every missing or stale variant (runs in a worker thread)."""
        try:
            data = source.read_bytes()
            image = Image.open(io.BytesIO(data))
            image.load()
            image = ImageOps.exif_transpose(image)
        except OSError as e:
            raise ImageError(f"Cannot decode image {source}: {e}") from e

        try:
            out.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ImageError(f"Cannot create output directory {out} for {source}: {e}") from e

        digest = file_digest(data)
        native_w, native_h = image.size
        generated = reused = 0
        variants: dict[str, list[ImageVariant]] = {}

        for fmt in formats:
            group = variants.setdefault(fmt, [])
            for width in resolve_widths(widths, native_w):
                height = max(1, round(native_h * width / native_w))
                dest = out / f"{source.stem}-{digest}-{width}.{fmt}"
                if dest.exists() and dest.stat().st_mtime >= mtime:
                    reused += 1
                    logger.debug("Fresh variant %s", dest)
                else:
                    try:
                        self.encoder(image, width, height, fmt, dest)
                    except (OSError, KeyError, ValueError) as e:
                        raise ImageError(f"Cannot write {fmt} variant of {source} to {dest}: {e}") from e
                    generated += 1
                    logger.info("Wrote %s (%dx%d)", dest, width, height)
                group.append(ImageVariant(
                    source=source, format=fmt, width=width, height=height,
                    path=dest, url=f"{self.url_path}{dest.name}",
                ))

        return ImageVariantSet(source=source, variants=variants), generated, reused

    async def render(self, src: str, alt: str, sizes: Optional[str] = None) -> str:
        """Generate variants for src with the configured widths and formats; return markup."""
        if alt is None:
            raise ValueError(f"Missing alt text for image {src}")
        variant_set = await self.generate(src)
        return generate_html(variant_set, alt, sizes or self.default_sizes)

    async def render_asset(self, name: str, alt: str, sizes: Optional[str] = None) -> str:
        """Like render, with name resolved under the site asset directory."""
        return await self.render(str(self.asset_dir / name), alt, sizes)
