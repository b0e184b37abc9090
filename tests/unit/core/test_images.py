"""Unit tests for core/images.py"""

import asyncio
import os
import re
import threading

import pytest
from PIL import Image

from mdsite.core.images import (
    DEFAULT_SIZES,
    ImageError,
    ImageGenerator,
    generate_html,
    normalize_format,
    resolve_widths,
)


WIDTHS = [655, 1310, 1965]
FORMATS = ["webp", "jpeg", "avif"]


@pytest.mark.parametrize("widths,native,expected", [
    ([655, 1310, 1965], 2000, [655, 1310, 1965]),
    ([655, 1310, 1965], 1000, [655, 1000]),
    ([3000], 800, [800]),
    ([], 800, [800]),
    ([400, 400, 200], 800, [200, 400]),
])
def test_resolve_widths_never_upscales(widths, native, expected):
    assert resolve_widths(widths, native) == expected


def test_normalize_format():
    assert normalize_format("JPG") == "jpeg"
    assert normalize_format("webp") == "webp"
    with pytest.raises(ValueError, match="Unsupported"):
        normalize_format("bmp")


@pytest.mark.asyncio
async def test_generates_full_matrix(source_image, tmp_path, encoder):
    """3 widths x 3 formats produce exactly 9 artifacts and avif/webp/jpeg markup."""
    out = tmp_path / "img"
    gen = ImageGenerator(output_dir=out, encoder=encoder)
    variants = await gen.generate(source_image, WIDTHS, FORMATS)

    assert len(variants) == 9
    assert len(encoder.calls) == 9
    assert len(list(out.iterdir())) == 9
    assert {(w, f) for w, _, f in encoder.calls} == {(w, f) for w in WIDTHS for f in FORMATS}

    html = generate_html(variants, alt="A photo")
    types = re.findall(r'<source type="(image/\w+)"', html)
    assert types == ["image/avif", "image/webp", "image/jpeg"]
    assert html.startswith("<picture>") and html.endswith("</picture>")
    img = re.search(r"<img [^>]+>", html).group(0)
    assert 'src="/img/photo-' in img and '-655.jpeg"' in img
    assert 'width="1965"' in img and 'height="982"' in img
    assert 'loading="lazy"' in img and 'decoding="async"' in img
    assert 'alt="A photo"' in img


@pytest.mark.asyncio
async def test_srcset_lists_every_width(source_image, tmp_path, encoder):
    gen = ImageGenerator(output_dir=tmp_path / "img", encoder=encoder)
    html = generate_html(await gen.generate(source_image, WIDTHS, ["webp", "jpeg"]), alt="")
    webp = re.search(r'<source type="image/webp" srcset="([^"]+)"', html).group(1)
    assert [e.split()[-1] for e in webp.split(", ")] == ["655w", "1310w", "1965w"]
    assert f'sizes="{DEFAULT_SIZES}"' in html


@pytest.mark.asyncio
async def test_repeat_request_reuses_result(source_image, tmp_path, encoder):
    """A second identical request returns the same markup without encoding again."""
    gen = ImageGenerator(output_dir=tmp_path / "img", encoder=encoder)
    first = generate_html(await gen.generate(source_image, WIDTHS, FORMATS), alt="x")
    second = generate_html(await gen.generate(source_image, WIDTHS, FORMATS), alt="x")
    assert first == second
    assert len(encoder.calls) == 9
    assert gen.generated == 9


@pytest.mark.asyncio
async def test_concurrent_identical_requests_share_work(source_image, tmp_path, encoder):
    """Identical requests in flight at once run a single generation."""
    gen = ImageGenerator(output_dir=tmp_path / "img", encoder=encoder)
    results = await asyncio.gather(*(gen.generate(source_image, WIDTHS, FORMATS) for _ in range(5)))
    assert len(encoder.calls) == 9
    assert all(r is results[0] for r in results)


@pytest.mark.asyncio
async def test_distinct_keys_generate_separately(source_image, tmp_path, encoder):
    gen = ImageGenerator(output_dir=tmp_path / "img", encoder=encoder)
    await asyncio.gather(
        gen.generate(source_image, [655], ["webp"]),
        gen.generate(source_image, [655], ["jpeg"]),
    )
    assert sorted(f for _, _, f in encoder.calls) == ["jpeg", "webp"]


@pytest.mark.asyncio
async def test_fresh_files_on_disk_are_not_reencoded(source_image, tmp_path, encoder):
    """A new generator (next build) reuses variant files newer than the source."""
    out = tmp_path / "img"
    await ImageGenerator(output_dir=out, encoder=encoder).generate(source_image, WIDTHS, FORMATS)
    gen = ImageGenerator(output_dir=out, encoder=encoder)
    await gen.generate(source_image, WIDTHS, FORMATS)
    assert len(encoder.calls) == 9
    assert gen.reused == 9


@pytest.mark.asyncio
async def test_changed_source_regenerates(source_image, tmp_path, encoder):
    """Touching the source invalidates cached and on-disk variants."""
    gen = ImageGenerator(output_dir=tmp_path / "img", encoder=encoder)
    await gen.generate(source_image, WIDTHS, ["webp"])
    future = source_image.stat().st_mtime + 100
    os.utime(source_image, (future, future))
    await gen.generate(source_image, WIDTHS, ["webp"])
    assert len(encoder.calls) == 6


@pytest.mark.asyncio
async def test_source_changed_during_generation_is_regenerated(source_image, tmp_path):
    """A request made after the source changes does not join the older in-flight run."""
    started, release = threading.Event(), threading.Event()
    calls = []

    def slow_encoder(image, width, height, fmt, dest):
        calls.append((width, fmt))
        started.set()
        release.wait(5)
        dest.write_bytes(b"variant")

    gen = ImageGenerator(output_dir=tmp_path / "img", encoder=slow_encoder)
    first = asyncio.create_task(gen.generate(source_image, [655], ["webp"]))
    assert await asyncio.to_thread(started.wait, 5)

    future = source_image.stat().st_mtime + 100
    os.utime(source_image, (future, future))
    second = asyncio.create_task(gen.generate(source_image, [655], ["webp"]))
    await asyncio.sleep(0)
    release.set()
    old, new = await asyncio.gather(first, second)

    assert len(calls) == 2
    assert old is not new
    assert await gen.generate(source_image, [655], ["webp"]) is new
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_small_source_is_not_upscaled(tmp_path, encoder):
    src = tmp_path / "small.png"
    Image.new("RGB", (800, 400)).save(src, "PNG")
    gen = ImageGenerator(output_dir=tmp_path / "img", encoder=encoder)
    variants = await gen.generate(src, WIDTHS, ["jpeg"])
    assert [v.width for v in variants.variants["jpeg"]] == [655, 800]
    assert max(w for w, _, _ in encoder.calls) == 800


@pytest.mark.asyncio
async def test_real_encoding_writes_images(source_image, tmp_path):
    """The default Pillow encoder writes decodable files at the requested size."""
    gen = ImageGenerator(output_dir=tmp_path / "img")
    variants = await gen.generate(source_image, [655], ["webp", "jpeg"])
    for v in variants.all():
        with Image.open(v.path) as im:
            assert im.size == (655, 328)


@pytest.mark.asyncio
async def test_missing_source_raises_with_path(tmp_path):
    gen = ImageGenerator(output_dir=tmp_path / "img")
    with pytest.raises(ImageError, match="nope.jpg"):
        await gen.generate(tmp_path / "nope.jpg")


@pytest.mark.asyncio
async def test_corrupt_source_raises_with_path(tmp_path, encoder):
    bad = tmp_path / "bad.jpg"
    bad.write_bytes(b"not an image")
    gen = ImageGenerator(output_dir=tmp_path / "img", encoder=encoder)
    with pytest.raises(ImageError, match="bad.jpg"):
        await gen.generate(bad)
    assert encoder.calls == []


@pytest.mark.asyncio
async def test_render_requires_alt(source_image, tmp_path, encoder):
    gen = ImageGenerator(output_dir=tmp_path / "img", encoder=encoder)
    with pytest.raises(ValueError, match="alt"):
        await gen.render(str(source_image), None)
    assert encoder.calls == []


@pytest.mark.asyncio
async def test_render_asset_resolves_against_asset_dir(source_image, tmp_path, encoder):
    """render_asset looks the name up under asset_dir and applies the default sizes."""
    gen = ImageGenerator(
        output_dir=tmp_path / "img", asset_dir=source_image.parent,
        formats=["webp", "jpeg"], encoder=encoder,
    )
    html = await gen.render_asset("photo.jpg", "Alt")
    assert f'sizes="{DEFAULT_SIZES}"' in html
    assert len(encoder.calls) == 6


@pytest.mark.asyncio
async def test_single_format_yields_plain_img(source_image, tmp_path, encoder):
    gen = ImageGenerator(output_dir=tmp_path / "img", encoder=encoder)
    html = generate_html(await gen.generate(source_image, WIDTHS, ["jpeg"]), alt="x", sizes="100vw")
    assert html.startswith("<img ") and "<picture>" not in html
    assert 'sizes="100vw"' in html and "1965w" in html


def test_alt_text_is_escaped(tmp_path):
    from mdsite.core.models import ImageVariant, ImageVariantSet
    v = ImageVariant(source=tmp_path / "a.jpg", format="jpeg", width=10, height=5,
                     path=tmp_path / "a-10.jpeg", url="/img/a-10.jpeg")
    html = generate_html(ImageVariantSet(source=v.source, variants={"jpeg": [v]}), alt='say "hi" <b>')
    assert 'alt="say &quot;hi&quot; &lt;b&gt;"' in html
