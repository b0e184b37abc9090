"""Shared fixtures for core unit tests"""

from pathlib import Path

import pytest
from PIL import Image

from mdsite.core.markdown import MarkdownRenderer


SAMPLE_MD = """\
# Intro

A paragraph with **bold** text.
Second line.

## Setup: Step One

- item one
- item two

## Setup: Step One

### Don't panic

#### Deep

##### Deeper
"""


@pytest.fixture(name="renderer")
def renderer_fixture():
    return MarkdownRenderer()


@pytest.fixture(name="sample_md")
def sample_md_fixture():
    return SAMPLE_MD


@pytest.fixture(name="source_image")
def source_image_fixture(tmp_path) -> Path:
    """A 2000x1000 RGB JPEG, wide enough for every default width."""
    path = tmp_path / "src" / "photo.jpg"
    path.parent.mkdir()
    Image.new("RGB", (2000, 1000), (200, 120, 40)).save(path, "JPEG")
    return path


class CountingEncoder:
    """Records each requested variant and writes a placeholder file."""

    def __init__(self):
        self.calls: list[tuple[int, int, str]] = []

    def __call__(self, image, width, height, fmt, dest: Path) -> None:
        self.calls.append((width, height, fmt))
        dest.write_bytes(b"variant")


@pytest.fixture(name="encoder")
def encoder_fixture():
    return CountingEncoder()
