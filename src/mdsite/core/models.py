"""Data models shared by the parse, render, image and tag stages"""

from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Document(BaseModel):
    """A source Markdown document; immutable for the duration of a build."""
    model_config = ConfigDict(frozen=True)

    path: str                       # relative to the content root
    slug: str
    body: str                       # front matter stripped
    hash: str                       # sha256 of the full file content
    metadata: dict[str, Any] = {}

    @property
    def tags(self) -> list[str]:
        """Raw tag list from metadata; a single string counts as one tag."""
        raw = self.metadata.get('tags')
        if isinstance(raw, str):
            return [raw]
        if isinstance(raw, (list, tuple)):
            return [str(t) for t in raw if t is not None]
        return []

    @property
    def date(self) -> Optional[date]:
        value = self.metadata.get('date')
        if isinstance(value, (date, datetime)):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value)
            except ValueError:
                return None
        return None


class Heading(BaseModel):
    """A heading found while rendering, with its resolved (unique) slug."""
    level: int = Field(ge=1, le=6)
    text: str
    slug: str


class RenderedPage(BaseModel):
    """Per-document render output: HTML body plus outline and display tags."""
    document: Document
    html: str
    toc: list[Heading] = []
    tags: list[str] = []


class ImageVariant(BaseModel):
    """One generated (width, format) rendition of a source image."""
    source: Path
    format: str
    width: int
    height: int
    path: Path
    url: str

    @property
    def srcset_entry(self) -> str:
        return f"{self.url} {self.width}w"


class ImageVariantSet(BaseModel):
    """All renditions of one source image, grouped by format and sorted by width."""
    source: Path
    variants: dict[str, list[ImageVariant]] = {}

    def __len__(self) -> int:
        return sum(len(v) for v in self.variants.values())

    def all(self) -> list[ImageVariant]:
        return [v for group in self.variants.values() for v in group]
