"""Site-wide tag index with reserved (structural) tags filtered out"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from mdsite.core.models import Document


class ReservedTag(str, Enum):
    """Tags that mark site structure (collections, navigation) rather than topics."""
    all = "all"
    nav = "nav"
    posts = "posts"


RESERVED_TAGS: frozenset[str] = frozenset(t.value for t in ReservedTag)


def is_reserved(tag: str) -> bool:
    return tag in RESERVED_TAGS


def filter_tags(tags: Iterable[str]) -> list[str]:
    """Drop reserved tags and duplicates, keeping first-seen order."""
    return list(dict.fromkeys(t for t in tags or [] if not is_reserved(t)))


@dataclass(frozen=True)
class TagIndex:
    """Deduplicated tags across a document collection, with the documents per tag."""
    documents: dict[str, tuple[str, ...]] = field(default_factory=dict)

    @property
    def tags(self) -> frozenset[str]:
        return frozenset(self.documents)

    def __contains__(self, tag: object) -> bool:
        return tag in self.documents

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.documents))

    def __len__(self) -> int:
        return len(self.documents)

    def pages(self, tag: str) -> tuple[str, ...]:
        """Paths of documents carrying tag, in collection order."""
        return self.documents.get(tag, ())


def aggregate(documents: Iterable[Document]) -> TagIndex:
    """Build a fresh TagIndex from all documents of one build."""
    by_tag: dict[str, list[str]] = {}
    for doc in documents:
        for tag in filter_tags(doc.tags):
            by_tag.setdefault(tag, []).append(doc.path)
    return TagIndex({tag: tuple(paths) for tag, paths in by_tag.items()})
