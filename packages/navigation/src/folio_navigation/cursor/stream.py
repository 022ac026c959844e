"""
Bounded cursor stream.

A stream walks one document snapshot in a fixed direction and hands out
portions bounded by an item count and a UTF-8 byte budget.

Invariants:
- The first item of a portion is always admitted, however large.
- Items rejected by the filter are passed over for good; an item that did not
  fit the budget is the first candidate of the next portion.
- `has_more` is False exactly once; after that `next_portion()` returns None.
- Filters are stateless per-item predicates.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

from folio_core.document.enums import LinearItemType
from folio_core.document.models import LinearDocument, LinearItem
from folio_core.document.pointer import SemanticPointer
from folio_navigation.cursor.parameters import CursorDirection, CursorParameters

logger = logging.getLogger(__name__)

MIN_KEYWORD_VARIANT_LENGTH = 4


class CursorFilter(Protocol):
    description: str | None

    def matches(self, item: LinearItem) -> bool:
        ...


@dataclass(frozen=True)
class FullScanFilter:
    include_headings: bool = True

    @property
    def description(self) -> str | None:
        return None if self.include_headings else "All items except headings"

    def matches(self, item: LinearItem) -> bool:
        return self.include_headings or item.type != LinearItemType.heading


@dataclass(frozen=True)
class KeywordFilter:
    """Case-insensitive substring match against any keyword or its short truncations."""

    keywords: tuple[str, ...]
    variants: tuple[str, ...]
    include_headings: bool = True

    @classmethod
    def from_keywords(cls, keywords: Iterable[str], *, include_headings: bool = True) -> KeywordFilter:
        normalized: list[str] = []
        seen: set[str] = set()
        for raw in keywords:
            keyword = (raw or "").strip()
            if keyword and keyword.casefold() not in seen:
                seen.add(keyword.casefold())
                normalized.append(keyword)
        if not normalized:
            raise ValueError("At least one keyword is required.")

        variants: list[str] = []
        for keyword in normalized:
            for variant in keyword_variants(keyword):
                if variant not in variants:
                    variants.append(variant)
        return cls(tuple(normalized), tuple(variants), include_headings)

    @property
    def description(self) -> str | None:
        return f"Keywords: {', '.join(self.keywords)}"

    def matches(self, item: LinearItem) -> bool:
        if not self.include_headings and item.type == LinearItemType.heading:
            return False
        text = item.text.casefold()
        markdown = item.markdown.casefold()
        return any(v in text or v in markdown for v in self.variants)


@dataclass(frozen=True)
class QueryFilter:
    query: str
    include_headings: bool = True

    def __post_init__(self) -> None:
        if not self.query or not self.query.strip():
            raise ValueError("Query must not be empty.")
        object.__setattr__(self, "query", self.query.strip())

    @property
    def description(self) -> str | None:
        return f"Query: {self.query}"

    def matches(self, item: LinearItem) -> bool:
        if not self.include_headings and item.type == LinearItemType.heading:
            return False
        needle = self.query.casefold()
        return needle in item.text.casefold() or needle in item.markdown.casefold()


def keyword_variants(keyword: str) -> list[str]:
    """
    Lower-cased keyword plus crude suffix truncations:
    - "invoices" -> ["invoices", "invoice", "invoic"]
    - "tax" -> ["tax"]
    """
    base = keyword.strip().casefold()
    variants = [base]
    if len(base) >= 6:
        for cut in (1, 2):
            candidate = base[:-cut]
            if len(candidate) >= MIN_KEYWORD_VARIANT_LENGTH and candidate not in variants:
                variants.append(candidate)
    return variants


def item_size(item: LinearItem, *, include_content: bool) -> int:
    encoded = f"{item.index}|{item.type.value}|{item.level or ''}|{item.pointer.compact}"
    if include_content:
        encoded += f"|{item.markdown}|{item.text}"
    return len(encoded.encode("utf-8"))


@dataclass(frozen=True)
class CursorPortion:
    items: tuple[LinearItem, ...]
    has_more: bool

    def __len__(self) -> int:
        return len(self.items)

    def to_dict(self) -> dict[str, object]:
        return {"items": [item.to_dict() for item in self.items], "hasMore": self.has_more}


class CursorStream:
    def __init__(
        self,
        document: LinearDocument,
        parameters: CursorParameters,
        *,
        item_filter: CursorFilter | None = None,
        direction: CursorDirection = CursorDirection.forward,
        start_after: str | None = None,
    ):
        self.document = document
        self.parameters = parameters
        self.item_filter: CursorFilter = item_filter or FullScanFilter()
        self.direction = direction
        self.position = self._resolve_start(start_after)
        self.is_complete = False
        self.portions_served = 0

    @property
    def filter_description(self) -> str | None:
        return self.item_filter.description

    @property
    def _step(self) -> int:
        return 1 if self.direction == CursorDirection.forward else -1

    def _in_bounds(self, index: int) -> bool:
        return 0 <= index < len(self.document.items)

    def _resolve_start(self, start_after: str | None) -> int:
        default = 0 if self.direction == CursorDirection.forward else len(self.document.items) - 1
        if not start_after:
            return default
        reference = SemanticPointer.parse_reference(start_after)
        if reference is None:
            logger.warning("cursor_start_invalid: pointer=%r", start_after)
            return default
        found = self.document.find(reference)
        if found is None:
            logger.warning("cursor_start_unresolved: pointer=%r, document=%s", start_after, self.document.id)
            return default
        return found.index + self._step

    def _project(self, item: LinearItem) -> LinearItem:
        if self.parameters.include_content:
            return item
        return dataclasses.replace(item, markdown="", text="")

    def next_portion(self) -> CursorPortion | None:
        if self.is_complete:
            return None

        items = self.document.items
        admitted: list[LinearItem] = []
        used_bytes = 0
        index = self.position

        while self._in_bounds(index):
            item = items[index]
            if not self.item_filter.matches(item):
                index += self._step
                continue
            if len(admitted) >= self.parameters.max_elements:
                break
            size = item_size(item, include_content=self.parameters.include_content)
            if admitted and used_bytes + size > self.parameters.max_bytes:
                break
            admitted.append(self._project(item))
            used_bytes += size
            index += self._step

        self.position = index
        has_more = self._in_bounds(index)
        if not has_more:
            self.is_complete = True
        self.portions_served += 1

        logger.debug(
            "cursor_batch: document=%s, count=%d, bytes=%d, has_more=%s",
            self.document.id,
            len(admitted),
            used_bytes,
            has_more,
        )
        return CursorPortion(tuple(admitted), has_more)
