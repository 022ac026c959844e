"""
Linear document model.

A document is kept in two parallel shapes:
- `blocks`: the structural sequence the edit engine splices (one block per item,
  each carrying its stable pointer id)
- `items`: the addressable view derived from `blocks` by the reindexer

`items` is never patched in place; every structural change produces a new
`LinearDocument` whose items, pointers and `source_text` were recomputed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from pydantic import BaseModel, ConfigDict, Field, model_validator

from folio_core.document.enums import EditAction, LinearItemType
from folio_core.document.pointer import PointerReference, SemanticPointer
from folio_core.hashing import sha256_text

PARAGRAPH_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class Block:
    """One structural block as the edit engine sees it."""

    pointer_id: int
    type: LinearItemType
    markdown: str
    text: str
    level: int | None = None


@dataclass(frozen=True)
class LinearItem:
    index: int
    type: LinearItemType
    markdown: str
    text: str
    pointer: SemanticPointer
    level: int | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "index": self.index,
            "type": self.type.value,
            "level": self.level,
            "pointer": self.pointer.compact,
            "markdown": self.markdown,
            "text": self.text,
        }


@dataclass(frozen=True)
class LinearDocument:
    id: str
    source_text: str
    items: tuple[LinearItem, ...]
    blocks: tuple[Block, ...] = field(repr=False)
    next_pointer_id: int = field(default=1, repr=False)
    generation: int = 0

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[LinearItem]:
        return iter(self.items)

    @property
    def source_sha256(self) -> str:
        return sha256_text(self.source_text)

    def find(self, reference: PointerReference) -> LinearItem | None:
        for item in self.items:
            if reference.matches(item.pointer):
                return item
        return None

    def find_by_label(self, label: str) -> LinearItem | None:
        return self.find(PointerReference(None, label))

    def find_by_id(self, pointer_id: int) -> LinearItem | None:
        return self.find(PointerReference(pointer_id, None))


class ItemDraft(BaseModel):
    """
    Caller-supplied content for insert/replace/split/merge.

    Only `markdown` is required; `type`, `text` and `level` are inferred from
    the markdown when omitted.
    """

    model_config = ConfigDict(frozen=True)

    markdown: str
    type: LinearItemType | None = None
    text: str | None = None
    level: int | None = Field(default=None, ge=1, le=6)


class EditOperation(BaseModel):
    """
    One edit in a batch.

    Target precedence: `target_id` (stable pointer id), then `target_pointer`
    (label match, case-insensitive; compact "<id>:<label>" uses its label), then
    `target_index` (position in the batch's original snapshot).
    """

    model_config = ConfigDict(frozen=True)

    action: EditAction
    target_pointer: str | None = None
    target_index: int | None = None
    target_id: int | None = None
    items: list[ItemDraft] = Field(default_factory=list)

    @model_validator(mode="after")
    def _require_target(self) -> EditOperation:
        if self.target_pointer is None and self.target_index is None and self.target_id is None:
            raise ValueError("edit operation needs target_pointer, target_index or target_id")
        return self

    def describe_target(self) -> str:
        if self.target_id is not None:
            return f"id={self.target_id}"
        if self.target_pointer is not None:
            return f"pointer={self.target_pointer!r}"
        return f"index={self.target_index}"
