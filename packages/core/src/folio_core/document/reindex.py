from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from folio_core.document.enums import LinearItemType
from folio_core.document.models import Block, LinearItem
from folio_core.document.pointer import SemanticPointer, heading_label


@dataclass
class _LabelState:
    counters: list[int] = field(default_factory=list)
    paragraph: int = 0

    def heading(self, level: int) -> str:
        level = max(level, 1)
        counters = self.counters[:level]
        counters.extend([0] * (level - len(counters)))
        counters[level - 1] += 1
        self.counters = counters
        self.paragraph = 0
        return heading_label(counters)

    def leaf(self) -> str:
        self.paragraph += 1
        if not self.counters:
            return f"p{self.paragraph}"
        return f"{heading_label(self.counters)}.p{self.paragraph}"


def reindex(blocks: Iterable[Block]) -> tuple[LinearItem, ...]:
    """
    Pure recomputation of indices and labels from the block sequence.

    Pointer ids are carried over from the blocks untouched; labels and indices
    are derived from scratch every time.
    """
    state = _LabelState()
    items: list[LinearItem] = []
    for index, block in enumerate(blocks):
        if block.type == LinearItemType.heading:
            label = state.heading(block.level or 1)
        else:
            label = state.leaf()
        items.append(
            LinearItem(
                index=index,
                type=block.type,
                markdown=block.markdown,
                text=block.text,
                pointer=SemanticPointer(block.pointer_id, label),
                level=block.level if block.type == LinearItemType.heading else None,
            )
        )
    return tuple(items)
