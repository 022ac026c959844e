from __future__ import annotations

import datetime as dt
from typing import Iterable, Sequence

from pydantic import BaseModel, ConfigDict, Field

from folio_core.document.enums import EditAction, LinearItemType
from folio_core.document.models import EditOperation, ItemDraft, LinearDocument
from folio_core.identity import new_target_set_id, target_ref_id_for


class TargetRef(BaseModel):
    """A pointer plus the content it addressed when the set was captured."""

    model_config = ConfigDict(frozen=True)

    id: str
    index: int
    pointer_id: int
    pointer_label: str
    type: LinearItemType
    markdown: str
    text: str

    @property
    def compact_pointer(self) -> str:
        return f"{self.pointer_id}:{self.pointer_label}"


class TargetSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    label: str | None = None
    created_at: dt.datetime
    targets: tuple[TargetRef, ...] = Field(default_factory=tuple)

    def build_operations(self, action: EditAction, items: Sequence[ItemDraft] = ()) -> list[EditOperation]:
        """One operation per target, addressed by stable id so shifted labels do not matter."""
        return [EditOperation(action=action, target_id=t.pointer_id, items=list(items)) for t in self.targets]


def capture_target_set(
    document: LinearDocument,
    indices: Iterable[int],
    *,
    label: str | None = None,
) -> TargetSet:
    """Duplicate and out-of-range indices are dropped; order of first appearance is kept."""
    set_id = new_target_set_id()
    seen: set[int] = set()
    refs: list[TargetRef] = []
    for index in indices:
        if index in seen or not 0 <= index < len(document.items):
            continue
        seen.add(index)
        item = document.items[index]
        refs.append(
            TargetRef(
                id=target_ref_id_for(target_set_id=set_id, pointer_id=item.pointer.id),
                index=item.index,
                pointer_id=item.pointer.id,
                pointer_label=item.pointer.label,
                type=item.type,
                markdown=item.markdown,
                text=item.text,
            )
        )
    return TargetSet(
        id=set_id,
        document_id=document.id,
        label=label,
        created_at=dt.datetime.now(dt.timezone.utc),
        targets=tuple(refs),
    )
