"""
Batch edit engine.

Contract:
- Targets are resolved against the document as it was when the batch started.
- Operations run in order against a working copy of the block sequence; a later
  operation on the same original target sees the effect of earlier ones.
- Unresolvable operations are skipped and reported, or fail the whole batch in
  strict mode.
- Pointers, indices and source text are rederived once, after the last operation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple, Sequence

from folio_core.document.builder import block_from_draft, build_document
from folio_core.document.enums import EditAction
from folio_core.document.models import PARAGRAPH_SEPARATOR, Block, EditOperation, ItemDraft, LinearDocument, LinearItem
from folio_core.document.pointer import PointerReference, SemanticPointer, normalize_label
from folio_core.errors import EditOperationError

logger = logging.getLogger(__name__)

_NEEDS_ITEMS = {EditAction.replace, EditAction.insert_before, EditAction.insert_after, EditAction.split}


@dataclass(frozen=True)
class _Entry:
    block: Block
    # Pointer ids from the batch's starting snapshot this block descends from.
    origins: frozenset[int]


class SkippedOperation(NamedTuple):
    operation_index: int
    operation: EditOperation
    reason: str


class EditOutcome(NamedTuple):
    document: LinearDocument
    applied: int
    skipped: tuple[SkippedOperation, ...]


class _Unresolved(Exception):
    pass


class _BatchEditor:
    def __init__(self, document: LinearDocument):
        self.snapshot = document
        self.entries: list[_Entry] = [_Entry(b, frozenset({b.pointer_id})) for b in document.blocks]
        self.next_id = document.next_pointer_id

    def _fresh_block(self, draft: ItemDraft) -> Block:
        block = block_from_draft(draft, self.next_id)
        self.next_id += 1
        return block

    def _fresh_merged(self, parts: Sequence[Block]) -> Block:
        first = parts[0]
        markdown = PARAGRAPH_SEPARATOR.join(p.markdown for p in parts if p.markdown.strip())
        text = PARAGRAPH_SEPARATOR.join(p.text for p in parts if p.text.strip())
        block = Block(pointer_id=self.next_id, type=first.type, markdown=markdown, text=text, level=first.level)
        self.next_id += 1
        return block

    def resolve(self, op: EditOperation) -> LinearItem:
        items = self.snapshot.items
        if op.target_id is not None:
            item = self.snapshot.find_by_id(op.target_id)
            if item is None:
                raise _Unresolved(f"no item with pointer id {op.target_id}")
            return item
        if op.target_pointer is not None:
            item = _find_by_pointer(items, op.target_pointer)
            if item is None:
                raise _Unresolved(f"no item with pointer {op.target_pointer!r}")
            return item
        index = op.target_index
        if index is None:
            raise _Unresolved("no target given")
        if not 0 <= index < len(items):
            raise _Unresolved(f"index {index} out of range (0..{len(items) - 1})")
        return items[index]

    def span_of(self, origin: int) -> tuple[int, int]:
        positions = [i for i, entry in enumerate(self.entries) if origin in entry.origins]
        if not positions:
            raise _Unresolved(f"target {origin} was removed earlier in the batch")
        return positions[0], positions[-1] + 1

    def apply(self, op: EditOperation) -> None:
        if op.action in _NEEDS_ITEMS and not op.items:
            raise _Unresolved(f"{op.action.value} requires at least one item")

        target = self.resolve(op)
        origin = target.pointer.id
        start, end = self.span_of(origin)

        if op.action in {EditAction.replace, EditAction.split}:
            origins = frozenset().union(*(e.origins for e in self.entries[start:end]))
            replacement = [_Entry(self._fresh_block(d), origins) for d in op.items]
            self.entries[start:end] = replacement
        elif op.action == EditAction.insert_before:
            self.entries[start:start] = [_Entry(self._fresh_block(d), frozenset()) for d in op.items]
        elif op.action == EditAction.insert_after:
            self.entries[end:end] = [_Entry(self._fresh_block(d), frozenset()) for d in op.items]
        elif op.action == EditAction.remove:
            del self.entries[start:end]
        elif op.action == EditAction.merge_with_next:
            if end >= len(self.entries):
                raise _Unresolved("no next item to merge with")
            self._merge(start, end + 1, op.items)
        elif op.action == EditAction.merge_with_previous:
            if start == 0:
                raise _Unresolved("no previous item to merge with")
            self._merge(start - 1, end, op.items)
        else:  # pragma: no cover
            raise _Unresolved(f"unsupported action {op.action!r}")

    def _merge(self, start: int, end: int, drafts: Sequence[ItemDraft]) -> None:
        involved = self.entries[start:end]
        origins = frozenset().union(*(e.origins for e in involved))
        if drafts:
            merged = [_Entry(self._fresh_block(d), origins) for d in drafts]
        else:
            merged = [_Entry(self._fresh_merged([e.block for e in involved]), origins)]
        self.entries[start:end] = merged


def _find_by_pointer(items: Sequence[LinearItem], raw: str) -> LinearItem | None:
    reference = SemanticPointer.parse_reference(raw)
    if reference is not None and reference.label is not None:
        # Labels are what callers see; a compact form is matched on its label.
        reference = PointerReference(None, reference.label)
    wanted = normalize_label(raw).casefold()
    for item in items:
        if reference is not None and reference.matches(item.pointer):
            return item
        if item.pointer.label.casefold() == wanted:
            return item
    return None


def apply_operations(
    document: LinearDocument,
    operations: Sequence[EditOperation],
    *,
    strict: bool = False,
) -> EditOutcome:
    """
    Apply a batch and return the reindexed document.

    The input document is never modified. When nothing was applied the input
    document is returned as is.
    """
    editor = _BatchEditor(document)
    applied = 0
    skipped: list[SkippedOperation] = []

    for idx, op in enumerate(operations):
        try:
            editor.apply(op)
        except _Unresolved as exc:
            if strict:
                raise EditOperationError(str(exc), operation_index=idx) from None
            logger.warning(
                "edit_skipped: document=%s, op=%d, action=%s, target=%s, reason=%s",
                document.id,
                idx,
                op.action.value,
                op.describe_target(),
                exc,
            )
            skipped.append(SkippedOperation(idx, op, str(exc)))
            continue
        applied += 1

    if applied == 0:
        return EditOutcome(document, 0, tuple(skipped))

    updated = build_document(
        [entry.block for entry in editor.entries],
        document_id=document.id,
        next_pointer_id=editor.next_id,
        generation=document.generation + 1,
    )
    logger.info(
        "edit_batch: document=%s, applied=%d, skipped=%d, items=%d",
        document.id,
        applied,
        len(skipped),
        len(updated.items),
    )
    return EditOutcome(updated, applied, tuple(skipped))
