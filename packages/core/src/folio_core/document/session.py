from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Sequence

from folio_core.document.builder import load_markdown
from folio_core.document.editing import EditOutcome, apply_operations
from folio_core.document.models import EditOperation, LinearDocument, LinearItem
from folio_core.document.pointer import SemanticPointer
from folio_core.document.targets import TargetSet, capture_target_set
from folio_core.errors import DocumentNotFoundError, InvalidPointerError, TargetSetNotFoundError
from folio_core.hashing import short_digest

logger = logging.getLogger(__name__)

EditListener = Callable[[LinearDocument], None]


class DocumentSession:
    """
    In-process home for loaded documents and their target sets.

    Not thread-safe: one writer per document. Listeners are told about every
    committed edit so readers holding positions into the old sequence can
    invalidate themselves.
    """

    def __init__(self) -> None:
        self._documents: dict[str, LinearDocument] = {}
        self._target_sets: dict[str, TargetSet] = {}
        self._listeners: list[EditListener] = []
        self.default_document_id: str | None = None

    def add_edit_listener(self, listener: EditListener) -> None:
        self._listeners.append(listener)

    # Documents

    def load_document(
        self,
        markdown: str,
        document_id: str | None = None,
        *,
        make_default: bool = False,
    ) -> LinearDocument:
        document = load_markdown(markdown, document_id)
        replaced = document.id in self._documents
        self._documents[document.id] = document
        if make_default or self.default_document_id is None:
            self.default_document_id = document.id
        if replaced:
            # Pointer ids restart with the new content; old target sets would hit unrelated items.
            self._drop_target_sets(document.id)
            self._notify(document)
        logger.info(
            "document_loaded: id=%s, items=%d, sha=%s",
            document.id,
            len(document.items),
            short_digest(document.source_text),
        )
        return document

    def load_file(self, path: Path, document_id: str | None = None, *, make_default: bool = False) -> LinearDocument:
        return self.load_document(
            path.read_text(encoding="utf-8"),
            document_id or path.stem,
            make_default=make_default,
        )

    def get_document(self, document_id: str | None = None) -> LinearDocument:
        resolved = document_id or self.default_document_id
        if resolved is None or resolved not in self._documents:
            raise DocumentNotFoundError(resolved or "<default>")
        return self._documents[resolved]

    def get_items(self, document_id: str | None = None) -> tuple[LinearItem, ...]:
        return self.get_document(document_id).items

    def resolve_pointer(self, document_id: str | None, raw: str) -> LinearItem | None:
        """Item addressed by `raw` in the current state, or None; unparsable input raises."""
        reference = SemanticPointer.parse_reference(raw)
        if reference is None:
            raise InvalidPointerError(raw)
        return self.get_document(document_id).find(reference)

    def list_documents(self) -> list[str]:
        return sorted(self._documents)

    def unload_document(self, document_id: str) -> None:
        if document_id not in self._documents:
            raise DocumentNotFoundError(document_id)
        del self._documents[document_id]
        self._drop_target_sets(document_id)
        if self.default_document_id == document_id:
            self.default_document_id = None

    def apply_operations(
        self,
        document_id: str | None,
        operations: Sequence[EditOperation],
        *,
        strict: bool = False,
    ) -> EditOutcome:
        document = self.get_document(document_id)
        outcome = apply_operations(document, operations, strict=strict)
        if outcome.document is not document:
            self._documents[document.id] = outcome.document
            self._notify(outcome.document)
        return outcome

    def write_markdown(self, document_id: str | None = None, path: Path | None = None) -> str:
        text = self.get_document(document_id).source_text
        if path is not None:
            path.write_text(text + "\n", encoding="utf-8")
        return text

    def _notify(self, document: LinearDocument) -> None:
        for listener in self._listeners:
            listener(document)

    # Target sets

    def create_target_set(
        self,
        document_id: str | None,
        indices: Iterable[int],
        *,
        label: str | None = None,
    ) -> TargetSet:
        document = self.get_document(document_id)
        target_set = capture_target_set(document, indices, label=label)
        self._target_sets[target_set.id] = target_set
        logger.info("target_set_created: id=%s, document=%s, targets=%d", target_set.id, document.id, len(target_set.targets))
        return target_set

    def get_target_set(self, target_set_id: str) -> TargetSet:
        try:
            return self._target_sets[target_set_id]
        except KeyError:
            raise TargetSetNotFoundError(target_set_id) from None

    def list_target_sets(self, document_id: str | None = None) -> list[TargetSet]:
        sets = list(self._target_sets.values())
        if document_id is not None:
            sets = [s for s in sets if s.document_id == document_id]
        return sorted(sets, key=lambda s: s.created_at)

    def delete_target_set(self, target_set_id: str) -> None:
        if self._target_sets.pop(target_set_id, None) is None:
            raise TargetSetNotFoundError(target_set_id)

    def _drop_target_sets(self, document_id: str) -> None:
        for set_id in [s.id for s in self._target_sets.values() if s.document_id == document_id]:
            del self._target_sets[set_id]
