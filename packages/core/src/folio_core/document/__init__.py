"""Linear document model, reindexer and edit engine."""

from folio_core.document.builder import compose_markdown, load_markdown
from folio_core.document.editing import EditOutcome, SkippedOperation, apply_operations
from folio_core.document.enums import EditAction, LinearItemType
from folio_core.document.models import (
    PARAGRAPH_SEPARATOR,
    Block,
    EditOperation,
    ItemDraft,
    LinearDocument,
    LinearItem,
)
from folio_core.document.pointer import PointerPath, PointerReference, SemanticPointer
from folio_core.document.reindex import reindex
from folio_core.document.session import DocumentSession
from folio_core.document.targets import TargetRef, TargetSet

__all__ = [
    "PARAGRAPH_SEPARATOR",
    "Block",
    "DocumentSession",
    "EditAction",
    "EditOperation",
    "EditOutcome",
    "ItemDraft",
    "LinearDocument",
    "LinearItem",
    "LinearItemType",
    "PointerPath",
    "PointerReference",
    "SemanticPointer",
    "SkippedOperation",
    "TargetRef",
    "TargetSet",
    "apply_operations",
    "compose_markdown",
    "load_markdown",
    "reindex",
]
