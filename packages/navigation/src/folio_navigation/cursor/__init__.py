"""Bounded, filtered cursor streams over linear documents."""

from folio_navigation.cursor.parameters import CursorDirection, CursorKind, CursorParameters
from folio_navigation.cursor.registry import CursorRegistry, build_filter
from folio_navigation.cursor.stream import (
    CursorFilter,
    CursorPortion,
    CursorStream,
    FullScanFilter,
    KeywordFilter,
    QueryFilter,
    item_size,
    keyword_variants,
)

__all__ = [
    "CursorDirection",
    "CursorFilter",
    "CursorKind",
    "CursorParameters",
    "CursorPortion",
    "CursorRegistry",
    "CursorStream",
    "FullScanFilter",
    "KeywordFilter",
    "QueryFilter",
    "build_filter",
    "item_size",
    "keyword_variants",
]
