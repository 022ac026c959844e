from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from folio_core.document.models import LinearDocument
from folio_core.document.session import DocumentSession
from folio_core.errors import CursorExistsError, CursorInvalidatedError, CursorNotFoundError
from folio_navigation.cursor.parameters import CursorDirection, CursorKind, CursorParameters
from folio_navigation.cursor.stream import (
    CursorFilter,
    CursorPortion,
    CursorStream,
    FullScanFilter,
    KeywordFilter,
    QueryFilter,
)

logger = logging.getLogger(__name__)


def build_filter(
    kind: CursorKind,
    *,
    keywords: Sequence[str] = (),
    query: str | None = None,
    include_headings: bool = True,
) -> CursorFilter:
    if kind == CursorKind.keyword:
        return KeywordFilter.from_keywords(keywords, include_headings=include_headings)
    if kind == CursorKind.query:
        return QueryFilter(query or "", include_headings=include_headings)
    return FullScanFilter(include_headings=include_headings)


@dataclass
class _Registration:
    stream: CursorStream
    kind: CursorKind
    invalidated: bool = False


class CursorRegistry:
    """
    Named cursors over the documents of one session.

    A committed edit to a document invalidates every open cursor over it; the
    next read raises `CursorInvalidatedError`.
    """

    def __init__(self, session: DocumentSession):
        self.session = session
        self._cursors: dict[str, _Registration] = {}
        session.add_edit_listener(self._on_document_edited)

    def create_cursor(
        self,
        name: str,
        kind: CursorKind = CursorKind.full_scan,
        parameters: CursorParameters | None = None,
        *,
        document_id: str | None = None,
        keywords: Sequence[str] = (),
        query: str | None = None,
        include_headings: bool = True,
        direction: CursorDirection = CursorDirection.forward,
        start_after: str | None = None,
        replace: bool = False,
    ) -> str:
        if name in self._cursors and not replace:
            raise CursorExistsError(name)
        document = self.session.get_document(document_id)
        stream = CursorStream(
            document,
            parameters or CursorParameters(),
            item_filter=build_filter(kind, keywords=keywords, query=query, include_headings=include_headings),
            direction=direction,
            start_after=start_after,
        )
        self._cursors[name] = _Registration(stream=stream, kind=kind)
        logger.info(
            "cursor_created: name=%s, kind=%s, document=%s, direction=%s, filter=%s",
            name,
            kind.value,
            document.id,
            direction.value,
            stream.filter_description,
        )
        return name

    def _get(self, name: str) -> _Registration:
        try:
            registration = self._cursors[name]
        except KeyError:
            raise CursorNotFoundError(name) from None
        if registration.invalidated:
            raise CursorInvalidatedError(name, registration.stream.document.id)
        return registration

    def get_stream(self, name: str) -> CursorStream:
        return self._get(name).stream

    def next_portion(self, name: str) -> CursorPortion | None:
        return self._get(name).stream.next_portion()

    def describe(self, name: str) -> dict[str, object]:
        registration = self._get(name)
        stream = registration.stream
        return {
            "name": name,
            "kind": registration.kind.value,
            "documentId": stream.document.id,
            "direction": stream.direction.value,
            "position": stream.position,
            "isComplete": stream.is_complete,
            "filterDescription": stream.filter_description,
        }

    def list_cursors(self) -> list[str]:
        return sorted(self._cursors)

    def close_cursor(self, name: str) -> None:
        if self._cursors.pop(name, None) is None:
            raise CursorNotFoundError(name)

    def _on_document_edited(self, document: LinearDocument) -> None:
        for name, registration in self._cursors.items():
            if registration.stream.document.id == document.id and not registration.invalidated:
                registration.invalidated = True
                logger.info("cursor_invalidated: name=%s, document=%s", name, document.id)
