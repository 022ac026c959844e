"""Input errors raised by the document and cursor surfaces."""

from __future__ import annotations


class FolioError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DocumentNotFoundError(FolioError, LookupError):
    def __init__(self, document_id: str):
        super().__init__(f"Document '{document_id}' is not loaded.")
        self.document_id = document_id


class TargetSetNotFoundError(FolioError, LookupError):
    def __init__(self, target_set_id: str):
        super().__init__(f"Target set '{target_set_id}' does not exist.")
        self.target_set_id = target_set_id


class CursorNotFoundError(FolioError, LookupError):
    def __init__(self, name: str):
        super().__init__(f"Cursor '{name}' does not exist.")
        self.name = name


class CursorExistsError(FolioError, ValueError):
    def __init__(self, name: str):
        super().__init__(f"Cursor '{name}' is already registered.")
        self.name = name


class CursorInvalidatedError(FolioError):
    """The document under a cursor was edited after the cursor was created."""

    def __init__(self, name: str, document_id: str):
        super().__init__(f"Cursor '{name}' was invalidated by an edit to document '{document_id}'.")
        self.name = name
        self.document_id = document_id


class InvalidPointerError(FolioError, ValueError):
    def __init__(self, raw: str):
        super().__init__(f"Invalid semantic pointer: {raw!r}")
        self.raw = raw


class EditOperationError(FolioError):
    """Strict-mode batch failure; nothing from the batch was committed."""

    def __init__(self, message: str, *, operation_index: int):
        super().__init__(f"operation #{operation_index}: {message}")
        self.operation_index = operation_index
