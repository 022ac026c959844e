from __future__ import annotations

import uuid

NAMESPACE_TARGET_REF = uuid.UUID("5b0c1d8e-3f7a-4c21-9a64-2e8f0b7d4c13")


def new_document_id() -> str:
    return str(uuid.uuid4())


def new_target_set_id() -> str:
    return str(uuid.uuid4())


def target_ref_id_for(*, target_set_id: str, pointer_id: int) -> str:
    return str(uuid.uuid5(NAMESPACE_TARGET_REF, f"{target_set_id}:{pointer_id}"))
