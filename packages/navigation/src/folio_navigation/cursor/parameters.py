from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from folio_core.settings import settings


class CursorDirection(str, Enum):
    forward = "forward"
    backward = "backward"


class CursorKind(str, Enum):
    full_scan = "full_scan"
    keyword = "keyword"
    query = "query"


class CursorParameters(BaseModel):
    """Per-portion budget; both limits are capped by the server-wide ceilings."""

    model_config = ConfigDict(frozen=True)

    max_elements: int = Field(default=20, gt=0)
    max_bytes: int = Field(default=8_192, gt=0)
    include_content: bool = True

    @field_validator("max_elements")
    @classmethod
    def _cap_elements(cls, value: int) -> int:
        ceiling = settings.cursor_max_elements_ceiling
        if value > ceiling:
            raise ValueError(f"max_elements must be between 1 and {ceiling}")
        return value

    @field_validator("max_bytes")
    @classmethod
    def _cap_bytes(cls, value: int) -> int:
        ceiling = settings.cursor_max_bytes_ceiling
        if value > ceiling:
            raise ValueError(f"max_bytes must be between 1 and {ceiling}")
        return value
