from __future__ import annotations

import json
from functools import lru_cache
from importlib.resources import files
from typing import Any

import jsonschema

from folio_contracts import schemas as contracts_schemas

STEP_SCHEMA = "cursor_agent_step"
FINALIZER_SCHEMA = "cursor_agent_finalizer"


class ValidationError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@lru_cache(maxsize=None)
def load_schema(name: str) -> dict[str, Any]:
    resource = files(contracts_schemas).joinpath(f"{name}.json")
    return json.loads(resource.read_text(encoding="utf-8"))


def validate_json(instance: dict[str, Any], schema: dict[str, Any]) -> None:
    try:
        jsonschema.validate(instance=instance, schema=schema)
    except jsonschema.ValidationError as exc:
        raise ValidationError(exc.message) from exc
