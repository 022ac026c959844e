"""
Total parsing of collaborator replies.

Replies are free text expected to contain one JSON object. Parsing never
raises: it returns a parsed variant or `Malformed` with the reason.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal, Union

from folio_contracts.extract import iter_json_objects
from folio_contracts.validate import FINALIZER_SCHEMA, STEP_SCHEMA, ValidationError, load_schema, validate_json
from folio_navigation.errors.types import ErrorType

logger = logging.getLogger(__name__)

StepDecision = Literal["continue", "done", "not_found"]
FinalDecision = Literal["success", "not_found"]

_STEP_DECISIONS = {"continue", "done", "not_found"}


@dataclass(frozen=True)
class RawEvidence:
    """Evidence exactly as the collaborator proposed it; not yet grounded."""

    pointer: str
    excerpt: str | None
    reason: str | None


@dataclass(frozen=True)
class ParsedCommand:
    decision: StepDecision
    new_evidence: tuple[RawEvidence, ...] = ()
    progress: str | None = None
    objects_found: int = 1
    dropped_evidence: int = 0


@dataclass(frozen=True)
class ParsedFinal:
    decision: FinalDecision
    semantic_pointer_from: str | None = None
    excerpt: str | None = None
    why_this: str | None = None
    summary: str | None = None


@dataclass(frozen=True)
class Malformed:
    reason: str
    raw_text: str


StepParse = Union[ParsedCommand, Malformed]
FinalParse = Union[ParsedFinal, Malformed]


def _string(obj: dict[str, Any], *keys: str) -> str | None:
    """First non-blank string among `keys`."""
    for key in keys:
        value = obj.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _first_valid(raw_text: str, schema_name: str) -> tuple[dict[str, Any] | None, int, str]:
    schema = load_schema(schema_name)
    objects = list(iter_json_objects(raw_text))
    if not objects:
        return None, 0, "no JSON object in response"

    problem = ""
    for obj in objects:
        if isinstance(obj.get("decision"), str):
            obj = {**obj, "decision": obj["decision"].strip().lower()}
        try:
            validate_json(obj, schema)
        except ValidationError as exc:
            problem = problem or exc.message
            continue
        return obj, len(objects), ""
    return None, len(objects), f"schema violation: {problem}"


def parse_step_response(raw_text: str) -> StepParse:
    obj, found, problem = _first_valid(raw_text, STEP_SCHEMA)
    if obj is None:
        return Malformed(reason=problem, raw_text=raw_text)
    if found > 1:
        logger.warning("agent_response_multiple_objects: count=%d, using=first_valid", found)

    decision = obj["decision"]
    if decision not in _STEP_DECISIONS:
        logger.info("agent_decision_unknown: decision=%r, treated_as=continue", decision)
        decision = "continue"

    evidence: list[RawEvidence] = []
    dropped = 0
    for position, entry in enumerate(obj.get("newEvidence") or []):
        pointer = _string(entry, "pointer") if isinstance(entry, dict) else None
        if pointer is None:
            dropped += 1
            logger.warning(
                "[%s] agent_step: evidence #%d dropped, no pointer: %r",
                ErrorType.SCHEMA_VIOLATION.value,
                position,
                entry,
            )
            continue
        evidence.append(
            RawEvidence(
                pointer=pointer.strip(),
                excerpt=_string(entry, "excerpt", "markdown", "text"),
                reason=_string(entry, "reason"),
            )
        )

    return ParsedCommand(
        decision=decision,
        new_evidence=tuple(evidence),
        progress=_string(obj, "progress"),
        objects_found=found,
        dropped_evidence=dropped,
    )


def parse_final_response(raw_text: str) -> FinalParse:
    obj, found, problem = _first_valid(raw_text, FINALIZER_SCHEMA)
    if obj is None:
        return Malformed(reason=problem, raw_text=raw_text)
    if found > 1:
        logger.warning("finalizer_response_multiple_objects: count=%d, using=first_valid", found)
    pointer = _string(obj, "semanticPointerFrom")
    return ParsedFinal(
        decision=obj["decision"],
        semantic_pointer_from=pointer.strip() if pointer else None,
        excerpt=_string(obj, "excerpt", "markdown"),
        why_this=_string(obj, "whyThis"),
        summary=_string(obj, "summary"),
    )
