from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field


class EvidenceItem(BaseModel):
    """A grounded fact: `pointer` is always the compact "<id>:<label>" form."""

    model_config = ConfigDict(frozen=True)

    pointer: str
    excerpt: str = ""
    reason: str | None = None


class AgentState(BaseModel):
    """
    Evidence accumulated over one agent run.

    Ordered, deduplicated by pointer (case-insensitive), and capped: once full,
    new evidence is refused and nothing already accepted is evicted.
    """

    model_config = ConfigDict(frozen=True)

    evidence: tuple[EvidenceItem, ...] = Field(default_factory=tuple)

    @property
    def pointers(self) -> list[str]:
        return [item.pointer for item in self.evidence]

    def has_pointer(self, pointer: str) -> bool:
        wanted = pointer.strip().casefold()
        return any(item.pointer.casefold() == wanted for item in self.evidence)

    def with_evidence(self, items: Iterable[EvidenceItem], max_found: int) -> AgentState:
        merged = list(self.evidence)
        seen = {item.pointer.casefold() for item in merged}
        for item in items:
            if len(merged) >= max_found:
                break
            key = item.pointer.casefold()
            if key in seen:
                continue
            seen.add(key)
            merged.append(item)
        if len(merged) == len(self.evidence):
            return self
        return AgentState(evidence=tuple(merged))
