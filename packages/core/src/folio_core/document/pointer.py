from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import NamedTuple

_LABEL_RE = re.compile(r"^(?:(?P<numbers>\d+(?:\.\d+)*)(?:\.?p(?P<para>\d+))?|p(?P<only>\d+))$")
_COMPACT_RE = re.compile(r"^(?P<id>\d+):(?P<label>.+)$")


class PointerPath(NamedTuple):
    """Heading numbers plus an optional paragraph ordinal parsed from a label."""

    numbers: tuple[int, ...]
    paragraph: int | None

    @classmethod
    def parse(cls, label: str | None) -> PointerPath | None:
        if label is None:
            return None
        match = _LABEL_RE.match(normalize_label(label))
        if match is None:
            return None
        if match.group("only") is not None:
            return cls((), int(match.group("only")))
        numbers = tuple(int(part) for part in match.group("numbers").split("."))
        para = match.group("para")
        return cls(numbers, int(para) if para is not None else None)


def normalize_label(label: str) -> str:
    """
    Canonical label spelling:
    - "P3" -> "p3"
    - "1.2p3" -> "1.2.p3"
    """
    normalized = label.strip().replace("P", "p")
    idx = normalized.find("p")
    if idx > 0 and normalized[idx - 1] != ".":
        normalized = normalized[:idx] + "." + normalized[idx:]
    return normalized


@dataclass(frozen=True)
class SemanticPointer:
    """
    Address of one linear item.

    `id` is monotonic and never reused within a document's lifetime; `label` is
    derived from heading numbering and shifts when the structure changes.
    Equality and hashing use `id` only.
    """

    id: int
    label: str = field(compare=False)

    @property
    def compact(self) -> str:
        return f"{self.id}:{self.label}"

    @property
    def path(self) -> PointerPath | None:
        return PointerPath.parse(self.label)

    @property
    def level(self) -> int:
        path = self.path
        return len(path.numbers) if path else 0

    @property
    def has_paragraph(self) -> bool:
        path = self.path
        return path is not None and path.paragraph is not None

    def belongs_to(self, chapter: SemanticPointer) -> bool:
        """True when this pointer sits under the heading addressed by `chapter`."""
        a = chapter.path
        b = self.path
        if a is None or not a.numbers:
            return False
        if a.paragraph is not None:
            # paragraphs are not containers
            return a == b
        if b is None or len(a.numbers) > len(b.numbers):
            return False
        return b.numbers[: len(a.numbers)] == a.numbers

    def is_close_to(self, other: SemanticPointer, tolerance: int) -> bool:
        """Same section and paragraph ordinals within `tolerance` of each other."""
        if tolerance < 0:
            return False
        a = self.path
        b = other.path
        if a is None or b is None or a.paragraph is None or b.paragraph is None:
            return False
        if a.numbers != b.numbers:
            return False
        return abs(a.paragraph - b.paragraph) <= tolerance

    def to_dict(self) -> dict[str, int | str]:
        return {"id": self.id, "label": self.label}

    def __str__(self) -> str:
        return self.compact

    @staticmethod
    def parse_reference(raw: str | None) -> PointerReference | None:
        """
        Parse a caller/LLM supplied pointer string.

        Accepted shapes: "12:1.2.p3", "1.2.p3", "1.2p3", '{"id": 12, "label": "1.2.p3"}'.
        Returns None when nothing usable is present.
        """
        if raw is None:
            return None
        text = raw.strip()
        if not text:
            return None

        if text.startswith("{"):
            try:
                obj = json.loads(text)
            except json.JSONDecodeError:
                return None
            if not isinstance(obj, dict):
                return None
            raw_id = obj.get("id")
            raw_label = obj.get("label")
            pointer_id = raw_id if isinstance(raw_id, int) and not isinstance(raw_id, bool) else None
            label = normalize_label(raw_label) if isinstance(raw_label, str) and raw_label.strip() else None
            if label is not None and PointerPath.parse(label) is None:
                return None
            if pointer_id is None and label is None:
                return None
            return PointerReference(pointer_id, label)

        match = _COMPACT_RE.match(text)
        if match:
            label = normalize_label(match.group("label"))
            if PointerPath.parse(label) is None:
                return None
            return PointerReference(int(match.group("id")), label)

        label = normalize_label(text)
        if PointerPath.parse(label) is None:
            return None
        return PointerReference(None, label)


class PointerReference(NamedTuple):
    """A parsed, not yet resolved pointer: either part may be missing."""

    id: int | None
    label: str | None

    def matches(self, pointer: SemanticPointer) -> bool:
        if self.id is not None and self.id != pointer.id:
            return False
        if self.label is not None and self.label.casefold() != pointer.label.casefold():
            return False
        return self.id is not None or self.label is not None


def heading_label(counters: list[int]) -> str:
    return ".".join(str(n) for n in counters)
