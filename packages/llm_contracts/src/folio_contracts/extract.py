from __future__ import annotations

import json
from typing import Any, Iterator


def _loads_object(candidate: str) -> dict[str, Any] | None:
    # strict=False lets raw control characters through inside strings.
    try:
        obj = json.loads(candidate, strict=False)
    except json.JSONDecodeError:
        return None
    return obj if isinstance(obj, dict) else None


def _balanced_end(text: str, start: int) -> int | None:
    """Index just past the `}` closing the object opened at `start`, ignoring braces in strings."""
    depth = 0
    in_str = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_str:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def iter_json_objects(text: str) -> Iterator[dict[str, Any]]:
    """
    Yield every top-level JSON object embedded in free text, in order.

    Providers wrap JSON in prose and code fences; both are skipped. A `{` that
    does not open a parsable object is passed over and scanning resumes after it;
    an opener that is never closed ends the scan.
    """
    text = text.strip()
    if not text:
        return

    whole = _loads_object(text)
    if whole is not None:
        yield whole
        return

    pos = text.find("{")
    while pos != -1:
        end = _balanced_end(text, pos)
        if end is None:
            # Nothing after an unclosed opener can close either.
            return
        obj = _loads_object(text[pos:end])
        if obj is not None:
            yield obj
            pos = text.find("{", end)
        else:
            pos = text.find("{", pos + 1)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """First parsable JSON object in `text`, else None."""
    return next(iter_json_objects(text), None)
