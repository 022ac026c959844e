"""
Prompt rendering for the cursor agent.

Per-step messages are compact JSON payloads; the system prompts carry the
response contract.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

from folio_core.document.models import LinearItem
from folio_navigation.models.evidence import EvidenceItem

PROMPT_VERSION = "cursor_agent_v1"

AGENT_SYSTEM_PROMPT = """\
You read a Markdown document one batch at a time and collect evidence for a task.
You never see the whole document. Each batch lists items with a "pointer" that
identifies the item; only pointers from the CURRENT batch may be cited.

Reply with exactly one JSON object:
{
  "decision": "continue|done|not_found",
  "newEvidence": [
    {"pointer": "<pointer from this batch>", "excerpt": "<verbatim text>", "reason": "<why it matters>"}
  ],
  "progress": "<one short sentence>"
}

Rules:
- Default to decision="continue".
- Cite only items that directly support the task; copy the excerpt from the item.
- If the task asks whether something exists and this batch contains it, you may answer "done".
- If the task depends on order or counts ("first", "third", "last"), keep a running
  tally with snapshot.evidenceCount and only answer "done" once the tally is reached.
  For "last" tasks keep scanning until lastBatch=true.
- decision="not_found" only when hasMoreBatches=false, snapshot.evidenceCount=0 and
  nothing in this batch qualifies.
- No prose outside the JSON object.
"""

FINALIZER_SYSTEM_PROMPT = """\
You are given a task and the evidence collected while reading a document.
Pick the single evidence item that best answers the task.

Reply with exactly one JSON object:
{
  "decision": "success|not_found",
  "semanticPointerFrom": "<pointer of the chosen evidence item>",
  "excerpt": "<verbatim excerpt>",
  "whyThis": "<why this item answers the task>",
  "summary": "<short answer>"
}

Rules:
- semanticPointerFrom MUST be copied from the evidence list when decision="success".
- Do not use ordinal wording ("first", "later") unless the inputs guarantee ordering and completeness.
- If nothing fits, return decision="not_found" with a summary explaining why.
"""


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def render_task(goal: str, context: str | None) -> str:
    return _dumps({"type": "task", "orderingGuaranteed": True, "goal": goal, "context": context})


def render_snapshot(evidence_count: int, recent_pointers: Sequence[str]) -> str:
    return _dumps(
        {
            "type": "snapshot",
            "evidenceCount": evidence_count,
            "recentEvidencePointers": list(recent_pointers),
        }
    )


def render_batch(items: Sequence[LinearItem], *, first_batch: bool, has_more: bool) -> str:
    return _dumps(
        {
            "type": "batch",
            "firstBatch": first_batch,
            "lastBatch": not has_more,
            "hasMoreBatches": has_more,
            "items": [
                {"pointer": item.pointer.compact, "itemType": item.type.value, "markdown": item.markdown}
                for item in items
            ],
        }
    )


def render_finalizer_request(
    *,
    task: str,
    context: str | None,
    evidence: Sequence[EvidenceItem],
    cursor_complete: bool,
    steps_used: int,
    after_pointer: str | None,
) -> str:
    evidence_json = json.dumps([e.model_dump() for e in evidence], ensure_ascii=False, indent=2)
    lines = [
        "Task description:",
        task,
    ]
    if context:
        lines += ["", "Context:", context]
    lines += [
        "",
        "Evidence (JSON):",
        evidence_json,
        "",
        f"cursorComplete: {str(cursor_complete).lower()}",
        f"stepsUsed: {steps_used}",
        f"afterPointer: {after_pointer or '<none>'}",
        "Return a single JSON object per schema.",
    ]
    return "\n".join(lines)
