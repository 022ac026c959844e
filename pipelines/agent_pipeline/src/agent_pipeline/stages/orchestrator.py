"""
Cursor agent orchestrator.

Answers a task about one document without ever sending the whole document to
the LLM:
- a private cursor stream hands out bounded portions
- each portion plus an evidence snapshot goes to the step collaborator
- evidence is accepted only for pointers present in the portion just served
- a separate finalizer picks the answer, which must cite accepted evidence

Run state is an immutable value threaded through the steps, so a run can be
inspected after every step (see `on_step`).
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from enum import Enum
from typing import Callable, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from agent_pipeline.llm.client import ChatMessage, LLMClient
from agent_pipeline.settings import Settings, get_settings
from agent_pipeline.stages.prompts import (
    AGENT_SYSTEM_PROMPT,
    FINALIZER_SYSTEM_PROMPT,
    PROMPT_VERSION,
    render_batch,
    render_finalizer_request,
    render_snapshot,
    render_task,
)
from agent_pipeline.stages.protocol import (
    Malformed,
    ParsedCommand,
    ParsedFinal,
    RawEvidence,
    parse_final_response,
    parse_step_response,
)
from folio_contracts.validate import FINALIZER_SCHEMA, STEP_SCHEMA, load_schema
from folio_core.document.models import LinearItem
from folio_core.document.pointer import SemanticPointer
from folio_core.document.session import DocumentSession
from folio_core.errors import FolioError
from folio_core.settings import settings as core_settings
from folio_navigation.cursor.parameters import CursorDirection, CursorKind, CursorParameters
from folio_navigation.cursor.registry import build_filter
from folio_navigation.cursor.stream import CursorStream
from folio_navigation.errors.types import ErrorType, ProtocolError, RetryPolicy
from folio_navigation.models.evidence import AgentState, EvidenceItem

logger = logging.getLogger(__name__)

P = TypeVar("P")


class StopReason(str, Enum):
    cursor_complete = "cursor_complete"
    decision_done = "decision_done"
    decision_not_found = "decision_not_found"
    max_steps = "max_steps"


class AgentCancelledError(FolioError):
    def __init__(self, run_id: str, steps_used: int):
        super().__init__(f"Agent run {run_id} cancelled after {steps_used} step(s).")
        self.run_id = run_id
        self.steps_used = steps_used


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + f"... (+{len(text) - max_length} chars)"


class AgentLimits(BaseModel):
    model_config = ConfigDict(frozen=True)

    default_max_steps: int = Field(default=128, ge=1)
    max_steps_limit: int = Field(default=512, ge=1)
    max_found: int = Field(default=20, ge=1)
    snapshot_evidence_limit: int = Field(default=5, ge=0)
    max_summary_length: int = Field(default=500, ge=1)
    max_excerpt_length: int = Field(default=1000, ge=1)
    batch_max_elements: int = Field(default=50, ge=1)
    batch_max_bytes: int = Field(default=8192, ge=1)
    max_parse_retries: int = Field(default=2, ge=0)
    log_truncate_chars: int = Field(default=1000, ge=1)

    @classmethod
    def from_settings(cls, settings: Settings) -> AgentLimits:
        return cls(
            default_max_steps=settings.agent_default_max_steps,
            max_steps_limit=settings.agent_max_steps_limit,
            max_found=settings.agent_max_found,
            snapshot_evidence_limit=settings.agent_snapshot_evidence_limit,
            max_summary_length=settings.agent_max_summary_length,
            max_excerpt_length=settings.agent_max_excerpt_length,
            batch_max_elements=settings.agent_batch_max_elements,
            batch_max_bytes=settings.agent_batch_max_bytes,
            max_parse_retries=settings.agent_max_parse_retries,
            log_truncate_chars=settings.agent_log_truncate_chars,
        )

    def clamp_steps(self, requested: int | None) -> int:
        steps = requested if requested is not None else self.default_max_steps
        return max(1, min(steps, self.max_steps_limit))

    def default_parameters(self) -> CursorParameters:
        return CursorParameters(
            max_elements=min(self.batch_max_elements, core_settings.cursor_max_elements_ceiling),
            max_bytes=min(self.batch_max_bytes, core_settings.cursor_max_bytes_ceiling),
            include_content=True,
        )


class AgentRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    task: str = Field(..., min_length=1)
    context: str | None = None
    document_id: str | None = None
    cursor_kind: CursorKind = CursorKind.full_scan
    keywords: list[str] = Field(default_factory=list)
    query: str | None = None
    include_headings: bool = True
    direction: CursorDirection = CursorDirection.forward
    start_after: str | None = None
    parameters: CursorParameters | None = None
    max_steps: int | None = None


class AgentRunState(BaseModel):
    """Everything a run knows between steps."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    after_pointer: str | None = None
    evidence: AgentState = Field(default_factory=AgentState)
    steps_used: int = 0
    malformed_steps: int = 0
    stop_reason: StopReason | None = None
    last_progress: str | None = None


class AgentResult(BaseModel):
    run_id: str
    success: bool
    stop_reason: StopReason
    reason: str | None = None
    summary: str | None = None
    semantic_pointer_from: str | None = None
    excerpt: str | None = None
    why_this: str | None = None
    evidence: list[EvidenceItem] = Field(default_factory=list)
    next_after_pointer: str | None = None
    cursor_complete: bool = False
    steps_used: int = 0
    malformed_steps: int = 0


class CursorAgentOrchestrator:
    """
    Drives one cursor over one document and mediates with the LLM collaborators.

    The step and finalizer collaborators may be the same client.
    """

    def __init__(
        self,
        session: DocumentSession,
        llm: LLMClient,
        *,
        finalizer_llm: LLMClient | None = None,
        limits: AgentLimits | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session
        self.llm = llm
        self.finalizer_llm = finalizer_llm or llm
        self.limits = limits or AgentLimits.from_settings(get_settings())
        self.retry_policy = retry_policy or RetryPolicy.for_parse_retries(self.limits.max_parse_retries)
        self.sleep = sleep

    def run(
        self,
        request: AgentRequest,
        *,
        cancel_event: threading.Event | None = None,
        on_step: Callable[[AgentRunState], None] | None = None,
    ) -> AgentResult:
        document = self.session.get_document(request.document_id)
        parameters = (request.parameters or self.limits.default_parameters()).model_copy(
            update={"include_content": True}
        )
        stream = CursorStream(
            document,
            parameters,
            item_filter=build_filter(
                request.cursor_kind,
                keywords=request.keywords,
                query=request.query,
                include_headings=request.include_headings,
            ),
            direction=request.direction,
            start_after=request.start_after,
        )
        max_steps = self.limits.clamp_steps(request.max_steps)
        state = AgentRunState(run_id=str(uuid.uuid4()), after_pointer=request.start_after)
        task_prompt = render_task(request.task, request.context)

        logger.info(
            "cursor_agent_start: run=%s, document=%s, kind=%s, max_steps=%d, filter=%s, prompt=%s",
            state.run_id,
            document.id,
            request.cursor_kind.value,
            max_steps,
            stream.filter_description,
            PROMPT_VERSION,
        )

        while state.stop_reason is None:
            _check_cancelled(cancel_event, state)
            if state.steps_used >= max_steps:
                state = state.model_copy(update={"stop_reason": StopReason.max_steps})
                break
            state = self._step(state, stream, task_prompt, max_steps)
            if on_step is not None:
                on_step(state)

        logger.info(
            "cursor_agent_stop: run=%s, reason=%s, steps=%d, evidence=%d, malformed=%d",
            state.run_id,
            state.stop_reason.value if state.stop_reason else None,
            state.steps_used,
            len(state.evidence.evidence),
            state.malformed_steps,
        )
        if state.stop_reason == StopReason.max_steps:
            exhausted = ProtocolError(
                error_type=ErrorType.CONTEXT_EXHAUSTION,
                stage="agent_loop",
                run_id=state.run_id,
                message=f"step ceiling {max_steps} reached before the cursor was drained",
            )
            logger.info(exhausted.to_log_message())

        _check_cancelled(cancel_event, state)
        return self._finalize(request, state, cursor_complete=stream.is_complete)

    def _step(self, state: AgentRunState, stream: CursorStream, task_prompt: str, max_steps: int) -> AgentRunState:
        first_batch = stream.portions_served == 0
        portion = stream.next_portion()
        if portion is None or (not portion.items and not portion.has_more):
            return state.model_copy(update={"stop_reason": StopReason.cursor_complete})

        step = state.steps_used + 1
        logger.debug(
            "%s: step=%d, count=%d, has_more=%s",
            "cursor_batch" if portion.has_more else "cursor_batch_complete",
            step,
            len(portion.items),
            portion.has_more,
        )

        recent = state.evidence.pointers[-self.limits.snapshot_evidence_limit :] if self.limits.snapshot_evidence_limit else []
        messages = [
            ChatMessage("user", task_prompt),
            ChatMessage("user", render_snapshot(len(state.evidence.evidence), recent)),
            ChatMessage("user", render_batch(portion.items, first_batch=first_batch, has_more=portion.has_more)),
        ]
        parsed = self._call_with_retries(
            self.llm,
            system=AGENT_SYSTEM_PROMPT,
            messages=messages,
            schema_name=STEP_SCHEMA,
            parse=parse_step_response,
            stage="agent_step",
            run_id=state.run_id,
            step=step,
        )

        updates: dict[str, object] = {
            "steps_used": step,
            "after_pointer": portion.items[-1].pointer.compact if portion.items else state.after_pointer,
        }

        decision = "continue"
        if isinstance(parsed, Malformed):
            updates["malformed_steps"] = state.malformed_steps + 1
            logger.warning("cursor_agent_step_skipped: run=%s, step=%d", state.run_id, step)
        else:
            decision = parsed.decision
            accepted = self._ground_evidence(parsed, portion.items, state, step)
            updates["evidence"] = state.evidence.with_evidence(accepted, self.limits.max_found)
            if parsed.progress:
                updates["last_progress"] = truncate(parsed.progress, self.limits.max_summary_length)
            logger.debug(
                "cursor_agent_parsed: step=%d, decision=%s, proposed=%d, accepted=%d",
                step,
                decision,
                len(parsed.new_evidence),
                len(accepted),
            )

        if decision == "done":
            updates["stop_reason"] = StopReason.decision_done
        elif decision == "not_found":
            updates["stop_reason"] = StopReason.decision_not_found
        elif not portion.has_more:
            updates["stop_reason"] = StopReason.cursor_complete
        elif step >= max_steps:
            updates["stop_reason"] = StopReason.max_steps
        return state.model_copy(update=updates)

    def _call_with_retries(
        self,
        client: LLMClient,
        *,
        system: str,
        messages: Sequence[ChatMessage],
        schema_name: str,
        parse: Callable[[str], P | Malformed],
        stage: str,
        run_id: str,
        step: int | None,
    ) -> P | Malformed:
        schema = load_schema(schema_name)
        retry_count = 0
        while True:
            response = client.complete_json(system=system, messages=messages, schema=schema)
            logger.debug(
                "cursor_agent_raw: stage=%s, step=%s, len=%d, snippet=%s",
                stage,
                step,
                len(response.raw_text),
                truncate(response.raw_text, self.limits.log_truncate_chars),
            )
            parsed = parse(response.raw_text)
            if not isinstance(parsed, Malformed):
                return parsed

            error = ProtocolError(
                error_type=ErrorType.SCHEMA_VIOLATION,
                stage=stage,
                run_id=run_id,
                step=step,
                message=parsed.reason,
                details={"response": truncate(parsed.raw_text, self.limits.log_truncate_chars)},
                retry_count=retry_count,
            )
            logger.warning(error.to_log_message())
            if not self.retry_policy.can_retry(ErrorType.SCHEMA_VIOLATION, retry_count):
                return parsed
            backoff = self.retry_policy.get_backoff_seconds(retry_count)
            if backoff > 0:
                self.sleep(backoff)
            retry_count += 1

    def _ground_evidence(
        self,
        command: ParsedCommand,
        items: Sequence[LinearItem],
        state: AgentRunState,
        step: int,
    ) -> list[EvidenceItem]:
        accepted: list[EvidenceItem] = []
        for raw in command.new_evidence:
            item = _resolve_in_batch(raw, items)
            if item is None:
                error = ProtocolError(
                    error_type=ErrorType.GROUNDING_FAILURE,
                    stage="agent_step",
                    run_id=state.run_id,
                    step=step,
                    message=f"evidence pointer {raw.pointer!r} is not in the served batch",
                )
                logger.warning(error.to_log_message())
                continue
            excerpt = raw.excerpt if raw.excerpt and raw.excerpt.strip() else item.markdown
            accepted.append(
                EvidenceItem(
                    pointer=item.pointer.compact,
                    excerpt=truncate(excerpt, self.limits.max_excerpt_length),
                    reason=raw.reason,
                )
            )
        return accepted

    def _finalize(self, request: AgentRequest, state: AgentRunState, *, cursor_complete: bool) -> AgentResult:
        if state.stop_reason is None:
            raise ValueError(f"run {state.run_id} finalized without a stop reason")
        evidence = list(state.evidence.evidence)
        base = dict(
            run_id=state.run_id,
            stop_reason=state.stop_reason,
            evidence=evidence,
            next_after_pointer=state.after_pointer,
            cursor_complete=cursor_complete,
            steps_used=state.steps_used,
            malformed_steps=state.malformed_steps,
        )

        if not evidence:
            return AgentResult(
                success=False,
                reason="no_evidence",
                summary=state.last_progress or "No matching content was found.",
                **base,
            )

        messages = [
            ChatMessage(
                "user",
                render_finalizer_request(
                    task=request.task,
                    context=request.context,
                    evidence=evidence,
                    cursor_complete=cursor_complete,
                    steps_used=state.steps_used,
                    after_pointer=state.after_pointer,
                ),
            )
        ]
        parsed = self._call_with_retries(
            self.finalizer_llm,
            system=FINALIZER_SYSTEM_PROMPT,
            messages=messages,
            schema_name=FINALIZER_SCHEMA,
            parse=parse_final_response,
            stage="finalizer",
            run_id=state.run_id,
            step=None,
        )

        fallback_summary = state.last_progress or f"{len(evidence)} evidence item(s) collected."
        if isinstance(parsed, Malformed):
            return AgentResult(success=False, reason="finalizer_malformed", summary=fallback_summary, **base)

        summary = truncate(parsed.summary, self.limits.max_summary_length) if parsed.summary else None
        if parsed.decision != "success":
            return AgentResult(
                success=False,
                reason="finalizer_not_found",
                summary=summary or fallback_summary,
                why_this=parsed.why_this,
                **base,
            )

        chosen = _match_evidence(parsed, evidence)
        if chosen is None:
            error = ProtocolError(
                error_type=ErrorType.GROUNDING_FAILURE,
                stage="finalizer",
                run_id=state.run_id,
                message=f"final pointer {parsed.semantic_pointer_from!r} is not among the evidence",
            )
            logger.warning(error.to_log_message())
            return AgentResult(
                success=False,
                reason="finalizer_pointer_not_grounded",
                summary=summary or fallback_summary,
                **base,
            )

        excerpt = parsed.excerpt if parsed.excerpt else chosen.excerpt
        return AgentResult(
            success=True,
            summary=summary,
            semantic_pointer_from=chosen.pointer,
            excerpt=truncate(excerpt, self.limits.max_excerpt_length),
            why_this=parsed.why_this,
            **base,
        )


def _check_cancelled(cancel_event: threading.Event | None, state: AgentRunState) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.info(
            ProtocolError(
                error_type=ErrorType.CANCELLED,
                stage="agent_loop",
                run_id=state.run_id,
                step=state.steps_used,
                message="cancellation requested",
            ).to_log_message()
        )
        raise AgentCancelledError(state.run_id, state.steps_used)


def _resolve_in_batch(raw: RawEvidence, items: Sequence[LinearItem]) -> LinearItem | None:
    wanted = raw.pointer.strip().casefold()
    for item in items:
        if item.pointer.compact.casefold() == wanted:
            return item
    reference = SemanticPointer.parse_reference(raw.pointer)
    if reference is None:
        return None
    for item in items:
        if reference.matches(item.pointer):
            return item
    return None


def _match_evidence(final: ParsedFinal, evidence: Sequence[EvidenceItem]) -> EvidenceItem | None:
    if not final.semantic_pointer_from:
        return None
    wanted = final.semantic_pointer_from.casefold()
    for item in evidence:
        if item.pointer.casefold() == wanted:
            return item
    return None
