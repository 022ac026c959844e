"""Cursor agent stages: prompts, reply parsing and the step loop."""

from agent_pipeline.stages.orchestrator import (
    AgentCancelledError,
    AgentLimits,
    AgentRequest,
    AgentResult,
    AgentRunState,
    CursorAgentOrchestrator,
    StopReason,
)

__all__ = [
    "AgentCancelledError",
    "AgentLimits",
    "AgentRequest",
    "AgentResult",
    "AgentRunState",
    "CursorAgentOrchestrator",
    "StopReason",
]
