from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Sequence


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class LLMResponse:
    raw_text: str
    json: dict[str, Any] | None
    model_name: str
    prompt_tokens: int | None = None
    completion_tokens: int | None = None


class LLMClient(Protocol):
    def complete_json(
        self,
        *,
        system: str,
        messages: Sequence[ChatMessage],
        schema: dict[str, Any] | None = None,
    ) -> LLMResponse: ...
