from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

import httpx

from agent_pipeline.llm.client import ChatMessage, LLMResponse
from agent_pipeline.settings import get_settings
from folio_contracts.extract import extract_json_object

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


class LLMTransportError(RuntimeError):
    pass


def _default_base_url() -> str:
    return get_settings().llm_base_url


def _default_model() -> str:
    return get_settings().llm_model


def _default_timeout() -> float:
    return get_settings().llm_timeout_s


@dataclass
class OpenAICompatClient:
    """
    Client for any OpenAI-compatible chat completions endpoint (OpenAI, Ollama, vLLM, LM Studio).

    - POST {base_url}/chat/completions
    - Authorization: Bearer <key> when a key is configured
    - timeouts and HTTP 429 are retried with linear backoff; other 4xx/5xx raise immediately
    """

    api_key: str | None = None
    base_url: str = field(default_factory=_default_base_url)
    model: str = field(default_factory=_default_model)
    timeout_s: float = field(default_factory=_default_timeout)
    http2: bool = False
    transport: httpx.BaseTransport | None = None
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    _client: httpx.Client | None = field(default=None, init=False, repr=False)

    def _make_client(self) -> httpx.Client:
        timeout = httpx.Timeout(self.timeout_s, connect=self.timeout_s, read=self.timeout_s, write=self.timeout_s)
        if self.transport is not None:
            return httpx.Client(timeout=timeout, transport=self.transport)
        return httpx.Client(timeout=timeout, http2=self.http2)

    def __enter__(self) -> "OpenAICompatClient":
        if self._client is None:
            self._client = self._make_client()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    @property
    def url(self) -> str:
        base = self.base_url.rstrip("/")
        # Callers may configure either the API prefix or the full endpoint.
        return base if base.endswith("/chat/completions") else base + "/chat/completions"

    def complete_json(
        self,
        *,
        system: str,
        messages: Sequence[ChatMessage],
        schema: dict[str, Any] | None = None,
    ) -> LLMResponse:
        """
        Returns best-effort JSON. JSON mode is requested when enabled; either way the
        first JSON object in the reply is parsed out and the caller validates it.
        """
        settings = get_settings()
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "system", "content": system}, *(m.to_dict() for m in messages)],
            "temperature": settings.llm_temperature,
            "max_tokens": settings.llm_max_tokens,
        }
        if settings.llm_response_format_json:
            payload["response_format"] = {"type": "json_object"}

        client = self._client
        owns_client = client is None
        if client is None:
            client = self._make_client()
        try:
            resp = self._post_with_retries(client, headers, payload)
        finally:
            if owns_client:
                client.close()

        data = resp.json()
        choice0 = (data.get("choices") or [{}])[0]
        message = choice0.get("message") or {}
        content = message.get("content") or ""
        reasoning = message.get("reasoning_content") or ""
        # Prefer `content`, but fall back if the provider left it empty.
        chosen_text = content or reasoning

        usage = data.get("usage") or {}
        model_name = data.get("model") or self.model
        logger.info(
            "llm_call: model=%s, prompt_tokens=%s, completion_tokens=%s, chars=%d",
            model_name,
            usage.get("prompt_tokens"),
            usage.get("completion_tokens"),
            len(chosen_text),
        )
        return LLMResponse(
            raw_text=chosen_text,
            json=extract_json_object(chosen_text),
            model_name=model_name,
            prompt_tokens=usage.get("prompt_tokens"),
            completion_tokens=usage.get("completion_tokens"),
        )

    def _post_with_retries(
        self,
        client: httpx.Client,
        headers: dict[str, str],
        payload: dict[str, Any],
    ) -> httpx.Response:
        url = self.url
        last_problem = "no attempt made"
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                resp = client.post(url, headers=headers, json=payload)
            except (httpx.ReadTimeout, httpx.ConnectTimeout) as exc:
                last_problem = f"timeout: {exc}"
                logger.warning("llm_retry: attempt=%d, reason=timeout", attempt)
                self.sleep(1.5 * attempt)
                continue
            except httpx.TransportError as exc:
                raise LLMTransportError(f"LLM request to {url} failed: {exc}") from exc

            if resp.status_code == 429:
                last_problem = "rate limited (429)"
                logger.warning("llm_retry: attempt=%d, reason=rate_limited", attempt)
                self.sleep(1.5 * attempt)
                continue

            if resp.status_code >= 400:
                raise LLMTransportError(f"LLM error {resp.status_code} from {url}: {resp.text[:500]}")
            return resp

        raise LLMTransportError(f"LLM request to {url} failed after {MAX_ATTEMPTS} attempts: {last_problem}")
