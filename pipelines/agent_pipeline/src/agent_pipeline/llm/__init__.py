from agent_pipeline.llm.client import ChatMessage, LLMClient, LLMResponse
from agent_pipeline.llm.openai_compat import LLMTransportError, OpenAICompatClient

__all__ = ["ChatMessage", "LLMClient", "LLMResponse", "LLMTransportError", "OpenAICompatClient"]
