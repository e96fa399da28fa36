# LLM clients package

from .client import LLMClient, LLMResponse, get_llm_client

__all__ = ["LLMClient", "LLMResponse", "get_llm_client"]
