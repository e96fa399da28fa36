"""
LLM client layer for the advisor.

Each provider client makes exactly one blocking request per call. Retry,
timeout and budget policy belong to AdvisorService, which runs these
calls in a worker thread.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from autopilot.config import config


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: dict[str, int] | None = None
    finish_reason: str | None = None
    metadata: dict = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        if not self.usage:
            return 0
        total = self.usage.get("total_tokens")
        if total is None:
            total = self.usage.get("prompt_tokens", 0) + self.usage.get("completion_tokens", 0)
        return int(total)

    @property
    def truncated(self) -> bool:
        return (self.finish_reason or "").lower() in ("length", "max_tokens")


def token_usage(prompt: int | None, completion: int | None, total: int | None = None) -> dict[str, int]:
    """Normalize provider token counts; missing counts become zero."""
    prompt = int(prompt or 0)
    completion = int(completion or 0)
    return {
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "total_tokens": int(total) if total else prompt + completion,
    }


class LLMClient(ABC):
    """One provider endpoint the advisor can talk to."""

    @abstractmethod
    def generate(
        self,
        prompt: str,
        model: str | None = None,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        """
        Run a single completion.

        Args:
            prompt: User-turn text
            model: Model override; the client's default otherwise
            system_prompt: Standing instructions sent ahead of the prompt
            temperature: Sampling temperature
            max_tokens: Completion token cap
            json_mode: Ask the provider for a JSON object response

        Raises:
            Provider/transport errors unchanged, so the caller can decide
            whether they are retryable.
        """

    def generate_json(
        self,
        prompt: str,
        model: str | None = None,
        system_prompt: str | None = None,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        # Advisor answers are parsed by code; keep sampling tight
        return self.generate(
            prompt,
            model=model,
            system_prompt=system_prompt,
            temperature=0.2,
            max_tokens=max_tokens,
            json_mode=True,
        )


def get_llm_client(provider: str | None = None) -> LLMClient:
    """
    Build the client for the configured provider.

    Raises:
        ValueError: Unknown provider, or the provider is missing its
            credentials/model setting
    """
    provider = provider or config.llm.provider

    if provider == "gemini":
        from .gemini_client import GeminiClient
        return GeminiClient()
    if provider == "openai":
        from .openai_client import OpenAIClient
        return OpenAIClient()
    raise ValueError(f"Unsupported LLM provider: {provider}")
