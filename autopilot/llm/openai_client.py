"""
Advisor backend for OpenAI-compatible chat endpoints.

Works against OpenAI itself or a self-hosted server exposing
/chat/completions (vLLM, Ollama, ...). Configured with OPENAI_BASE_URL,
OPENAI_API_KEY and OPENAI_MODEL.
"""
import logging

import httpx

from autopilot.config import config
from .client import LLMClient, LLMResponse, token_usage


logger = logging.getLogger(__name__)


class OpenAIClient(LLMClient):

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        default_model: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.default_model = default_model or config.llm.openai_model
        if not self.default_model:
            raise ValueError("OPENAI_MODEL is not set (e.g. gpt-4o-mini)")

        base_url = (base_url or config.llm.openai_base_url).rstrip("/")
        headers = {"Content-Type": "application/json"}
        key = api_key or config.llm.openai_api_key
        if key:
            headers["Authorization"] = f"Bearer {key}"

        self._http = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=timeout or config.llm.timeout_seconds,
            transport=transport,
        )
        logger.info(f"Advisor endpoint {base_url} (model={self.default_model})")

    def generate(
        self,
        prompt: str,
        model: str | None = None,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        body: dict = {
            "model": model or self.default_model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        resp = self._http.post("/chat/completions", json=body)
        resp.raise_for_status()
        data = resp.json()

        choice = (data.get("choices") or [{}])[0]
        usage = data.get("usage") or None
        result = LLMResponse(
            content=(choice.get("message") or {}).get("content") or "",
            model=data.get("model", body["model"]),
            usage=token_usage(
                usage.get("prompt_tokens"),
                usage.get("completion_tokens"),
                usage.get("total_tokens"),
            ) if usage else None,
            finish_reason=choice.get("finish_reason"),
            metadata={"id": data.get("id")},
        )
        if result.truncated:
            logger.warning(f"Completion cut at max_tokens={max_tokens} ({result.model})")
        return result

    def close(self) -> None:
        self._http.close()
