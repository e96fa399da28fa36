"""
Gemini advisor backend (google-generativeai).
"""
import logging

import google.generativeai as genai

from autopilot.config import config
from .client import LLMClient, LLMResponse, token_usage


logger = logging.getLogger(__name__)


def _finish_reason(response) -> str | None:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    reason = getattr(candidates[0], "finish_reason", None)
    if reason is None:
        return None
    return getattr(reason, "name", str(reason))


def _usage(response) -> dict[str, int] | None:
    meta = getattr(response, "usage_metadata", None)
    if meta is None:
        return None
    return token_usage(
        getattr(meta, "prompt_token_count", 0),
        getattr(meta, "candidates_token_count", 0),
        getattr(meta, "total_token_count", 0),
    )


class GeminiClient(LLMClient):

    def __init__(self, api_key: str | None = None, default_model: str | None = None):
        api_key = api_key or config.llm.gemini_api_key
        if not api_key:
            raise ValueError("GEMINI_API_KEY is not set")

        genai.configure(api_key=api_key)
        self.default_model = default_model or config.llm.model

    def generate(
        self,
        prompt: str,
        model: str | None = None,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        model_name = model or self.default_model
        gemini_model = genai.GenerativeModel(model_name, system_instruction=system_prompt)

        response = gemini_model.generate_content(
            prompt,
            generation_config=genai.GenerationConfig(
                temperature=temperature,
                max_output_tokens=max_tokens,
                response_mime_type="application/json" if json_mode else "text/plain",
            ),
        )

        finish_reason = _finish_reason(response)
        try:
            content = response.text
        except ValueError as e:
            # Safety block or empty candidate list; nothing to parse
            raise RuntimeError(f"Gemini returned no text (finish_reason={finish_reason})") from e

        result = LLMResponse(
            content=content,
            model=model_name,
            usage=_usage(response),
            finish_reason=finish_reason,
        )
        if result.truncated:
            logger.warning(f"Gemini output hit max_output_tokens={max_tokens} ({model_name})")
        return result
