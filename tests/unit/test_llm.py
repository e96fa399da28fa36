"""
Tests for the advisor LLM backends.
"""
import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import pytest

from autopilot.llm import LLMResponse, get_llm_client
from autopilot.llm.client import token_usage
from autopilot.llm.gemini_client import GeminiClient
from autopilot.llm.openai_client import OpenAIClient


class TestLLMResponse:

    def test_total_tokens_falls_back_to_sum(self):
        response = LLMResponse(content="{}", model="m", usage={"prompt_tokens": 70, "completion_tokens": 30})
        assert response.total_tokens == 100

    def test_no_usage(self):
        assert LLMResponse(content="{}", model="m").total_tokens == 0

    @pytest.mark.parametrize("reason,truncated", [
        ("length", True),
        ("MAX_TOKENS", True),
        ("stop", False),
        (None, False),
    ])
    def test_truncated(self, reason, truncated):
        assert LLMResponse(content="", model="m", finish_reason=reason).truncated is truncated

    def test_token_usage_normalizes_missing_counts(self):
        assert token_usage(None, 12) == {"prompt_tokens": 0, "completion_tokens": 12, "total_tokens": 12}


class TestGetLLMClient:

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unsupported LLM provider: claude"):
            get_llm_client("claude")


# ─── OpenAI-compatible ─────────────────────────────────────


def chat_completion(content: str, finish_reason: str = "stop") -> dict:
    return {
        "id": "chatcmpl-1",
        "model": "gpt-4o-mini-2024-07-18",
        "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": finish_reason}],
        "usage": {"prompt_tokens": 400, "completion_tokens": 120, "total_tokens": 520},
    }


class TestOpenAIClient:

    def make_client(self, handler) -> OpenAIClient:
        return OpenAIClient(
            base_url="https://llm.test/v1/",
            api_key="sk-test",
            default_model="gpt-4o-mini",
            transport=httpx.MockTransport(handler),
        )

    def test_sends_system_and_user_messages(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=chat_completion('{"summary": "ok"}'))

        client = self.make_client(handler)
        response = client.generate_json("## Task: lineup_analysis", system_prompt="You are an advisor")
        client.close()

        request = seen[0]
        body = json.loads(request.content)
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert body["messages"] == [
            {"role": "system", "content": "You are an advisor"},
            {"role": "user", "content": "## Task: lineup_analysis"},
        ]
        assert body["response_format"] == {"type": "json_object"}
        assert body["model"] == "gpt-4o-mini"
        assert response.content == '{"summary": "ok"}'
        assert response.model == "gpt-4o-mini-2024-07-18"
        assert response.total_tokens == 520
        assert response.metadata["id"] == "chatcmpl-1"

    def test_plain_prompt_has_no_system_message(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=chat_completion("hello"))

        self.make_client(handler).generate("hi", model="llama3", temperature=0.1)

        assert seen[0]["messages"] == [{"role": "user", "content": "hi"}]
        assert seen[0]["model"] == "llama3"
        assert "response_format" not in seen[0]

    def test_truncated_completion_is_flagged(self):
        client = self.make_client(lambda request: httpx.Response(200, json=chat_completion("{", "length")))
        assert client.generate("hi").truncated is True

    def test_http_errors_propagate(self):
        client = self.make_client(lambda request: httpx.Response(429, json={"error": "rate limited"}))

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            client.generate("hi")

        assert exc_info.value.response.status_code == 429

    def test_requires_model(self):
        with patch("autopilot.llm.openai_client.config") as cfg:
            cfg.llm.openai_model = None
            with pytest.raises(ValueError, match="OPENAI_MODEL"):
                OpenAIClient(base_url="https://llm.test/v1")


# ─── Gemini ────────────────────────────────────────────────


class BlockedResponse:
    candidates = [SimpleNamespace(finish_reason=SimpleNamespace(name="SAFETY"))]
    usage_metadata = None

    @property
    def text(self):
        raise ValueError("response.text requires a valid Part")


class TestGeminiClient:

    def test_requires_api_key(self):
        with patch("autopilot.llm.gemini_client.config") as cfg:
            cfg.llm.gemini_api_key = None
            with pytest.raises(ValueError, match="GEMINI_API_KEY"):
                GeminiClient()

    @patch("autopilot.llm.gemini_client.genai")
    def test_generate_json(self, mock_genai):
        mock_genai.GenerativeModel.return_value.generate_content.return_value = SimpleNamespace(
            text='{"summary": "ok"}',
            candidates=[SimpleNamespace(finish_reason=SimpleNamespace(name="STOP"))],
            usage_metadata=SimpleNamespace(
                prompt_token_count=300, candidates_token_count=80, total_token_count=380,
            ),
        )

        client = GeminiClient(api_key="key", default_model="gemini-2.5-flash")
        response = client.generate_json("## Task: lineup_analysis", system_prompt="You are an advisor")

        mock_genai.configure.assert_called_once_with(api_key="key")
        mock_genai.GenerativeModel.assert_called_once_with(
            "gemini-2.5-flash", system_instruction="You are an advisor",
        )
        config_kwargs = mock_genai.GenerationConfig.call_args.kwargs
        assert config_kwargs["response_mime_type"] == "application/json"
        assert config_kwargs["temperature"] == 0.2
        assert response.content == '{"summary": "ok"}'
        assert response.finish_reason == "STOP"
        assert response.usage == {"prompt_tokens": 300, "completion_tokens": 80, "total_tokens": 380}

    @patch("autopilot.llm.gemini_client.genai")
    def test_blocked_response_raises(self, mock_genai):
        mock_genai.GenerativeModel.return_value.generate_content.return_value = BlockedResponse()

        client = GeminiClient(api_key="key", default_model="gemini-2.5-flash")

        with pytest.raises(RuntimeError, match="finish_reason=SAFETY"):
            client.generate("hi")

    @patch("autopilot.llm.gemini_client.genai")
    def test_provider_errors_propagate(self, mock_genai):
        mock_genai.GenerativeModel.return_value.generate_content.side_effect = Exception(
            "429 Resource has been exhausted (e.g. check quota)."
        )

        client = GeminiClient(api_key="key", default_model="gemini-2.5-flash")

        with pytest.raises(Exception, match="429"):
            client.generate("hi")
        assert mock_genai.GenerativeModel.return_value.generate_content.call_count == 1
