"""
Advisor Service

Wraps the blocking LLM client for use inside the event loop: every call
runs in a worker thread under a fixed timeout, retryable failures are
retried with doubling delay, and the JSON answer is parsed into typed
suggestions. Any failure surfaces as AdvisorFailure so callers can fall
back to rule-based logic.
"""
import asyncio
import json
import logging
import time

import httpx

from autopilot.config import config
from autopilot.errors import AdvisorFailure
from autopilot.llm import LLMClient, get_llm_client
from .models import AdvisorRequest, AdvisorResponse, Suggestion, UsageBudget
from .prompts import ADVISOR_SYSTEM_PROMPT, PROMPT_VERSION, build_advisor_prompt


logger = logging.getLogger(__name__)

# Rough prompt size heuristic used for budget checks before a call
CHARS_PER_TOKEN = 4
EXPECTED_COMPLETION_TOKENS = 800

RETRYABLE_MARKERS = ("429", "resource_exhausted", "quota", "unavailable", "deadline", "overloaded")
NON_RETRYABLE_MARKERS = ("401", "403", "api key", "api_key", "permission", "unauthenticated")


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def is_retryable_error(error: Exception) -> bool:
    """Transient transport/rate-limit errors are retryable; auth and validation are not."""
    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException, httpx.ConnectError)):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status == 429 or status >= 500

    message = str(error).lower()
    if any(marker in message for marker in NON_RETRYABLE_MARKERS):
        return False
    return any(marker in message for marker in RETRYABLE_MARKERS)


def parse_advisor_response(content: str) -> tuple[str, list[Suggestion], dict, float | None]:
    """
    Parse the advisor's JSON contract.

    Returns:
        (summary, suggestions, assessment, overall confidence)

    Raises:
        AdvisorFailure: If the content is not a JSON object
    """
    cleaned = content.strip()
    if "```json" in cleaned:
        start = cleaned.find("```json") + 7
        end = cleaned.find("```", start)
        cleaned = cleaned[start:end].strip()
    elif "```" in cleaned:
        start = cleaned.find("```") + 3
        end = cleaned.find("```", start)
        cleaned = cleaned[start:end].strip()

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AdvisorFailure(f"Invalid JSON response: {e}") from e

    if not isinstance(data, dict):
        raise AdvisorFailure("Advisor response is not a JSON object")

    suggestions = []
    for item in data.get("suggestions") or []:
        if not isinstance(item, dict):
            continue
        verb = str(item.get("verb") or "").strip().lower()
        subject = str(item.get("subject") or "").strip()
        if not verb or not subject:
            logger.warning(f"Skipping suggestion without verb/subject: {item}")
            continue
        try:
            confidence = float(item.get("confidence", 0.5))
            if confidence > 1.0:
                confidence /= 100  # tolerate 0-100 scale
            expected = item.get("expected_points")
            suggestions.append(Suggestion(
                verb=verb,
                subject=subject,
                alternative=item.get("alternative") or None,
                rationale=str(item.get("rationale") or ""),
                confidence=_clamp(confidence, 0.0, 1.0),
                urgency=_clamp(float(item.get("urgency", 5.0)), 0.0, 10.0),
                expected_points=float(expected) if expected is not None else None,
            ))
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping invalid suggestion: {e}")

    overall = data.get("confidence")
    try:
        overall = _clamp(float(overall), 0.0, 1.0) if overall is not None else None
    except (TypeError, ValueError):
        overall = None

    assessment = data.get("assessment") if isinstance(data.get("assessment"), dict) else {}
    return str(data.get("summary") or ""), suggestions, assessment, overall


class AdvisorService:
    """
    Async facade over an LLM client.

    When no client can be built (missing API key) the service stays
    usable but every consult raises AdvisorFailure, which puts callers
    in rule-based degraded mode.
    """

    def __init__(
        self,
        llm_client: LLMClient | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
        max_retries: int | None = None,
        base_backoff: float | None = None,
        cost_per_1k_tokens: float | None = None,
    ):
        if llm_client is None:
            try:
                llm_client = get_llm_client()
            except ValueError as e:
                logger.warning(f"Advisor unavailable, using rule-based fallback: {e}")
                llm_client = None

        self.llm_client = llm_client
        self.model = model
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else config.llm.timeout_seconds
        self.max_retries = max_retries if max_retries is not None else config.llm.max_retries
        self.base_backoff = base_backoff if base_backoff is not None else config.llm.base_backoff
        self.cost_per_1k_tokens = (
            cost_per_1k_tokens if cost_per_1k_tokens is not None else config.llm.cost_per_1k_tokens
        )

    @property
    def available(self) -> bool:
        return self.llm_client is not None

    @property
    def identity(self) -> str:
        if self.llm_client is None:
            return "rule_based"
        return self.model or config.llm.model

    def estimate_cost(self, prompt: str) -> float:
        tokens = len(prompt) / CHARS_PER_TOKEN + EXPECTED_COMPLETION_TOKENS
        return tokens / 1000 * self.cost_per_1k_tokens

    async def consult(
        self,
        request: AdvisorRequest,
        budget: UsageBudget | None = None,
    ) -> AdvisorResponse:
        """
        Send a structured request and parse the structured answer.

        Raises:
            AdvisorFailure: Unavailable, over budget, timed out after all
                retries, non-retryable error, or unusable output
        """
        if self.llm_client is None:
            raise AdvisorFailure("Advisor is not configured")

        prompt = build_advisor_prompt(request)
        if budget is not None:
            estimate = self.estimate_cost(ADVISOR_SYSTEM_PROMPT + prompt)
            if not budget.can_afford(estimate):
                raise AdvisorFailure(
                    f"Advisor budget exhausted (estimate ${estimate:.4f}, "
                    f"remaining ${budget.remaining:.4f})"
                )

        model = request.model or self.model
        started = time.monotonic()
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                response = await asyncio.wait_for(
                    asyncio.to_thread(
                        self.llm_client.generate_json, prompt, model, ADVISOR_SYSTEM_PROMPT
                    ),
                    timeout=self.timeout_seconds,
                )
                break
            except Exception as e:
                last_error = e
                if not is_retryable_error(e):
                    logger.error(f"Advisor call failed ({request.task}): {e}")
                    raise AdvisorFailure(f"Advisor call failed: {e}", retryable=False) from e

                logger.warning(
                    f"Advisor call failed ({request.task}), attempt {attempt + 1}/{self.max_retries}: "
                    f"{type(e).__name__}: {e}"
                )
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(self.base_backoff * (2 ** attempt))
        else:
            raise AdvisorFailure(
                f"Advisor call failed after {self.max_retries} attempts: {last_error}",
                retryable=True,
            ) from last_error

        summary, suggestions, assessment, overall = parse_advisor_response(response.content)
        cost = response.total_tokens / 1000 * self.cost_per_1k_tokens
        if budget is not None:
            budget.charge(cost)

        elapsed = time.monotonic() - started
        logger.info(
            f"Advisor {request.task}: {len(suggestions)} suggestions, "
            f"{response.total_tokens} tokens, ${cost:.4f}, {elapsed:.1f}s"
        )

        return AdvisorResponse(
            summary=summary,
            suggestions=suggestions[:request.max_suggestions],
            assessment=assessment,
            confidence=overall,
            model=response.model,
            usage=response.usage,
            cost=cost,
            prompt_version=PROMPT_VERSION,
            latency_seconds=elapsed,
        )
