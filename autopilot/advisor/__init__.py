"""
Advisor - structured access to the generative-language collaborator.
"""
from .service import AdvisorService, is_retryable_error, parse_advisor_response
from .models import (
    AdvisorRequest,
    AdvisorResponse,
    AdvisorTask,
    Suggestion,
    UsageBudget,
)
from .prompts import PROMPT_VERSION

__all__ = [
    "AdvisorService",
    "is_retryable_error",
    "parse_advisor_response",
    "AdvisorRequest",
    "AdvisorResponse",
    "AdvisorTask",
    "Suggestion",
    "UsageBudget",
    "PROMPT_VERSION",
]
