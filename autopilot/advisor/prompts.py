"""
Advisor prompts.

Every task shares one response contract so the parser never has to
interpret free text.
"""
import json

from .models import AdvisorRequest


PROMPT_VERSION = "v1.2"


ADVISOR_SYSTEM_PROMPT = """You are a fantasy football decision advisor working for an automated team manager.

Your answers are consumed by software, not read by a person first. Be concrete:
name players exactly as they appear in the data, and only propose actions that
the roster data supports. If the data is insufficient, say so in the summary and
return an empty suggestions list rather than guessing.

## Response contract
Respond ONLY with one JSON object:
{
    "summary": "2-4 sentence human-readable explanation",
    "confidence": 0.0-1.0,
    "suggestions": [
        {
            "verb": "start | bench | add | drop | trade | hold | monitor",
            "subject": "exact player name",
            "alternative": "replacement player name or null",
            "rationale": "one sentence grounded in the data",
            "confidence": 0.0-1.0,
            "urgency": 0-10,
            "expected_points": number or null
        }
    ],
    "assessment": {}
}
"""


TASK_INSTRUCTIONS = {
    "lineup_analysis": (
        "Review the roster and expert rankings for this week. Suggest the lineup "
        "changes (start/bench) and waiver moves (add/drop) with the highest expected "
        "points gain. Use `assessment` for {\"projected_points\": number}."
    ),
    "urgent_event": (
        "A time-sensitive event affects players on the rosters below. Propose the "
        "immediate roster actions needed before the deadline, most urgent first. Use "
        "`assessment` for {\"estimated_impact\": points at stake}."
    ),
    "pattern_assessment": (
        "Judge whether the recurring decision pattern below is a genuine edge or noise. "
        "Leave `suggestions` empty. Use `assessment` for {\"confidence\": 0-100, "
        "\"description\": one sentence, \"caveats\": [strings]}."
    ),
    "phase_presets": (
        "Refresh the phase-specific strategy presets using the cross-season patterns "
        "below. Leave `suggestions` empty. Use `assessment` for {\"presets\": {phase: "
        "{\"primary_focus\": str, \"risk_tolerance\": \"conservative|balanced|aggressive\", "
        "\"decision_weights\": {name: weight}, \"key_tactics\": [str]}}}."
    ),
}


def build_advisor_prompt(request: AdvisorRequest) -> str:
    """Render a request into the user-turn text; ADVISOR_SYSTEM_PROMPT is sent separately."""
    instructions = TASK_INSTRUCTIONS.get(request.task, "")
    capabilities = ", ".join(request.capabilities) if request.capabilities else "none"

    return f"""## Task: {request.task}
{instructions}
Return at most {request.max_suggestions} suggestions.

## Context
{request.context}

## Available actions
{capabilities}

## Data
```json
{json.dumps(request.data, ensure_ascii=False, indent=2, default=str)}
```
"""
