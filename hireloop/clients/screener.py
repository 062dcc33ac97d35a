"""Resume screening using Claude."""

import json

import anthropic
import structlog

from hireloop.clients.composer import MODEL, parse_json_response
from hireloop.gateway.actions import ScoreResult

log = structlog.get_logger()

SYSTEM_PROMPT = "You are a screening agent evaluating a candidate for a specific job description."


def build_prompt(requirements: dict, resume_text: str) -> str:
    return f"""Return ONLY JSON with: one_liner, culture_score (1-5), technical_score (1-5), experience_score (1-5), fit_score (0-100), top_reasons[] (3 bullets), interview_focus[] (3 bullets).

JD:
{json.dumps(requirements)}

Resume:
{resume_text}"""


def _clamp(value, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


def to_score_result(data: dict) -> ScoreResult:
    """Validate and clamp a model reply into a ScoreResult."""
    return ScoreResult(
        culture_score=_clamp(data["culture_score"], 1, 5),
        technical_score=_clamp(data["technical_score"], 1, 5),
        experience_score=_clamp(data["experience_score"], 1, 5),
        fit_score=_clamp(data["fit_score"], 0, 100),
        summary=data.get("one_liner", ""),
        reasons=tuple(data.get("top_reasons") or ()),
        interview_focus=tuple(data.get("interview_focus") or ()),
    )


async def score_resume(requirements: dict, resume_text: str, api_key: str) -> ScoreResult:
    """Score a resume against role requirements."""
    client = anthropic.AsyncAnthropic(api_key=api_key)
    response = await client.messages.create(
        model=MODEL,
        max_tokens=500,
        temperature=0.2,
        system=SYSTEM_PROMPT,
        messages=[{"role": "user", "content": build_prompt(requirements, resume_text)}],
    )

    result = to_score_result(parse_json_response(response.content[0].text))
    log.info("resume_scored", fit_score=result.fit_score)
    return result
