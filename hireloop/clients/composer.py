"""Outreach composition using Claude."""

import json
from pathlib import Path
from typing import Optional

import anthropic
import structlog

from hireloop.core.config import DEFAULT_CONFIG_PATH, get_template_for_step, render_template
from hireloop.gateway.actions import DraftedMessage, DraftOutreach

log = structlog.get_logger()

MODEL = "claude-opus-4-5-20251101"


def parse_json_response(response_text: str) -> dict:
    """Parse a JSON object out of a model reply, tolerating code fences."""
    text = response_text.strip()
    if text.startswith("```"):
        text = text.split("```")[1]
        if text.startswith("json"):
            text = text[4:]
        text = text.strip()
    return json.loads(text)


def build_system_prompt(tone: str) -> str:
    """Build the system prompt for Claude."""
    return f"""You write concise, human outreach emails to passive candidates on behalf of a recruiter.

## Rules:
- 120-160 words, one clear call to action: a short call, booked via a calendar link
- Tone: {tone}, specific, respectful
- Reference something concrete from the candidate's profile and tie it to the role
- Never invent facts about the candidate or the company
- No em-dashes
- No salary figures unless the role requirements state them

## Output format:
Return a JSON object with exactly two fields:
- "subject": a 3-7 word subject line
- "body": the full email body, starting with the greeting
"""


def build_user_message(action: DraftOutreach) -> str:
    candidate = {k: v for k, v in action.candidate.items() if v}
    return f"""Write the first outreach email for this candidate.

Role: {action.role_title or "Unknown"}
Role requirements:
{json.dumps(action.requirements, indent=2)}

Candidate profile:
{json.dumps(candidate, indent=2)}

Remember: Return valid JSON with "subject" and "body" fields."""


def render_followup(action: DraftOutreach, config_path: Path) -> Optional[DraftedMessage]:
    """Render the configured follow-up template for the action's step."""
    template = get_template_for_step(config_path, action.step)
    if template is None:
        return None

    name = action.candidate.get("name") or ""
    variables = {
        "first_name": name.split(" ")[0] if name else "there",
        "role_title": action.role_title,
        "original_subject": action.previous_subject or "",
    }
    subject = render_template(template.subject, variables) or f"re: {action.previous_subject}"
    return DraftedMessage(subject=subject, body=render_template(template.body, variables))


async def draft_outreach(
    action: DraftOutreach,
    api_key: str,
    config_path: Path = DEFAULT_CONFIG_PATH,
) -> DraftedMessage:
    """Draft the message for one sequence step.

    Step 1 is written by Claude; follow-ups come from templates.md.
    """
    if action.step > 1:
        followup = render_followup(action, config_path)
        if followup is None:
            raise ValueError(f"No follow-up template defined for step {action.step}")
        return followup

    client = anthropic.AsyncAnthropic(api_key=api_key)
    response = await client.messages.create(
        model=MODEL,
        max_tokens=800,
        system=build_system_prompt(action.tone),
        messages=[{"role": "user", "content": build_user_message(action)}],
    )

    result = parse_json_response(response.content[0].text)
    subject = result.get("subject") or "quick question"
    body = result.get("body", "")
    if not body:
        raise ValueError("Claude returned an empty body")

    log.info("outreach_drafted", candidate=action.candidate.get("name"), subject=subject)
    return DraftedMessage(subject=subject, body=body)
