"""Configuration loading and models."""

import os
import re
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel


class SequenceConfig(BaseModel):
    max_steps: int = 3
    base_interval_hours: float = 48.0
    multiplier: float = 1.5
    max_interval_hours: float = 336.0

    retry_base_minutes: float = 30.0
    retry_multiplier: float = 2.0
    retry_max_minutes: float = 720.0
    max_consecutive_failures: int = 3
    claim_lease_minutes: float = 15.0  # how long a claimed send blocks other cycles


class RateLimitConfig(BaseModel):
    max_sends_per_role: int = 10
    max_sourcing_calls_per_role: int = 1
    max_sends_per_tenant: Optional[int] = None
    leads_per_search: Optional[int] = None  # per-call lead ceiling; None requests the whole deficit


class OrchestratorConfig(BaseModel):
    max_concurrent_roles: int = 4
    cycle_timeout_seconds: Optional[float] = None
    tone: str = "professional"


class Credentials(BaseModel):
    google_cse_id: str = ""
    google_cse_key: str = ""
    apollo_api_key: str = ""
    anthropic_api_key: str = ""
    composio_api_key: str = ""
    calendly_token: str = ""
    calendly_event_type: str = ""


class GatewayConfig(BaseModel):
    mode: Literal["mock", "live"] = "mock"
    mock_actions: list[str] = []  # forced to mock even in live mode
    default_timeout_seconds: float = 30.0
    timeouts: dict[str, float] = {
        "search_leads": 20.0,
        "enrich_leads": 60.0,
        "score_resume": 60.0,
        "draft_outreach": 60.0,
        "send_outreach": 30.0,
        "create_meeting": 15.0,
    }
    credentials: Credentials = Credentials()

    def timeout_for(self, kind: str) -> float:
        return self.timeouts.get(kind, self.default_timeout_seconds)


class GmailConfig(BaseModel):
    from_name: str = "HireLoop Recruiting"
    connected_account_id: str = ""  # Composio connected account ID


class NotificationConfig(BaseModel):
    slack_webhook_url: str = ""
    notify_on_degraded: bool = True


class Settings(BaseModel):
    sequence: SequenceConfig = SequenceConfig()
    rate_limits: RateLimitConfig = RateLimitConfig()
    orchestrator: OrchestratorConfig = OrchestratorConfig()
    gateway: GatewayConfig = GatewayConfig()
    gmail: GmailConfig = GmailConfig()
    notifications: NotificationConfig = NotificationConfig()


DEFAULT_CONFIG_PATH = Path("config")

# Original feature flag names mapped onto gateway action kinds
FEATURE_FLAG_ACTIONS = {
    "mock_xray_search": "search_leads",
    "mock_enrich": "enrich_leads",
    "mock_screen_resume": "score_resume",
    "mock_outreach": "draft_outreach",
    "mock_send": "send_outreach",
    "mock_schedule": "create_meeting",
}


def credentials_from_env() -> Credentials:
    """Read collaborator credentials from environment variables."""
    return Credentials(
        google_cse_id=os.environ.get("GOOGLE_CSE_ID", ""),
        google_cse_key=os.environ.get("GOOGLE_CSE_KEY", ""),
        apollo_api_key=os.environ.get("APOLLO_API_KEY", ""),
        anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
        composio_api_key=os.environ.get("COMPOSIO_API_KEY", ""),
        calendly_token=os.environ.get("CALENDLY_TOKEN", ""),
        calendly_event_type=os.environ.get("CALENDLY_EVENT_TYPE", ""),
    )


def parse_feature_flags(raw: str) -> list[str]:
    """Translate a comma separated FEATURE_FLAGS value into action kinds."""
    kinds = []
    for flag in raw.split(","):
        kind = FEATURE_FLAG_ACTIONS.get(flag.strip())
        if kind and kind not in kinds:
            kinds.append(kind)
    return kinds


def load_settings(config_path: Path = DEFAULT_CONFIG_PATH) -> Settings:
    """Load settings from YAML file, then apply environment overrides."""
    settings_file = config_path / "settings.yaml"

    data = {}
    if settings_file.exists():
        with open(settings_file) as f:
            data = yaml.safe_load(f) or {}

    settings = Settings(**data)
    settings.gateway.credentials = credentials_from_env()

    env_mode = os.environ.get("HIRELOOP_GATEWAY_MODE", "")
    if env_mode in ("mock", "live"):
        settings.gateway.mode = env_mode

    for kind in parse_feature_flags(os.environ.get("FEATURE_FLAGS", "")):
        if kind not in settings.gateway.mock_actions:
            settings.gateway.mock_actions.append(kind)

    # Check env var for connected_account_id if not set in YAML
    if not settings.gmail.connected_account_id:
        env_account_id = os.environ.get("COMPOSIO_CONNECTED_ACCOUNT_ID", "")
        if env_account_id:
            settings.gmail.connected_account_id = env_account_id

    if not settings.notifications.slack_webhook_url:
        settings.notifications.slack_webhook_url = os.environ.get("SLACK_WEBHOOK_URL", "")

    return settings


def render_template(template: str, variables: dict) -> str:
    """Render a template with variable substitution."""
    result = template
    for key, value in variables.items():
        result = result.replace(f"{{{{{key}}}}}", str(value) if value else "")
    return result


class MessageTemplate(BaseModel):
    """Outreach template for one sequence step."""
    name: str
    step: int
    subject: str
    body: str


def load_templates(config_path: Path = DEFAULT_CONFIG_PATH) -> list[MessageTemplate]:
    """Load and parse templates.md into list of MessageTemplate objects."""
    templates_file = config_path / "templates.md"

    if not templates_file.exists():
        return []

    content = templates_file.read_text()

    # Split on frontmatter delimiters (---)
    sections = re.split(r'^---\s*$', content, flags=re.MULTILINE)

    templates = []
    # Process pairs of (frontmatter, body)
    i = 1
    while i < len(sections) - 1:
        frontmatter = sections[i].strip()
        body = sections[i + 1].strip()
        i += 2

        if not frontmatter:
            continue

        meta = yaml.safe_load(frontmatter)
        if not meta or "template" not in meta:
            continue

        lines = body.split('\n')
        subject = ""
        body_start = 0
        for idx, line in enumerate(lines):
            if line.startswith('subject:'):
                subject = line.replace('subject:', '').strip()
                body_start = idx + 1
                break

        templates.append(MessageTemplate(
            name=meta["template"],
            step=meta.get("step", 1),
            subject=subject,
            body='\n'.join(lines[body_start:]).strip(),
        ))

    return templates


def get_template_for_step(config_path: Path, step: int) -> Optional[MessageTemplate]:
    """Get the template for a sequence step, or None if none is defined."""
    for t in load_templates(config_path):
        if t.step == step:
            return t
    return None
