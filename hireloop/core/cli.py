"""Command-line interface for the HireLoop pipeline."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import click
import structlog

from hireloop.core.config import DEFAULT_CONFIG_PATH, Settings, load_settings
from hireloop.core.db import DEFAULT_DB_PATH
from hireloop.core.errors import HireLoopError, InvalidInput
from hireloop.core.models import CandidateStatus, RoleStatus
from hireloop.gateway.gateway import ActionGateway
from hireloop.pipeline.export import export_shortlist
from hireloop.pipeline.importer import import_candidates
from hireloop.pipeline.ingestor import EventIngestor, IngestResult
from hireloop.pipeline.ledger import CandidateLedger
from hireloop.pipeline.orchestrator import Orchestrator
from hireloop.pipeline.screening import schedule_interview, screen_candidate
from hireloop.services.slack_notifier import SlackNotifier

# Configure structlog for CLI output
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer()
    ]
)

log = structlog.get_logger()


def open_ledger(db_path: str) -> CandidateLedger:
    ledger = CandidateLedger(Path(db_path))
    ledger.init()
    return ledger


def load_cli_settings(config_path: str, mode: Optional[str] = None) -> Settings:
    settings = load_settings(Path(config_path))
    if mode:
        settings.gateway.mode = mode
    return settings


def build_gateway(config_path: str, settings: Optional[Settings] = None) -> ActionGateway:
    settings = settings or load_cli_settings(config_path)
    return ActionGateway(settings.gateway, settings.gmail, config_path=Path(config_path))


@click.group(invoke_without_command=True)
@click.pass_context
def cli(ctx):
    """HireLoop - autonomous recruiting pipeline.

    Just run 'python run.py' to run one orchestration cycle.
    """
    if ctx.invoked_subcommand is None:
        ctx.invoke(cycle)


@cli.command()
@click.option("--db", "db_path", type=click.Path(), default=str(DEFAULT_DB_PATH),
              help="Database path")
@click.option("--config", "config_path", type=click.Path(), default=str(DEFAULT_CONFIG_PATH),
              help="Config directory path")
@click.option("--mode", type=click.Choice(["mock", "live"]), default=None,
              help="Override the gateway mode")
def cycle(db_path: str, config_path: str, mode: Optional[str]):
    """Source, enrich and advance outreach for every open role."""
    ledger = open_ledger(db_path)
    settings = load_cli_settings(config_path, mode)
    gateway = build_gateway(config_path, settings)
    notifier = SlackNotifier(settings.notifications.slack_webhook_url or None)
    orchestrator = Orchestrator(ledger, gateway, settings, notifier=notifier)

    click.echo(f"Running cycle (gateway: {settings.gateway.mode})...\n")
    summary = asyncio.run(orchestrator.run_cycle())

    click.echo("=" * 40)
    click.echo("SUMMARY")
    click.echo("=" * 40)
    click.echo(f"Roles processed:    {summary.roles_processed}")
    click.echo(f"Candidates sourced: {summary.candidates_created}")
    click.echo(f"Emails sent:        {summary.sends}")
    click.echo(f"Waiting:            {summary.waits}")
    click.echo(f"Rate limited:       {summary.rate_limited}")

    if summary.degraded_roles:
        click.echo(f"\n⚠️  Degraded roles: {', '.join(summary.degraded_roles)}")
    if summary.failures:
        click.echo("\nIssues:")
        for failure in summary.failures:
            click.echo(f"  ✗ {failure}")
    if summary.timed_out:
        click.echo("\n⚠️  Cycle timed out before every role finished.")


@cli.command()
@click.option("--db", "db_path", type=click.Path(), default=str(DEFAULT_DB_PATH),
              help="Database path")
@click.option("--role", "role_id", type=str, default=None,
              help="Limit to one role")
@click.option("--candidate", "candidate_id", type=str, default=None,
              help="Show a specific candidate")
def status(db_path: str, role_id: Optional[str], candidate_id: Optional[str]):
    """Show pipeline status."""
    ledger = open_ledger(db_path)

    if candidate_id:
        candidate = ledger.get(candidate_id)
        if not candidate:
            click.echo(f"Candidate not found: {candidate_id}")
            return

        outreach = ledger.get_outreach(candidate.id)
        click.echo(f"\nCandidate: {candidate.name}")
        click.echo(f"  Email: {candidate.email or 'N/A'}")
        click.echo(f"  Company: {candidate.company or 'N/A'}")
        click.echo(f"  Status: {candidate.status.value}")
        if candidate.fit_score is not None:
            click.echo(f"  Fit score: {candidate.fit_score}")
        if outreach:
            click.echo(f"  Current step: {outreach.step}")
            if outreach.last_sent_at:
                click.echo(f"  Last sent: {outreach.last_sent_at.isoformat()}")
            if outreach.next_send_at:
                click.echo(f"  Next send: {outreach.next_send_at.isoformat()}")
            if outreach.dormant:
                click.echo("  Sequence dormant (retries exhausted)")
        for event in ledger.list_events(candidate.id):
            click.echo(f"  - {event.event.value} at {event.created_at.isoformat()}")
        return

    if not role_id:
        roles = ledger.list_roles()
        click.echo("\nRoles")
        click.echo("───────────────")
        for role in roles:
            depth = ledger.count_by_role(role.id)
            click.echo(f"{role.id}  {role.title:<30} {role.status.value:<7} {depth}/{role.min_pipeline}")
        if not roles:
            click.echo("No roles yet. Add one with 'add-role'.")

    stats = ledger.stats(role_id)

    click.echo("\nPipeline Status")
    click.echo("───────────────")
    for s in CandidateStatus:
        click.echo(f"{s.value.capitalize() + ':':<22} {stats.get(s.value, 0)}")
    click.echo(f"  - Due for follow-up: {stats.get('due_for_followup', 0)}")
    click.echo(f"  - Retries exhausted: {stats.get('exhausted', 0)}")
    click.echo("───────────────")
    click.echo(f"Sent today: {stats.get('sent_today', 0)}")


@cli.command("add-role")
@click.argument("title")
@click.option("--org", "org_id", required=True, help="Owning organization id")
@click.option("--min-pipeline", type=int, default=10, help="Minimum pipeline depth")
@click.option("--requirements", type=str, default="{}",
              help='Requirements as JSON, e.g. \'{"keywords": ["python"]}\'')
@click.option("--location", type=str, default=None)
@click.option("--db", "db_path", type=click.Path(), default=str(DEFAULT_DB_PATH),
              help="Database path")
def add_role(title: str, org_id: str, min_pipeline: int, requirements: str,
             location: Optional[str], db_path: str):
    """Open a new role."""
    try:
        parsed = json.loads(requirements)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"invalid JSON: {e}", param_hint="--requirements")
    if not isinstance(parsed, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--requirements")
    if min_pipeline < 0:
        raise click.BadParameter("must be >= 0", param_hint="--min-pipeline")

    ledger = open_ledger(db_path)
    role = ledger.add_role(title, org_id, requirements=parsed, min_pipeline=min_pipeline, location=location)
    click.echo(f"Created role {role.id}: {role.title}")


@cli.command("role-status")
@click.argument("role_id")
@click.argument("new_status", type=click.Choice([s.value for s in RoleStatus]))
@click.option("--db", "db_path", type=click.Path(), default=str(DEFAULT_DB_PATH),
              help="Database path")
def role_status(role_id: str, new_status: str, db_path: str):
    """Open, pause or close a role."""
    ledger = open_ledger(db_path)
    if not ledger.set_role_status(role_id, RoleStatus(new_status)):
        raise click.ClickException(f"Role not found: {role_id}")
    click.echo(f"Role {role_id} is now {new_status}")


@cli.command("import")
@click.argument("excel_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("role_id")
@click.option("--db", "db_path", type=click.Path(), default=str(DEFAULT_DB_PATH),
              help="Database path")
def import_cmd(excel_path: str, role_id: str, db_path: str):
    """Import candidates for a role from an Excel file."""
    ledger = open_ledger(db_path)
    try:
        result = import_candidates(Path(excel_path), ledger, role_id)
    except InvalidInput as e:
        raise click.ClickException(str(e))
    click.echo(f"Imported {result['imported']}, skipped {result['skipped']}")


@cli.command()
@click.argument("candidate_id", required=False)
@click.argument("event", required=False)
@click.option("--file", "notification_file", type=click.File("r"), default=None,
              help="JSON notification (or list of notifications); '-' for stdin")
@click.option("--db", "db_path", type=click.Path(), default=str(DEFAULT_DB_PATH),
              help="Database path")
def ingest(candidate_id: Optional[str], event: Optional[str], notification_file, db_path: str):
    """Record an engagement event (opened, replied, bounced...)."""
    ingestor = EventIngestor(open_ledger(db_path))

    try:
        if notification_file is not None:
            payload = json.load(notification_file)
            notifications = payload if isinstance(payload, list) else [payload]
            results = [ingestor.ingest_notification(n) for n in notifications]
        else:
            if not candidate_id or not event:
                raise click.UsageError("Provide CANDIDATE_ID and EVENT, or --file")
            results = [ingestor.ingest(candidate_id, event)]
    except (InvalidInput, json.JSONDecodeError) as e:
        raise click.ClickException(f"Invalid event: {e}")

    recorded = sum(1 for r in results if r == IngestResult.SUCCESS)
    missing = len(results) - recorded
    click.echo(f"Recorded {recorded} event(s)")
    if missing:
        click.echo(f"Unknown candidates: {missing}")


@cli.command()
@click.argument("candidate_id")
@click.argument("resume_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--db", "db_path", type=click.Path(), default=str(DEFAULT_DB_PATH),
              help="Database path")
@click.option("--config", "config_path", type=click.Path(), default=str(DEFAULT_CONFIG_PATH),
              help="Config directory path")
def screen(candidate_id: str, resume_path: str, db_path: str, config_path: str):
    """Score a candidate's resume against their role."""
    ledger = open_ledger(db_path)
    gateway = build_gateway(config_path)
    resume_text = Path(resume_path).read_text()

    try:
        result = asyncio.run(screen_candidate(ledger, gateway, candidate_id, resume_text))
    except HireLoopError as e:
        raise click.ClickException(str(e))

    click.echo(f"Fit score: {result.fit_score}/100")
    click.echo(f"  Culture: {result.culture_score}/5  Technical: {result.technical_score}/5  "
               f"Experience: {result.experience_score}/5")
    if result.summary:
        click.echo(f"\n{result.summary}")


@cli.command()
@click.argument("candidate_id")
@click.option("--db", "db_path", type=click.Path(), default=str(DEFAULT_DB_PATH),
              help="Database path")
@click.option("--config", "config_path", type=click.Path(), default=str(DEFAULT_CONFIG_PATH),
              help="Config directory path")
def schedule(candidate_id: str, db_path: str, config_path: str):
    """Create an interview booking link for a screened candidate."""
    ledger = open_ledger(db_path)
    gateway = build_gateway(config_path)

    try:
        url = asyncio.run(schedule_interview(ledger, gateway, candidate_id))
    except HireLoopError as e:
        raise click.ClickException(str(e))

    click.echo(f"Booking link: {url}")


@cli.command()
@click.argument("role_id")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None,
              help="Output xlsx path")
@click.option("--db", "db_path", type=click.Path(), default=str(DEFAULT_DB_PATH),
              help="Database path")
def export(role_id: str, output: Optional[str], db_path: str):
    """Export a role's shortlist to Excel."""
    ledger = open_ledger(db_path)
    try:
        path = export_shortlist(ledger, role_id, Path(output) if output else None)
    except InvalidInput as e:
        raise click.ClickException(str(e))
    click.echo(f"Exported to: {path}")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
