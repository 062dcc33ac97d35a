import json
import tempfile
from pathlib import Path

from click.testing import CliRunner

from hireloop.core.cli import build_gateway, cli, load_cli_settings
from hireloop.core.models import CandidateStatus
from hireloop.pipeline.ledger import CandidateLedger


def make_ledger(tmpdir: Path) -> CandidateLedger:
    ledger = CandidateLedger(tmpdir / "test.db")
    ledger.init()
    return ledger


def run_cycle(runner: CliRunner, tmpdir: Path):
    return runner.invoke(cli, ["cycle", "--db", str(tmpdir / "test.db"), "--config", str(tmpdir),
                               "--mode", "mock"])


def test_cli_status_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"

        runner = CliRunner()
        result = runner.invoke(cli, ["status", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "Pipeline Status" in result.output
        assert "No roles yet" in result.output


def test_add_role_and_role_status():
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir)
        runner = CliRunner()

        result = runner.invoke(cli, [
            "add-role", "Backend Engineer", "--org", "org-1", "--min-pipeline", "3",
            "--requirements", '{"keywords": ["python"]}', "--db", str(tmpdir / "test.db"),
        ])
        assert result.exit_code == 0
        assert "Created role" in result.output

        role = make_ledger(tmpdir).list_roles()[0]
        assert role.min_pipeline == 3
        assert role.requirements == {"keywords": ["python"]}

        result = runner.invoke(cli, ["role-status", role.id, "paused", "--db", str(tmpdir / "test.db")])
        assert result.exit_code == 0
        assert make_ledger(tmpdir).list_open_roles() == []


def test_add_role_rejects_bad_requirements():
    with tempfile.TemporaryDirectory() as tmpdir:
        runner = CliRunner()
        result = runner.invoke(cli, [
            "add-role", "Engineer", "--org", "org-1", "--requirements", "not json",
            "--db", str(Path(tmpdir) / "test.db"),
        ])

        assert result.exit_code != 0
        assert "invalid JSON" in result.output


def test_role_status_unknown_role():
    with tempfile.TemporaryDirectory() as tmpdir:
        runner = CliRunner()
        result = runner.invoke(cli, ["role-status", "missing", "closed", "--db", str(Path(tmpdir) / "test.db")])

        assert result.exit_code == 1
        assert "Role not found" in result.output


def test_cycle_sources_then_sends():
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir)
        ledger = make_ledger(tmpdir)
        role = ledger.add_role("Backend Engineer", "org-1", min_pipeline=1)
        runner = CliRunner()

        first = run_cycle(runner, tmpdir)
        assert first.exit_code == 0
        assert "Candidates sourced: 1" in first.output

        second = run_cycle(runner, tmpdir)
        assert second.exit_code == 0
        assert "Emails sent:        1" in second.output
        assert ledger.list_by_role(role.id)[0].status == CandidateStatus.CONTACTED


def test_ingest_and_candidate_status():
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir)
        ledger = make_ledger(tmpdir)
        role = ledger.add_role("Backend Engineer", "org-1")
        candidate = ledger.add_candidate(role.id, "Ada Lovelace", email="ada@example.com")
        ledger.update_status(candidate.id, CandidateStatus.SOURCED, CandidateStatus.CONTACTED)
        runner = CliRunner()

        result = runner.invoke(cli, ["ingest", candidate.id, "replied", "--db", str(tmpdir / "test.db")])
        assert result.exit_code == 0
        assert "Recorded 1 event(s)" in result.output
        assert ledger.get(candidate.id).status == CandidateStatus.INTERESTED

        result = runner.invoke(cli, ["status", "--candidate", candidate.id, "--db", str(tmpdir / "test.db")])
        assert "Status: interested" in result.output
        assert "- replied at" in result.output


def test_ingest_notification_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir)
        ledger = make_ledger(tmpdir)
        role = ledger.add_role("Backend Engineer", "org-1")
        candidate = ledger.add_candidate(role.id, "Ada Lovelace")
        notifications = tmpdir / "events.json"
        notifications.write_text(json.dumps([
            {"recipient_id": candidate.id, "type": "opened"},
            {"candidate_id": "missing", "event": "opened"},
        ]))
        runner = CliRunner()

        result = runner.invoke(cli, ["ingest", "--file", str(notifications), "--db", str(tmpdir / "test.db")])

        assert result.exit_code == 0
        assert "Recorded 1 event(s)" in result.output
        assert "Unknown candidates: 1" in result.output
        assert ledger.get(candidate.id).status == CandidateStatus.CONTACTED


def test_ingest_rejects_unknown_event():
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir)
        ledger = make_ledger(tmpdir)
        role = ledger.add_role("Backend Engineer", "org-1")
        candidate = ledger.add_candidate(role.id, "Ada Lovelace")
        runner = CliRunner()

        result = runner.invoke(cli, ["ingest", candidate.id, "clicked", "--db", str(tmpdir / "test.db")])

        assert result.exit_code == 1
        assert "Invalid event" in result.output


def test_import_screen_schedule_export():
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir)
        db = str(tmpdir / "test.db")
        ledger = make_ledger(tmpdir)
        role = ledger.add_role("Backend Engineer", "org-1")
        runner = CliRunner()

        from openpyxl import Workbook
        wb = Workbook()
        wb.active.append(["name", "email"])
        wb.active.append(["Ada Lovelace", "ada@example.com"])
        wb.save(tmpdir / "candidates.xlsx")

        result = runner.invoke(cli, ["import", str(tmpdir / "candidates.xlsx"), role.id, "--db", db])
        assert result.exit_code == 0
        assert "Imported 1, skipped 0" in result.output

        candidate = ledger.list_by_role(role.id)[0]
        ledger.update_status(candidate.id, CandidateStatus.SOURCED, CandidateStatus.CONTACTED)
        ledger.update_status(candidate.id, CandidateStatus.CONTACTED, CandidateStatus.INTERESTED)

        resume = tmpdir / "resume.txt"
        resume.write_text("Ten years of Python and distributed systems.")
        result = runner.invoke(cli, ["screen", candidate.id, str(resume), "--db", db, "--config", str(tmpdir)])
        assert result.exit_code == 0
        assert "Fit score:" in result.output
        assert ledger.get(candidate.id).status == CandidateStatus.SCREENED

        result = runner.invoke(cli, ["schedule", candidate.id, "--db", db, "--config", str(tmpdir)])
        assert result.exit_code == 0
        assert "Booking link:" in result.output
        assert ledger.get(candidate.id).status == CandidateStatus.INTERVIEWING

        output = tmpdir / "shortlist.xlsx"
        result = runner.invoke(cli, ["export", role.id, "--output", str(output), "--db", db])
        assert result.exit_code == 0
        assert output.exists()


def test_build_gateway_uses_given_settings():
    with tempfile.TemporaryDirectory() as tmpdir:
        settings = load_cli_settings(tmpdir, mode="live")
        gateway = build_gateway(tmpdir, settings)

        assert settings.gateway.mode == "live"
        assert gateway.config is settings.gateway
        assert gateway.config_path == Path(tmpdir)
