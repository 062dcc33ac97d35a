"""Shortlist export to Excel."""

from datetime import datetime
from pathlib import Path
from typing import Optional

import openpyxl
import structlog

from hireloop.core.errors import InvalidInput
from hireloop.core.models import CandidateStatus
from hireloop.pipeline.ledger import CandidateLedger

log = structlog.get_logger()

EXPORT_FOLDER = Path("exports")

SHORTLIST_STATUSES = [CandidateStatus.INTERESTED, CandidateStatus.SCREENED, CandidateStatus.INTERVIEWING]

HEADERS = ["name", "email", "company", "title", "location", "status", "fit_score"]


def export_shortlist(ledger: CandidateLedger, role_id: str, output_path: Optional[Path] = None) -> Path:
    """Write a role's engaged candidates to an xlsx file, best fit first.

    Returns path to the created file.
    """
    role = ledger.get_role(role_id)
    if role is None:
        raise InvalidInput(f"Role not found: {role_id}")

    if output_path is None:
        EXPORT_FOLDER.mkdir(exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        output_path = EXPORT_FOLDER / f"shortlist_{role_id[:8]}_{timestamp}.xlsx"

    candidates = ledger.list_by_role(role_id, SHORTLIST_STATUSES)
    candidates.sort(key=lambda c: c.fit_score if c.fit_score is not None else -1, reverse=True)

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Shortlist"

    ws.append(HEADERS)
    for c in candidates:
        ws.append([c.name, c.email, c.company, c.current_title, c.location, c.status.value, c.fit_score])

    wb.save(output_path)
    log.info("shortlist_exported", role_id=role_id, filename=str(output_path), count=len(candidates))
    return output_path
