"""Excel candidate importer."""

from pathlib import Path

import structlog
from openpyxl import Workbook, load_workbook

from hireloop.core.errors import InvalidInput
from hireloop.pipeline.ledger import CandidateLedger

log = structlog.get_logger()

COLUMNS = ["name", "email", "title", "company", "location", "linkedin", "public_url"]


def _cell(row: tuple, col_map: dict, name: str):
    idx = col_map.get(name)
    if idx is None or idx >= len(row):
        return None
    value = row[idx]
    if isinstance(value, str):
        value = value.strip()
    return value or None


def import_candidates(excel_path: Path, ledger: CandidateLedger, role_id: str) -> dict:
    """Import candidates for a role from an Excel file.

    Expected columns: name, email, title, company, location, linkedin, public_url

    Returns dict with imported and skipped counts.
    """
    if ledger.get_role(role_id) is None:
        raise InvalidInput(f"Role not found: {role_id}")

    wb = load_workbook(excel_path)
    ws = wb.active

    headers = [str(cell.value).lower().strip() if cell.value else "" for cell in ws[1]]
    if "name" not in headers:
        raise InvalidInput(f"Excel must have a name column. Found: {headers}")

    col_map = {name: idx for idx, name in enumerate(headers)}

    imported = 0
    skipped = 0

    for row in ws.iter_rows(min_row=2, values_only=True):
        name = _cell(row, col_map, "name")
        if not name:
            continue

        email = _cell(row, col_map, "email")
        linkedin = _cell(row, col_map, "linkedin")
        candidate = ledger.add_candidate(
            role_id,
            str(name),
            source="upload",
            email=email.lower() if email else None,
            current_title=_cell(row, col_map, "title"),
            company=_cell(row, col_map, "company"),
            location=_cell(row, col_map, "location"),
            linkedin=linkedin,
            public_url=_cell(row, col_map, "public_url") or linkedin,
        )

        if candidate:
            log.info("candidate_imported", role_id=role_id, candidate_id=candidate.id)
            imported += 1
        else:
            skipped += 1

    log.info("import_complete", role_id=role_id, imported=imported, skipped=skipped)
    return {"imported": imported, "skipped": skipped}


def create_example_excel(output_path: Path) -> None:
    """Create an example Excel file showing the expected format."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Candidates"

    ws.append(COLUMNS)
    ws.append([
        "Sarah Chen",
        "sarah@example.com",
        "Senior Backend Engineer",
        "Acme Co",
        "Berlin",
        "https://linkedin.com/in/sarahchen",
        "",
    ])

    wb.save(output_path)
