"""SQLite database operations."""

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional
from uuid import uuid4

DEFAULT_DB_PATH = Path("data/hireloop.db")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def get_connection(db_path: Path = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Get a database connection with row factory and foreign keys enabled."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Initialize database with schema."""
    conn = get_connection(db_path)

    conn.executescript("""
        CREATE TABLE IF NOT EXISTS roles (
            id TEXT PRIMARY KEY,
            org_id TEXT NOT NULL,
            title TEXT NOT NULL,
            location TEXT,
            description TEXT,
            requirements TEXT,
            status TEXT NOT NULL DEFAULT 'open'
                CHECK (status IN ('open', 'paused', 'closed')),
            min_pipeline INTEGER NOT NULL DEFAULT 10 CHECK (min_pipeline >= 0),
            created_at TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS candidates (
            id TEXT PRIMARY KEY,
            role_id TEXT NOT NULL REFERENCES roles(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            current_title TEXT,
            company TEXT,
            location TEXT,
            email TEXT,
            linkedin TEXT,
            public_url TEXT,
            company_domain TEXT,
            resume_url TEXT,
            summary TEXT,

            -- Screening scores
            culture_score INTEGER CHECK (culture_score BETWEEN 1 AND 5),
            technical_score INTEGER CHECK (technical_score BETWEEN 1 AND 5),
            experience_score INTEGER CHECK (experience_score BETWEEN 1 AND 5),
            fit_score INTEGER CHECK (fit_score BETWEEN 0 AND 100),

            status TEXT NOT NULL DEFAULT 'sourced',
            source TEXT NOT NULL DEFAULT 'xray',
            created_at TIMESTAMP,
            updated_at TIMESTAMP,

            UNIQUE (role_id, public_url)
        );

        CREATE TABLE IF NOT EXISTS outreach (
            id TEXT PRIMARY KEY,
            candidate_id TEXT NOT NULL UNIQUE REFERENCES candidates(id) ON DELETE CASCADE,
            provider TEXT,
            thread_id TEXT,
            step INTEGER NOT NULL DEFAULT 1 CHECK (step >= 1),
            last_sent_at TIMESTAMP,
            next_send_at TIMESTAMP,

            -- Retry state
            failures INTEGER NOT NULL DEFAULT 0,
            dormant INTEGER NOT NULL DEFAULT 0,
            version INTEGER NOT NULL DEFAULT 0,

            meta TEXT
        );

        CREATE TABLE IF NOT EXISTS engagements (
            id INTEGER PRIMARY KEY,
            candidate_id TEXT NOT NULL REFERENCES candidates(id) ON DELETE CASCADE,
            event TEXT NOT NULL
                CHECK (event IN ('sent', 'opened', 'replied', 'scheduled', 'bounced')),
            payload TEXT,
            created_at TIMESTAMP
        );

        CREATE INDEX IF NOT EXISTS idx_roles_status ON roles(status);
        CREATE INDEX IF NOT EXISTS idx_candidates_role ON candidates(role_id, status);
        CREATE INDEX IF NOT EXISTS idx_outreach_next_send ON outreach(next_send_at);
        CREATE INDEX IF NOT EXISTS idx_engagements_candidate ON engagements(candidate_id);
    """)

    conn.commit()
    conn.close()


# Roles

def insert_role(
    db_path: Path,
    title: str,
    org_id: str,
    requirements: Optional[dict] = None,
    min_pipeline: int = 10,
    location: Optional[str] = None,
    description: Optional[str] = None,
    status: str = "open",
) -> str:
    """Insert a role. Returns role_id."""
    role_id = str(uuid4())
    conn = get_connection(db_path)
    try:
        conn.execute(
            """
            INSERT INTO roles
            (id, org_id, title, location, description, requirements, status, min_pipeline, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (role_id, org_id, title, location, description,
             json.dumps(requirements or {}), status, min_pipeline, _ts(utc_now()))
        )
        conn.commit()
        return role_id
    finally:
        conn.close()


def get_role(db_path: Path, role_id: str) -> Optional[sqlite3.Row]:
    """Get a role by ID."""
    conn = get_connection(db_path)
    cursor = conn.execute("SELECT * FROM roles WHERE id = ?", (role_id,))
    row = cursor.fetchone()
    conn.close()
    return row


def get_roles_by_status(db_path: Path, status: str) -> list[sqlite3.Row]:
    """Get roles with a given status, ascending by id."""
    conn = get_connection(db_path)
    cursor = conn.execute("SELECT * FROM roles WHERE status = ? ORDER BY id", (status,))
    rows = cursor.fetchall()
    conn.close()
    return rows


def get_all_roles(db_path: Path) -> list[sqlite3.Row]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM roles ORDER BY id").fetchall()
    conn.close()
    return rows


def update_role_status(db_path: Path, role_id: str, status: str) -> bool:
    """Update a role's status. Returns False if the role does not exist."""
    conn = get_connection(db_path)
    cursor = conn.execute("UPDATE roles SET status = ? WHERE id = ?", (status, role_id))
    conn.commit()
    updated = cursor.rowcount == 1
    conn.close()
    return updated


# Candidates

def insert_candidate(
    db_path: Path,
    role_id: str,
    name: str,
    email: Optional[str] = None,
    current_title: Optional[str] = None,
    company: Optional[str] = None,
    location: Optional[str] = None,
    linkedin: Optional[str] = None,
    public_url: Optional[str] = None,
    company_domain: Optional[str] = None,
    source: str = "xray",
) -> Optional[str]:
    """Insert a sourced candidate. Returns candidate_id or None if duplicate."""
    candidate_id = str(uuid4())
    now = _ts(utc_now())
    conn = get_connection(db_path)
    try:
        conn.execute(
            """
            INSERT INTO candidates
            (id, role_id, name, email, current_title, company, location, linkedin,
             public_url, company_domain, status, source, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'sourced', ?, ?, ?)
            """,
            (candidate_id, role_id, name, email, current_title, company, location,
             linkedin, public_url, company_domain, source, now, now)
        )
        conn.commit()
        return candidate_id
    except sqlite3.IntegrityError:
        return None
    finally:
        conn.close()


def get_candidate(db_path: Path, candidate_id: str) -> Optional[sqlite3.Row]:
    """Get a candidate by ID."""
    conn = get_connection(db_path)
    cursor = conn.execute("SELECT * FROM candidates WHERE id = ?", (candidate_id,))
    row = cursor.fetchone()
    conn.close()
    return row


def get_candidates_by_role(
    db_path: Path,
    role_id: str,
    statuses: Optional[Iterable[str]] = None,
) -> list[sqlite3.Row]:
    """Get a role's candidates, optionally filtered by status."""
    query = "SELECT * FROM candidates WHERE role_id = ?"
    params: list = [role_id]
    if statuses is not None:
        statuses = list(statuses)
        query += f" AND status IN ({', '.join('?' for _ in statuses)})"
        params.extend(statuses)
    query += " ORDER BY created_at, id"

    conn = get_connection(db_path)
    rows = conn.execute(query, params).fetchall()
    conn.close()
    return rows


def count_candidates_by_role(
    db_path: Path,
    role_id: str,
    exclude_statuses: Iterable[str] = (),
) -> int:
    """Count a role's candidates, skipping the given statuses."""
    exclude = list(exclude_statuses)
    query = "SELECT COUNT(*) FROM candidates WHERE role_id = ?"
    if exclude:
        query += f" AND status NOT IN ({', '.join('?' for _ in exclude)})"

    conn = get_connection(db_path)
    count = conn.execute(query, [role_id, *exclude]).fetchone()[0]
    conn.close()
    return count


def compare_and_set_status(db_path: Path, candidate_id: str, expected: str, new: str) -> bool:
    """Set a candidate's status only if it still equals `expected`.

    Returns True if the row was updated, False on conflict.
    """
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            "UPDATE candidates SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
            (new, _ts(utc_now()), candidate_id, expected)
        )
        conn.commit()
        return cursor.rowcount == 1
    finally:
        conn.close()


def update_candidate_scores(
    db_path: Path,
    candidate_id: str,
    culture_score: int,
    technical_score: int,
    experience_score: int,
    fit_score: int,
    summary: Optional[str] = None,
) -> None:
    """Store screening scores on a candidate."""
    conn = get_connection(db_path)
    conn.execute(
        """
        UPDATE candidates
        SET culture_score = ?, technical_score = ?, experience_score = ?, fit_score = ?,
            summary = COALESCE(?, summary), updated_at = ?
        WHERE id = ?
        """,
        (culture_score, technical_score, experience_score, fit_score, summary,
         _ts(utc_now()), candidate_id)
    )
    conn.commit()
    conn.close()


def delete_candidate(db_path: Path, candidate_id: str) -> bool:
    """Delete a candidate and, by cascade, its outreach and engagements."""
    conn = get_connection(db_path)
    cursor = conn.execute("DELETE FROM candidates WHERE id = ?", (candidate_id,))
    conn.commit()
    deleted = cursor.rowcount == 1
    conn.close()
    return deleted


# Outreach

def get_outreach_by_candidate(db_path: Path, candidate_id: str) -> Optional[sqlite3.Row]:
    """Get the outreach record for a candidate."""
    conn = get_connection(db_path)
    cursor = conn.execute("SELECT * FROM outreach WHERE candidate_id = ?", (candidate_id,))
    row = cursor.fetchone()
    conn.close()
    return row


def insert_outreach(db_path: Path, candidate_id: str, provider: str) -> sqlite3.Row:
    """Create the outreach record for a candidate if it does not exist yet.

    Returns the stored record, whichever actor created it.
    """
    conn = get_connection(db_path)
    try:
        conn.execute(
            """
            INSERT OR IGNORE INTO outreach (id, candidate_id, provider, step, meta)
            VALUES (?, ?, ?, 1, '{}')
            """,
            (str(uuid4()), candidate_id, provider)
        )
        conn.commit()
        return conn.execute(
            "SELECT * FROM outreach WHERE candidate_id = ?", (candidate_id,)
        ).fetchone()
    finally:
        conn.close()


def claim_outreach(db_path: Path, outreach_id: str, expected_version: int, lease_until: datetime) -> bool:
    """Reserve a record for one send attempt.

    Bumps the version and pushes next_send_at out to the lease, so any other
    cycle holding the same version loses and any later reader sees Wait.
    """
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            """
            UPDATE outreach
            SET next_send_at = ?, version = version + 1
            WHERE id = ? AND version = ? AND dormant = 0
            """,
            (_ts(lease_until), outreach_id, expected_version)
        )
        conn.commit()
        return cursor.rowcount == 1
    finally:
        conn.close()


def update_outreach_sent(
    db_path: Path,
    outreach_id: str,
    expected_version: int,
    step: int,
    thread_id: Optional[str],
    last_sent_at: datetime,
    next_send_at: Optional[datetime],
    meta: dict,
) -> bool:
    """Record a successful send. Returns False if the record version moved on."""
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            """
            UPDATE outreach
            SET step = ?, thread_id = COALESCE(?, thread_id), last_sent_at = ?,
                next_send_at = ?, failures = 0, meta = ?, version = version + 1
            WHERE id = ? AND version = ? AND (step < ? OR last_sent_at IS NULL)
            """,
            (step, thread_id, _ts(last_sent_at), _ts(next_send_at), json.dumps(meta),
             outreach_id, expected_version, step)
        )
        conn.commit()
        return cursor.rowcount == 1
    finally:
        conn.close()


def update_outreach_failure(
    db_path: Path,
    outreach_id: str,
    expected_version: int,
    failures: int,
    next_send_at: Optional[datetime],
    dormant: bool,
    meta: dict,
) -> bool:
    """Record a failed send attempt. Returns False if the record version moved on."""
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            """
            UPDATE outreach
            SET failures = ?, next_send_at = ?, dormant = ?, meta = ?, version = version + 1
            WHERE id = ? AND version = ?
            """,
            (failures, _ts(next_send_at), 1 if dormant else 0, json.dumps(meta),
             outreach_id, expected_version)
        )
        conn.commit()
        return cursor.rowcount == 1
    finally:
        conn.close()


# Engagements

def insert_engagement(
    db_path: Path,
    candidate_id: str,
    event: str,
    payload: Optional[dict] = None,
) -> int:
    """Append an engagement event. Returns its id."""
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            "INSERT INTO engagements (candidate_id, event, payload, created_at) VALUES (?, ?, ?, ?)",
            (candidate_id, event, json.dumps(payload or {}, default=str), _ts(utc_now()))
        )
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


def get_engagements(db_path: Path, candidate_id: str) -> list[sqlite3.Row]:
    """Get a candidate's engagement events in insertion order."""
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM engagements WHERE candidate_id = ? ORDER BY id", (candidate_id,)
    ).fetchall()
    conn.close()
    return rows


def has_engagement(db_path: Path, candidate_id: str, event: str) -> bool:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT 1 FROM engagements WHERE candidate_id = ? AND event = ? LIMIT 1", (candidate_id, event)
    ).fetchone()
    conn.close()
    return row is not None


def count_sent_today(db_path: Path) -> int:
    """Count outreach messages sent today (UTC)."""
    conn = get_connection(db_path)
    today = utc_now().date().isoformat()
    cursor = conn.execute(
        "SELECT COUNT(*) FROM engagements WHERE event = 'sent' AND substr(created_at, 1, 10) = ?",
        (today,)
    )
    count = cursor.fetchone()[0]
    conn.close()
    return count


def get_pipeline_stats(db_path: Path, role_id: Optional[str] = None) -> dict:
    """Get pipeline statistics, for one role or across all roles."""
    conn = get_connection(db_path)

    stats = {}

    where = "WHERE role_id = ?" if role_id else ""
    params = (role_id,) if role_id else ()

    # Count by status
    cursor = conn.execute(
        f"SELECT status, COUNT(*) as count FROM candidates {where} GROUP BY status", params
    )
    for row in cursor.fetchall():
        stats[row["status"]] = row["count"]

    # Count due for follow-up
    due_query = """
        SELECT COUNT(*) FROM outreach o JOIN candidates c ON c.id = o.candidate_id
        WHERE o.dormant = 0 AND o.next_send_at IS NOT NULL AND o.next_send_at <= ?
        AND c.status IN ('sourced', 'contacted')
    """
    due_params: tuple = (_ts(utc_now()),)
    if role_id:
        due_query += " AND c.role_id = ?"
        due_params += (role_id,)
    stats["due_for_followup"] = conn.execute(due_query, due_params).fetchone()[0]

    dormant_query = "SELECT COUNT(*) FROM outreach o JOIN candidates c ON c.id = o.candidate_id WHERE o.dormant = 1"
    dormant_params: tuple = ()
    if role_id:
        dormant_query += " AND c.role_id = ?"
        dormant_params = (role_id,)
    stats["exhausted"] = conn.execute(dormant_query, dormant_params).fetchone()[0]

    conn.close()

    stats["sent_today"] = count_sent_today(db_path)
    return stats
