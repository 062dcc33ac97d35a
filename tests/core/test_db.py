import tempfile
from datetime import timedelta
from pathlib import Path

from hireloop.core.db import (
    claim_outreach,
    compare_and_set_status,
    count_candidates_by_role,
    delete_candidate,
    get_candidate,
    get_connection,
    get_engagements,
    get_outreach_by_candidate,
    get_pipeline_stats,
    get_roles_by_status,
    has_engagement,
    init_db,
    insert_candidate,
    insert_engagement,
    insert_outreach,
    insert_role,
    update_outreach_failure,
    update_outreach_sent,
    update_role_status,
    utc_now,
)


def test_init_db_creates_tables():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        init_db(db_path)

        conn = get_connection(db_path)
        cursor = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        )
        tables = {row[0] for row in cursor.fetchall()}
        conn.close()

        assert {"roles", "candidates", "outreach", "engagements"} <= tables


def test_init_db_is_idempotent():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        init_db(db_path)
        role_id = insert_role(db_path, "Engineer", "org-1")
        init_db(db_path)

        assert len(get_roles_by_status(db_path, "open")) == 1
        assert get_roles_by_status(db_path, "open")[0]["id"] == role_id


def test_insert_duplicate_candidate_returns_none():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        init_db(db_path)
        role_id = insert_role(db_path, "Engineer", "org-1")

        first = insert_candidate(db_path, role_id, "Ada", public_url="https://example.com/ada")
        second = insert_candidate(db_path, role_id, "Ada Again", public_url="https://example.com/ada")

        assert first is not None
        assert second is None  # Duplicate

        candidate = get_candidate(db_path, first)
        assert candidate["status"] == "sourced"
        assert candidate["source"] == "xray"


def test_same_url_allowed_for_different_roles():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        init_db(db_path)
        role_a = insert_role(db_path, "Engineer", "org-1")
        role_b = insert_role(db_path, "Manager", "org-1")

        assert insert_candidate(db_path, role_a, "Ada", public_url="https://example.com/ada")
        assert insert_candidate(db_path, role_b, "Ada", public_url="https://example.com/ada")


def test_compare_and_set_status():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        init_db(db_path)
        role_id = insert_role(db_path, "Engineer", "org-1")
        candidate_id = insert_candidate(db_path, role_id, "Ada")

        assert compare_and_set_status(db_path, candidate_id, "sourced", "contacted") is True
        assert compare_and_set_status(db_path, candidate_id, "sourced", "contacted") is False
        assert get_candidate(db_path, candidate_id)["status"] == "contacted"


def test_count_candidates_excludes_statuses():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        init_db(db_path)
        role_id = insert_role(db_path, "Engineer", "org-1")
        insert_candidate(db_path, role_id, "Ada", public_url="a")
        rejected = insert_candidate(db_path, role_id, "Bob", public_url="b")
        compare_and_set_status(db_path, rejected, "sourced", "rejected")

        assert count_candidates_by_role(db_path, role_id) == 2
        assert count_candidates_by_role(db_path, role_id, exclude_statuses=["hired", "rejected"]) == 1


def test_update_role_status_missing_role():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        init_db(db_path)
        role_id = insert_role(db_path, "Engineer", "org-1")

        assert update_role_status(db_path, role_id, "paused") is True
        assert update_role_status(db_path, "missing", "paused") is False
        assert get_roles_by_status(db_path, "open") == []


def test_insert_outreach_is_single_per_candidate():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        init_db(db_path)
        role_id = insert_role(db_path, "Engineer", "org-1")
        candidate_id = insert_candidate(db_path, role_id, "Ada")

        first = insert_outreach(db_path, candidate_id, "mock")
        second = insert_outreach(db_path, candidate_id, "gmail")

        assert first["id"] == second["id"]
        assert second["provider"] == "mock"
        assert second["step"] == 1
        assert second["version"] == 0


def test_update_outreach_sent_checks_version_and_step():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        init_db(db_path)
        role_id = insert_role(db_path, "Engineer", "org-1")
        candidate_id = insert_candidate(db_path, role_id, "Ada")
        record = insert_outreach(db_path, candidate_id, "mock")
        now = utc_now()

        assert update_outreach_sent(db_path, record["id"], 0, 1, "thread-1", now, now + timedelta(hours=72), {})
        # Stale version loses
        assert not update_outreach_sent(db_path, record["id"], 0, 2, None, now, None, {})

        row = get_outreach_by_candidate(db_path, candidate_id)
        assert row["version"] == 1
        assert row["thread_id"] == "thread-1"

        # Step never moves backwards, and a sent step is not recorded twice
        assert not update_outreach_sent(db_path, record["id"], 1, 0, None, now, None, {})
        assert not update_outreach_sent(db_path, record["id"], 1, 1, None, now, None, {})


def test_update_outreach_failure_counts():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        init_db(db_path)
        role_id = insert_role(db_path, "Engineer", "org-1")
        candidate_id = insert_candidate(db_path, role_id, "Ada")
        record = insert_outreach(db_path, candidate_id, "mock")

        assert update_outreach_failure(db_path, record["id"], 0, 1, utc_now(), False, {"last_error": "x"})
        assert not update_outreach_failure(db_path, record["id"], 0, 1, utc_now(), False, {})

        row = get_outreach_by_candidate(db_path, candidate_id)
        assert row["failures"] == 1
        assert row["dormant"] == 0


def test_delete_candidate_cascades():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        init_db(db_path)
        role_id = insert_role(db_path, "Engineer", "org-1")
        candidate_id = insert_candidate(db_path, role_id, "Ada")
        insert_outreach(db_path, candidate_id, "mock")
        insert_engagement(db_path, candidate_id, "opened")

        assert delete_candidate(db_path, candidate_id) is True

        assert get_candidate(db_path, candidate_id) is None
        assert get_outreach_by_candidate(db_path, candidate_id) is None
        assert get_engagements(db_path, candidate_id) == []


def test_pipeline_stats():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        init_db(db_path)
        role_id = insert_role(db_path, "Engineer", "org-1")
        due = insert_candidate(db_path, role_id, "Ada", public_url="a")
        insert_candidate(db_path, role_id, "Bob", public_url="b")
        compare_and_set_status(db_path, due, "sourced", "contacted")

        record = insert_outreach(db_path, due, "mock")
        now = utc_now()
        update_outreach_sent(db_path, record["id"], 0, 1, None, now - timedelta(days=3), now - timedelta(hours=1), {})
        insert_engagement(db_path, due, "sent")

        stats = get_pipeline_stats(db_path, role_id)

        assert stats["sourced"] == 1
        assert stats["contacted"] == 1
        assert stats["due_for_followup"] == 1
        assert stats["exhausted"] == 0
        assert stats["sent_today"] == 1


def test_claim_outreach_bumps_version_once():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        init_db(db_path)
        role_id = insert_role(db_path, "Engineer", "org-1")
        candidate_id = insert_candidate(db_path, role_id, "Ada")
        record = insert_outreach(db_path, candidate_id, "mock")
        lease = utc_now() + timedelta(minutes=15)

        assert claim_outreach(db_path, record["id"], 0, lease)
        assert not claim_outreach(db_path, record["id"], 0, lease)

        row = get_outreach_by_candidate(db_path, candidate_id)
        assert row["version"] == 1
        assert row["next_send_at"] == lease.isoformat()
        assert row["last_sent_at"] is None


def test_dormant_outreach_cannot_be_claimed():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        init_db(db_path)
        role_id = insert_role(db_path, "Engineer", "org-1")
        candidate_id = insert_candidate(db_path, role_id, "Ada")
        record = insert_outreach(db_path, candidate_id, "mock")
        update_outreach_failure(db_path, record["id"], 0, 3, None, True, {})

        assert not claim_outreach(db_path, record["id"], 1, utc_now())


def test_has_engagement():
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        init_db(db_path)
        role_id = insert_role(db_path, "Engineer", "org-1")
        candidate_id = insert_candidate(db_path, role_id, "Ada")
        insert_engagement(db_path, candidate_id, "sent")

        assert has_engagement(db_path, candidate_id, "sent")
        assert not has_engagement(db_path, candidate_id, "replied")
