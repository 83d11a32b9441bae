"""Tests for the reconciliation engine (F3)."""

from datetime import datetime, timezone

import pytest

from cptracker.core.reconciler import (
    PersistenceFailure,
    apply_plan,
    plan_reconciliation,
    reconcile_student,
)
from cptracker.db.activity_repository import list_contests, list_submissions
from cptracker.db.database import get_db
from cptracker.db.students_repository import delete_student, get_student_by_id, insert_student
from cptracker.judge.models import RatingChange, RemoteProfile, RemoteSubmission

NOW = datetime(2024, 5, 1, 2, 0, tzinfo=timezone.utc)


def _stored_problem(problem_key):
    with get_db() as conn:
        return conn.execute(
            "SELECT * FROM problems WHERE problem_key = ?", (problem_key,)
        ).fetchone()


@pytest.fixture
def student(db):
    return insert_student(name="Ana", email="ana@example.com", handle="ana_cf")


@pytest.fixture
def profile():
    return RemoteProfile(handle="ana_cf", rating=1250, max_rating=1400)


@pytest.fixture
def remote(make_submission, make_rating_change):
    """Build typed judge data from raw entries."""

    def _build(submissions=(), rating=()):
        return (
            [RemoteSubmission.model_validate(make_submission(**s)) for s in submissions],
            [RatingChange.model_validate(make_rating_change(**r)) for r in rating],
        )

    return _build


def _table_snapshot(table: str, order_by: str) -> list[tuple]:
    with get_db() as conn:
        return [tuple(row) for row in conn.execute(f"SELECT * FROM {table} ORDER BY {order_by}")]


class TestPlanReconciliation:
    """Tests for the pure planning step."""

    def test_snapshot_fields(self, student, profile, remote):
        """Ratings and sync time come from the profile and clock."""
        plan = plan_reconciliation(student, profile, [], [], NOW)
        assert plan.current_rating == 1250
        assert plan.max_rating == 1400
        assert plan.synced_at == "2024-05-01T02:00:00+00:00"

    def test_first_problem_occurrence_wins(self, student, profile, remote):
        """Duplicate problem keys keep the first payload entry."""
        subs, _ = remote(
            submissions=[
                {"submission_id": 2, "index": "A", "rating": 900},
                {"submission_id": 1, "index": "A", "rating": 1200},
            ]
        )
        plan = plan_reconciliation(student, profile, subs, [], NOW)
        assert len(plan.problems) == 1
        assert plan.problems[0].rating == 900

    def test_duplicate_submission_ids(self, student, profile, remote):
        """A submission id appears once in the plan."""
        subs, _ = remote(submissions=[{"submission_id": 1}, {"submission_id": 1}])
        plan = plan_reconciliation(student, profile, subs, [], NOW)
        assert len(plan.submissions) == 1

    def test_memory_in_kilobytes(self, student, profile, remote):
        """Memory bytes are divided by 1024."""
        subs, _ = remote(submissions=[{"submission_id": 1, "memory_bytes": 1536}])
        plan = plan_reconciliation(student, profile, subs, [], NOW)
        assert plan.submissions[0].memory_kb == 1.5

    def test_contest_counts_submissions(self, student, profile, remote):
        """Solved and attempted count submissions within the contest."""
        subs, rating = remote(
            submissions=[
                {"submission_id": 1, "contest_id": 10, "index": "A", "verdict": "WRONG_ANSWER"},
                {"submission_id": 2, "contest_id": 10, "index": "A", "verdict": "WRONG_ANSWER"},
                {"submission_id": 3, "contest_id": 10, "index": "A", "verdict": "OK"},
                {"submission_id": 4, "contest_id": 11, "index": "A", "verdict": "OK"},
            ],
            rating=[{"contest_id": 10}, {"contest_id": 12}],
        )
        plan = plan_reconciliation(student, profile, subs, rating, NOW)
        by_id = {c.contest_id: c for c in plan.contests}

        assert by_id[10].problems_attempted == 3
        assert by_id[10].problems_solved == 1
        assert by_id[12].problems_attempted == 0
        assert by_id[12].problems_solved == 0

    def test_contest_start_time(self, student, profile, remote):
        """start_time comes from the rating update time."""
        _, rating = remote(rating=[{"contest_id": 10, "updated": 0}])
        plan = plan_reconciliation(student, profile, [], rating, NOW)
        assert plan.contests[0].start_time == "1970-01-01T00:00:00+00:00"


class TestApply:
    """Tests for committing a reconciliation."""

    def test_writes_everything(self, student, profile, remote):
        """Student snapshot, problems, contests and submissions are stored."""
        subs, rating = remote(
            submissions=[{"submission_id": 1, "contest_id": 10}],
            rating=[{"contest_id": 10, "old": 1200, "new": 1250}],
        )
        summary = reconcile_student(student, profile, subs, rating, NOW)

        assert summary.contests_processed == 1
        assert summary.submissions_processed == 1

        stored = get_student_by_id(student.student_id)
        assert stored.current_rating == 1250
        assert stored.max_rating == 1400
        assert stored.last_data_sync == NOW

        assert _stored_problem("10-A") is not None
        contests = list_contests(student.student_id)
        assert contests[0].rating_change == 50
        submissions = list_submissions(student.student_id)
        assert submissions[0].problem.problem_key == "10-A"

    def test_idempotent(self, student, profile, remote):
        """Reconciling twice with the same data changes nothing."""
        subs, rating = remote(
            submissions=[
                {"submission_id": 1, "contest_id": 10, "index": "A"},
                {"submission_id": 2, "contest_id": 10, "index": "B", "verdict": "WRONG_ANSWER"},
            ],
            rating=[{"contest_id": 10}],
        )
        reconcile_student(student, profile, subs, rating, NOW)
        first_subs = _table_snapshot("submissions", "submission_id")
        first_problems = _table_snapshot("problems", "problem_key")

        reconcile_student(student, profile, subs, rating, NOW)
        assert _table_snapshot("submissions", "submission_id") == first_subs
        assert _table_snapshot("problems", "problem_key") == first_problems

    def test_contests_replaced(self, student, profile, remote):
        """N rating entries give exactly N contest rows."""
        _, rating = remote(rating=[{"contest_id": 1}, {"contest_id": 2}, {"contest_id": 3}])
        reconcile_student(student, profile, [], rating, NOW)
        assert len(list_contests(student.student_id)) == 3

        _, rating = remote(rating=[{"contest_id": 1}, {"contest_id": 2}])
        reconcile_student(student, profile, [], rating, NOW)
        contests = list_contests(student.student_id)
        assert len(contests) == 2
        assert all(c.problems_solved <= c.problems_attempted for c in contests)

    def test_submission_verdict_upserted(self, student, profile, remote):
        """A re-fetched submission updates its verdict in place."""
        subs, _ = remote(submissions=[{"submission_id": 1, "verdict": None}])
        reconcile_student(student, profile, subs, [], NOW)

        subs, _ = remote(submissions=[{"submission_id": 1, "verdict": "OK"}])
        reconcile_student(student, profile, subs, [], NOW)

        stored = list_submissions(student.student_id)
        assert len(stored) == 1
        assert stored[0].verdict == "OK"

    def test_problems_never_modified(self, student, profile, remote):
        """An existing problem keeps its first stored data."""
        subs, _ = remote(submissions=[{"submission_id": 1, "rating": 800}])
        reconcile_student(student, profile, subs, [], NOW)

        subs, _ = remote(submissions=[{"submission_id": 2, "rating": 1900}])
        reconcile_student(student, profile, subs, [], NOW)
        assert _stored_problem("1800-A")["rating"] == 800

    def test_older_submissions_kept(self, student, profile, remote):
        """Submissions missing from a later fetch are not deleted."""
        subs, _ = remote(submissions=[{"submission_id": 1}, {"submission_id": 2}])
        reconcile_student(student, profile, subs, [], NOW)

        subs, _ = remote(submissions=[{"submission_id": 2}])
        reconcile_student(student, profile, subs, [], NOW)
        assert {s.submission_id for s in list_submissions(student.student_id)} == {1, 2}


class TestAtomicity:
    """A failing write leaves no partial state."""

    def test_rollback_keeps_previous_state(self, student, profile, remote):
        """A failure mid-transaction restores contests and ratings."""
        _, rating = remote(rating=[{"contest_id": 1}, {"contest_id": 2}])
        reconcile_student(student, profile, [], rating, NOW)
        before_contests = _table_snapshot("contests", "id")

        subs, rating = remote(
            submissions=[{"submission_id": 9, "contest_id": 77, "index": "Z"}],
            rating=[{"contest_id": 77}],
        )
        new_profile = RemoteProfile(handle="ana_cf", rating=2000, max_rating=2000)
        plan = plan_reconciliation(student, new_profile, subs, rating, NOW)
        # Submission references a problem the plan no longer inserts
        plan.problems = []

        with pytest.raises(PersistenceFailure) as exc:
            apply_plan(plan)

        assert exc.value.student_id == student.student_id
        assert _table_snapshot("contests", "id") == before_contests
        assert list_submissions(student.student_id) == []
        assert get_student_by_id(student.student_id).current_rating == 1250

    def test_deleted_student(self, student, profile):
        """A student removed mid-sync fails the transaction."""
        delete_student(student.student_id)
        with pytest.raises(PersistenceFailure):
            reconcile_student(student, profile, [], [], NOW)
