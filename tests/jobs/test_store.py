"""
Tests for the in-memory queue store.
"""

import threading

import pytest

from clipqueue.jobs.errors import DuplicateJobError, ImmutableFieldError
from clipqueue.jobs.models import Job, JobStatus
from clipqueue.jobs.store import QueueStore


def _job(name: str) -> Job:
    return Job(source_ref=f"/media/{name}", display_name=name)


class TestAppend:
    """Appending jobs preserves order and rejects reused IDs."""

    def test_append_preserves_order(self):
        store = QueueStore()
        a, b, c = _job("a.mov"), _job("b.mov"), _job("c.mov")
        store.append([a, b])
        store.append([c])
        assert [job.id for job in store.snapshot()] == [a.id, b.id, c.id]
        assert len(store) == 3

    def test_initial_jobs(self):
        a = _job("a.mov")
        store = QueueStore([a])
        assert store.get(a.id) == a

    def test_empty_append_is_noop(self):
        store = QueueStore()
        calls = []
        store.subscribe(lambda: calls.append(1))
        store.append([])
        assert calls == []
        assert len(store) == 0

    def test_duplicate_id_rejected(self):
        a = _job("a.mov")
        store = QueueStore([a])
        with pytest.raises(DuplicateJobError) as exc_info:
            store.append([a])
        assert exc_info.value.job_id == a.id

    def test_duplicate_within_batch_rejected_atomically(self):
        a, b = _job("a.mov"), _job("b.mov")
        store = QueueStore()
        with pytest.raises(DuplicateJobError):
            store.append([a, b, a])
        assert len(store) == 0

    def test_removed_id_cannot_be_reused(self):
        a = _job("a.mov")
        store = QueueStore([a])
        store.remove_where(lambda job: job.id == a.id)
        with pytest.raises(DuplicateJobError):
            store.append([a])


class TestUpdate:
    """Partial updates by ID."""

    def test_update_merges_fields(self):
        a = _job("a.mov")
        store = QueueStore([a])
        assert store.update(a.id, status=JobStatus.PROCESSING, progress=40) is True

        updated = store.get(a.id)
        assert updated.status == JobStatus.PROCESSING
        assert updated.progress == 40
        assert updated.display_name == "a.mov"

    def test_update_absent_job_returns_false(self):
        store = QueueStore()
        assert store.update("missing", progress=10) is False

    def test_immutable_fields_rejected(self):
        a = _job("a.mov")
        store = QueueStore([a])
        with pytest.raises(ImmutableFieldError) as exc_info:
            store.update(a.id, display_name="b.mov", id="other")
        assert exc_info.value.fields == ["display_name", "id"]
        assert store.get(a.id).display_name == "a.mov"

    def test_unknown_field_rejected(self):
        a = _job("a.mov")
        store = QueueStore([a])
        with pytest.raises(ValueError, match="Unknown job field"):
            store.update(a.id, colour="red")

    def test_invalid_value_rejected(self):
        a = _job("a.mov")
        store = QueueStore([a])
        with pytest.raises(ValueError):
            store.update(a.id, progress=101)
        assert store.get(a.id).progress == 0

    def test_when_predicate_guards_update(self):
        a = _job("a.mov")
        store = QueueStore([a])
        processing = lambda job: job.status == JobStatus.PROCESSING

        assert store.update(a.id, when=processing, progress=50) is False
        assert store.get(a.id).progress == 0

        store.update(a.id, status=JobStatus.PROCESSING)
        assert store.update(a.id, when=processing, progress=50) is True
        assert store.get(a.id).progress == 50

    def test_snapshot_is_not_affected_by_later_updates(self):
        a = _job("a.mov")
        store = QueueStore([a])
        before = store.snapshot()
        store.update(a.id, progress=75)

        assert before[0].progress == 0
        assert store.snapshot()[0].progress == 75

    def test_concurrent_updates_to_different_jobs(self):
        jobs = [_job(f"{i}.mov") for i in range(8)]
        store = QueueStore(jobs)

        def bump(job_id):
            for value in range(101):
                store.update(job_id, progress=value)

        threads = [threading.Thread(target=bump, args=(job.id,)) for job in jobs]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert [job.progress for job in store.snapshot()] == [100] * 8


class TestRemoveWhere:
    """Predicate removal."""

    def test_survivors_keep_order(self):
        jobs = [_job(f"{i}.mov") for i in range(5)]
        store = QueueStore(jobs)
        removed = store.remove_where(lambda job: job.display_name in ("1.mov", "3.mov"))

        assert [job.display_name for job in removed] == ["1.mov", "3.mov"]
        assert [job.display_name for job in store.snapshot()] == ["0.mov", "2.mov", "4.mov"]

    def test_no_match_does_not_notify(self):
        store = QueueStore([_job("a.mov")])
        calls = []
        store.subscribe(lambda: calls.append(1))
        assert store.remove_where(lambda job: False) == []
        assert calls == []


class TestListeners:
    """Change notification."""

    def test_listener_called_after_each_mutation(self):
        store = QueueStore()
        seen = []
        store.subscribe(lambda: seen.append(len(store)))

        a = _job("a.mov")
        store.append([a])
        store.update(a.id, progress=5)
        store.remove_where(lambda job: True)

        assert seen == [1, 1, 0]

    def test_rejected_update_does_not_notify(self):
        a = _job("a.mov")
        store = QueueStore([a])
        calls = []
        store.subscribe(lambda: calls.append(1))
        store.update(a.id, when=lambda job: False, progress=5)
        store.update("missing", progress=5)
        assert calls == []

    def test_unsubscribe(self):
        store = QueueStore()
        calls = []
        unsubscribe = store.subscribe(lambda: calls.append(1))
        unsubscribe()
        unsubscribe()
        store.append([_job("a.mov")])
        assert calls == []

    def test_failing_listener_does_not_break_others(self):
        store = QueueStore()
        calls = []

        def broken():
            raise RuntimeError("listener bug")

        store.subscribe(broken)
        store.subscribe(lambda: calls.append(1))
        store.append([_job("a.mov")])
        assert calls == [1]
        assert len(store) == 1

    def test_listener_may_write_to_store(self):
        """Listeners run outside the store lock."""
        a = _job("a.mov")
        store = QueueStore([a])

        def promote():
            store.update(a.id, when=lambda job: job.status == JobStatus.QUEUED, status=JobStatus.PROCESSING)

        store.subscribe(promote)
        store.update(a.id, progress=1)
        assert store.get(a.id).status == JobStatus.PROCESSING
