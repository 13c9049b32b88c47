import json
import threading
from datetime import timedelta

import pytest

from disk_lifecycle.core.exceptions import RunNotFoundError, StateStoreError
from disk_lifecycle.orchestration import (
    FileStateStore,
    InMemoryStateStore,
    RunStatus,
    StepKind,
    StepStatus,
    WorkflowRun,
)


@pytest.fixture(params=["memory", "file"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryStateStore()
    return FileStateStore(tmp_path / "runs")


class TestStateStoreContract:
    def test_save_then_load_round_trips(self, any_store, params):
        run = WorkflowRun.new(params)
        run.step(StepKind.CREATE).status = StepStatus.SUCCEEDED
        run.step(StepKind.CREATE).attempt_count = 2
        run.status = RunStatus.RUNNING

        any_store.save(run)

        assert any_store.load(run.id) == run

    def test_load_unknown_id(self, any_store):
        with pytest.raises(RunNotFoundError):
            any_store.load("does-not-exist")

    def test_save_replaces_previous_record(self, any_store, params):
        run = WorkflowRun.new(params)
        any_store.save(run)
        run.status = RunStatus.FAILED
        any_store.save(run)

        assert any_store.load(run.id).status == RunStatus.FAILED
        assert len(any_store.list()) == 1

    def test_loaded_run_is_a_copy(self, any_store, params):
        run = WorkflowRun.new(params)
        any_store.save(run)

        loaded = any_store.load(run.id)
        loaded.status = RunStatus.ABORTED

        assert any_store.load(run.id).status == RunStatus.PENDING

    def test_list_is_a_stable_snapshot(self, any_store, params):
        first = WorkflowRun.new(params)
        any_store.save(first)

        snapshot = any_store.list()
        any_store.save(WorkflowRun.new(params))

        assert [r.id for r in snapshot] == [first.id]
        # Restartable
        assert [r.id for r in snapshot] == [first.id]

    def test_list_is_oldest_first(self, any_store, params):
        runs = [WorkflowRun.new(params) for _ in range(3)]
        base = runs[0].created_at
        for offset, run in enumerate(runs):
            run.created_at = base + timedelta(seconds=offset)
        for run in reversed(runs):
            any_store.save(run)

        assert [r.id for r in any_store.list()] == [r.id for r in runs]

    def test_delete(self, any_store, params):
        run = WorkflowRun.new(params)
        any_store.save(run)
        any_store.delete(run.id)

        with pytest.raises(RunNotFoundError):
            any_store.load(run.id)
        with pytest.raises(RunNotFoundError):
            any_store.delete(run.id)

    def test_concurrent_saves_leave_one_complete_record(self, any_store, params):
        run = WorkflowRun.new(params)
        errors = []

        def writer(attempts):
            try:
                copy = WorkflowRun.from_dict(run.to_dict())
                copy.step(StepKind.CREATE).attempt_count = attempts
                any_store.save(copy)
            except Exception as e:  # pragma: no cover - surfaced by the assert
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(1, 9)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        loaded = any_store.load(run.id)
        assert loaded.step(StepKind.CREATE).attempt_count in range(1, 9)


class TestFileStateStore:
    def test_record_layout(self, file_store, params):
        run = WorkflowRun.new(params)
        file_store.save(run)

        path = file_store.state_dir / f"{run.id}.json"
        assert json.loads(path.read_text())["id"] == run.id
        assert not list(file_store.state_dir.glob("*.tmp"))

    def test_survives_a_new_store_instance(self, tmp_path, params):
        run = WorkflowRun.new(params)
        FileStateStore(tmp_path / "runs").save(run)

        assert FileStateStore(tmp_path / "runs").load(run.id) == run

    def test_failed_save_keeps_previous_record(self, file_store, params, monkeypatch):
        run = WorkflowRun.new(params)
        file_store.save(run)

        def broken_replace(src, dst):
            raise OSError("disk full")

        run.status = RunStatus.FAILED
        with monkeypatch.context() as m:
            m.setattr("disk_lifecycle.orchestration.store.os.replace", broken_replace)
            with pytest.raises(StateStoreError):
                file_store.save(run)

        assert file_store.load(run.id).status == RunStatus.PENDING
        assert not list(file_store.state_dir.glob("*.tmp"))

    def test_corrupt_record(self, file_store):
        (file_store.state_dir / "broken.json").write_text("{not json")
        with pytest.raises(StateStoreError):
            file_store.load("broken")

    def test_path_like_ids_are_unknown(self, file_store):
        with pytest.raises(RunNotFoundError):
            file_store.load("../etc/passwd")

    def test_delete_removes_lock_file(self, file_store, params):
        run = WorkflowRun.new(params)
        file_store.save(run)
        file_store.delete(run.id)

        assert list(file_store.state_dir.iterdir()) == []

    def test_read_only_store_leaves_missing_dir_alone(self, tmp_path):
        store = FileStateStore(tmp_path / "missing", create=False)

        with pytest.raises(RunNotFoundError):
            store.load("nope")
        assert list(store.list()) == []
        assert not (tmp_path / "missing").exists()
