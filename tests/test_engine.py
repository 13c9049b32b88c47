import threading
from dataclasses import replace

import pytest

from disk_lifecycle.core.exceptions import InvalidWorkflowError, StateStoreError, TransientCloudError
from disk_lifecycle.orchestration import (
    InMemoryStateStore,
    RunStatus,
    StepKind,
    StepStatus,
    WorkflowEngine,
    WorkflowRun,
)


def statuses(run):
    return {s.kind: s.status for s in run.steps}


class RecordingStore(InMemoryStateStore):
    """Keeps (run status, step statuses) for every save."""

    def __init__(self):
        super().__init__()
        self.history = []

    def save(self, run):
        self.history.append((run.status, [s.status for s in run.steps]))
        super().save(run)


class BrokenStore(InMemoryStateStore):
    def __init__(self, fail_after):
        super().__init__()
        self.saves = 0
        self.fail_after = fail_after

    def save(self, run):
        self.saves += 1
        if self.saves > self.fail_after:
            raise StateStoreError("disk full")
        super().save(run)


class TestRun:
    def test_happy_path(self, engine, client, store, params):
        run = engine.run(params)

        assert run.status == RunStatus.COMPLETED
        assert all(s.status == StepStatus.SUCCEEDED for s in run.steps)
        assert all(s.attempt_count == 1 for s in run.steps)
        assert client.disks == {}
        assert client.vms["vm-1"] == {}
        assert store.load(run.id) == run

    def test_calls_cloud_in_lifecycle_order(self, engine, client, params):
        engine.run(params)

        mutating = [c[0] for c in client.calls if c[0] != "get_disk_state" and c[0] != "get_vm_disks"]
        assert mutating == ["create_disk", "attach_disk", "resize_disk", "detach_disk", "delete_disk"]

    def test_resize_to_zero_stops_the_run(self, engine, client, store, params):
        run = engine.run(replace(params, target_size_gb=0))

        assert run.status == RunStatus.FAILED
        assert statuses(run) == {
            StepKind.CREATE: StepStatus.SUCCEEDED,
            StepKind.ATTACH: StepStatus.SUCCEEDED,
            StepKind.RESIZE: StepStatus.FAILED,
            StepKind.DETACH: StepStatus.NOT_STARTED,
            StepKind.DELETE: StepStatus.NOT_STARTED,
        }
        assert run.step(StepKind.RESIZE).last_error["kind"] == "PermanentCloudError"
        # No rollback: the disk stays created and attached
        assert client.disks["data-1"].attached_to == ["vm-1"]
        assert store.load(run.id).status == RunStatus.FAILED

    def test_retries_exhausted_fail_the_run(self, engine, client, params):
        client.inject("attach_disk", TransientCloudError("429", code="throttled"), times=4)

        run = engine.run(params)

        assert run.status == RunStatus.FAILED
        attach = run.step(StepKind.ATTACH)
        assert attach.status == StepStatus.FAILED
        assert attach.attempt_count == 4
        assert run.step(StepKind.RESIZE).status == StepStatus.NOT_STARTED

    def test_throttled_attach_recovers(self, engine, client, params):
        client.inject("attach_disk", TransientCloudError("429", code="throttled"), times=3)

        run = engine.run(params)

        assert run.status == RunStatus.COMPLETED
        assert run.step(StepKind.ATTACH).attempt_count == 4

    def test_lun_conflict(self, engine, client, params):
        client.add_vm("vm-1", {1: "other-disk"})

        run = engine.run(params)

        assert run.status == RunStatus.FAILED
        assert run.failed_step().kind == StepKind.ATTACH
        assert run.failed_step().last_error["code"] == "conflict"
        assert client.vms["vm-1"] == {1: "other-disk"}

    def test_every_transition_is_persisted(self, client, config, executor, params):
        store = RecordingStore()
        engine = WorkflowEngine(client, store, config, executor=executor)

        engine.run(params)

        assert store.history[0] == (RunStatus.PENDING, [StepStatus.NOT_STARTED] * 5)
        assert (RunStatus.RUNNING, [StepStatus.RUNNING] + [StepStatus.NOT_STARTED] * 4) in store.history
        assert store.history[-1] == (RunStatus.COMPLETED, [StepStatus.SUCCEEDED] * 5)
        for _, steps in store.history:
            assert steps.count(StepStatus.RUNNING) <= 1

    def test_store_failure_propagates(self, client, config, executor, params):
        engine = WorkflowEngine(client, BrokenStore(fail_after=2), config, executor=executor)

        with pytest.raises(StateStoreError):
            engine.run(params)

    def test_unexpected_error_is_recorded_and_raised(self, engine, client, store, params, monkeypatch):
        def explode(*args):
            raise RuntimeError("boom")

        monkeypatch.setattr(client, "create_disk", explode)

        with pytest.raises(RuntimeError):
            engine.run(params)

        (run,) = list(store.list())
        assert run.status == RunStatus.FAILED
        assert run.step(StepKind.CREATE).status == StepStatus.FAILED
        assert run.step(StepKind.CREATE).last_error["code"] == "unexpected"


class TestResume:
    @pytest.fixture
    def failed_run(self, engine, client, params):
        client.inject("resize_disk", TransientCloudError("503", code="unavailable"), times=4)
        run = engine.run(params)
        assert run.status == RunStatus.FAILED
        return run

    def test_resume_completes_the_run(self, engine, client, failed_run):
        run = engine.resume(failed_run.id)

        assert run.status == RunStatus.COMPLETED
        assert all(s.status == StepStatus.SUCCEEDED for s in run.steps)
        assert client.disks == {}

    def test_resume_matches_uninterrupted_run(self, engine, failed_run, params, client):
        resumed = engine.resume(failed_run.id)

        client.add_vm("vm-1")
        fresh = engine.run(params)

        assert resumed.status == fresh.status
        assert statuses(resumed) == statuses(fresh)

    def test_resume_resets_the_failed_step_only(self, engine, client, failed_run):
        run = engine.resume(failed_run.id)

        assert run.step(StepKind.RESIZE).attempt_count == 1
        assert run.step(StepKind.RESIZE).last_error is None
        # Succeeded steps are not re-run
        assert run.step(StepKind.CREATE).attempt_count == 1
        assert client.call_count("create_disk") == 1

    def test_resume_from_expected_step(self, engine, failed_run):
        run = engine.resume(failed_run.id, from_step=StepKind.RESIZE)
        assert run.status == RunStatus.COMPLETED

    @pytest.mark.parametrize("step", [StepKind.CREATE, StepKind.DETACH, StepKind.DELETE])
    def test_out_of_order_resume(self, engine, store, failed_run, step):
        before = store.load(failed_run.id)

        with pytest.raises(InvalidWorkflowError):
            engine.resume(failed_run.id, from_step=step)

        assert store.load(failed_run.id) == before

    def test_completed_run_cannot_be_resumed(self, engine, params):
        run = engine.run(params)
        with pytest.raises(InvalidWorkflowError):
            engine.resume(run.id)

    def test_unknown_run(self, engine):
        with pytest.raises(InvalidWorkflowError):
            engine.resume("nope")

    def test_interrupted_step_is_retried(self, engine, store, client, params):
        # Process died while create was running
        run = WorkflowRun.new(params)
        run.status = RunStatus.RUNNING
        run.step(StepKind.CREATE).status = StepStatus.RUNNING
        run.step(StepKind.CREATE).attempt_count = 2
        store.save(run)

        resumed = engine.resume(run.id)

        assert resumed.status == RunStatus.COMPLETED
        assert resumed.step(StepKind.CREATE).attempt_count == 1

    def test_inconsistent_record_is_rejected(self, engine, store, params):
        run = WorkflowRun.new(params)
        run.status = RunStatus.FAILED
        run.step(StepKind.ATTACH).status = StepStatus.SUCCEEDED
        store.save(run)

        with pytest.raises(InvalidWorkflowError):
            engine.resume(run.id)


class TestAbort:
    def test_abort_takes_effect_between_steps(self, engine, client, store, params, monkeypatch):
        attach = client.attach_disk

        def attach_then_abort(*args):
            attach(*args)
            engine.abort()

        monkeypatch.setattr(client, "attach_disk", attach_then_abort)

        run = engine.run(params)

        assert run.status == RunStatus.ABORTED
        assert run.step(StepKind.ATTACH).status == StepStatus.SUCCEEDED
        assert run.step(StepKind.RESIZE).status == StepStatus.NOT_STARTED
        assert store.load(run.id).status == RunStatus.ABORTED

    def test_aborted_run_can_be_resumed(self, client, store, config, executor, params):
        event = threading.Event()
        engine = WorkflowEngine(client, store, config, executor=executor, abort_event=event)
        event.set()

        run = engine.run(params)
        assert run.status == RunStatus.ABORTED
        assert all(s.status == StepStatus.NOT_STARTED for s in run.steps)

        run = engine.resume(run.id)
        assert run.status == RunStatus.COMPLETED
