import pytest

from disk_lifecycle.orchestration import (
    STEP_ORDER,
    RunStatus,
    StepKind,
    StepStatus,
    WorkflowParams,
    WorkflowRun,
)


class TestWorkflowRun:
    def test_new_run_has_all_steps_not_started(self, params):
        run = WorkflowRun.new(params)

        assert run.status == RunStatus.PENDING
        assert [s.kind for s in run.steps] == list(STEP_ORDER)
        assert all(s.status == StepStatus.NOT_STARTED for s in run.steps)
        assert all(s.attempt_count == 0 and s.last_error is None for s in run.steps)

    def test_ids_are_unique(self, params):
        assert WorkflowRun.new(params).id != WorkflowRun.new(params).id

    def test_parameter_shortcuts(self, params):
        run = WorkflowRun.new(params)
        assert run.disk_name == "data-1"
        assert run.vm_name == "vm-1"
        assert run.resource_group == "test-project"
        assert run.initial_size_gb == 10
        assert run.target_size_gb == 20

    def test_next_step_skips_succeeded_prefix(self, params):
        run = WorkflowRun.new(params)
        run.step(StepKind.CREATE).status = StepStatus.SUCCEEDED
        run.step(StepKind.ATTACH).status = StepStatus.FAILED

        assert run.next_step().kind == StepKind.ATTACH
        assert run.failed_step().kind == StepKind.ATTACH
        assert run.succeeded_count() == 1

    def test_next_step_is_none_when_all_succeeded(self, params):
        run = WorkflowRun.new(params)
        for step in run.steps:
            step.status = StepStatus.SUCCEEDED
        assert run.next_step() is None

    def test_is_ordered_rejects_gaps(self, params):
        run = WorkflowRun.new(params)
        run.step(StepKind.ATTACH).status = StepStatus.SUCCEEDED
        assert not run.is_ordered()

    def test_is_ordered_rejects_two_running_steps(self, params):
        run = WorkflowRun.new(params)
        run.step(StepKind.CREATE).status = StepStatus.RUNNING
        run.step(StepKind.ATTACH).status = StepStatus.RUNNING
        assert not run.is_ordered()

    def test_unknown_step_kind(self, params):
        run = WorkflowRun.new(params)
        run.steps.pop()
        with pytest.raises(KeyError):
            run.step(StepKind.DELETE)


class TestSerialization:
    def test_round_trip(self, params):
        run = WorkflowRun.new(params)
        create = run.step(StepKind.CREATE)
        create.status = StepStatus.FAILED
        create.attempt_count = 4
        create.last_error = {"kind": "TransientCloudError", "code": "throttled", "message": "429"}
        run.status = RunStatus.FAILED

        restored = WorkflowRun.from_dict(run.to_dict())

        assert restored == run

    def test_dict_is_json_safe(self, params):
        data = WorkflowRun.new(params).to_dict()
        assert data["status"] == "pending"
        assert data["steps"][0] == {
            "kind": "create",
            "status": "not_started",
            "attempt_count": 0,
            "last_error": None,
            "started_at": None,
            "finished_at": None,
        }
        assert isinstance(data["created_at"], str)

    def test_params_round_trip(self):
        params = WorkflowParams("d", "v", "p", 1, 2, location="z", sku="pd-ssd", lun=3)
        assert WorkflowParams.from_dict(params.to_dict()) == params


def test_summary_lists_every_step(params):
    run = WorkflowRun.new(params)
    summary = run.summary()

    assert summary["id"] == run.id
    assert summary["size"] == "10GB -> 20GB"
    for kind in STEP_ORDER:
        assert summary[f"step.{kind.value}"].startswith("not_started")
