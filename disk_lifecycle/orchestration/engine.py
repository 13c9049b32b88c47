"""
Disk Lifecycle - Workflow Engine

Coordinates the lifecycle workflow:
1. Create disk
2. Attach disk to VM
3. Resize disk
4. Detach disk
5. Delete disk

Steps run strictly in order. Progress is persisted after every transition,
so a failed or interrupted run can be resumed from its first unfinished
step. Nothing is rolled back automatically: after a failure the disk is
left as the last succeeded step made it.
"""

import threading
from datetime import datetime, timezone
from typing import Optional

from disk_lifecycle.cloud.base import CloudResourceClient
from disk_lifecycle.core.config import LifecycleConfig
from disk_lifecycle.core.exceptions import (
    InvalidWorkflowError,
    RunNotFoundError,
    StateStoreError,
)
from disk_lifecycle.orchestration.executor import StepExecutor
from disk_lifecycle.orchestration.state import (
    RunStatus,
    StepKind,
    StepRecord,
    StepStatus,
    WorkflowParams,
    WorkflowRun,
)
from disk_lifecycle.orchestration.store import StateStore
from disk_lifecycle.utils.logger import get_logger, log_state_change
from disk_lifecycle.utils.progress import create_progress_tracker

STEP_TITLES = {
    StepKind.CREATE: "Creating disk",
    StepKind.ATTACH: "Attaching disk",
    StepKind.RESIZE: "Resizing disk",
    StepKind.DETACH: "Detaching disk",
    StepKind.DELETE: "Deleting disk",
}


class WorkflowEngine:
    """
    Drives workflow runs step by step.

    Example:
        engine = WorkflowEngine(client, store, config, logger)
        run = engine.run(params)

        if run.status == RunStatus.FAILED:
            run = engine.resume(run.id)
    """

    def __init__(self, client: CloudResourceClient, store: StateStore,
                 config: LifecycleConfig = None, logger=None,
                 executor: StepExecutor = None,
                 abort_event: Optional[threading.Event] = None):
        """
        Initialize workflow engine.

        Args:
            client: Cloud client used by every step
            store: Where runs are persisted
            config: Optional lifecycle configuration
            logger: Optional logger
            executor: Step executor (default built from config)
            abort_event: When set, the run stops before its next step
        """
        self.client = client
        self.store = store
        self.config = config or LifecycleConfig()
        self.logger = logger or get_logger()
        self.executor = executor or StepExecutor(self.config, self.logger)
        self.abort_event = abort_event or threading.Event()

    def abort(self):
        """Request an abort; takes effect between steps."""
        self.abort_event.set()

    def run(self, params: WorkflowParams) -> WorkflowRun:
        """
        Start a new workflow run and drive it to a final state.

        Returns:
            The run in status completed, failed or aborted

        Raises:
            StateStoreError: If progress cannot be persisted
        """
        run = WorkflowRun.new(params)
        self._save(run)
        self.logger.info(f"Workflow run {run.id} created")
        return self._drive(run)

    def resume(self, run_id: str, from_step: Optional[StepKind] = None) -> WorkflowRun:
        """
        Continue a persisted run from its first step that has not succeeded.

        A failed or interrupted step is retried from scratch: its attempt
        count and last error are reset. Succeeded steps are never re-run.

        Args:
            run_id: Id of the run to resume
            from_step: Optional step the caller expects to resume from; it
                must be the first step that has not succeeded

        Raises:
            InvalidWorkflowError: Unknown or completed run, or out-of-order resume
            StateStoreError: If progress cannot be persisted
        """
        try:
            run = self.store.load(run_id)
        except RunNotFoundError as e:
            raise InvalidWorkflowError(f"Cannot resume unknown workflow run: {run_id}") from e

        if run.status == RunStatus.COMPLETED:
            raise InvalidWorkflowError(f"Workflow run {run_id} is already completed")

        if not run.is_ordered():
            raise InvalidWorkflowError(
                f"Workflow run {run_id} has inconsistent step states; refusing to resume"
            )

        next_step = run.next_step()
        if next_step is None:
            raise InvalidWorkflowError(f"Workflow run {run_id} has no steps left to run")

        if from_step is not None and StepKind(from_step) != next_step.kind:
            raise InvalidWorkflowError(
                f"Cannot resume run {run_id} from '{StepKind(from_step).value}': "
                f"next step to run is '{next_step.kind.value}'"
            )

        if next_step.status != StepStatus.NOT_STARTED:
            log_state_change(self.logger, f"step {next_step.kind.value}",
                             next_step.status.value, StepStatus.NOT_STARTED.value)
            next_step.status = StepStatus.NOT_STARTED
            next_step.attempt_count = 0
            next_step.last_error = None
            next_step.started_at = None
            next_step.finished_at = None

        self.abort_event.clear()
        self.logger.info(f"Resuming workflow run {run.id} at step '{next_step.kind.value}'")
        return self._drive(run)

    def _drive(self, run: WorkflowRun) -> WorkflowRun:
        """Execute remaining steps in order."""
        self._set_run_status(run, RunStatus.RUNNING)
        self._save(run)

        progress = create_progress_tracker(
            total_steps=len(run.steps),
            desc=f"Run {run.id[:8]}",
            enabled=self.config.show_progress,
            initial=run.succeeded_count(),
        )

        with progress:
            while True:
                step = run.next_step()
                if step is None:
                    self._set_run_status(run, RunStatus.COMPLETED)
                    self._save(run)
                    self.logger.info(f"[OK] Workflow run {run.id} completed")
                    return run

                if self.abort_event.is_set():
                    self._set_run_status(run, RunStatus.ABORTED)
                    self._save(run)
                    self.logger.warning(
                        f"Workflow run {run.id} aborted before step '{step.kind.value}'"
                    )
                    return run

                progress.update_step(STEP_TITLES[step.kind])
                self.logger.info(f"  {STEP_TITLES[step.kind]}...")

                if not self._execute_step(run, step):
                    return run

                self.logger.info(f"  [OK] {step.kind.value} succeeded")
                progress.advance()

    def _execute_step(self, run: WorkflowRun, step: StepRecord) -> bool:
        """
        Run one step and persist the result.

        Returns:
            True if the step succeeded
        """
        self._start_step(run, step)
        self._save(run)

        try:
            outcome = self.executor.execute(step, self.client, run.params)
        except StateStoreError:
            raise
        except Exception as e:
            step.last_error = {'kind': type(e).__name__, 'code': 'unexpected', 'message': str(e)}
            self._finish_step(run, step, StepStatus.FAILED)
            self._set_run_status(run, RunStatus.FAILED)
            self._save(run)
            raise

        if outcome.succeeded:
            self._finish_step(run, step, StepStatus.SUCCEEDED)
            self._save(run)
            return True

        # Transient failures that exhausted retries are escalated like permanent ones
        self._finish_step(run, step, StepStatus.FAILED)
        self._set_run_status(run, RunStatus.FAILED)
        self._save(run)
        self.logger.error(
            f"Step '{step.kind.value}' failed ({outcome.error.kind}: {outcome.error.code})"
        )
        return False

    def _start_step(self, run: WorkflowRun, step: StepRecord):
        """Mark a step running, enforcing step order."""
        for record in run.steps:
            if record is step:
                break
            if record.status != StepStatus.SUCCEEDED:
                raise InvalidWorkflowError(
                    f"Cannot start '{step.kind.value}' before '{record.kind.value}' has succeeded"
                )
        if run.running_steps():
            raise InvalidWorkflowError(f"Workflow run {run.id} already has a running step")

        log_state_change(self.logger, f"step {step.kind.value}",
                         step.status.value, StepStatus.RUNNING.value)
        step.status = StepStatus.RUNNING
        step.started_at = datetime.now(timezone.utc)
        step.finished_at = None
        run.touch()

    def _finish_step(self, run: WorkflowRun, step: StepRecord, status: StepStatus):
        log_state_change(self.logger, f"step {step.kind.value}", step.status.value, status.value)
        step.status = status
        step.finished_at = datetime.now(timezone.utc)
        run.touch()

    def _set_run_status(self, run: WorkflowRun, status: RunStatus):
        if run.status != status:
            log_state_change(self.logger, f"run {run.id}", run.status.value, status.value)
        run.status = status
        run.touch()

    def _save(self, run: WorkflowRun):
        self.store.save(run)
