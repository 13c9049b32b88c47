"""
Disk Lifecycle - Step Executor

Runs one lifecycle step:
1. Resolves the operation for the step kind
2. Applies it (idempotently) and polls until the disk reflects it
3. Retries transient failures with exponential backoff
4. Returns an Outcome; never changes step or run status itself
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from disk_lifecycle import operations
from disk_lifecycle.cloud.base import CloudResourceClient
from disk_lifecycle.core.config import LifecycleConfig
from disk_lifecycle.core.exceptions import (
    CloudError,
    PermanentCloudError,
    TransientCloudError,
)
from disk_lifecycle.orchestration.state import StepRecord, WorkflowParams
from disk_lifecycle.utils.logger import get_logger
from disk_lifecycle.utils.retry import compute_backoff


class OutcomeKind(str, Enum):
    SUCCEEDED = "succeeded"
    TRANSIENT_FAILURE = "transient_failure"
    PERMANENT_FAILURE = "permanent_failure"


@dataclass(frozen=True)
class Outcome:
    """
    Result of executing one step.

    Attributes:
        kind: succeeded, transient_failure (retries exhausted) or permanent_failure
        error: The last cloud error for failures
    """
    kind: OutcomeKind
    error: Optional[CloudError] = None

    @property
    def succeeded(self) -> bool:
        return self.kind == OutcomeKind.SUCCEEDED

    @classmethod
    def success(cls) -> "Outcome":
        return cls(OutcomeKind.SUCCEEDED)

    @classmethod
    def transient_failure(cls, error: CloudError) -> "Outcome":
        return cls(OutcomeKind.TRANSIENT_FAILURE, error)

    @classmethod
    def permanent_failure(cls, error: CloudError) -> "Outcome":
        return cls(OutcomeKind.PERMANENT_FAILURE, error)


class StepExecutor:
    """
    Executes a single StepRecord against a cloud client.

    Retries: up to config.max_retries retries after the first try, so with
    the default of 3 a step is tried at most 4 times. step.attempt_count
    counts tries.

    Example:
        executor = StepExecutor(config, logger)
        outcome = executor.execute(run.step(StepKind.CREATE), client, run.params)
        if not outcome.succeeded:
            print(outcome.error)
    """

    def __init__(self, config: LifecycleConfig = None, logger=None,
                 sleep=time.sleep, clock=time.monotonic):
        """
        Args:
            config: Retry and polling settings
            logger: Optional logger
            sleep: Function used to wait between polls and retries
            clock: Monotonic clock used for poll timeouts
        """
        self.config = config or LifecycleConfig()
        self.logger = logger or get_logger()
        self.sleep = sleep
        self.clock = clock

    def execute(self, step: StepRecord, client: CloudResourceClient,
                params: WorkflowParams) -> Outcome:
        """
        Execute one step, retrying transient errors.

        Side effects: increments step.attempt_count per try and sets
        step.last_error (cleared again on success).

        Returns:
            Outcome of the step
        """
        operation = operations.create_operation(step.kind, client, params, self.logger)
        retries = 0

        while True:
            step.attempt_count += 1
            self.logger.debug(f"{operation.name}: attempt {step.attempt_count}")

            try:
                operation.run(
                    timeout=self.config.poll_timeout,
                    interval=self.config.poll_interval,
                    sleep=self.sleep,
                    clock=self.clock,
                )
            except TransientCloudError as e:
                step.last_error = e.to_dict()
                if retries >= self.config.max_retries:
                    self.logger.error(
                        f"{operation.name} failed after {step.attempt_count} attempts: {e}"
                    )
                    return Outcome.transient_failure(e)

                retries += 1
                delay = compute_backoff(retries, self.config.backoff_base, self.config.backoff_cap)
                self.logger.warning(
                    f"{operation.name} attempt {step.attempt_count} failed ({e.code}): {e}. "
                    f"Retrying in {delay:.0f}s..."
                )
                self.sleep(delay)
                continue
            except PermanentCloudError as e:
                step.last_error = e.to_dict()
                self.logger.error(f"{operation.name} failed: {e}")
                return Outcome.permanent_failure(e)

            step.last_error = None
            return Outcome.success()
