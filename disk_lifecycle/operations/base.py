"""
Disk Lifecycle - Base Operation

This module provides the base class for all lifecycle operations.
Each operation does ONE thing to a disk and knows:
- whether it has already been applied (so re-running it is safe)
- how to trigger it
- what the disk looks like once it is complete

There is no rollback: a failed run is resumed, never compensated.
"""

import time
from abc import ABC, abstractmethod
from typing import Optional

from disk_lifecycle.cloud.base import CloudResourceClient, DiskHandle, DiskState, ProvisioningState
from disk_lifecycle.core.exceptions import (
    DiskNotFoundError,
    OperationTimeoutError,
    PermanentCloudError,
)
from disk_lifecycle.orchestration.state import StepKind, WorkflowParams


class BaseOperation(ABC):
    """
    Base class for all lifecycle operations.

    Every operation must:
    1. Inherit from this class
    2. Set `kind` and implement the name property
    3. Implement already_applied(), trigger() and is_complete()

    Example usage:
        operation = ResizeDiskOperation(client, params, logger)
        operation.run(timeout=600, interval=5)
    """

    kind: StepKind = None

    # Whether a missing disk is an expected state while polling
    allows_missing = False

    def __init__(self, client: CloudResourceClient, params: WorkflowParams, logger=None):
        """
        Initialize operation.

        Args:
            client: Cloud resource client
            params: Parameters of the workflow run
            logger: Optional logger for debug output
        """
        self.client = client
        self.params = params
        self.logger = logger

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Human-readable name of this operation.

        Used for display and logging.
        """
        pass

    @property
    def handle(self) -> DiskHandle:
        return DiskHandle(
            name=self.params.disk_name,
            location=self.params.location,
            resource_group=self.params.resource_group,
        )

    @abstractmethod
    def already_applied(self) -> bool:
        """
        Check the live resources for the effect of this operation.

        Returns:
            True if triggering again is unnecessary

        Raises:
            PermanentCloudError: If the resources are in a conflicting state
        """
        pass

    @abstractmethod
    def trigger(self) -> None:
        """Issue the cloud call that starts the operation."""
        pass

    @abstractmethod
    def is_complete(self, state: Optional[DiskState]) -> bool:
        """
        Whether the operation has finished.

        Args:
            state: Current disk state, or None if the disk does not exist
        """
        pass

    def _log_debug(self, message: str):
        """Log debug message if logger available."""
        if self.logger:
            self.logger.debug(message)

    def _log_info(self, message: str):
        """Log info message if logger available."""
        if self.logger:
            self.logger.info(message)

    def _read_state(self) -> Optional[DiskState]:
        """Current disk state, None if the disk is gone."""
        try:
            return self.client.get_disk_state(self.params.disk_name)
        except DiskNotFoundError:
            return None

    def run(self, timeout: float = 600, interval: float = 5,
            sleep=time.sleep, clock=time.monotonic) -> None:
        """
        Apply the operation (unless already applied) and wait for completion.

        Raises:
            TransientCloudError: Retryable failure, including poll timeout
            PermanentCloudError: Non-retryable failure
        """
        if self.already_applied():
            self._log_debug(f"{self.name}: already applied, verifying")
        else:
            self._log_debug(f"Executing {self.name}: {self.params.disk_name}")
            self.trigger()

        self.wait_until_complete(timeout, interval, sleep, clock)

    def wait_until_complete(self, timeout: float, interval: float,
                            sleep=time.sleep, clock=time.monotonic) -> None:
        """
        Poll disk state until is_complete() holds.

        Raises:
            PermanentCloudError: Provisioning failed or disk vanished
            OperationTimeoutError: Not complete within timeout
        """
        start_time = clock()

        while True:
            state = self._read_state()

            if state is None:
                if not self.allows_missing:
                    raise DiskNotFoundError(self.params.disk_name, self.params.location)
                self._log_debug(f"{self.name}: disk not found")
            else:
                self._log_debug(
                    f"{self.name}: state={state.provisioning_state.value}, "
                    f"size={state.size_gb}GB, attached_to={state.attached_to}"
                )
                if state.provisioning_state == ProvisioningState.FAILED:
                    raise PermanentCloudError(
                        f"Disk '{self.params.disk_name}' reported provisioning state FAILED",
                        code='provisioning_failed'
                    )

            if self.is_complete(state):
                return

            if clock() - start_time > timeout:
                raise OperationTimeoutError(self.name, timeout)

            sleep(interval)
