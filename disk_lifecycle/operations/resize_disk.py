"""
Disk Lifecycle - Resize Disk Operation

Grows the disk to params.target_size_gb.
"""

from disk_lifecycle.cloud.base import ProvisioningState
from disk_lifecycle.core.exceptions import DiskNotFoundError
from disk_lifecycle.operations.base import BaseOperation
from disk_lifecycle.orchestration.state import StepKind


class ResizeDiskOperation(BaseOperation):
    """
    Resizes a disk. Disks can only grow; the provider rejects shrinking.
    """

    kind = StepKind.RESIZE

    @property
    def name(self) -> str:
        """Display name for this operation."""
        return "Resize Disk"

    def already_applied(self) -> bool:
        state = self._read_state()
        if state is None:
            raise DiskNotFoundError(self.params.disk_name, self.params.location)
        return state.size_gb == self.params.target_size_gb

    def trigger(self) -> None:
        self._log_debug(f"  New size: {self.params.target_size_gb}GB")
        self.client.resize_disk(self.params.disk_name, self.params.target_size_gb)

    def is_complete(self, state) -> bool:
        return (state.provisioning_state == ProvisioningState.SUCCEEDED
                and state.size_gb == self.params.target_size_gb)
