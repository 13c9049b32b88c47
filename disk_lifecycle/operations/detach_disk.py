"""
Disk Lifecycle - Detach Disk Operation

Detaches the disk from the VM. A disk that is not attached counts as
already detached.
"""

from disk_lifecycle.core.exceptions import DiskNotFoundError
from disk_lifecycle.operations.base import BaseOperation
from disk_lifecycle.orchestration.state import StepKind


class DetachDiskOperation(BaseOperation):
    """
    Detaches a disk from a VM.
    """

    kind = StepKind.DETACH

    @property
    def name(self) -> str:
        """Display name for this operation."""
        return "Detach Disk"

    def already_applied(self) -> bool:
        state = self._read_state()
        if state is None:
            raise DiskNotFoundError(self.params.disk_name, self.params.location)
        return self.params.vm_name not in state.attached_to

    def trigger(self) -> None:
        self.client.detach_disk(self.params.vm_name, self.handle)

    def is_complete(self, state) -> bool:
        return self.params.vm_name not in state.attached_to
