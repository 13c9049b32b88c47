"""
Disk Lifecycle - Attach Disk Operation

Attaches the disk to the VM at the requested LUN.
A LUN already holding another disk is a conflict; it is never overwritten.
"""

from disk_lifecycle.cloud.base import ProvisioningState
from disk_lifecycle.core.exceptions import PermanentCloudError
from disk_lifecycle.operations.base import BaseOperation
from disk_lifecycle.orchestration.state import StepKind


class AttachDiskOperation(BaseOperation):
    """
    Attaches a disk to a VM.
    """

    kind = StepKind.ATTACH

    @property
    def name(self) -> str:
        """Display name for this operation."""
        return "Attach Disk"

    def already_applied(self) -> bool:
        slots = self.client.get_vm_disks(self.params.vm_name)
        occupant = slots.get(self.params.lun)

        if occupant is not None and occupant != self.params.disk_name:
            raise PermanentCloudError(
                f"LUN {self.params.lun} on VM '{self.params.vm_name}' is already "
                f"used by disk '{occupant}'",
                code='conflict'
            )

        state = self._read_state()
        return state is not None and self.params.vm_name in state.attached_to

    def trigger(self) -> None:
        self._log_debug(f"  VM: {self.params.vm_name}, LUN: {self.params.lun}")
        self.client.attach_disk(self.params.vm_name, self.handle, self.params.lun)

    def is_complete(self, state) -> bool:
        return (state.provisioning_state == ProvisioningState.SUCCEEDED
                and self.params.vm_name in state.attached_to)
