"""
Disk Lifecycle - VM Attachment Slot Validator

Validates that the VM exists and the requested LUN is free before a new
run creates any resources.
"""

from disk_lifecycle.core.exceptions import VMNotFoundError
from disk_lifecycle.validators.base import BaseValidator, ValidationResult


class AttachmentSlotValidator(BaseValidator):
    """
    Validates that the VM exists and its LUN slot is free.

    A slot already holding this same disk passes, so validation does not
    block re-running a workflow for a disk that is already attached.

    Example:
        validator = AttachmentSlotValidator(params, client)
        result = validator.validate()

        if not result.passed:
            print(result.details['fix'])
    """

    @property
    def name(self) -> str:
        """Display name for this validator."""
        return "VM Attachment Slot"

    def validate(self) -> ValidationResult:
        """
        Raises:
            CloudError: Any cloud failure other than a missing VM
        """
        vm_name = self.params.vm_name
        lun = self.params.lun

        try:
            slots = self.client.get_vm_disks(vm_name)
        except VMNotFoundError:
            zone = self.params.location or '<zone>'
            return self._fail(
                f"VM '{vm_name}' not found in zone '{zone}'",
                fix=f"gcloud compute instances list --zone={zone} --project={self.params.resource_group}"
            )

        occupant = slots.get(lun)
        if occupant is not None and occupant != self.params.disk_name:
            free = next(n for n in range(len(slots) + 1) if n not in slots)
            return self._fail(
                f"LUN {lun} on VM '{vm_name}' is already used by disk '{occupant}'",
                fix=f"Choose a free slot, e.g. --lun {free}"
            )

        return self._pass(f"LUN {lun} on VM '{vm_name}' is free", slots=slots)
