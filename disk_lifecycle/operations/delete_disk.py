"""
Disk Lifecycle - Delete Disk Operation

Deletes the disk. This is the last step and cannot be undone.
A disk that no longer exists counts as deleted.
"""

from disk_lifecycle.core.exceptions import PermanentCloudError
from disk_lifecycle.operations.base import BaseOperation
from disk_lifecycle.orchestration.state import StepKind


class DeleteDiskOperation(BaseOperation):
    """
    Deletes a disk.

    WARNING: the disk and its data are permanently gone afterwards.
    """

    kind = StepKind.DELETE
    allows_missing = True

    @property
    def name(self) -> str:
        """Display name for this operation."""
        return "Delete Disk"

    def already_applied(self) -> bool:
        return self._read_state() is None

    def trigger(self) -> None:
        try:
            self.client.delete_disk(self.params.disk_name)
        except PermanentCloudError as e:
            # DiskNotFoundError or a bare 404 from the delete call
            if e.code != 'not_found':
                raise
            self._log_debug(f"Disk {self.params.disk_name} already gone")

    def is_complete(self, state) -> bool:
        return state is None
