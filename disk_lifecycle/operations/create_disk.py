"""
Disk Lifecycle - Create Disk Operation

Creates an empty disk. Re-issuing the create for a disk that already
exists with the same size and type counts as success.
"""

from disk_lifecycle.core.exceptions import PermanentCloudError
from disk_lifecycle.operations.base import BaseOperation
from disk_lifecycle.orchestration.state import StepKind


class CreateDiskOperation(BaseOperation):
    """
    Creates a new disk of params.initial_size_gb.
    """

    kind = StepKind.CREATE
    allows_missing = True  # GCE may not list the disk right after insert

    @property
    def name(self) -> str:
        """Display name for this operation."""
        return "Create Disk"

    def already_applied(self) -> bool:
        state = self._read_state()
        if state is None:
            return False

        size_matches = state.size_gb == self.params.initial_size_gb
        sku_matches = state.sku is None or state.sku == self.params.sku
        if size_matches and sku_matches:
            return True

        raise PermanentCloudError(
            f"Disk '{self.params.disk_name}' already exists with different properties "
            f"(size: {state.size_gb}GB, type: {state.sku})",
            code='conflict'
        )

    def trigger(self) -> None:
        self._log_debug(
            f"  Size: {self.params.initial_size_gb}GB, Type: {self.params.sku}, "
            f"Zone: {self.params.location}"
        )
        try:
            self.client.create_disk(
                self.params.disk_name,
                self.params.initial_size_gb,
                self.params.sku,
                self.params.location,
                self.params.resource_group,
            )
        except PermanentCloudError as e:
            # An earlier try may have created it before failing client-side
            if e.code == 'conflict' and self.already_applied():
                self._log_debug(f"Disk {self.params.disk_name} already exists with matching properties")
                return
            raise

    def is_complete(self, state) -> bool:
        return state is not None and state.provisioning_state.is_terminal
