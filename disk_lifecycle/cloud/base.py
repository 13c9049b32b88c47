"""
Disk Lifecycle - Cloud Resource Client Interface

Every workflow step talks to the cloud through this interface.
Implementations translate provider errors into TransientCloudError or
PermanentCloudError so the Step Executor can decide whether to retry.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class ProvisioningState(str, Enum):
    """Provider-neutral lifecycle state of a disk."""
    CREATING = "creating"
    UPDATING = "updating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DELETING = "deleting"

    @property
    def is_terminal(self) -> bool:
        return self in (ProvisioningState.SUCCEEDED, ProvisioningState.FAILED)


@dataclass(frozen=True)
class DiskHandle:
    """
    Reference to a disk, enough to attach or detach it.

    Attributes:
        name: Disk name
        location: Zone the disk lives in
        resource_group: Project (resource container) that owns the disk
    """
    name: str
    location: Optional[str] = None
    resource_group: Optional[str] = None


@dataclass
class DiskState:
    """
    Snapshot of a disk as reported by the provider.

    Attributes:
        provisioning_state: Lifecycle state
        size_gb: Current size
        attached_to: Names of VMs the disk is attached to
        sku: Disk type (e.g. pd-standard)
    """
    provisioning_state: ProvisioningState
    size_gb: int
    attached_to: List[str] = field(default_factory=list)
    sku: Optional[str] = None


class CloudResourceClient(ABC):
    """
    Operations on disks and VMs needed by the lifecycle workflow.

    All methods raise TransientCloudError or PermanentCloudError on failure.
    Credentials must already be established by whoever builds the client.
    """

    @abstractmethod
    def create_disk(self, name: str, size_gb: int, sku: str,
                    location: str, resource_group: str) -> DiskHandle:
        """Start creating an empty disk."""
        pass

    @abstractmethod
    def attach_disk(self, vm_name: str, disk: DiskHandle, lun: int) -> None:
        """Attach a disk to a VM at the given LUN."""
        pass

    @abstractmethod
    def resize_disk(self, name: str, new_size_gb: int) -> None:
        """Grow a disk to new_size_gb."""
        pass

    @abstractmethod
    def detach_disk(self, vm_name: str, disk: DiskHandle) -> None:
        """Detach a disk from a VM."""
        pass

    @abstractmethod
    def delete_disk(self, name: str) -> None:
        """Delete a disk."""
        pass

    @abstractmethod
    def get_disk_state(self, name: str) -> DiskState:
        """
        Get the current state of a disk.

        Raises:
            DiskNotFoundError: If the disk does not exist
        """
        pass

    @abstractmethod
    def get_vm_disks(self, vm_name: str) -> Dict[int, str]:
        """
        Map of LUN to attached disk name for a VM.

        Raises:
            VMNotFoundError: If the VM does not exist
        """
        pass
