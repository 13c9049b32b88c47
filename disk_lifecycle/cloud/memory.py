"""
Disk Lifecycle - In-Memory Cloud Client

A deterministic, dependency-free stand-in for a real cloud. Used by
--dry-run and by the test suite.

Behaves like Compute Engine where it matters to the workflow:
- Disk names are unique (create on an existing name is a conflict)
- Disks cannot shrink
- A disk attached to a VM cannot be deleted
- A LUN slot holds one disk

Faults can be injected per method:

    client = InMemoryCloudClient(vms=['vm-1'])
    client.inject('attach_disk', TransientCloudError('throttled', code='throttled'), times=3)
    client.inject('create_disk', TransientCloudError('timeout'), apply=True)
"""

import threading
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from disk_lifecycle.cloud.base import (
    CloudResourceClient,
    DiskHandle,
    DiskState,
    ProvisioningState,
)
from disk_lifecycle.core.exceptions import (
    CloudError,
    DiskNotFoundError,
    PermanentCloudError,
    VMNotFoundError,
)


@dataclass
class _Fault:
    error: CloudError
    apply: bool = False  # perform the call, then raise


@dataclass
class _Disk:
    name: str
    size_gb: int
    sku: str
    location: Optional[str]
    resource_group: Optional[str]
    state: ProvisioningState = ProvisioningState.CREATING
    pending_polls: int = 0
    attached_to: List[str] = field(default_factory=list)


class InMemoryCloudClient(CloudResourceClient):
    """
    Simulated cloud holding disks and VM attachment slots in memory.

    Args:
        vms: VM names that exist
        settle_polls: Number of get_disk_state() calls a disk reports
            CREATING/UPDATING before it settles (0 settles immediately)
    """

    def __init__(self, vms: Iterable[str] = (), settle_polls: int = 0):
        self.settle_polls = settle_polls
        self.disks: Dict[str, _Disk] = {}
        self.vms: Dict[str, Dict[int, str]] = {vm: {} for vm in vms}
        self.calls: List[tuple] = []
        self._faults = defaultdict(deque)
        self._fail_provisioning = set()
        self._lock = threading.Lock()

    # Fault injection

    def inject(self, method: str, error: CloudError, times: int = 1, apply: bool = False):
        """
        Make the next `times` calls to `method` raise `error`.

        With apply=True the call takes effect before the error is raised,
        like a request that succeeded server-side but timed out client-side.
        """
        for _ in range(times):
            self._faults[method].append(_Fault(error=error, apply=apply))

    def fail_provisioning(self, disk_name: str):
        """Make the next settle of disk_name report FAILED."""
        self._fail_provisioning.add(disk_name)

    def add_vm(self, vm_name: str, disks: Optional[Dict[int, str]] = None):
        self.vms[vm_name] = dict(disks or {})

    def call_count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    def _enter(self, method: str, *args) -> Optional[_Fault]:
        self.calls.append((method,) + args)
        fault = self._faults[method].popleft() if self._faults[method] else None
        if fault is not None and not fault.apply:
            raise fault.error
        return fault

    @staticmethod
    def _leave(fault: Optional[_Fault]):
        if fault is not None:
            raise fault.error

    def _get(self, name: str) -> _Disk:
        disk = self.disks.get(name)
        if disk is None:
            raise DiskNotFoundError(name)
        return disk

    def _vm(self, vm_name: str) -> Dict[int, str]:
        if vm_name not in self.vms:
            raise VMNotFoundError(vm_name)
        return self.vms[vm_name]

    def _start_update(self, disk: _Disk, state: ProvisioningState):
        disk.state = state
        disk.pending_polls = self.settle_polls

    # CloudResourceClient

    def create_disk(self, name, size_gb, sku, location, resource_group) -> DiskHandle:
        with self._lock:
            fault = self._enter('create_disk', name, size_gb, sku)
            if name in self.disks:
                raise PermanentCloudError(f"Disk '{name}' already exists", code='conflict')
            if size_gb <= 0:
                raise PermanentCloudError(f"Invalid disk size: {size_gb}", code='invalid_parameter')
            disk = _Disk(name=name, size_gb=size_gb, sku=sku,
                         location=location, resource_group=resource_group)
            self._start_update(disk, ProvisioningState.CREATING)
            self.disks[name] = disk
            self._leave(fault)
            return DiskHandle(name=name, location=location, resource_group=resource_group)

    def attach_disk(self, vm_name, disk, lun) -> None:
        with self._lock:
            fault = self._enter('attach_disk', vm_name, disk.name, lun)
            slots = self._vm(vm_name)
            record = self._get(disk.name)
            if vm_name in record.attached_to:
                raise PermanentCloudError(
                    f"Disk '{disk.name}' is already attached to '{vm_name}'", code='conflict')
            if lun in slots:
                raise PermanentCloudError(
                    f"LUN {lun} on '{vm_name}' is already used by '{slots[lun]}'", code='conflict')
            slots[lun] = disk.name
            record.attached_to.append(vm_name)
            self._start_update(record, ProvisioningState.UPDATING)
            self._leave(fault)

    def resize_disk(self, name, new_size_gb) -> None:
        with self._lock:
            fault = self._enter('resize_disk', name, new_size_gb)
            record = self._get(name)
            if new_size_gb <= record.size_gb:
                raise PermanentCloudError(
                    f"New size {new_size_gb}GB must be larger than current size "
                    f"{record.size_gb}GB", code='invalid_parameter')
            record.size_gb = new_size_gb
            self._start_update(record, ProvisioningState.UPDATING)
            self._leave(fault)

    def detach_disk(self, vm_name, disk) -> None:
        with self._lock:
            fault = self._enter('detach_disk', vm_name, disk.name)
            slots = self._vm(vm_name)
            record = self._get(disk.name)
            if vm_name not in record.attached_to:
                raise PermanentCloudError(
                    f"Disk '{disk.name}' is not attached to '{vm_name}'", code='not_found')
            for lun, name in list(slots.items()):
                if name == disk.name:
                    del slots[lun]
            record.attached_to.remove(vm_name)
            self._start_update(record, ProvisioningState.UPDATING)
            self._leave(fault)

    def delete_disk(self, name) -> None:
        with self._lock:
            fault = self._enter('delete_disk', name)
            record = self._get(name)
            if record.attached_to:
                raise PermanentCloudError(
                    f"Disk '{name}' is in use by {', '.join(record.attached_to)}", code='conflict')
            del self.disks[name]
            self._leave(fault)

    def get_disk_state(self, name) -> DiskState:
        with self._lock:
            fault = self._enter('get_disk_state', name)
            record = self._get(name)
            if not record.state.is_terminal:
                if record.pending_polls > 0:
                    record.pending_polls -= 1
                elif name in self._fail_provisioning:
                    self._fail_provisioning.discard(name)
                    record.state = ProvisioningState.FAILED
                else:
                    record.state = ProvisioningState.SUCCEEDED
            state = DiskState(
                provisioning_state=record.state,
                size_gb=record.size_gb,
                attached_to=list(record.attached_to),
                sku=record.sku,
            )
            self._leave(fault)
            return state

    def get_vm_disks(self, vm_name) -> Dict[int, str]:
        with self._lock:
            fault = self._enter('get_vm_disks', vm_name)
            slots = dict(self._vm(vm_name))
            self._leave(fault)
            return slots
