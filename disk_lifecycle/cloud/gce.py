"""
Disk Lifecycle - Google Compute Engine Client

Implements CloudResourceClient on top of the Compute Engine v1 API
(google-api-python-client discovery client).

GCE calls return zonal operations. Triggering methods remember the
operation for each disk; get_disk_state() checks it so that an operation
that finished with an error surfaces as a cloud error instead of a timeout.
"""

import json
import logging
import re
import socket
from typing import Dict, Optional

import httplib2
from googleapiclient.errors import HttpError

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
    TransientCloudError,
    VMNotFoundError,
)
from disk_lifecycle.utils.logger import log_api_call, log_api_response

TRANSIENT_STATUSES = {429: 'throttled', 500: 'unavailable', 502: 'unavailable',
                      503: 'unavailable', 504: 'unavailable'}

# GCE disk status -> provider-neutral state
DISK_STATUS_MAP = {
    'CREATING': ProvisioningState.CREATING,
    'RESTORING': ProvisioningState.CREATING,
    'READY': ProvisioningState.SUCCEEDED,
    'FAILED': ProvisioningState.FAILED,
    'DELETING': ProvisioningState.DELETING,
}

LUN_DEVICE_RE = re.compile(r'^lun-(\d+)$')


def lun_device_name(lun: int) -> str:
    """Device name used to pin a disk to a LUN slot."""
    return f'lun-{lun}'


def _error_reason(error: HttpError) -> Optional[str]:
    """Extract the first 'reason' from a GCE error body."""
    try:
        body = json.loads(error.content.decode('utf-8'))
        errors = body.get('error', {}).get('errors', [])
        if errors:
            return errors[0].get('reason')
    except (ValueError, AttributeError):
        pass
    return None


def classify_http_error(error: HttpError, message: str = None) -> CloudError:
    """
    Translate an HttpError into the cloud error taxonomy.

    Args:
        error: Error raised by googleapiclient
        message: Optional context prefix

    Returns:
        TransientCloudError or PermanentCloudError
    """
    status = int(error.resp.status)
    reason = _error_reason(error)
    text = f"{message}: {error}" if message else str(error)

    if status in TRANSIENT_STATUSES:
        return TransientCloudError(text, code=TRANSIENT_STATUSES[status])
    if status == 403:
        if reason in ('rateLimitExceeded', 'userRateLimitExceeded'):
            return TransientCloudError(text, code='throttled')
        if reason == 'quotaExceeded':
            return PermanentCloudError(text, code='quota_exceeded')
        return PermanentCloudError(text, code='forbidden')
    if status == 404:
        return PermanentCloudError(text, code='not_found')
    if status == 409:
        return PermanentCloudError(text, code='conflict')
    if status == 400 and reason in ('resourceInUseByAnotherResource', 'alreadyExists'):
        return PermanentCloudError(text, code='conflict')
    return PermanentCloudError(text, code='invalid_parameter')


def _short_name(url: str) -> str:
    """Last path segment of a GCE resource URL."""
    return url.rstrip('/').split('/')[-1]


class GCEDiskClient(CloudResourceClient):
    """
    Compute Engine implementation of the cloud client.

    The resource group maps to the GCP project and the location to the zone.

    Example:
        compute, project = AuthManager().get_client(project)
        client = GCEDiskClient(compute, project, 'us-central1-a', logger)
        client.create_disk('data-1', 10, 'pd-standard', 'us-central1-a', project)
    """

    def __init__(self, compute, project: str, zone: str, logger=None):
        """
        Initialize client.

        Args:
            compute: GCP compute client
            project: GCP project ID
            zone: GCP zone
            logger: Optional logger for debug output
        """
        self.compute = compute
        self.project = project
        self.zone = zone
        self.logger = logger or logging.getLogger('disk_lifecycle')
        self._pending_operations: Dict[str, str] = {}

    def _execute(self, request, description: str):
        """Run an API request, translating errors."""
        try:
            return request.execute()
        except HttpError as e:
            raise classify_http_error(e, description) from e
        except (socket.timeout, TimeoutError) as e:
            raise TransientCloudError(f"{description}: {e}", code='timeout') from e
        except (ConnectionError, httplib2.HttpLib2Error) as e:
            raise TransientCloudError(f"{description}: {e}", code='network') from e

    def _track(self, disk_name: str, operation: dict):
        if operation and operation.get('name'):
            self._pending_operations[disk_name] = operation['name']

    def _check_pending_operation(self, disk_name: str):
        """Raise if the last operation on this disk finished with an error."""
        op_name = self._pending_operations.get(disk_name)
        if not op_name:
            return

        log_api_call(self.logger, 'zoneOperations.get', zone=self.zone, operation=op_name)
        op = self._execute(
            self.compute.zoneOperations().get(
                project=self.project, zone=self.zone, operation=op_name),
            f"Get operation {op_name}"
        )
        if op.get('status') != 'DONE':
            return

        del self._pending_operations[disk_name]
        errors = op.get('error', {}).get('errors', [])
        if errors:
            first = errors[0]
            code = 'quota_exceeded' if first.get('code') == 'QUOTA_EXCEEDED' else 'provisioning_failed'
            raise PermanentCloudError(
                f"Operation {op_name} failed: {first.get('message', first.get('code'))}",
                code=code
            )

    def _disk_type_url(self, sku: str, location: str, resource_group: str) -> str:
        return f'projects/{resource_group}/zones/{location}/diskTypes/{sku}'

    def create_disk(self, name, size_gb, sku, location, resource_group) -> DiskHandle:
        location = location or self.zone
        resource_group = resource_group or self.project

        disk_body = {
            'name': name,
            'sizeGb': str(size_gb),
            'type': self._disk_type_url(sku, location, resource_group),
        }
        log_api_call(self.logger, 'disks.insert', project=resource_group, zone=location, body=disk_body)

        op = self._execute(
            self.compute.disks().insert(project=resource_group, zone=location, body=disk_body),
            f"Create disk {name}"
        )
        log_api_response(self.logger, op)
        self._track(name, op)
        return DiskHandle(name=name, location=location, resource_group=resource_group)

    def attach_disk(self, vm_name, disk, lun) -> None:
        location = disk.location or self.zone
        resource_group = disk.resource_group or self.project

        attach_body = {
            'source': f'projects/{resource_group}/zones/{location}/disks/{disk.name}',
            'deviceName': lun_device_name(lun),
            'boot': False,
            'autoDelete': False,
            'mode': 'READ_WRITE',
        }
        log_api_call(self.logger, 'instances.attachDisk', instance=vm_name, body=attach_body)

        op = self._execute(
            self.compute.instances().attachDisk(
                project=self.project, zone=self.zone, instance=vm_name, body=attach_body),
            f"Attach disk {disk.name} to {vm_name}"
        )
        self._track(disk.name, op)

    def resize_disk(self, name, new_size_gb) -> None:
        log_api_call(self.logger, 'disks.resize', disk=name, sizeGb=new_size_gb)
        op = self._execute(
            self.compute.disks().resize(
                project=self.project, zone=self.zone, disk=name,
                body={'sizeGb': str(new_size_gb)}),
            f"Resize disk {name}"
        )
        self._track(name, op)

    def detach_disk(self, vm_name, disk) -> None:
        vm = self._get_instance(vm_name)

        device_name = None
        for attached in vm.get('disks', []):
            if _short_name(attached.get('source', '')) == disk.name:
                device_name = attached['deviceName']
                break

        if device_name is None:
            raise PermanentCloudError(
                f"Disk {disk.name} is not attached to {vm_name}", code='not_found')

        log_api_call(self.logger, 'instances.detachDisk', instance=vm_name, deviceName=device_name)
        op = self._execute(
            self.compute.instances().detachDisk(
                project=self.project, zone=self.zone, instance=vm_name,
                deviceName=device_name),
            f"Detach disk {disk.name} from {vm_name}"
        )
        self._track(disk.name, op)

    def delete_disk(self, name) -> None:
        log_api_call(self.logger, 'disks.delete', disk=name)
        try:
            op = self._execute(
                self.compute.disks().delete(project=self.project, zone=self.zone, disk=name),
                f"Delete disk {name}"
            )
        except PermanentCloudError as e:
            if e.code == 'not_found':
                raise DiskNotFoundError(name, self.zone) from e
            raise
        self._track(name, op)

    def get_disk_state(self, name) -> DiskState:
        self._check_pending_operation(name)

        try:
            disk = self._execute(
                self.compute.disks().get(project=self.project, zone=self.zone, disk=name),
                f"Get disk {name}"
            )
        except PermanentCloudError as e:
            if e.code == 'not_found':
                raise DiskNotFoundError(name, self.zone) from e
            raise

        log_api_response(self.logger, disk)
        status = disk.get('status', 'CREATING')
        return DiskState(
            provisioning_state=DISK_STATUS_MAP.get(status, ProvisioningState.UPDATING),
            size_gb=int(disk.get('sizeGb', 0)),
            attached_to=[_short_name(user) for user in disk.get('users', [])],
            sku=_short_name(disk['type']) if disk.get('type') else None,
        )

    def _get_instance(self, vm_name: str) -> dict:
        try:
            return self._execute(
                self.compute.instances().get(project=self.project, zone=self.zone, instance=vm_name),
                f"Get VM {vm_name}"
            )
        except PermanentCloudError as e:
            if e.code == 'not_found':
                raise VMNotFoundError(vm_name, self.zone) from e
            raise

    def get_vm_disks(self, vm_name) -> Dict[int, str]:
        vm = self._get_instance(vm_name)

        slots = {}
        for attached in vm.get('disks', []):
            match = LUN_DEVICE_RE.match(attached.get('deviceName', ''))
            lun = int(match.group(1)) if match else attached.get('index')
            if lun is not None:
                slots[lun] = _short_name(attached.get('source', ''))
        return slots
