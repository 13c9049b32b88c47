"""
Disk Lifecycle - Cloud Clients

Usage:
    from disk_lifecycle.cloud import GCEDiskClient, InMemoryCloudClient

    client = GCEDiskClient(compute, project, zone, logger)
    state = client.get_disk_state('data-1')
"""

from disk_lifecycle.cloud.base import (
    CloudResourceClient,
    DiskHandle,
    DiskState,
    ProvisioningState,
)
from disk_lifecycle.cloud.gce import GCEDiskClient, classify_http_error
from disk_lifecycle.cloud.memory import InMemoryCloudClient

__all__ = [
    'CloudResourceClient',
    'DiskHandle',
    'DiskState',
    'ProvisioningState',
    'GCEDiskClient',
    'InMemoryCloudClient',
    'classify_http_error',
]
