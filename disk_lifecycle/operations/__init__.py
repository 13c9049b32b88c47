"""
Disk Lifecycle - Operations Module

One operation per lifecycle step. Each operation is idempotent: it checks
the live resources first and only triggers the cloud call when needed.

Usage:
    from disk_lifecycle.operations import create_operation

    operation = create_operation(StepKind.ATTACH, client, params, logger)
    operation.run(timeout=600, interval=5)
"""

from disk_lifecycle.operations.base import BaseOperation
from disk_lifecycle.operations.create_disk import CreateDiskOperation
from disk_lifecycle.operations.attach_disk import AttachDiskOperation
from disk_lifecycle.operations.resize_disk import ResizeDiskOperation
from disk_lifecycle.operations.detach_disk import DetachDiskOperation
from disk_lifecycle.operations.delete_disk import DeleteDiskOperation
from disk_lifecycle.orchestration.state import StepKind

OPERATIONS = {
    StepKind.CREATE: CreateDiskOperation,
    StepKind.ATTACH: AttachDiskOperation,
    StepKind.RESIZE: ResizeDiskOperation,
    StepKind.DETACH: DetachDiskOperation,
    StepKind.DELETE: DeleteDiskOperation,
}


def create_operation(kind: StepKind, client, params, logger=None) -> BaseOperation:
    """Build the operation that performs the given step kind."""
    return OPERATIONS[StepKind(kind)](client, params, logger)


__all__ = [
    'BaseOperation',
    'CreateDiskOperation',
    'AttachDiskOperation',
    'ResizeDiskOperation',
    'DetachDiskOperation',
    'DeleteDiskOperation',
    'OPERATIONS',
    'create_operation',
]
