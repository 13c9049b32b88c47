"""
Disk Lifecycle - Validators Module

Pre-flight checks run before a new workflow starts.

Usage:
    from disk_lifecycle.validators import build_runner

    results = build_runner(params, client).run_all(logger)

    if not results.all_passed():
        print(results.format_failures())
"""

from disk_lifecycle.validators.base import (
    BaseValidator,
    ValidationResult,
    ValidationResults,
    ValidationRunner
)
from disk_lifecycle.validators.parameters import (
    DiskSizeValidator,
    LunValidator,
    ResourceNameValidator,
)
from disk_lifecycle.validators.vm_state import AttachmentSlotValidator


def build_runner(params, client=None) -> ValidationRunner:
    """
    Runner with the parameter checks, plus the VM slot check when a
    client is given.
    """
    runner = ValidationRunner()
    runner.add(ResourceNameValidator(params))
    runner.add(DiskSizeValidator(params))
    runner.add(LunValidator(params))
    if client is not None:
        runner.add(AttachmentSlotValidator(params, client))
    return runner


__all__ = [
    # Base classes
    'BaseValidator',
    'ValidationResult',
    'ValidationResults',
    'ValidationRunner',

    # Validators
    'ResourceNameValidator',
    'DiskSizeValidator',
    'LunValidator',
    'AttachmentSlotValidator',
    'build_runner',
]
