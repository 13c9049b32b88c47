"""
Disk Lifecycle - Parameter Validators

Static checks on workflow parameters. These never call the cloud.
"""

import re

from disk_lifecycle.validators.base import BaseValidator, ValidationResult

# GCE resource names: lowercase letter first, then letters, digits, hyphens
RESOURCE_NAME_RE = re.compile(r'^[a-z]([-a-z0-9]{0,61}[a-z0-9])?$')

MIN_DISK_SIZE_GB = 1
MAX_DISK_SIZE_GB = 65536


class ResourceNameValidator(BaseValidator):
    """
    Validates disk and VM names against GCE naming rules.
    """

    @property
    def name(self) -> str:
        """Display name for this validator."""
        return "Resource Names"

    def validate(self) -> ValidationResult:
        for label, value in (('disk', self.params.disk_name), ('VM', self.params.vm_name)):
            if not value or not RESOURCE_NAME_RE.match(value):
                return self._fail(
                    f"Invalid {label} name: '{value}'",
                    fix="Use 1-63 lowercase letters, digits or hyphens, starting with a letter"
                )
        if not self.params.resource_group:
            return self._fail(
                "Resource group (project) is required",
                fix="Pass --resource-group or run: gcloud config set project PROJECT"
            )
        return self._pass("Disk and VM names are valid")


class DiskSizeValidator(BaseValidator):
    """
    Validates initial and target sizes.

    Disks can only grow, so the target must not be smaller than the
    initial size.
    """

    @property
    def name(self) -> str:
        """Display name for this validator."""
        return "Disk Size"

    def validate(self) -> ValidationResult:
        for label, size in (('--size', self.params.initial_size_gb),
                            ('--target-size', self.params.target_size_gb)):
            if not MIN_DISK_SIZE_GB <= size <= MAX_DISK_SIZE_GB:
                return self._fail(
                    f"{label} must be between {MIN_DISK_SIZE_GB} and {MAX_DISK_SIZE_GB} GB (got {size})"
                )

        if self.params.target_size_gb < self.params.initial_size_gb:
            return self._fail(
                f"--target-size ({self.params.target_size_gb}GB) cannot be smaller than "
                f"--size ({self.params.initial_size_gb}GB)",
                fix="Disks can only grow"
            )

        return self._pass(
            f"{self.params.initial_size_gb}GB -> {self.params.target_size_gb}GB"
        )


class LunValidator(BaseValidator):
    """
    Validates the attachment slot number.
    """

    @property
    def name(self) -> str:
        """Display name for this validator."""
        return "LUN"

    def validate(self) -> ValidationResult:
        if self.params.lun < 0:
            return self._fail(f"--lun must be >= 0 (got {self.params.lun})")
        return self._pass(f"LUN {self.params.lun}")
