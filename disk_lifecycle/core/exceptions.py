"""
Disk Lifecycle - Custom Exception Classes

This module defines all custom exceptions used by the disk lifecycle tool.

Cloud errors are split by retry behavior:
- TransientCloudError: safe to retry (throttling, timeouts, 5xx)
- PermanentCloudError: do not retry (not found, conflict, bad parameter, quota)

The Step Executor only retries TransientCloudError. Everything else is
recorded on the step and halts the run.
"""


class DiskLifecycleError(Exception):
    """
    Base exception for all disk lifecycle errors.

    All custom exceptions inherit from this, making it easy to catch
    any tool-specific error with a single except clause.
    """
    pass


class CloudError(DiskLifecycleError):
    """
    Raised when a cloud provider call fails.

    Attributes:
        code: Short machine-readable reason (e.g. 'throttled', 'conflict')
    """

    code = 'cloud_error'

    def __init__(self, message: str, code: str = None):
        """
        Args:
            message: Error description
            code: Reason code, defaults to the class-level code
        """
        if code:
            self.code = code
        self.message = message
        super().__init__(message)

    @property
    def kind(self) -> str:
        """Name of the error class, used when recording errors."""
        return type(self).__name__

    def to_dict(self) -> dict:
        """Serialize for storage on a StepRecord."""
        return {'kind': self.kind, 'code': self.code, 'message': self.message}


class TransientCloudError(CloudError):
    """
    Retryable cloud failure.

    Common causes:
    - HTTP 429 (rate limited) or 503 (unavailable)
    - Network timeout or connection reset
    """

    code = 'unavailable'


class OperationTimeoutError(TransientCloudError):
    """
    Raised when a resource does not reach the expected state in time.
    """

    code = 'timeout'

    def __init__(self, operation_name: str, timeout: float):
        """
        Args:
            operation_name: Name of the operation (e.g., 'Resize Disk')
            timeout: Seconds waited before giving up
        """
        self.operation_name = operation_name
        self.timeout = timeout
        super().__init__(
            f"Timeout waiting for '{operation_name}' to complete (>{timeout:.0f}s)"
        )


class PermanentCloudError(CloudError):
    """
    Non-retryable cloud failure.

    Common causes:
    - Resource not found
    - Conflict (name already used, LUN already taken)
    - Invalid parameter (e.g. shrinking a disk)
    - Quota exceeded
    """

    code = 'invalid_parameter'


class DiskNotFoundError(PermanentCloudError):
    """
    Raised when a disk doesn't exist.
    """

    code = 'not_found'

    def __init__(self, disk_name: str, location: str = None):
        """
        Args:
            disk_name: Name of the disk that wasn't found
            location: Zone where we looked
        """
        self.disk_name = disk_name
        self.location = location

        message = f"Disk '{disk_name}' not found"
        if location:
            message += f" in zone '{location}'"
        super().__init__(message)


class VMNotFoundError(PermanentCloudError):
    """
    Raised when the specified VM doesn't exist.
    """

    code = 'not_found'

    def __init__(self, vm_name: str, location: str = None):
        """
        Args:
            vm_name: Name of the VM that wasn't found
            location: Zone where we looked
        """
        self.vm_name = vm_name
        self.location = location

        message = f"VM '{vm_name}' not found"
        if location:
            message += f" in zone '{location}'"
            message += f"\n\nList VMs in this zone:"
            message += f"\n  gcloud compute instances list --zone={location}"
        super().__init__(message)


class StateStoreError(DiskLifecycleError):
    """
    Raised when workflow state cannot be persisted or read back.

    This is always fatal to the current operation.
    """
    pass


class RunNotFoundError(DiskLifecycleError):
    """
    Raised when a workflow run id is unknown to the state store.
    """

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Workflow run not found: {run_id}")


class InvalidWorkflowError(DiskLifecycleError):
    """
    Raised when a workflow request cannot be honored.

    Examples:
    - Resuming a run that is already completed
    - Resuming an unknown run
    - Resuming from a step whose predecessors have not succeeded
    """
    pass


class AuthenticationError(DiskLifecycleError):
    """
    Raised when authentication fails.

    Common causes:
    - No credentials configured
    - Credentials expired
    - Invalid credentials
    """

    def __init__(self, message: str, fix: str = None):
        """
        Args:
            message: Error description
            fix: Suggested fix command (e.g., "gcloud auth login")
        """
        self.fix = fix
        full_message = f"{message}"
        if fix:
            full_message += f"\n\nFix: {fix}"
        super().__init__(full_message)


class ValidationError(DiskLifecycleError):
    """
    Raised when pre-flight validation fails.
    """

    def __init__(self, validator_name: str, message: str, fix: str = None):
        """
        Args:
            validator_name: Name of the validator that failed
            message: What failed
            fix: Suggested fix
        """
        self.validator_name = validator_name
        self.fix = fix

        full_message = f"Validation failed: {validator_name}\n{message}"
        if fix:
            full_message += f"\n\nFix: {fix}"

        super().__init__(full_message)
