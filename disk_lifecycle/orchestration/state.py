"""
Disk Lifecycle - Workflow State

Data model for workflow runs:
- WorkflowParams: immutable inputs of a run
- StepRecord: one lifecycle step (create, attach, resize, detach, delete)
- WorkflowRun: one end-to-end execution, owning its StepRecords

Everything serializes to plain JSON-safe dicts via to_dict()/from_dict().
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class StepKind(str, Enum):
    """Lifecycle steps, in execution order."""
    CREATE = "create"
    ATTACH = "attach"
    RESIZE = "resize"
    DETACH = "detach"
    DELETE = "delete"


STEP_ORDER = (StepKind.CREATE, StepKind.ATTACH, StepKind.RESIZE,
              StepKind.DETACH, StepKind.DELETE)


class StepStatus(str, Enum):
    """Status of a single step."""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RunStatus(str, Enum):
    """Overall status of a workflow run."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class WorkflowParams:
    """
    Inputs of a workflow run, fixed when the run is created.

    Attributes:
        disk_name: Disk to create and eventually delete
        vm_name: VM the disk is attached to
        resource_group: Project that owns the disk and VM
        initial_size_gb: Size at creation
        target_size_gb: Size after the resize step
        location: Zone of the disk and VM
        sku: Disk type
        lun: Attachment slot on the VM
    """
    disk_name: str
    vm_name: str
    resource_group: str
    initial_size_gb: int
    target_size_gb: int
    location: Optional[str] = None
    sku: str = 'pd-standard'
    lun: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'disk_name': self.disk_name,
            'vm_name': self.vm_name,
            'resource_group': self.resource_group,
            'initial_size_gb': self.initial_size_gb,
            'target_size_gb': self.target_size_gb,
            'location': self.location,
            'sku': self.sku,
            'lun': self.lun,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowParams":
        return cls(**data)


@dataclass
class StepRecord:
    """
    One lifecycle step of a run.

    Attributes:
        kind: Which operation this step performs
        status: Current status
        attempt_count: Tries of the triggering call in the latest execution
        last_error: {'kind', 'code', 'message'} of the latest failure, or None
        started_at: When the step last started running
        finished_at: When the step last succeeded or failed
    """
    kind: StepKind
    status: StepStatus = StepStatus.NOT_STARTED
    attempt_count: int = 0
    last_error: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'status': self.status.value,
            'attempt_count': self.attempt_count,
            'last_error': self.last_error,
            'started_at': _format_time(self.started_at),
            'finished_at': _format_time(self.finished_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepRecord":
        return cls(
            kind=StepKind(data['kind']),
            status=StepStatus(data['status']),
            attempt_count=data.get('attempt_count', 0),
            last_error=data.get('last_error'),
            started_at=_parse_time(data.get('started_at')),
            finished_at=_parse_time(data.get('finished_at')),
        )


@dataclass
class WorkflowRun:
    """
    One execution of the five-step disk lifecycle.

    Example:
        run = WorkflowRun.new(params)
        step = run.next_step()   # StepRecord(kind=CREATE, ...)
    """
    id: str
    params: WorkflowParams
    steps: List[StepRecord]
    status: RunStatus = RunStatus.PENDING
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def new(cls, params: WorkflowParams) -> "WorkflowRun":
        """Create a pending run with all steps not started."""
        return cls(
            id=uuid.uuid4().hex,
            params=params,
            steps=[StepRecord(kind=kind) for kind in STEP_ORDER],
        )

    # Parameter shortcuts

    @property
    def disk_name(self) -> str:
        return self.params.disk_name

    @property
    def vm_name(self) -> str:
        return self.params.vm_name

    @property
    def resource_group(self) -> str:
        return self.params.resource_group

    @property
    def initial_size_gb(self) -> int:
        return self.params.initial_size_gb

    @property
    def target_size_gb(self) -> int:
        return self.params.target_size_gb

    # Step queries

    def step(self, kind: StepKind) -> StepRecord:
        for record in self.steps:
            if record.kind == kind:
                return record
        raise KeyError(kind)

    def next_step(self) -> Optional[StepRecord]:
        """First step that has not succeeded, or None when all did."""
        for record in self.steps:
            if record.status != StepStatus.SUCCEEDED:
                return record
        return None

    def running_steps(self) -> List[StepRecord]:
        return [s for s in self.steps if s.status == StepStatus.RUNNING]

    def succeeded_count(self) -> int:
        return sum(1 for s in self.steps if s.status == StepStatus.SUCCEEDED)

    def failed_step(self) -> Optional[StepRecord]:
        for record in self.steps:
            if record.status == StepStatus.FAILED:
                return record
        return None

    def is_ordered(self) -> bool:
        """
        True if succeeded steps form a prefix of the step list and at most
        one step is running.
        """
        seen_unfinished = False
        for record in self.steps:
            if record.status == StepStatus.SUCCEEDED:
                if seen_unfinished:
                    return False
            else:
                seen_unfinished = True
        return len(self.running_steps()) <= 1

    def touch(self):
        self.updated_at = _utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'params': self.params.to_dict(),
            'steps': [s.to_dict() for s in self.steps],
            'status': self.status.value,
            'created_at': _format_time(self.created_at),
            'updated_at': _format_time(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowRun":
        return cls(
            id=data['id'],
            params=WorkflowParams.from_dict(data['params']),
            steps=[StepRecord.from_dict(s) for s in data['steps']],
            status=RunStatus(data['status']),
            created_at=_parse_time(data['created_at']),
            updated_at=_parse_time(data['updated_at']),
        )

    def summary(self) -> Dict[str, Any]:
        """Flat view for table/json output."""
        result = {
            'id': self.id,
            'status': self.status.value,
            'disk': self.disk_name,
            'vm': self.vm_name,
            'resourceGroup': self.resource_group,
            'zone': self.params.location or '',
            'size': f"{self.initial_size_gb}GB -> {self.target_size_gb}GB",
        }
        for record in self.steps:
            value = f"{record.status.value} (attempts: {record.attempt_count})"
            if record.last_error:
                value += f" {record.last_error.get('kind')}: {record.last_error.get('code')}"
            result[f"step.{record.kind.value}"] = value
        return result
