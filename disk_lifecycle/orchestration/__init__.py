"""
Disk Lifecycle - Orchestration Module

Coordinates lifecycle workflows: data model, step execution, sequencing
and persistence.
"""

from disk_lifecycle.orchestration.state import (
    STEP_ORDER,
    RunStatus,
    StepKind,
    StepRecord,
    StepStatus,
    WorkflowParams,
    WorkflowRun,
)
from disk_lifecycle.orchestration.store import (
    FileStateStore,
    InMemoryStateStore,
    RunSnapshot,
    StateStore,
)
from disk_lifecycle.orchestration.executor import Outcome, OutcomeKind, StepExecutor
from disk_lifecycle.orchestration.engine import WorkflowEngine

__all__ = [
    'STEP_ORDER',
    'RunStatus',
    'StepKind',
    'StepRecord',
    'StepStatus',
    'WorkflowParams',
    'WorkflowRun',
    'StateStore',
    'FileStateStore',
    'InMemoryStateStore',
    'RunSnapshot',
    'Outcome',
    'OutcomeKind',
    'StepExecutor',
    'WorkflowEngine',
]
