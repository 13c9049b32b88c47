"""Disk Lifecycle - Resumable create/attach/resize/detach/delete workflows for managed disks.

Core functionality:
- Run: create a disk, attach it to a VM, grow it, detach it, delete it
- Resume: continue a failed or aborted run from its first unfinished step
- Status: inspect persisted runs

Example usage:
    >>> from disk_lifecycle import WorkflowParams, run_workflow
    >>> params = WorkflowParams('data-1', 'my-vm', 'my-project', 10, 20, location='us-central1-a')
    >>> run = run_workflow(params)
"""

__version__ = "1.0.0"

from disk_lifecycle.main import get_run, list_runs, resume_workflow, run_workflow
from disk_lifecycle.orchestration import RunStatus, StepKind, StepStatus, WorkflowEngine, WorkflowParams, WorkflowRun

__all__ = [
    'run_workflow',
    'resume_workflow',
    'get_run',
    'list_runs',
    'WorkflowEngine',
    'WorkflowParams',
    'WorkflowRun',
    'RunStatus',
    'StepKind',
    'StepStatus',
]
