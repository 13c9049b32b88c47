"""
Disk Lifecycle - Main Entry Point

Simple entry points for running, resuming and inspecting workflows.

Usage:
    from disk_lifecycle.main import run_workflow, resume_workflow
    from disk_lifecycle.orchestration import WorkflowParams

    params = WorkflowParams(
        disk_name='data-1', vm_name='my-vm', resource_group='my-project',
        initial_size_gb=10, target_size_gb=20, location='us-central1-a'
    )
    run = run_workflow(params)

    # After a failure, fix the cause and continue where it stopped
    run = resume_workflow(run.id)
"""

import threading
import time
from typing import Optional

from disk_lifecycle.cloud import GCEDiskClient, InMemoryCloudClient
from disk_lifecycle.cloud.base import CloudResourceClient
from disk_lifecycle.core.auth import AuthManager
from disk_lifecycle.core.config import LifecycleConfig
from disk_lifecycle.core.exceptions import TransientCloudError, ValidationError
from disk_lifecycle.orchestration import (
    FileStateStore,
    InMemoryStateStore,
    RunSnapshot,
    RunStatus,
    StateStore,
    StepKind,
    WorkflowEngine,
    WorkflowParams,
    WorkflowRun,
)
from disk_lifecycle.utils.logger import get_logger, print_header
from disk_lifecycle.utils.retry import compute_backoff
from disk_lifecycle.validators import AttachmentSlotValidator


def build_client(params: WorkflowParams, config: LifecycleConfig, logger=None) -> CloudResourceClient:
    """
    Cloud client for a run's project and zone.

    In dry-run mode this is an in-memory cloud containing only the VM.
    """
    if config.dry_run:
        return InMemoryCloudClient(vms=[params.vm_name])

    auth = AuthManager()
    compute, project = auth.get_client(params.resource_group)
    (logger or get_logger()).debug(f"Authenticated to project: {project}")
    return GCEDiskClient(compute, project, params.location, logger)


def build_store(config: LifecycleConfig, read_only: bool = False) -> StateStore:
    """
    State store for the configured state directory (in memory for dry runs).

    A read-only store never creates the state directory.
    """
    if config.dry_run:
        return InMemoryStateStore()
    return FileStateStore(config.state_dir, create=not read_only)


def check_attachment_slot(params: WorkflowParams, client: CloudResourceClient,
                          config: LifecycleConfig, logger, sleep=None):
    """
    Pre-flight check that the VM exists and its LUN slot is free.

    Transient cloud errors are retried with the same backoff as steps.

    Raises:
        ValidationError: If the VM is missing or the slot is taken
        CloudError: If the lookup keeps failing
    """
    sleep = sleep or time.sleep
    validator = AttachmentSlotValidator(params, client)
    retries = 0

    while True:
        try:
            result = validator.validate()
            break
        except TransientCloudError as e:
            if retries >= config.max_retries:
                raise
            retries += 1
            delay = compute_backoff(retries, config.backoff_base, config.backoff_cap)
            logger.warning(f"{validator.name} check failed ({e.code}): {e}. Retrying in {delay:.0f}s...")
            sleep(delay)

    if not result.passed:
        raise ValidationError(result.validator_name, result.message,
                              (result.details or {}).get('fix'))
    logger.debug(str(result))


def resume_command(run: WorkflowRun) -> str:
    """Command an operator runs to continue a run."""
    return f"disk-lifecycle resume --id {run.id}"


def _report(run: WorkflowRun, logger):
    """Log the final state of a run."""
    logger.info("")
    if run.status == RunStatus.COMPLETED:
        logger.info(f"[OK] Disk '{run.disk_name}' went through the full lifecycle on '{run.vm_name}'")
        return

    if run.status == RunStatus.ABORTED:
        step = run.next_step()
        logger.warning(f"Run {run.id} aborted before step '{step.kind.value}'")
    else:
        step = run.failed_step()
        error = step.last_error or {}
        logger.error(f"Run {run.id} failed at step '{step.kind.value}'")
        logger.error(f"  Error: {error.get('kind')} ({error.get('code')}): {error.get('message')}")
        logger.error("  No cleanup was performed; resources are as the last succeeded step left them.")

    logger.info("")
    logger.info("To continue this run:")
    logger.info(f"  {resume_command(run)}")


def run_workflow(params: WorkflowParams, config: LifecycleConfig = None,
                 client: CloudResourceClient = None, store: StateStore = None,
                 abort_event: Optional[threading.Event] = None, logger=None) -> WorkflowRun:
    """
    Run the full create/attach/resize/detach/delete lifecycle.

    Args:
        params: Workflow parameters
        config: Optional LifecycleConfig for advanced settings
        client: Cloud client (default: GCE, or in-memory for dry runs)
        store: State store (default: from config.state_dir)
        abort_event: Set it to stop the run between steps
        logger: Optional logger

    Returns:
        The run in status completed, failed or aborted

    Raises:
        ValidationError: If the VM or its LUN slot is not usable
        CloudError: If the VM cannot be looked up
        StateStoreError: If progress cannot be persisted
    """
    config = config or LifecycleConfig()
    logger = logger or get_logger()

    print_header(logger, "Disk Lifecycle - Run" + (" (dry run)" if config.dry_run else ""))
    logger.info(f"Disk: {params.disk_name} ({params.initial_size_gb}GB -> {params.target_size_gb}GB, {params.sku})")
    logger.info(f"VM: {params.vm_name} (LUN {params.lun})")
    logger.info(f"Project: {params.resource_group}")
    if params.location:
        logger.info(f"Zone: {params.location}")
    logger.info("")

    client = client or build_client(params, config, logger)
    check_attachment_slot(params, client, config, logger)

    store = store or build_store(config)

    engine = WorkflowEngine(client, store, config, logger, abort_event=abort_event)
    run = engine.run(params)
    _report(run, logger)
    return run


def resume_workflow(run_id: str, config: LifecycleConfig = None,
                    client: CloudResourceClient = None, store: StateStore = None,
                    from_step: Optional[StepKind] = None,
                    abort_event: Optional[threading.Event] = None, logger=None) -> WorkflowRun:
    """
    Resume a failed, aborted or interrupted run.

    Raises:
        RunNotFoundError: If the run id is unknown
        InvalidWorkflowError: If the run is completed or from_step is out of order
    """
    config = config or LifecycleConfig()
    logger = logger or get_logger()
    store = store or build_store(config)

    run = store.load(run_id)

    print_header(logger, "Disk Lifecycle - Resume")
    logger.info(f"Run: {run.id} ({run.status.value})")
    logger.info(f"Disk: {run.disk_name}, VM: {run.vm_name}")
    logger.info("")

    client = client or build_client(run.params, config, logger)

    engine = WorkflowEngine(client, store, config, logger, abort_event=abort_event)
    run = engine.resume(run_id, from_step=from_step)
    _report(run, logger)
    return run


def get_run(run_id: str, config: LifecycleConfig = None, store: StateStore = None) -> WorkflowRun:
    """
    Load a run without changing it.

    Raises:
        RunNotFoundError: If the run id is unknown
    """
    store = store or build_store(config or LifecycleConfig(), read_only=True)
    return store.load(run_id)


def list_runs(config: LifecycleConfig = None, store: StateStore = None) -> RunSnapshot:
    """Snapshot of all stored runs."""
    store = store or build_store(config or LifecycleConfig(), read_only=True)
    return store.list()
