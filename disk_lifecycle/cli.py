"""
Disk Lifecycle - gcloud-style Command Line Interface

Usage:
    disk-lifecycle run --resource-group=PROJECT --vm=VM --disk=DISK \\
        --size=10 --target-size=20 --zone=ZONE
    disk-lifecycle resume --id=RUN_ID
    disk-lifecycle status --id=RUN_ID
    disk-lifecycle list

Exit codes:
    0    run completed (or status/list succeeded)
    1    run failed
    2    invalid arguments or a run that cannot be resumed
    3    unknown run id
    130  run aborted
"""

import argparse
import json
import signal
import subprocess
import sys
import threading
from typing import Any, Dict, List, Optional

import yaml

from disk_lifecycle.core.config import VERSION, load_config
from disk_lifecycle.core.exceptions import (
    AuthenticationError,
    DiskLifecycleError,
    InvalidWorkflowError,
    RunNotFoundError,
    StateStoreError,
    ValidationError,
)
from disk_lifecycle.main import get_run, list_runs, resume_command, resume_workflow, run_workflow
from disk_lifecycle.orchestration import STEP_ORDER, RunStatus, StepKind, WorkflowParams, WorkflowRun
from disk_lifecycle.utils.logger import setup_logging
from disk_lifecycle.validators import build_runner

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2
EXIT_NOT_FOUND = 3
EXIT_ABORTED = 130

RUN_EXIT_CODES = {
    RunStatus.COMPLETED: EXIT_OK,
    RunStatus.FAILED: EXIT_FAILED,
    RunStatus.ABORTED: EXIT_ABORTED,
}

LIST_COLUMNS = ['id', 'status', 'disk', 'vm', 'updated']


class OutputFormatter:
    """
    Handle output formatting similar to gcloud.

    Supports: json, yaml, table
    """

    @staticmethod
    def format_output(data: Dict[str, Any], format_type: str = 'table') -> str:
        """Format a single record."""
        if format_type == 'json':
            return json.dumps(data, indent=2)
        elif format_type == 'yaml':
            return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
        elif format_type == 'table':
            return OutputFormatter._format_table(data)
        else:
            return str(data)

    @staticmethod
    def format_rows(rows: List[Dict[str, Any]], columns: List[str], format_type: str = 'table') -> str:
        """Format a list of records."""
        if format_type == 'json':
            return json.dumps(rows, indent=2)
        elif format_type == 'yaml':
            return yaml.safe_dump(rows, default_flow_style=False, sort_keys=False)

        widths = {c: len(c) for c in columns}
        for row in rows:
            for c in columns:
                widths[c] = max(widths[c], len(str(row.get(c, ''))))

        lines = ["  ".join(c.upper().ljust(widths[c]) for c in columns)]
        for row in rows:
            lines.append("  ".join(str(row.get(c, '')).ljust(widths[c]) for c in columns))
        return "\n".join(lines)

    @staticmethod
    def _format_table(data: Dict[str, Any]) -> str:
        """Format as a two-column box."""
        key_width = max([20] + [len(k) for k in data])
        value_width = max([27] + [len(str(v)) for v in data.values()])
        lines = []
        lines.append("┌─" + "─" * key_width + "─┬─" + "─" * value_width + "─┐")
        for key, value in data.items():
            lines.append(f"│ {key:{key_width}} │ {str(value):{value_width}} │")
        lines.append("└─" + "─" * key_width + "─┴─" + "─" * value_width + "─┘")
        return "\n".join(lines)


def get_gcloud_config(key: str) -> Optional[str]:
    """
    Read configuration from gcloud config.

    Args:
        key: Config key (e.g., 'core/project', 'compute/zone')

    Returns:
        Config value or None
    """
    try:
        result = subprocess.run(
            ['gcloud', 'config', 'get-value', key],
            capture_output=True,
            text=True,
            timeout=5
        )
        value = result.stdout.strip()
        return value if value and value != '(unset)' else None
    except (subprocess.SubprocessError, FileNotFoundError):
        # gcloud not available or error
        return None


def create_parser() -> argparse.ArgumentParser:
    """
    Create argument parser with gcloud-style structure.

    Returns:
        Configured ArgumentParser
    """

    parser = argparse.ArgumentParser(
        prog='disk-lifecycle',
        description='Create, attach, resize, detach and delete a managed disk as one resumable workflow',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
EXAMPLES
    To run the full lifecycle:
        $ disk-lifecycle run --resource-group=my-project --vm=my-vm \\
            --disk=data-1 --size=10 --target-size=20 --zone=us-central1-a

    To continue a failed run:
        $ disk-lifecycle resume --id=RUN_ID

    To inspect a run:
        $ disk-lifecycle status --id=RUN_ID --format=json
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'disk-lifecycle v{VERSION}'
    )

    subparsers = parser.add_subparsers(
        dest='command',
        required=True,
        help='Available commands'
    )

    # RUN COMMAND
    run_parser = subparsers.add_parser(
        'run',
        help='Run the full disk lifecycle',
        description='Create a disk, attach it to a VM, resize it, detach it and delete it.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
EXAMPLES
    To run against a VM:
        $ disk-lifecycle run --resource-group=my-project --vm=my-vm \\
            --disk=data-1 --size=10 --target-size=20 --zone=us-central1-a

    To try it without touching the cloud:
        $ disk-lifecycle run --dry-run --resource-group=my-project \\
            --vm=my-vm --disk=data-1 --size=10 --target-size=20

NOTES
    Nothing is rolled back on failure. The command prints the run id and
    the resume command to continue once the cause is fixed.
        """
    )
    _add_run_args(run_parser)
    _add_common_args(run_parser)

    # RESUME COMMAND
    resume_parser = subparsers.add_parser(
        'resume',
        help='Resume a failed or aborted run',
        description='Continue a run from its first step that has not succeeded.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
EXAMPLES
    To resume a run:
        $ disk-lifecycle resume --id=RUN_ID

    To make sure the run continues at the resize step:
        $ disk-lifecycle resume --id=RUN_ID --from-step=resize
        """
    )
    _add_id_arg(resume_parser)
    resume_parser.add_argument(
        '--from-step',
        metavar='STEP',
        choices=[kind.value for kind in STEP_ORDER],
        help='Step to resume from. Must be the first step that has not succeeded.'
    )
    _add_common_args(resume_parser)

    # STATUS COMMAND
    status_parser = subparsers.add_parser(
        'status',
        help='Show a run',
        description='Print a stored run without changing it.'
    )
    _add_id_arg(status_parser)
    _add_common_args(status_parser)

    # LIST COMMAND
    list_parser = subparsers.add_parser(
        'list',
        help='List stored runs',
        description='Print all stored runs, oldest first.'
    )
    _add_common_args(list_parser)

    return parser


def _add_id_arg(parser: argparse.ArgumentParser):
    required = parser.add_argument_group('REQUIRED FLAGS')
    required.add_argument(
        '--id',
        dest='run_id',
        metavar='RUN_ID',
        required=True,
        help='Id of the workflow run.'
    )


def _add_run_args(parser: argparse.ArgumentParser):
    """Add run-specific arguments."""

    required = parser.add_argument_group('REQUIRED FLAGS')
    required.add_argument(
        '--vm',
        metavar='VM',
        required=True,
        help='Name of the VM to attach the disk to.'
    )
    required.add_argument(
        '--disk',
        metavar='DISK',
        required=True,
        help='Name of the disk to create.'
    )
    required.add_argument(
        '--size',
        type=int,
        metavar='SIZE',
        required=True,
        help='Initial disk size in GB.'
    )
    required.add_argument(
        '--target-size',
        type=int,
        metavar='SIZE',
        required=True,
        help='Size in GB to grow the disk to while attached.'
    )

    optional = parser.add_argument_group('OPTIONAL FLAGS')
    optional.add_argument(
        '--resource-group',
        metavar='PROJECT',
        help='Project holding the disk and VM. Defaults to gcloud config project.'
    )
    optional.add_argument(
        '--zone',
        metavar='ZONE',
        help='Zone of the VM. Defaults to the config file, then gcloud config compute/zone.'
    )
    optional.add_argument(
        '--sku',
        metavar='TYPE',
        help='Disk type, e.g. pd-standard, pd-balanced, pd-ssd. Default: pd-standard'
    )
    optional.add_argument(
        '--lun',
        type=int,
        metavar='LUN',
        help='Attachment slot on the VM. Default: 1'
    )

    timeout_group = parser.add_argument_group('TIMEOUT FLAGS')
    timeout_group.add_argument(
        '--poll-timeout',
        type=float,
        metavar='SECONDS',
        help='How long to wait for each step to settle. Default: 600'
    )
    timeout_group.add_argument(
        '--max-retries',
        type=int,
        metavar='N',
        help='Retries per step after transient errors. Default: 3'
    )


def _add_common_args(parser: argparse.ArgumentParser):
    """Add arguments common to all commands (gcloud style)."""

    state = parser.add_argument_group('STATE FLAGS')
    state.add_argument(
        '--state-dir',
        metavar='DIR',
        help='Directory holding run records. Default: $DISK_LIFECYCLE_STATE_DIR or ~/.disk-lifecycle/runs'
    )
    state.add_argument(
        '--config',
        metavar='FILE',
        help='YAML file with configuration defaults.'
    )

    output = parser.add_argument_group('OUTPUT FLAGS')
    output.add_argument(
        '--format',
        metavar='FORMAT',
        choices=['json', 'yaml', 'table'],
        default='table',
        help='Output format. One of: json, yaml, table. Default: table'
    )
    output.add_argument(
        '--verbosity',
        metavar='VERBOSITY',
        choices=['debug', 'info', 'warning', 'error', 'critical'],
        default='info',
        help='Logging verbosity. One of: debug, info, warning, error, critical. Default: info'
    )
    output.add_argument(
        '--log-file',
        metavar='LOG_FILE',
        help='Write logs to this file.'
    )
    output.add_argument(
        '--quiet',
        action='store_true',
        help='Only log warnings and errors, and hide the progress bar.'
    )

    other = parser.add_argument_group('OTHER FLAGS')
    other.add_argument(
        '--dry-run',
        action='store_true',
        help='Run against an in-memory cloud and store. Nothing is created or saved.'
    )


def args_to_config(args: argparse.Namespace):
    """Convert arguments to LifecycleConfig (file values, then flags)."""
    log_level = 'WARNING' if args.quiet else args.verbosity.upper()
    return load_config(
        args.config,
        state_dir=args.state_dir,
        log_file=args.log_file,
        log_level=log_level,
        dry_run=args.dry_run or None,
        show_progress=False if (args.quiet or args.format != 'table') else None,
        poll_timeout=getattr(args, 'poll_timeout', None),
        max_retries=getattr(args, 'max_retries', None),
    )


def args_to_params(args: argparse.Namespace, config) -> WorkflowParams:
    """Convert run arguments to WorkflowParams, filling defaults."""
    resource_group = args.resource_group or get_gcloud_config('core/project')
    zone = args.zone or config.default_zone
    if not zone and not config.dry_run:
        zone = get_gcloud_config('compute/zone')

    return WorkflowParams(
        disk_name=args.disk,
        vm_name=args.vm,
        resource_group=resource_group or '',
        initial_size_gb=args.size,
        target_size_gb=args.target_size,
        location=zone,
        sku=args.sku or config.default_sku,
        lun=args.lun if args.lun is not None else config.default_lun,
    )


def _error(message: str):
    print(f"ERROR: (disk-lifecycle) {message}", file=sys.stderr)


def _print_run(run: WorkflowRun, format_type: str):
    print(OutputFormatter.format_output(
        run.summary() if format_type == 'table' else run.to_dict(), format_type))


def _print_failure(run: WorkflowRun):
    """Failing step, error kind and how to continue."""
    if run.status == RunStatus.FAILED:
        step = run.failed_step()
        error = step.last_error or {}
        _error(f"Run {run.id} failed at step '{step.kind.value}': "
               f"{error.get('kind')} ({error.get('code')})")
    elif run.status == RunStatus.ABORTED:
        _error(f"Run {run.id} aborted before step '{run.next_step().kind.value}'")
    else:
        return
    print(f"  To continue: {resume_command(run)}", file=sys.stderr)


def _install_abort_handlers(abort_event: threading.Event, logger) -> dict:
    """
    Route SIGINT and SIGTERM to the abort event while a run is active.

    A second SIGINT interrupts immediately.

    Returns:
        Previous handlers, for _restore_handlers
    """
    def handler(signum, frame):
        if abort_event.is_set() and signum == signal.SIGINT:
            raise KeyboardInterrupt
        abort_event.set()
        logger.warning(f"Received {signal.Signals(signum).name}, stopping after the current step")

    previous = {}
    if threading.current_thread() is threading.main_thread():
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.signal(signum, handler)
    return previous


def _restore_handlers(previous: dict):
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def handle_run(args: argparse.Namespace, config, logger) -> int:
    """Handle run command."""
    params = args_to_params(args, config)

    results = build_runner(params).run_all(logger)
    if not results.all_passed():
        _error("Invalid arguments:")
        print(results.format_failures(), file=sys.stderr)
        return EXIT_INVALID

    if not params.location and not config.dry_run:
        _error("--zone is required (or set one with: gcloud config set compute/zone ZONE)")
        return EXIT_INVALID

    abort_event = threading.Event()
    previous = _install_abort_handlers(abort_event, logger)
    try:
        run = run_workflow(params, config=config, abort_event=abort_event, logger=logger)
    finally:
        _restore_handlers(previous)

    _print_run(run, args.format)
    _print_failure(run)
    return RUN_EXIT_CODES.get(run.status, EXIT_FAILED)


def handle_resume(args: argparse.Namespace, config, logger) -> int:
    """Handle resume command."""
    from_step = StepKind(args.from_step) if args.from_step else None

    abort_event = threading.Event()
    previous = _install_abort_handlers(abort_event, logger)
    try:
        run = resume_workflow(args.run_id, config=config, from_step=from_step,
                              abort_event=abort_event, logger=logger)
    finally:
        _restore_handlers(previous)

    _print_run(run, args.format)
    _print_failure(run)
    return RUN_EXIT_CODES.get(run.status, EXIT_FAILED)


def handle_status(args: argparse.Namespace, config, logger) -> int:
    """Handle status command."""
    run = get_run(args.run_id, config=config)
    _print_run(run, args.format)
    return EXIT_OK


def handle_list(args: argparse.Namespace, config, logger) -> int:
    """Handle list command."""
    runs = list_runs(config=config)
    if args.format == 'table':
        rows = [{
            'id': run.id,
            'status': run.status.value,
            'disk': run.disk_name,
            'vm': run.vm_name,
            'updated': run.updated_at.strftime('%Y-%m-%d %H:%M:%S'),
        } for run in runs]
        if not rows:
            print("Listed 0 items.")
            return EXIT_OK
    else:
        rows = [run.to_dict() for run in runs]
    print(OutputFormatter.format_rows(rows, LIST_COLUMNS, args.format))
    return EXIT_OK


HANDLERS = {
    'run': handle_run,
    'resume': handle_resume,
    'status': handle_status,
    'list': handle_list,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point (gcloud-style)."""

    parser = create_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # argparse exits 2 on bad arguments and 0 on --help/--version
        return e.code if isinstance(e.code, int) else EXIT_INVALID

    try:
        config = args_to_config(args)
    except (ValueError, OSError, yaml.YAMLError) as e:
        _error(f"Invalid configuration: {e}")
        return EXIT_INVALID

    logger = setup_logging(config.log_level, config.log_file,
                           debug=args.verbosity == 'debug')

    try:
        return HANDLERS[args.command](args, config, logger)

    except RunNotFoundError as e:
        _error(str(e))
        return EXIT_NOT_FOUND
    except (InvalidWorkflowError, ValidationError) as e:
        _error(str(e))
        return EXIT_INVALID
    except AuthenticationError as e:
        _error(f"Authentication failed: {e}")
        return EXIT_FAILED
    except StateStoreError as e:
        _error(f"State store error: {e}")
        return EXIT_FAILED
    except DiskLifecycleError as e:
        _error(str(e))
        return EXIT_FAILED
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.", file=sys.stderr)
        return EXIT_ABORTED  # Standard exit code for SIGINT
    except Exception as e:
        _error(f"Unexpected error: {e}")
        if args.verbosity == 'debug':
            logger.exception("Unexpected error")
        return EXIT_FAILED


if __name__ == '__main__':
    sys.exit(main())
