"""
Disk Lifecycle - State Store

Durable record of workflow runs. This is the only state the tool owns.

Storage backends:
- FileStateStore: one JSON file per run, replaced atomically on save
- InMemoryStateStore: for tests and --dry-run

Writes for a single run id are mutually exclusive. A save either fully
replaces the previous record or fails leaving it intact.
"""

import fcntl
import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Tuple

from disk_lifecycle.core.exceptions import RunNotFoundError, StateStoreError
from disk_lifecycle.orchestration.state import WorkflowRun


class RunSnapshot:
    """
    Runs as they were when StateStore.list() was called.

    Records are decoded lazily on iteration. Iterating again yields the
    same runs, regardless of later saves.
    """

    def __init__(self, records: Tuple[str, ...]):
        self._records = records

    def __iter__(self) -> Iterator[WorkflowRun]:
        for raw in self._records:
            yield _decode(raw)

    def __len__(self) -> int:
        return len(self._records)


def _encode(run: WorkflowRun) -> str:
    return json.dumps(run.to_dict(), indent=2, sort_keys=True)


def _created_at(raw: str) -> str:
    """Sort key for snapshots; corrupt records sort first and fail on decode."""
    try:
        return json.loads(raw).get('created_at') or ''
    except ValueError:
        return ''


def _decode(raw: str) -> WorkflowRun:
    try:
        return WorkflowRun.from_dict(json.loads(raw))
    except (ValueError, KeyError, TypeError) as e:
        raise StateStoreError(f"Corrupt workflow record: {e}") from e


class StateStore(ABC):
    """
    Abstract base class for workflow run storage.
    """

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def _run_lock(self, run_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks[run_id]

    @abstractmethod
    def save(self, run: WorkflowRun) -> None:
        """
        Persist the full run, replacing any previous record.

        Raises:
            StateStoreError: If the record could not be written
        """
        pass

    @abstractmethod
    def load(self, run_id: str) -> WorkflowRun:
        """
        Load a run by id.

        Raises:
            RunNotFoundError: If no run has this id
            StateStoreError: If the record cannot be read
        """
        pass

    @abstractmethod
    def list(self) -> RunSnapshot:
        """Snapshot of all stored runs, oldest first."""
        pass

    @abstractmethod
    def delete(self, run_id: str) -> None:
        """
        Remove a run record.

        Raises:
            RunNotFoundError: If no run has this id
        """
        pass


class InMemoryStateStore(StateStore):
    """
    In-memory implementation of StateStore.

    Stores serialized records, so callers never share a writable instance
    with the store. All data is lost when the instance is garbage collected.
    """

    def __init__(self):
        super().__init__()
        self._records: Dict[str, str] = {}

    def save(self, run: WorkflowRun) -> None:
        raw = _encode(run)
        with self._run_lock(run.id):
            self._records[run.id] = raw

    def load(self, run_id: str) -> WorkflowRun:
        raw = self._records.get(run_id)
        if raw is None:
            raise RunNotFoundError(run_id)
        return _decode(raw)

    def list(self) -> RunSnapshot:
        records = sorted(self._records.values(), key=_created_at)
        return RunSnapshot(tuple(records))

    def delete(self, run_id: str) -> None:
        with self._run_lock(run_id):
            if self._records.pop(run_id, None) is None:
                raise RunNotFoundError(run_id)

    def clear(self) -> None:
        """Clear all stored data (for testing)."""
        self._records.clear()


class FileStateStore(StateStore):
    """
    File-based implementation of StateStore.

    Layout:
        state_dir/
            {run_id}.json
            {run_id}.lock

    Saves write a temp file in the same directory, fsync it and rename it
    over the record, so readers see either the old or the new record.
    The .lock file serializes writers across processes.

    With create=False the directory is left alone; a missing directory
    reads as an empty store.
    """

    def __init__(self, state_dir, create: bool = True):
        super().__init__()
        self.state_dir = Path(state_dir).expanduser()
        if not create:
            return
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StateStoreError(f"Cannot create state directory {self.state_dir}: {e}") from e

    def _record_path(self, run_id: str) -> Path:
        if not run_id or os.sep in run_id or run_id.startswith('.'):
            raise RunNotFoundError(run_id)
        return self.state_dir / f"{run_id}.json"

    @contextmanager
    def _exclusive(self, run_id: str):
        """Hold the per-run lock in this process and across processes."""
        lock_path = self.state_dir / f"{run_id}.lock"
        with self._run_lock(run_id):
            with open(lock_path, 'a') as lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def save(self, run: WorkflowRun) -> None:
        path = self._record_path(run.id)
        raw = _encode(run)

        try:
            with self._exclusive(run.id):
                fd, tmp_path = tempfile.mkstemp(
                    dir=self.state_dir, prefix=f".{run.id}.", suffix='.tmp')
                try:
                    with os.fdopen(fd, 'w') as f:
                        f.write(raw)
                        f.flush()
                        os.fsync(f.fileno())
                    os.replace(tmp_path, path)
                except BaseException:
                    if os.path.exists(tmp_path):
                        os.unlink(tmp_path)
                    raise
        except OSError as e:
            raise StateStoreError(f"Failed to save run {run.id}: {e}") from e

    def _read(self, path: Path) -> str:
        try:
            with open(path, 'r') as f:
                return f.read()
        except OSError as e:
            raise StateStoreError(f"Failed to read {path}: {e}") from e

    def load(self, run_id: str) -> WorkflowRun:
        path = self._record_path(run_id)
        if not path.exists():
            raise RunNotFoundError(run_id)
        return _decode(self._read(path))

    def list(self) -> RunSnapshot:
        records = []
        if not self.state_dir.is_dir():
            return RunSnapshot(())
        for path in self.state_dir.glob('*.json'):
            try:
                records.append(self._read(path))
            except StateStoreError:
                # Deleted between glob and read
                if path.exists():
                    raise
        records.sort(key=_created_at)
        return RunSnapshot(tuple(records))

    def delete(self, run_id: str) -> None:
        path = self._record_path(run_id)
        try:
            with self._exclusive(run_id):
                if not path.exists():
                    raise RunNotFoundError(run_id)
                path.unlink()
            (self.state_dir / f"{run_id}.lock").unlink(missing_ok=True)
        except OSError as e:
            raise StateStoreError(f"Failed to delete run {run_id}: {e}") from e
