import pytest

from disk_lifecycle.cloud import InMemoryCloudClient
from disk_lifecycle.core.config import LifecycleConfig
from disk_lifecycle.orchestration import (
    FileStateStore,
    InMemoryStateStore,
    StepExecutor,
    WorkflowEngine,
    WorkflowParams,
)


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def isolated_state_dir(monkeypatch, tmp_path):
    """Keep every test away from ~/.disk-lifecycle."""
    state_dir = tmp_path / "runs"
    monkeypatch.setenv("DISK_LIFECYCLE_STATE_DIR", str(state_dir))
    return state_dir


@pytest.fixture
def params():
    return WorkflowParams(
        disk_name="data-1",
        vm_name="vm-1",
        resource_group="test-project",
        initial_size_gb=10,
        target_size_gb=20,
        location="us-central1-a",
    )


@pytest.fixture
def client():
    return InMemoryCloudClient(vms=["vm-1"])


@pytest.fixture
def store():
    return InMemoryStateStore()


@pytest.fixture
def file_store(tmp_path):
    return FileStateStore(tmp_path / "store")


@pytest.fixture
def config():
    return LifecycleConfig(show_progress=False, poll_timeout=60, poll_interval=1)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def executor(config, clock):
    return StepExecutor(config, sleep=clock.sleep, clock=clock)


@pytest.fixture
def engine(client, store, config, executor):
    return WorkflowEngine(client, store, config, executor=executor)
