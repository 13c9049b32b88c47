import pytest

from disk_lifecycle.cloud import DiskHandle, InMemoryCloudClient, ProvisioningState
from disk_lifecycle.core.exceptions import (
    DiskNotFoundError,
    PermanentCloudError,
    TransientCloudError,
    VMNotFoundError,
)


@pytest.fixture
def disk(client):
    return client.create_disk("data-1", 10, "pd-standard", "us-central1-a", "test-project")


class TestDisks:
    def test_create_returns_handle(self, disk):
        assert disk == DiskHandle("data-1", "us-central1-a", "test-project")

    def test_duplicate_name_conflicts(self, client, disk):
        with pytest.raises(PermanentCloudError) as exc:
            client.create_disk("data-1", 10, "pd-standard", None, None)
        assert exc.value.code == "conflict"

    def test_invalid_size(self, client):
        with pytest.raises(PermanentCloudError) as exc:
            client.create_disk("data-1", 0, "pd-standard", None, None)
        assert exc.value.code == "invalid_parameter"

    def test_cannot_shrink(self, client, disk):
        with pytest.raises(PermanentCloudError) as exc:
            client.resize_disk("data-1", 5)
        assert exc.value.code == "invalid_parameter"

    def test_resize_grows(self, client, disk):
        client.resize_disk("data-1", 20)
        assert client.get_disk_state("data-1").size_gb == 20

    def test_missing_disk(self, client):
        with pytest.raises(DiskNotFoundError):
            client.get_disk_state("nope")
        with pytest.raises(DiskNotFoundError):
            client.delete_disk("nope")

    def test_settles_after_polls(self):
        client = InMemoryCloudClient(settle_polls=2)
        client.create_disk("data-1", 10, "pd-standard", None, None)

        states = [client.get_disk_state("data-1").provisioning_state for _ in range(3)]

        assert states == [ProvisioningState.CREATING, ProvisioningState.CREATING,
                          ProvisioningState.SUCCEEDED]

    def test_fail_provisioning(self, client, disk):
        client.fail_provisioning("data-1")
        assert client.get_disk_state("data-1").provisioning_state == ProvisioningState.FAILED


class TestAttachments:
    def test_attach_and_detach(self, client, disk):
        client.attach_disk("vm-1", disk, 2)
        assert client.get_vm_disks("vm-1") == {2: "data-1"}
        assert client.get_disk_state("data-1").attached_to == ["vm-1"]

        client.detach_disk("vm-1", disk)
        assert client.get_vm_disks("vm-1") == {}
        assert client.get_disk_state("data-1").attached_to == []

    def test_lun_in_use(self, client, disk):
        client.add_vm("vm-1", {2: "other"})
        with pytest.raises(PermanentCloudError) as exc:
            client.attach_disk("vm-1", disk, 2)
        assert exc.value.code == "conflict"

    def test_attached_disk_cannot_be_deleted(self, client, disk):
        client.attach_disk("vm-1", disk, 1)
        with pytest.raises(PermanentCloudError) as exc:
            client.delete_disk("data-1")
        assert exc.value.code == "conflict"

    def test_detach_when_not_attached(self, client, disk):
        with pytest.raises(PermanentCloudError) as exc:
            client.detach_disk("vm-1", disk)
        assert exc.value.code == "not_found"

    def test_unknown_vm(self, client, disk):
        with pytest.raises(VMNotFoundError):
            client.get_vm_disks("vm-2")
        with pytest.raises(VMNotFoundError):
            client.attach_disk("vm-2", disk, 1)


class TestFaultInjection:
    def test_fault_fires_the_requested_number_of_times(self, client):
        client.inject("create_disk", TransientCloudError("429", code="throttled"), times=2)

        for _ in range(2):
            with pytest.raises(TransientCloudError):
                client.create_disk("data-1", 10, "pd-standard", None, None)
        client.create_disk("data-1", 10, "pd-standard", None, None)

        assert client.call_count("create_disk") == 3
        assert list(client.disks) == ["data-1"]

    def test_applied_fault_takes_effect(self, client):
        client.inject("create_disk", TransientCloudError("timeout", code="timeout"), apply=True)

        with pytest.raises(TransientCloudError):
            client.create_disk("data-1", 10, "pd-standard", None, None)

        assert "data-1" in client.disks
