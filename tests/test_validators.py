from dataclasses import replace

import pytest

from disk_lifecycle.core.exceptions import PermanentCloudError, TransientCloudError
from disk_lifecycle.validators import (
    AttachmentSlotValidator,
    DiskSizeValidator,
    LunValidator,
    ResourceNameValidator,
    build_runner,
)


class TestParameterValidators:
    def test_valid_params_pass(self, params):
        results = build_runner(params).run_all()
        assert results.all_passed()
        assert len(results.results) == 3

    @pytest.mark.parametrize("field,value", [
        ("disk_name", "Data_1"),
        ("disk_name", "1disk"),
        ("vm_name", ""),
        ("vm_name", "a" * 64),
    ])
    def test_bad_names(self, params, field, value):
        result = ResourceNameValidator(replace(params, **{field: value})).validate()
        assert not result.passed
        assert "fix" in result.details

    def test_missing_resource_group(self, params):
        assert not ResourceNameValidator(replace(params, resource_group="")).validate().passed

    @pytest.mark.parametrize("initial,target", [(0, 10), (10, 0), (10, 70000), (20, 10)])
    def test_bad_sizes(self, params, initial, target):
        result = DiskSizeValidator(replace(params, initial_size_gb=initial, target_size_gb=target)).validate()
        assert not result.passed

    def test_equal_sizes_pass(self, params):
        assert DiskSizeValidator(replace(params, target_size_gb=10)).validate().passed

    def test_negative_lun(self, params):
        assert not LunValidator(replace(params, lun=-1)).validate().passed

    def test_format_failures(self, params):
        results = build_runner(replace(params, lun=-1, disk_name="BAD")).run_all()

        text = results.format_failures()

        assert "[X] Resource Names" in text
        assert "[X] LUN" in text
        assert "Fix:" in text
        assert len(results.get_failures()) == 2


class TestAttachmentSlotValidator:
    def test_free_slot(self, params, client):
        assert AttachmentSlotValidator(params, client).validate().passed

    def test_slot_with_same_disk_passes(self, params, client):
        client.add_vm("vm-1", {1: "data-1"})
        assert AttachmentSlotValidator(params, client).validate().passed

    def test_slot_taken(self, params, client):
        client.add_vm("vm-1", {0: "boot", 1: "other"})

        result = AttachmentSlotValidator(params, client).validate()

        assert not result.passed
        assert "other" in result.message
        assert result.details["fix"] == "Choose a free slot, e.g. --lun 2"

    def test_missing_vm(self, params, client):
        result = AttachmentSlotValidator(replace(params, vm_name="vm-2"), client).validate()
        assert not result.passed
        assert "not found" in result.message

    def test_cloud_errors_propagate(self, params, client):
        client.inject("get_vm_disks", TransientCloudError("503"))
        with pytest.raises(TransientCloudError):
            AttachmentSlotValidator(params, client).validate()

        client.inject("get_vm_disks", PermanentCloudError("no access", code="forbidden"))
        with pytest.raises(PermanentCloudError):
            AttachmentSlotValidator(params, client).validate()

    def test_runner_includes_slot_check_with_client(self, params, client):
        client.add_vm("vm-1", {1: "other"})
        results = build_runner(params, client).run_all()
        assert [r.validator_name for r in results.get_failures()] == ["VM Attachment Slot"]
