"""Tests for hosts and processing elements."""

import math

import pytest

from cloud_sim.core.resources import PeStatus, create_pe_list
from cloud_sim.core.cloudlet import CloudletStatus

from .builders import make_cloudlet, make_host, make_vm


class TestHost:
    """Test VM placement on a single host."""

    def test_suitable_vm_can_be_created(self, host):
        vm = make_vm(mips=1000, pes=2, ram=1024)

        assert host.is_suitable_for_vm(vm)
        assert host.vm_create(vm)

        assert host.has_vm(vm.uid)
        assert vm.host_id == host.host_id
        assert host.ram_provisioner.allocated(vm.uid) == 1024
        assert host.available_storage == host.storage - vm.size

    def test_failed_creation_reserves_nothing(self):
        host = make_host(ram=1024)
        vm = make_vm(ram=2048)

        assert not host.is_suitable_for_vm(vm)
        assert not host.vm_create(vm)

        assert not host.has_vm(vm.uid)
        assert vm.host_id is None
        assert host.ram_provisioner.used == 0
        assert host.storage_provisioner.used == 0
        assert host.bw_provisioner.used == 0
        assert host.available_mips == host.total_mips

    def test_rollback_when_pes_are_short(self):
        host = make_host(pes=1, mips=1000, vm_scheduler="space_shared")
        assert host.vm_create(make_vm(vm_id=0))
        second = make_vm(vm_id=1)

        assert not host.vm_create(second)
        assert host.ram_provisioner.allocated(second.uid) == 0
        assert host.storage_provisioner.allocated(second.uid) == 0

    def test_duplicate_creation_is_rejected(self, host):
        vm = make_vm()
        assert host.vm_create(vm)
        assert not host.vm_create(vm)
        assert host.vm_ids == [vm.uid]

    def test_destroy_releases_everything(self, host):
        vm = make_vm(mips=2000, pes=4)
        host.vm_create(vm)
        assert host.number_of_free_pes == 0

        host.vm_destroy(vm)

        assert host.vm_ids == []
        assert vm.host_id is None
        assert host.number_of_free_pes == 4
        assert host.ram_provisioner.used == 0
        host.vm_destroy(vm)

    def test_destroy_all(self, host):
        vms = [make_vm(vm_id=index) for index in range(3)]
        for vm in vms:
            host.vm_create(vm)

        host.vm_destroy_all(vms)

        assert host.vm_ids == []
        assert host.available_mips == host.total_mips

    def test_update_returns_earliest_completion(self, host):
        fast = make_vm(vm_id=0, mips=2000)
        slow = make_vm(vm_id=1, mips=1000)
        vm_table = {fast.uid: fast, slow.uid: slow}
        host.vm_create(fast)
        host.vm_create(slow)
        host.update_vms_processing(0.0, vm_table)
        fast.cloudlet_scheduler.cloudlet_submit(make_cloudlet(0, 100000))
        slow.cloudlet_scheduler.cloudlet_submit(make_cloudlet(1, 100000))

        assert host.update_vms_processing(0.0, vm_table) == pytest.approx(50)
        assert host.update_vms_processing(50.0, vm_table) == pytest.approx(100)
        assert fast.cloudlet_scheduler.next_finished_cloudlet().status is CloudletStatus.SUCCESS

    def test_idle_host_has_no_next_event(self, host):
        assert host.update_vms_processing(0.0, {}) == math.inf


def test_pe_list_numbering_and_status():
    pes = create_pe_list(3, 1500)
    assert [pe.pe_id for pe in pes] == [0, 1, 2]
    assert all(pe.mips == 1500 for pe in pes)
    assert all(pe.status is PeStatus.FREE for pe in pes)
