"""Tests for VM allocation policies."""

import pytest

from cloud_sim.core.exceptions import NoSuitableHost
from cloud_sim.scheduling.allocation import (
    VmAllocationPolicySimple,
    VmAllocationPolicySpread,
    create_allocation_policy,
)

from .builders import make_host, make_vm


@pytest.fixture
def hosts():
    return [make_host(host_id=0, ram=1024), make_host(host_id=1, ram=4096)]


class TestVmAllocationPolicySimple:
    """Test first-fit placement."""

    def test_first_host_that_fits_wins(self, hosts):
        policy = VmAllocationPolicySimple(hosts)
        small = make_vm(vm_id=0, ram=512)
        large = make_vm(vm_id=1, ram=2048)

        assert policy.allocate_host_for_vm(small) is hosts[0]
        assert policy.allocate_host_for_vm(large) is hosts[1]
        assert policy.placement_table == {small.uid: 0, large.uid: 1}
        assert policy.get_host(large) is hosts[1]
        assert policy.get_host_for(0, small.user_id) is hosts[0]

    def test_no_suitable_host(self, hosts):
        policy = VmAllocationPolicySimple(hosts)
        huge = make_vm(ram=8192)

        with pytest.raises(NoSuitableHost) as excinfo:
            policy.allocate_host_for_vm(huge)

        assert excinfo.value.vm_uid == huge.uid
        assert policy.get_host(huge) is None
        assert all(host.ram_provisioner.used == 0 for host in hosts)

    def test_deallocation_clears_placement(self, hosts):
        policy = VmAllocationPolicySimple(hosts)
        vm = make_vm()
        policy.allocate_host_for_vm(vm)

        policy.deallocate_host_for_vm(vm)

        assert policy.placement_table == {}
        assert hosts[0].vm_ids == []
        policy.deallocate_host_for_vm(vm)

    def test_same_vm_id_for_two_users(self, hosts):
        policy = VmAllocationPolicySimple(hosts)
        first = make_vm(vm_id=0, user_id=3)
        second = make_vm(vm_id=0, user_id=4)

        policy.allocate_host_for_vm(first)
        policy.allocate_host_for_vm(second)

        assert set(policy.placement_table) == {"3-0", "4-0"}


class TestVmAllocationPolicySpread:
    """Test spreading VMs over hosts."""

    def test_host_with_most_free_pes_first(self):
        hosts = [make_host(host_id=0, pes=2), make_host(host_id=1, pes=4)]
        policy = VmAllocationPolicySpread(hosts)

        first = make_vm(vm_id=0, mips=2000, pes=1)
        second = make_vm(vm_id=1, mips=2000, pes=1)
        third = make_vm(vm_id=2, mips=2000, pes=1)

        assert policy.allocate_host_for_vm(first) is hosts[1]
        assert policy.allocate_host_for_vm(second) is hosts[1]
        # Both hosts now have two free PEs; list order breaks the tie.
        assert policy.allocate_host_for_vm(third) is hosts[0]


def test_factory_rejects_unknown_policy(hosts):
    assert isinstance(create_allocation_policy("spread", hosts), VmAllocationPolicySpread)
    with pytest.raises(ValueError):
        create_allocation_policy("best_fit", hosts)
