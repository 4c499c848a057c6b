"""VM placement policies: choosing the host a new VM lands on."""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from loguru import logger

from ..core.exceptions import NoSuitableHost
from ..core.resources import Host
from ..core.vm import Vm


class VmAllocationPolicy(ABC):
    """Base class for VM allocation policies.

    Keeps the placement table (VM uid -> host id) used both when placing
    and when reclaiming a VM.
    """

    def __init__(self, host_list: Iterable[Host]):
        self.host_list: List[Host] = list(host_list)
        self.placement_table: Dict[str, int] = {}
        self._hosts_by_id: Dict[int, Host] = {host.host_id: host for host in self.host_list}
        logger.info(f"{self.__class__.__name__} initialized with {len(self.host_list)} hosts")

    @abstractmethod
    def candidate_hosts(self, vm: Vm) -> List[Host]:
        """Hosts to try for a VM, in order of preference."""
        pass

    def allocate_host_for_vm(self, vm: Vm) -> Host:
        """Place the VM on the first candidate host that accepts it.

        Raises NoSuitableHost when every host rejects it; the VM then stays
        unplaced.
        """
        for host in self.candidate_hosts(vm):
            if host.is_suitable_for_vm(vm) and self.allocate_host_for_vm_on(vm, host):
                return host

        logger.warning(f"Could not place VM {vm.uid} - no suitable host")
        raise NoSuitableHost(vm.uid)

    def allocate_host_for_vm_on(self, vm: Vm, host: Host) -> bool:
        """Place the VM on a given host."""
        if not host.vm_create(vm):
            return False
        self.placement_table[vm.uid] = host.host_id
        logger.debug(f"VM {vm.uid} placed on host {host.host_id}")
        return True

    def deallocate_host_for_vm(self, vm: Vm) -> None:
        host_id = self.placement_table.pop(vm.uid, None)
        if host_id is None:
            logger.debug(f"VM {vm.uid} has no placement to reclaim")
            return
        self._hosts_by_id[host_id].vm_destroy(vm)

    def get_host(self, vm: Vm) -> Optional[Host]:
        return self.get_host_for(vm.vm_id, vm.user_id)

    def get_host_for(self, vm_id: int, user_id: int) -> Optional[Host]:
        host_id = self.placement_table.get(Vm.get_uid(user_id, vm_id))
        if host_id is None:
            return None
        return self._hosts_by_id[host_id]


class VmAllocationPolicySimple(VmAllocationPolicy):
    """First fit: hosts are tried in their fixed list order."""

    def candidate_hosts(self, vm: Vm) -> List[Host]:
        return list(self.host_list)


class VmAllocationPolicySpread(VmAllocationPolicy):
    """Hosts with the most free PEs are tried first; ties keep list order."""

    def candidate_hosts(self, vm: Vm) -> List[Host]:
        return sorted(self.host_list, key=lambda host: -host.number_of_free_pes)


def create_allocation_policy(kind: str, host_list: Iterable[Host]) -> VmAllocationPolicy:
    """Create an allocation policy by name."""
    policies = {
        "simple": VmAllocationPolicySimple,
        "spread": VmAllocationPolicySpread,
    }
    if kind not in policies:
        raise ValueError(f"Unknown allocation policy: {kind}")
    return policies[kind](host_list)
