"""Physical resources: processing elements and hosts."""

import math
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from loguru import logger

from .exceptions import InsufficientCapacity
from .provisioners import BwProvisioner, PeProvisioner, RamProvisioner, StorageProvisioner
from .vm import Vm

if TYPE_CHECKING:
    from ..scheduling.vm_scheduler import VmScheduler


class PeStatus(Enum):
    """Processing element status."""
    FREE = "free"
    BUSY = "busy"


class Pe:
    """A processing element with a fixed MIPS rating, owned by one host."""

    def __init__(self, pe_id: int, provisioner: PeProvisioner):
        self.pe_id = pe_id
        self.provisioner = provisioner

    def __repr__(self) -> str:
        return f"Pe(id={self.pe_id}, mips={self.mips}, status={self.status.value})"

    @property
    def mips(self) -> float:
        return self.provisioner.capacity

    @property
    def status(self) -> PeStatus:
        return PeStatus.BUSY if self.provisioner.consumers else PeStatus.FREE


def create_pe_list(count: int, mips: float) -> List[Pe]:
    """``count`` identical PEs numbered from 0."""
    return [Pe(pe_id, PeProvisioner(mips)) for pe_id in range(count)]


class Host:
    """A physical machine offering PEs, RAM, bandwidth and storage to VMs.

    The host only records the uids of its resident VMs; the VM objects
    belong to the datacenter.
    """

    def __init__(
        self,
        host_id: int,
        ram_provisioner: RamProvisioner,
        bw_provisioner: BwProvisioner,
        storage: float,
        pe_list: Iterable[Pe],
        vm_scheduler: "VmScheduler",
    ):
        self.host_id = host_id
        self.ram_provisioner = ram_provisioner
        self.bw_provisioner = bw_provisioner
        self.storage_provisioner = StorageProvisioner(storage)
        self.pe_list = list(pe_list)
        self.vm_scheduler = vm_scheduler
        self.datacenter_id: Optional[int] = None

        # Resident VMs, in creation order
        self.vm_ids: List[str] = []

        logger.info(
            f"Host {host_id} created with {len(self.pe_list)} PEs "
            f"({self.total_mips:.0f} MIPS), {self.ram} RAM, {self.bw} BW, {storage} storage"
        )

    def __repr__(self) -> str:
        return f"Host(id={self.host_id}, pes={len(self.pe_list)}, vms={len(self.vm_ids)})"

    @property
    def ram(self) -> float:
        return self.ram_provisioner.capacity

    @property
    def bw(self) -> float:
        return self.bw_provisioner.capacity

    @property
    def storage(self) -> float:
        return self.storage_provisioner.capacity

    @property
    def available_storage(self) -> float:
        return self.storage_provisioner.available()

    @property
    def number_of_pes(self) -> int:
        return len(self.pe_list)

    @property
    def number_of_free_pes(self) -> int:
        return sum(1 for pe in self.pe_list if pe.status is PeStatus.FREE)

    @property
    def total_mips(self) -> float:
        return sum(pe.mips for pe in self.pe_list)

    @property
    def available_mips(self) -> float:
        return self.vm_scheduler.available_mips

    def has_vm(self, vm_uid: str) -> bool:
        return vm_uid in self.vm_ids

    def is_suitable_for_vm(self, vm: Vm) -> bool:
        """Whether the VM fits on this host right now (capacity check only)."""
        return (
            self.vm_scheduler.is_suitable_for_vm(vm)
            and self.ram_provisioner.is_suitable(vm.uid, vm.ram)
            and self.bw_provisioner.is_suitable(vm.uid, vm.bw)
            and self.storage_provisioner.is_suitable(vm.uid, vm.size)
        )

    def vm_create(self, vm: Vm) -> bool:
        """Reserve resources for a VM and make it resident.

        Returns False, with nothing reserved, when any resource is short.
        """
        if self.has_vm(vm.uid):
            logger.warning(f"VM {vm.uid} is already resident on host {self.host_id}")
            return False

        try:
            self.storage_provisioner.allocate(vm.uid, vm.size)
            self.ram_provisioner.allocate(vm.uid, vm.ram)
            self.bw_provisioner.allocate(vm.uid, vm.bw)
            self.vm_scheduler.allocate_pes_for_vm(vm)
        except InsufficientCapacity as e:
            self._release(vm)
            logger.warning(f"Creation of VM {vm.uid} on host {self.host_id} failed: {e}")
            return False

        self.vm_ids.append(vm.uid)
        vm.host_id = self.host_id
        vm.datacenter_id = self.datacenter_id
        logger.info(f"VM {vm.uid} created on host {self.host_id}")
        return True

    def vm_destroy(self, vm: Vm) -> None:
        """Release everything the VM holds on this host."""
        if not self.has_vm(vm.uid):
            return
        self._release(vm)
        self.vm_ids.remove(vm.uid)
        vm.host_id = None
        logger.info(f"VM {vm.uid} destroyed on host {self.host_id}")

    def vm_destroy_all(self, vms: Iterable[Vm]) -> None:
        for vm in list(vms):
            self.vm_destroy(vm)

    def update_vms_processing(self, current_time: float, vm_table: Dict[str, Vm]) -> float:
        """Advance every resident VM; returns the earliest next completion time."""
        smaller_time = math.inf
        for uid in self.vm_ids:
            vm = vm_table[uid]
            mips_share = self.vm_scheduler.get_allocated_mips_for_vm(vm)
            next_time = vm.update_vm_processing(current_time, mips_share)
            smaller_time = min(smaller_time, next_time)
        return smaller_time

    def _release(self, vm: Vm) -> None:
        self.vm_scheduler.deallocate_pes_for_vm(vm)
        self.ram_provisioner.deallocate(vm.uid)
        self.bw_provisioner.deallocate(vm.uid)
        self.storage_provisioner.deallocate(vm.uid)
