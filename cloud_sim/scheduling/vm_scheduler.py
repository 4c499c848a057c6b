"""Host-level schedulers that share a host's PEs among its resident VMs."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from loguru import logger

from ..core.exceptions import InsufficientCapacity
from ..core.provisioners import CAPACITY_TOLERANCE

if TYPE_CHECKING:
    from ..core.resources import Pe
    from ..core.vm import Vm


class VmScheduler(ABC):
    """Base class for VM schedulers.

    ``mips_map`` holds, per VM uid, the MIPS allocated to each of its
    virtual PEs. ``pe_map`` holds the ids of the physical PEs carrying them.
    """

    def __init__(self, pe_list: Iterable["Pe"]):
        self.pe_list: List["Pe"] = list(pe_list)
        if not self.pe_list:
            raise ValueError("A VM scheduler needs at least one PE")
        self.mips_map: Dict[str, List[float]] = {}
        self.pe_map: Dict[str, List[int]] = {}

    @property
    def pe_capacity(self) -> float:
        """MIPS of the largest PE."""
        return max(pe.mips for pe in self.pe_list)

    @property
    def total_mips(self) -> float:
        return sum(pe.mips for pe in self.pe_list)

    @property
    def available_mips(self) -> float:
        return sum(pe.provisioner.available() for pe in self.pe_list)

    @property
    def max_available_mips(self) -> float:
        """Largest amount of MIPS still free on a single PE."""
        return max(pe.provisioner.available() for pe in self.pe_list)

    @property
    def vm_uids(self) -> List[str]:
        return list(self.mips_map)

    @abstractmethod
    def is_suitable_for_vm(self, vm: "Vm") -> bool:
        """Whether the VM's PE request could be placed on these PEs."""
        pass

    @abstractmethod
    def allocate_pes_for_vm(self, vm: "Vm", mips_share: Optional[List[float]] = None) -> List[float]:
        """Allocate PEs for a VM and return the MIPS granted to each of its PEs.

        Raises InsufficientCapacity when the request cannot be placed.
        """
        pass

    @abstractmethod
    def deallocate_pes_for_vm(self, vm: "Vm") -> None:
        pass

    def deallocate_pes_for_all_vms(self) -> None:
        self.mips_map.clear()
        self.pe_map.clear()
        for pe in self.pe_list:
            pe.provisioner.deallocate_all()

    def get_allocated_mips_for_vm(self, vm: "Vm") -> List[float]:
        return list(self.mips_map.get(vm.uid, []))

    def total_allocated_mips_for_vm(self, vm: "Vm") -> float:
        return sum(self.mips_map.get(vm.uid, []))

    def _check_request(self, vm: "Vm", requested: List[float]) -> None:
        if len(requested) > len(self.pe_list):
            raise InsufficientCapacity("pes", len(requested), len(self.pe_list))
        peak = max(requested, default=0.0)
        if peak > self.pe_capacity + CAPACITY_TOLERANCE:
            raise InsufficientCapacity("mips per pe", peak, self.pe_capacity)


class VmSchedulerTimeShared(VmScheduler):
    """Time-shares the host's MIPS among all resident VMs.

    Oversubscription is allowed: when the resident VMs request more MIPS
    than the host has, every request is scaled down by the same factor, so
    each VM keeps a proportional slice. A request is only rejected if the
    VM has more PEs than the host or asks more MIPS per PE than any
    single PE offers.
    """

    def __init__(self, pe_list: Iterable["Pe"]):
        super().__init__(pe_list)
        self.requested_mips: Dict[str, List[float]] = {}

    def is_suitable_for_vm(self, vm: "Vm") -> bool:
        try:
            self._check_request(vm, vm.current_requested_mips())
        except InsufficientCapacity:
            return False
        return True

    def allocate_pes_for_vm(self, vm: "Vm", mips_share: Optional[List[float]] = None) -> List[float]:
        requested = list(mips_share) if mips_share is not None else vm.current_requested_mips()
        self._check_request(vm, requested)

        self.requested_mips[vm.uid] = requested
        self._redistribute()

        allocated = self.get_allocated_mips_for_vm(vm)
        if sum(allocated) < sum(requested) - CAPACITY_TOLERANCE:
            logger.debug(
                f"VM {vm.uid} oversubscribed: requested {sum(requested):.1f} MIPS, "
                f"granted {sum(allocated):.1f}"
            )
        return allocated

    def deallocate_pes_for_vm(self, vm: "Vm") -> None:
        if self.requested_mips.pop(vm.uid, None) is None:
            return
        self._redistribute()

    def deallocate_pes_for_all_vms(self) -> None:
        super().deallocate_pes_for_all_vms()
        self.requested_mips.clear()

    @property
    def total_requested_mips(self) -> float:
        return sum(sum(mips) for mips in self.requested_mips.values())

    @property
    def oversubscription_factor(self) -> float:
        """Fraction of each request actually granted (1.0 when not oversubscribed)."""
        total_requested = self.total_requested_mips
        if total_requested <= self.total_mips:
            return 1.0
        return self.total_mips / total_requested

    def _redistribute(self) -> None:
        """Recompute every VM's share and lay the shares out over the PEs."""
        factor = self.oversubscription_factor
        self.mips_map = {
            uid: [mips * factor for mips in requested]
            for uid, requested in self.requested_mips.items()
        }
        self._layout_on_pes()

    def _layout_on_pes(self) -> None:
        # First fit over the PEs; a virtual PE may span two physical PEs.
        for pe in self.pe_list:
            pe.provisioner.deallocate_all()
        self.pe_map = {}

        index = 0
        for uid, shares in self.mips_map.items():
            used_pes: List[int] = []
            for share in shares:
                remaining = share
                while remaining > CAPACITY_TOLERANCE and index < len(self.pe_list):
                    pe = self.pe_list[index]
                    free = pe.provisioner.available()
                    if free <= CAPACITY_TOLERANCE:
                        index += 1
                        continue
                    grant = min(free, remaining)
                    pe.provisioner.allocate(uid, pe.provisioner.allocated(uid) + grant)
                    remaining -= grant
                    if pe.pe_id not in used_pes:
                        used_pes.append(pe.pe_id)
            self.pe_map[uid] = used_pes


class VmSchedulerSpaceShared(VmScheduler):
    """Gives each virtual PE an exclusive physical PE; no oversubscription."""

    def _free_pes(self, min_mips: float) -> List["Pe"]:
        return [
            pe for pe in self.pe_list
            if not pe.provisioner.consumers and pe.mips + CAPACITY_TOLERANCE >= min_mips
        ]

    def is_suitable_for_vm(self, vm: "Vm") -> bool:
        requested = vm.current_requested_mips()
        return len(self._free_pes(max(requested))) >= len(requested)

    def allocate_pes_for_vm(self, vm: "Vm", mips_share: Optional[List[float]] = None) -> List[float]:
        requested = list(mips_share) if mips_share is not None else vm.current_requested_mips()
        self._check_request(vm, requested)
        self.deallocate_pes_for_vm(vm)

        free = self._free_pes(max(requested, default=0.0))
        if len(free) < len(requested):
            raise InsufficientCapacity("free pes", len(requested), len(free))

        for pe, mips in zip(free, requested):
            pe.provisioner.allocate(vm.uid, mips)
        self.mips_map[vm.uid] = requested
        self.pe_map[vm.uid] = [pe.pe_id for pe in free[:len(requested)]]
        return list(requested)

    def deallocate_pes_for_vm(self, vm: "Vm") -> None:
        pe_ids = self.pe_map.pop(vm.uid, [])
        self.mips_map.pop(vm.uid, None)
        for pe in self.pe_list:
            if pe.pe_id in pe_ids:
                pe.provisioner.deallocate(vm.uid)


def create_vm_scheduler(kind: str, pe_list: Iterable["Pe"]) -> VmScheduler:
    """Create a VM scheduler by name."""
    schedulers = {
        "time_shared": VmSchedulerTimeShared,
        "space_shared": VmSchedulerSpaceShared,
    }
    if kind not in schedulers:
        raise ValueError(f"Unknown VM scheduler type: {kind}")
    return schedulers[kind](pe_list)
