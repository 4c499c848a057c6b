"""Virtual machines requested by a broker and placed on hosts."""

from typing import List, Optional, Tuple, TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from ..scheduling.cloudlet_scheduler import CloudletScheduler


class Vm:
    """A VM requesting ``pes_number`` PEs of ``mips`` each plus RAM, BW and image storage.

    A VM does not hold a reference to its host; ``host_id`` is the only
    link. The datacenter owning the VM keeps the authoritative object.
    """

    def __init__(
        self,
        vm_id: int,
        user_id: int,
        mips: float,
        pes_number: int,
        ram: float,
        bw: float,
        size: float,
        vmm: str,
        cloudlet_scheduler: "CloudletScheduler",
    ):
        if mips <= 0:
            raise ValueError("VM MIPS must be positive")
        if pes_number < 1:
            raise ValueError("VM needs at least one PE")
        if ram < 0 or bw < 0 or size < 0:
            raise ValueError("VM RAM, BW and size must be non-negative")

        self.vm_id = vm_id
        self.user_id = user_id
        self.mips = float(mips)
        self.pes_number = pes_number
        self.ram = ram
        self.bw = bw
        self.size = size
        self.vmm = vmm
        self.cloudlet_scheduler = cloudlet_scheduler

        self.host_id: Optional[int] = None
        self.datacenter_id: Optional[int] = None
        self.being_instantiated = True
        # (time, cpu utilization) samples, one per processing update.
        self.utilization_history: List[Tuple[float, float]] = []

    def __repr__(self) -> str:
        return (f"Vm(uid={self.uid}, mips={self.mips}, pes={self.pes_number}, "
                f"host={self.host_id})")

    @property
    def uid(self) -> str:
        """Unique across brokers: VM ids are only unique per user."""
        return self.get_uid(self.user_id, self.vm_id)

    @staticmethod
    def get_uid(user_id: int, vm_id: int) -> str:
        return f"{user_id}-{vm_id}"

    @property
    def is_placed(self) -> bool:
        return self.host_id is not None

    @property
    def total_mips(self) -> float:
        return self.mips * self.pes_number

    def current_requested_mips(self) -> List[float]:
        """MIPS requested for each virtual PE."""
        return [self.mips] * self.pes_number

    @property
    def current_allocated_mips(self) -> List[float]:
        return list(self.cloudlet_scheduler.current_mips_share)

    def update_vm_processing(self, current_time: float, mips_share: List[float]) -> float:
        """Advance the VM's cloudlets to ``current_time``; returns the next completion time."""
        if mips_share is None:
            logger.debug(f"VM {self.uid} has no MIPS share at {current_time:.2f}")
            mips_share = []
        return self.cloudlet_scheduler.update_vm_processing(current_time, mips_share)

    def cpu_utilization(self, time: float) -> float:
        """Fraction of the VM's PEs its running cloudlets use at ``time``."""
        used = sum(
            cloudlet.utilization_model_cpu.get_utilization(time) * cloudlet.pes_number
            for cloudlet in self.cloudlet_scheduler.exec_list
        )
        return min(1.0, used / self.pes_number)

    def record_utilization(self, time: float) -> None:
        """Sample CPU utilization; a later sample at the same time replaces the earlier one."""
        sample = (time, self.cpu_utilization(time))
        if self.utilization_history and self.utilization_history[-1][0] == time:
            self.utilization_history[-1] = sample
        else:
            self.utilization_history.append(sample)
