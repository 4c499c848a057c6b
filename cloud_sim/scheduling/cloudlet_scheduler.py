"""VM-level schedulers that share a VM's MIPS among its cloudlets."""

import math
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, List, Optional

from loguru import logger

from ..core.cloudlet import Cloudlet, CloudletStatus

# Smallest gap between two processing updates of the same VM.
MIN_TIME_BETWEEN_EVENTS = 0.01


class CloudletScheduler(ABC):
    """Base class for cloudlet schedulers.

    The scheduler owns the execution state of the cloudlets resident on one
    VM. ``update_vm_processing`` advances them to the given time and returns
    the absolute time of the next expected completion (``math.inf`` when
    nothing is running), so the datacenter only wakes up when something
    actually finishes.
    """

    def __init__(self):
        self.previous_time = 0.0
        self.current_mips_share: List[float] = []
        self.exec_list: List[Cloudlet] = []
        self.waiting_list: List[Cloudlet] = []
        self.paused_list: List[Cloudlet] = []
        self.finished_list: Deque[Cloudlet] = deque()

    @abstractmethod
    def cloudlet_submit(self, cloudlet: Cloudlet, file_transfer_time: float = 0.0) -> float:
        """Accept a cloudlet; returns its estimated finish delay (0 if queued)."""
        pass

    @abstractmethod
    def update_vm_processing(self, current_time: float, mips_share: List[float]) -> float:
        pass

    @abstractmethod
    def _resume_paused(self, cloudlet: Cloudlet) -> None:
        pass

    @property
    def running_cloudlets(self) -> List[Cloudlet]:
        return list(self.exec_list)

    @property
    def waiting_cloudlets(self) -> List[Cloudlet]:
        return list(self.waiting_list)

    @property
    def paused_cloudlets(self) -> List[Cloudlet]:
        return list(self.paused_list)

    @property
    def has_work(self) -> bool:
        return bool(self.exec_list or self.waiting_list or self.paused_list)

    def resident_cloudlets(self) -> List[Cloudlet]:
        """Every cloudlet that has not finished yet."""
        return self.exec_list + self.waiting_list + self.paused_list

    def is_finished_cloudlets(self) -> bool:
        return bool(self.finished_list)

    def next_finished_cloudlet(self) -> Optional[Cloudlet]:
        if self.finished_list:
            return self.finished_list.popleft()
        return None

    def cloudlet_status(self, cloudlet_id: int) -> Optional[CloudletStatus]:
        cloudlet = self._find(cloudlet_id, include_finished=True)
        return cloudlet.status if cloudlet else None

    def cloudlet_cancel(self, cloudlet_id: int) -> Optional[Cloudlet]:
        """Withdraw an unfinished cloudlet. Returns None if it is unknown or already done."""
        for container in (self.exec_list, self.waiting_list, self.paused_list):
            for cloudlet in container:
                if cloudlet.cloudlet_id == cloudlet_id:
                    container.remove(cloudlet)
                    cloudlet.mark_canceled(self.previous_time)
                    return cloudlet
        return None

    def cloudlet_pause(self, cloudlet_id: int) -> bool:
        for container in (self.exec_list, self.waiting_list):
            for cloudlet in container:
                if cloudlet.cloudlet_id == cloudlet_id:
                    container.remove(cloudlet)
                    cloudlet.status = CloudletStatus.PAUSED
                    self.paused_list.append(cloudlet)
                    logger.debug(f"Cloudlet {cloudlet_id} paused at {self.previous_time:.2f}")
                    return True
        return False

    def cloudlet_resume(self, cloudlet_id: int) -> bool:
        for cloudlet in self.paused_list:
            if cloudlet.cloudlet_id == cloudlet_id:
                self.paused_list.remove(cloudlet)
                self._resume_paused(cloudlet)
                logger.debug(f"Cloudlet {cloudlet_id} resumed at {self.previous_time:.2f}")
                return True
        return False

    def fail_all(self, current_time: float, reason: str) -> List[Cloudlet]:
        """Fail every unfinished cloudlet (e.g. its VM is being destroyed)."""
        failed = self.resident_cloudlets()
        for cloudlet in failed:
            cloudlet.mark_failed(current_time, reason)
        self.exec_list.clear()
        self.waiting_list.clear()
        self.paused_list.clear()
        return failed

    def total_utilization_of_cpu(self, time: float) -> float:
        return sum(cl.utilization_model_cpu.get_utilization(time) for cl in self.exec_list)

    def total_utilization_of_ram(self, time: float) -> float:
        return sum(cl.utilization_model_ram.get_utilization(time) for cl in self.exec_list)

    def total_utilization_of_bw(self, time: float) -> float:
        return sum(cl.utilization_model_bw.get_utilization(time) for cl in self.exec_list)

    def _find(self, cloudlet_id: int, include_finished: bool = False) -> Optional[Cloudlet]:
        containers = [self.exec_list, self.waiting_list, self.paused_list]
        if include_finished:
            containers.append(list(self.finished_list))
        for container in containers:
            for cloudlet in container:
                if cloudlet.cloudlet_id == cloudlet_id:
                    return cloudlet
        return None

    def _advance(self, time_span: float, capacity: float) -> None:
        for cloudlet in self.exec_list:
            cloudlet.add_finished_length(capacity * time_span * cloudlet.pes_number)

    def _collect_finished(self, current_time: float) -> None:
        for cloudlet in [cl for cl in self.exec_list if cl.is_finished]:
            self.exec_list.remove(cloudlet)
            cloudlet.mark_finished(current_time)
            self.finished_list.append(cloudlet)

    def _next_event(self, current_time: float, capacity: float) -> float:
        next_event = math.inf
        for cloudlet in self.exec_list:
            estimated = current_time + cloudlet.estimated_finish_delay(capacity)
            if estimated - current_time < MIN_TIME_BETWEEN_EVENTS:
                estimated = current_time + MIN_TIME_BETWEEN_EVENTS
            next_event = min(next_event, estimated)
        return next_event


class CloudletSchedulerTimeShared(CloudletScheduler):
    """Every resident cloudlet runs at once, sharing the VM's MIPS.

    Each cloudlet PE gets ``sum(mips_share) / max(cpus, pes_in_use)`` MIPS,
    where ``cpus`` counts the VM PEs with a positive share.
    """

    def _capacity(self, mips_share: List[float]) -> float:
        total = sum(mips for mips in mips_share if mips > 0)
        cpus = sum(1 for mips in mips_share if mips > 0)
        pes_in_use = sum(cl.pes_number for cl in self.exec_list)
        divisor = max(cpus, pes_in_use)
        return total / divisor if divisor else 0.0

    def update_vm_processing(self, current_time: float, mips_share: List[float]) -> float:
        time_span = current_time - self.previous_time
        self._advance(time_span, self._capacity(self.current_mips_share))
        self.current_mips_share = list(mips_share)
        self.previous_time = current_time

        if not self.exec_list:
            return math.inf

        self._collect_finished(current_time)
        return self._next_event(current_time, self._capacity(mips_share))

    def cloudlet_submit(self, cloudlet: Cloudlet, file_transfer_time: float = 0.0) -> float:
        cloudlet.mark_started(self.previous_time)
        self.exec_list.append(cloudlet)

        capacity = self._capacity(self.current_mips_share)
        cloudlet.extra_length = capacity * file_transfer_time
        return cloudlet.estimated_finish_delay(capacity)

    def _resume_paused(self, cloudlet: Cloudlet) -> None:
        cloudlet.status = CloudletStatus.IN_EXEC
        self.exec_list.append(cloudlet)


class CloudletSchedulerSpaceShared(CloudletScheduler):
    """Runs cloudlets on dedicated VM PEs; the rest wait in FIFO order."""

    def _capacity(self, mips_share: List[float]) -> float:
        positive = [mips for mips in mips_share if mips > 0]
        return sum(positive) / len(positive) if positive else 0.0

    @property
    def used_pes(self) -> int:
        return sum(cl.pes_number for cl in self.exec_list)

    @property
    def free_pes(self) -> int:
        return len(self.current_mips_share) - self.used_pes

    def update_vm_processing(self, current_time: float, mips_share: List[float]) -> float:
        time_span = current_time - self.previous_time
        self._advance(time_span, self._capacity(self.current_mips_share))
        self.current_mips_share = list(mips_share)
        self.previous_time = current_time

        self._collect_finished(current_time)
        self._promote_waiting(current_time)
        return self._next_event(current_time, self._capacity(mips_share))

    def cloudlet_submit(self, cloudlet: Cloudlet, file_transfer_time: float = 0.0) -> float:
        if cloudlet.pes_number > len(self.current_mips_share):
            # It could never get enough PEs on this VM.
            cloudlet.mark_failed(
                self.previous_time,
                f"needs {cloudlet.pes_number} PEs, VM has {len(self.current_mips_share)}",
            )
            self.finished_list.append(cloudlet)
            return 0.0

        capacity = self._capacity(self.current_mips_share)
        cloudlet.extra_length = capacity * file_transfer_time

        if cloudlet.pes_number <= self.free_pes:
            cloudlet.mark_started(self.previous_time)
            self.exec_list.append(cloudlet)
            return cloudlet.estimated_finish_delay(capacity)

        cloudlet.status = CloudletStatus.QUEUED
        self.waiting_list.append(cloudlet)
        return 0.0

    def _resume_paused(self, cloudlet: Cloudlet) -> None:
        if cloudlet.pes_number <= self.free_pes:
            cloudlet.status = CloudletStatus.IN_EXEC
            self.exec_list.append(cloudlet)
        else:
            cloudlet.status = CloudletStatus.QUEUED
            self.waiting_list.append(cloudlet)

    def _promote_waiting(self, current_time: float) -> None:
        while self.waiting_list and self.waiting_list[0].pes_number <= self.free_pes:
            cloudlet = self.waiting_list.pop(0)
            cloudlet.mark_started(current_time)
            self.exec_list.append(cloudlet)


def create_cloudlet_scheduler(kind: str) -> CloudletScheduler:
    """Create a cloudlet scheduler by name."""
    schedulers = {
        "time_shared": CloudletSchedulerTimeShared,
        "space_shared": CloudletSchedulerSpaceShared,
    }
    if kind not in schedulers:
        raise ValueError(f"Unknown cloudlet scheduler type: {kind}")
    return schedulers[kind]()
