"""Cloudlets: units of computational work submitted by a broker."""

import math
from enum import Enum
from typing import Optional

from loguru import logger

from .utilization import UtilizationModel, UtilizationModelFull

# Remaining length (in MI) at or below which a cloudlet counts as done.
FINISH_TOLERANCE = 1e-6


class CloudletStatus(Enum):
    """Cloudlet execution status."""
    CREATED = "created"
    READY = "ready"
    QUEUED = "queued"
    IN_EXEC = "in_exec"
    PAUSED = "paused"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (CloudletStatus.SUCCESS, CloudletStatus.FAILED, CloudletStatus.CANCELED)


class Cloudlet:
    """A unit of work of ``length`` million instructions (MI).

    The request fields are fixed at construction. Status and progress are
    updated by the cloudlet scheduler of the VM the cloudlet runs on.
    """

    def __init__(
        self,
        cloudlet_id: int,
        length: float,
        pes_number: int,
        file_size: float = 0,
        output_size: float = 0,
        utilization_model_cpu: Optional[UtilizationModel] = None,
        utilization_model_ram: Optional[UtilizationModel] = None,
        utilization_model_bw: Optional[UtilizationModel] = None,
        user_id: int = -1,
    ):
        if length <= 0:
            raise ValueError("Cloudlet length must be positive")
        if pes_number < 1:
            raise ValueError("Cloudlet needs at least one PE")
        if file_size < 0 or output_size < 0:
            raise ValueError("Cloudlet file and output sizes must be non-negative")

        self._cloudlet_id = cloudlet_id
        self._length = float(length)
        self._pes_number = pes_number
        self._file_size = file_size
        self._output_size = output_size
        self.utilization_model_cpu = utilization_model_cpu or UtilizationModelFull()
        self.utilization_model_ram = utilization_model_ram or UtilizationModelFull()
        self.utilization_model_bw = utilization_model_bw or UtilizationModelFull()

        self.user_id = user_id
        self.vm_id: Optional[int] = None
        self.resource_id: Optional[int] = None
        self.status = CloudletStatus.CREATED

        # Execution tracking
        self.submission_time: Optional[float] = None
        self.exec_start_time: Optional[float] = None
        self.finish_time: Optional[float] = None
        self.finished_so_far = 0.0
        self.extra_length = 0.0

        # Cost rates of the datacenter running the cloudlet
        self.cost_per_sec = 0.0
        self.cost_per_bw = 0.0

    def __repr__(self) -> str:
        return (f"Cloudlet(id={self._cloudlet_id}, status={self.status.value}, "
                f"vm={self.vm_id}, done={self.finished_so_far:.1f}/{self.total_length:.1f})")

    @property
    def cloudlet_id(self) -> int:
        return self._cloudlet_id

    @property
    def length(self) -> float:
        return self._length

    @property
    def pes_number(self) -> int:
        return self._pes_number

    @property
    def file_size(self) -> float:
        return self._file_size

    @property
    def output_size(self) -> float:
        return self._output_size

    @property
    def total_length(self) -> float:
        """Length including the extra work added for input file transfer."""
        return self._length + self.extra_length

    @property
    def remaining_length(self) -> float:
        return max(0.0, self.total_length - self.finished_so_far)

    @property
    def is_finished(self) -> bool:
        return self.remaining_length <= FINISH_TOLERANCE

    @property
    def actual_cpu_time(self) -> float:
        """Time between execution start and finish, 0 if it never ran to the end."""
        if self.exec_start_time is None or self.finish_time is None:
            return 0.0
        return self.finish_time - self.exec_start_time

    @property
    def processing_cost(self) -> float:
        return self.cost_per_sec * self.actual_cpu_time + self.cost_per_bw * self._file_size

    def set_resource_parameter(self, resource_id: int, cost_per_sec: float, cost_per_bw: float) -> None:
        """Record the datacenter the cloudlet was submitted to and its rates."""
        self.resource_id = resource_id
        self.cost_per_sec = cost_per_sec
        self.cost_per_bw = cost_per_bw

    def add_finished_length(self, amount: float) -> None:
        self.finished_so_far = min(self.total_length, self.finished_so_far + max(0.0, amount))

    def mark_started(self, time: float) -> None:
        if self.exec_start_time is None:
            self.exec_start_time = time
        self.status = CloudletStatus.IN_EXEC

    def mark_finished(self, time: float) -> None:
        self.finished_so_far = self.total_length
        self.finish_time = time
        self.status = CloudletStatus.SUCCESS
        logger.debug(f"Cloudlet {self._cloudlet_id} finished at {time:.2f}")

    def mark_failed(self, time: float, reason: str = "unknown") -> None:
        self.status = CloudletStatus.FAILED
        self.finish_time = time
        logger.warning(f"Cloudlet {self._cloudlet_id} failed at {time:.2f}: {reason}")

    def mark_canceled(self, time: float) -> None:
        self.status = CloudletStatus.CANCELED
        self.finish_time = time
        logger.info(f"Cloudlet {self._cloudlet_id} canceled at {time:.2f}")

    def estimated_finish_delay(self, capacity_per_pe: float) -> float:
        """Time to finish at ``capacity_per_pe`` MIPS on each of its PEs."""
        rate = capacity_per_pe * self._pes_number
        if rate <= 0:
            return math.inf
        return self.remaining_length / rate
