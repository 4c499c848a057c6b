"""Simulation events, event tags and event payloads."""

from enum import Enum
from typing import Any, Optional
from dataclasses import dataclass, field
from loguru import logger


class EventTag(Enum):
    """Kinds of events exchanged between entities."""

    # Engine events
    END_OF_SIMULATION = "end_of_simulation"

    # Datacenter discovery
    RESOURCE_CHARACTERISTICS_REQUEST = "resource_characteristics_request"
    RESOURCE_CHARACTERISTICS = "resource_characteristics"

    # VM lifecycle
    VM_CREATE = "vm_create"
    VM_CREATE_ACK = "vm_create_ack"
    VM_DESTROY = "vm_destroy"
    VM_DESTROY_ACK = "vm_destroy_ack"

    # Cloudlet lifecycle
    CLOUDLET_SUBMIT = "cloudlet_submit"
    CLOUDLET_RETURN = "cloudlet_return"
    CLOUDLET_CANCEL = "cloudlet_cancel"
    CLOUDLET_PAUSE = "cloudlet_pause"
    CLOUDLET_RESUME = "cloudlet_resume"

    # Internal datacenter processing update
    VM_DATACENTER_EVENT = "vm_datacenter_event"


@dataclass
class SimEvent:
    """A scheduled event.

    Events are ordered by ``time`` and, for equal times, by ``serial``,
    which the engine assigns in insertion order.
    """

    time: float
    source: int
    destination: int
    tag: EventTag
    data: Any = None
    serial: int = -1
    cancelled: bool = field(default=False, compare=False)

    def __post_init__(self) -> None:
        logger.trace(
            f"Event created: {self.tag.value} at {self.time:.2f} "
            f"from {self.source} to {self.destination}"
        )

    def __lt__(self, other: "SimEvent") -> bool:
        if self.time != other.time:
            return self.time < other.time
        return self.serial < other.serial

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class VmCreateAck:
    """Reply of a datacenter to a VM creation request."""
    datacenter_id: int
    vm_id: int
    success: bool
    host_id: Optional[int] = None
    reason: Optional[str] = None


@dataclass
class VmDestroyAck:
    """Reply of a datacenter to a VM destruction request."""
    datacenter_id: int
    vm_id: int
    success: bool


@dataclass
class VmDestroyRequest:
    """Request to destroy a VM, optionally asking for an acknowledgement."""
    vm: Any
    ack: bool = False


@dataclass
class CloudletAction:
    """Cancel, pause or resume request for a submitted cloudlet."""
    cloudlet_id: int
    user_id: int
    vm_id: int
