"""Core simulation components."""

from .exceptions import (
    SimulationError,
    InvalidEventTime,
    InsufficientCapacity,
    NoSuitableHost,
    UnhandledEventError,
    UnknownEntityError,
    SimulationStateError,
)
from .events import EventTag, SimEvent
from .simulation import Simulation, SimulationState
from .entity import SimEntity, EntityState
from .provisioners import PeProvisioner, RamProvisioner, BwProvisioner, StorageProvisioner
from .cloudlet import Cloudlet, CloudletStatus
from .vm import Vm
from .resources import Pe, PeStatus, Host, create_pe_list
from .utilization import UtilizationModelFull, UtilizationModelNull, UtilizationModelStochastic
from .datacenter import Datacenter, DatacenterCharacteristics
from .broker import DatacenterBroker

__all__ = [
    "SimulationError",
    "InvalidEventTime",
    "InsufficientCapacity",
    "NoSuitableHost",
    "UnhandledEventError",
    "UnknownEntityError",
    "SimulationStateError",
    "EventTag",
    "SimEvent",
    "Simulation",
    "SimulationState",
    "SimEntity",
    "EntityState",
    "PeProvisioner",
    "RamProvisioner",
    "BwProvisioner",
    "StorageProvisioner",
    "Cloudlet",
    "CloudletStatus",
    "Vm",
    "Pe",
    "PeStatus",
    "Host",
    "create_pe_list",
    "UtilizationModelFull",
    "UtilizationModelNull",
    "UtilizationModelStochastic",
    "Datacenter",
    "DatacenterCharacteristics",
    "DatacenterBroker",
]
