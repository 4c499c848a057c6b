"""Error taxonomy for the simulation engine and its resource stack."""


class SimulationError(Exception):
    """Base class for all simulator errors."""


class InvalidEventTime(SimulationError):
    """An event was scheduled before the current simulation clock."""

    def __init__(self, event_time: float, clock: float):
        self.event_time = event_time
        self.clock = clock
        super().__init__(
            f"Cannot schedule event at {event_time} before current clock {clock}"
        )


class InsufficientCapacity(SimulationError):
    """A provisioner or scheduler cannot grant the requested amount."""

    def __init__(self, resource: str, requested: float, available: float):
        self.resource = resource
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient {resource}: requested {requested}, available {available}"
        )


class NoSuitableHost(SimulationError):
    """No host of a datacenter can accommodate a VM."""

    def __init__(self, vm_uid: str):
        self.vm_uid = vm_uid
        super().__init__(f"No suitable host for VM {vm_uid}")


class UnhandledEventError(SimulationError):
    """An entity received an event tag it has no handler for."""

    def __init__(self, entity_name: str, tag):
        self.entity_name = entity_name
        self.tag = tag
        super().__init__(f"Entity {entity_name} has no handler for {tag}")


class UnknownEntityError(SimulationError):
    """An event was addressed to an entity id that was never registered."""


class SimulationStateError(SimulationError):
    """An engine control call was made in the wrong run state."""
