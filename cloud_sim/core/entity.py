"""Base class for addressable simulation entities."""

from enum import Enum
from typing import Any, Callable, Dict, List

from loguru import logger

from .events import EventTag, SimEvent
from .exceptions import UnhandledEventError
from .simulation import Simulation


class EntityState(Enum):
    """Lifecycle state of an entity."""
    RUNNABLE = "runnable"
    FINISHED = "finished"


class SimEntity:
    """An actor that exchanges events through a ``Simulation``.

    Subclasses map event tags to handlers in ``_setup_event_handlers``.
    An event whose tag has no handler is a modeling error and halts the run.
    """

    is_user = False
    is_resource = False

    def __init__(self, name: str, simulation: Simulation):
        if not name or " " in name:
            raise ValueError(f"Entity name must be non-empty and contain no spaces: {name!r}")

        self.name = name
        self.simulation = simulation
        self.state = EntityState.RUNNABLE
        self.started = False
        self.event_handlers: Dict[EventTag, Callable[[SimEvent], None]] = {}

        self.id = simulation.add_entity(self)

        self.subscribe(EventTag.END_OF_SIMULATION, self._handle_end_of_simulation)
        self._setup_event_handlers()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id}, name={self.name!r})"

    @property
    def clock(self) -> float:
        return self.simulation.clock

    @property
    def is_finished(self) -> bool:
        return self.state is EntityState.FINISHED

    @property
    def mailbox(self) -> List[SimEvent]:
        """Pending events addressed to this entity, in dispatch order."""
        return self.simulation.pending_events(self.id)

    def subscribe(self, tag: EventTag, handler: Callable[[SimEvent], None]) -> None:
        """Register the handler for an event tag."""
        self.event_handlers[tag] = handler

    def _setup_event_handlers(self) -> None:
        """Subclasses subscribe their handlers here."""

    def start_entity(self) -> None:
        """Called once when the simulation starts (or right after a mid-run creation)."""
        logger.debug(f"{self.name} started at {self.clock:.2f}")

    def shutdown_entity(self) -> None:
        """Mark the entity finished; it receives no further events."""
        if self.is_finished:
            return
        self.state = EntityState.FINISHED
        logger.info(f"{self.name} is shutting down at {self.clock:.2f}")

    def process_event(self, event: SimEvent) -> None:
        handler = self.event_handlers.get(event.tag)
        if handler is None:
            raise UnhandledEventError(self.name, event.tag)
        handler(event)

    def send(self, destination: int, delay: float, tag: EventTag, data: Any = None) -> SimEvent:
        return self.simulation.send(self.id, destination, delay, tag, data)

    def send_now(self, destination: int, tag: EventTag, data: Any = None) -> SimEvent:
        return self.simulation.send(self.id, destination, 0.0, tag, data)

    def schedule_self(self, delay: float, tag: EventTag, data: Any = None) -> SimEvent:
        return self.simulation.send(self.id, self.id, delay, tag, data)

    def _handle_end_of_simulation(self, event: SimEvent) -> None:
        self.shutdown_entity()
