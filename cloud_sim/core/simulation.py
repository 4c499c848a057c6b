"""Discrete-event simulation engine built on a SimPy environment."""

import heapq
import itertools
import time
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

import simpy
from loguru import logger

from .events import EventTag, SimEvent
from .exceptions import InvalidEventTime, SimulationStateError, UnknownEntityError

if TYPE_CHECKING:
    from .entity import SimEntity


class SimulationState(Enum):
    """Run state of the engine."""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPED = "stopped"


class Simulation:
    """Owns the simulation clock, the future event queue and the entities.

    Pending events live in a heap ordered by ``(time, serial)``, so events
    at equal times are handled in the order they were scheduled. A
    ``simpy.Environment`` drives the run: every scheduled event adds one
    SimPy timeout, and each timeout dispatches the earliest live event of
    the heap. SimPy's own time only paces the wakeups; the clock is always
    the time of the event being dispatched.

    Nothing here is global: independent simulations can live side by side
    in one process.
    """

    def __init__(
        self,
        num_user: int = 1,
        calendar: Optional[datetime] = None,
        trace_flag: bool = False,
    ):
        if num_user < 0:
            raise ValueError("num_user must be non-negative")

        self.num_user = num_user
        self.calendar = calendar or datetime.now()
        self.trace_flag = trace_flag
        self.env = simpy.Environment()
        self.state = SimulationState.NOT_STARTED

        self._clock = 0.0
        self._serials = itertools.count()
        self._entities: Dict[int, "SimEntity"] = {}
        self._queue: List[SimEvent] = []
        self._pending: Dict[int, SimEvent] = {}
        self._end_broadcast = False

        self.events_processed = 0
        self.event_trace: List[Tuple[float, EventTag, int, int]] = []

        logger.info(
            f"Simulation initialized for {num_user} user(s), "
            f"calendar {self.calendar:%Y-%m-%d %H:%M:%S}, trace={trace_flag}"
        )

    @property
    def clock(self) -> float:
        """Current simulation time."""
        return self._clock

    @property
    def entities(self) -> List["SimEntity"]:
        return list(self._entities.values())

    @property
    def resource_ids(self) -> List[int]:
        """Ids of registered datacenters, in registration order."""
        return [e.id for e in self._entities.values() if e.is_resource]

    def add_entity(self, entity: "SimEntity") -> int:
        """Register an entity and return its id.

        Entities added while the simulation is running are started right
        after the handler that created them returns.
        """
        if self.state is SimulationState.STOPPED:
            raise SimulationStateError("Cannot add entities to a stopped simulation")
        entity_id = len(self._entities)
        self._entities[entity_id] = entity
        logger.debug(f"Entity {entity.name} registered with id {entity_id}")
        return entity_id

    def get_entity(self, entity_id: int) -> "SimEntity":
        if entity_id not in self._entities:
            raise UnknownEntityError(f"No entity with id {entity_id}")
        return self._entities[entity_id]

    def get_entity_by_name(self, name: str) -> Optional["SimEntity"]:
        for entity in self._entities.values():
            if entity.name == name:
                return entity
        return None

    def send(
        self,
        source: int,
        destination: int,
        delay: float,
        tag: EventTag,
        data: Any = None,
    ) -> SimEvent:
        """Schedule an event ``delay`` time units from now."""
        if delay < 0:
            raise InvalidEventTime(self._clock + delay, self._clock)
        return self.schedule(SimEvent(self._clock + delay, source, destination, tag, data))

    def schedule(self, event: SimEvent) -> SimEvent:
        """Insert an event into the future event queue."""
        if event.time < self._clock:
            raise InvalidEventTime(event.time, self._clock)
        if event.destination not in self._entities:
            raise UnknownEntityError(
                f"Event {event.tag.value} addressed to unknown entity {event.destination}"
            )

        event.serial = next(self._serials)
        self._pending[event.serial] = event
        heapq.heappush(self._queue, event)

        # SimPy time is now + delay, which can differ from event.time by
        # rounding. The wakeup only triggers a dispatch; the heap decides what.
        timeout = self.env.timeout(max(0.0, event.time - self.env.now))
        timeout.callbacks.append(self._dispatch_next)

        logger.debug(
            f"Event scheduled: {event.tag.value} at {event.time:.2f} "
            f"({event.source} -> {event.destination})"
        )
        return event

    def cancel_events(self, predicate: Callable[[SimEvent], bool]) -> int:
        """Cancel every pending event matching ``predicate``."""
        cancelled = [ev for ev in self._pending.values() if predicate(ev)]
        for event in cancelled:
            self.cancel_event(event)
        if cancelled:
            logger.debug(f"Cancelled {len(cancelled)} pending event(s)")
        return len(cancelled)

    def cancel_event(self, event: SimEvent) -> bool:
        """Cancel one pending event. Returns False if it already ran or was cancelled."""
        if self._pending.pop(event.serial, None) is None:
            return False
        event.cancel()
        return True

    def pending_events(self, destination: Optional[int] = None) -> List[SimEvent]:
        """Live pending events in dispatch order, optionally for one entity."""
        events = [
            ev for ev in self._pending.values()
            if destination is None or ev.destination == destination
        ]
        return sorted(events)

    def start_simulation(self) -> float:
        """Run until no work remains and return the final clock.

        An exception raised by a handler aborts the run: the engine moves to
        STOPPED, drops its pending events and re-raises.
        """
        if self.state is not SimulationState.NOT_STARTED:
            raise SimulationStateError(f"Cannot start a simulation in state {self.state.value}")

        logger.info(f"Starting simulation with {len(self._entities)} entities")
        self.state = SimulationState.RUNNING
        started_at = time.time()

        try:
            self._start_new_entities()
            while (
                self.state is SimulationState.RUNNING
                and self._pending
                and not self._all_entities_finished()
            ):
                self.env.step()
                self._start_new_entities()
                self._check_users_finished()
        except Exception as e:
            logger.error(f"Simulation aborted at clock {self._clock:.2f}: {e}")
            self._abort()
            raise

        if self._pending:
            logger.debug(f"{len(self._pending)} event(s) left unprocessed at shutdown")

        elapsed = time.time() - started_at
        logger.info(
            f"Simulation completed at clock {self._clock:.2f} after "
            f"{self.events_processed} events ({elapsed:.3f}s wall time)"
        )
        return self._clock

    def stop_simulation(self) -> None:
        """Move the engine to STOPPED; a running loop exits after the current event."""
        if self.state is SimulationState.NOT_STARTED:
            raise SimulationStateError("Cannot stop a simulation that was never started")
        if self.state is SimulationState.STOPPED:
            logger.debug("Simulation already stopped")
            return

        self.state = SimulationState.STOPPED
        for entity in self._entities.values():
            if not entity.is_finished:
                entity.shutdown_entity()
        logger.info(f"Simulation stopped at clock {self._clock:.2f}")

    def _abort(self) -> None:
        self.state = SimulationState.STOPPED
        for event in self._pending.values():
            event.cancel()
        self._pending.clear()
        self._queue.clear()

    def _pop_next_event(self) -> Optional[SimEvent]:
        while self._queue:
            event = heapq.heappop(self._queue)
            if not event.cancelled:
                return event
            logger.debug(f"Skipping cancelled event {event.tag.value} at {event.time:.2f}")
        return None

    def _dispatch_next(self, timeout: simpy.events.Timeout) -> None:
        # Every live event has its own wakeup, so there is never fewer
        # wakeups left than live events.
        event = self._pop_next_event()
        if event is None:
            return

        del self._pending[event.serial]
        self._clock = event.time

        entity = self._entities[event.destination]
        if entity.is_finished:
            logger.warning(
                f"Discarding {event.tag.value} at {event.time:.2f}: "
                f"entity {entity.name} has already finished"
            )
            return

        if self.trace_flag:
            self.event_trace.append((event.time, event.tag, event.source, event.destination))
            logger.debug(
                f"[{event.time:.2f}] {event.tag.value}: "
                f"{event.source} -> {entity.name}"
            )

        self.events_processed += 1
        entity.process_event(event)

    def _start_new_entities(self) -> None:
        for entity in list(self._entities.values()):
            if not entity.started:
                entity.started = True
                entity.start_entity()

    def _all_entities_finished(self) -> bool:
        return all(entity.is_finished for entity in self._entities.values())

    def _check_users_finished(self) -> None:
        """Broadcast END_OF_SIMULATION once every user entity has finished."""
        if self._end_broadcast:
            return
        users = [e for e in self._entities.values() if e.is_user]
        if not users or not all(user.is_finished for user in users):
            return

        self._end_broadcast = True
        logger.info(f"All users finished at {self._clock:.2f}; ending simulation")
        for entity in self._entities.values():
            if not entity.is_finished:
                self.send(entity.id, entity.id, 0.0, EventTag.END_OF_SIMULATION)
