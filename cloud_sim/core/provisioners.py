"""Capacity provisioners for one resource dimension each."""

from typing import Dict, Hashable

from loguru import logger

from .exceptions import InsufficientCapacity

# Slack for float rounding when comparing grants against capacity.
CAPACITY_TOLERANCE = 1e-9


class ResourceProvisioner:
    """Tracks a pool of capacity and the share granted to each consumer.

    Consumers are identified by any hashable key (VM uid, cloudlet id, ...).
    The sum of granted shares never exceeds the capacity.
    """

    resource_name = "resource"

    def __init__(self, capacity: float):
        if capacity < 0:
            raise ValueError(f"{self.resource_name} capacity must be non-negative")
        self.capacity = capacity
        self._grants: Dict[Hashable, float] = {}

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(capacity={self.capacity}, "
                f"available={self.available()})")

    @property
    def used(self) -> float:
        return sum(self._grants.values())

    @property
    def consumers(self) -> list:
        return list(self._grants)

    def available(self) -> float:
        """Remaining capacity."""
        return max(0.0, self.capacity - self.used)

    def allocated(self, consumer: Hashable) -> float:
        return self._grants.get(consumer, 0.0)

    def is_suitable(self, consumer: Hashable, amount: float) -> bool:
        """Whether ``amount`` could be granted to ``consumer`` right now.

        A consumer's existing grant counts as free, since a new allocation
        replaces it.
        """
        return amount <= self.available() + self.allocated(consumer) + CAPACITY_TOLERANCE

    def allocate(self, consumer: Hashable, amount: float) -> None:
        """Grant ``amount`` to ``consumer``, replacing any previous grant.

        Raises InsufficientCapacity and leaves the pool unchanged when the
        amount does not fit.
        """
        if amount < 0:
            raise ValueError(f"Cannot allocate a negative amount of {self.resource_name}")
        if not self.is_suitable(consumer, amount):
            raise InsufficientCapacity(
                self.resource_name, amount, self.available() + self.allocated(consumer)
            )
        self._grants[consumer] = amount
        logger.trace(f"{self.resource_name}: granted {amount} to {consumer}")

    def deallocate(self, consumer: Hashable) -> float:
        """Return a consumer's share to the pool. Idempotent."""
        return self._grants.pop(consumer, 0.0)

    def deallocate_all(self) -> None:
        self._grants.clear()


class PeProvisioner(ResourceProvisioner):
    """MIPS of a single processing element."""
    resource_name = "mips"


class RamProvisioner(ResourceProvisioner):
    resource_name = "ram"


class BwProvisioner(ResourceProvisioner):
    resource_name = "bw"


class StorageProvisioner(ResourceProvisioner):
    resource_name = "storage"
