"""Utilization models: fraction of a resource a cloudlet uses over time."""

from abc import ABC, abstractmethod
from typing import Dict, Optional

import numpy as np


class UtilizationModel(ABC):
    """Maps a simulation time to a utilization in [0, 1]."""

    @abstractmethod
    def get_utilization(self, time: float) -> float:
        pass


class UtilizationModelFull(UtilizationModel):
    """Always uses the whole resource."""

    def get_utilization(self, time: float) -> float:
        return 1.0


class UtilizationModelNull(UtilizationModel):
    """Never uses the resource."""

    def get_utilization(self, time: float) -> float:
        return 0.0


class UtilizationModelStochastic(UtilizationModel):
    """Uniformly random utilization, drawn once per distinct time.

    The draw is cached so that repeated queries for the same time agree,
    which keeps runs with a fixed seed reproducible.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._rng = np.random.default_rng(seed)
        self._history: Dict[float, float] = {}

    def get_utilization(self, time: float) -> float:
        if time not in self._history:
            self._history[time] = float(self._rng.uniform(0.0, 1.0))
        return self._history[time]


def create_utilization_model(kind: str, seed: Optional[int] = None) -> UtilizationModel:
    """Create a utilization model by name."""
    models = {
        "full": UtilizationModelFull,
        "null": UtilizationModelNull,
    }
    if kind == "stochastic":
        return UtilizationModelStochastic(seed)
    if kind not in models:
        raise ValueError(f"Unknown utilization model: {kind}")
    return models[kind]()
