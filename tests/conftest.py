"""Shared fixtures for the test suite."""

import pytest

from cloud_sim.core.resources import Host
from cloud_sim.core.simulation import Simulation

from .builders import make_host


@pytest.fixture
def simulation() -> Simulation:
    return Simulation(num_user=1)


@pytest.fixture
def host() -> Host:
    return make_host()
