"""Tests for resource provisioners."""

import numpy as np
import pytest

from cloud_sim.core.exceptions import InsufficientCapacity
from cloud_sim.core.provisioners import (
    BwProvisioner,
    PeProvisioner,
    RamProvisioner,
    StorageProvisioner,
)


class TestResourceProvisioner:
    """Test grant bookkeeping."""

    def test_allocate_and_deallocate(self):
        ram = RamProvisioner(1024)
        ram.allocate("1-0", 512)
        ram.allocate("1-1", 256)

        assert ram.allocated("1-0") == 512
        assert ram.used == 768
        assert ram.available() == 256

        assert ram.deallocate("1-0") == 512
        assert ram.available() == 768
        assert ram.consumers == ["1-1"]

    def test_new_grant_replaces_previous_one(self):
        bw = BwProvisioner(1000)
        bw.allocate("vm", 600)
        bw.allocate("vm", 900)

        assert bw.allocated("vm") == 900
        assert bw.available() == 100

    def test_overflow_raises_and_leaves_pool_unchanged(self):
        ram = RamProvisioner(1024)
        ram.allocate("1-0", 1000)

        with pytest.raises(InsufficientCapacity) as excinfo:
            ram.allocate("1-1", 100)

        assert excinfo.value.resource == "ram"
        assert excinfo.value.requested == 100
        assert ram.allocated("1-1") == 0.0
        assert ram.used == 1000

    def test_exact_fit_is_accepted(self):
        storage = StorageProvisioner(10000)
        storage.allocate("a", 4000)
        storage.allocate("b", 6000)
        assert storage.available() == 0.0

    def test_deallocate_is_idempotent(self):
        pe = PeProvisioner(1000)
        pe.allocate("vm", 400)
        assert pe.deallocate("vm") == 400
        assert pe.deallocate("vm") == 0.0
        assert pe.deallocate("never") == 0.0
        assert pe.available() == 1000

    def test_negative_amount_is_rejected(self):
        with pytest.raises(ValueError):
            RamProvisioner(100).allocate("vm", -1)

    def test_negative_capacity_is_rejected(self):
        with pytest.raises(ValueError):
            BwProvisioner(-5)

    def test_is_suitable_counts_own_grant_as_free(self):
        ram = RamProvisioner(1000)
        ram.allocate("vm", 800)
        assert ram.is_suitable("vm", 1000)
        assert not ram.is_suitable("other", 300)

    def test_used_never_exceeds_capacity(self):
        rng = np.random.default_rng(7)
        ram = RamProvisioner(4096)
        consumers = [f"1-{index}" for index in range(8)]

        for _ in range(500):
            consumer = consumers[int(rng.integers(len(consumers)))]
            if rng.random() < 0.3:
                ram.deallocate(consumer)
            else:
                amount = float(rng.uniform(0, 2048))
                before = ram.used
                try:
                    ram.allocate(consumer, amount)
                except InsufficientCapacity:
                    assert ram.used == before
            assert ram.used <= ram.capacity + 1e-9
