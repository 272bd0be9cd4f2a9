"""Tests for MessageDedup."""

from agent_bridge.dedup import MessageDedup


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestIsDuplicate:
    """Tests for MessageDedup.is_duplicate()."""

    def test_first_sight_is_not_duplicate(self):
        """A new id is admitted."""
        dedup = MessageDedup()
        assert dedup.is_duplicate("M1") is False
        assert "M1" in dedup

    def test_repeat_is_duplicate(self):
        """The same id is rejected afterwards."""
        dedup = MessageDedup()
        dedup.is_duplicate("M1")
        assert dedup.is_duplicate("M1") is True
        assert dedup.is_duplicate("M1") is True
        assert len(dedup) == 1

    def test_expired_entries_survive_below_capacity(self):
        """Expiry only matters once the ledger is over capacity."""
        clock = FakeClock()
        dedup = MessageDedup(max_size=10, ttl_seconds=5, clock=clock)
        dedup.is_duplicate("M1")
        clock.now += 60
        assert dedup.is_duplicate("M1") is True


class TestSweep:
    """Tests for the batched expiry sweep."""

    def test_sweep_removes_expired_entries_when_over_capacity(self):
        """Going over max_size sweeps every entry older than the TTL."""
        clock = FakeClock()
        dedup = MessageDedup(max_size=3, ttl_seconds=5, clock=clock)
        for message_id in ("A", "B", "C", "D"):
            dedup.is_duplicate(message_id)
        assert len(dedup) == 4

        clock.now += 10
        dedup.is_duplicate("E")

        assert len(dedup) == 1
        assert "E" in dedup
        assert dedup.is_duplicate("A") is False

    def test_sweep_keeps_fresh_entries(self):
        """Entries inside the TTL are kept even when over capacity."""
        clock = FakeClock()
        dedup = MessageDedup(max_size=2, ttl_seconds=5, clock=clock)
        dedup.is_duplicate("old")
        clock.now += 10
        dedup.is_duplicate("fresh1")
        dedup.is_duplicate("fresh2")

        dedup.is_duplicate("fresh3")

        assert "old" not in dedup
        assert "fresh1" in dedup
        assert "fresh2" in dedup
        assert "fresh3" in dedup
