"""Tests for the hourly cost governor."""

from decimal import Decimal

from chat_proxy.cost import CostGovernor, to_decimal


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestCostGovernor:
    """Test admission and window rollover."""

    def test_fresh_window_admits_estimate(self):
        governor = CostGovernor(50, clock=FakeClock())
        assert governor.can_proceed(0.01) is True
        assert governor.accumulated == Decimal(0)

    def test_boundary_is_inclusive(self):
        """$49.99 spent plus a $0.01 estimate lands exactly on the limit."""
        governor = CostGovernor(50, clock=FakeClock())
        governor.add_cost(Decimal("49.99"))
        assert governor.can_proceed(0.01) is True

    def test_rejects_over_limit(self):
        governor = CostGovernor(50, clock=FakeClock())
        governor.add_cost(Decimal("49.995"))
        assert governor.can_proceed(0.01) is False

    def test_can_proceed_does_not_reserve(self):
        governor = CostGovernor(1, clock=FakeClock())
        for _ in range(10):
            assert governor.can_proceed("0.5") is True
        assert governor.accumulated == Decimal(0)

    def test_float_costs_accumulate_exactly(self):
        governor = CostGovernor(50, clock=FakeClock())
        for _ in range(10):
            governor.add_cost(0.1)
        assert governor.accumulated == Decimal("1.0")

    def test_window_rolls_over_after_period(self):
        clock = FakeClock()
        governor = CostGovernor(50, window_seconds=3600, clock=clock)
        governor.add_cost(50)
        assert governor.can_proceed(0.01) is False

        clock.advance(3601)
        assert governor.can_proceed(0.01) is True
        assert governor.accumulated == Decimal(0)

    def test_window_does_not_roll_at_exact_period(self):
        clock = FakeClock()
        governor = CostGovernor(50, window_seconds=3600, clock=clock)
        governor.add_cost(10)
        clock.advance(3600)
        assert governor.accumulated == Decimal(10)

    def test_add_cost_after_rollover_starts_new_window(self):
        clock = FakeClock()
        governor = CostGovernor(50, window_seconds=60, clock=clock)
        governor.add_cost(40)
        clock.advance(61)
        governor.add_cost(5)
        assert governor.accumulated == Decimal(5)


def test_to_decimal_avoids_binary_artifacts():
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal(Decimal("2.5")) == Decimal("2.5")
    assert to_decimal(3) == Decimal(3)
