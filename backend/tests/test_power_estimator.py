"""Tests for charge/discharge power estimation."""

import pytest

from ecos.models import RunData
from services.power_estimator import estimate_charge_power


def _run_data(**overrides) -> RunData:
    values = {"battery_soc": 50.0, "solar_power": 1000.0, "home_power": 1500.0, "eps_power": 200.0}
    values.update(overrides)
    return RunData(**values)


class TestEstimateChargePower:
    """Test estimate_charge_power."""

    def test_surplus_is_charge_power(self):
        """2000 W total PV against 1700 W load charges at 300 W."""
        assert estimate_charge_power(_run_data(), 0) == pytest.approx(300.0)

    def test_deficit_subtracts_monitored_pv(self):
        """-1200 W net becomes a 2200 W discharge."""
        assert estimate_charge_power(_run_data(home_power=3000.0), 0) == pytest.approx(-2200.0)

    def test_side_load_counts_as_load(self):
        # net = 2000 - (1500 + 200 + 500) = -200, minus 1000 monitored PV
        assert estimate_charge_power(_run_data(), 500) == pytest.approx(-1200.0)

    def test_zero_net_is_discharge_branch(self):
        assert estimate_charge_power(_run_data(home_power=1800.0), 0) == pytest.approx(-1000.0)

    def test_charge_is_clamped(self):
        result = estimate_charge_power(_run_data(solar_power=6000.0, home_power=0.0, eps_power=0.0), 0)
        assert result == 5000.0

    def test_discharge_is_clamped(self):
        result = estimate_charge_power(_run_data(solar_power=0.0, home_power=9000.0), 0)
        assert result == -5000.0

    @pytest.mark.parametrize("soc", [0.0, 0.005, 0.0099])
    def test_near_zero_soc_returns_zero(self, soc):
        """Stale telemetry never drives the battery."""
        result = estimate_charge_power(_run_data(battery_soc=soc, home_power=9000.0), 2000)
        assert result == 0.0

    def test_soc_at_threshold_is_trusted(self):
        assert estimate_charge_power(_run_data(battery_soc=0.01), 0) == pytest.approx(300.0)

    @pytest.mark.parametrize("solar,home,eps,side_load", [
        (0, 0, 0, 0),
        (4000, 100, 0, 0),
        (200, 7000, 3000, 4000),
        (10000, 0, 0, 0),
        (2500, 2500, 2500, 2500),
    ])
    def test_result_stays_within_limits(self, solar, home, eps, side_load):
        result = estimate_charge_power(
            _run_data(solar_power=solar, home_power=home, eps_power=eps), side_load
        )
        assert -5000.0 <= result <= 5000.0
