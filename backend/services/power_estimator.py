"""Charge/discharge power estimation from live telemetry.

Only works for a site with two identical PV inverters where just one of them
(the one connected to the battery) is monitored. The side load is consumption
that the monitored inverter does not see.

Sign convention: positive = charge the battery, negative = discharge.
"""

import logging

from ecos.models import RunData

logger = logging.getLogger(__name__)

MIN_VALID_SOC = 0.01  # Below this the server is returning empty data
MAX_POWER_W = 5000.0


def estimate_charge_power(run_data: RunData, side_load: float) -> float:
    """Estimate the battery power needed to balance generation and load."""
    if run_data.battery_soc < MIN_VALID_SOC:
        logger.warning("Battery SOC is too low (potentially disconnected from the server)")
        return 0.0

    total_pv = run_data.solar_power * 2
    total_load = run_data.home_power + run_data.eps_power + side_load
    net_power = total_pv - total_load

    if net_power > 0:
        charge_power = net_power
    else:
        # Discharge covers the whole inverter output, not only the deficit
        charge_power = net_power - run_data.solar_power

    charge_power = max(-MAX_POWER_W, min(MAX_POWER_W, charge_power))

    logger.info(
        "Total PV: %.0f W, Total Load: %.0f W, Net Power: %.0f W, Charge Power: %.0f W",
        total_pv, total_load, net_power, charge_power,
    )
    return charge_power
