"""Charge mode controller -- keeps the requested charge behaviour applied.

Modes:
- "self-sufficient" : hold a minimum battery level, no expiry (the default)
- "conservative"    : hold a higher battery level for a while, then reset
- "active"          : periodically recompute a charge/discharge slot from
                      live telemetry for a while, then reset

At most one background task runs at a time. Changing the mode cancels the
running task and waits for it to finish before the new one starts.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from config import AppConfig, settings
from ecos.client import EcosClient, EcosError, ecos_client
from ecos.models import ChargeModeSettingsRequest, ChargeSchedule
from services.power_estimator import estimate_charge_power

logger = logging.getLogger(__name__)

MINUTE = 60  # seconds

MAX_DURATION = 7 * 24 * 60  # minutes
MAX_CHECK_INTERVAL = 24 * 60 * 60  # seconds

CHARGE_USE_MODE_OFF = 0
CHARGE_USE_MODE_SCHEDULED = 1


# --- Modes ---


class SelfSufficientMode(BaseModel):
    mode: Literal["self-sufficient"] = "self-sufficient"
    battery_level: int = Field(..., ge=0, le=100)


class ConservativeMode(BaseModel):
    mode: Literal["conservative"] = "conservative"
    battery_level: int = Field(..., ge=0, le=100)
    duration: int = Field(..., ge=0, le=MAX_DURATION, description="Minutes")


class ActiveMode(BaseModel):
    mode: Literal["active"] = "active"
    side_load: int = Field(..., ge=0, description="Watts not visible to the monitored inverter")
    duration: int = Field(..., ge=0, le=MAX_DURATION, description="Minutes")
    check_interval: Optional[int] = Field(
        None, gt=0, le=MAX_CHECK_INTERVAL, description="Seconds between recalculations"
    )


ChargeMode = Union[SelfSufficientMode, ConservativeMode, ActiveMode]


class ChargeModeController:
    """Owns the current mode, its expiration and the background task."""

    def __init__(self, config: AppConfig, client: EcosClient):
        self._config = config
        self._client = client
        self._mode: ChargeMode = SelfSufficientMode(battery_level=config.min_capacity)
        self._expiration: Optional[datetime] = None
        self._task: Optional[asyncio.Task] = None
        self._mode_lock = asyncio.Lock()
        self._expiration_lock = asyncio.Lock()
        self._task_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def get_mode(self) -> ChargeMode:
        async with self._mode_lock:
            return self._mode.model_copy()

    async def get_expiration(self) -> Optional[datetime]:
        async with self._expiration_lock:
            return self._expiration

    async def get_status(self) -> dict:
        """Current mode, when it expires and whether its task is still running."""
        mode = await self.get_mode()
        expiration = await self.get_expiration()
        return {
            "mode": mode.model_dump(),
            "expiration": expiration.isoformat() if expiration else None,
            "task_running": self.is_running,
        }

    # --- Transitions ---

    async def set_mode(self, mode: ChargeMode):
        """Replace the current mode and start its background task."""
        expiration = self._expiration_for(mode)
        async with self._task_lock:
            await self._cancel_task()
            await self._update_mode(mode, expiration)
            self._task = asyncio.create_task(self._run(mode), name=f"charge-mode-{mode.mode}")
        logger.info("Charge mode set to %s", mode.mode)

    async def reset(self):
        """Cancel the running task and fall back to self-sufficient at the minimum capacity."""
        async with self._task_lock:
            await self._cancel_task()
            await self._reset_mode()

    async def shutdown(self):
        """Cancel the background task. Called on application shutdown."""
        async with self._task_lock:
            await self._cancel_task()

    async def _cancel_task(self):
        task, self._task = self._task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        await asyncio.wait([task])
        logger.info("Task cancelled")

    @staticmethod
    def _expiration_for(mode: ChargeMode) -> Optional[datetime]:
        if isinstance(mode, (ConservativeMode, ActiveMode)):
            return datetime.now(timezone.utc) + timedelta(seconds=mode.duration * MINUTE)
        return None

    async def _update_mode(self, mode: ChargeMode, expiration: Optional[datetime]):
        async with self._mode_lock:
            self._mode = mode
        async with self._expiration_lock:
            self._expiration = expiration

    async def _reset_mode(self):
        logger.info("Resetting to default charge mode")
        await self._update_mode(SelfSufficientMode(battery_level=self._config.min_capacity), None)
        await self._push(CHARGE_USE_MODE_OFF, self._config.min_capacity)

    # --- Background task ---

    async def _run(self, mode: ChargeMode):
        try:
            if isinstance(mode, SelfSufficientMode):
                logger.info("Self-sufficient mode: %d%%", mode.battery_level)
                await self._push(CHARGE_USE_MODE_OFF, mode.battery_level)
            elif isinstance(mode, ConservativeMode):
                logger.info("Conservative mode: %d%%, %d mins", mode.battery_level, mode.duration)
                await self._push(CHARGE_USE_MODE_OFF, mode.battery_level)
                await asyncio.sleep(mode.duration * MINUTE)
                logger.info("Conservative mode expired")
                await self._reset_mode()
            elif isinstance(mode, ActiveMode):
                await self._run_active(mode)
            else:
                raise TypeError(f"Unknown charge mode: {mode!r}")
        except Exception as e:
            logger.exception("Charge mode task failed: %s", e)

    async def _run_active(self, mode: ActiveMode):
        check_interval = mode.check_interval or self._config.check_interval
        duration = mode.duration * MINUTE
        logger.info("Active mode: side-load %d W, %d mins", mode.side_load, mode.duration)

        started = time.monotonic()
        while time.monotonic() - started < duration:
            charge_power = await self._estimate(mode.side_load)
            await self._push(
                CHARGE_USE_MODE_SCHEDULED,
                self._config.min_capacity,
                charge_power=charge_power,
                check_interval=check_interval,
            )
            remaining = duration - (time.monotonic() - started)
            await asyncio.sleep(max(0, min(check_interval, remaining)))
            remaining = max(0, duration - (time.monotonic() - started))
            logger.info("Active mode: %d min left", remaining // MINUTE)

        await self._reset_mode()

    async def _estimate(self, side_load: int) -> float:
        try:
            run_data = await self._client.get_run_data(self._config.device_id)
        except EcosError as e:
            logger.warning("Failed to read run data: %s", e)
            return 0.0
        return estimate_charge_power(run_data, side_load)

    # --- Vendor updates ---

    async def _current_settings(self) -> ChargeModeSettingsRequest:
        """Settings currently held by the vendor, or the configured defaults if unreadable."""
        device_id = self._config.device_id
        try:
            current = await self._client.get_charge_mode_settings(device_id)
        except EcosError as e:
            logger.warning("Failed to read charge mode settings, using configured defaults: %s", e)
            return ChargeModeSettingsRequest(
                device_id=device_id,
                charge_use_mode=self._config.charge_use_mode,
                min_capacity=self._config.min_capacity,
                max_feed_in=self._config.max_feed_in,
                discharge_to_grid_flag=self._config.discharge_to_grid_flag,
                charging_list=list(self._config.charging_list),
                discharging_list=list(self._config.discharging_list),
                eps_battery_min=self._config.eps_battery_min,
            )
        return ChargeModeSettingsRequest.from_settings(device_id, current)

    async def _push(
        self,
        charge_use_mode: int,
        min_capacity: int,
        charge_power: float = 0.0,
        check_interval: Optional[int] = None,
    ) -> bool:
        """Write the settings for a mode. Failures are logged, never raised."""
        request = await self._current_settings()
        request.charge_use_mode = charge_use_mode
        request.min_capacity = min_capacity
        request.discharge_to_grid_flag = self._config.discharge_to_grid_flag
        request.charging_list = list(self._config.charging_list)
        request.discharging_list = list(self._config.discharging_list)

        if charge_power:
            minutes = (check_interval or self._config.check_interval) // 60
            slot = ChargeSchedule.from_now(minutes, int(abs(charge_power)))
            logger.info("Charge/Discharge power: %.0f W", charge_power)
            if charge_power > 0:
                request.charging_list = [slot]
            else:
                request.discharging_list = [slot]
                request.discharge_to_grid_flag = 1

        try:
            await self._client.post_charge_mode_settings(request)
        except EcosError as e:
            logger.warning("Failed to update charge mode: %s", e)
            return False
        return True


controller = ChargeModeController(settings.app, ecos_client)


def get_controller() -> ChargeModeController:
    return controller
