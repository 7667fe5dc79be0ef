"""Pydantic models for ECOS cloud requests and responses."""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class EcosModel(BaseModel):
    """Base for vendor payloads. The wire format is camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# --- Charge schedules ---


class ChargeSchedule(EcosModel):
    """A single time-boxed charge or discharge slot."""

    start_hour: int
    start_minute: int
    end_hour: int
    end_minute: int
    power: int  # Watts, always a magnitude
    abandon_pv: int = 0

    @classmethod
    def from_now(cls, minutes: int, power: int, now: Optional[datetime] = None) -> "ChargeSchedule":
        """Build a slot starting now and lasting `minutes`."""
        start = now or datetime.now()
        end = start + timedelta(minutes=minutes)
        return cls(
            start_hour=start.hour,
            start_minute=start.minute,
            end_hour=end.hour,
            end_minute=end.minute,
            power=power,
        )


# --- Login ---


class LoginData(EcosModel):
    access_token: str
    refresh_token: str = ""


class LoginResponse(EcosModel):
    code: int = 0
    message: str = ""
    success: bool = False
    data: Optional[LoginData] = None


# --- Devices ---


class Device(EcosModel):
    """A device registered on the account."""

    device_id: str
    device_alias_name: str = ""
    wifi_sn: str = ""
    state: int = 0
    weight: int = 0
    temp: Optional[int] = None
    icon: Optional[str] = None
    vpp: bool = False
    master: int = 0
    device_sn: str = ""
    agent_id: str = ""
    lon: float = 0.0
    lat: float = 0.0
    category: Optional[str] = None
    model: Optional[str] = None
    device_type: Optional[str] = None


class DevicesResponse(EcosModel):
    code: int = 0
    message: str = ""
    success: bool = False
    data: list[Device] = []


# --- Live telemetry ---


class RunData(EcosModel):
    """Live power flows reported by the monitored inverter (watts, SOC in %)."""

    battery_soc: float
    battery_power: float = 0.0
    eps_power: float = 0.0
    grid_power: float = 0.0
    home_power: float = 0.0
    meter_power: float = 0.0
    solar_power: float = 0.0
    sys_run_mode: int = 0
    is_exist_solar: bool = False
    sys_power_config: int = 0


class RunDataResponse(EcosModel):
    code: int = 0
    message: str = ""
    success: bool = False
    data: RunData


# --- Charge mode settings ---


class ChargeModeSettings(EcosModel):
    """Charge settings persisted on the vendor side."""

    min_capacity: int
    charge_use_mode: int
    max_feed_in: int
    eps_battery_min: int
    discharge_to_grid_flag: int
    charging_list: list[ChargeSchedule] = []
    discharging_list: list[ChargeSchedule] = []

    # Read-only fields reported alongside the settings
    self_soc: Optional[int] = None
    self_eps_bat: Optional[int] = None
    self_feed_in: Optional[int] = None
    regular_soc: Optional[int] = None
    regular_eps_bat: Optional[int] = None
    regular_feed_in: Optional[int] = None
    backup_soc: Optional[int] = None
    backup_eps_bat: Optional[int] = None
    backup_feed_in: Optional[int] = None
    ems_software_version: Optional[str] = None
    dsp1_software_version: Optional[str] = None
    rated_power: Optional[str] = None
    region: Optional[str] = None
    auto_strategy: Optional[int] = None


class ChargeModeSettingsResponse(EcosModel):
    code: int = 0
    message: str = ""
    success: bool = False
    data: ChargeModeSettings


class ChargeModeSettingsRequest(EcosModel):
    """Writable subset of the charge settings."""

    device_id: str
    charge_use_mode: int
    min_capacity: int
    max_feed_in: int
    discharge_to_grid_flag: int
    charging_list: list[ChargeSchedule] = []
    discharging_list: list[ChargeSchedule] = []
    eps_battery_min: int

    @classmethod
    def from_settings(cls, device_id: str, current: ChargeModeSettings) -> "ChargeModeSettingsRequest":
        """Copy every writable field from the settings currently held by the vendor."""
        return cls(
            device_id=device_id,
            charge_use_mode=current.charge_use_mode,
            min_capacity=current.min_capacity,
            max_feed_in=current.max_feed_in,
            discharge_to_grid_flag=current.discharge_to_grid_flag,
            charging_list=list(current.charging_list),
            discharging_list=list(current.discharging_list),
            eps_battery_min=current.eps_battery_min,
        )
