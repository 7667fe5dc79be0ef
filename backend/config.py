"""eCactus controller configuration."""

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    TomlConfigSettingsSource,
)

from ecos.models import ChargeSchedule

CONFIG_FILE_ENV = "ECACTUS_CONFIG_FILE"


class EcosConfig(BaseModel):
    """Vendor cloud credentials."""

    user: str = ""
    password: str = ""
    base_url: str = "https://api-ecos-au.weiheng-tech.com/api"
    # Optional pre-issued access token, used until it expires
    token: str = ""


class AppConfig(BaseModel):
    """Device and charge defaults. Keys may be written camelCase (deviceId) or snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    device_id: str = "123456"
    check_interval: int = Field(default=60 * 15, gt=0, le=24 * 60 * 60)  # seconds
    charge_use_mode: int = 0
    min_capacity: int = Field(default=10, ge=0, le=100)
    max_feed_in: int = 100
    discharge_to_grid_flag: int = 0
    charging_list: list[ChargeSchedule] = []
    discharging_list: list[ChargeSchedule] = []
    eps_battery_min: int = 10


class Settings(BaseSettings):
    """Application settings loaded from the config file and environment variables."""

    # Application
    app_name: str = "eCactus Controller"
    app_version: str = "0.3.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    ecos: EcosConfig = EcosConfig()
    app: AppConfig = AppConfig()

    model_config = {
        "env_prefix": "ECACTUS_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "extra": "ignore",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Environment wins over the config file; a missing file is ignored."""
        config_file = Path(os.environ.get(CONFIG_FILE_ENV, "config.toml"))
        if config_file.suffix == ".json":
            file_settings = JsonConfigSettingsSource(settings_cls, json_file=config_file)
        else:
            file_settings = TomlConfigSettingsSource(settings_cls, toml_file=config_file)
        return init_settings, env_settings, dotenv_settings, file_settings, file_secret_settings


settings = Settings()
