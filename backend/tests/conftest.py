"""Pytest configuration and shared fixtures for eCactus controller tests."""

import sys
import time
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import jwt
import pytest

# Add backend to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from config import AppConfig  # noqa: E402
from ecos.models import ChargeModeSettings, RunData  # noqa: E402


SIGNING_KEY = "test-signing-key-not-used-by-the-vendor"


def make_token(exp: float, **claims) -> str:
    """Build a signed three-part token carrying the given expiry."""
    payload = {"sub": "user@example.com", "iat": int(time.time()), "exp": int(exp)}
    payload.update(claims)
    return jwt.encode(payload, SIGNING_KEY, algorithm="HS256")


@pytest.fixture
def app_config():
    """Default application config (device 123456, min capacity 10)."""
    return AppConfig()


@pytest.fixture
def vendor_settings():
    """Charge settings as currently held by the vendor."""
    return ChargeModeSettings.model_validate({
        "minCapacity": 30,
        "chargeUseMode": 0,
        "maxFeedIn": 80,
        "epsBatteryMin": 15,
        "dischargeToGridFlag": 0,
        "chargingList": [],
        "dischargingList": [],
        "selfSoc": 10,
        "emsSoftwareVersion": "V1.2.3",
        "region": "AU",
    })


@pytest.fixture
def mock_run_data():
    """Live telemetry: 1000 W solar on the monitored inverter, 1700 W load."""
    return RunData(
        battery_soc=50.0,
        solar_power=1000.0,
        home_power=1500.0,
        eps_power=200.0,
    )


@pytest.fixture
def mock_ecos_client(vendor_settings, mock_run_data):
    """Mock ECOS client with canned settings and telemetry."""
    mock = MagicMock()
    mock.get_charge_mode_settings = AsyncMock(return_value=vendor_settings)
    mock.get_run_data = AsyncMock(return_value=mock_run_data)
    mock.post_charge_mode_settings = AsyncMock(return_value=None)
    mock.is_token_valid = MagicMock(return_value=True)
    return mock
