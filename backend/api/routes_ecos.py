"""Pass-through routes for the ECOS cloud API (debugging and device discovery)."""

from typing import Optional

from fastapi import APIRouter, HTTPException

from config import settings
from ecos.client import ecos_client, EcosAuthError, EcosAPIError, EcosTransportError

router = APIRouter(prefix="/ecos", tags=["ecos"])


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, EcosAuthError):
        return HTTPException(status_code=401, detail=f"ECOS authentication failed: {e}")
    if isinstance(e, EcosAPIError):
        return HTTPException(status_code=e.status_code or 500, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))


@router.get("/devices")
async def get_devices():
    """List the devices on the ECOS account."""
    try:
        devices = await ecos_client.get_devices()
    except (EcosAuthError, EcosAPIError, EcosTransportError) as e:
        raise _http_error(e)
    return [device.model_dump(by_alias=True) for device in devices]


@router.get("/run-data")
async def get_run_data(device_id: Optional[str] = None):
    """Get live telemetry for a device (defaults to the configured device)."""
    try:
        run_data = await ecos_client.get_run_data(device_id or settings.app.device_id)
    except (EcosAuthError, EcosAPIError, EcosTransportError) as e:
        raise _http_error(e)
    return run_data.model_dump(by_alias=True)


@router.get("/charge-mode-settings")
async def get_charge_mode_settings(device_id: Optional[str] = None):
    """Get the charge settings held by the vendor (defaults to the configured device)."""
    try:
        charge_settings = await ecos_client.get_charge_mode_settings(device_id or settings.app.device_id)
    except (EcosAuthError, EcosAPIError, EcosTransportError) as e:
        raise _http_error(e)
    return charge_settings.model_dump(by_alias=True)
