"""API routes for reading and changing the charge mode."""

from typing import Union

from fastapi import APIRouter, Body, Depends

from services.charge_controller import (
    ActiveMode,
    ChargeModeController,
    ConservativeMode,
    SelfSufficientMode,
    get_controller,
)

router = APIRouter(prefix="/charge-mode", tags=["charge-mode"])


@router.get("")
async def get_mode(controller: ChargeModeController = Depends(get_controller)):
    """Get the current charge mode."""
    mode = await controller.get_mode()
    return mode.model_dump()


@router.post("")
async def set_mode(
    charge_mode: Union[SelfSufficientMode, ConservativeMode, ActiveMode] = Body(..., discriminator="mode"),
    controller: ChargeModeController = Depends(get_controller),
):
    """Set a new charge mode. Replaces any mode that is still running."""
    await controller.set_mode(charge_mode)
    return {"message": "Charge mode update request sent"}


@router.put("/reset")
async def reset_mode(controller: ChargeModeController = Depends(get_controller)):
    """Go back to self-sufficient mode at the configured minimum capacity."""
    await controller.reset()
    return {"message": "Charge mode reset"}


@router.get("/status")
async def mode_status(controller: ChargeModeController = Depends(get_controller)):
    """Get the current mode, its expiration and whether its task is running."""
    return await controller.get_status()
