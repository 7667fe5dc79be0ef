"""eCactus Controller - charge mode control for ECOS home batteries."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI

from config import settings
from ecos.client import ecos_client
from services import charge_controller
from api.routes_charge_mode import router as charge_mode_router
from api.routes_ecos import router as ecos_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("ecactus")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    logger.info(
        "Device %s, check interval %ds, minimum capacity %d%%",
        settings.app.device_id, settings.app.check_interval, settings.app.min_capacity,
    )
    if not settings.ecos.user:
        logger.warning("ECOS credentials are not configured -- vendor calls will fail")

    yield

    # Shutdown
    await charge_controller.controller.shutdown()
    await ecos_client.close()
    logger.info("%s stopped", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    description="Charge mode controller for ECOS home batteries",
    version=settings.app_version,
    lifespan=lifespan,
)

# Register API routes
app.include_router(charge_mode_router)
app.include_router(ecos_router)


# --- Health check ---

@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "device_id": settings.app.device_id,
        "token_valid": ecos_client.is_token_valid(),
        "task_running": charge_controller.controller.is_running,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
