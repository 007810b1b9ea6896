"""FastAPI application entry point for the KIMO WhatsApp assistant."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from kimo.app.config import get_settings
from kimo.domain.schemas import HealthResponse
from kimo.infra.database import init_db
from kimo.services.scheduler import get_runner

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise the database and run the notification scheduler."""
    await init_db()

    settings = get_settings()
    runner = get_runner()
    if settings.scheduler_enabled:
        runner.start()
    else:
        logger.info("Scheduler disabled; jobs only run via the internal endpoint")

    yield

    if runner.started:
        await runner.stop()


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.debug else logging.WARNING,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

app = FastAPI(
    title="KIMO API",
    lifespan=lifespan,
    debug=settings.debug,
)

# ---------------------------------------------------------------------------
# Route includes
# ---------------------------------------------------------------------------
from kimo.app.routes.whatsapp import router as whatsapp_router
from kimo.app.routes.scheduler import router as scheduler_router

app.include_router(whatsapp_router)
app.include_router(scheduler_router)


@app.get("/health", tags=["health"], response_model=HealthResponse)
async def health_check():
    """Return service health status."""
    return HealthResponse()


def run() -> None:
    """Run the application with uvicorn (used by project.scripts entry point)."""
    uvicorn.run(
        "kimo.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
