from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.routing import Mount

from kalbook.config import get_settings
from kalbook.dependencies.services import get_http_store_cached, uses_mock_store

# Import routers directly from submodules
from kalbook.mock_data_view import router as mock_data_router
from kalbook.tools.activity import router as activity_router
from kalbook.tools.appointment import router as appointment_router
from kalbook.tools.availability import router as availability_router
from kalbook.tools.mcp import router as mcp_router
from kalbook.tools.reschedule import router as reschedule_router
from kalbook.mcp_server import mcp
from kalbook.health import router as health_router


def configure_logging() -> None:
    """Ensure application logs use the INFO level by default."""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
    else:
        root_logger.setLevel(logging.INFO)

# Configure logging as soon as the module is loaded
configure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages application startup and shutdown events.
    """
    # --- Startup Logic ---
    settings = get_settings()

    settings_snapshot = settings.model_dump(exclude={"store_token"})
    logger.info("Application settings on startup: %s", settings_snapshot)

    has_mcp = any(isinstance(r, Mount) and r.path == "/mcp" for r in app.routes)
    logger.debug("MCP mount present: %s", has_mcp)

    store = None if uses_mock_store(settings) else get_http_store_cached()
    logger.info("Application startup complete (store=%s).", "mock" if store is None else "http")

    try:
        yield  # The application is now running
    finally:
        # --- Shutdown Logic ---
        if store is not None:
            logger.info("Closing booking store connection.")
            await store.close()
        logger.info("Application shutdown complete.")


# --- Application Setup ---

settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    lifespan=lifespan,
    redirect_slashes=False
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin).rstrip("/") for origin in settings.cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Include Routers and Mounts ---

app.include_router(availability_router, prefix="/tools/availability")
app.include_router(appointment_router, prefix="/tools/appointment")
app.include_router(reschedule_router, prefix="/tools/reschedule")
app.include_router(activity_router, prefix="/tools/activity")
app.include_router(mcp_router)  # Exposes /tools/list and /tools/call
app.include_router(health_router)
app.include_router(mock_data_router)

# Mount the MCP Streamable HTTP server at /mcp
app.mount("/mcp", mcp.streamable_http_app())
