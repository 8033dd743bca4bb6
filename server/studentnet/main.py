# StudentNetwork/server/studentnet/main.py

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Import application components
from studentnet.core.config import settings
from studentnet.db.mongodb import mongodb
from studentnet.db.seed_data import seed_all_data
from studentnet.api.deps import get_store

# Import API routers
from studentnet.api.routes import users, network, chats, notifications


# --- Logging Setup ---
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# --- Application Lifespan ---
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Handles application startup and shutdown events.
    Connects to MongoDB (unless the memory store is configured), optionally
    seeds demo profiles, and ensures disconnection.
    """
    logger.info("Application startup sequence initiated...")
    db_connected = False
    try:
        if settings.STORE_BACKEND == "mongodb":
            logger.info("Attempting to connect to MongoDB...")
            await mongodb.connect()
            db_connected = True
            await mongodb.ensure_indexes()
        else:
            logger.info("Memory store configured, skipping MongoDB connection.")

        if settings.SEED_DEMO_DATA and not settings.TESTING_MODE:
            await seed_all_data(get_store())
        elif settings.TESTING_MODE:
            logger.info("TESTING_MODE enabled, skipping application lifespan seeding.")

        logger.info("Application startup complete.")
        yield

    except Exception as e:
        logger.critical(f"FATAL: Application startup failed: {e}", exc_info=True)
        raise
    finally:
        logger.info("Application shutdown sequence initiated...")
        if db_connected:
            await mongodb.close()
        logger.info("Application shutdown complete.")


# --- FastAPI App Initialization ---
app = FastAPI(
    title=settings.APP_NAME,
    description="Connections, chat and notifications API for the student network.",
    version="0.1.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc",
    lifespan=lifespan
)


# --- Middleware Setup ---
if settings.CORS_ALLOWED_ORIGINS:
    allowed_origins = [str(origin).strip() for origin in settings.CORS_ALLOWED_ORIGINS]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info(f"CORS middleware enabled for origins: {allowed_origins}")
else:
    logger.warning("CORS_ALLOWED_ORIGINS is not set in settings. CORS middleware not added.")


# --- API Router Inclusion ---
app.include_router(users.router, prefix=settings.API_V1_STR, tags=["Users"])
app.include_router(network.router, prefix=settings.API_V1_STR, tags=["Network"])
app.include_router(chats.router, prefix=settings.API_V1_STR, tags=["Chats"])
app.include_router(notifications.router, prefix=settings.API_V1_STR, tags=["Notifications"])
logger.info(f"Included API routers (Users, Network, Chats, Notifications) under prefix: {settings.API_V1_STR}")


# --- Root Endpoint ---
@app.get("/", tags=["Root"])
async def read_root() -> dict[str, str]:
    """A simple root endpoint to confirm the API is running."""
    return {"message": f"Welcome to the {settings.APP_NAME} API"}


# Health check endpoint (useful for monitoring)
@app.get("/health", tags=["Health Check"])
async def health_check() -> dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "ok", "store": settings.STORE_BACKEND}
