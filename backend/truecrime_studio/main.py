import logging
import sys
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from truecrime_studio.api.deps import get_storage_context
from truecrime_studio.api.routes import health, projects, storage
from truecrime_studio.core.config import get_settings

settings = get_settings()

# Basic structured logging to stdout for ops visibility
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    ctx = get_storage_context()
    if ctx.cache_manager.initialize():
        logger.info("app.storage_reset_for_upgrade", version=ctx.cache_manager.version)
    ctx.watchdog.start()
    try:
        yield
    finally:
        await ctx.watchdog.stop()


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.backend_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix="/api")
app.include_router(projects.router, prefix="/api")
app.include_router(storage.router, prefix="/api")
