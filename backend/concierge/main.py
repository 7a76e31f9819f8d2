"""
Business Concierge - Main FastAPI Application
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import settings
from .api import admin_router, feishu_router, observers_router
from .container import build_container
from .core.logging_config import setup_logging

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the object graph on startup, drain turn queues on shutdown."""
    setup_logging(settings)

    app.state.container = await build_container(settings)

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Config dir: {settings.config_dir}")
    logger.info(f"Storage path: {settings.local_storage_path}")
    logger.info(f"LLM provider: {settings.llm_provider}")
    yield
    logger.info(f"Shutting down {settings.app_name}")
    await app.state.container.close()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Multi-channel customer concierge with a tool-using AI agent",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(admin_router)
app.include_router(feishu_router)
app.include_router(observers_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    container = app.state.container
    return {
        "status": "healthy",
        "version": settings.app_version,
        "business": container.config.profile.name,
        "sessions": len(container.registry),
        "channels": container.gateway.channel_names,
        "tools": len(container.dispatcher.names()),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "concierge.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
