"""
FastAPI server exposing the chat workbench.

This module handles application setup, lifespan management, and middleware configuration.
Route handlers are organized in the routers/ package.

The API wraps a single Workbench session:
- Thread and preset registries persisted to a local storage file
- A request orchestrator allowing one outstanding completion at a time
- A completion client talking to OpenRouter-compatible endpoints
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from workbench.api.routers import chat_router, presets_router, state_router, threads_router
from workbench.api.util.completion_client import CompletionClient
from workbench.entities.session import Workbench
from workbench.settings import get_settings


load_dotenv()

settings = get_settings()

# Configure logging - use force=True to prevent duplicate handlers
logger = logging.getLogger(__name__)
logging.basicConfig(level=settings.log_level.upper(), force=True)

# Reduce noise from HTTP libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(application: FastAPI):
    """
    Application lifespan handler.

    Builds the completion client and the workbench session on startup and
    closes the client on shutdown.
    """
    # Startup: Initialize client and session
    client = CompletionClient(
        title=settings.client_title,
        referer=settings.client_referer,
        timeout=settings.request_timeout,
    )
    application.state.completion_client = client
    application.state.workbench = Workbench.from_settings(settings, client)

    logger.info(
        "Workbench initialized (%d threads, %d presets)",
        len(application.state.workbench.threads),
        len(application.state.workbench.presets),
    )

    yield

    # Shutdown: Cleanup
    await client.close()
    logger.info("Completion client closed")


# Create FastAPI application
app = FastAPI(
    title="Chat Workbench",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(chat_router)
app.include_router(threads_router)
app.include_router(presets_router)
app.include_router(state_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    session_ready = getattr(app.state, "workbench", None) is not None
    return {"status": "healthy", "session_ready": session_ready}


if __name__ == "__main__":
    uvicorn.run("workbench.api.main:app", host="0.0.0.0", port=8000, reload=True)
