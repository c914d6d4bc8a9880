"""FastAPI server for the clinic inquiry service.

Run with:
    uv run uvicorn src.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from src.agent import create_inquiry_agent
from src.api.routes import router
from src.config import ALLOWED_ORIGINS, SERVER_HOST, SERVER_PORT
from src.services.store_client import StoreClient

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Create the store client and compile the inquiry graph once.

    The store client owns the read-through cache, so it must outlive
    individual requests.
    """
    logger.info("Compiling inquiry agent…")
    store = StoreClient()
    application.state.store = store
    application.state.agent = create_inquiry_agent(store)
    logger.info("Agent ready.")
    yield
    store.close()


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Clinic Inquiry API",
    description=(
        "Patient inquiry assistant: guided FAQ dialogues, knowledge-base "
        "answers and a general fallback."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS (browser widget on the clinic site) ────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a unique request ID to every request for log correlation."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info(
        "[%s] %s %s", request_id, request.method, request.url.path,
    )
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Register routes ──────────────────────────────────────────────────
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Clinic Inquiry API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


# ── CLI entry point ──────────────────────────────────────────────────

if __name__ == "__main__":
    logger.info("Starting Clinic Inquiry API server on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "src.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
