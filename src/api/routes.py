"""FastAPI route definitions for the clinic inquiry API."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request

from src.agent import MAX_MESSAGE_CHARS, CompletionError, answer_inquiry
from src.api.schemas import ChatRequest, ChatResponse, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_agent(request: Request):
    """Retrieve the compiled inquiry graph from app state (set in the lifespan)."""
    agent = getattr(request.app.state, "agent", None)
    if agent is None:
        raise HTTPException(
            status_code=503,
            detail="The agent is still starting up. Please try again in a moment.",
        )
    return agent


def _safe_str(value: Any, max_len: int) -> str:
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value)).strip()[:max_len]


def _build_log_entry(
    body: ChatRequest, http_request: Request, user_text: str, reply: str,
) -> dict[str, str]:
    patient = body.patient
    return {
        "session_id": _safe_str(body.session_id, 120),
        "name": _safe_str(patient.name if patient else None, 80),
        "dob": _safe_str(patient.dob if patient else None, 20),
        "user_text": user_text,
        "assistant_text": reply,
        "user_agent": _safe_str(body.user_agent, 200)
        or _safe_str(http_request.headers.get("User-Agent"), 200),
        "page_url": _safe_str(body.page_url, 300),
    }


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.post("/chat", response_model=ChatResponse)
async def chat(body: ChatRequest, http_request: Request, background_tasks: BackgroundTasks):
    """Answer one patient turn.

    The caller owns the conversation: it sends the message history and the
    ``faq_flow`` blob from the previous response, and gets the updated blob
    back.  The graph run is blocking (store reads, completion calls), so it
    is offloaded to a worker thread.  The audit-log write runs after the
    response is sent and can never change it.
    """
    agent = _get_agent(http_request)
    request_id = getattr(http_request.state, "request_id", "?")
    raw_messages = [m.model_dump() for m in body.messages]

    try:
        payload = await asyncio.to_thread(answer_inquiry, agent, raw_messages, body.faq_flow)
    except CompletionError as e:
        logger.exception("[%s] Completion service failed", request_id)
        raise HTTPException(
            status_code=502,
            detail="The answer service is temporarily unavailable. Please try again.",
        ) from e
    except Exception as e:
        logger.exception("[%s] Error processing chat request", request_id)
        raise HTTPException(
            status_code=500,
            detail="An internal error occurred. Please try again.",
        ) from e

    logger.info("[%s] Answered via %s", request_id, payload["source"])

    user_text = next(
        (m.content for m in reversed(body.messages)
         if m.role == "user" and isinstance(m.content, str)),
        "",
    )[:MAX_MESSAGE_CHARS]
    store = getattr(http_request.app.state, "store", None)
    if store is not None and user_text:
        background_tasks.add_task(
            store.record_log,
            _build_log_entry(body, http_request, user_text, payload["reply"]),
        )

    return ChatResponse(**payload)
