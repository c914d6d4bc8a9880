"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from src.core.models import Source


class ChatMessage(BaseModel):
    """One history entry.  Roles other than user/assistant are ignored."""

    role: str
    content: Any = None


class PatientInfo(BaseModel):
    name: str | None = None
    dob: str | None = None


class ChatRequest(BaseModel):
    """One patient turn: history, the caller-held flow blob and session metadata."""

    messages: list[ChatMessage] = Field(default_factory=list, max_length=200)
    faq_flow: Any = Field(
        None, description="Flow state returned by the previous turn (malformed values are ignored)",
    )
    session_id: str | None = None
    patient: PatientInfo | None = None
    user_agent: str | None = None
    page_url: str | None = None


class FlowStateModel(BaseModel):
    key: str
    step: int
    slots: dict[str, str] = Field(default_factory=dict)


class ReplyOptionModel(BaseModel):
    label: str
    value: str


class ChatResponse(BaseModel):
    """Reply plus the state the caller must send back next turn."""

    reply: str = Field(..., description="Text shown to the patient")
    source: Source = Field(..., description="Which answer tier produced the reply")
    faq_flow: FlowStateModel | None = None
    suggest_end: bool = False
    reply_options: list[ReplyOptionModel] | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "clinic-inquiry"
