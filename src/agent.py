"""LangGraph orchestration of the three answer tiers.

Architecture:
  A LangGraph StateGraph with three nodes, tried in priority order:

    1. **structured**: the pure ``FlowEngine``. Continues an active guided
                        dialogue, starts a new one, or answers a catalog
                        entry single-shot
    2. **knowledge**:  scores the corpus; on a strong hit the fast model
                        summarizes the top chunks
    3. **general**:    the main model answers from the conversation,
                        with near-miss FAQ entries in the system prompt

  Routing:
    structured → (answered?) → END
               → knowledge → (answered?) → END
                           → general → END

  Memory:
    None.  The caller sends the message history and its ``faq_flow`` blob
    every turn and receives the updated blob back, so the graph is
    compiled without a checkpointer.

  Failure policy:
    A knowledge-tier completion failure is logged and falls through to the
    general tier.  A general-tier failure raises ``CompletionError``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping
from typing import Any

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AIMessage, AnyMessage, HumanMessage, SystemMessage
from langgraph.graph import END, StateGraph
from typing_extensions import TypedDict

from src.config import ANTHROPIC_API_KEY, ENGINE_SETTINGS, FAST_MODEL_NAME, MODEL_NAME
from src.core import knowledge
from src.core.flow import FlowEngine
from src.core.models import ScoredChunk, ScoredEntry, Source
from src.core.normalize import normalize
from src.core.settings import EngineSettings
from src.prompts import (
    build_knowledge_user_prompt,
    clean_reply_text,
    get_general_system_prompt,
    get_knowledge_system_prompt,
)
from src.services.metrics import metrics
from src.services.store_client import StoreClient

logger = logging.getLogger(__name__)

MAX_HISTORY_MESSAGES = 14
MAX_MESSAGE_CHARS = 1000
EMPTY_QUERY_REPLY = "ご用件を入力してください。"


class CompletionError(Exception):
    """The general-fallback completion failed; the patient gets an error."""


# ── State schema ─────────────────────────────────────────────────────


class InquiryState(TypedDict, total=False):
    """The state that flows through the graph for one turn.

    ``response`` is set by whichever node answers; its presence ends the
    graph.  ``faq_hits`` is written by the structured node and read by the
    general node's prompt.
    """

    messages: list[AnyMessage]
    query: str
    faq_flow: Any
    faq_hits: list[ScoredEntry]
    knowledge_hits: list[ScoredChunk]
    response: dict[str, Any]


def _final(reply: str, source: Source) -> dict[str, Any]:
    return {
        "reply": reply,
        "source": source.value,
        "faq_flow": None,
        "suggest_end": True,
        "reply_options": None,
    }


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return str(content)


# ── History ──────────────────────────────────────────────────────────


def trim_history(raw_messages: Iterable[Any]) -> list[AnyMessage]:
    """Keep the last user/assistant turns as LangChain messages."""
    kept: list[AnyMessage] = []
    for m in raw_messages or []:
        if not isinstance(m, Mapping):
            continue
        role, content = m.get("role"), m.get("content")
        if role not in ("user", "assistant") or not isinstance(content, str):
            continue
        content = content[:MAX_MESSAGE_CHARS]
        kept.append(HumanMessage(content=content) if role == "user" else AIMessage(content=content))
    return kept[-MAX_HISTORY_MESSAGES:]


def last_user_text(messages: Iterable[AnyMessage]) -> str:
    for msg in reversed(list(messages)):
        if isinstance(msg, HumanMessage):
            return _message_text(msg)
    return ""


# ── LLM builders ────────────────────────────────────────────────────


def _build_llm() -> ChatAnthropic:
    """Main model for the general fallback (short, bullet-style replies)."""
    return ChatAnthropic(
        model=MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.1,
        max_tokens=320,
    )


def _build_fast_llm() -> ChatAnthropic:
    """Cheaper model for summarizing knowledge chunks."""
    return ChatAnthropic(
        model=FAST_MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.1,
        max_tokens=600,
    )


# ── Node: structured ────────────────────────────────────────────────


def _make_structured_node(engine: FlowEngine, store: StoreClient):
    def structured_node(state: InquiryState) -> dict:
        query = (state.get("query") or "").strip()
        if not query:
            response = _final(EMPTY_QUERY_REPLY, Source.SYSTEM)
            response["suggest_end"] = False
            return {"response": response}

        turn = engine.respond(query, state.get("faq_flow"), store.fetch_catalog())
        update: dict[str, Any] = {"faq_hits": list(turn.faq_hits)}
        if turn.answered:
            update["response"] = turn.to_payload()
        return update

    return structured_node


# ── Node: knowledge (fast model) ────────────────────────────────────


def _make_knowledge_node(store: StoreClient, settings: EngineSettings):
    llm = _build_fast_llm()

    def knowledge_node(state: InquiryState) -> dict:
        query = state.get("query", "")
        hits = knowledge.pick_relevant(
            store.fetch_corpus(), query, settings.knowledge_limit,
            fragment_limit=settings.fragment_limit,
        )
        if not hits or hits[0].score < settings.knowledge_trigger_score:
            return {"knowledge_hits": hits}

        messages = [
            SystemMessage(content=get_knowledge_system_prompt(settings)),
            HumanMessage(content=build_knowledge_user_prompt(query, hits)),
        ]
        t0 = time.perf_counter()
        try:
            response = llm.invoke(messages)
        except Exception as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure(
                "anthropic", "knowledge_invoke",
                error_type=type(exc).__name__, latency_ms=elapsed,
            )
            logger.warning("Knowledge summarization failed, falling back: %s", exc)
            return {"knowledge_hits": hits}

        metrics.record_success(
            "anthropic", "knowledge_invoke", latency_ms=(time.perf_counter() - t0) * 1000,
        )
        reply = clean_reply_text(_message_text(response))
        if not reply:
            return {"knowledge_hits": hits}
        return {"knowledge_hits": hits, "response": _final(reply, Source.KNOWLEDGE)}

    return knowledge_node


# ── Node: general (main model) ──────────────────────────────────────


def _make_general_node(settings: EngineSettings):
    llm = _build_llm()

    def general_node(state: InquiryState) -> dict:
        system = SystemMessage(
            content=get_general_system_prompt(settings, state.get("faq_hits") or []),
        )
        t0 = time.perf_counter()
        try:
            response = llm.invoke([system] + list(state.get("messages") or []))
        except Exception as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure(
                "anthropic", "llm_invoke",
                error_type=type(exc).__name__, latency_ms=elapsed,
            )
            raise CompletionError("General completion failed") from exc

        metrics.record_success(
            "anthropic", "llm_invoke", latency_ms=(time.perf_counter() - t0) * 1000,
        )
        return {"response": _final(clean_reply_text(_message_text(response)), Source.LLM)}

    return general_node


# ── Conditional edges ────────────────────────────────────────────────


def _answered_or(next_node: str):
    def route(state: InquiryState) -> str:
        return END if state.get("response") else next_node

    return route


# ── Graph assembly ───────────────────────────────────────────────────


def create_inquiry_agent(
    store: StoreClient,
    settings: EngineSettings = ENGINE_SETTINGS,
    engine: FlowEngine | None = None,
):
    """Build and compile the inquiry graph.

    Invoke the result with::

        graph.invoke({"messages": [...], "query": "...", "faq_flow": blob})
    """
    engine = engine or FlowEngine(settings)
    graph = StateGraph(InquiryState)

    graph.add_node("structured", _make_structured_node(engine, store))
    graph.add_node("knowledge", _make_knowledge_node(store, settings))
    graph.add_node("general", _make_general_node(settings))

    graph.set_entry_point("structured")
    graph.add_conditional_edges(
        "structured", _answered_or("knowledge"), {"knowledge": "knowledge", END: END},
    )
    graph.add_conditional_edges(
        "knowledge", _answered_or("general"), {"general": "general", END: END},
    )
    graph.add_edge("general", END)

    compiled = graph.compile()
    logger.debug(
        "Inquiry agent compiled (knowledge: %s, general: %s)", FAST_MODEL_NAME, MODEL_NAME,
    )
    return compiled


def answer_inquiry(agent, raw_messages: Iterable[Any], faq_flow: Any = None) -> dict[str, Any]:
    """Run one turn and return the wire payload (reply, source, faq_flow, …)."""
    messages = trim_history(raw_messages)
    result = agent.invoke({
        "messages": messages,
        "query": normalize(last_user_text(messages)),
        "faq_flow": faq_flow,
    })
    response = result["response"]
    metrics.record_answer(response["source"])
    return response
