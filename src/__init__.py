"""Clinic Inquiry, a patient inquiry assistant for a dental clinic.

Architecture Overview
=====================

Every patient turn is answered by the first of three tiers that applies:

1. **Structured**: catalog (FAQ) entries matched by keyword.  An entry whose
   answer embeds step markers (``[[step1 expect=yesno slot=eat]]…[[final]]``)
   becomes a multi-turn guided dialogue: each reply is judged against the
   step's expected answer type, stored in a write-once slot, and a per-topic
   decision table decides when enough is known to give a final answer.
   Entries without markers are answered single-shot.
2. **Knowledge**: fuzzy scoring over a corpus of clinic documents; strong
   hits are summarized by a fast Claude model.
3. **General**: the main Claude model answers from the conversation.

Key Design Decisions
--------------------
- **Pure core**: ``src/core`` performs no I/O.  The conversation state
  (``faq_flow``) is held by the caller and sent back each turn; the engine
  returns a new value and never mutates the old one.
- **Orchestration**: a LangGraph StateGraph chains the tiers and is the only
  place completions are requested.
- **Resilience**: catalog and corpus reads are cached for 10 minutes and
  degrade to empty results on failure; audit-log writes run after the
  response with a short timeout and are dropped on failure.

Package Structure
-----------------
- ``src/core/`` : normalizer, tokenizer, retrievers, step parser, judge,
  decision table, flow engine
- ``src/agent.py``: LangGraph tier orchestration
- ``src/config.py``: configuration from environment variables / SSM
- ``src/prompts.py``: completion prompts and reply cleanup
- ``src/server.py``: FastAPI application
- ``src/main.py``: CLI chat interface
- ``src/services/``: item-store client, cache, metrics
- ``src/api/``: FastAPI routes and Pydantic schemas
"""
