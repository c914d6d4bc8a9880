"""Value types for the inquiry decision core.

Every type here is immutable.  A turn never patches the caller's
``FlowState``; it returns a new one (or ``None``) inside a ``Turn``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

_ENABLED_VALUES = {"true", "1", "yes", "on"}


# ── Enumerations ─────────────────────────────────────────────────────


class Expect(str, Enum):
    """Answer type a flow step expects from the patient."""

    FREE = "free"
    YESNO = "yesno"
    CHOICE = "choice"
    TOOTH = "tooth"
    WHEN = "when"

    @classmethod
    def parse(cls, raw: str | None) -> Expect:
        """Map an ``expect=`` attribute to a member; unknown values mean free text."""
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            return cls.FREE


class Source(str, Enum):
    """Which strategy produced the reply (the ``source`` wire field)."""

    FLOW_DECISION = "faq_flow_decision"
    FLOW_DECISION_START = "faq_flow_decision_start"
    FLOW_REPAIR = "faq_repair"
    FLOW = "faq_flow"
    FLOW_START = "faq_flow_start"
    FAQ = "faq"
    KNOWLEDGE = "knowledge_ai"
    LLM = "llm"
    SYSTEM = "system"


# ── Store items ──────────────────────────────────────────────────────


def parse_enabled(value: Any) -> bool:
    """Missing or blank flags count as enabled."""
    if value is None or value is True:
        return True
    if value is False:
        return False
    text = str(value).strip().lower()
    return not text or text in _ENABLED_VALUES


@dataclass(frozen=True)
class CatalogEntry:
    """One FAQ row: question, answer template, keyword list, enabled flag."""

    question: str
    answer: str
    keywords: str = ""
    enabled: bool = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> CatalogEntry:
        return cls(
            question=str(row.get("q") or "").strip(),
            answer=str(row.get("a") or "").strip(),
            keywords=str(row.get("k") or "").strip(),
            enabled=parse_enabled(row.get("enabled")),
        )

    @property
    def keyword_list(self) -> list[str]:
        return [k.strip().lower() for k in self.keywords.split(",") if k.strip()]


@dataclass(frozen=True)
class KnowledgeChunk:
    """One corpus row: document title, chunk id and body text."""

    title: str
    chunk_id: str
    text: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> KnowledgeChunk:
        return cls(
            title=str(row.get("doc_title") or row.get("title") or "").strip(),
            chunk_id=str(row.get("chunk_id") or row.get("id") or ""),
            text=str(row.get("text") or "").strip(),
        )


@dataclass(frozen=True)
class ScoredEntry:
    score: int
    entry: CatalogEntry


@dataclass(frozen=True)
class ScoredChunk:
    score: int
    chunk: KnowledgeChunk


# ── Flow ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FlowStep:
    """A single dialogue turn parsed out of an answer template."""

    tag: str
    text: str
    attrs: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_final(self) -> bool:
        return self.tag == "final"

    @property
    def expect(self) -> Expect:
        return Expect.parse(self.attrs.get("expect"))

    @property
    def slot(self) -> str:
        return self.attrs.get("slot", "")

    @property
    def choice(self) -> str:
        return self.attrs.get("choice", "")


@dataclass(frozen=True)
class FlowState:
    """Caller-held state of an active guided dialogue.

    Slots are write-once: ``with_slot`` ignores names that are already set.
    """

    key: str
    step: int = 1
    slots: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_wire(cls, blob: Any, max_step: int = 120) -> FlowState | None:
        """Coerce the ``faq_flow`` blob; anything malformed means no flow."""
        if not isinstance(blob, Mapping):
            return None
        key = blob.get("key")
        if not isinstance(key, str) or not key:
            return None
        step = _coerce_step(blob.get("step"))
        if step is None or not 1 <= step <= max_step:
            return None
        slots = blob.get("slots", {})
        if slots is None:
            slots = {}
        if not isinstance(slots, Mapping):
            return None
        return cls(
            key=key,
            step=step,
            slots={str(k): str(v) for k, v in slots.items() if v not in (None, "")},
        )

    def to_wire(self) -> dict[str, Any]:
        return {"key": self.key, "step": self.step, "slots": dict(self.slots)}

    def has_slot(self, name: str) -> bool:
        return bool(self.slots.get(name))

    def with_slot(self, name: str, value: str) -> FlowState:
        if not name or not value or self.has_slot(name):
            return self
        return FlowState(self.key, self.step, {**self.slots, name: value})

    def at_step(self, step: int) -> FlowState:
        return FlowState(self.key, step, dict(self.slots))


def _coerce_step(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class ReplyOption:
    """A button hint shown under a flow prompt."""

    label: str
    value: str


# ── Decisions ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Reply:
    """Terminal answer; the flow (if any) ends."""

    text: str


@dataclass(frozen=True)
class Repair:
    """The answer was not understood; re-ask the same step."""

    prompt: str
    state: FlowState
    options: tuple[ReplyOption, ...] | None = None


@dataclass(frozen=True)
class Advance:
    """Ask the next unanswered step."""

    prompt: str
    state: FlowState
    options: tuple[ReplyOption, ...] | None = None


Decision = Reply | Repair | Advance


@dataclass(frozen=True)
class Turn:
    """Outcome of one engine evaluation.

    ``decision`` is ``None`` when no structured answer applies and the
    caller should fall through to the knowledge and general tiers.
    ``faq_hits`` is always populated so the fallback prompt can cite them.
    """

    decision: Decision | None
    source: Source | None
    faq_hits: tuple[ScoredEntry, ...] = ()

    @property
    def answered(self) -> bool:
        return self.decision is not None

    def to_payload(self) -> dict[str, Any]:
        """Render the decision as the chat wire payload."""
        match self.decision:
            case Reply(text=text):
                return _payload(text, self.source, None, True, None)
            case Repair(prompt=prompt, state=state, options=options):
                return _payload(prompt, self.source, state, False, options)
            case Advance(prompt=prompt, state=state, options=options):
                return _payload(prompt, self.source, state, False, options)
            case None:
                raise ValueError("Turn has no structured decision")


def _payload(
    reply: str,
    source: Source | None,
    state: FlowState | None,
    suggest_end: bool,
    options: tuple[ReplyOption, ...] | None,
) -> dict[str, Any]:
    return {
        "reply": reply,
        "source": source.value if source else Source.SYSTEM.value,
        "faq_flow": state.to_wire() if state else None,
        "suggest_end": suggest_end,
        "reply_options": (
            [{"label": o.label, "value": o.value} for o in options] if options else None
        ),
    }
