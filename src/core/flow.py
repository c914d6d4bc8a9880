"""Guided-dialogue state machine.

One call to ``FlowEngine.respond`` evaluates one patient turn:

* a reset phrase clears any active flow;
* a strong FAQ hit on a *different* topic replaces the active flow;
* an active flow judges the reply against its current step, stores the
  slot, consults the decision table and asks the next unanswered step;
* otherwise a strong FAQ hit either starts a flow (slots prefilled from the
  triggering utterance) or is answered single-shot.

The engine keeps no state between calls.  Templates are re-parsed every
turn from the catalog, and the caller's ``FlowState`` is never mutated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from src.core import faq
from src.core.decisions import choice_rules_for, decide
from src.core.judge import ChoiceRule, judge, looks_like_symptom, looks_like_tooth_strong
from src.core.models import (
    Advance,
    CatalogEntry,
    Decision,
    Expect,
    FlowState,
    FlowStep,
    Repair,
    Reply,
    ScoredEntry,
    Source,
    Turn,
)
from src.core.normalize import fold_colloquial, normalize, normalize_answer
from src.core.settings import DEFAULT_SETTINGS, EngineSettings
from src.core.steps import build_reply_options, parse_steps

logger = logging.getLogger(__name__)

RESET_PHRASES: tuple[str, ...] = ("リセット", "最初から", "はじめから", "やりなお")
RESET_EXACT: frozenset[str] = frozenset({"reset"})

REPAIR_PREFIX = "すみません、確認させてください。"


def is_reset(text: str) -> bool:
    t = text.strip().lower()
    return t in RESET_EXACT or any(p in t for p in RESET_PHRASES)


def repair_prompt(step_text: str) -> str:
    return f"{REPAIR_PREFIX}\n\n{step_text.strip()}"


class FlowEngine:
    """Stateless evaluator for FAQ flows.

    ``decide_fn`` and ``choice_rules_fn`` default to the built-in decision
    table and are injectable so tests can exercise the machine with
    synthetic topics.
    """

    def __init__(
        self,
        settings: EngineSettings = DEFAULT_SETTINGS,
        *,
        decide_fn: Callable[[str, Mapping[str, str], EngineSettings], str | None] = decide,
        choice_rules_fn: Callable[[str], Sequence[ChoiceRule] | None] = choice_rules_for,
    ) -> None:
        self.settings = settings
        self._decide = decide_fn
        self._choice_rules = choice_rules_fn

    # ── Entry point ──────────────────────────────────────────────────

    def respond(
        self,
        utterance: str,
        flow: Any,
        entries: Sequence[CatalogEntry],
    ) -> Turn:
        """Evaluate one turn.

        *flow* is the raw ``faq_flow`` blob from the caller; malformed
        values are treated as no active flow.
        """
        text = normalize(utterance)
        state = FlowState.from_wire(flow, self.settings.max_flow_step)

        if state and is_reset(text):
            logger.debug("Reset phrase received; dropping flow %r", state.key)
            state = None

        hits = tuple(faq.pick_relevant(entries, text, self.settings.faq_limit))
        top = hits[0] if hits else None
        triggered = top is not None and top.score >= self.settings.faq_trigger_score

        if state and triggered and top.entry.question != state.key:
            logger.debug("Topic switch %r -> %r", state.key, top.entry.question)
            state = None

        if state:
            turn = self._continue(state, text, entries, hits)
            if turn is not None:
                return turn

        if triggered:
            return self._start(top.entry, text, hits)

        return Turn(None, None, hits)

    # ── Active flow ──────────────────────────────────────────────────

    def _continue(
        self,
        state: FlowState,
        text: str,
        entries: Sequence[CatalogEntry],
        hits: tuple[ScoredEntry, ...],
    ) -> Turn | None:
        entry = next((e for e in entries if e.enabled and e.question == state.key), None)
        steps = parse_steps(entry.answer) if entry else None
        if not steps:
            logger.info("Flow template for %r is gone; discarding flow", state.key)
            return None

        current = steps[max(1, min(state.step, len(steps))) - 1]
        value = judge(fold_colloquial(text), current, self._choice_rules(state.key))

        if value is None:
            logger.debug("Step %d of %r rejected %r", state.step, state.key, text)
            return Turn(
                Repair(repair_prompt(current.text), state, build_reply_options(current)),
                Source.FLOW_REPAIR,
                hits,
            )

        if current.slot:
            state = state.with_slot(current.slot, value)

        reply = self._decide(state.key, state.slots, self.settings)
        if reply:
            return Turn(Reply(reply), Source.FLOW_DECISION, hits)

        return Turn(self.advance(steps, state, state.step + 1), Source.FLOW, hits)

    # ── New match ────────────────────────────────────────────────────

    def _start(
        self, entry: CatalogEntry, text: str, hits: tuple[ScoredEntry, ...],
    ) -> Turn:
        steps = parse_steps(entry.answer)
        if not steps:
            return Turn(Reply(normalize_answer(entry.answer)), Source.FAQ, hits)

        state = self.prefill(FlowState(entry.question), steps, text)
        reply = self._decide(state.key, state.slots, self.settings)
        if reply:
            return Turn(Reply(reply), Source.FLOW_DECISION_START, hits)

        logger.debug("Starting flow %r with slots %s", state.key, dict(state.slots))
        return Turn(self.advance(steps, state, 1), Source.FLOW_START, hits)

    def prefill(
        self, state: FlowState, steps: Sequence[FlowStep], text: str,
    ) -> FlowState:
        """Fill slots the triggering utterance already answers.

        A tooth location is not taken from an utterance that reads as a
        symptom description without a strong locator.
        """
        folded = fold_colloquial(text)
        if not folded:
            return state
        rules = self._choice_rules(state.key)
        for step in steps:
            if not step.slot or state.has_slot(step.slot):
                continue
            value = judge(folded, step, rules)
            if value is None:
                continue
            if (
                step.expect is Expect.TOOTH
                and looks_like_symptom(folded)
                and not looks_like_tooth_strong(folded)
            ):
                continue
            state = state.with_slot(step.slot, value)
        return state

    def advance(
        self, steps: Sequence[FlowStep], state: FlowState, start: int,
    ) -> Decision:
        """Ask the first step from *start* whose slot is still empty."""
        idx = max(1, start)
        while idx <= len(steps):
            step = steps[idx - 1]
            if step.is_final:
                return Reply(step.text)
            if step.slot and state.has_slot(step.slot):
                idx += 1
                continue
            return Advance(step.text, state.at_step(idx), build_reply_options(step))
        return Reply(self.settings.closing_message())
