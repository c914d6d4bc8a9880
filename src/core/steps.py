"""Parser for the step-marker mini-language embedded in catalog answers.

An answer such as::

    [[step1 expect=yesno slot=eat]]お食事はしにくいですか？
    [[final]]ご予約ください。

is split into ordered ``FlowStep`` values.  An answer without markers is a
plain single-shot reply and parses to ``None``.
"""

from __future__ import annotations

import re

from src.core.models import Expect, FlowStep, ReplyOption
from src.core.normalize import normalize_answer

_MARKER_RE = re.compile(r"\[\[(step\d+|final)([^\]]*)\]\]", re.IGNORECASE)
_ATTR_RE = re.compile(r"^([a-zA-Z_]+)=(.+)$")

_ENUMERATED_LINE_RE = re.compile(r"^\s*(\d)[）).．、:：]\s*(.+)")
_CIRCLED_DIGITS = "①②③④⑤⑥⑦⑧⑨"
_CIRCLED_LINE_RE = re.compile(rf"^\s*([{_CIRCLED_DIGITS}])\s*(.+)")

YESNO_OPTIONS: tuple[ReplyOption, ...] = (
    ReplyOption("はい", "はい"),
    ReplyOption("いいえ", "いいえ"),
)


def parse_attrs(raw: str) -> dict[str, str]:
    """Parse ``key=value`` tokens; anything else is ignored."""
    attrs: dict[str, str] = {}
    for token in (raw or "").split():
        m = _ATTR_RE.match(token)
        if m:
            attrs[m.group(1).lower()] = m.group(2).strip()
    return attrs


def parse_steps(template: str | None) -> tuple[FlowStep, ...] | None:
    text = normalize_answer(template)
    matches = list(_MARKER_RE.finditer(text))
    if not matches:
        return None

    steps: list[FlowStep] = []
    for i, m in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        body = text[m.end():end].strip()
        if not body:
            continue
        steps.append(FlowStep(m.group(1).lower(), body, parse_attrs(m.group(2))))
    return tuple(steps) or None


def _choice_options_from_lines(text: str) -> list[ReplyOption]:
    options: list[ReplyOption] = []
    for line in text.split("\n"):
        m = _ENUMERATED_LINE_RE.match(line)
        if m:
            options.append(ReplyOption(f"{m.group(1)}）{m.group(2).strip()}", m.group(1)))
            continue
        m = _CIRCLED_LINE_RE.match(line)
        if m:
            digit = str(_CIRCLED_DIGITS.index(m.group(1)) + 1)
            options.append(ReplyOption(f"{digit}）{m.group(2).strip()}", digit))
    return options


def _choice_options_from_attr(text: str, choice: str) -> list[ReplyOption]:
    digits = [c for c in choice if c in "0123456789"]
    if len(digits) < 2:
        return []
    options: list[ReplyOption] = []
    for d in digits:
        label = d
        m = re.search(
            rf"(?:^|[\s（(「])?{d}[）).．、:：\s]\s*(.+)", text, re.MULTILINE,
        )
        if m:
            label = f"{d}）{m.group(1).split(chr(10))[0].strip()}"
        options.append(ReplyOption(label, d))
    return options


def build_reply_options(step: FlowStep) -> tuple[ReplyOption, ...] | None:
    """Button hints for a step, or ``None`` when the step takes free text."""
    match step.expect:
        case Expect.YESNO:
            return YESNO_OPTIONS
        case Expect.CHOICE:
            options = _choice_options_from_lines(step.text)
            if len(options) < 2:
                options = _choice_options_from_attr(step.text, step.choice)
            return tuple(options) or None
        case Expect.FREE | Expect.TOOTH | Expect.WHEN:
            return None
