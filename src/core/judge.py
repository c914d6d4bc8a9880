"""Judging patient replies against a step's expected answer type.

All vocabularies are declarative tables so new wording (or a new topic's
choice mapping) can be added without touching the flow engine.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from src.core.models import Expect, FlowStep

# (keywords, digit): the first rule with any keyword contained in the reply wins.
ChoiceRule = tuple[tuple[str, ...], str]

# ── Yes / no ─────────────────────────────────────────────────────────

YESNO_EXACT: dict[str, frozenset[str]] = {
    "yes": frozenset({"はい", "うん", "yes", "y", "1", "そう", "ok", "大丈夫"}),
    "no": frozenset({"いいえ", "いや", "no", "n", "2", "ちがう", "違う"}),
}
YESNO_CONTAINS: tuple[tuple[str, str], ...] = (
    ("はい", "yes"),
    ("いいえ", "no"),
)

# ── Tooth location ───────────────────────────────────────────────────

STRONG_LOCATOR_RE = re.compile(r"右上|左上|右下|左下|右|左|上|下|奥歯|前歯|[1-8]番")
SYMPTOM_RE = re.compile(
    r"ぐらぐら|グラグラ|痛|いた|しみ|染み|腫|はれ|外れ|はずれ|取れ|とれ|欠け|かけ|浮い"
)
MAX_TOOTH_LENGTH = 40

# ── Relative time ────────────────────────────────────────────────────

# (pattern, fixed value); ``None`` keeps the matched text without spaces.
# ``一昨日`` is listed before ``昨日`` because it contains it.
WHEN_RULES: tuple[tuple[re.Pattern[str], str | None], ...] = (
    (re.compile(r"今日|本日"), "今日"),
    (re.compile(r"一昨日|おととい"), "一昨日"),
    (re.compile(r"昨日"), "昨日"),
    (re.compile(r"\d+\s*日(前|くらい|程)?"), None),
    (re.compile(r"\d+\s*週間(前|くらい|程)?"), None),
    (re.compile(r"\d+\s*ヶ月(前|くらい|程)?"), None),
    (re.compile(r"先週|今週|先月|今月"), None),
    (re.compile(r"さっき|先ほど|たった今"), None),
)

# ── Choice ───────────────────────────────────────────────────────────

_DIGIT_RE = re.compile(r"[1-9]")

# Steps offering 1=after treatment, 2=under treatment, 3=not sure.
THREE_WAY_CHOICE_RULES: tuple[ChoiceRule, ...] = (
    (("治療した", "治療後", "詰めた", "被せた", "インレー", "クラウン", "レジン", "詰め物した"), "1"),
    (("治療中", "通院中", "仮", "仮詰め", "仮蓋", "途中", "まだ通って", "次回予約"), "2"),
    (("わから", "不明", "どっち", "覚えてない", "たぶん", "多分"), "3"),
)

# Two-way steps: 1=symptom present, 2=absent or tolerable.
GENERIC_CHOICE_RULES: tuple[ChoiceRule, ...] = (
    (("ある", "あり", "痛", "いた", "しみ", "染み", "ズキ", "うず", "我慢できない", "無理"), "1"),
    (("ない", "なし", "問題ない", "大丈夫", "平気", "特にない", "ありません", "我慢できる"), "2"),
)


def parse_yesno(text: str) -> str:
    s = text.strip().lower()
    for value, vocabulary in YESNO_EXACT.items():
        if s in vocabulary:
            return value
    for needle, value in YESNO_CONTAINS:
        if needle in s:
            return value
    return ""


def looks_like_tooth_strong(text: str) -> bool:
    return bool(STRONG_LOCATOR_RE.search(text))


def looks_like_symptom(text: str) -> bool:
    return bool(SYMPTOM_RE.search(text))


def parse_tooth_location(text: str) -> str:
    s = text.strip()
    if not looks_like_tooth_strong(s):
        return ""
    return s[:MAX_TOOTH_LENGTH]


def parse_when(text: str) -> str:
    s = text.strip()
    for pattern, value in WHEN_RULES:
        m = pattern.search(s)
        if m:
            return value if value is not None else re.sub(r"\s+", "", m.group(0))
    return ""


def apply_choice_rules(text: str, rules: Sequence[ChoiceRule]) -> str:
    for keywords, digit in rules:
        if any(k in text for k in keywords):
            return digit
    return ""


def map_choice_text(
    text: str, choice: str, topic_rules: Sequence[ChoiceRule] | None = None,
) -> str:
    """Map free-text wording to a choice digit, or ``""`` if nothing applies."""
    s = text.strip().lower()
    if topic_rules is not None:
        return apply_choice_rules(s, topic_rules)
    if "3" in choice:
        return apply_choice_rules(s, THREE_WAY_CHOICE_RULES)
    return apply_choice_rules(s, GENERIC_CHOICE_RULES)


def parse_choice(
    text: str, choice: str, topic_rules: Sequence[ChoiceRule] | None = None,
) -> str:
    m = _DIGIT_RE.search(text)
    digit = m.group(0) if m else map_choice_text(text, choice, topic_rules)
    if not digit or (choice and digit not in choice):
        return ""
    return digit


def judge(
    text: str, step: FlowStep, topic_rules: Sequence[ChoiceRule] | None = None,
) -> str | None:
    """Return the normalized answer for *step*, or ``None`` if it is rejected."""
    t = (text or "").strip()
    if not t:
        return None

    match step.expect:
        case Expect.YESNO:
            value = parse_yesno(t)
        case Expect.CHOICE:
            value = parse_choice(t, step.choice, topic_rules)
        case Expect.TOOTH:
            value = parse_tooth_location(t)
        case Expect.WHEN:
            value = parse_when(t)
        case Expect.FREE:
            value = t
    return value or None
