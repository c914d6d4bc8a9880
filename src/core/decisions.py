"""Decision table: per-topic mapping from collected slots to a final reply.

Each topic is keyed by its catalog question text and owns a small decision
tree over slot values.  ``None`` means the slots collected so far do not
settle the case yet and the flow should keep asking.  Adding a topic means
adding a function to ``DECISION_TABLE`` (and, if its choice steps need
free-text wording, an entry in ``TOPIC_CHOICE_RULES``); the flow engine is
not touched.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from enum import Enum

from src.core.judge import ChoiceRule
from src.core.settings import DEFAULT_SETTINGS, END_OF_CONVERSATION_NOTE, EngineSettings

SENSITIVITY = "歯がしみる（冷たい・甘い・風でしみる）"
DENTURE_PAIN = "入れ歯が痛い"
DENTURE_BROKEN = "入れ歯が割れた"
LOOSE_TOOTH = "歯がグラグラする"
LOST_FILLING = "つめもの（かぶせもの・銀歯など）が取れた"

THANKS = "ご回答ありがとうございます。"
DO_NOT_GLUE_NOTE = "※割れた入れ歯は【接着剤などで修理せず】、そのままお持ちください。"
SAME_DAY_NOTE = (
    "当日希望の場合はお待ちいただく可能性がありますが、"
    "状況により対応できることがありますので、お電話でご相談ください。"
)


class Contact(Enum):
    WEB = "web"
    TEL = "tel"
    BOTH = "both"
    BOOKING = "booking"
    BOOKING_TEL = "booking_tel"


def _contact_block(settings: EngineSettings, contact: Contact) -> str:
    match contact:
        case Contact.WEB:
            return settings.web_line
        case Contact.TEL:
            return settings.phone_line
        case Contact.BOTH:
            return f"{settings.web_line}\n{settings.phone_line}"
        case Contact.BOOKING:
            return settings.booking_header
        case Contact.BOOKING_TEL:
            return f"{settings.booking_header}\n{settings.phone_line}"


def _compose(
    settings: EngineSettings,
    body: str,
    contact: Contact,
    *,
    opening: str = THANKS,
    note: str = "",
) -> str:
    parts = [opening, body, _contact_block(settings, contact)]
    if note:
        parts.append(note)
    parts.append(END_OF_CONVERSATION_NOTE)
    return "\n\n".join(parts)


# ── Topics ───────────────────────────────────────────────────────────


def _sensitivity(s: Mapping[str, str], settings: EngineSettings) -> str | None:
    # source: 1=after treatment, 2=under treatment, 3=not sure
    if s.get("source") == "1":
        return _compose(
            settings,
            "治療後からしみる場合、治療後は人工の材料に置き換わっていることもあり、"
            "神経が慣れるまでは「長く見て半年ほど」しみることがあります。\n"
            "ただし、日常生活に支障が出るほど強い場合は、神経の処置（抜髄）が必要になる可能性もあります。",
            Contact.BOOKING_TEL,
        )
    if s.get("source") == "2":
        if s.get("tmpcap") == "yes":
            return _compose(
                settings,
                "治療中の歯で仮詰め（仮蓋）が外れている場合、応急処置が必要なことがあります。\n"
                "なるべくその部分で噛まず、できるだけ早めの受診をおすすめします。\n\n"
                f"{SAME_DAY_NOTE}\n"
                "お電話の際は【虫歯治療の仮蓋が取れました】とお伝えください。",
                Contact.TEL,
            )
        if s.get("tmpcap") == "no":
            return _compose(
                settings,
                "治療中の歯がしみる場合、治療の直後は一時的に神経が炎症を起こしてしみることがあります。\n"
                "次第に落ち着くことも多いので、次の予約まで様子を見るか、"
                "ご心配であればWEB予約またはお電話でご予約ください。\n"
                "また、日常生活に支障が出るほど強い痛みがある場合は、お電話でご相談ください。",
                Contact.BOOKING_TEL,
            )
        return None
    if s.get("source") == "3":
        if s.get("tolerable") == "1":
            return _compose(
                settings,
                "原因としては、虫歯もしくは知覚過敏の可能性があります。\n"
                "まずはWEBからご予約をお取りください。",
                Contact.WEB,
            )
        if s.get("tolerable") == "2":
            return _compose(
                settings,
                "我慢できないほどの痛み・しみ方の場合は、一度受診をおすすめします。\n"
                "空き状況によっては当日のご案内も可能なことがありますので、お電話でご相談ください。",
                Contact.TEL,
            )
    return None


def _denture_pain(s: Mapping[str, str], settings: EngineSettings) -> str | None:
    if s.get("eating") == "yes":
        return _compose(
            settings,
            "入れ歯を外すとお食事がしにくい場合は、入れ歯の調整が必要です。\n"
            "お電話にてご予約をお取りください。\n\n"
            "痛ければ、入れ歯を外しておいてもらって大丈夫です。",
            Contact.TEL,
        )
    if s.get("eating") == "no":
        return _compose(
            settings,
            "お食事に支障がない場合は、WEBにてご予約をお取りください。\n\n"
            "痛ければ、入れ歯を外しておいてもらって大丈夫です。",
            Contact.WEB,
        )
    return None


def _denture_broken(s: Mapping[str, str], settings: EngineSettings) -> str | None:
    if s.get("eat") == "yes":
        return _compose(
            settings,
            "応急処置で対応できる場合がありますので、お電話にてご予約をお願いいたします。",
            Contact.TEL,
            opening="お食事がしにくいとのことですね。",
            note=DO_NOT_GLUE_NOTE,
        )
    if s.get("eat") == "no":
        return _compose(
            settings,
            "WEB予約よりご予約をお取りください。",
            Contact.WEB,
            opening="現在はお食事に大きな支障はないのですね。",
            note=DO_NOT_GLUE_NOTE,
        )
    return None


def _loose_tooth(s: Mapping[str, str], settings: EngineSettings) -> str | None:
    # type: 1=own tooth, 2=filling, 3=crown, 4=post crown
    avoid_biting = "そこで噛まないようにできるのであれば、噛まないようにしてください。\nウェブにてご予約をお取りください。"
    kind, pain = s.get("type"), s.get("pain")
    if kind == "1":
        if pain == "no":
            return _compose(settings, avoid_biting, Contact.WEB)
        if pain == "yes":
            if s.get("throb") == "yes":
                return _compose(
                    settings,
                    "応急処置させていただきます。\nお電話にてご予約をお取りください。",
                    Contact.TEL,
                )
            if s.get("throb") == "no":
                return _compose(settings, avoid_biting, Contact.WEB)
        return None
    if kind == "2":
        if pain == "yes":
            return _compose(
                settings,
                "そこで噛まないようにできるのであれば、噛まないようにして、"
                "応急処置しますのでお電話にてご予約をお取りください。",
                Contact.TEL,
            )
        if pain == "no":
            return _compose(
                settings,
                "そこで噛まないようにできるのであれば、噛まないようにして様子を見ましょう。\n"
                "ウェブにてご予約をお取りください。",
                Contact.WEB,
            )
        return None
    if kind in ("3", "4"):
        if pain == "yes":
            return _compose(
                settings,
                "そこで噛まないようにできるのであれば、噛まないようにして様子を見てください。\n"
                "ご予約をお取りください。",
                Contact.BOTH,
            )
        if pain == "no":
            return _compose(
                settings,
                "そこで噛まないようにできるのであれば、噛まないようにして様子を見ましょう。\n"
                "WEBにてご予約をお取りください。",
                Contact.WEB,
            )
    return None


def _lost_filling(s: Mapping[str, str], settings: EngineSettings) -> str | None:
    if s.get("treating") == "no":
        if s.get("symptom") == "2":
            return _compose(
                settings,
                "症状がない場合は、このままでも大きな問題にならないケースも多いです。\n"
                "ただし、取れた部分から欠けたり、食べ物が詰まりやすくなったりするため、"
                "取れた部分でなるべく噛まないようにしてください。",
                Contact.BOOKING,
            )
        if s.get("symptom") == "1":
            if s.get("pain") == "1":
                return _compose(
                    settings,
                    "痛みが我慢できる範囲であれば、まずは取れた部分でなるべく噛まずに過ごしてください。\n"
                    "しみる・痛む原因として虫歯や露出が関係している可能性がありますので、"
                    "WEBからご予約をお取りください。",
                    Contact.WEB,
                )
            if s.get("pain") == "2":
                return _compose(
                    settings,
                    "痛みが我慢できない場合は、早めの受診をおすすめします。\n"
                    "空き状況によっては当日のご案内も可能なことがありますので、お電話でご相談ください。",
                    Contact.BOOKING_TEL,
                )
        return None
    if s.get("treating") == "yes":
        if s.get("rct") == "yes":
            return _compose(
                settings,
                "根管治療中の仮詰め（仮蓋）が取れてしまうことは、頻繁ではありませんが起こることがあります。\n"
                "もし「全部取れている」状態だと、細菌が根管内に侵入する可能性があるため、一度受診をおすすめします。\n\n"
                f"{SAME_DAY_NOTE}\n"
                "お電話の際は【根管治療の仮詰めが取れました】とお伝えください。",
                Contact.TEL,
            )
        if s.get("rct") == "no":
            if s.get("caries") == "yes":
                if s.get("cold") == "no":
                    return _compose(
                        settings,
                        "冷たいものでしみない場合は、このままでも問題ないケースが多いです。\n"
                        "次の予約までその部分で噛まないように注意していただくか、"
                        "ご心配であればWEB予約またはお電話でご予約ください。",
                        Contact.BOOKING_TEL,
                    )
                if s.get("cold") == "yes":
                    return _compose(
                        settings,
                        "冷たいものでしみる場合は、応急処置が必要なことがあります。\n"
                        "お電話でご予約をお願いいたします。\n"
                        "お電話の際は【虫歯治療の仮蓋が取れました】とお伝えください。",
                        Contact.TEL,
                    )
                return None
            if s.get("caries") == "no":
                return _compose(
                    settings,
                    "治療中の歯でつめもの（仮詰めを含む）が取れている場合、"
                    "状態によっては応急処置が必要なことがあります。\n"
                    "取れた部分でなるべく噛まないようにしていただき、WEB予約またはお電話でご相談ください。",
                    Contact.BOOKING_TEL,
                )
    return None


DecisionFn = Callable[[Mapping[str, str], EngineSettings], str | None]

DECISION_TABLE: dict[str, DecisionFn] = {
    SENSITIVITY: _sensitivity,
    DENTURE_PAIN: _denture_pain,
    DENTURE_BROKEN: _denture_broken,
    LOOSE_TOOTH: _loose_tooth,
    LOST_FILLING: _lost_filling,
}

TOPIC_CHOICE_RULES: dict[str, tuple[ChoiceRule, ...]] = {
    LOOSE_TOOTH: (
        (("自分", "天然"), "1"),
        (("詰め", "つめ"), "2"),
        (("かぶせ", "被せ", "クラウン"), "3"),
        (("差し歯", "さしば"), "4"),
    ),
}


def decide(
    key: str, slots: Mapping[str, str], settings: EngineSettings = DEFAULT_SETTINGS,
) -> str | None:
    """Final reply for *key* given *slots*, or ``None`` to keep asking."""
    fn = DECISION_TABLE.get(key)
    if fn is None:
        return None
    return fn(slots, settings)


def choice_rules_for(key: str) -> tuple[ChoiceRule, ...] | None:
    return TOPIC_CHOICE_RULES.get(key)
