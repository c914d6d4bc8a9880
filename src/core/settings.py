"""Immutable engine settings shared by the core and the orchestration layer."""

from __future__ import annotations

from dataclasses import dataclass

END_OF_CONVERSATION_NOTE = "※会話が終わりましたら「会話を終了（履歴を消す）」を押してください。"


@dataclass(frozen=True)
class EngineSettings:
    """Thresholds and clinic contact details.

    ``faq_trigger_score`` is the minimum top FAQ score that starts a flow
    or answers single-shot; ``knowledge_trigger_score`` is the minimum top
    corpus score for the knowledge-summarization tier.
    """

    faq_trigger_score: int = 10
    knowledge_trigger_score: int = 12
    faq_limit: int = 5
    knowledge_limit: int = 3
    max_flow_step: int = 120
    fragment_limit: int = 10

    booking_url: str = "https://v3.apodent.jp/app/entry/1717/minami/"
    phone: str = "0798-47-8111（診療時間内のみ対応）"

    @property
    def web_line(self) -> str:
        return f"WEB予約：{self.booking_url}"

    @property
    def phone_line(self) -> str:
        return f"お電話：{self.phone}"

    @property
    def booking_header(self) -> str:
        """Reservation block opener: ``ご予約：`` then ``WEB：<url>``."""
        return f"ご予約：\nWEB：{self.booking_url}"

    def closing_message(self) -> str:
        """Reply used when a flow runs out of steps without a decision."""
        return (
            "ご連絡ありがとうございます。\n\n"
            f"{self.web_line}\n{self.phone_line}\n\n"
            f"{END_OF_CONVERSATION_NOTE}"
        )


DEFAULT_SETTINGS = EngineSettings()
