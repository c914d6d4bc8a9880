"""Prompts for the two completion tiers, and cleanup of completion output.

Patients write in Japanese, so the prompts are Japanese too.  Booking links
come from ``EngineSettings`` so the prompts and the decision table always
point at the same place.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from src.core.models import ScoredChunk, ScoredEntry
from src.core.normalize import normalize_answer
from src.core.settings import EngineSettings

MAX_PROMPT_ANSWER_CHARS = 1500
MAX_PROMPT_LINE_CHARS = 300

KNOWLEDGE_SYSTEM_TEMPLATE = """あなたは歯科医院の問い合わせ対応アシスタントです。
次のルールを厳守して回答してください。
1) 患者の質問に答える（結論→短い理由→必要なら注意点）。
2) 資料の内容を使って患者に伝わる短い文章に要約する。原文をそのまま貼らない。
3) 医療判断の断定は避け、受診の目安・緊急時の案内を添える。
4) URLはプレーンテキストで出す（HTMLタグは使わない）。

院の予約案内（必要な場合のみ最後に1回だけ）：
WEB予約: {booking_url}
電話: {phone}"""

KNOWLEDGE_USER_TEMPLATE = """【患者の質問】
{question}

【Knowledge（院内資料・会話ログ由来）】
{context}

この資料の関連部分を要約して、患者にわかりやすく回答してください。"""

GENERAL_SYSTEM_TEMPLATE = """あなたは歯科医院の「お問い合わせAI」です。患者様の状況整理と、安全な受診案内をします。
このチャットは診断の確定は行いません。断定表現を避け、可能性と受診目安を示します。
緊急性が高い可能性がある場合は、迷わず「受診/お電話」を優先して案内します。

【院内用語ルール】
- 神経の治療 → 抜髄
- 根っこの治療 → 根管治療
- 他の言葉は、感染根管処置、歯周病治療
- 歯周病治療には スケーリング、SRP、歯周ポケット検査
- 大きなレントゲン → パノラマ撮影

【基本】
- 返信は短く、箇条書き中心
- 必要なら確認質問は最大4つまで
- 最後に予約導線（WEB/電話）を簡潔に
- WEB予約URLは必ず {booking_url} を使う
- 電話番号は {phone} と書く
- 最後に「会話を終了（履歴を消す）」を押す案内を入れる
{faq_block}"""


def _one_line(text: str, limit: int = MAX_PROMPT_LINE_CHARS) -> str:
    return re.sub(r"\s+", " ", text or "").strip()[:limit]


def clean_transcript_noise(text: str) -> str:
    """Remove the transcription-tool watermark found in meeting-log chunks."""
    return re.sub(r"Powered by\s*Notta\.?(ai)?", "", text or "", flags=re.IGNORECASE).strip()


def clean_reply_text(text: str) -> str:
    """Reduce HTML/markdown links to bare URLs and tidy whitespace."""
    x = text or ""
    x = re.sub(r'target="_blank"\s*', "", x)
    x = re.sub(r'rel="noopener(?: noreferrer)?"\s*|rel="noreferrer"\s*', "", x)
    x = re.sub(r"<a[^>]*>(.*?)</a>", r"\1", x, flags=re.IGNORECASE)
    x = re.sub(r"\[([^\]]+)\]\((https?://[^)]+)\)", r"\2", x)
    x = re.sub(r"[\"']?\s*>", " ", x)
    x = re.sub(r"Powered by\s*Notta\.?", "", x, flags=re.IGNORECASE)
    x = re.sub(r"[ \t]+\n", "\n", x)
    x = re.sub(r"\n{3,}", "\n\n", x)
    return x.strip()


def get_knowledge_system_prompt(settings: EngineSettings) -> str:
    return KNOWLEDGE_SYSTEM_TEMPLATE.format(booking_url=settings.booking_url, phone=settings.phone)


def build_knowledge_user_prompt(question: str, hits: Sequence[ScoredChunk]) -> str:
    """Render the top corpus chunks as numbered reference blocks."""
    context = "\n\n---\n\n".join(
        f"【資料{i}】{hit.chunk.title} / {hit.chunk.chunk_id}\n{clean_transcript_noise(hit.chunk.text)}"
        for i, hit in enumerate(hits, start=1)
    )
    return KNOWLEDGE_USER_TEMPLATE.format(question=question, context=context)


def get_general_system_prompt(
    settings: EngineSettings, faq_hits: Sequence[ScoredEntry] = (),
) -> str:
    """System prompt for the general fallback, citing near-miss FAQ entries."""
    faq_block = ""
    if faq_hits:
        lines = ["", "参考FAQ（該当しそうなもの）："]
        for i, hit in enumerate(faq_hits, start=1):
            answer = normalize_answer(hit.entry.answer)[:MAX_PROMPT_ANSWER_CHARS]
            lines.append(f"- Q{i}: {_one_line(hit.entry.question)}")
            lines.append(f"  A{i}: {answer}")
        faq_block = "\n".join(lines)
    return GENERAL_SYSTEM_TEMPLATE.format(
        booking_url=settings.booking_url,
        phone=settings.phone,
        faq_block=faq_block,
    ).strip()
