"""Text normalization for patient utterances, catalog answers and corpus text."""

from __future__ import annotations

import re
import unicodedata

_FULLWIDTH_ALNUM_RE = re.compile(r"[Ａ-Ｚａ-ｚ０-９]")
_WHITESPACE_RE = re.compile(r"[\s　]+")
_SYMBOL_RE = re.compile(r"[\s　/／・.,，。、!！?？\-_:：「」『』【】()（）]")

# Colloquial variants folded to the particles the answer judge understands.
# Order matters: negations are folded before affirmations.
COLLOQUIAL_FOLDS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"違います|ちがいます|違うです"), "いいえ"),
    (re.compile(r"はいです|そうです|そうだよ"), "はい"),
    (re.compile(r"ありません|なしです"), "ない"),
)


def normalize(text: str | None) -> str:
    """Fold full-width Latin letters and digits, collapse whitespace, trim."""
    s = _FULLWIDTH_ALNUM_RE.sub(lambda m: chr(ord(m.group()) - 0xFEE0), text or "")
    return _WHITESPACE_RE.sub(" ", s).strip()


def canonicalize(text: str | None) -> str:
    """NFKC-normalize so compatibility variants (e.g. Kangxi radicals) compare equal."""
    return unicodedata.normalize("NFKC", text or "")


def strip_symbols(text: str) -> str:
    """Drop whitespace and the punctuation/bracket/slash set used in matching."""
    return _SYMBOL_RE.sub("", text)


def fold_colloquial(text: str | None) -> str:
    s = (text or "").strip()
    for pattern, replacement in COLLOQUIAL_FOLDS:
        s = pattern.sub(replacement, s)
    return s


def normalize_answer(text: str | None) -> str:
    """Turn literal ``\\n`` sequences and CRLF from the sheet into real newlines."""
    return (text or "").replace("\\n", "\n").replace("\r\n", "\n").strip()
