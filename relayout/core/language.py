"""
Script detection for individual characters and target-language filtering.
"""

from __future__ import annotations

import unicodedata
from enum import Enum
from typing import List, Optional, Tuple

from relayout.models.segment import LineSegment, ParagraphSegment


class Language(str, Enum):
    EN_US = "en-US"
    KO_KR = "ko-KR"
    JA_JP = "ja-JP"
    UNSPECIFIED = "unspecified"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Language":
        """Lenient lookup; unknown or empty values map to English."""
        if not value:
            return cls.EN_US
        normalized = value.strip().replace("_", "-").lower()
        for lang in cls:
            if lang.value.lower() == normalized or lang.name.lower().replace("_", "-") == normalized:
                return lang
        short = normalized.split("-")[0]
        return {"en": cls.EN_US, "ko": cls.KO_KR, "ja": cls.JA_JP}.get(short, cls.EN_US)


LANGUAGE_NAMES = {
    Language.EN_US: "American English (United States) (en-US)",
    Language.KO_KR: "Korean (South Korea) (ko-KR)",
    Language.JA_JP: "Japanese (Japan) (ja-JP)",
}


def language_name(language: Language) -> str:
    return LANGUAGE_NAMES.get(language, LANGUAGE_NAMES[Language.EN_US])


HANGUL_PREFIXES = ("HANGUL", "HALFWIDTH HANGUL", "CIRCLED HANGUL", "PARENTHESIZED HANGUL")
# Shared by both kana scripts, so they belong to neither: ー ・ ゛ ゜ ゠ and halfwidth ｰ ･ ﾞ ﾟ
KANA_COMMON_MARKS = (
    "KATAKANA-HIRAGANA",
    "KATAKANA MIDDLE DOT",
    "HALFWIDTH KATAKANA VOICED SOUND MARK",
    "HALFWIDTH KATAKANA SEMI-VOICED SOUND MARK",
)


def _is_kana(name: str) -> bool:
    if any(mark in name for mark in KANA_COMMON_MARKS):
        return False
    return "HIRAGANA" in name or "KATAKANA" in name


def detected_language(ch: str) -> Tuple[bool, Language]:
    """(is a letter of some script, which language that script implies)."""
    name = unicodedata.name(ch, "")
    if name.startswith(HANGUL_PREFIXES):
        return True, Language.KO_KR
    if _is_kana(name):
        return True, Language.JA_JP
    if name.startswith("LATIN") or name.startswith("FULLWIDTH LATIN"):
        return True, Language.EN_US
    if ch.isalpha():
        return True, Language.UNSPECIFIED
    return False, Language.UNSPECIFIED


def is_only_symbol(text: str) -> bool:
    """True when no character belongs to a writing script (punctuation, digits, ...)."""
    return not any(detected_language(ch)[0] for ch in text)


def has_letters(paragraph: ParagraphSegment) -> bool:
    return any(ch.isalpha() for word in paragraph.words for ch in word.text)


def _needs_translation(line: LineSegment, target: Language) -> bool:
    text = "".join(w.text for w in line.words)
    for ch in text:
        is_letter, language = detected_language(ch)
        if is_letter and language != target:
            return True
    return False


def filter_non_target_language(
    paragraphs: List[ParagraphSegment], target: Language
) -> List[ParagraphSegment]:
    """
    Keep only lines holding at least one letter outside the target language.
    Paragraphs left without lines are dropped.
    """
    filtered: List[ParagraphSegment] = []
    for paragraph in paragraphs:
        lines = [line for line in paragraph.lines if _needs_translation(line, target)]
        if lines:
            filtered.append(ParagraphSegment(lines=lines))
    return filtered
