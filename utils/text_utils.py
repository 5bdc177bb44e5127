"""
Text utilities shared by the normalizer, the command parser and the
catalog matcher.
"""

import re
import unicodedata
from typing import Optional


_WHITESPACE = re.compile(r"\s+")


def normalize_text(value: Optional[str]) -> str:
    """
    Lowercase and trim for comparisons.

    - "  Whole Milk " → "whole milk"
    - None → ""
    """
    if not value:
        return ""
    return str(value).lower().strip()


def collapse_whitespace(value: str) -> str:
    """Squeeze runs of whitespace into single spaces and trim."""
    return _WHITESPACE.sub(" ", value).strip()


def normalize_digits(value: str) -> str:
    """
    Map digits from any Unicode script to ASCII.

    - "५ किलो" → "5 किलो"
    - "٣" (Arabic-Indic three) → "3"
    """
    return "".join(
        str(unicodedata.decimal(c)) if not c.isascii() and unicodedata.decimal(c, None) is not None else c
        for c in value
    )


def phrase_pattern(phrase: str) -> re.Pattern:
    """
    Whole-phrase pattern delimited by whitespace or string edges.

    Whitespace delimiting is used instead of \\b because Devanagari vowel
    signs are not word characters.
    """
    return re.compile(rf"(^|\s){re.escape(phrase)}(?=\s|$)", re.IGNORECASE)


def replace_whole_phrase(text: str, phrase: str, replacement: str) -> str:
    """
    Replace every whole-phrase occurrence of `phrase`.

    - ("pan integral", "pan", "bread") → "bread integral"
    - ("panela", "pan", "bread") → "panela" (no partial-word hits)
    """
    return phrase_pattern(phrase).sub(lambda m: f"{m.group(1)}{replacement}", text)


def word_pattern(words) -> re.Pattern:
    """Alternation of whole words, longest first so multi-word aliases win."""
    ordered = sorted(set(words), key=len, reverse=True)
    return re.compile(r"\b(?:" + "|".join(re.escape(w) for w in ordered) + r")\b", re.IGNORECASE)


def mask_spans(text: str, spans: list[tuple[int, int]]) -> str:
    """
    Blank out character ranges, keeping every other offset stable.

    Lets several extraction passes report spans against the same text and
    remove them in any order.
    """
    chars = list(text)
    for start, end in spans:
        for i in range(max(0, start), min(len(chars), end)):
            chars[i] = " "
    return "".join(chars)
