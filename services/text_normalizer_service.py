"""
Multilingual transcript normalizer.

Turns a raw Spanish, Hindi (Devanagari or romanized) or English transcript
into lowercase canonical English tokens the rule parser understands.
Coverage is a fixed phrase table, not a translation model.
"""

import re
from typing import Optional
import structlog

from utils.text_utils import (
    collapse_whitespace,
    normalize_digits,
    replace_whole_phrase,
)

logger = structlog.get_logger(__name__)


# Sentence punctuation, plus periods that are not decimal points
_PUNCTUATION = re.compile(r"[,!?।;:¿¡\"“”]|(?<!\d)\.|\.(?!\d)")


# ===================
# PHRASE TABLE
# ===================

# (source phrase, canonical English). Applied longest phrase first.
PHRASE_REPLACEMENTS: list[tuple[str, str]] = [
    # Multi-word product names
    ("pasta dental", "toothpaste"),
    ("pasta de dientes", "toothpaste"),
    ("aceite de cocina", "cooking oil"),
    ("enjuague bucal", "mouthwash"),
    ("गेहूं का आटा", "whole wheat flour"),
    ("गेहूँ का आटा", "whole wheat flour"),
    ("दांत का पेस्ट", "toothpaste"),
    ("मुँह धोने का", "mouthwash"),

    # Spanish verbs
    ("agrega", "add"),
    ("agregar", "add"),
    ("añade", "add"),
    ("anade", "add"),
    ("necesito", "need"),
    ("quiero", "want"),
    ("compra", "buy"),
    ("comprar", "buy"),
    ("elimina", "remove"),
    ("quita", "remove"),
    ("busca", "find"),
    ("buscar", "find"),
    ("encuentra", "find"),
    ("cambia", "change"),
    ("actualiza", "update"),

    # Hindi verbs
    ("मुझे", "need"),
    ("चाहिए", "need"),
    ("चाहिये", "need"),
    ("जोड़ो", "add"),
    ("जोड़ो", "add"),
    ("डालो", "add"),
    ("हटाओ", "remove"),
    ("निकालो", "remove"),
    ("ढूंढो", "find"),
    ("ढूँढो", "find"),
    ("खोजो", "find"),
    ("बदलो", "change"),

    # Hindi units
    ("किलो", "kg"),
    ("किलोग्राम", "kg"),
    ("ग्राम", "g"),
    ("लीटर", "liter"),
    ("मिलीलीटर", "ml"),
    ("बोतलें", "bottles"),
    ("बोतल", "bottle"),
    ("पैक", "pack"),
    ("पीस", "piece"),
    ("टुकड़े", "pieces"),
    ("टुकड़ा", "piece"),

    # Hindi price phrases
    ("से कम", "se kam"),
    ("से ज़्यादा", "se zyada"),
    ("से ज्यादा", "se zyada"),
    ("रुपये", "rupees"),

    # Spanish products
    ("manzanas", "apples"),
    ("manzana", "apple"),
    ("platanos", "bananas"),
    ("platano", "banana"),
    ("bananos", "bananas"),
    ("banano", "banana"),
    ("naranjas", "oranges"),
    ("naranja", "orange"),
    ("leche", "milk"),
    ("pan", "bread"),
    ("arroz", "rice"),
    ("harina", "flour"),
    ("tomates", "tomatoes"),
    ("tomate", "tomato"),
    ("patatas", "potatoes"),
    ("patata", "potato"),
    ("papas", "potatoes"),
    ("papa", "potato"),
    ("cebollas", "onions"),
    ("cebolla", "onion"),
    ("huevos", "eggs"),
    ("huevo", "egg"),
    ("mantequilla", "butter"),
    ("yogur", "yogurt"),
    ("jabon", "soap"),
    ("jabón", "soap"),
    ("champu", "shampoo"),
    ("champú", "shampoo"),
    ("agua", "water"),
    ("aceite", "oil"),
    ("cafe", "coffee"),
    ("café", "coffee"),
    ("té", "tea"),
    ("te", "tea"),

    # Hindi products
    ("सेब", "apples"),
    ("केला", "banana"),
    ("केले", "bananas"),
    ("संतरा", "orange"),
    ("संतरे", "oranges"),
    ("दूध", "milk"),
    ("ब्रेड", "bread"),
    ("चावल", "rice"),
    ("आटा", "flour"),
    ("टमाटर", "tomatoes"),
    ("आलू", "potatoes"),
    ("प्याज", "onions"),
    ("प्याज़", "onions"),
    ("अंडा", "egg"),
    ("अंडे", "eggs"),
    ("मक्खन", "butter"),
    ("दही", "yogurt"),
    ("पनीर", "paneer"),
    ("टूथपेस्ट", "toothpaste"),
    ("साबुन", "soap"),
    ("शैम्पू", "shampoo"),
    ("चॉकलेट", "chocolate"),
    ("किटकैट", "kitkat chocolate"),
    ("पर्क", "perk chocolate"),
    ("कॉफी", "coffee"),
    ("चाय", "tea"),
    ("पानी", "water"),
    ("तेल", "oil"),

    # Romanized Hindi products
    ("seb", "apples"),
    ("kela", "banana"),
    ("kele", "bananas"),
    ("santara", "orange"),
    ("santre", "oranges"),
    ("doodh", "milk"),
    ("atta", "flour"),
    ("tamatar", "tomatoes"),
    ("aloo", "potatoes"),
    ("pyaz", "onions"),
    ("ande", "eggs"),
    ("paani", "water"),
]

# Longest first so "गेहूं का आटा" wins over "आटा"
_ORDERED_REPLACEMENTS = sorted(PHRASE_REPLACEMENTS, key=lambda pair: len(pair[0]), reverse=True)


def strip_punctuation(text: str) -> str:
    """Drop sentence punctuation, keeping decimal points such as '1.5'."""
    return _PUNCTUATION.sub(" ", text)


def translate_phrases(text: str) -> str:
    """Apply the phrase table on whole-phrase boundaries only."""
    updated = text
    for source, target in _ORDERED_REPLACEMENTS:
        updated = replace_whole_phrase(updated, source, target)
    return updated


def normalize_transcript(text: Optional[str], locale: str = "en-US") -> str:
    """
    Canonicalize a transcript.

    Steps: lowercase, ASCII digits, strip punctuation, phrase table,
    collapse whitespace. Never raises; empty input gives "".

    Args:
        text: Raw transcript
        locale: BCP-47 tag of the speaker (informational)

    Returns:
        Lowercase canonical string
    """
    if not text:
        return ""

    updated = normalize_digits(str(text).lower())
    updated = strip_punctuation(updated)
    updated = translate_phrases(collapse_whitespace(updated))
    normalized = collapse_whitespace(updated)

    logger.debug("transcript_normalized", locale=locale, normalized=normalized)
    return normalized
