"""
Keyword extraction
Frequency-ranked salient terms from an assistant response
"""

import re
from collections import Counter
from typing import Any, List

# ASCII word characters plus Hangul syllables survive; everything else becomes a space
_NON_WORD = re.compile(r"[^\w\s가-힣]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")
_DIGITS_ONLY = re.compile(r"^\d+$")

MIN_KEYWORD_LENGTH = 2
DEFAULT_KEYWORD_LIMIT = 5

STOP_WORDS = frozenset({
    # English
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "is", "are", "was", "were", "be", "been", "have", "has",
    "had", "do", "does", "did", "will", "would", "could", "should", "may",
    "might", "can", "this", "that", "these", "those", "it", "its", "as",
    "from", "into", "not", "so", "if", "than",
    # Korean particles, endings and connectives
    "그", "이", "저", "것", "수", "있", "없", "하", "되", "된", "될", "함", "임",
    "입니다", "습니다", "에서", "에게", "에", "를", "을", "가", "은", "는",
    "으로", "로", "와", "과", "도", "만", "그리고", "또한", "하지만", "그러나",
    "따라서", "그래서", "왜냐하면", "때문에",
})


def normalize_text(text: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    cleaned = _NON_WORD.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def tokenize(text: str) -> List[str]:
    """Split normalized text and drop short, stop-word and numeric tokens."""
    normalized = normalize_text(text)
    if not normalized:
        return []
    return [
        token
        for token in normalized.split(" ")
        if len(token) >= MIN_KEYWORD_LENGTH
        and token not in STOP_WORDS
        and not _DIGITS_ONLY.match(token)
    ]


def extract_keywords(text: Any, limit: int = DEFAULT_KEYWORD_LIMIT) -> List[str]:
    """Return up to ``limit`` keywords, most frequent first.

    Ties keep first-occurrence order: ``Counter`` preserves insertion order
    and ``sorted`` is stable. Any non-string input yields an empty list.
    """
    if not text or not isinstance(text, str) or limit <= 0:
        return []
    frequencies = Counter(tokenize(text))
    ranked = sorted(frequencies.items(), key=lambda item: item[1], reverse=True)
    return [word for word, _ in ranked[:limit]]
