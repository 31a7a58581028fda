"""Heuristic language scoring of Swedish parliamentary speeches."""

from __future__ import annotations

import re
from dataclasses import dataclass

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_PASSIVE = re.compile(r"\b(blev|blir|blivit|var|är|varit)\b", re.IGNORECASE)
_FORMAL = re.compile(r"\b(följaktligen|emellertid|däremot|sålunda|således)\b", re.IGNORECASE)
_TECHNICAL = re.compile(r"\b(proposition|motion|interpellation|riksdag|utskott)\b", re.IGNORECASE)

MIN_SCORE = 10
MAX_SCORE = 100


@dataclass(frozen=True, slots=True)
class TextScores:
    overall_score: int
    complexity_score: int
    vocabulary_score: int
    rhetorical_score: int
    clarity_score: int
    word_count: int
    sentence_count: int
    avg_sentence_length: float
    avg_word_length: float
    unique_words_ratio: float


def _bounded(value: float) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, round(value)))


def word_count(text: str) -> int:
    return len(text.split())


def score_text(text: str) -> TextScores:
    """Score ``text`` on four axes plus an unweighted overall mean.

    Every score is an integer clamped to 10..100. Pure function.
    """

    words = text.split()
    sentences = [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]
    words_total = len(words)
    sentence_total = max(len(sentences), 1)
    divisor = max(words_total, 1)

    avg_sentence_length = words_total / sentence_total
    avg_word_length = sum(len(word) for word in words) / divisor
    unique_ratio = len({word.lower() for word in words}) / divisor
    complex_ratio = sum(1 for word in words if len(word) > 6) / divisor
    passive_ratio = len(_PASSIVE.findall(text)) / sentence_total
    punctuation = text.count("?") + text.count("!")
    formal = len(_FORMAL.findall(text))
    technical = len(_TECHNICAL.findall(text))

    complexity = min(
        100,
        round(avg_sentence_length * 2 + avg_word_length * 8 + complex_ratio * 30 + passive_ratio * 10),
    )
    vocabulary = min(100, round(unique_ratio * 60 + complex_ratio * 40))
    rhetorical = min(
        100,
        round(
            punctuation / sentence_total * 20
            + formal / divisor * 100 * 30
            + technical / divisor * 100 * 50
        ),
    )
    clarity = min(100, round(100 - abs(avg_sentence_length - 15) * 2 - passive_ratio * 20))
    overall = round((complexity + vocabulary + rhetorical + clarity) * 0.25)

    return TextScores(
        overall_score=_bounded(overall),
        complexity_score=_bounded(complexity),
        vocabulary_score=_bounded(vocabulary),
        rhetorical_score=_bounded(rhetorical),
        clarity_score=_bounded(clarity),
        word_count=words_total,
        sentence_count=sentence_total,
        avg_sentence_length=round(avg_sentence_length, 2),
        avg_word_length=round(avg_word_length, 2),
        unique_words_ratio=round(unique_ratio, 3),
    )


__all__ = ["TextScores", "score_text", "word_count"]
