"""Lexical TF-IDF pre-filter for candidate themes."""

from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Sequence

from theme_scout.services.scout.types import CandidateTheme, CorpusEntry

NON_WORD_PATTERN = re.compile(r"[^\w\s]")
MIN_TOKEN_LENGTH = 3
EVIDENCE_WINDOW_CHARS = 50
MAX_EVIDENCE_SNIPPETS = 3
TITLE_MATCH_BONUS = 2.0
FOCUS_KEYWORD_BOOST = 1.5


def tokenize(text: str) -> list[str]:
    """Lowercase, strip punctuation and drop tokens of two characters or less."""
    cleaned = NON_WORD_PATTERN.sub(" ", (text or "").lower())
    return [token for token in cleaned.split() if len(token) >= MIN_TOKEN_LENGTH]


def context_window(text: str, start: int, match_length: int) -> str:
    """Slice the text around a match with a fixed margin on both sides."""
    left = max(0, start - EVIDENCE_WINDOW_CHARS)
    right = min(len(text), start + match_length + EVIDENCE_WINDOW_CHARS)
    return text[left:right]


def find_in_text(text: str, needle: str) -> re.Match[str] | None:
    """Case-insensitive search that reports offsets in the original text."""
    return re.search(re.escape(needle), text, re.IGNORECASE)


def keyword_document_frequencies(candidates: Sequence[CorpusEntry]) -> dict[str, int]:
    """Count, per keyword, the candidates holding a keyword that contains it."""
    lowered_sets = [[keyword.lower() for keyword in candidate.keywords] for candidate in candidates]
    frequencies: dict[str, int] = {}
    for keywords in lowered_sets:
        for keyword in keywords:
            if keyword in frequencies:
                continue
            frequencies[keyword] = sum(
                1 for other in lowered_sets if any(keyword in item for item in other)
            )
    return frequencies


def calculate_tfidf(
    text: str,
    candidates: Sequence[CorpusEntry],
    focus_keywords: Sequence[str] | None = None,
) -> list[CandidateTheme]:
    """Score every candidate against the document.

    Keyword hits add `tf * ln(N / df)`, boosted 1.5x when a focus keyword is
    a substring of the matched keyword. A title found anywhere in the
    document adds a flat bonus. Each hit contributes a context snippet;
    snippets are deduplicated and capped at three.

    Returns candidates in input order; empty text or no candidates yields [].
    """
    if not text or not candidates:
        return []

    term_frequency = Counter(tokenize(text))
    document_frequency = keyword_document_frequencies(candidates)
    candidate_count = len(candidates)
    focus = [keyword.lower() for keyword in (focus_keywords or []) if keyword]

    results: list[CandidateTheme] = []
    for candidate in candidates:
        evidence: list[str] = []
        score = 0.0

        for keyword in candidate.keywords:
            keyword_lower = keyword.lower()
            tf = term_frequency.get(keyword_lower, 0)
            if tf <= 0:
                continue

            idf = math.log(candidate_count / max(document_frequency.get(keyword_lower, 1), 1))
            increment = tf * idf
            if any(focus_keyword in keyword_lower for focus_keyword in focus):
                increment *= FOCUS_KEYWORD_BOOST
            score += increment

            match = find_in_text(text, keyword)
            if match:
                evidence.append(context_window(text, match.start(), len(match.group())))

        if candidate.title:
            match = find_in_text(text, candidate.title)
            if match:
                score += TITLE_MATCH_BONUS
                evidence.append(context_window(text, match.start(), len(match.group())))

        results.append(
            CandidateTheme(
                title=candidate.title,
                evidence=tuple(dict.fromkeys(evidence))[:MAX_EVIDENCE_SNIPPETS],
                tfidf_score=score,
            )
        )
    return results


def top_candidates(candidates: Sequence[CandidateTheme], limit: int) -> list[CandidateTheme]:
    """Highest TF-IDF scores first, stable for ties."""
    ranked = sorted(candidates, key=lambda candidate: candidate.tfidf_score, reverse=True)
    return ranked[: max(0, limit)]
