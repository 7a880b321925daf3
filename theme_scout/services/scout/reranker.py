"""Language-model reranking of TF-IDF candidates with a lexical fallback."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from theme_scout.agents.theme_ranker import (
    ThemeRankerAgent,
    ThemeRankerInput,
    ThemeRankerOutput,
)
from theme_scout.config import settings
from theme_scout.services.scout.types import CandidateTheme, RankedTheme, RerankOutcome

logger = logging.getLogger(__name__)

FALLBACK_SCORE_DIVISOR = 10.0
FALLBACK_SCORE_CEILING = 0.95


class RankerAgent(Protocol):
    async def run(self, input_data: ThemeRankerInput) -> ThemeRankerOutput: ...


class MalformedRankingError(ValueError):
    """Model output cannot be mapped back onto the candidate list."""


def fallback_relevance(tfidf_score: float) -> float:
    """Map a TF-IDF score onto the 0-0.95 relevance scale."""
    return min(tfidf_score / FALLBACK_SCORE_DIVISOR, FALLBACK_SCORE_CEILING)


def rank_by_fallback(candidates: Sequence[CandidateTheme]) -> list[RankedTheme]:
    """Score every candidate from its TF-IDF score; nothing is dropped."""
    return [
        RankedTheme.from_candidate(candidate, fallback_relevance(candidate.tfidf_score))
        for candidate in candidates
    ]


def map_rankings(
    output: ThemeRankerOutput,
    candidates: Sequence[CandidateTheme],
) -> list[RankedTheme]:
    """Attach model scores to the candidates the model returned."""
    ranked: list[RankedTheme] = []
    seen: set[int] = set()
    for ranking in output.rankings:
        if ranking.index < 1 or ranking.index > len(candidates):
            raise MalformedRankingError(
                f"Ranking index {ranking.index} outside 1..{len(candidates)}"
            )
        if ranking.index in seen:
            continue
        seen.add(ranking.index)
        ranked.append(RankedTheme.from_candidate(candidates[ranking.index - 1], ranking.score))
    return ranked


class ThemeReranker:
    """Ask the ranker agent for relevance scores, falling back on any failure."""

    def __init__(
        self,
        *,
        agent: RankerAgent | None = None,
        timeout_seconds: float | None = None,
        min_score: float | None = None,
    ) -> None:
        self._agent = agent
        self.timeout_seconds = timeout_seconds or settings.llm_timeout_seconds
        self.min_score = settings.theme_scout_min_relevance if min_score is None else min_score

    @property
    def agent(self) -> RankerAgent:
        if self._agent is None:
            self._agent = ThemeRankerAgent()
        return self._agent

    async def rerank(
        self,
        *,
        asset_name: str,
        asset_description: str,
        candidates: Sequence[CandidateTheme],
    ) -> RerankOutcome:
        """Return model scores, or TF-IDF-derived scores tagged as fallback."""
        if not candidates:
            return RerankOutcome(source="model", themes=[])

        input_data = ThemeRankerInput(
            asset_name=asset_name,
            asset_description=asset_description,
            candidate_titles=[candidate.title for candidate in candidates],
            min_score=self.min_score,
        )
        try:
            output = await asyncio.wait_for(
                self.agent.run(input_data),
                timeout=self.timeout_seconds,
            )
            themes = map_rankings(output, candidates)
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
            logger.warning(
                "Theme ranking failed, falling back to TF-IDF scores",
                extra={
                    "asset_name": asset_name,
                    "candidate_count": len(candidates),
                    "error": error,
                },
            )
            return RerankOutcome(source="fallback", themes=rank_by_fallback(candidates), error=error)

        logger.info(
            "Theme ranking completed",
            extra={
                "asset_name": asset_name,
                "candidate_count": len(candidates),
                "ranked_count": len(themes),
            },
        )
        return RerankOutcome(source="model", themes=themes)
