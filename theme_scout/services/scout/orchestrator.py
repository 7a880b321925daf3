"""Theme scout pipeline: quota → extract → corpus → TF-IDF → rerank → persist."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from theme_scout.config import settings
from theme_scout.core.database import rollback_read_only_transaction
from theme_scout.core.exceptions import AssetNotFoundError, QuotaExceededError
from theme_scout.core.redis import get_cache_store
from theme_scout.repositories.asset_repository import AssetRepository, SqlAssetRepository
from theme_scout.repositories.suggestion_repository import (
    SqlSuggestionRepository,
    SuggestionRepository,
)
from theme_scout.repositories.theme_template_repository import SqlThemeTemplateCatalog
from theme_scout.services.scout.content_extractor import extract_asset_content
from theme_scout.services.scout.corpus import ThemeCorpusCache
from theme_scout.services.scout.quota import (
    QuotaService,
    SqlQuotaService,
    estimate_token_usage,
    reconcile_token_usage,
)
from theme_scout.services.scout.reranker import ThemeReranker
from theme_scout.services.scout.tfidf import calculate_tfidf, top_candidates
from theme_scout.services.scout.types import (
    NewSuggestion,
    RankedTheme,
    ScoutResult,
)

logger = logging.getLogger(__name__)


def select_suggestions(
    ranked: Sequence[RankedTheme],
    *,
    min_relevance: float,
    limit: int,
) -> list[RankedTheme]:
    """Keep themes at or above the threshold, best first, capped at `limit`."""
    eligible = [theme for theme in ranked if theme.relevance_score >= min_relevance]
    eligible.sort(key=lambda theme: theme.relevance_score, reverse=True)
    return eligible[: max(0, limit)]


class ThemeScoutService:
    """Runs one scouting job end to end against injected collaborators."""

    def __init__(
        self,
        *,
        assets: AssetRepository,
        corpus: ThemeCorpusCache,
        quota: QuotaService,
        suggestions: SuggestionRepository,
        reranker: ThemeReranker,
        release_reads: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self.assets = assets
        self.corpus = corpus
        self.quota = quota
        self.suggestions = suggestions
        self.reranker = reranker
        self.release_reads = release_reads
        self.estimated_tokens = settings.theme_scout_estimated_tokens
        self.candidate_limit = settings.theme_scout_candidate_limit
        self.suggestion_limit = settings.theme_scout_suggestion_limit
        self.min_relevance = settings.theme_scout_min_relevance

    async def run(
        self,
        *,
        asset_id: str,
        user_id: str,
        focus_keywords: Sequence[str] | None = None,
    ) -> ScoutResult:
        """Scout themes for one asset and persist draft suggestions."""
        t0 = time.perf_counter()
        log_context = {"asset_id": asset_id, "user_id": user_id}
        logger.info("Scout job started", extra=log_context)

        if await self.quota.check_and_reserve(user_id, self.estimated_tokens):
            raise QuotaExceededError(user_id, self.estimated_tokens)

        asset = await self.assets.get_asset_with_content_tree(asset_id)
        if asset is None:
            raise AssetNotFoundError(asset_id)

        document = extract_asset_content(asset)
        existing_names = set(asset.theme_names)
        corpus = [
            entry
            for entry in await self.corpus.get_corpus(asset.kind)
            if entry.title not in existing_names
        ]
        candidates = top_candidates(
            calculate_tfidf(document, corpus, focus_keywords),
            self.candidate_limit,
        )
        if not candidates:
            logger.info("No candidate themes found", extra=log_context)
            return ScoutResult(status="no_candidates")

        # Nothing else is read before the model call; do not hold a
        # connection idle in transaction while waiting on it.
        if self.release_reads is not None:
            await self.release_reads()

        outcome = await self.reranker.rerank(
            asset_name=asset.name,
            asset_description=asset.description or "",
            candidates=candidates,
        )
        selected = select_suggestions(
            outcome.themes,
            min_relevance=self.min_relevance,
            limit=self.suggestion_limit,
        )

        suggestion_ids = [
            await self.suggestions.create(
                NewSuggestion(
                    asset_id=asset_id,
                    name=theme.title,
                    evidence=list(theme.evidence),
                    relevance_score=theme.relevance_score,
                )
            )
            for theme in selected
        ]

        await reconcile_token_usage(
            self.quota,
            user_id=user_id,
            estimated_tokens=self.estimated_tokens,
            actual_tokens=estimate_token_usage(candidates, outcome.themes),
        )

        logger.info(
            "Scout job completed",
            extra={
                **log_context,
                "candidate_count": len(candidates),
                "suggestion_count": len(suggestion_ids),
                "ranking_source": outcome.source,
                "ranking_degraded": outcome.degraded,
                "duration_s": round(time.perf_counter() - t0, 2),
            },
        )
        return ScoutResult(
            status="success",
            suggestion_ids=suggestion_ids,
            ranking_source=outcome.source,
        )


def build_theme_scout_service(session: AsyncSession) -> ThemeScoutService:
    """Wire the service to the database session, Redis cache and ranker agent."""

    async def _release_reads() -> None:
        await rollback_read_only_transaction(session, context="theme_scout")

    return ThemeScoutService(
        assets=SqlAssetRepository(session),
        corpus=ThemeCorpusCache(
            cache=get_cache_store(),
            catalog=SqlThemeTemplateCatalog(session),
        ),
        quota=SqlQuotaService(),
        suggestions=SqlSuggestionRepository(session),
        reranker=ThemeReranker(),
        release_reads=_release_reads,
    )
