"""Value types passed between theme scout stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

RankingSource = Literal["model", "fallback"]
ScoutStatus = Literal["success", "no_candidates"]


@dataclass(frozen=True, slots=True)
class ChunkNode:
    id: str
    content: str


@dataclass(frozen=True, slots=True)
class CardNode:
    id: str
    title: str
    chunks: tuple[ChunkNode, ...] = ()


@dataclass(frozen=True, slots=True)
class ThemeNode:
    id: str
    name: str
    cards: tuple[CardNode, ...] = ()


@dataclass(frozen=True, slots=True)
class AssetContentTree:
    """Read-only snapshot of an asset and its ordered research tree."""

    id: str
    name: str
    description: str | None
    kind: str
    user_id: str
    themes: tuple[ThemeNode, ...] = ()

    @property
    def theme_names(self) -> list[str]:
        return [theme.name for theme in self.themes]


@dataclass(frozen=True, slots=True)
class CorpusEntry:
    """One candidate theme from the template catalog."""

    title: str
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CandidateTheme:
    """Corpus entry scored against an asset document."""

    title: str
    evidence: tuple[str, ...]
    tfidf_score: float


@dataclass(frozen=True, slots=True)
class RankedTheme:
    """Candidate with a 0-1 relevance score attached."""

    title: str
    evidence: tuple[str, ...]
    tfidf_score: float
    relevance_score: float

    @classmethod
    def from_candidate(cls, candidate: CandidateTheme, relevance_score: float) -> RankedTheme:
        return cls(
            title=candidate.title,
            evidence=candidate.evidence,
            tfidf_score=candidate.tfidf_score,
            relevance_score=relevance_score,
        )


@dataclass(frozen=True, slots=True)
class RerankOutcome:
    """Reranker result tagged with where the relevance scores came from."""

    source: RankingSource
    themes: list[RankedTheme]
    error: str | None = None

    @property
    def degraded(self) -> bool:
        return self.source == "fallback"


@dataclass(frozen=True, slots=True)
class NewSuggestion:
    """Suggestion row to insert in DRAFT status."""

    asset_id: str
    name: str
    evidence: list[str]
    relevance_score: float


@dataclass(slots=True)
class ScoutResult:
    """Outcome of one theme scout job."""

    status: ScoutStatus
    suggestion_ids: list[str] = field(default_factory=list)
    ranking_source: RankingSource | None = None
