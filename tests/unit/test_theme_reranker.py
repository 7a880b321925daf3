"""Unit tests for model reranking and its TF-IDF fallback."""

from __future__ import annotations

import asyncio

import pytest

from theme_scout.agents.theme_ranker import (
    ThemeRankerAgent,
    ThemeRankerInput,
    ThemeRankerOutput,
    ThemeRanking,
)
from theme_scout.services.scout.reranker import (
    MalformedRankingError,
    ThemeReranker,
    fallback_relevance,
    map_rankings,
)
from theme_scout.services.scout.types import CandidateTheme

CANDIDATES = [
    CandidateTheme(title="Robotics", evidence=("every robot on the line",), tfidf_score=3.4),
    CandidateTheme(title="Batteries", evidence=("cell chemistry",), tfidf_score=12.0),
    CandidateTheme(title="AI", evidence=(), tfidf_score=0.0),
]


class _StaticAgent:
    def __init__(self, output: ThemeRankerOutput) -> None:
        self.output = output
        self.inputs: list[ThemeRankerInput] = []

    async def run(self, input_data: ThemeRankerInput) -> ThemeRankerOutput:
        self.inputs.append(input_data)
        return self.output


class _FailingAgent:
    async def run(self, input_data: ThemeRankerInput) -> ThemeRankerOutput:
        raise RuntimeError("provider unavailable")


class _SlowAgent:
    async def run(self, input_data: ThemeRankerInput) -> ThemeRankerOutput:
        await asyncio.sleep(5)
        return ThemeRankerOutput()


def test_fallback_relevance_scales_and_caps() -> None:
    assert fallback_relevance(3.4) == pytest.approx(0.34)
    assert fallback_relevance(12.0) == 0.95
    assert fallback_relevance(0.0) == 0.0


def test_map_rankings_uses_one_based_indices_and_skips_duplicates() -> None:
    output = ThemeRankerOutput(
        rankings=[
            ThemeRanking(index=2, score=0.9),
            ThemeRanking(index=1, score=0.6),
            ThemeRanking(index=2, score=0.1),
        ]
    )

    ranked = map_rankings(output, CANDIDATES)

    assert [(theme.title, theme.relevance_score) for theme in ranked] == [
        ("Batteries", 0.9),
        ("Robotics", 0.6),
    ]
    assert ranked[1].evidence == ("every robot on the line",)


def test_map_rankings_rejects_out_of_range_index() -> None:
    output = ThemeRankerOutput(rankings=[ThemeRanking(index=4, score=0.9)])

    with pytest.raises(MalformedRankingError):
        map_rankings(output, CANDIDATES)


@pytest.mark.asyncio
async def test_rerank_returns_model_scores() -> None:
    agent = _StaticAgent(ThemeRankerOutput(rankings=[ThemeRanking(index=1, score=0.8)]))
    reranker = ThemeReranker(agent=agent, timeout_seconds=1.0, min_score=0.25)

    outcome = await reranker.rerank(
        asset_name="Tesla",
        asset_description="robotics company",
        candidates=CANDIDATES,
    )

    assert outcome.source == "model"
    assert not outcome.degraded
    assert [theme.title for theme in outcome.themes] == ["Robotics"]
    assert agent.inputs[0].candidate_titles == ["Robotics", "Batteries", "AI"]
    assert agent.inputs[0].min_score == 0.25


@pytest.mark.asyncio
async def test_rerank_falls_back_on_agent_error() -> None:
    reranker = ThemeReranker(agent=_FailingAgent(), timeout_seconds=1.0)

    outcome = await reranker.rerank(
        asset_name="Tesla",
        asset_description="",
        candidates=CANDIDATES,
    )

    assert outcome.source == "fallback"
    assert outcome.degraded
    assert outcome.error == "RuntimeError: provider unavailable"
    assert [(theme.title, theme.relevance_score) for theme in outcome.themes] == [
        ("Robotics", pytest.approx(0.34)),
        ("Batteries", 0.95),
        ("AI", 0.0),
    ]


@pytest.mark.asyncio
async def test_rerank_falls_back_on_timeout() -> None:
    reranker = ThemeReranker(agent=_SlowAgent(), timeout_seconds=0.01)

    outcome = await reranker.rerank(
        asset_name="Tesla",
        asset_description="",
        candidates=CANDIDATES,
    )

    assert outcome.source == "fallback"
    assert len(outcome.themes) == len(CANDIDATES)


@pytest.mark.asyncio
async def test_rerank_falls_back_on_unmappable_output() -> None:
    agent = _StaticAgent(ThemeRankerOutput(rankings=[ThemeRanking(index=0, score=0.5)]))
    reranker = ThemeReranker(agent=agent, timeout_seconds=1.0)

    outcome = await reranker.rerank(
        asset_name="Tesla",
        asset_description="",
        candidates=CANDIDATES,
    )

    assert outcome.source == "fallback"
    assert outcome.error is not None
    assert outcome.error.startswith("MalformedRankingError")


@pytest.mark.asyncio
async def test_rerank_without_candidates_skips_agent() -> None:
    agent = _StaticAgent(ThemeRankerOutput())
    reranker = ThemeReranker(agent=agent)

    outcome = await reranker.rerank(asset_name="Tesla", asset_description="", candidates=[])

    assert outcome.themes == []
    assert agent.inputs == []


def test_ranker_prompt_numbers_candidates_and_states_threshold() -> None:
    agent = ThemeRankerAgent(model_override="test")

    prompt = agent._build_prompt(
        ThemeRankerInput(
            asset_name="Tesla",
            asset_description="",
            candidate_titles=["Robotics", "AI"],
            min_score=0.25,
        )
    )

    assert '"Tesla"' in prompt
    assert "1. Robotics\n2. AI" in prompt
    assert "(no description)" in prompt
    assert "score >= 0.25" in prompt
    assert agent.model_settings["temperature"] == 0.3
