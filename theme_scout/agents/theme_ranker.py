"""Theme ranker agent: scores TF-IDF candidates for one asset."""

import logging

from pydantic import BaseModel, Field

from theme_scout.agents.base_agent import BaseAgent

logger = logging.getLogger(__name__)


class ThemeRanking(BaseModel):
    """Relevance score for one numbered candidate."""

    index: int = Field(description="1-based position of the candidate in the list")
    score: float = Field(ge=0, le=1, description="Relevance 0.0-1.0")


class ThemeRankerInput(BaseModel):
    """Input for theme ranker agent."""

    asset_name: str
    asset_description: str = ""
    candidate_titles: list[str]
    min_score: float = 0.25


class ThemeRankerOutput(BaseModel):
    """Output from theme ranker agent."""

    rankings: list[ThemeRanking] = Field(default_factory=list)


class ThemeRankerAgent(BaseAgent[ThemeRankerInput, ThemeRankerOutput]):
    """Ranks candidate research themes by relevance to an asset.

    Only sees titles; the lexical evidence stays on the scout side.
    """

    model_tier = "standard"
    temperature = 0.3  # Low temperature for stable scores

    @property
    def system_prompt(self) -> str:
        return (
            "You are an investment research analyst. You judge how relevant "
            "research themes are to a company or investment profile. Score "
            "conservatively and return structured JSON only."
        )

    @property
    def output_type(self) -> type[ThemeRankerOutput]:
        return ThemeRankerOutput

    def _build_prompt(self, input_data: ThemeRankerInput) -> str:
        logger.debug(
            "Building theme ranking prompt",
            extra={"candidate_count": len(input_data.candidate_titles)},
        )
        candidates_text = "\n".join(
            f"{position}. {title}"
            for position, title in enumerate(input_data.candidate_titles, start=1)
        )
        description = input_data.asset_description or "(no description)"
        return f"""You are analyzing themes for the asset "{input_data.asset_name}".

Asset description: {description}

Rank the following candidate themes by relevance (0.0 to 1.0):
{candidates_text}

Return a JSON object with a "rankings" array of scores, e.g.
{{"rankings": [{{"index": 1, "score": 0.85}}]}}
"index" is the candidate number from the list above.
Only include themes with score >= {input_data.min_score}."""
