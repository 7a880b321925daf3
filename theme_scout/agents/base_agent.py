"""Base class for Pydantic AI agents."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Generic, TypeVar, cast

from pydantic import BaseModel
from pydantic_ai import Agent
from pydantic_ai.settings import ModelSettings

from theme_scout.config import settings

logger = logging.getLogger(__name__)

InputT = TypeVar("InputT", bound=BaseModel)
OutputT = TypeVar("OutputT", bound=BaseModel)


class BaseAgent(ABC, Generic[InputT, OutputT]):
    """Abstract base class for Pydantic AI agents.

    Subclasses define `system_prompt`, `output_type` and `_build_prompt`.
    """

    # Model tier for environment-aware resolution (standard / fast)
    model_tier: str = "standard"
    # Explicit model override at the class level (bypasses tier resolution)
    model: str | None = None
    temperature: float = 0.7
    max_retries: int = settings.llm_max_retries
    timeout_seconds: float = settings.llm_timeout_seconds

    def __init__(self, model_override: str | None = None) -> None:
        """Resolve the model: runtime override, class attribute, then tier default."""
        if model_override:
            self._model = model_override
            model_source = "runtime_override"
        elif self.model:
            self._model = self.model
            model_source = "class_override"
        else:
            self._model = settings.get_model(self.model_tier)
            model_source = "tier_default"
        self._agent: Agent[None, OutputT] | None = None

        logger.debug(
            "Agent initialized",
            extra={
                "agent": self.__class__.__name__,
                "model": self._model,
                "model_source": model_source,
                "temperature": self.temperature,
            },
        )

    @property
    def agent(self) -> Agent[None, OutputT]:
        """Lazily initialize and return the Pydantic AI agent."""
        if self._agent is None:
            self._agent = cast(
                Agent[None, OutputT],
                Agent(
                    model=self._model,
                    output_type=self.output_type,
                    system_prompt=self.system_prompt,
                    retries=self.max_retries,
                ),
            )
        return self._agent

    @property
    @abstractmethod
    def system_prompt(self) -> str:
        """System prompt for the agent."""

    @property
    @abstractmethod
    def output_type(self) -> type[OutputT]:
        """Pydantic model type for structured output."""

    @property
    def model_settings(self) -> ModelSettings:
        return ModelSettings(temperature=self.temperature, timeout=self.timeout_seconds)

    async def run(self, input_data: InputT) -> OutputT:
        """Build the prompt, call the model and return its structured output."""
        agent_name = self.__class__.__name__
        prompt = self._build_prompt(input_data)
        logger.info(
            "Prompt built, sending to LLM",
            extra={
                "agent": agent_name,
                "prompt_length": len(prompt),
                "model": self._model,
            },
        )

        t0 = time.perf_counter()
        result = await self.agent.run(prompt, model_settings=self.model_settings)
        elapsed = time.perf_counter() - t0

        logger.info(
            "Agent run completed",
            extra={
                "agent": agent_name,
                "duration_s": round(elapsed, 2),
                "total_tokens": result.usage().total_tokens,
            },
        )
        return result.output

    @abstractmethod
    def _build_prompt(self, input_data: InputT) -> str:
        """Build the user prompt from input data."""
