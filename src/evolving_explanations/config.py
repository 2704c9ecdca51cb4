"""Configuration for evolutionary explanation runs."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class ModelConfig(BaseModel):
    """The model under evaluation."""
    provider: str = "openai"
    model: str = "gpt-4o-mini"
    api_key: str | None = None

    @property
    def litellm_model(self) -> str:
        """Routing string understood by litellm ("provider/model")."""
        if "/" in self.model:
            return self.model
        return f"{self.provider}/{self.model}"


class EEConfig(BaseModel):
    """Algorithm constants for one evolutionary explanation run."""
    n_shot: int = Field(default=8, ge=0, description="Few-shot examples per initial prompt")
    pool_size: int = Field(default=8, ge=1, alias="POOL_SIZE", description="Candidates per pool")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    judgements_depth: int = Field(default=3, ge=0, description="Sequential judge rounds per generation")
    generations: int = Field(default=8, ge=0, description="Evolution generations")
    max_crossovers: int = Field(default=4, ge=3, description="Exclusive upper bound on crossover parents")
    inner_concurrency: int = Field(default=4, ge=1, description="Concurrency ceiling per batch")
    judgement_max_tokens: int = Field(default=1024, ge=1)
    seed_tag: str = "EE-CROSSOVER"

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def _check_consistency(self) -> EEConfig:
        if self.n_shot % 2 != 0:
            raise ValueError(f"n_shot must be even, got {self.n_shot}")
        # Crossover draws up to max_crossovers - 1 distinct parents.
        if self.generations > 0 and self.pool_size < self.max_crossovers - 1:
            raise ValueError(
                f"pool_size={self.pool_size} is too small for max_crossovers={self.max_crossovers}"
            )
        return self
