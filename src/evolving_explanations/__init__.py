"""Evolving Explanations - evolutionary explanation refinement for LLM evals."""

__all__ = ["EEConfig", "EvaluationRunner", "PopulationController"]
__version__ = "0.1.0"


def __getattr__(name: str):
    """Lazy imports: avoid loading litellm on CLI startup."""
    if name == "EEConfig":
        from evolving_explanations.config import EEConfig

        return EEConfig
    if name == "PopulationController":
        from evolving_explanations.evolution.loop import PopulationController

        return PopulationController
    if name == "EvaluationRunner":
        from evolving_explanations.runner import EvaluationRunner

        return EvaluationRunner
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
