"""Candidate explanations and pools."""

from evolving_explanations.explanations.candidate import Candidate
from evolving_explanations.explanations.pool import ExplanationPool

__all__ = ["Candidate", "ExplanationPool"]
