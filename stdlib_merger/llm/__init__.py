"""Hosted LLM adapters used for similarity scoring and translation."""

from .runner import LLMRequest, LLMRunner
from .similarity import LLMSimilarity, SimilarityService

__all__ = ["LLMRequest", "LLMRunner", "LLMSimilarity", "SimilarityService"]
