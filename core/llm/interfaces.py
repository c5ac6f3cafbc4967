"""
LLM Provider Interface - Abstract base for AI service providers.

This module defines the interface for LLM services (OpenAI, Ollama, Anthropic, etc.).
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class LLMProvider(ABC):
    """
    Abstract Interface for AI Service Providers (OpenAI, Ollama, Anthropic, etc.).
    """

    @abstractmethod
    def score_candidates(
        self,
        profile_payload: Dict[str, Any],
        candidates_payload: List[Dict[str, Any]],
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Score candidate postings against a user profile.

        Args:
            profile_payload: JSON-serializable user preferences
            candidates_payload: JSON-serializable postings, each carrying an "index"
            timeout: Total time budget in seconds for the call, retries included

        Returns:
            Parsed JSON response of the form {"matches": [{"index", "score", "rationale"}, ...]}
        """
        pass
