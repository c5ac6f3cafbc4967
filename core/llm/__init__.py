"""LLM Module - LLM services and interfaces."""
from core.llm.interfaces import LLMProvider
from core.llm.openai_service import OpenAIService
from core.llm.schema_models import MATCH_SCORING_SCHEMA, CandidateScore, MatchScoringResponse

__all__ = ['LLMProvider', 'OpenAIService', 'MATCH_SCORING_SCHEMA', 'CandidateScore', 'MatchScoringResponse']
