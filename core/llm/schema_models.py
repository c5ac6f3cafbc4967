"""
Pydantic models for the match scoring response.

The JSON schema sent as OpenAI structured output is generated from these
models, and the same models validate each returned entry.
"""
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class CandidateScore(BaseModel):
    """Score for one candidate, addressed by its position in the request."""
    model_config = ConfigDict(extra='forbid')

    index: int = Field(description="Zero-based index of the candidate in the request list")
    score: float = Field(description="Relevance score from 0 to 100")
    rationale: str = Field(description="One or two sentences explaining the fit, addressed to the candidate")


class MatchScoringResponse(BaseModel):
    """Scores for every candidate in the request."""
    model_config = ConfigDict(extra='forbid')

    matches: List[CandidateScore] = Field(description="One entry per candidate")


MATCH_SCORING_SCHEMA = {
    "name": "match_scoring_response",
    "strict": True,
    "schema": MatchScoringResponse.model_json_schema()
}
