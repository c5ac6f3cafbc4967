#!/usr/bin/env python3
"""
Tests for ScoringService: AI path, partial responses, fallback, FATAL.
"""

import json
from unittest.mock import MagicMock

import httpx
import openai
import pytest
from pydantic import ValidationError

from core.llm.schema_models import CandidateScore
from core.scorer.fallback import RuleBasedScorer
from core.scorer.models import METHOD_AI, METHOD_RULE_BASED, ScoringErrorType, ScoringStatus
from core.scorer.normalization import MalformedScoreError
from core.scorer.service import (
    DESCRIPTION_EXCERPT_CHARS,
    ScoringService,
    ScoringUnavailableError,
    classify_scoring_error,
)
from tests import FIXED_NOW
from tests.mocks.posting_mocks import MockLLMProvider, make_posting, make_profile

_REQUEST = httpx.Request("POST", "https://api.example.com/v1/chat/completions")


def _status_error(cls, status):
    return cls(f"HTTP {status}", response=httpx.Response(status, request=_REQUEST), body=None)


def _validation_error():
    try:
        CandidateScore.model_validate({"index": "zero"})
    except ValidationError as e:
        return e


def _entry(index, score, rationale="Strong analytics fit"):
    return {"index": index, "score": score, "rationale": rationale}


@pytest.fixture
def fallback():
    return RuleBasedScorer(now_fn=lambda: FIXED_NOW)


@pytest.fixture
def candidates():
    return [make_posting("h0"), make_posting("h1"), make_posting("h2")]


class TestAIPath:

    def test_full_response_is_success(self, fallback, candidates):
        provider = MockLLMProvider({"matches": [_entry(0, 62), _entry(1, 91), _entry(2, 0.75)]})
        service = ScoringService(provider, fallback)

        outcome = service.score(make_profile(), candidates, run_id="r1")

        assert outcome.status == ScoringStatus.SUCCESS
        assert outcome.ok
        assert outcome.fallback_used is False
        assert outcome.partial is False
        assert outcome.error_type is None
        assert [(s.posting.hash, s.score) for s in outcome.scored] == [("h1", 0.91), ("h2", 0.75), ("h0", 0.62)]
        assert all(s.method == METHOD_AI and "ai" in s.tags for s in outcome.scored)

    def test_provider_receives_indexed_payload_and_timeout(self, fallback):
        long_posting = make_posting("h0", description="x" * 5000)
        provider = MockLLMProvider({"matches": [_entry(0, 80)]})
        service = ScoringService(provider, fallback, timeout_seconds=12.5)

        service.score(make_profile(needs_visa_sponsorship=True), [long_posting])

        call = provider.calls[0]
        assert call["timeout"] == 12.5
        assert call["candidates"][0]["index"] == 0
        assert len(call["candidates"][0]["description"]) == DESCRIPTION_EXCERPT_CHARS
        assert call["profile"]["needs_visa_sponsorship"] is True
        assert call["profile"]["languages"] == ["en"]
        assert json.loads(json.dumps(call)) == call

    def test_omitted_candidates_are_filled_by_fallback(self, fallback, candidates):
        provider = MockLLMProvider({"matches": [_entry(0, 90), _entry(2, 80)]})
        service = ScoringService(provider, fallback)

        outcome = service.score(make_profile(), candidates)

        assert outcome.status == ScoringStatus.SUCCESS
        assert outcome.partial is True
        assert outcome.fallback_used is True
        assert outcome.error_type == ScoringErrorType.MALFORMED_RESPONSE
        methods = {s.posting.hash: s.method for s in outcome.scored}
        assert methods == {"h0": METHOD_AI, "h1": METHOD_RULE_BASED, "h2": METHOD_AI}
        assert len(outcome.scored) == len(candidates)

    def test_invalid_entries_are_skipped(self, fallback, candidates):
        provider = MockLLMProvider({"matches": [
            _entry(0, 88),
            _entry(0, 10),
            _entry(7, 90),
            _entry(1, "high"),
            _entry(2, 70, rationale="   "),
            {"index": 1, "score": 50},
        ]})
        service = ScoringService(provider, fallback)

        outcome = service.score(make_profile(), candidates)

        ai = [s for s in outcome.scored if s.method == METHOD_AI]
        assert [(s.posting.hash, s.score) for s in ai] == [("h0", 0.88)]
        assert outcome.partial is True

    def test_empty_candidates_skip_provider(self, fallback):
        provider = MockLLMProvider({"matches": []})
        service = ScoringService(provider, fallback)

        outcome = service.score(make_profile(), [])

        assert outcome.status == ScoringStatus.SUCCESS
        assert outcome.scored == []
        assert provider.calls == []


class TestFallback:

    @pytest.mark.parametrize("response", [None, [], {"matches": "nope"}, {"matches": []},
                                          {"matches": [_entry(9, 80)]}])
    def test_malformed_response_falls_back(self, fallback, candidates, response):
        service = ScoringService(MockLLMProvider(response), fallback)

        outcome = service.score(make_profile(), candidates)

        assert outcome.status == ScoringStatus.FALLBACK
        assert outcome.ok
        assert outcome.error_type == ScoringErrorType.MALFORMED_RESPONSE
        assert outcome.fallback_used is True
        assert len(outcome.scored) == 3
        assert all(s.method == METHOD_RULE_BASED for s in outcome.scored)
        assert all(0.40 <= s.score <= 0.70 for s in outcome.scored)

    def test_timeout_falls_back(self, fallback, candidates):
        service = ScoringService(MockLLMProvider(error=TimeoutError("read timed out")), fallback)

        outcome = service.score(make_profile(), candidates)

        assert outcome.status == ScoringStatus.FALLBACK
        assert outcome.error_type == ScoringErrorType.TIMEOUT
        assert "read timed out" in outcome.error_message

    def test_no_provider_falls_back(self, fallback, candidates):
        outcome = ScoringService(None, fallback).score(make_profile(), candidates)

        assert outcome.status == ScoringStatus.FALLBACK
        assert outcome.error_type == ScoringErrorType.CAPABILITY_UNAVAILABLE

    def test_fallback_failure_is_fatal(self, candidates):
        broken = MagicMock(spec=RuleBasedScorer)
        broken.score.side_effect = RuntimeError("scorer exploded")
        service = ScoringService(MockLLMProvider(error=TimeoutError("slow")), broken)

        outcome = service.score(make_profile(), candidates)

        assert outcome.status == ScoringStatus.FATAL
        assert not outcome.ok
        assert outcome.scored == []
        assert outcome.error_type == ScoringErrorType.TIMEOUT
        assert "scorer exploded" in outcome.error_message


class TestClassifyScoringError:

    @pytest.mark.parametrize("exc,expected", [
        (openai.APITimeoutError(request=_REQUEST), ScoringErrorType.TIMEOUT),
        (TimeoutError(), ScoringErrorType.TIMEOUT),
        (_status_error(openai.RateLimitError, 429), ScoringErrorType.RATE_LIMITED),
        (openai.APIConnectionError(request=_REQUEST), ScoringErrorType.CAPABILITY_UNAVAILABLE),
        (_status_error(openai.InternalServerError, 503), ScoringErrorType.CAPABILITY_UNAVAILABLE),
        (_status_error(openai.AuthenticationError, 401), ScoringErrorType.CAPABILITY_UNAVAILABLE),
        (ScoringUnavailableError("no provider"), ScoringErrorType.CAPABILITY_UNAVAILABLE),
        (MalformedScoreError("bad"), ScoringErrorType.MALFORMED_RESPONSE),
        (json.JSONDecodeError("Expecting value", "", 0), ScoringErrorType.MALFORMED_RESPONSE),
        (_validation_error(), ScoringErrorType.MALFORMED_RESPONSE),
        (KeyError("matches"), ScoringErrorType.MALFORMED_RESPONSE),
        (RuntimeError("??"), ScoringErrorType.UNKNOWN),
    ])
    def test_mapping(self, exc, expected):
        assert classify_scoring_error(exc) == expected
