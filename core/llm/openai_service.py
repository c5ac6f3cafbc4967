"""
OpenAI Service - LLM implementation using OpenAI API.

Scores candidate postings against a user profile with JSON Schema mode.
"""
from typing import Dict, Any, List, Optional, Tuple
import json
import logging
import copy
import re

import openai
from openai import OpenAI
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)
from tenacity import RetryCallState
from core.llm.interfaces import LLMProvider
from core.llm.system_prompts import MATCH_SCORING_SYSTEM_PROMPT
from core.llm.schema_models import MATCH_SCORING_SCHEMA

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Retry helpers
# ---------------------------------------------------------------------------

def _is_retryable(exc: BaseException) -> bool:
    """Return True for transient errors that are worth retrying."""
    return isinstance(exc, (
        openai.RateLimitError,
        openai.APITimeoutError,
        openai.APIConnectionError,
        openai.InternalServerError,
    ))


def _log_retry(retry_state: RetryCallState) -> None:
    """Log a warning before each retry sleep, including Retry-After info."""
    exc = retry_state.outcome.exception()
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    if isinstance(exc, openai.RateLimitError):
        logger.warning(
            "Rate limit hit (attempt %s). Waiting %.1fs before retry. Details: %s",
            retry_state.attempt_number, wait, exc,
        )
    else:
        logger.warning(
            "Transient API error (attempt %s). Waiting %.1fs before retry. Details: %s",
            retry_state.attempt_number, wait, exc,
        )


def _parse_reset_duration(value: str) -> float:
    """Parse an OpenAI reset-timer header value like '1s', '500ms', '1m30s' into seconds."""
    total = 0.0
    for amount, unit in re.findall(r"([\d.]+)(ms|s|m|h)", value):
        a = float(amount)
        if unit == "ms":
            total += a / 1000
        elif unit == "s":
            total += a
        elif unit == "m":
            total += a * 60
        else:  # h
            total += a * 3600
    return total


def _wait_from_rate_limit_headers(exc: openai.RateLimitError) -> float:
    """Extract the longest declared wait from rate-limit response headers.

    Reads (taking the maximum):
      - ``retry-after``                standard HTTP, plain seconds
      - ``x-ratelimit-reset-requests`` OpenAI request-quota reset duration
      - ``x-ratelimit-reset-tokens``   OpenAI token-quota reset duration

    Returns 0.0 if no usable header is present.
    """
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if headers is None:
        return 0.0

    candidates: List[float] = []
    retry_after = headers.get("retry-after", "")
    if retry_after:
        try:
            candidates.append(float(retry_after))
        except ValueError:
            logger.debug("Ignoring non-numeric retry-after header: %r", retry_after)

    for header in ("x-ratelimit-reset-requests", "x-ratelimit-reset-tokens"):
        parsed = _parse_reset_duration(headers.get(header, ""))
        if parsed > 0:
            candidates.append(parsed)

    return max(candidates) if candidates else 0.0


def _wait_respecting_retry_after(retry_state: RetryCallState) -> float:
    """Return how long tenacity should sleep before the next attempt.

    For ``RateLimitError``: honours server-declared timers via response headers.
    For all other retryable errors: falls back to capped exponential backoff.
    """
    exc = retry_state.outcome.exception()
    if isinstance(exc, openai.RateLimitError):
        wait = _wait_from_rate_limit_headers(exc)
        if wait > 0:
            wait = min(wait, 30)
            logger.info("Rate limit headers indicate %.1fs wait.", wait)
            return wait

    exp = wait_exponential(multiplier=1, min=1, max=10)
    return exp(retry_state)


def _llm_retrying(max_attempts: int, total_timeout: Optional[float]) -> Retrying:
    """Return a tenacity Retrying bounded by attempts and, if given, total elapsed time."""
    stop = stop_after_attempt(max_attempts)
    if total_timeout:
        stop = stop | stop_after_delay(total_timeout)
    return Retrying(
        retry=retry_if_exception(_is_retryable),
        wait=_wait_respecting_retry_after,
        stop=stop,
        before_sleep=_log_retry,
        reraise=True,
    )


def _unwrap_schema_spec(spec: Dict[str, Any]) -> Tuple[str, bool, Dict[str, Any]]:
    """Unwrap a schema spec to extract name, strict flag, and raw JSON schema."""
    if isinstance(spec, dict) and "schema" in spec and "name" in spec:
        return spec.get("name", "scoring_response"), bool(spec.get("strict", False)), spec["schema"]
    return "scoring_response", False, spec


def _strip_code_fences(content: str) -> str:
    return _FENCE_RE.sub("", content).strip()


class OpenAIService(LLMProvider):
    """
    OpenAI LLM Service.

    Scores candidates with a strict JSON Schema response format. Transient
    failures are retried inside the caller's time budget; anything else
    propagates for the scorer to classify.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model_config: Optional[Dict[str, Any]] = None
    ):
        client_kwargs = {}
        if api_key:
            client_kwargs['api_key'] = api_key
        if base_url:
            client_kwargs['base_url'] = base_url

        self.client = OpenAI(**client_kwargs)

        self.model_config = model_config or {}
        self.scoring_model = self.model_config.get('scoring_model', 'gpt-4o-mini')
        self.scoring_temperature = self.model_config.get('scoring_temperature', 0.1)
        self.request_timeout = self.model_config.get('request_timeout_seconds', 20)
        self.max_attempts = self.model_config.get('max_attempts', 3)

    def score_candidates(
        self,
        profile_payload: Dict[str, Any],
        candidates_payload: List[Dict[str, Any]],
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        name, strict, raw_schema = _unwrap_schema_spec(MATCH_SCORING_SCHEMA)
        runtime_schema = copy.deepcopy(raw_schema)

        user_message = (
            f"<USER_PROFILE>\n{json.dumps(profile_payload, ensure_ascii=False)}\n</USER_PROFILE>\n\n"
            f"<POSTINGS>\n{json.dumps(candidates_payload, ensure_ascii=False)}\n</POSTINGS>\n\n"
            f"Score all {len(candidates_payload)} postings."
        )
        messages = [
            {"role": "system", "content": MATCH_SCORING_SYSTEM_PROMPT},
            {"role": "user", "content": user_message},
        ]

        request_timeout = self.request_timeout
        if timeout:
            request_timeout = min(request_timeout, timeout)
        client = self.client.with_options(timeout=request_timeout, max_retries=0)

        for attempt in _llm_retrying(self.max_attempts, timeout):
            with attempt:
                response = client.chat.completions.create(
                    model=self.scoring_model,
                    messages=messages,
                    temperature=self.scoring_temperature,
                    response_format={
                        "type": "json_schema",
                        "json_schema": {
                            "name": name,
                            "schema": runtime_schema,
                            "strict": strict,
                        },
                    },
                )

        try:
            content = response.choices[0].message.content
            data = json.loads(_strip_code_fences(content or ""))
        except (json.JSONDecodeError, IndexError, AttributeError) as e:
            logger.error(f"Failed to parse scoring response: {e}")
            raise

        if not isinstance(data, dict):
            raise ValueError(f"Scoring response is not a JSON object: {type(data).__name__}")

        logger.debug(
            f"Scoring model {self.scoring_model} returned {len(data.get('matches', []))} entries "
            f"for {len(candidates_payload)} candidates"
        )
        return data
