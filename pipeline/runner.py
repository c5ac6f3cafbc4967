"""Shared pipeline runner module.

This module contains the ingestion and per-user matching pipeline logic
used by main.py. Each run carries a run id that prefixes its log lines.
"""

import time
import uuid
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from dataclasses import dataclass, field

from sqlalchemy.exc import OperationalError

from core.app_context import AppContext
from core.matcher.dto import PostingDTO, RelaxationEvent, UserProfile
from core.scorer.models import ScoringStatus
from core.scorer.persistence import MatchWriteResult
from notification.message_builder import MatchDigest, build_digest


logger = logging.getLogger(__name__)

USER_STATUS_MATCHED = "matched"
USER_STATUS_NO_ELIGIBLE = "no_eligible_postings"
USER_STATUS_FAILED = "failed"
USER_STATUS_SKIPPED = "skipped"


class StoreUnavailableError(RuntimeError):
    """Raised when the posting store cannot be reached at the start of a run."""


def new_run_id() -> str:
    return uuid.uuid4().hex


@dataclass
class IngestionRunResult:
    """Result of running the ingestion pipeline."""
    success: bool
    run_id: str
    received: int = 0
    accepted: int = 0
    rejected: int = 0
    filtered: Dict[str, int] = field(default_factory=dict)
    inserted: int = 0
    updated: int = 0
    failed: int = 0
    interrupted: bool = False
    error: Optional[str] = None
    execution_time: float = 0.0


@dataclass
class UserMatchResult:
    """Outcome of one user's select -> score -> distribute -> write flow."""
    user_key: str
    status: str
    candidates: int = 0
    selected: int = 0
    scoring_status: Optional[ScoringStatus] = None
    fallback_used: bool = False
    relaxations: List[RelaxationEvent] = field(default_factory=list)
    write: MatchWriteResult = field(default_factory=MatchWriteResult)
    digest: Optional[MatchDigest] = None
    notified: bool = False
    error: Optional[str] = None


@dataclass
class MatchingRunResult:
    """Result of running the matching pipeline."""
    success: bool
    run_id: str
    pool_size: int = 0
    users: List[UserMatchResult] = field(default_factory=list)
    error: Optional[str] = None
    execution_time: float = 0.0

    def count(self, status: str) -> int:
        return sum(1 for u in self.users if u.status == status)

    @property
    def saved_count(self) -> int:
        return sum(u.write.written for u in self.users)


def run_ingestion(
    ctx: AppContext,
    raw_postings: Iterable[Mapping[str, Any]],
    run_id: Optional[str] = None,
    stop_event: Optional[threading.Event] = None
) -> IngestionRunResult:
    """Canonicalize, classify and persist one batch of raw postings."""
    run_id = run_id or new_run_id()
    pipeline_start = time.time()

    logger.info("=" * 60)
    logger.info(f"STARTING INGESTION PIPELINE [run={run_id}]")
    logger.info("=" * 60)

    try:
        with ctx.uow_factory() as repo:
            repo.ping()
        summary = ctx.etl_service.ingest_batch(raw_postings, run_id=run_id, stop_event=stop_event)
    except OperationalError as e:
        logger.error(f"[run={run_id}] Posting store unavailable: {e}")
        return IngestionRunResult(
            success=False,
            run_id=run_id,
            error=f"Store unavailable: {e}",
            execution_time=time.time() - pipeline_start
        )

    execution_time = time.time() - pipeline_start
    result = IngestionRunResult(
        success=True,
        run_id=run_id,
        received=summary.received,
        accepted=summary.accepted,
        rejected=len(summary.rejected),
        filtered=dict(summary.filtered),
        inserted=summary.upsert.inserted,
        updated=summary.upsert.updated,
        failed=len(summary.upsert.errors),
        interrupted=summary.upsert.interrupted,
        execution_time=execution_time
    )

    logger.info("=" * 60)
    logger.info(
        f"INGESTION PIPELINE COMPLETED in {execution_time:.2f}s [run={run_id}]: "
        f"received={result.received} rejected={result.rejected} inserted={result.inserted} "
        f"updated={result.updated} failed={result.failed} filtered={result.filtered}"
    )
    logger.info("=" * 60)
    return result


def load_active_pool(ctx: AppContext, run_id: str) -> List[PostingDTO]:
    """Load the active posting pool as DTOs; raises StoreUnavailableError if the store is down."""
    try:
        with ctx.uow_factory() as repo:
            repo.ping()
            postings = repo.postings.get_active_pool()
            # Convert to DTOs while session is active
            return [PostingDTO.from_orm(p) for p in postings]
    except OperationalError as e:
        logger.error(f"[run={run_id}] Posting store unavailable: {e}")
        raise StoreUnavailableError(str(e)) from e


def match_user(
    ctx: AppContext,
    profile: UserProfile,
    pool: Sequence[PostingDTO],
    run_id: str
) -> UserMatchResult:
    """Run one user's sub-pipeline sequentially."""
    prefix = f"[run={run_id}] [user={profile.user_key}]"

    selection = ctx.selector.select(profile, pool, run_id)
    result = UserMatchResult(
        user_key=profile.user_key,
        status=USER_STATUS_MATCHED,
        candidates=len(selection.candidates),
        relaxations=list(selection.relaxations),
    )
    if not selection.candidates:
        logger.info(f"{prefix} No eligible postings after all relaxations")
        result.status = USER_STATUS_NO_ELIGIBLE
        result.digest = build_digest(profile, [], run_id)
        result.notified = _notify(ctx, result.digest)
        return result

    outcome = ctx.scoring_service.score(profile, selection.candidates, run_id)
    result.scoring_status = outcome.status
    result.fallback_used = outcome.fallback_used
    if not outcome.ok:
        result.status = USER_STATUS_FAILED
        result.error = outcome.error_message
        logger.error(f"{prefix} Scoring failed: {outcome.error_message}")
        return result

    distribution = ctx.distributor.distribute(outcome.scored, profile, run_id)
    result.relaxations.extend(distribution.relaxations)
    result.selected = len(distribution.selected)

    result.write = ctx.match_writer.write(profile.user_key, distribution.selected, run_id)
    if result.write.errors and not result.write.written:
        result.status = USER_STATUS_FAILED
        result.error = f"All {len(result.write.errors)} match writes failed"
        return result

    result.digest = build_digest(profile, distribution.selected, run_id)
    result.notified = _notify(ctx, result.digest)
    return result


def run_matching(
    ctx: AppContext,
    profiles: Sequence[UserProfile],
    run_id: Optional[str] = None,
    stop_event: Optional[threading.Event] = None
) -> MatchingRunResult:
    """Run the matching pipeline for every profile against the stored active pool.

    A store outage fails the whole run. A failure inside one user's flow
    fails only that user.

    Args:
        ctx: Application context with config and wired services
        profiles: Users to match
        run_id: Identifier prefixed to every log line (generated if omitted)
        stop_event: Optional threading event to signal early termination

    Returns:
        MatchingRunResult with per-user outcomes
    """
    run_id = run_id or new_run_id()
    if stop_event is None:
        stop_event = threading.Event()

    pipeline_start = time.time()

    logger.info("=" * 60)
    logger.info(f"STARTING MATCHING PIPELINE [run={run_id}]")
    logger.info("=" * 60)

    if not ctx.config.matching.enabled:
        logger.info("=== MATCHING PIPELINE: Skipped (disabled in config) ===")
        return MatchingRunResult(success=True, run_id=run_id, error="Matching disabled in config")

    step_start = time.time()
    logger.info("=== MATCHING STEP 1: Loading Active Posting Pool ===")
    try:
        pool = load_active_pool(ctx, run_id)
    except StoreUnavailableError as e:
        return MatchingRunResult(
            success=False,
            run_id=run_id,
            error=f"Store unavailable: {e}",
            execution_time=time.time() - pipeline_start
        )
    step_elapsed = time.time() - step_start
    logger.info(f"MATCHING Step 1 completed: Loaded {len(pool)} active postings in {step_elapsed:.2f}s")

    step_start = time.time()
    logger.info(f"=== MATCHING STEP 2: Matching {len(profiles)} Users ===")
    results: List[UserMatchResult] = []

    def _run_user(profile: UserProfile) -> UserMatchResult:
        if stop_event.is_set():
            return UserMatchResult(user_key=profile.user_key, status=USER_STATUS_SKIPPED)
        return match_user(ctx, profile, pool, run_id)

    workers = max(1, min(ctx.config.matching.max_user_workers, len(profiles) or 1))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(_run_user, profile): profile for profile in profiles}
        for future in as_completed(futures):
            profile = futures[future]
            try:
                results.append(future.result())
            except Exception as e:
                logger.exception(f"[run={run_id}] [user={profile.user_key}] Matching failed")
                results.append(UserMatchResult(
                    user_key=profile.user_key,
                    status=USER_STATUS_FAILED,
                    error=f"{type(e).__name__}: {e}"
                ))

    order = {p.user_key: i for i, p in enumerate(profiles)}
    results.sort(key=lambda r: order.get(r.user_key, len(order)))
    step_elapsed = time.time() - step_start

    run_result = MatchingRunResult(
        success=True,
        run_id=run_id,
        pool_size=len(pool),
        users=results,
        execution_time=time.time() - pipeline_start
    )
    logger.info(
        f"MATCHING Step 2 completed in {step_elapsed:.2f}s: "
        f"matched={run_result.count(USER_STATUS_MATCHED)} "
        f"no_eligible={run_result.count(USER_STATUS_NO_ELIGIBLE)} "
        f"failed={run_result.count(USER_STATUS_FAILED)} "
        f"skipped={run_result.count(USER_STATUS_SKIPPED)} saved={run_result.saved_count}"
    )

    logger.info("=" * 60)
    logger.info(f"MATCHING PIPELINE COMPLETED in {run_result.execution_time:.2f}s [run={run_id}]")
    logger.info("=" * 60)
    return run_result


def _notify(ctx: AppContext, digest: MatchDigest) -> bool:
    """Hand a digest to the configured sink; delivery failures never fail the user."""
    if ctx.notification_sink is None:
        return False
    try:
        return bool(ctx.notification_sink.deliver(digest))
    except Exception:
        logger.exception(f"[run={digest.run_id}] [user={digest.user_key}] Notification delivery failed")
        return False
