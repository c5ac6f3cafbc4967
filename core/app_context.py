import functools
import logging
import os
from dataclasses import dataclass
from typing import Callable, ContextManager, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from core.config_loader import AppConfig, LlmConfig
from core.llm.interfaces import LLMProvider
from core.llm.openai_service import OpenAIService
from core.matcher.candidate_selector import CandidateSelector
from core.matcher.distribution import DiversityDistributor
from core.scorer.fallback import RuleBasedScorer
from core.scorer.persistence import MatchWriter
from core.scorer.service import ScoringService
from database.database import build_engine, build_session_factory
from database.repository import PipelineRepository
from database.uow import pipeline_uow
from etl.orchestrator import PostingETLService
from etl.upsert_store import PostingUpsertStore
from notification.service import LoggingNotificationSink, NotificationSink

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    This eliminates duplicate wiring code and provides a single source
    of truth for service instantiation. DB access should be obtained
    via uow_factory() inside each processing loop.
    """
    config: AppConfig
    engine: Engine
    session_factory: sessionmaker
    uow_factory: Callable[[], ContextManager[PipelineRepository]]
    etl_service: PostingETLService
    selector: CandidateSelector
    scoring_service: ScoringService
    distributor: DiversityDistributor
    match_writer: MatchWriter
    notification_sink: Optional[NotificationSink] = None

    @classmethod
    def build(cls, config: AppConfig) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration

        Returns:
            Fully wired AppContext instance (no DB session attached)
        """
        engine = build_engine(config.database.url, config.database.connect_timeout_seconds)
        session_factory = build_session_factory(engine)
        uow_factory = functools.partial(pipeline_uow, session_factory)

        # ETL Service (does not hold a session - one unit of work per record)
        upsert_store = PostingUpsertStore(
            uow_factory=uow_factory,
            chunk_size=config.ingest.chunk_size,
            max_workers=config.ingest.max_workers,
            inter_chunk_delay_seconds=config.ingest.inter_chunk_delay_seconds,
        )
        etl_service = PostingETLService(upsert_store, uow_factory=uow_factory)

        # Scoring (AI provider is optional; without it every user takes the fallback path)
        scoring_service = ScoringService(
            provider=cls._build_ai_service(config.llm),
            fallback=RuleBasedScorer(
                min_score=config.scorer.fallback_min,
                max_score=config.scorer.fallback_max,
            ),
            timeout_seconds=config.scorer.timeout_seconds,
        )

        notification_sink = None
        if config.notifications.enabled:
            notification_sink = LoggingNotificationSink()

        return cls(
            config=config,
            engine=engine,
            session_factory=session_factory,
            uow_factory=uow_factory,
            etl_service=etl_service,
            selector=CandidateSelector(
                min_pool_size=config.selector.min_pool_size,
                max_candidates=config.selector.max_candidates,
            ),
            scoring_service=scoring_service,
            distributor=DiversityDistributor(config.distribution),
            match_writer=MatchWriter(uow_factory=uow_factory),
            notification_sink=notification_sink,
        )

    @staticmethod
    def _build_ai_service(llm_config: LlmConfig) -> Optional[LLMProvider]:
        """Build OpenAI service from LLM configuration, or None when disabled or keyless."""
        if not llm_config.enabled:
            logger.info("AI scoring disabled in config; rule-based fallback will be used")
            return None
        if not llm_config.api_key and not os.environ.get("OPENAI_API_KEY"):
            logger.warning("No LLM API key configured; rule-based fallback will be used")
            return None

        model_config = {
            'scoring_model': llm_config.scoring_model,
            'scoring_temperature': llm_config.scoring_temperature,
            'request_timeout_seconds': llm_config.request_timeout_seconds,
            'max_attempts': llm_config.max_attempts,
        }

        return OpenAIService(
            base_url=llm_config.base_url,
            api_key=llm_config.api_key,
            model_config=model_config,
        )
