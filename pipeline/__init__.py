"""Pipeline execution modules."""

from .runner import (
    IngestionRunResult,
    MatchingRunResult,
    StoreUnavailableError,
    UserMatchResult,
    new_run_id,
    run_ingestion,
    run_matching,
)
from .profiles import load_user_profiles

__all__ = [
    'run_ingestion', 'run_matching', 'new_run_id', 'load_user_profiles',
    'IngestionRunResult', 'MatchingRunResult', 'UserMatchResult', 'StoreUnavailableError',
]
