import sys
import json
import time
import logging
import signal
import argparse
import threading

from sqlalchemy.exc import OperationalError

from core.app_context import AppContext
from core.config_loader import load_config
from database.init_db import init_db
from pipeline.profiles import load_user_profiles
from pipeline.runner import new_run_id, run_ingestion, run_matching

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Set by SIGINT/SIGTERM; checked between upsert chunks and between users
stop_event = threading.Event()


def signal_handler(sig, frame):
    logger.info("Shutdown signal received")
    stop_event.set()


def load_raw_postings(input_file_path: str) -> list:
    """Load raw postings from a JSON file (a list, or an object with a 'jobs' list)."""
    logger.info(f"Loading raw postings from {input_file_path}")
    with open(input_file_path, 'r') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get('jobs', data.get('data', []))
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON list of postings in {input_file_path}")
    return data


def cmd_init_db(ctx: AppContext, args) -> int:
    init_db(ctx.engine)
    return 0


def cmd_ingest(ctx: AppContext, args) -> int:
    try:
        raw_postings = load_raw_postings(args.input)
    except (OSError, ValueError) as e:
        logger.error(f"Cannot read postings: {e}")
        return 2
    result = run_ingestion(ctx, raw_postings, run_id=args.run_id, stop_event=stop_event)
    return 0 if result.success else 1


def cmd_reclassify(ctx: AppContext, args) -> int:
    run_id = args.run_id or new_run_id()
    try:
        report = ctx.etl_service.reclassify_pool(run_id=run_id)
    except OperationalError as e:
        logger.error(f"[run={run_id}] Posting store unavailable: {e}")
        return 1
    logger.info(
        f"[run={run_id}] Reclassified {report.evaluated} postings: "
        f"{len(report.changes)} changes, filtered={dict(report.filtered)}"
    )
    return 0


def cmd_deactivate_stale(ctx: AppContext, args) -> int:
    run_id = args.run_id or new_run_id()
    days = args.days or ctx.config.ingest.stale_after_days
    try:
        ctx.etl_service.upsert_store.deactivate_stale(days, run_id=run_id)
    except OperationalError as e:
        logger.error(f"[run={run_id}] Posting store unavailable: {e}")
        return 1
    return 0


def cmd_match(ctx: AppContext, args) -> int:
    profiles_file = args.profiles or ctx.config.matching.profiles_file
    if not profiles_file:
        logger.error("No profiles file given (--profiles) or configured (matching.profiles_file)")
        return 2
    try:
        profiles = load_user_profiles(profiles_file)
    except (OSError, ValueError) as e:
        logger.error(f"Cannot read profiles: {e}")
        return 2
    result = run_matching(ctx, profiles, run_id=args.run_id, stop_event=stop_event)
    return 0 if result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Graduate job matching pipeline")
    parser.add_argument('--config', type=str, default='config.yaml',
                        help='Path to config.yaml (default: config.yaml)')
    parser.add_argument('--run-id', type=str, default=None,
                        help='Run identifier for log correlation (default: random)')
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('init-db', help='Create tables if missing')

    ingest = sub.add_parser('ingest', help='Canonicalize, classify and upsert raw postings')
    ingest.add_argument('--input', type=str, required=True, help='JSON file of raw postings')

    sub.add_parser('reclassify', help='Re-run eligibility classification over the active pool')

    stale = sub.add_parser('deactivate-stale', help='Deactivate postings not seen recently')
    stale.add_argument('--days', type=int, default=None,
                       help='Age threshold in days (default: ingest.stale_after_days)')

    match = sub.add_parser('match', help='Match the active pool against user profiles')
    match.add_argument('--profiles', type=str, default=None,
                       help='JSON file of user profiles (default: matching.profiles_file)')
    return parser


COMMANDS = {
    'init-db': cmd_init_db,
    'ingest': cmd_ingest,
    'reclassify': cmd_reclassify,
    'deactivate-stale': cmd_deactivate_stale,
    'match': cmd_match,
}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    config = load_config(args.config)
    ctx = AppContext.build(config)

    start = time.time()
    logger.info(f"=== Running '{args.command}' ===")
    exit_code = COMMANDS[args.command](ctx, args)
    logger.info(f"=== '{args.command}' finished in {time.time() - start:.2f}s (exit={exit_code}) ===")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
