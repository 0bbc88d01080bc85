from __future__ import annotations

import argparse
import logging
import sys

from bootstrap import (
    MIGRATION_MARKER_KEY,
    clear_bootstrap_marker,
    has_bootstrap_marker,
    run_bootstrap_migrations,
    set_bootstrap_marker,
)
from config import Settings
from database import build_engine, build_session_factory

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create tables and seed the super admin.")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run migrations even if the one-time marker already exists.",
    )
    parser.add_argument(
        "--clear-marker",
        action="store_true",
        help=f"Clear migration marker key `{MIGRATION_MARKER_KEY}` before running.",
    )
    parser.add_argument(
        "--clear-only",
        action="store_true",
        help="Clear marker and exit without running migrations.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    settings = Settings.from_env()
    engine = build_engine(settings.database_url)
    session_factory = build_session_factory(engine)

    if args.clear_marker or args.clear_only:
        removed = clear_bootstrap_marker(session_factory)
        if removed:
            logger.info("Cleared migration marker `%s`.", MIGRATION_MARKER_KEY)
        else:
            logger.info("Marker `%s` was already absent.", MIGRATION_MARKER_KEY)
        if args.clear_only:
            return 0

    if has_bootstrap_marker(session_factory) and not args.force:
        logger.info(
            "One-time migration marker `%s` already exists. Nothing to do. Use --force to rerun.",
            MIGRATION_MARKER_KEY,
        )
        return 0

    logger.info("Running backend bootstrap migrations...")
    run_bootstrap_migrations(engine, session_factory, settings)
    set_bootstrap_marker(session_factory)
    logger.info("Migrations completed and marker `%s` updated.", MIGRATION_MARKER_KEY)
    return 0


if __name__ == "__main__":
    sys.exit(main())
