#!/usr/bin/env python3
"""
Report whether the database schema is at the latest Alembic revision.

Exits 0 when up to date, 1 when migrations are pending. Useful as a
deploy gate when RUN_MIGRATIONS_ON_STARTUP is off.
"""

import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import structlog

from videarn.db.migration_runner import check_migrations_status
from videarn.observability import setup_logging

logger = structlog.get_logger()


def main() -> None:
    setup_logging()
    status = check_migrations_status()
    logger.info(
        "migration_status",
        current_revision=status.current_revision,
        head_revision=status.head_revision,
        pending=status.pending,
    )
    sys.exit(1 if status.pending else 0)


if __name__ == "__main__":
    main()
