"""
Migration Runner - Runs Alembic migrations at application startup.

Applies pending migrations when RUN_MIGRATIONS_ON_STARTUP is set.
"""

from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import Engine, create_engine
from structlog import get_logger

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from videarn.config import settings

logger = get_logger(__name__)

# Path to alembic.ini relative to project root
ALEMBIC_INI_PATH = Path(__file__).parent.parent.parent / "alembic.ini"


@dataclass(frozen=True)
class MigrationStatus:
    """Current and head revision of the schema."""

    current_revision: str | None
    head_revision: str

    @property
    def pending(self) -> bool:
        return self.current_revision != self.head_revision


def _get_sync_database_url() -> str:
    """Get synchronous database URL for migrations.

    Alembic's command API uses synchronous connections, so we need to
    convert asyncpg URLs to psycopg2 URLs.
    """
    return settings.database_url.replace("asyncpg", "psycopg2")


def _build_config(sync_url: str) -> Config:
    alembic_cfg = Config(str(ALEMBIC_INI_PATH))
    alembic_cfg.set_main_option("sqlalchemy.url", sync_url.replace("%", "%%"))
    alembic_cfg.attributes["url_overridden"] = True
    return alembic_cfg


def _get_current_revision(engine: Engine) -> str | None:
    """Get the current database revision."""
    with engine.connect() as conn:
        context = MigrationContext.configure(conn)
        return context.get_current_revision()


def _get_head_revision(alembic_cfg: Config) -> str:
    """Get the head revision from migration scripts."""
    script = ScriptDirectory.from_config(alembic_cfg)
    head = script.get_current_head()
    if head is None:
        raise RuntimeError("No migration scripts found")
    return head


def run_migrations() -> None:
    """
    Run pending Alembic migrations.

    Called at application startup to ensure the database schema is up to date.
    Only runs migrations if there are pending ones.
    """
    if not ALEMBIC_INI_PATH.exists():
        logger.warning("alembic_config_missing", path=str(ALEMBIC_INI_PATH))
        return

    sync_url = _get_sync_database_url()
    alembic_cfg = _build_config(sync_url)

    # Create sync engine to check current state
    engine = create_engine(sync_url)

    try:
        current = _get_current_revision(engine)
        head = _get_head_revision(alembic_cfg)

        if current == head:
            logger.info("database_schema_up_to_date", revision=current)
            return

        logger.info("database_migrations_running", from_revision=current, to_revision=head)

        command.upgrade(alembic_cfg, "head")

        logger.info("database_migrations_complete", revision=_get_current_revision(engine))

    except Exception as e:
        logger.error("database_migration_failed", error=str(e))
        raise RuntimeError(f"Database migration failed: {e}") from e

    finally:
        engine.dispose()


def check_migrations_status() -> MigrationStatus:
    """Check migration status without applying them."""
    sync_url = _get_sync_database_url()
    alembic_cfg = _build_config(sync_url)

    engine = create_engine(sync_url)
    try:
        return MigrationStatus(
            current_revision=_get_current_revision(engine),
            head_revision=_get_head_revision(alembic_cfg),
        )
    finally:
        engine.dispose()
