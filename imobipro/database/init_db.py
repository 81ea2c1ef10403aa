"""Bring the CRM schema up to date: `python -m imobipro.database.init_db [revision]`."""

import logging
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config as AlembicConfig

import imobipro.database.db as db_module
from imobipro.core.startup import bootstrap

PROJECT_ROOT = Path(__file__).resolve().parents[2]
logger = logging.getLogger(__name__)


def alembic_config(database_url: str) -> AlembicConfig:
    cfg = AlembicConfig(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


def init_db(revision: str = "head") -> str:
    """Validate config, pick the reachable database and migrate it to `revision`."""
    bootstrap()
    url = db_module.get_active_database_url()
    command.upgrade(alembic_config(url), revision)
    logger.info(
        "database.migrated",
        extra={"event": "database.migrated", "revision": revision, "scheme": url.split("://", 1)[0]},
    )
    return url


if __name__ == "__main__":
    init_db(sys.argv[1] if len(sys.argv) > 1 else "head")
