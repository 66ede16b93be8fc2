from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

from maintenance_hub.infra.config import get_settings

logger = logging.getLogger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"


def run_upgrade_head() -> None:
    config = Config(str(ALEMBIC_INI))
    config.set_main_option("sqlalchemy.url", get_settings().database_url)
    logger.info("applying migrations up to head")
    command.upgrade(config, "head")


if __name__ == "__main__":
    logging.basicConfig(level=get_settings().log_level)
    run_upgrade_head()
