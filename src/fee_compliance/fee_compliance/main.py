from __future__ import annotations

import importlib
import logging
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .database.bootstrap import apply_schema, apply_seed_sql

from .container import build_container
from .policies.controller import register as register_policies
from .reminders.controller import register as register_reminders

logger = logging.getLogger(__name__)


def create_app() -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))

    logging.basicConfig(
        level=str(getattr(settings, "LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    database_dir = Path(__file__).resolve().parents[3] / "database"
    if bool(getattr(settings, "AUTO_INIT_DB", False)):
        missing = apply_schema(db_config, schema_path=database_dir / "schema.sql")
        if missing:
            raise RuntimeError(f"Schema incomplete, missing tables: {', '.join(missing)}")
    if bool(getattr(settings, "AUTO_SEED_DB", False)):
        apply_seed_sql(db_config, seed_path=database_dir / "seed.sql")
        logger.info("Demo seed ready")

    container = build_container(
        db_config=db_config,
        reminder_interval=timedelta(minutes=int(getattr(settings, "REMINDER_CYCLE_INTERVAL_MINUTES", 60))),
        reconcile_interval=timedelta(minutes=int(getattr(settings, "RECONCILE_INTERVAL_MINUTES", 60))),
        late_fee_interval=timedelta(hours=int(getattr(settings, "LATE_FEE_INTERVAL_HOURS", 24))),
        poll_seconds=float(getattr(settings, "SCHEDULER_POLL_SECONDS", 30)),
        default_academic_year=getattr(settings, "DEFAULT_ACADEMIC_YEAR", None),
    )
    app.extensions["fee_compliance"] = container

    register_reminders(app, container)
    register_policies(app, container)

    if bool(getattr(settings, "SCHEDULER_ENABLED", False)):
        container.scheduler.start()

    return app
