"""Run fee passes once from the command line.

Usage: python scripts/run_passes.py [reconcile] [reminders] [late-fees] [recalculate] [backfill]
With no arguments runs reconcile, reminders and late-fees in that order.
"""
from __future__ import annotations

import importlib
import json
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.fee_compliance.fee_compliance.container import build_container


def main(argv: list[str]) -> int:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    logging.basicConfig(level=str(getattr(settings, "LOG_LEVEL", "INFO")).upper())

    container = build_container(
        db_config=dict(settings.DB_CONFIG),
        default_academic_year=getattr(settings, "DEFAULT_ACADEMIC_YEAR", None),
    )
    passes = {
        "reconcile": container.reconciler.reconcile_all,
        "reminders": container.reminder_cycle.run,
        "late-fees": container.late_fee_processor.run,
        "recalculate": container.reminder_service.recalculate_all_due_dates,
        "backfill": container.reminder_service.create_for_all_students,
    }

    names = argv or ["reconcile", "reminders", "late-fees"]
    unknown = [n for n in names if n not in passes]
    if unknown:
        print(f"Unknown pass: {', '.join(unknown)} (choose from {', '.join(passes)})")
        return 2

    for name in names:
        summary = passes[name]()
        print(json.dumps(summary.as_dict()))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
