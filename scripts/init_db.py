from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.fee_compliance.fee_compliance.database.bootstrap import REQUIRED_TABLES, apply_schema


def main() -> int:
    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)
    target = f"{db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')}"

    missing = apply_schema(db_config, schema_path=REPO_ROOT / "database" / "schema.sql")
    if missing:
        print(f"FAIL: {target} is missing tables: {', '.join(missing)}")
        return 1
    print(f"OK: fee compliance schema ready on {target} ({len(REQUIRED_TABLES)} tables)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
