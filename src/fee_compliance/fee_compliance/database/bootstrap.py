from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator

import mysql.connector

from .connection import DBConfig

logger = logging.getLogger(__name__)

# Tables the scheduler passes read or write; a schema without them is unusable.
REQUIRED_TABLES = (
    "students",
    "academic_calendars",
    "payments",
    "fee_structures",
    "term_policy_terms",
    "reminder_channel_settings",
    "fee_reminders",
    "fee_reminder_terms",
    "notifications",
)

_DATABASE_DIRECTIVES = re.compile(r"(?im)^\s*(CREATE\s+DATABASE|USE)\b[^;]*;\s*$")
_LINE_COMMENT = re.compile(r"(?m)^\s*--.*$")


def prepare_script(sql: str) -> str:
    """Drop comment lines plus CREATE DATABASE / USE so DB_CONFIG picks the target."""
    return _LINE_COMMENT.sub("", _DATABASE_DIRECTIVES.sub("", sql))


def split_statements(sql: str) -> Iterator[str]:
    """Yield ';'-terminated statements, ignoring semicolons inside quoted literals."""
    start = 0
    quote = None
    i = 0
    while i < len(sql):
        ch = sql[i]
        if ch == "\\" and quote:
            i += 2
            continue
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == ";":
            stmt = sql[start:i].strip()
            if stmt:
                yield stmt
            start = i + 1
        i += 1
    tail = sql[start:].strip()
    if tail:
        yield tail


def _open(target: DBConfig, *, database: bool = True):
    params = {
        "host": target.host,
        "port": target.port,
        "user": target.user,
        "password": target.password,
        "connection_timeout": target.connect_timeout,
    }
    if database:
        params["database"] = target.database
    return mysql.connector.connect(**params)


def execute_script(db_config: dict, path: str | Path) -> int:
    target = DBConfig.from_dict(db_config)
    statements = list(split_statements(prepare_script(Path(path).read_text(encoding="utf-8"))))

    conn = _open(target)
    try:
        cur = conn.cursor()
        for stmt in statements:
            cur.execute(stmt)
        conn.commit()
    except mysql.connector.Error:
        conn.rollback()
        logger.exception("Script %s failed against %s", path, target.database)
        raise
    finally:
        conn.close()
    return len(statements)


def create_database(db_config: dict) -> None:
    target = DBConfig.from_dict(db_config)
    conn = _open(target, database=False)
    try:
        conn.cursor().execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> list[str]:
    """Create the database if needed, run the schema and return any tables still missing."""
    create_database(db_config)
    count = execute_script(db_config, schema_path)
    missing = missing_tables(db_config)
    if missing:
        logger.warning("Schema applied (%d statements) but tables are missing: %s", count, ", ".join(missing))
    else:
        logger.info("Schema applied (%d statements) from %s", count, schema_path)
    return missing


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    count = execute_script(db_config, seed_path)
    logger.info("Seeded %d statements from %s", count, seed_path)


def list_tables(db_config: dict) -> list[str]:
    conn = _open(DBConfig.from_dict(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return sorted(str(row[0]) for row in cur.fetchall())
    finally:
        conn.close()


def missing_tables(db_config: dict) -> list[str]:
    present = set(list_tables(db_config))
    return [name for name in REQUIRED_TABLES if name not in present]
