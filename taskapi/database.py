# taskapi/database.py
"""Database engine construction and dev auto-migration using SQLModel."""

import logging
from enum import Enum

from sqlalchemy import Column, event, inspect, text
from sqlalchemy.engine import Engine, make_url
from sqlmodel import SQLModel, create_engine

from taskapi import models  # noqa: F401  registers tables on SQLModel.metadata
from taskapi.config import (
    AUTO_MIGRATE,
    DATABASE_URL,
    DB_CONNECT_TIMEOUT,
    DB_POOL_SIZE,
    DB_POOL_TIMEOUT,
)

logger = logging.getLogger("auto_migrate")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str = DATABASE_URL, **kwargs) -> Engine:
    """Create an engine with connect/pool timeouts for the given URL.

    SQLite connections get ``PRAGMA foreign_keys=ON`` so that foreign keys
    are enforced the same way PostgreSQL enforces them.
    """
    backend = make_url(url).get_backend_name()
    options = dict(kwargs)
    connect_args = dict(options.pop("connect_args", {}))

    if backend == "sqlite":
        connect_args.setdefault("timeout", DB_CONNECT_TIMEOUT)
        connect_args.setdefault("check_same_thread", False)
    else:
        connect_args.setdefault("connect_timeout", int(DB_CONNECT_TIMEOUT))
        options.setdefault("pool_size", DB_POOL_SIZE)
        options.setdefault("pool_timeout", DB_POOL_TIMEOUT)
        options.setdefault("pool_pre_ping", True)

    engine = create_engine(url, echo=False, connect_args=connect_args, **options)
    if backend == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


engine = build_engine(DATABASE_URL)


def get_engine() -> Engine:
    """Return the process engine for FastAPI dependency injection."""
    return engine


def _compile_column_type(column: Column, target: Engine) -> str:
    """Compile a SQLAlchemy column type to a DDL string for the target dialect."""
    return column.type.compile(dialect=target.dialect)


def _get_column_default(column: Column, target: Engine) -> str:
    """Derive a SQL DEFAULT clause for NOT NULL columns added via ALTER TABLE.

    Adding a NOT NULL column to a table that already holds rows needs a
    default value. Returns an empty string if the column is nullable.
    """
    if column.nullable:
        return ""

    if column.default is not None and column.default.is_scalar:
        value = column.default.arg
        if isinstance(value, Enum):
            value = value.value
        if isinstance(value, bool):
            return f" DEFAULT {int(value)}"
        if isinstance(value, (int, float)):
            return f" DEFAULT {value}"
        escaped = str(value).replace("'", "''")
        return f" DEFAULT '{escaped}'"

    type_str = _compile_column_type(column, target).upper()
    if "INT" in type_str:
        return " DEFAULT 0"
    if "FLOAT" in type_str or "REAL" in type_str or "NUMERIC" in type_str:
        return " DEFAULT 0.0"
    if "BOOL" in type_str:
        return " DEFAULT 0"
    if "DATE" in type_str or "TIME" in type_str:
        return " DEFAULT '1970-01-01 00:00:00'"
    return " DEFAULT ''"


def should_auto_migrate(target: Engine) -> bool:
    """Dev auto-migration runs only on SQLite and only while enabled."""
    return AUTO_MIGRATE and target.dialect.name == "sqlite"


def _schema_diff(inspector, table, target: Engine) -> tuple[set, set, set]:
    """Return (added, removed, type_changed) column names for ``table``."""
    db_columns = {col["name"]: col for col in inspector.get_columns(table.name)}
    model_columns = {col.name: col for col in table.columns}

    added = set(model_columns) - set(db_columns)
    removed = set(db_columns) - set(model_columns)
    type_changed = set()
    for name in set(db_columns) & set(model_columns):
        db_type = db_columns[name]["type"].compile(dialect=target.dialect).upper()
        model_type = _compile_column_type(model_columns[name], target).upper()
        if db_type != model_type:
            logger.debug(
                "Type mismatch on '%s.%s': db=%s model=%s",
                table.name, name, db_type, model_type,
            )
            type_changed.add(name)
    return added, removed, type_changed


def _add_columns(table, names: set, target: Engine) -> None:
    logger.info("Adding columns to '%s': %s", table.name, sorted(names))
    with target.begin() as conn:
        for name in sorted(names):
            column = table.c[name]
            nullable = "" if column.nullable else " NOT NULL"
            stmt = (
                f'ALTER TABLE "{table.name}" ADD COLUMN "{name}" '
                f"{_compile_column_type(column, target)}{nullable}"
                f"{_get_column_default(column, target)}"
            )
            logger.info("  %s", stmt)
            conn.execute(text(stmt))


def _recreate_table(table, target: Engine) -> None:
    """Drop and recreate ``table`` with foreign keys off for the swap.

    Rows in other tables that referenced the dropped rows are left dangling.
    """
    with target.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        conn.commit()
        try:
            table.drop(conn)
            table.create(conn)
            conn.commit()
        finally:
            conn.exec_driver_sql("PRAGMA foreign_keys=ON")
            conn.commit()


def auto_migrate(target: Engine) -> None:
    """Bring existing SQLite tables in line with the SQLModel metadata.

    New columns are added in place and keep the table's rows. Removed
    columns or changed types drop and recreate the table, losing its rows.
    Tables missing from the database are left to ``create_all``.
    """
    inspector = inspect(target)
    existing_tables = set(inspector.get_table_names())

    for table in SQLModel.metadata.sorted_tables:
        if table.name not in existing_tables:
            continue

        added, removed, type_changed = _schema_diff(inspector, table, target)
        if not (added or removed or type_changed):
            continue
        if not (removed or type_changed):
            _add_columns(table, added, target)
            continue

        logger.warning(
            "Recreating table '%s' (added=%s removed=%s type_changed=%s), "
            "existing data will be lost",
            table.name, sorted(added), sorted(removed), sorted(type_changed),
        )
        _recreate_table(table, target)


def create_db_and_tables(target: Engine = engine) -> None:
    """Create all tables from SQLModel metadata, then auto-migrate schema diffs."""
    SQLModel.metadata.create_all(target)
    if should_auto_migrate(target):
        auto_migrate(target)
    else:
        logger.info("Skipping auto-migration on %s", target.dialect.name)
