# tasktracker/database.py
"""Database engine wrapper, session dependency, and dev auto-migration using SQLModel."""

import logging
from enum import Enum
from typing import Iterator

from fastapi import Request
from sqlalchemy import Column, inspect, text
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from tasktracker.config import Settings

# Registers the table classes on SQLModel.metadata.
from tasktracker import models  # noqa: F401

logger = logging.getLogger(__name__)


class Database:
    """Owns the engine for one configured database URL."""

    def __init__(self, settings: Settings, engine: Engine | None = None) -> None:
        self.url = settings.database_url
        self.allow_recreate = not settings.is_production
        if engine is None:
            connect_args = {}
            if self.url.startswith("sqlite"):
                connect_args["check_same_thread"] = False
            engine = create_engine(self.url, echo=False, connect_args=connect_args)
        self.engine = engine

    def create_db_and_tables(self) -> None:
        """Create all tables from SQLModel metadata, then auto-migrate schema diffs."""
        SQLModel.metadata.create_all(self.engine)
        auto_migrate(self.engine, allow_recreate=self.allow_recreate)

    def session(self) -> Session:
        return Session(self.engine)

    def ping(self) -> bool:
        """Return True when a trivial query succeeds."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.exception("Database ping failed")
            return False


def _compile_column_type(engine: Engine, column: Column) -> str:
    """Compile a SQLAlchemy column type to a DDL string for the engine's dialect."""
    return column.type.compile(dialect=engine.dialect)


def _get_column_default(engine: Engine, column: Column) -> str:
    """Derive a SQL DEFAULT clause for NOT NULL columns added via ALTER TABLE.

    Most databases require a default value when adding a NOT NULL column to
    an existing table. Returns an empty string if the column is nullable.
    """
    if column.nullable:
        return ""

    if column.default is not None and column.default.is_scalar:
        value = column.default.arg
        if isinstance(value, Enum):
            # SQLAlchemy's Enum type persists member names
            value = value.name
        if isinstance(value, bool):
            return f" DEFAULT {int(value)}"
        if isinstance(value, (int, float)):
            return f" DEFAULT {value}"
        escaped = str(value).replace("'", "''")
        return f" DEFAULT '{escaped}'"

    type_str = _compile_column_type(engine, column).upper()
    if "INT" in type_str:
        return " DEFAULT 0"
    if "FLOAT" in type_str or "REAL" in type_str or "NUMERIC" in type_str:
        return " DEFAULT 0.0"
    if "BOOL" in type_str:
        return " DEFAULT 0"
    if "DATE" in type_str or "TIME" in type_str:
        return " DEFAULT '1970-01-01 00:00:00'"
    return " DEFAULT ''"


def _is_sqlite(engine: Engine) -> bool:
    return engine.dialect.name == "sqlite"


def auto_migrate(engine: Engine, allow_recreate: bool = True) -> None:
    """Compare live DB schema against SQLModel metadata and apply migrations.

    - New columns → ALTER TABLE ADD COLUMN (preserves data)
    - Removed columns or type changes → DROP + recreate (data loss OK for dev)

    Type changes are only detected on SQLite, where reflected and compiled
    type names agree. Tables are never dropped when ``allow_recreate`` is
    false or the database is not SQLite; the drift is logged instead.

    Only runs against tables that already exist in the database.
    """
    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())
    compare_types = _is_sqlite(engine)
    can_recreate = allow_recreate and compare_types

    for table_name, table in SQLModel.metadata.tables.items():
        if table_name not in existing_tables:
            continue

        db_columns = {col["name"]: col for col in inspector.get_columns(table_name)}
        model_columns = {col.name: col for col in table.columns}

        db_col_names = set(db_columns.keys())
        model_col_names = set(model_columns.keys())

        added = model_col_names - db_col_names
        removed = db_col_names - model_col_names

        type_changed = set()
        if compare_types:
            for col_name in db_col_names & model_col_names:
                db_type = str(db_columns[col_name]["type"]).upper()
                model_type = _compile_column_type(engine, model_columns[col_name]).upper()
                if db_type != model_type:
                    logger.debug(
                        "Type mismatch on '%s.%s': db=%s model=%s",
                        table_name, col_name, db_type, model_type,
                    )
                    type_changed.add(col_name)

        if not added and not removed and not type_changed:
            continue

        if (removed or type_changed) and can_recreate:
            reasons = []
            if removed:
                reasons.append(f"removed={sorted(removed)}")
            if type_changed:
                reasons.append(f"type_changed={sorted(type_changed)}")
            if added:
                reasons.append(f"added={sorted(added)}")
            logger.warning(
                "Recreating table '%s' (%s), existing rows will be lost",
                table_name,
                ", ".join(reasons),
            )
            with engine.begin() as conn:
                conn.execute(text(f'DROP TABLE "{table_name}"'))
            table.create(engine)
            continue

        if removed or type_changed:
            logger.warning(
                "Schema drift on '%s' left in place (removed=%s, type_changed=%s)",
                table_name, sorted(removed), sorted(type_changed),
            )

        if added:
            logger.info("Adding columns to '%s': %s", table_name, sorted(added))
            with engine.begin() as conn:
                for col_name in sorted(added):
                    col = model_columns[col_name]
                    col_type = _compile_column_type(engine, col)
                    nullable = "" if col.nullable else " NOT NULL"
                    default = _get_column_default(engine, col)
                    stmt = (
                        f'ALTER TABLE "{table_name}" '
                        f'ADD COLUMN "{col_name}" {col_type}{nullable}{default}'
                    )
                    logger.info("  %s", stmt)
                    conn.execute(text(stmt))


def get_session(request: Request) -> Iterator[Session]:
    """Yield a database session for FastAPI dependency injection."""
    with request.app.state.db.session() as session:
        yield session
