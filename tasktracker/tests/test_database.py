"""Tests for the development auto-migration."""

from unittest.mock import patch

from sqlalchemy import event, inspect, text
from sqlmodel import create_engine
from sqlmodel.pool import StaticPool

from tasktracker.config import Settings
from tasktracker.database import Database, auto_migrate


def _engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


def _columns(engine, table):
    return {col["name"] for col in inspect(engine).get_columns(table)}


def test_adds_missing_columns_and_keeps_rows():
    engine = _engine()
    with engine.begin() as conn:
        conn.execute(text(
            'CREATE TABLE "task" ('
            "id INTEGER NOT NULL PRIMARY KEY, owner_id INTEGER NOT NULL, "
            "priority VARCHAR(6) NOT NULL, deadline DATETIME NOT NULL, "
            "hours FLOAT NOT NULL, details VARCHAR NOT NULL, created_at DATETIME NOT NULL)"
        ))
        conn.execute(text(
            "INSERT INTO task (id, owner_id, priority, deadline, hours, details, created_at) "
            "VALUES (1, 1, 'high', '2030-01-01 12:00:00', 2, 'legacy', '2024-01-01 00:00:00')"
        ))

    auto_migrate(engine)

    assert {"status", "start_time", "task_number"} <= _columns(engine, "task")
    with engine.connect() as conn:
        row = conn.execute(text("SELECT details, status, start_time FROM task")).one()
    assert row.details == "legacy"
    assert row.status == "pending"
    assert row.start_time is None


def test_recreates_table_when_column_removed():
    engine = _engine()
    with engine.begin() as conn:
        conn.execute(text(
            'CREATE TABLE "counter" (id INTEGER PRIMARY KEY, name VARCHAR, value INTEGER, '
            "updated_at DATETIME, obsolete VARCHAR)"
        ))

    auto_migrate(engine)

    assert "obsolete" not in _columns(engine, "counter")


def test_create_db_and_tables_on_empty_database():
    engine = _engine()
    database = Database(Settings(), engine=engine)
    database.create_db_and_tables()
    assert {"user", "task", "counter"} <= set(inspect(engine).get_table_names())
    assert database.ping() is True


def _record_statements(engine):
    statements = []

    @event.listens_for(engine, "before_cursor_execute")
    def record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    return statements


def _legacy_counter_table(engine):
    with engine.begin() as conn:
        conn.execute(text(
            'CREATE TABLE "counter" (id INTEGER PRIMARY KEY, name VARCHAR, value INTEGER, '
            "obsolete VARCHAR)"
        ))
        conn.execute(text("INSERT INTO counter (id, name, value) VALUES (1, 'task', 7)"))


def test_production_never_drops_tables():
    engine = _engine()
    _legacy_counter_table(engine)
    statements = _record_statements(engine)

    Database(Settings(environment="production"), engine=engine).create_db_and_tables()

    assert not [s for s in statements if s.lstrip().upper().startswith("DROP")]
    assert {"obsolete", "updated_at"} <= _columns(engine, "counter")
    with engine.connect() as conn:
        assert conn.execute(text("SELECT value FROM counter")).scalar_one() == 7


def test_non_sqlite_skips_type_check_and_drop():
    engine = _engine()
    with engine.begin() as conn:
        conn.execute(text(
            'CREATE TABLE "task" ('
            "id INTEGER NOT NULL PRIMARY KEY, owner_id INTEGER NOT NULL, "
            "priority TEXT NOT NULL, deadline TEXT NOT NULL, "
            "hours TEXT NOT NULL, details VARCHAR NOT NULL, created_at DATETIME NOT NULL, "
            "obsolete VARCHAR)"
        ))
        conn.execute(text(
            "INSERT INTO task (id, owner_id, priority, deadline, hours, details, created_at) "
            "VALUES (1, 1, 'high', '2030-01-01 12:00:00', 2, 'kept', '2024-01-01 00:00:00')"
        ))
    statements = _record_statements(engine)

    with patch("tasktracker.database._is_sqlite", return_value=False):
        auto_migrate(engine)

    assert not [s for s in statements if s.lstrip().upper().startswith("DROP")]
    assert "status" in _columns(engine, "task")
    with engine.connect() as conn:
        assert conn.execute(text("SELECT details FROM task")).scalar_one() == "kept"
