"""
Additive schema pass tests (SQLite).
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.pool import StaticPool

from run_migrations import ensure_additive_columns


def _engine():
    return create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)


def test_adds_missing_columns_to_existing_tables():
    engine = _engine()
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE system_flag (key TEXT PRIMARY KEY)"))
        conn.execute(text("INSERT INTO system_flag (key) VALUES ('first_launch_complete')"))

    added = ensure_additive_columns(engine)

    assert sorted(added) == ["system_flag.updated_at", "system_flag.value"]
    columns = {c["name"] for c in inspect(engine).get_columns("system_flag")}
    assert columns == {"key", "value", "updated_at"}
    assert "daily_record" not in inspect(engine).get_table_names()


def test_scalar_default_is_applied_to_existing_rows():
    engine = _engine()
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE operator_goals (id INTEGER PRIMARY KEY, primary_goal TEXT NOT NULL)"))
        conn.execute(text("INSERT INTO operator_goals (id, primary_goal) VALUES (1, 'run')"))
        conn.execute(text("CREATE TABLE operator_baselines (id INTEGER PRIMARY KEY)"))
        conn.execute(text("INSERT INTO operator_baselines (id) VALUES (1)"))

    ensure_additive_columns(engine)

    with engine.connect() as conn:
        window = conn.execute(text("SELECT window_days FROM operator_baselines WHERE id = 1")).scalar()
    assert window == 30


def test_second_pass_is_a_no_op():
    engine = _engine()
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE system_flag (key TEXT PRIMARY KEY)"))
    ensure_additive_columns(engine)
    assert ensure_additive_columns(engine) == []
