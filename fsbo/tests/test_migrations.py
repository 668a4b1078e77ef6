"""Smoke test for the FSBO Alembic migration."""

from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from fsbo.config import settings


def test_alembic_upgrade_creates_tables(tmp_path: Path, monkeypatch):
    db_path = tmp_path / "fsbo_migrations.db"
    monkeypatch.setattr(settings, "database_url", f"sqlite+aiosqlite:///{db_path}")

    repo_root = Path(__file__).resolve().parents[2]
    cfg = Config(str(repo_root / "fsbo" / "alembic.ini"))
    command.upgrade(cfg, "head")

    engine = create_engine(f"sqlite:///{db_path}")
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()

    assert {"ghl_service_tokens", "scheduled_searches", "search_results"} <= tables
