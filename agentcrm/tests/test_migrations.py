"""Smoke tests for AgentCRM Alembic migrations."""

from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from agentcrm.config import settings
from agentcrm.models import Base


def _config(tmp_path: Path, monkeypatch) -> tuple[Config, Path]:
    db_path = tmp_path / "agentcrm_migrations.db"
    monkeypatch.setattr(settings, "database_url", f"sqlite+aiosqlite:///{db_path}")
    repo_root = Path(__file__).resolve().parents[2]
    return Config(str(repo_root / "agentcrm" / "alembic.ini")), db_path


def _tables(db_path: Path) -> set[str]:
    engine = create_engine(f"sqlite:///{db_path}")
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def test_upgrade_creates_every_model_table(tmp_path: Path, monkeypatch):
    cfg, db_path = _config(tmp_path, monkeypatch)
    command.upgrade(cfg, "head")

    tables = _tables(db_path)
    assert set(Base.metadata.tables) <= tables
    assert "alembic_version" in tables


def test_downgrade_drops_tables(tmp_path: Path, monkeypatch):
    cfg, db_path = _config(tmp_path, monkeypatch)
    command.upgrade(cfg, "head")
    command.downgrade(cfg, "base")

    assert _tables(db_path) - {"alembic_version"} == set()
