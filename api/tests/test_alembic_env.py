import sqlite3
import subprocess
import sys
from pathlib import Path

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


def _upgrade(url: str) -> None:
    subprocess.run(
        [
            sys.executable,
            "-m",
            "alembic",
            "-c",
            str(ALEMBIC_INI),
            "-x",
            f"db_url={url}",
            "upgrade",
            "head",
        ],
        check=True,
    )


def _tables(path) -> set[str]:
    with sqlite3.connect(path) as conn:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return {name for (name,) in rows}


def test_migrations_support_async_and_sync(tmp_path):
    async_db = tmp_path / "async.db"
    sync_db = tmp_path / "sync.db"
    _upgrade(f"sqlite+aiosqlite:///{async_db}")
    _upgrade(f"sqlite:///{sync_db}")
    expected = {"restaurants", "tables", "menu_items", "orders", "order_items", "payment_logs"}
    assert expected <= _tables(async_db)
    assert expected <= _tables(sync_db)


def _columns(path, table) -> set[str]:
    with sqlite3.connect(path) as conn:
        rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return {row[1] for row in rows}


def test_migrations_add_menu_categories_and_table_capacity(tmp_path):
    db = tmp_path / "menu.db"
    _upgrade(f"sqlite:///{db}")
    assert "category" in _columns(db, "menu_items")
    assert "capacity" in _columns(db, "tables")
