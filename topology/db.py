from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from .settings import settings


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    If the configured path is a directory (e.g. a bind mount), the DB file is placed inside it.
    """
    p = os.path.abspath(settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "topology.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect() -> sqlite3.Connection:
    conn = sqlite3.connect(_resolve_db_path(), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    """Create tables if they do not exist."""
    with connect() as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              service_name TEXT,
              message TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS plans (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              fingerprint TEXT NOT NULL,
              resource_count INTEGER NOT NULL,
              body TEXT NOT NULL,
              created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            CREATE INDEX IF NOT EXISTS idx_plans_fingerprint ON plans(fingerprint);
            """
        )


def log_event(level: str, message: str, service_name: str | None = None) -> None:
    init_db()
    with connect() as conn:
        conn.execute(
            "INSERT INTO events (ts, level, service_name, message) VALUES (?, ?, ?, ?)",
            (utc_now(), level.upper(), service_name, message),
        )


@dataclass(frozen=True)
class PlanRow:
    id: int
    fingerprint: str
    resource_count: int
    body: str
    created_at: str


def _rows_to_dataclass(rows: Iterable[sqlite3.Row], cls: Any) -> list[Any]:
    out: list[Any] = []
    for r in rows:
        out.append(cls(**dict(r)))
    return out


def save_plan(fingerprint: str, resource_count: int, body: str) -> PlanRow:
    init_db()
    with connect() as conn:
        cur = conn.execute(
            "INSERT INTO plans (fingerprint, resource_count, body, created_at) VALUES (?, ?, ?, ?)",
            (fingerprint, resource_count, body, utc_now()),
        )
        row = conn.execute("SELECT * FROM plans WHERE id=?", (cur.lastrowid,)).fetchone()
        return PlanRow(**dict(row))


def list_plans(limit: int = 20) -> list[PlanRow]:
    init_db()
    with connect() as conn:
        rows = conn.execute("SELECT * FROM plans ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return _rows_to_dataclass(rows, PlanRow)


def get_plan(fingerprint: str) -> PlanRow | None:
    """Most recent stored plan with this fingerprint."""
    init_db()
    with connect() as conn:
        row = conn.execute(
            "SELECT * FROM plans WHERE fingerprint=? ORDER BY id DESC LIMIT 1", (fingerprint,)
        ).fetchone()
        return PlanRow(**dict(row)) if row else None


def latest_events(limit: int = 100) -> list[dict[str, Any]]:
    init_db()
    with connect() as conn:
        rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
