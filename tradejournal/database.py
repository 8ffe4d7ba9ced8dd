"""
database.py
-----------

This module encapsulates all interactions with the local SQLite database
used to persist journal data when no hosted store is configured. It
implements the same ``PersistenceProvider`` contract as the hosted
client, so switching between a local file and the hosted backend does
not affect the portfolio store or the web layer.

Tables mirror the hosted store: profiles, brokers, trades, each row
scoped by its owning user id.
"""

import sqlite3
from typing import Any, List, Mapping, Optional

from .errors import PersistenceError
from .models import Broker, Profile, Trade, updates_to_row
from .providers import PersistenceProvider


class SQLiteProvider(PersistenceProvider):
    """SQLite-backed repository for trades, brokers and profiles."""

    name = "sqlite"

    def __init__(self, db_path: str = "tradejournal.db") -> None:
        self.db_path = db_path
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._create_tables()

    # ---------- schema ----------
    def _create_tables(self) -> None:
        """Create required tables (profiles, brokers, trades) and indexes."""
        with self.conn:
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS profiles (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL DEFAULT '',
                    full_name TEXT NOT NULL DEFAULT '',
                    created_at TEXT,
                    updated_at TEXT
                )
                """
            )
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS brokers (
                    id TEXT PRIMARY KEY,
                    user_id TEXT,
                    name TEXT NOT NULL,
                    api_key TEXT NOT NULL DEFAULT '',
                    api_secret TEXT NOT NULL DEFAULT '',
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL -- ISO8601
                )
                """
            )
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS trades (
                    id TEXT PRIMARY KEY,
                    user_id TEXT,
                    broker_id TEXT,
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL CHECK (side IN ('buy','sell')),
                    quantity REAL NOT NULL,
                    entry_price REAL NOT NULL,
                    exit_price REAL,
                    profit_loss REAL NOT NULL DEFAULT 0,
                    status TEXT NOT NULL CHECK (status IN ('open','closed')),
                    market_type TEXT NOT NULL CHECK (market_type IN ('forex','crypto')),
                    created_at TEXT NOT NULL, -- ISO8601
                    closed_at TEXT
                )
                """
            )
            self.conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_trades_user_created ON trades(user_id, created_at)"
            )

    # ---------- trades ----------
    def insert_trade(self, trade: Trade) -> None:
        """Insert a new trade."""
        row = trade.to_row()
        cols = ", ".join(row)
        marks = ", ".join("?" for _ in row)
        self._write(f"INSERT INTO trades ({cols}) VALUES ({marks})", tuple(row.values()))

    def list_trades(self, user_id: Optional[str]) -> List[Trade]:
        """Return the user's trades, newest first."""
        cur = self._read(
            "SELECT * FROM trades WHERE user_id IS ? ORDER BY created_at DESC, rowid DESC",
            (user_id,),
        )
        return [Trade.from_row(dict(r)) for r in cur.fetchall()]

    def update_trade(self, trade_id: str, updates: Mapping[str, Any]) -> None:
        values = updates_to_row(updates)
        if not values:
            if self._read("SELECT 1 FROM trades WHERE id = ?", (trade_id,)).fetchone() is None:
                raise PersistenceError(404, "not_found", f"Trade {trade_id} not found")
            return
        assignments = ", ".join(f"{k} = ?" for k in values)
        cur = self._write(
            f"UPDATE trades SET {assignments} WHERE id = ?",
            (*values.values(), trade_id),
        )
        if cur.rowcount == 0:
            raise PersistenceError(404, "not_found", f"Trade {trade_id} not found")

    # ---------- brokers ----------
    def insert_broker(self, broker: Broker) -> None:
        row = broker.to_row()
        row["is_active"] = int(broker.is_active)
        cols = ", ".join(row)
        marks = ", ".join("?" for _ in row)
        self._write(f"INSERT INTO brokers ({cols}) VALUES ({marks})", tuple(row.values()))

    def list_brokers(self, user_id: Optional[str]) -> List[Broker]:
        cur = self._read(
            "SELECT id, name, is_active, created_at FROM brokers WHERE user_id IS ? ORDER BY rowid",
            (user_id,),
        )
        return [Broker.from_row(dict(r)) for r in cur.fetchall()]

    # ---------- profiles ----------
    def upsert_profile(self, profile: Profile) -> None:
        self._write(
            """
            INSERT INTO profiles(id, email, full_name, created_at, updated_at)
            VALUES (?, ?, ?, datetime('now'), datetime('now'))
            ON CONFLICT(id) DO UPDATE SET
                email=excluded.email,
                full_name=excluded.full_name,
                updated_at=excluded.updated_at
            """,
            (profile.id, profile.email, profile.full_name),
        )

    def get_profile(self, user_id: Optional[str]) -> Optional[Profile]:
        cur = self._read("SELECT * FROM profiles WHERE id = ?", (user_id,))
        row = cur.fetchone()
        return Profile.from_row(dict(row)) if row else None

    # ---------- helpers ----------
    def _read(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, params)
        except sqlite3.Error as e:
            raise PersistenceError(500, "sqlite_error", str(e)) from e

    def _write(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            with self.conn:
                return self.conn.execute(sql, params)
        except sqlite3.Error as e:
            raise PersistenceError(500, "sqlite_error", str(e)) from e

    # ---------- housekeeping ----------
    def close(self) -> None:
        self.conn.close()
