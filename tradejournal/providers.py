"""
providers.py
------------

Persistence provider interface plus the in-memory implementation used for
guest/demo sessions. The portfolio store only ever talks to a
``PersistenceProvider``; which implementation backs it (hosted store,
local SQLite file, in-memory fixtures) is decided once when the session
starts, see ``session.select_provider``.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, List, Mapping, Optional

from .errors import PersistenceError
from .models import Broker, Profile, Trade, utcnow

GUEST_ID_PREFIX = "sample-"


class PersistenceProvider(ABC):
    """Row storage for trades, brokers and profiles scoped by owner."""

    name = "abstract"

    @abstractmethod
    def list_trades(self, user_id: Optional[str]) -> List[Trade]:
        """Return the user's trades, newest first."""

    @abstractmethod
    def list_brokers(self, user_id: Optional[str]) -> List[Broker]:
        """Return the user's broker records."""

    @abstractmethod
    def insert_trade(self, trade: Trade) -> None:
        """Persist a new trade."""

    @abstractmethod
    def update_trade(self, trade_id: str, updates: Mapping[str, Any]) -> None:
        """Apply normalised partial updates; raise PersistenceError if missing."""

    @abstractmethod
    def insert_broker(self, broker: Broker) -> None:
        """Persist a new broker record."""

    @abstractmethod
    def get_profile(self, user_id: Optional[str]) -> Optional[Profile]:
        """Return the user's profile row, if any."""

    def new_id(self) -> str:
        return str(uuid.uuid4())

    def close(self) -> None:
        pass


# ---------- guest fixtures ----------
def sample_trades(now: Optional[datetime] = None) -> List[Trade]:
    now = now or utcnow()
    return [
        Trade(
            id="sample-1",
            symbol="EURUSD",
            side="buy",
            quantity=1.5,
            entry_price=1.1234,
            exit_price=1.1289,
            profit_loss=82.5,
            status="closed",
            market_type="forex",
            created_at=now - timedelta(days=1),
            closed_at=now - timedelta(hours=12),
        ),
        Trade(
            id="sample-2",
            symbol="BTCUSDT",
            side="buy",
            quantity=0.1,
            entry_price=45000.0,
            exit_price=None,
            profit_loss=0.0,
            status="open",
            market_type="crypto",
            created_at=now - timedelta(hours=1),
            closed_at=None,
        ),
        Trade(
            id="sample-3",
            symbol="GBPUSD",
            side="sell",
            quantity=2.0,
            entry_price=1.2567,
            exit_price=1.2534,
            profit_loss=66.0,
            status="closed",
            market_type="forex",
            created_at=now - timedelta(days=2),
            closed_at=now - timedelta(days=1),
        ),
    ]


def sample_brokers(now: Optional[datetime] = None) -> List[Broker]:
    now = now or utcnow()
    return [
        Broker(
            id="sample-broker-1",
            name="MetaTrader 5",
            is_active=True,
            created_at=now - timedelta(days=7),
        ),
        Broker(
            id="sample-broker-2",
            name="Zerodha Kite",
            is_active=True,
            created_at=now - timedelta(days=14),
        ),
    ]


class InMemoryProvider(PersistenceProvider):
    """Guest/demo provider seeded with fixed sample data.

    Nothing leaves the process; a fresh instance starts from the fixtures
    again.
    """

    name = "demo"

    def __init__(self, now: Optional[datetime] = None, seed: bool = True) -> None:
        self._trades: List[Trade] = sample_trades(now) if seed else []
        self._brokers: List[Broker] = sample_brokers(now) if seed else []

    def new_id(self) -> str:
        return f"{GUEST_ID_PREFIX}{uuid.uuid4().hex[:12]}"

    def list_trades(self, user_id: Optional[str]) -> List[Trade]:
        return list(self._trades)

    def list_brokers(self, user_id: Optional[str]) -> List[Broker]:
        return list(self._brokers)

    def insert_trade(self, trade: Trade) -> None:
        self._trades.insert(0, trade)

    def update_trade(self, trade_id: str, updates: Mapping[str, Any]) -> None:
        for i, t in enumerate(self._trades):
            if t.id == trade_id:
                self._trades[i] = t.with_updates(updates)
                return
        raise PersistenceError(404, "not_found", f"Trade {trade_id} not found")

    def insert_broker(self, broker: Broker) -> None:
        self._brokers.append(broker)

    def get_profile(self, user_id: Optional[str]) -> Optional[Profile]:
        return Profile(id="guest", email="", full_name="Guest")
