"""
models.py
---------

Defines the core data model of the journal: trades, broker connection
records and user profiles. Keeping this in a separate module lets the
persistence providers, the portfolio store and the web layer share one
definition of each row and of how it maps to the hosted store's columns.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import pandas as pd

SIDES = ("buy", "sell")
STATUSES = ("open", "closed")
MARKET_TYPES = ("forex", "crypto")

# columns an update may touch; identity and creation time are fixed
UPDATABLE_TRADE_FIELDS = (
    "symbol",
    "side",
    "quantity",
    "entry_price",
    "exit_price",
    "profit_loss",
    "status",
    "market_type",
    "closed_at",
    "broker_id",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO string (``Z`` or offset suffix) or datetime into aware UTC."""
    if value is None or value == "":
        return None
    return pd.to_datetime(value, utc=True).to_pydatetime()


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _choice(value: Any, allowed: tuple, name: str) -> str:
    v = str(value).strip().lower()
    if v not in allowed:
        raise ValueError(f"{name} must be one of {', '.join(allowed)} (got {value!r})")
    return v


def _finite(value: Any, name: str) -> float:
    v = float(value)
    if not math.isfinite(v):
        raise ValueError(f"{name} must be a finite number (got {value!r})")
    return v


def _positive(value: Any, name: str) -> float:
    v = _finite(value, name)
    if v <= 0:
        raise ValueError(f"{name} must be positive")
    return v


def _symbol(value: Any) -> str:
    symbol = str(value or "").strip().upper()
    if not symbol:
        raise ValueError("symbol is required")
    return symbol


def _optional_float(value: Any, name: str = "value") -> Optional[float]:
    if value is None or value == "":
        return None
    return _finite(value, name)


def realized_pnl(side: str, entry_price: float, exit_price: float, quantity: float) -> float:
    """Profit or loss realised when a position is closed.

    For buy positions, PnL = (exit_price - entry_price) * quantity.
    For sell positions, PnL = (entry_price - exit_price) * quantity.
    """
    if side == "buy":
        return (exit_price - entry_price) * quantity
    return (entry_price - exit_price) * quantity


@dataclass
class Trade:
    """Represents a single journal entry.

    Attributes
    ----------
    id: str
        Opaque identifier generated by the persistence provider.
    symbol: str
        Instrument code, stored upper-case (e.g. 'EURUSD', 'BTCUSDT').
    side: str
        Either 'buy' or 'sell'. Determines how PnL is calculated.
    quantity: float
        Position size.
    entry_price: float
        Price at which the position was opened.
    exit_price: Optional[float]
        Price at which the position was closed; None while open.
    profit_loss: float
        Realised PnL, frozen at the moment the trade was closed. Open
        trades carry 0.
    status: str
        Either 'open' or 'closed'.
    market_type: str
        Either 'forex' or 'crypto'.
    created_at: datetime
        When the trade was logged (aware, UTC).
    closed_at: Optional[datetime]
        When the trade was closed; None while open.
    broker_id: str
        Broker the trade was logged against, empty when none.
    user_id: Optional[str]
        Owning user; None for guest fixtures.
    """

    id: str
    symbol: str
    side: str
    quantity: float
    entry_price: float
    exit_price: Optional[float]
    profit_loss: float
    status: str
    market_type: str
    created_at: datetime
    closed_at: Optional[datetime] = None
    broker_id: str = ""
    user_id: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return self.status == "closed"

    @property
    def invested(self) -> float:
        """Capital committed to the position (entry_price * quantity)."""
        return self.entry_price * self.quantity

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Trade":
        """Convert a stored row -> Trade."""
        return cls(
            id=str(row["id"]),
            symbol=str(row["symbol"]),
            side=_choice(row["side"], SIDES, "side"),
            quantity=float(row["quantity"]),
            entry_price=float(row["entry_price"]),
            exit_price=_optional_float(row.get("exit_price")),
            profit_loss=float(row.get("profit_loss") or 0.0),
            status=_choice(row.get("status") or "open", STATUSES, "status"),
            market_type=_choice(row["market_type"], MARKET_TYPES, "market_type"),
            created_at=parse_timestamp(row["created_at"]),
            closed_at=parse_timestamp(row.get("closed_at")),
            broker_id=row.get("broker_id") or "",
            user_id=row.get("user_id"),
        )

    def to_row(self) -> Dict[str, Any]:
        """Convert Trade -> row using the store's column names."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "broker_id": self.broker_id or None,
            "symbol": self.symbol,
            "side": self.side,
            "quantity": self.quantity,
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "profit_loss": self.profit_loss,
            "status": self.status,
            "market_type": self.market_type,
            "created_at": format_timestamp(self.created_at),
            "closed_at": format_timestamp(self.closed_at),
        }

    def with_updates(self, updates: Mapping[str, Any]) -> "Trade":
        """Return a copy with already-normalised updates applied.

        profit_loss is only changed when the update names it explicitly.
        """
        return replace(self, **dict(updates))


@dataclass
class Broker:
    """A broker connection record. Credentials are opaque strings."""

    id: str
    name: str
    is_active: bool
    created_at: datetime
    api_key: str = field(default="", repr=False)
    api_secret: str = field(default="", repr=False)
    user_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Broker":
        return cls(
            id=str(row["id"]),
            name=str(row["name"]),
            is_active=bool(row.get("is_active", True)),
            created_at=parse_timestamp(row["created_at"]),
            api_key=row.get("api_key") or "",
            api_secret=row.get("api_secret") or "",
            user_id=row.get("user_id"),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "api_key": self.api_key,
            "api_secret": self.api_secret,
            "is_active": self.is_active,
            "created_at": format_timestamp(self.created_at),
        }

    def listing(self) -> Dict[str, Any]:
        """Public projection used by listings; never includes credentials."""
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": format_timestamp(self.created_at),
        }


@dataclass
class Profile:
    id: str
    email: str
    full_name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Profile":
        return cls(
            id=str(row["id"]),
            email=row.get("email") or "",
            full_name=row.get("full_name") or "",
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
        )


# ---------- constructors used by the store ----------
def new_trade(
    fields: Mapping[str, Any],
    trade_id: str,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Trade:
    """Build a Trade from user supplied fields.

    The symbol is upper-cased. A trade created closed gets its PnL
    computed from entry/exit price and ``closed_at`` set to ``now``; an
    open trade carries PnL 0 and no closing time.
    """
    now = now or utcnow()
    symbol = _symbol(fields.get("symbol"))
    side = _choice(fields.get("side", "buy"), SIDES, "side")
    status = _choice(fields.get("status", "open"), STATUSES, "status")
    market_type = _choice(fields.get("market_type", "forex"), MARKET_TYPES, "market_type")
    quantity = _positive(fields["quantity"], "quantity")
    entry_price = _positive(fields["entry_price"], "entry_price")
    exit_price = _optional_float(fields.get("exit_price"), "exit_price")

    profit_loss = 0.0
    closed_at = None
    if status == "closed":
        if exit_price is not None:
            profit_loss = realized_pnl(side, entry_price, exit_price, quantity)
        closed_at = now

    return Trade(
        id=trade_id,
        symbol=symbol,
        side=side,
        quantity=quantity,
        entry_price=entry_price,
        exit_price=exit_price,
        profit_loss=profit_loss,
        status=status,
        market_type=market_type,
        created_at=now,
        closed_at=closed_at,
        broker_id=str(fields.get("broker_id") or ""),
        user_id=user_id,
    )


def normalize_trade_updates(updates: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate a partial update and coerce its values to model types.

    Raises ValueError for fields outside UPDATABLE_TRADE_FIELDS and for
    values ``new_trade`` would reject.
    """
    out: Dict[str, Any] = {}
    for key, value in updates.items():
        if key not in UPDATABLE_TRADE_FIELDS:
            raise ValueError(f"field {key!r} cannot be updated")
        if key == "symbol":
            out[key] = _symbol(value)
        elif key == "side":
            out[key] = _choice(value, SIDES, "side")
        elif key == "status":
            out[key] = _choice(value, STATUSES, "status")
        elif key == "market_type":
            out[key] = _choice(value, MARKET_TYPES, "market_type")
        elif key in ("quantity", "entry_price"):
            out[key] = _positive(value, key)
        elif key == "profit_loss":
            out[key] = _finite(value, key)
        elif key == "exit_price":
            out[key] = _optional_float(value, key)
        elif key == "closed_at":
            out[key] = parse_timestamp(value)
        else:
            out[key] = str(value or "")
    return out


def updates_to_row(updates: Mapping[str, Any]) -> Dict[str, Any]:
    """Serialise normalised updates for a row store."""
    row: Dict[str, Any] = {}
    for k, v in updates.items():
        if isinstance(v, datetime):
            v = format_timestamp(v)
        elif k == "broker_id":
            v = v or None
        row[k] = v
    return row


def new_broker(
    fields: Mapping[str, Any],
    broker_id: str,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Broker:
    name = str(fields.get("name") or "").strip()
    if not name:
        raise ValueError("broker name is required")
    return Broker(
        id=broker_id,
        name=name,
        is_active=bool(fields.get("is_active", True)),
        created_at=now or utcnow(),
        api_key=str(fields.get("api_key") or ""),
        api_secret=str(fields.get("api_secret") or ""),
        user_id=user_id,
    )
