from datetime import datetime, timezone

import pytest

from tradejournal.models import (
    Broker,
    Trade,
    new_broker,
    new_trade,
    normalize_trade_updates,
    updates_to_row,
)


def _fields(**kw):
    base = {
        "symbol": "eurusd",
        "side": "buy",
        "quantity": 2,
        "entry_price": 1.1000,
        "exit_price": 1.1050,
        "status": "closed",
        "market_type": "forex",
    }
    base.update(kw)
    return base


def test_closed_buy_trade_realizes_pnl(now):
    t = new_trade(_fields(), "id-1", user_id="u1", now=now)
    assert t.profit_loss == pytest.approx(0.01)
    assert t.closed_at == now
    assert t.created_at == now
    assert t.symbol == "EURUSD"
    assert t.user_id == "u1"


def test_closed_sell_trade_realizes_negative_pnl(now):
    t = new_trade(_fields(side="sell"), "id-2", now=now)
    assert t.profit_loss == pytest.approx(-0.01)


def test_open_trade_has_zero_pnl_and_no_close_time(now):
    t = new_trade(_fields(status="open"), "id-3", now=now)
    assert t.profit_loss == 0.0
    assert t.closed_at is None


def test_closed_trade_without_exit_price_keeps_zero_pnl(now):
    t = new_trade(_fields(exit_price=None), "id-4", now=now)
    assert t.profit_loss == 0.0
    assert t.closed_at == now


@pytest.mark.parametrize(
    "override",
    [{"side": "long"}, {"status": "pending"}, {"market_type": "stocks"}, {"quantity": 0}, {"symbol": " "},
     {"quantity": "nan"}, {"entry_price": "inf"}, {"exit_price": "nan", "status": "closed"}],
)
def test_new_trade_rejects_bad_fields(override):
    with pytest.raises(ValueError):
        new_trade(_fields(**override), "id-x")


def test_from_row_parses_zulu_timestamps():
    t = Trade.from_row({
        "id": 7,
        "symbol": "BTCUSDT",
        "side": "SELL",
        "quantity": "0.5",
        "entry_price": 40000,
        "exit_price": None,
        "profit_loss": None,
        "status": "open",
        "market_type": "crypto",
        "created_at": "2024-01-02T03:04:05Z",
        "closed_at": None,
        "broker_id": None,
    })
    assert t.id == "7"
    assert t.side == "sell"
    assert t.created_at == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert t.profit_loss == 0.0
    assert t.broker_id == ""


def test_to_row_sends_missing_broker_as_null(now):
    row = new_trade(_fields(), "id-5", now=now).to_row()
    assert row["broker_id"] is None
    assert row["created_at"] == "2024-03-15T12:00:00+00:00"


def test_updates_do_not_recompute_pnl(now):
    t = new_trade(_fields(), "id-6", now=now)
    changed = t.with_updates(normalize_trade_updates({"exit_price": "1.2000"}))
    assert changed.exit_price == 1.2
    assert changed.profit_loss == pytest.approx(0.01)


def test_normalize_updates_rejects_identity_fields():
    with pytest.raises(ValueError):
        normalize_trade_updates({"id": "other"})
    with pytest.raises(ValueError):
        normalize_trade_updates({"created_at": "2024-01-01"})


def test_updates_to_row_serialises_timestamps(now):
    row = updates_to_row(normalize_trade_updates({"closed_at": now, "broker_id": ""}))
    assert row == {"closed_at": "2024-03-15T12:00:00+00:00", "broker_id": None}


def test_new_broker_is_active_by_default(now):
    b = new_broker({"name": "Binance", "api_key": "KEY-123", "api_secret": "SECRET-456"}, "b1", now=now)
    assert b.is_active is True
    assert "api_key" not in b.listing()
    assert "KEY-123" not in repr(b)


def test_broker_from_listing_row_without_credentials():
    b = Broker.from_row({"id": "b2", "name": "MT5", "is_active": False, "created_at": "2024-01-01T00:00:00+00:00"})
    assert b.api_key == ""
    assert b.is_active is False


@pytest.mark.parametrize(
    "updates",
    [
        {"quantity": -5},
        {"entry_price": 0},
        {"quantity": "nan"},
        {"exit_price": float("inf")},
        {"profit_loss": "nan"},
        {"symbol": ""},
    ],
)
def test_normalize_updates_applies_trade_invariants(updates):
    with pytest.raises(ValueError):
        normalize_trade_updates(updates)


def test_normalize_updates_uppercases_symbol():
    assert normalize_trade_updates({"symbol": " gbpusd "}) == {"symbol": "GBPUSD"}
