import pytest

from tradejournal.config import Config
from tradejournal.database import SQLiteProvider
from tradejournal.errors import PersistenceError
from tradejournal.models import new_trade
from tradejournal.providers import GUEST_ID_PREFIX, InMemoryProvider
from tradejournal.session import Session, select_provider
from tradejournal.supabase_client import RemoteProvider


def test_in_memory_provider_is_seeded(now):
    p = InMemoryProvider(now=now)
    trades = p.list_trades(None)
    assert [t.id for t in trades] == ["sample-1", "sample-2", "sample-3"]
    assert [b.name for b in p.list_brokers(None)] == ["MetaTrader 5", "Zerodha Kite"]
    assert trades[1].status == "open" and trades[1].profit_loss == 0.0


def test_in_memory_insert_prepends(now):
    p = InMemoryProvider(now=now)
    trade_id = p.new_id()
    assert trade_id.startswith(GUEST_ID_PREFIX)
    p.insert_trade(new_trade({"symbol": "xauusd", "quantity": 1, "entry_price": 2000}, trade_id, now=now))
    assert p.list_trades(None)[0].id == trade_id


def test_in_memory_update_missing_trade_fails(now):
    p = InMemoryProvider(now=now)
    with pytest.raises(PersistenceError) as exc:
        p.update_trade("nope", {"status": "closed"})
    assert exc.value.status_code == 404


def test_guest_session_always_uses_fixtures():
    config = Config(SUPABASE_URL="https://example.supabase.co", SUPABASE_ANON_KEY="anon", USER_ID="u1", GUEST=True)
    session = Session.from_config(config)
    assert session.is_guest
    assert isinstance(select_provider(session, config), InMemoryProvider)


def test_signed_in_session_prefers_remote():
    config = Config(SUPABASE_URL="https://example.supabase.co", SUPABASE_ANON_KEY="anon", USER_ID="u1")
    provider = select_provider(Session.from_config(config), config)
    assert isinstance(provider, RemoteProvider)
    assert provider.client.base_url == "https://example.supabase.co/rest/v1"


def test_signed_in_session_falls_back_to_sqlite(tmp_path):
    config = Config(USER_ID="u1", USER_NAME="Ada", DB_PATH=str(tmp_path / "j.db"))
    provider = select_provider(Session.from_config(config), config)
    try:
        assert isinstance(provider, SQLiteProvider)
        assert provider.get_profile("u1").full_name == "Ada"
    finally:
        provider.close()


def test_signed_in_session_without_storage_is_rejected():
    config = Config(USER_ID="u1")
    with pytest.raises(ValueError):
        select_provider(Session.from_config(config), config)
