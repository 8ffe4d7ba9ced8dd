import asyncio
import json

import pytest

from tradejournal.brokers import PLACEHOLDER_SECRET, connection_record, validate_connection
from tradejournal.errors import BrokerValidationError


def _validate(broker_type, credentials):
    asyncio.run(validate_connection(broker_type, credentials, delay=0))


def test_complete_mt5_credentials_pass():
    _validate("MetaTrader 5", {"server": "MetaQuotes-Demo", "login": "12345678", "password": "pw"})


def test_missing_field_is_rejected():
    with pytest.raises(BrokerValidationError, match="All fields are required for Binance"):
        _validate("Binance", {"api_key": "abc", "api_secret": "  "})


def test_short_mt5_login_is_rejected():
    with pytest.raises(BrokerValidationError, match="Invalid login ID format"):
        _validate("MetaTrader 5", {"server": "s", "login": "123", "password": "pw"})


def test_unknown_broker_is_rejected():
    with pytest.raises(BrokerValidationError):
        _validate("Robinhood", {})


def test_connection_record_keeps_credentials_opaque():
    record = connection_record("Binance", {"api_key": "abc", "api_secret": "xyz", "extra": "ignored"})
    assert record["name"] == "Binance"
    assert json.loads(record["api_key"]) == {"api_key": "abc", "api_secret": "xyz"}
    assert record["api_secret"] == PLACEHOLDER_SECRET
