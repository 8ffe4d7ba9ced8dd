"""
brokers.py
----------

Broker connection forms and the simulated credential check that runs
before a broker record is saved. No broker API is contacted: the check
waits a short, configurable delay and verifies that the form was filled
in, which is enough to exercise the connect flow end to end.

To add a broker:
1. Add an entry to ``BROKER_CONFIGS`` listing the form fields.
2. Add any broker-specific format rule to ``validate_connection``.
"""

import asyncio
import json
from typing import Dict, List, Mapping

from .errors import BrokerValidationError

PLACEHOLDER_SECRET = "encrypted_credentials"

BROKER_CONFIGS: Dict[str, Dict] = {
    "MetaTrader 5": {
        "description": "Connect to your MetaTrader 5 account",
        "fields": [
            {"name": "server", "label": "Server", "type": "text", "placeholder": "MetaQuotes-Demo"},
            {"name": "login", "label": "Login ID", "type": "text", "placeholder": "12345678"},
            {"name": "password", "label": "Password", "type": "password", "placeholder": "Your MT5 password"},
        ],
    },
    "Zerodha Kite": {
        "description": "Connect to your Zerodha Kite account",
        "fields": [
            {"name": "api_key", "label": "API Key", "type": "text", "placeholder": "Your Kite API key"},
            {"name": "api_secret", "label": "API Secret", "type": "password", "placeholder": "Your Kite API secret"},
            {"name": "request_token", "label": "Request Token", "type": "text", "placeholder": "Request token from login"},
        ],
    },
    "Binance": {
        "description": "Connect to your Binance account",
        "fields": [
            {"name": "api_key", "label": "API Key", "type": "text", "placeholder": "Your Binance API key"},
            {"name": "api_secret", "label": "API Secret", "type": "password", "placeholder": "Your Binance API secret"},
        ],
    },
    "Interactive Brokers": {
        "description": "Connect to your Interactive Brokers account",
        "fields": [
            {"name": "username", "label": "Username", "type": "text", "placeholder": "Your IB username"},
            {"name": "password", "label": "Password", "type": "password", "placeholder": "Your IB password"},
            {"name": "account_id", "label": "Account ID", "type": "text", "placeholder": "Your account ID"},
        ],
    },
}

MT5_MIN_LOGIN_LENGTH = 6


def broker_types() -> List[str]:
    return list(BROKER_CONFIGS)


def field_names(broker_type: str) -> List[str]:
    return [f["name"] for f in BROKER_CONFIGS[broker_type]["fields"]]


async def validate_connection(
    broker_type: str, credentials: Mapping[str, str], delay: float = 2.0
) -> None:
    """Simulate validating broker credentials.

    Parameters
    ----------
    broker_type: str
        Key of ``BROKER_CONFIGS``.
    credentials: Mapping[str, str]
        Submitted form values.
    delay: float
        Seconds to wait, standing in for the broker round trip.

    Raises
    ------
    BrokerValidationError
        Unknown broker type, a missing field, or a MetaTrader 5 login
        shorter than six characters.
    """
    if broker_type not in BROKER_CONFIGS:
        raise BrokerValidationError(f"Unsupported broker: {broker_type}")

    if delay > 0:
        await asyncio.sleep(delay)

    missing = [n for n in field_names(broker_type) if not str(credentials.get(n) or "").strip()]
    if missing:
        raise BrokerValidationError(f"All fields are required for {broker_type}")

    if broker_type == "MetaTrader 5" and len(str(credentials["login"]).strip()) < MT5_MIN_LOGIN_LENGTH:
        raise BrokerValidationError("Invalid login ID format")


def connection_record(broker_type: str, credentials: Mapping[str, str]) -> Dict[str, str]:
    """Fields for the broker row saved after a successful connect.

    The submitted form is kept as an opaque JSON string in ``api_key``;
    ``api_secret`` holds a placeholder.
    """
    names = field_names(broker_type)
    blob = json.dumps({n: credentials.get(n, "") for n in names}, separators=(",", ":"))
    return {"name": broker_type, "api_key": blob, "api_secret": PLACEHOLDER_SECRET}
