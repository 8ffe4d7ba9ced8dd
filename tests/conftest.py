from datetime import datetime, timezone

import pytest

from tradejournal.models import Trade

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_trade():
    counter = {"n": 0}

    def _make(profit_loss=0.0, status="closed", created_at=NOW, **kw):
        counter["n"] += 1
        fields = dict(
            id=f"t{counter['n']}",
            symbol="EURUSD",
            side="buy",
            quantity=1.0,
            entry_price=100.0,
            exit_price=None if status == "open" else 101.0,
            profit_loss=profit_loss,
            status=status,
            market_type="forex",
            created_at=created_at,
            closed_at=None if status == "open" else created_at,
        )
        fields.update(kw)
        return Trade(**fields)

    return _make
