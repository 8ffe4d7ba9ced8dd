from datetime import timedelta

import pytest

from tradejournal.analytics import (
    compute_performance_metrics,
    compute_portfolio_stats,
    cumulative_pnl_series,
    market_distribution,
    monthly_pnl,
    portfolio_value,
    win_loss_distribution,
)


def test_empty_input_returns_zeroes():
    stats = compute_portfolio_stats([])
    metrics = compute_performance_metrics([])
    assert stats.total_trades == 0 and stats.win_rate == 0.0
    assert metrics.profit_factor == 0.0 and metrics.roi == 0.0
    assert cumulative_pnl_series([]) == []
    assert monthly_pnl([]) == {}
    assert win_loss_distribution([]) == {"winning": 0, "losing": 0}
    assert market_distribution([]) == {"forex": 0, "crypto": 0}


def test_portfolio_stats_counts_open_trades_as_zero(make_trade):
    trades = [
        make_trade(profit_loss=50.0),
        make_trade(profit_loss=-20.0),
        make_trade(status="open", entry_price=200.0, quantity=2.0),
    ]
    stats = compute_portfolio_stats(trades)
    assert stats.total_trades == 3
    assert stats.open_trades == 1
    assert stats.closed_trades == 2
    assert stats.total_profit_loss == pytest.approx(30.0)
    assert stats.win_rate == pytest.approx(50.0)
    assert stats.total_invested == pytest.approx(100.0 + 100.0 + 400.0)
    assert portfolio_value(stats) == pytest.approx(630.0)


def test_win_rate_is_zero_without_closed_trades(make_trade):
    stats = compute_portfolio_stats([make_trade(status="open"), make_trade(status="open")])
    assert stats.win_rate == 0.0
    assert compute_performance_metrics([make_trade(status="open")]).win_rate == 0.0


def test_profit_factor_is_ratio_of_averages(make_trade):
    trades = [make_trade(profit_loss=p) for p in (10.0, 20.0, 30.0, -5.0)]
    m = compute_performance_metrics(trades)
    assert m.average_win == pytest.approx(20.0)
    assert m.average_loss == pytest.approx(5.0)
    assert m.profit_factor == pytest.approx(4.0)
    assert m.largest_win == pytest.approx(30.0)
    assert m.largest_loss == pytest.approx(-5.0)
    assert m.win_rate == pytest.approx(75.0)


def test_profit_factor_zero_without_losses(make_trade):
    m = compute_performance_metrics([make_trade(profit_loss=10.0)])
    assert m.profit_factor == 0.0
    assert m.largest_loss == 0.0


def test_roi_uses_capital_of_all_trades(make_trade):
    trades = [
        make_trade(profit_loss=10.0, entry_price=100.0, quantity=1.0),
        make_trade(status="open", entry_price=100.0, quantity=1.0),
    ]
    m = compute_performance_metrics(trades)
    assert m.total_profit_loss == pytest.approx(10.0)
    assert m.roi == pytest.approx(5.0)


def test_cumulative_series_is_sorted_and_stable(make_trade, now):
    later = now + timedelta(days=1)
    trades = [
        make_trade(profit_loss=5.0, created_at=later),
        make_trade(profit_loss=1.0, created_at=now),
        make_trade(profit_loss=2.0, created_at=now),
        make_trade(status="open", created_at=now + timedelta(days=2)),
    ]
    series = cumulative_pnl_series(trades)
    assert len(series) == len(trades)
    assert [p["value"] for p in series] == [1.0, 3.0, 8.0, 8.0]
    assert series[0]["label"] == "2024-03-15"
    assert series[-1]["value"] == pytest.approx(compute_portfolio_stats(trades).total_profit_loss)


def test_distributions(make_trade):
    trades = [
        make_trade(profit_loss=5.0),
        make_trade(profit_loss=-1.0, market_type="crypto"),
        make_trade(profit_loss=0.0),
        make_trade(status="open", market_type="crypto"),
    ]
    assert win_loss_distribution(trades) == {"winning": 1, "losing": 1}
    assert market_distribution(trades) == {"forex": 2, "crypto": 2}


def test_monthly_pnl_keeps_first_encountered_order(make_trade, now):
    march = now
    january = now - timedelta(days=70)
    trades = [
        make_trade(profit_loss=10.0, created_at=march),
        make_trade(profit_loss=-4.0, created_at=january),
        make_trade(profit_loss=5.0, created_at=march),
        make_trade(status="open", created_at=january),
    ]
    result = monthly_pnl(trades)
    assert list(result) == ["Mar 2024", "Jan 2024"]
    assert result["Mar 2024"] == pytest.approx(15.0)
    assert result["Jan 2024"] == pytest.approx(-4.0)


def test_monthly_pnl_separates_years(make_trade, now):
    trades = [
        make_trade(profit_loss=1.0, created_at=now),
        make_trade(profit_loss=2.0, created_at=now - timedelta(days=366)),
    ]
    assert list(monthly_pnl(trades)) == ["Mar 2024", "Mar 2023"]
