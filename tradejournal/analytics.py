"""
analytics.py
-------------

This module contains functions to compute performance metrics from a list
of Trade objects. Splitting analytics into its own module makes it easy
to reuse these functions in different contexts (portfolio store, Flask
views, JSON API) without coupling them to UI or storage concerns.

Every function is pure and accepts an empty sequence, returning zeroed or
empty results.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Sequence

import pandas as pd

from .models import Trade, realized_pnl

__all__ = [
    "PortfolioStats",
    "PerformanceMetrics",
    "realized_pnl",
    "compute_portfolio_stats",
    "compute_performance_metrics",
    "cumulative_pnl_series",
    "win_loss_distribution",
    "market_distribution",
    "monthly_pnl",
    "portfolio_value",
]


@dataclass
class PortfolioStats:
    total_trades: int = 0
    open_trades: int = 0
    closed_trades: int = 0
    total_profit_loss: float = 0.0
    win_rate: float = 0.0
    total_invested: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PerformanceMetrics:
    closed_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    total_profit_loss: float = 0.0
    win_rate: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    profit_factor: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    roi: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def compute_portfolio_stats(trades: Sequence[Trade]) -> PortfolioStats:
    """Headline statistics over the whole trade collection.

    Open trades contribute their stored PnL of 0 to the total. The win
    rate counts trades with positive PnL against the number of closed
    trades and is 0 when nothing has been closed.
    """
    stats = PortfolioStats()
    if not trades:
        return stats

    closed = sum(1 for t in trades if t.status == "closed")
    winners = sum(1 for t in trades if t.profit_loss > 0)

    stats.total_trades = len(trades)
    stats.open_trades = sum(1 for t in trades if t.status == "open")
    stats.closed_trades = closed
    stats.total_profit_loss = sum(t.profit_loss for t in trades)
    stats.win_rate = winners / closed * 100 if closed > 0 else 0.0
    stats.total_invested = sum(t.invested for t in trades)
    return stats


def compute_performance_metrics(trades: Sequence[Trade]) -> PerformanceMetrics:
    """Compute performance statistics over the closed trades.

    Parameters
    ----------
    trades: Sequence[Trade]
        The full trade collection. Only closed trades feed the win/loss
        figures; ROI divides by the capital invested across *all* trades.

    Returns
    -------
    PerformanceMetrics
        ``profit_factor`` is the ratio of the average win to the average
        loss (not total wins over total losses), and 0 when there are no
        losses. ``average_loss`` is reported as a positive magnitude while
        ``largest_loss`` keeps its sign.
    """
    metrics = PerformanceMetrics()
    if not trades:
        return metrics

    closed = [t for t in trades if t.status == "closed"]
    wins = [t.profit_loss for t in closed if t.profit_loss > 0]
    losses = [t.profit_loss for t in closed if t.profit_loss < 0]

    total_pnl = sum(t.profit_loss for t in closed)
    average_win = sum(wins) / len(wins) if wins else 0.0
    average_loss = abs(sum(losses) / len(losses)) if losses else 0.0
    total_invested = sum(t.invested for t in trades)

    metrics.closed_trades = len(closed)
    metrics.winning_trades = len(wins)
    metrics.losing_trades = len(losses)
    metrics.total_profit_loss = total_pnl
    metrics.win_rate = len(wins) / len(closed) * 100 if closed else 0.0
    metrics.average_win = average_win
    metrics.average_loss = average_loss
    metrics.profit_factor = average_win / average_loss if average_loss > 0 else 0.0
    metrics.largest_win = max(wins) if wins else 0.0
    metrics.largest_loss = min(losses) if losses else 0.0
    metrics.roi = total_pnl / total_invested * 100 if total_invested > 0 else 0.0
    return metrics


def _frame(trades: Sequence[Trade]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "created_at": [t.created_at for t in trades],
            "status": [t.status for t in trades],
            "profit_loss": [float(t.profit_loss) for t in trades],
        }
    )


def cumulative_pnl_series(trades: Sequence[Trade]) -> List[Dict[str, Any]]:
    """Running PnL total for the equity chart.

    Trades are sorted ascending by creation time with a stable sort, so
    trades sharing a timestamp keep their input order. Returns one point
    per trade: ``{"label": 'YYYY-MM-DD', "value": cumulative_pnl}``.
    """
    if not trades:
        return []
    df = _frame(trades)
    df["created_at"] = pd.to_datetime(df["created_at"], utc=True)
    df = df.sort_values("created_at", kind="stable")
    df["cumulative"] = df["profit_loss"].cumsum()
    return [
        {"label": ts.strftime("%Y-%m-%d"), "value": float(v)}
        for ts, v in zip(df["created_at"], df["cumulative"])
    ]


def win_loss_distribution(trades: Sequence[Trade]) -> Dict[str, int]:
    closed = [t for t in trades if t.status == "closed"]
    return {
        "winning": sum(1 for t in closed if t.profit_loss > 0),
        "losing": sum(1 for t in closed if t.profit_loss < 0),
    }


def market_distribution(trades: Sequence[Trade]) -> Dict[str, int]:
    return {
        "forex": sum(1 for t in trades if t.market_type == "forex"),
        "crypto": sum(1 for t in trades if t.market_type == "crypto"),
    }


def monthly_pnl(trades: Sequence[Trade]) -> Dict[str, float]:
    """Sum closed-trade PnL per calendar month of creation.

    Keys are labelled 'Mon YYYY' and appear in the order their month is
    first met while walking the input, not sorted.
    """
    df = _frame(trades)
    if df.empty:
        return {}
    df = df[df["status"] == "closed"]
    if df.empty:
        return {}
    months = pd.to_datetime(df["created_at"], utc=True).dt.strftime("%b %Y")
    grouped = df["profit_loss"].groupby(months, sort=False).sum()
    return {str(label): float(total) for label, total in grouped.items()}


def portfolio_value(stats: PortfolioStats) -> float:
    """Capital invested plus realised PnL."""
    return stats.total_invested + stats.total_profit_loss
