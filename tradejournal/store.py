"""
store.py
--------

Application state for one session: the trade and broker collections, the
statistics derived from them, and the mutations that change them.

Every mutation follows the same path: write through the provider,
invalidate the cached collections, reload them, recompute statistics and
notify subscribers. Provider calls block, so they run in a worker thread
and the public operations are coroutines.
"""

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional

from .analytics import (
    PerformanceMetrics,
    PortfolioStats,
    compute_performance_metrics,
    compute_portfolio_stats,
    cumulative_pnl_series,
    market_distribution,
    monthly_pnl,
    portfolio_value,
    win_loss_distribution,
)
from .brokers import connection_record, validate_connection
from .errors import PersistenceError, StoreBusyError
from .models import (
    Broker,
    Profile,
    Trade,
    new_broker,
    new_trade,
    normalize_trade_updates,
    realized_pnl,
    utcnow,
)
from .providers import PersistenceProvider
from .session import Session

logger = logging.getLogger(__name__)

Subscriber = Callable[["PortfolioStore"], None]


class PortfolioStore:
    def __init__(
        self,
        provider: PersistenceProvider,
        session: Session,
        connect_delay: float = 2.0,
    ) -> None:
        self.provider = provider
        self.session = session
        self.connect_delay = connect_delay

        self.trades: List[Trade] = []
        self.brokers: List[Broker] = []
        self.stats = PortfolioStats()
        self.loading = False
        self.submitting = False
        self._stale = True
        self._subscribers: List[Subscriber] = []
        # one mutation at a time; the store is shared by request threads
        self._submit_lock = threading.Lock()

    @property
    def is_guest(self) -> bool:
        return self.session.is_guest

    @property
    def stale(self) -> bool:
        return self._stale

    # ----- subscribers -----
    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            try:
                callback(self)
            except Exception as e:
                logger.error("Subscriber %r failed: %s", callback, e, exc_info=True)

    # ----- loading -----
    def invalidate(self) -> None:
        self._stale = True

    def _set_trades(self, trades: List[Trade]) -> None:
        self.trades = trades
        self.stats = compute_portfolio_stats(trades)

    async def refresh(self) -> None:
        """Reload trades and brokers from the provider.

        A failed read is logged and leaves the previous collection in
        place; the other collection is still reloaded.
        """
        self.loading = True
        uid = self.session.user_id
        ok = True
        try:
            try:
                trades = await asyncio.to_thread(self.provider.list_trades, uid)
            except PersistenceError as e:
                logger.error("Error fetching trades: %s", e)
                ok = False
            else:
                self._set_trades(trades)

            try:
                brokers = await asyncio.to_thread(self.provider.list_brokers, uid)
            except PersistenceError as e:
                logger.error("Error fetching brokers: %s", e)
                ok = False
            else:
                self.brokers = brokers
        finally:
            self.loading = False
        if ok:
            self._stale = False
        self._notify()

    async def ensure_loaded(self) -> None:
        if self._stale:
            await self.refresh()

    # ----- submit guard -----
    def _claim(self) -> None:
        if not self._submit_lock.acquire(blocking=False):
            raise StoreBusyError("Another request is still in progress")
        self.submitting = True

    def _release(self) -> None:
        self.submitting = False
        self._submit_lock.release()

    async def _write(self, label: str, fn: Callable[..., Any], *args: Any) -> None:
        self._claim()
        try:
            await asyncio.to_thread(fn, *args)
        except PersistenceError as e:
            logger.error("Error %s: %s", label, e)
            raise
        finally:
            self._release()
        self.invalidate()
        await self.refresh()

    # ----- mutations -----
    async def add_trade(self, fields: Mapping[str, Any]) -> Trade:
        trade = new_trade(fields, self.provider.new_id(), self.session.user_id)
        await self._write("adding trade", self.provider.insert_trade, trade)
        return trade

    async def update_trade(self, trade_id: str, updates: Mapping[str, Any]) -> None:
        """Apply a partial update. PnL is left as stored unless named.

        A closed trade cannot be moved back to open.
        """
        clean = normalize_trade_updates(updates)
        if clean.get("status") == "open":
            await self.ensure_loaded()
            current = self.find_trade(trade_id)
            if current is not None and current.is_closed:
                raise ValueError(f"Trade {trade_id} is closed and cannot be reopened")
        await self._write("updating trade", self.provider.update_trade, trade_id, clean)

    async def close_trade(self, trade_id: str, exit_price: float) -> None:
        """Close an open trade, freezing its PnL at the given exit price."""
        await self.ensure_loaded()
        trade = self.find_trade(trade_id)
        if trade is None:
            raise PersistenceError(404, "not_found", f"Trade {trade_id} not found")
        if trade.is_closed:
            raise ValueError(f"Trade {trade_id} is already closed")
        exit_price = float(exit_price)
        await self.update_trade(
            trade_id,
            {
                "status": "closed",
                "exit_price": exit_price,
                "profit_loss": realized_pnl(trade.side, trade.entry_price, exit_price, trade.quantity),
                "closed_at": utcnow(),
            },
        )

    async def add_broker(self, fields: Mapping[str, Any]) -> Broker:
        broker = new_broker(fields, self.provider.new_id(), self.session.user_id)
        await self._write("adding broker", self.provider.insert_broker, broker)
        return broker

    async def connect_broker(self, broker_type: str, credentials: Mapping[str, str]) -> Broker:
        """Run the simulated credential check, then save the broker."""
        self._claim()
        try:
            await validate_connection(broker_type, credentials, delay=self.connect_delay)
        finally:
            self._release()
        return await self.add_broker(connection_record(broker_type, credentials))

    # ----- reads -----
    def find_trade(self, trade_id: str) -> Optional[Trade]:
        for t in self.trades:
            if t.id == trade_id:
                return t
        return None

    def recent_trades(self, n: int = 5) -> List[Trade]:
        return self.trades[:n]

    def performance(self) -> PerformanceMetrics:
        return compute_performance_metrics(self.trades)

    def portfolio_value(self) -> float:
        return portfolio_value(self.stats)

    def chart_data(self) -> Dict[str, Any]:
        return {
            "cumulative_pnl": cumulative_pnl_series(self.trades),
            "win_loss": win_loss_distribution(self.trades),
            "market_types": market_distribution(self.trades),
            "monthly_pnl": monthly_pnl(self.trades),
        }

    async def profile(self) -> Optional[Profile]:
        try:
            return await asyncio.to_thread(self.provider.get_profile, self.session.user_id)
        except PersistenceError as e:
            logger.error("Error fetching profile: %s", e)
            return None
