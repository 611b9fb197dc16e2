"""Trade settlement poller: resolves expired binary trades against the price feed."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from ..db.utils import ensure_utc, utcnow
from ..errors import AlreadySettled, PriceUnavailable, SettlementError
from ..models import BinaryTrade, TradingInstrument
from ..pricing.feed import PriceResolver
from ..settlement.executor import SettlementExecutor, TradeSettlementResult

logger = logging.getLogger(__name__)

PRICE_UNAVAILABLE = "price_unavailable"


@dataclass
class TradeRunReport:
    settled: list[TradeSettlementResult] = field(default_factory=list)
    errored: list[TradeSettlementResult] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


class TradePoller:
    """Settle every active trade whose expiry time has passed.

    The exit price is resolved before any transaction is opened, so a slow
    feed never holds row locks. Each trade then settles in its own
    transaction; a trade without a usable price moves to ``error``.

    Parameters
    ----------
    session_factory : sessionmaker
        Factory for per-trade sessions.
    resolver : PriceResolver
        Bounded-wait exit price lookup.
    notifier : Optional[Callable[[TradeSettlementResult], None]], default: None
        Called after each committed outcome. Its failures are logged only.
    clock : Callable[[], datetime], default: utcnow
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        resolver: PriceResolver,
        *,
        notifier: Optional[Callable[[TradeSettlementResult], None]] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._resolver = resolver
        self._notifier = notifier
        self._clock = clock

    def due_trades(self, now: datetime) -> list[tuple[int, str, datetime]]:
        """Return ``(trade_id, symbol, expiry_time)`` of every expired active trade."""
        with self._session_factory() as session:
            rows = session.execute(
                select(BinaryTrade.id, TradingInstrument.symbol, BinaryTrade.expiry_time)
                .join(TradingInstrument, BinaryTrade.instrument_id == TradingInstrument.id)
                .where(BinaryTrade.status == "active", BinaryTrade.expiry_time <= now)
                .order_by(BinaryTrade.expiry_time, BinaryTrade.id)
            ).all()
        return [(row[0], row[1], ensure_utc(row[2])) for row in rows]

    def process(
        self, trade_id: int, symbol: str, expiry: datetime, now: datetime
    ) -> TradeSettlementResult:
        try:
            exit_price = self._resolver.resolve(symbol, expiry, now=now)
        except PriceUnavailable as exc:
            logger.warning(f"Trade {trade_id}: {exc}")
            exit_price = None

        with self._session_factory() as session:
            with session.begin():
                executor = SettlementExecutor(session)
                if exit_price is None:
                    return executor.fail_trade(trade_id, PRICE_UNAVAILABLE, now=now)
                return executor.settle_trade(trade_id, exit_price, now=now)

    def run_once(self, now: Optional[datetime] = None) -> TradeRunReport:
        now = ensure_utc(now) or self._clock()
        report = TradeRunReport()
        for trade_id, symbol, expiry in self.due_trades(now):
            try:
                result = self.process(trade_id, symbol, expiry, now)
            except AlreadySettled as exc:
                logger.info(f"Skipping trade {trade_id}: {exc}")
                report.skipped.append(trade_id)
                continue
            except SettlementError:
                logger.exception(f"Trade {trade_id} could not be settled")
                report.failed.append(trade_id)
                continue
            except Exception:
                logger.exception(f"Unexpected error settling trade {trade_id}")
                report.failed.append(trade_id)
                continue
            if result.status == "error":
                report.errored.append(result)
            else:
                report.settled.append(result)
            self._notify(result)
        return report

    def _notify(self, result: TradeSettlementResult) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier(result)
        except Exception:
            logger.exception(f"Trade notifier failed for trade {result.trade_id}")


__all__ = ["TradePoller", "TradeRunReport", "PRICE_UNAVAILABLE"]
