"""Price feed contract, the stored-history implementation and exit-price resolution."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from ..db.utils import ensure_utc, utcnow
from ..errors import PriceUnavailable
from ..models import PriceHistory, TradingInstrument

logger = logging.getLogger(__name__)


class PriceFeed(Protocol):
    """Best-effort price oracle consumed by trade settlement."""

    def get_price_at_time(self, symbol: str, timestamp: datetime) -> Optional[Decimal]:
        ...

    def get_latest_price(self, symbol: str) -> Optional[Decimal]:
        ...

    def is_stale(self, symbol: str, now: Optional[datetime] = None) -> bool:
        ...


class StoredPriceFeed:
    """Price feed backed by the ``price_history`` table.

    Each lookup opens its own short session so it can run on a worker thread
    outside the settlement transaction.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        stale_after: timedelta = timedelta(seconds=30),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._stale_after = stale_after
        self._clock = clock

    def _latest_row(
        self, session: Session, symbol: str, at_or_before: Optional[datetime] = None
    ) -> Optional[PriceHistory]:
        stmt = (
            select(PriceHistory)
            .join(TradingInstrument, PriceHistory.instrument_id == TradingInstrument.id)
            .where(TradingInstrument.symbol == symbol)
        )
        if at_or_before is not None:
            stmt = stmt.where(PriceHistory.timestamp <= at_or_before)
        stmt = stmt.order_by(PriceHistory.timestamp.desc(), PriceHistory.id.desc()).limit(1)
        return session.scalar(stmt)

    def get_price_at_time(self, symbol: str, timestamp: datetime) -> Optional[Decimal]:
        """Return the last price observed at or before ``timestamp``.

        Observations older than the staleness window before ``timestamp`` do
        not count as the price at that time.
        """
        timestamp = ensure_utc(timestamp)
        with self._session_factory() as session:
            row = self._latest_row(session, symbol, timestamp)
            if row is None:
                return None
            if timestamp - ensure_utc(row.timestamp) > self._stale_after:
                return None
            return row.price

    def get_latest_price(self, symbol: str) -> Optional[Decimal]:
        with self._session_factory() as session:
            row = self._latest_row(session, symbol)
            return row.price if row is not None else None

    def is_stale(self, symbol: str, now: Optional[datetime] = None) -> bool:
        now = ensure_utc(now) or self._clock()
        with self._session_factory() as session:
            row = self._latest_row(session, symbol)
            if row is None:
                return True
            return now - ensure_utc(row.timestamp) > self._stale_after


class PriceResolver:
    """Resolve a trade's exit price with a bounded wait.

    Lookups run on a small thread pool so a hung feed cannot stall the
    trade poller; a timeout is reported as :class:`PriceUnavailable`.
    """

    def __init__(self, feed: PriceFeed, *, timeout: float = 5.0, max_workers: int = 4) -> None:
        self._feed = feed
        self._timeout = timeout
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="price-lookup"
        )

    def _lookup(self, symbol: str, expiry: datetime, now: datetime) -> Optional[Decimal]:
        price = self._feed.get_price_at_time(symbol, expiry)
        if price is not None:
            return price
        if self._feed.is_stale(symbol, now):
            return None
        return self._feed.get_latest_price(symbol)

    def resolve(
        self, symbol: str, expiry: datetime, *, now: Optional[datetime] = None
    ) -> Decimal:
        """Return the exit price of ``symbol`` for a trade expiring at ``expiry``.

        The price at expiry is preferred; the latest price is used only when
        the feed is not stale.

        Raises
        ------
        PriceUnavailable
            No usable price, the lookup failed, or it exceeded the timeout.
        """
        now = ensure_utc(now) or utcnow()
        future = self._pool.submit(self._lookup, symbol, ensure_utc(expiry), now)
        try:
            price = future.result(timeout=self._timeout)
        except FutureTimeout as exc:
            future.cancel()
            raise PriceUnavailable(
                f"price lookup for {symbol} timed out after {self._timeout}s"
            ) from exc
        except Exception as exc:
            logger.warning(f"Price lookup for {symbol} failed: {exc}")
            raise PriceUnavailable(f"price lookup for {symbol} failed: {exc}") from exc
        if price is None:
            raise PriceUnavailable(f"no fresh price for {symbol} at {expiry.isoformat()}")
        return Decimal(str(price))

    def close(self) -> None:
        self._pool.shutdown(wait=False)


__all__ = ["PriceFeed", "StoredPriceFeed", "PriceResolver"]
