"""Compose the schedulers into one start/stop-able engine."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import sessionmaker

from .config import Settings
from .db.engine import get_sessionmaker, make_engine
from .db.utils import utcnow
from .pricing.api import HttpPriceFeed
from .pricing.feed import PriceFeed, PriceResolver, StoredPriceFeed
from .randomness import RandomnessProvider
from .rounds.seed_phrase import PhraseCipher
from .scheduling.draw_scheduler import DrawScheduler
from .scheduling.round_manager import RoundManager
from .scheduling.timer import RecurringTimer
from .scheduling.trade_poller import TradePoller

logger = logging.getLogger(__name__)


class SettlementEngine:
    """Own the four recurring timers of the engine.

    Parameters
    ----------
    settings : Settings
        Poll intervals, fee rate, calendar zone and secrets.
    session_factory : Optional[sessionmaker], default: None
        Session factory; built from ``settings.db_url`` when omitted.
    price_feed : Optional[PriceFeed], default: None
        Feed used for exit prices. Defaults to :class:`HttpPriceFeed` when
        ``PRICE_FEED_BASE_URL`` is configured, else :class:`StoredPriceFeed`.
    rng : Optional[RandomnessProvider], default: None
    clock : Callable[[], datetime], default: utcnow
    draw_notifier, trade_notifier : Optional[Callable], default: None
        Post-commit callbacks; failures are logged and ignored.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        session_factory: Optional[sessionmaker] = None,
        price_feed: Optional[PriceFeed] = None,
        rng: Optional[RandomnessProvider] = None,
        clock: Callable[[], datetime] = utcnow,
        draw_notifier: Optional[Callable] = None,
        trade_notifier: Optional[Callable] = None,
    ) -> None:
        self.settings = settings
        self.session_factory = session_factory or get_sessionmaker(
            make_engine(settings.db_url)
        )
        rng = rng or RandomnessProvider()
        stale_after = timedelta(seconds=settings.price_stale_after_seconds)

        if price_feed is None:
            if settings.price_feed_base_url:
                price_feed = HttpPriceFeed(
                    settings.price_feed_base_url,
                    api_key=settings.price_feed_api_key,
                    timeout=settings.price_lookup_timeout_seconds,
                    stale_after=stale_after,
                )
            else:
                price_feed = StoredPriceFeed(
                    self.session_factory, stale_after=stale_after, clock=clock
                )
        self.resolver = PriceResolver(
            price_feed, timeout=settings.price_lookup_timeout_seconds
        )

        cipher = None
        if settings.round_secret_key:
            cipher = PhraseCipher(settings.round_secret_key)
        else:
            logger.warning("ROUND_SECRET_KEY is not set; mystery-search rounds are disabled")

        self.draw_scheduler = DrawScheduler(
            self.session_factory,
            rng=rng,
            fee_rate=settings.platform_fee_rate,
            display_winners=settings.display_winners_enabled,
            tz=settings.draw_tzinfo(),
            notifier=draw_notifier,
            clock=clock,
        )
        self.trade_poller = TradePoller(
            self.session_factory, self.resolver, notifier=trade_notifier, clock=clock
        )
        self.round_manager = RoundManager(self.session_factory, cipher, rng=rng, clock=clock)

        self.timers = [
            RecurringTimer(
                "draws", settings.draw_poll_seconds, self.draw_scheduler.run_once
            ),
            RecurringTimer(
                "trades", settings.trade_poll_seconds, self.trade_poller.run_once
            ),
            RecurringTimer(
                "round-reveals",
                settings.round_reveal_poll_seconds,
                self.round_manager.run_reveals,
            ),
            RecurringTimer(
                "round-completions",
                settings.round_completion_poll_seconds,
                self.round_manager.run_completions,
            ),
        ]

    @classmethod
    def from_env(cls, **kwargs) -> "SettlementEngine":
        return cls(Settings.from_env(), **kwargs)

    def start(self) -> None:
        for timer in self.timers:
            timer.start()
        logger.info("Settlement engine started")

    def stop(self, timeout: Optional[float] = None) -> None:
        for timer in self.timers:
            timer.stop(timeout)
        self.resolver.close()
        logger.info("Settlement engine stopped")

    def __enter__(self) -> "SettlementEngine":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()


__all__ = ["SettlementEngine"]
