"""Draw scheduler: settles due lottery draws and keeps the draw calendar filled."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from ..db.utils import ensure_utc, utcnow
from ..errors import AlreadySettled, DrawCancelled, SettlementError
from ..models import DRAW_OPEN_STATUSES, Draw
from ..prize_draw.engine import DEFAULT_PLATFORM_FEE_RATE, DrawEngine
from ..prize_draw.tiers import DEFAULT_TIER_REGISTRY, TierRuleRegistry
from ..randomness import RandomnessProvider
from ..settlement.executor import DrawSettlementResult
from ..workflows import ensure_scheduled_draws

logger = logging.getLogger(__name__)


@dataclass
class DrawRunReport:
    settled: list[DrawSettlementResult] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    scheduled: list[int] = field(default_factory=list)


class DrawScheduler:
    """Poll for due draws and settle each one in its own transaction.

    Parameters
    ----------
    session_factory : sessionmaker
        Factory for the sessions used by each unit of work.
    rng : Optional[RandomnessProvider], default: None
        Secure random source shared by all draws.
    registry : Optional[TierRuleRegistry], default: None
        Tier rules keyed by lottery type.
    fee_rate : Decimal, default: Decimal("0.30")
        Platform fee share of each draw's gross pool.
    display_winners : bool, default: True
        Whether display-only winners are written.
    tz : tzinfo, default: UTC
        Zone in which the draw calendar is evaluated.
    notifier : Optional[Callable[[DrawSettlementResult], None]], default: None
        Called after each committed settlement. Its failures are logged only.
    clock : Callable[[], datetime], default: utcnow
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        rng: Optional[RandomnessProvider] = None,
        registry: Optional[TierRuleRegistry] = None,
        fee_rate: Decimal = DEFAULT_PLATFORM_FEE_RATE,
        display_winners: bool = True,
        tz: tzinfo = timezone.utc,
        notifier: Optional[Callable[[DrawSettlementResult], None]] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._rng = rng or RandomnessProvider()
        self._registry = registry or DEFAULT_TIER_REGISTRY
        self._fee_rate = fee_rate
        self._display_winners = display_winners
        self._tz = tz
        self._notifier = notifier
        self._clock = clock

    def due_draw_ids(self, now: datetime) -> list[int]:
        with self._session_factory() as session:
            return list(
                session.scalars(
                    select(Draw.id)
                    .where(Draw.status.in_(DRAW_OPEN_STATUSES), Draw.draw_date <= now)
                    .order_by(Draw.draw_date, Draw.id)
                )
            )

    def settle_one(self, draw_id: int, now: datetime) -> DrawSettlementResult:
        with self._session_factory() as session:
            with session.begin():
                engine = DrawEngine(
                    session,
                    rng=self._rng,
                    registry=self._registry,
                    fee_rate=self._fee_rate,
                    display_winners=self._display_winners,
                )
                return engine.settle(draw_id, now=now)

    def run_once(self, now: Optional[datetime] = None) -> DrawRunReport:
        """Settle every due draw, then schedule the next draw of each lottery."""
        now = ensure_utc(now) or self._clock()
        report = DrawRunReport()

        for draw_id in self.due_draw_ids(now):
            try:
                result = self.settle_one(draw_id, now)
            except (AlreadySettled, DrawCancelled) as exc:
                logger.info(f"Skipping draw {draw_id}: {exc}")
                report.skipped.append(draw_id)
                continue
            except SettlementError:
                logger.exception(f"Draw {draw_id} could not be settled")
                report.failed.append(draw_id)
                continue
            except Exception:
                logger.exception(f"Unexpected error settling draw {draw_id}")
                report.failed.append(draw_id)
                continue
            report.settled.append(result)
            self._notify(result)

        try:
            with self._session_factory() as session:
                with session.begin():
                    created = ensure_scheduled_draws(session, now=now, tz=self._tz)
                    for draw in created:
                        report.scheduled.append(draw.id)
                        logger.info(
                            f"Scheduled {draw.lottery.type} draw {draw.id} "
                            f"for {draw.draw_date}"
                        )
        except Exception:
            logger.exception("Failed to schedule upcoming draws")
        return report

    def _notify(self, result: DrawSettlementResult) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier(result)
        except Exception:
            logger.exception(f"Draw notifier failed for draw {result.draw_id}")


__all__ = ["DrawScheduler", "DrawRunReport"]
