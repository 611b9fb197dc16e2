"""Round lifecycle manager: clue reveals, round completion and auto-start."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from ..db.utils import ensure_utc, utcnow
from ..errors import AlreadySettled, NotDue
from ..models import MysterySearchRound, SurpriseDraw, TryYourLuckRound
from ..randomness import RandomnessProvider
from ..rounds.mystery import (
    OPEN_STATUSES as MYSTERY_OPEN_STATUSES,
    REVEAL_ORDER,
    activate_due_mystery_rounds,
    complete_mystery_round,
    create_mystery_round,
    current_mystery_round,
    reveal_next_clue,
)
from ..rounds.seed_phrase import PhraseCipher
from ..rounds.surprise import activate_due_surprise_draws, complete_surprise_draw
from ..rounds.try_your_luck import (
    complete_try_your_luck_round,
    create_try_your_luck_round,
    current_try_your_luck_round,
)
from ..settlement.executor import SettlementExecutor

logger = logging.getLogger(__name__)


@dataclass
class RoundRunReport:
    activated: list[str] = field(default_factory=list)
    revealed: list[int] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class RoundManager:
    """Drive mystery-search, try-your-luck and surprise-draw rounds.

    Two ticks are exposed for two timers: :meth:`run_reveals` publishes due
    clues and :meth:`run_completions` settles expired rounds and makes sure
    a mystery-search and a try-your-luck round are always open. Every round
    is handled in its own transaction.

    Parameters
    ----------
    session_factory : sessionmaker
    cipher : Optional[PhraseCipher]
        Phrase cipher. Without it mystery-search rounds are left alone.
    rng : Optional[RandomnessProvider], default: None
    clock : Callable[[], datetime], default: utcnow
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        cipher: Optional[PhraseCipher],
        *,
        rng: Optional[RandomnessProvider] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._cipher = cipher
        self._rng = rng or RandomnessProvider()
        self._clock = clock

    def _unit(self, label: str, report: RoundRunReport, work: Callable[[Session], object]):
        try:
            with self._session_factory() as session:
                with session.begin():
                    return work(session)
        except (AlreadySettled, NotDue) as exc:
            logger.info(f"Skipping {label}: {exc}")
        except Exception:
            logger.exception(f"Round task {label} failed")
            report.failed.append(label)
        return None

    def _ids(self, stmt) -> list[int]:
        with self._session_factory() as session:
            return list(session.scalars(stmt))

    # ------------------------------------------------------------------
    # Reveal tick
    # ------------------------------------------------------------------
    def run_reveals(self, now: Optional[datetime] = None) -> RoundRunReport:
        now = ensure_utc(now) or self._clock()
        report = RoundRunReport()
        if self._cipher is None:
            logger.debug("No round secret key configured; skipping mystery reveals")
            return report

        activated = self._unit(
            "mystery activation",
            report,
            lambda s: activate_due_mystery_rounds(s, now=now),
        )
        report.activated.extend(f"mystery:{rid}" for rid in activated or [])

        due = self._ids(
            select(MysterySearchRound.id).where(
                MysterySearchRound.status == "active",
                MysterySearchRound.next_clue_reveal_at <= now,
                MysterySearchRound.reveals_done < len(REVEAL_ORDER),
            )
        )
        for round_id in due:
            position = self._unit(
                f"mystery:{round_id} reveal",
                report,
                lambda s, rid=round_id: reveal_next_clue(s, self._cipher, rid, now=now),
            )
            if position is not None:
                report.revealed.append(round_id)
        return report

    # ------------------------------------------------------------------
    # Completion tick
    # ------------------------------------------------------------------
    def run_completions(self, now: Optional[datetime] = None) -> RoundRunReport:
        now = ensure_utc(now) or self._clock()
        report = RoundRunReport()

        activated = self._unit(
            "surprise activation",
            report,
            lambda s: activate_due_surprise_draws(s, now=now),
        )
        report.activated.extend(f"surprise:{did}" for did in activated or [])

        if self._cipher is not None:
            for round_id in self._ids(
                select(MysterySearchRound.id).where(
                    MysterySearchRound.status.in_(MYSTERY_OPEN_STATUSES),
                    MysterySearchRound.end_time <= now,
                )
            ):
                label = f"mystery:{round_id}"
                done = self._unit(
                    label,
                    report,
                    lambda s, rid=round_id: complete_mystery_round(
                        s, SettlementExecutor(s), self._cipher, self._rng, rid, now=now
                    ),
                )
                if done is not None:
                    report.completed.append(label)

        for round_id in self._ids(
            select(TryYourLuckRound.id).where(
                TryYourLuckRound.status == "active", TryYourLuckRound.end_time <= now
            )
        ):
            label = f"try_your_luck:{round_id}"
            done = self._unit(
                label,
                report,
                lambda s, rid=round_id: complete_try_your_luck_round(
                    s, SettlementExecutor(s), self._rng, rid, now=now
                ),
            )
            if done is not None:
                report.completed.append(label)

        for draw_id in self._ids(
            select(SurpriseDraw.id).where(
                SurpriseDraw.status == "active", SurpriseDraw.end_time <= now
            )
        ):
            label = f"surprise:{draw_id}"
            done = self._unit(
                label,
                report,
                lambda s, did=draw_id: complete_surprise_draw(
                    s, SettlementExecutor(s), self._rng, did, now=now
                ),
            )
            if done is not None:
                report.completed.append(label)

        self._ensure_open_rounds(now, report)
        return report

    def _ensure_open_rounds(self, now: datetime, report: RoundRunReport) -> None:
        if self._cipher is not None:
            def open_mystery(session: Session):
                if current_mystery_round(session) is not None:
                    return None
                return create_mystery_round(session, self._cipher, self._rng, now=now).id

            round_id = self._unit("mystery auto-start", report, open_mystery)
            if round_id is not None:
                report.created.append(f"mystery:{round_id}")

        def open_try_your_luck(session: Session):
            if current_try_your_luck_round(session, now=now) is not None:
                return None
            return create_try_your_luck_round(session, now=now).id

        round_id = self._unit("try_your_luck auto-start", report, open_try_your_luck)
        if round_id is not None:
            report.created.append(f"try_your_luck:{round_id}")


__all__ = ["RoundManager", "RoundRunReport"]
