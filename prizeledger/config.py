"""Runtime configuration loaded from the environment (and ``.env``)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timezone, tzinfo
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from .db.utils import resolve_sqlite_url

ROOT_DIR = Path(__file__).resolve().parents[1]


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name) or default
    try:
        return Decimal(raw)
    except InvalidOperation as exc:
        raise ValueError(f"{name} must be a decimal, got {raw!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Engine settings.

    Attributes
    ----------
    db_url : str
        SQLAlchemy database URL. Relative SQLite paths are resolved against
        the repository root.
    draw_poll_seconds, trade_poll_seconds : float
        Poll intervals of the draw scheduler and the trade settlement poller.
    round_reveal_poll_seconds, round_completion_poll_seconds : float
        Poll intervals of the round lifecycle manager.
    price_lookup_timeout_seconds : float
        Upper bound on a single price feed lookup during trade settlement.
    price_stale_after_seconds : float
        Age after which the latest known price is no longer usable.
    draw_timezone : str
        IANA zone name in which the draw calendar (21:00 daily, Sunday
        20:00 weekly/monthly) is evaluated.
    platform_fee_rate : Decimal
        Share of the total prize pool retained as platform fees.
    display_winners_enabled : bool
        Whether display-only winner rows are produced for draws.
    round_secret_key : Optional[str]
        Fernet key protecting mystery-search phrases.
    price_feed_base_url, price_feed_api_key : Optional[str]
        Optional HTTP price oracle. When unset the stored price history is used.
    """

    db_url: str
    draw_poll_seconds: float = 30.0
    trade_poll_seconds: float = 30.0
    round_reveal_poll_seconds: float = 60.0
    round_completion_poll_seconds: float = 300.0
    price_lookup_timeout_seconds: float = 5.0
    price_stale_after_seconds: float = 30.0
    draw_timezone: str = "UTC"
    platform_fee_rate: Decimal = Decimal("0.30")
    display_winners_enabled: bool = True
    round_secret_key: Optional[str] = None
    price_feed_base_url: Optional[str] = None
    price_feed_api_key: Optional[str] = None

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        """Build settings from environment variables after loading ``.env``."""
        load_dotenv(env_file or ROOT_DIR / ".env")
        fee_rate = _env_decimal("PLATFORM_FEE_RATE", "0.30")
        if not Decimal("0") <= fee_rate < Decimal("1"):
            raise ValueError("PLATFORM_FEE_RATE must be within [0, 1)")
        return cls(
            db_url=resolve_sqlite_url(os.getenv("DB_URL", "sqlite:///./dev.db"), ROOT_DIR),
            draw_poll_seconds=_env_float("DRAW_POLL_SECONDS", 30.0),
            trade_poll_seconds=_env_float("TRADE_POLL_SECONDS", 30.0),
            round_reveal_poll_seconds=_env_float("ROUND_REVEAL_POLL_SECONDS", 60.0),
            round_completion_poll_seconds=_env_float(
                "ROUND_COMPLETION_POLL_SECONDS", 300.0
            ),
            price_lookup_timeout_seconds=_env_float("PRICE_LOOKUP_TIMEOUT_SECONDS", 5.0),
            price_stale_after_seconds=_env_float("PRICE_STALE_AFTER_SECONDS", 30.0),
            draw_timezone=os.getenv("DRAW_TIMEZONE", "UTC"),
            platform_fee_rate=fee_rate,
            display_winners_enabled=_env_bool("DISPLAY_WINNERS_ENABLED", True),
            round_secret_key=os.getenv("ROUND_SECRET_KEY") or None,
            price_feed_base_url=os.getenv("PRICE_FEED_BASE_URL") or None,
            price_feed_api_key=os.getenv("PRICE_FEED_API_KEY") or None,
        )

    def draw_tzinfo(self) -> tzinfo:
        """Return the tzinfo for :attr:`draw_timezone`."""
        if self.draw_timezone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.draw_timezone)


__all__ = ["Settings", "ROOT_DIR"]
