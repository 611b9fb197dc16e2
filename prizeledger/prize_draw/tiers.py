"""Prize tier rules per draw type and the registry that resolves them."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from ..errors import TierConfigError


@dataclass(frozen=True)
class PrizeTier:
    """Fixed-headcount prize awarded inside a :class:`SpecialBand`.

    Attributes
    ----------
    winner_type : str
        Type tag written to the winner row (``special_cash``, ``motorcycle`` ...).
    amount : Decimal
        Amount paid to each winner of the tier.
    description : str
        Prize description shown with the winner.
    count : int
        Number of winners drawn for the tier.
    """

    winner_type: str
    amount: Decimal
    description: str
    count: int = 1

    @property
    def total(self) -> Decimal:
        return self.amount * self.count


@dataclass(frozen=True)
class SpecialBand:
    """Group of rare tiers unlocked when the pool is strictly above ``threshold``."""

    threshold: Decimal
    tiers: tuple[PrizeTier, ...]

    @property
    def total(self) -> Decimal:
        return sum((tier.total for tier in self.tiers), Decimal("0"))


@dataclass(frozen=True)
class SplitTier:
    """Pool-split tier: ``floor(remaining * share / amount)`` winners."""

    winner_type: str
    amount: Decimal
    description: str
    share: Decimal = Decimal("1")


@dataclass(frozen=True)
class DisplayPrize:
    """Display-only headline winner; never tied to a ticket and never paid."""

    winner_type: str
    amount: Decimal
    description: str


@dataclass(frozen=True)
class DrawRules:
    """Complete prize structure of one draw type.

    Bands are evaluated in order and the first whose threshold the pool
    exceeds is awarded; the pool left after the band is split across
    ``split_tiers``.
    """

    key: str
    bands: tuple[SpecialBand, ...] = ()
    split_tiers: tuple[SplitTier, ...] = ()
    display: Optional[DisplayPrize] = None
    description: Optional[str] = None

    def validate(self) -> None:
        """Check the rules can never allocate more than the pool.

        Raises
        ------
        TierConfigError
            If an amount or count is not positive, the split shares exceed
            the whole pool, a band pays more than its threshold, or the band
            thresholds are not strictly decreasing.
        """
        previous: Optional[Decimal] = None
        for band in self.bands:
            if band.threshold < 0:
                raise TierConfigError(f"{self.key}: negative band threshold")
            if previous is not None and band.threshold >= previous:
                raise TierConfigError(
                    f"{self.key}: band thresholds must be strictly decreasing"
                )
            previous = band.threshold
            if not band.tiers:
                raise TierConfigError(f"{self.key}: band {band.threshold} has no tiers")
            for tier in band.tiers:
                if tier.amount <= 0 or tier.count <= 0:
                    raise TierConfigError(
                        f"{self.key}: tier {tier.winner_type} needs a positive amount and count"
                    )
            if band.total > band.threshold:
                raise TierConfigError(
                    f"{self.key}: band above {band.threshold} pays {band.total}"
                )

        shares = Decimal("0")
        for split in self.split_tiers:
            if split.amount <= 0:
                raise TierConfigError(f"{self.key}: split tier amount must be positive")
            if split.share <= 0:
                raise TierConfigError(f"{self.key}: split tier share must be positive")
            shares += split.share
        if shares > 1:
            raise TierConfigError(f"{self.key}: split shares add up to {shares}")

        if self.display is not None and self.display.amount < 0:
            raise TierConfigError(f"{self.key}: display prize amount is negative")

    def band_for(self, pool: Decimal) -> Optional[SpecialBand]:
        """Return the band unlocked by ``pool`` (strictly greater than its threshold)."""
        for band in self.bands:
            if pool > band.threshold:
                return band
        return None


class TierRuleRegistry:
    """Mutable registry mapping lottery types to their :class:`DrawRules`."""

    def __init__(self) -> None:
        self._rules: Dict[str, DrawRules] = {}

    def register(self, rules: DrawRules, *, replace: bool = False) -> None:
        """Validate and register ``rules`` under ``rules.key``.

        Raises
        ------
        ValueError
            If the key is taken and ``replace`` is ``False``.
        TierConfigError
            If the rules fail :meth:`DrawRules.validate`.
        """
        if not replace and rules.key in self._rules:
            raise ValueError(f"Tier rules '{rules.key}' are already registered")
        rules.validate()
        self._rules[rules.key] = rules

    def get(self, key: str) -> DrawRules:
        try:
            return self._rules[key]
        except KeyError as exc:
            raise KeyError(f"No tier rules registered for draw type '{key}'") from exc

    def has(self, key: str) -> bool:
        return key in self._rules

    def available_rules(self) -> Dict[str, DrawRules]:
        """Return a copy of the registered rules keyed by draw type."""
        return dict(self._rules)


DAILY_RULES = DrawRules(
    key="daily",
    display=DisplayPrize(
        "special_cash_display", Decimal("10000"), "Mega Prize Winner - $10,000"
    ),
    bands=(
        SpecialBand(
            Decimal("10500"),
            (PrizeTier("special_cash", Decimal("10000"), "Mega Prize Winner - $10,000"),),
        ),
    ),
    split_tiers=(
        SplitTier("regular", Decimal("10"), "Daily Draw Winner - $10", Decimal("0.5")),
        SplitTier("regular", Decimal("5"), "Daily Draw Winner - $5", Decimal("0.5")),
    ),
    description="Mega cash prize above $10,500, rest split between $10 and $5 winners",
)

_MOTORCYCLE = "Yamaha R15 Motorcycle"

WEEKLY_RULES = DrawRules(
    key="weekly",
    display=DisplayPrize(
        "motorcycle_display", Decimal("5000"), "Yamaha R15 Motorcycle Winner"
    ),
    bands=(
        SpecialBand(
            Decimal("22000"),
            (PrizeTier("motorcycle", Decimal("5000"), _MOTORCYCLE, count=4),),
        ),
        SpecialBand(
            Decimal("10500"),
            (PrizeTier("motorcycle", Decimal("5000"), _MOTORCYCLE, count=2),),
        ),
    ),
    split_tiers=(SplitTier("regular", Decimal("20"), "Weekly Draw Winner - $20"),),
    description="Two or four motorcycles depending on pool, rest as $20 winners",
)

_MONTHLY_CASH = PrizeTier(
    "special_cash", Decimal("20000"), "Monthly Mega Prize - $20,000"
)
_IPHONE = "iPhone 15 Pro Max"

MONTHLY_RULES = DrawRules(
    key="monthly",
    display=DisplayPrize(
        "special_cash_display", Decimal("20000"), "Monthly Mega Prize Winner - $20,000"
    ),
    bands=(
        SpecialBand(
            Decimal("50000"),
            (
                _MONTHLY_CASH,
                PrizeTier(
                    "mystery_box", Decimal("2000"), "Mystery Gift Box ($2,000+)", count=5
                ),
                PrizeTier("iphone", Decimal("1500"), _IPHONE, count=10),
            ),
        ),
        SpecialBand(
            Decimal("30000"),
            (_MONTHLY_CASH, PrizeTier("iphone", Decimal("1500"), _IPHONE, count=5)),
        ),
    ),
    split_tiers=(SplitTier("regular", Decimal("50"), "Monthly Draw Winner - $50"),),
    description="Mega cash, mystery boxes and phones for large pools, rest as $50 winners",
)


def _build_default_registry() -> TierRuleRegistry:
    registry = TierRuleRegistry()
    for rules in (DAILY_RULES, WEEKLY_RULES, MONTHLY_RULES):
        registry.register(rules)
    return registry


DEFAULT_TIER_REGISTRY = _build_default_registry()


__all__ = [
    "PrizeTier",
    "SpecialBand",
    "SplitTier",
    "DisplayPrize",
    "DrawRules",
    "TierRuleRegistry",
    "DAILY_RULES",
    "WEEKLY_RULES",
    "MONTHLY_RULES",
    "DEFAULT_TIER_REGISTRY",
]
