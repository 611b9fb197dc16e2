"""Prize tier rules, allocation and draw numbers.

:class:`~prizeledger.prize_draw.engine.DrawEngine` lives in
:mod:`prizeledger.prize_draw.engine` and is imported from there.
"""

from .allocator import (
    Participant,
    WinnerAllocation,
    allocate,
    allocate_exact_match,
    real_total,
)
from .numbers import (
    display_ticket_label,
    generate_ticket_number,
    generate_winning_numbers,
    normalize_numbers,
)
from .tiers import (
    DAILY_RULES,
    DEFAULT_TIER_REGISTRY,
    MONTHLY_RULES,
    WEEKLY_RULES,
    DisplayPrize,
    DrawRules,
    PrizeTier,
    SpecialBand,
    SplitTier,
    TierRuleRegistry,
)

__all__ = [
    "Participant",
    "WinnerAllocation",
    "allocate",
    "allocate_exact_match",
    "real_total",
    "display_ticket_label",
    "generate_ticket_number",
    "generate_winning_numbers",
    "normalize_numbers",
    "DAILY_RULES",
    "WEEKLY_RULES",
    "MONTHLY_RULES",
    "DEFAULT_TIER_REGISTRY",
    "DisplayPrize",
    "DrawRules",
    "PrizeTier",
    "SpecialBand",
    "SplitTier",
    "TierRuleRegistry",
]
