import unittest
from decimal import Decimal

from prizeledger.errors import TierConfigError
from prizeledger.prize_draw.tiers import (
    DAILY_RULES,
    DEFAULT_TIER_REGISTRY,
    MONTHLY_RULES,
    WEEKLY_RULES,
    DrawRules,
    PrizeTier,
    SpecialBand,
    SplitTier,
    TierRuleRegistry,
)


class DrawRulesTests(unittest.TestCase):
    def test_builtin_rules_are_valid(self) -> None:
        for rules in (DAILY_RULES, WEEKLY_RULES, MONTHLY_RULES):
            rules.validate()

    def test_band_threshold_is_strictly_greater_than(self) -> None:
        self.assertIsNone(DAILY_RULES.band_for(Decimal("10500")))
        self.assertIsNotNone(DAILY_RULES.band_for(Decimal("10500.01")))

    def test_weekly_band_selection(self) -> None:
        self.assertEqual(WEEKLY_RULES.band_for(Decimal("23000")).tiers[0].count, 4)
        self.assertEqual(WEEKLY_RULES.band_for(Decimal("22000")).tiers[0].count, 2)
        self.assertIsNone(WEEKLY_RULES.band_for(Decimal("10500")))

    def test_monthly_bands(self) -> None:
        big = MONTHLY_RULES.band_for(Decimal("50001"))
        self.assertEqual(big.total, Decimal("45000"))
        small = MONTHLY_RULES.band_for(Decimal("30001"))
        self.assertEqual(small.total, Decimal("27500"))

    def test_band_paying_more_than_threshold_is_rejected(self) -> None:
        rules = DrawRules(
            key="broken",
            bands=(SpecialBand(Decimal("100"), (PrizeTier("x", Decimal("60"), "x", 2),)),),
        )
        with self.assertRaises(TierConfigError):
            rules.validate()

    def test_split_shares_above_one_are_rejected(self) -> None:
        rules = DrawRules(
            key="broken",
            split_tiers=(
                SplitTier("a", Decimal("5"), "a", Decimal("0.7")),
                SplitTier("b", Decimal("5"), "b", Decimal("0.7")),
            ),
        )
        with self.assertRaises(TierConfigError):
            rules.validate()

    def test_thresholds_must_decrease(self) -> None:
        rules = DrawRules(
            key="broken",
            bands=(
                SpecialBand(Decimal("100"), (PrizeTier("x", Decimal("10"), "x"),)),
                SpecialBand(Decimal("200"), (PrizeTier("y", Decimal("10"), "y"),)),
            ),
        )
        with self.assertRaises(TierConfigError):
            rules.validate()


class TierRuleRegistryTests(unittest.TestCase):
    def test_default_registry_covers_calendar_types(self) -> None:
        self.assertEqual(
            sorted(DEFAULT_TIER_REGISTRY.available_rules()), ["daily", "monthly", "weekly"]
        )
        self.assertFalse(DEFAULT_TIER_REGISTRY.has("simple"))

    def test_duplicate_registration_requires_replace(self) -> None:
        registry = TierRuleRegistry()
        registry.register(DAILY_RULES)
        with self.assertRaises(ValueError):
            registry.register(DAILY_RULES)
        registry.register(DAILY_RULES, replace=True)
        self.assertIs(registry.get("daily"), DAILY_RULES)

    def test_invalid_rules_are_not_registered(self) -> None:
        registry = TierRuleRegistry()
        bad = DrawRules(key="bad", split_tiers=(SplitTier("a", Decimal("0"), "a"),))
        with self.assertRaises(TierConfigError):
            registry.register(bad)
        self.assertFalse(registry.has("bad"))

    def test_unknown_key(self) -> None:
        with self.assertRaises(KeyError):
            TierRuleRegistry().get("nope")


if __name__ == "__main__":
    unittest.main()
