from decimal import Decimal

from sqlalchemy import BigInteger, Integer, Numeric

# Use BigInteger by default, with a SQLite-safe Integer variant for autoincrement PKs.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")

# Ledger amounts: four decimals.
MONEY = Numeric(18, 4, asdecimal=True)

# Trade stakes and payout multipliers: two decimals each, so a payout
# (stake x multiplier) never needs more than the four decimals of MONEY.
CENTS = Numeric(18, 2, asdecimal=True)
MULTIPLIER = Numeric(5, 2, asdecimal=True)

# Instrument prices.
PRICE = Numeric(20, 8, asdecimal=True)


def require_two_places(name: str, value) -> Decimal:
    """Return ``value`` as a Decimal, rejecting anything finer than 0.01."""
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    if amount != amount.quantize(Decimal("0.01")):
        raise ValueError(f"{name} must have at most two decimal places, got {amount}")
    return amount
