"""Price lookups used to resolve binary trades."""

from .api import HttpPriceFeed
from .feed import PriceFeed, PriceResolver, StoredPriceFeed

__all__ = ["PriceFeed", "StoredPriceFeed", "PriceResolver", "HttpPriceFeed"]
