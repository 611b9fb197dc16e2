import os
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Mapping, Optional
from urllib.parse import urljoin

import requests
from dotenv import load_dotenv

from ..db.utils import ensure_utc, utcnow
from .utils import open_session


def _parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(value))


class HttpPriceFeed:
    """Price feed client for an HTTP price oracle.

    Expected endpoints return ``{"price": "<decimal>", "timestamp": "<iso8601>"}``:

    * ``GET /api/v1/prices/{symbol}/latest``
    * ``GET /api/v1/prices/{symbol}/at?timestamp=<iso8601>``

    A 404 means "no price" and maps to ``None``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        api_key: Optional[str] = None,
        timeout: float = 5,
        stale_after: timedelta = timedelta(seconds=30),
        session: Optional[requests.Session] = None,
    ):
        load_dotenv()
        url = base_url or os.getenv("PRICE_FEED_BASE_URL")
        if not url:
            raise ValueError("Environment variable 'PRICE_FEED_BASE_URL' is not set")

        self.base_url = url.rstrip("/")
        self.session = session or open_session(api_key)
        self.timeout = timeout
        self.stale_after = stale_after

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Optional[dict]:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        r = self.session.request(
            method=method.upper(),
            url=url,
            params=params,
            timeout=self.timeout,
        )
        if r.status_code == 404:
            return None
        r.raise_for_status()
        return r.json() if r.content else None

    @staticmethod
    def _price(payload: Optional[dict]) -> Optional[Decimal]:
        if not payload or payload.get("price") is None:
            return None
        return Decimal(str(payload["price"]))

    # -------- PriceFeed --------
    def get_latest_quote(self, symbol: str) -> Optional[dict]:
        return self._request("GET", f"/api/v1/prices/{symbol}/latest")

    def get_price_at_time(self, symbol: str, timestamp: datetime) -> Optional[Decimal]:
        payload = self._request(
            "GET",
            f"/api/v1/prices/{symbol}/at",
            params={"timestamp": ensure_utc(timestamp).isoformat()},
        )
        return self._price(payload)

    def get_latest_price(self, symbol: str) -> Optional[Decimal]:
        return self._price(self.get_latest_quote(symbol))

    def is_stale(self, symbol: str, now: Optional[datetime] = None) -> bool:
        payload = self.get_latest_quote(symbol)
        if not payload or not payload.get("timestamp"):
            return True
        now = ensure_utc(now) or utcnow()
        return now - _parse_timestamp(payload["timestamp"]) > self.stale_after
