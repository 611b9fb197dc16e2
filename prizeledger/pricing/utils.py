import logging
import os
from typing import Optional

import requests
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Ensure environment variables from .env are loaded when this module is imported.
load_dotenv()


def open_session(api_key: Optional[str] = None) -> requests.Session:
    """Open a requests session for the price oracle.

    Parameters
    ----------
    api_key : Optional[str], default: None
        Oracle API key. Falls back to ``PRICE_FEED_API_KEY``; the session is
        unauthenticated when neither is set.

    Returns
    -------
    requests.Session
        Session with JSON accept and, when available, API key headers.
    """
    session = requests.Session()
    session.headers.update({"Accept": "application/json"})
    key = api_key or os.environ.get("PRICE_FEED_API_KEY")
    if key:
        # Do not log the key value
        session.headers["X-API-Key"] = key
        logger.debug("Price feed API key configured")
    else:
        logger.debug("Price feed session opened without API key")
    return session
