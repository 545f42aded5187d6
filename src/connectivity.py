"""Network connectivity probe."""

import logging

import requests

logger = logging.getLogger(__name__)

DEFAULT_PROBE_URL = 'https://clients3.google.com/generate_204'
DEFAULT_PROBE_TIMEOUT = 3.0


def is_online(probe_url: str = DEFAULT_PROBE_URL, timeout: float = DEFAULT_PROBE_TIMEOUT) -> bool:
    """Return True if ``probe_url`` answers at all.

    Any HTTP response, whatever its status, means the network is up. Only a
    connection failure or timeout counts as offline.
    """
    try:
        requests.head(probe_url, timeout=timeout, allow_redirects=False)
        return True
    except (requests.ConnectionError, requests.Timeout) as e:
        logger.debug(f"Connectivity probe to {probe_url} failed: {e}")
        return False
