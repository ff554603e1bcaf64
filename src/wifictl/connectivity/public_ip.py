"""
Public IP address lookup.
"""

import logging
from typing import Any, Dict

import requests

logger = logging.getLogger(__name__)

PUBLIC_IP_URL = "https://ipinfo.io/json"


def fetch_public_ip_info(url: str = PUBLIC_IP_URL, timeout_seconds: int = 10) -> Dict[str, Any]:
    """
    Fetch public IP information (ip, city, region, country, org, ...).

    Raises:
        requests.RequestException: On network or HTTP errors
    """
    response = requests.get(url, timeout=timeout_seconds)
    response.raise_for_status()
    info = response.json()
    logger.debug(f"Public IP info: {info.get('ip')}")
    return info
