"""Browser-shaped request headers for the internal web endpoints."""

import secrets
import string
from typing import Dict

from revtrail.core.config import settings

_ID_ALPHABET = string.ascii_lowercase + string.digits

ACCEPT_JSON = "application/json, text/javascript, */*; q=0.01"
SEC_CH_UA = '"Chromium";v="120", "Google Chrome";v="120", "Not_A Brand";v="99"'


def random_client_id(prefix: str, length: int = 13) -> str:
    """Random id in the web client's format, e.g. ``req3k9x...``."""
    return prefix + "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def base_headers(cookies: str) -> Dict[str, str]:
    """Headers every session-authenticated request carries."""
    return {
        "Cookie": cookies,
        "Accept": ACCEPT_JSON,
        "Accept-Language": "en-US,en;q=0.9",
        "User-Agent": settings.USER_AGENT,
        "X-Requested-With": "XMLHttpRequest",
        "Origin": settings.AIRTABLE_BASE_URL,
        "Sec-Fetch-Dest": "empty",
        "Sec-Fetch-Mode": "cors",
        "Sec-Fetch-Site": "same-origin",
        "Sec-Ch-Ua": SEC_CH_UA,
        "Sec-Ch-Ua-Mobile": "?0",
        "Sec-Ch-Ua-Platform": '"macOS"',
    }


def row_activity_headers(cookies: str, base_id: str, table_id: str) -> Dict[str, str]:
    """Headers for the row activity endpoint, scoped to one base and table."""
    headers = base_headers(cookies)
    headers.update(
        {
            "x-time-zone": settings.TIME_ZONE,
            "x-user-locale": settings.USER_LOCALE,
            "x-airtable-application-id": base_id,
            "x-airtable-inter-service-client": "webClient",
            "x-airtable-page-load-id": random_client_id("pgl"),
            "Referer": f"{settings.AIRTABLE_BASE_URL}/{base_id}/{table_id}",
            "Priority": "u=1, i",
        }
    )
    return headers
