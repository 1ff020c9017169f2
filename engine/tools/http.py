import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Accept-Language": "en-US,en;q=0.9",
    "User-Agent": "PharmAssist/1.0 (+clinical-query-service)",
}


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    params: Optional[dict[str, Any]] = None,
    timeout: float = 10.0,
) -> Optional[Any]:
    """GET a JSON document, returning None on any transport, status or decode error."""
    try:
        response = await client.get(
            url, params=params, headers=DEFAULT_HEADERS, timeout=timeout
        )
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as exc:
        logger.info("HTTP %s for %s", exc.response.status_code, exc.request.url)
    except httpx.HTTPError as exc:
        logger.warning("Request to %s failed: %s", url, exc)
    except ValueError as exc:
        logger.warning("Invalid JSON from %s: %s", url, exc)
    return None
