"""
keep_alive.py — Periodic self-ping.

Some hosts put idle web processes to sleep, which would also stop the
daily trigger. A GET against our own liveness route (or KEEP_ALIVE_URL)
every few minutes keeps the process warm. Failures are logged and
otherwise ignored.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)


async def ping(client: httpx.AsyncClient, url: str) -> bool:
    """GET `url` once. Returns True on a 2xx response, never raises."""
    try:
        response = await client.get(url)
        response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error("🔌 Keep-alive ping failed: %s", e, extra={"url": url})
        return False

    logger.info("🔄 Keep-alive ping OK", extra={"url": url, "status_code": response.status_code})
    return True
