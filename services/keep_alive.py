"""
Keep-alive pinger
Free hosting plans suspend idle services; a periodic GET on our own
/health endpoint keeps the instance awake.
"""

import asyncio
import logging
from typing import Optional

import httpx

from config.settings import KEEP_ALIVE_URL, KEEP_ALIVE_INTERVAL

logger = logging.getLogger(__name__)

INITIAL_DELAY = 120
USER_AGENT = "KeepAlive-Bot/1.0"


async def ping_once(client: httpx.AsyncClient, base_url: str) -> Optional[int]:
    """Ping {base_url}/health; returns the status code, or None on failure"""
    url = f"{base_url.rstrip('/')}/health"
    try:
        response = await client.get(url, headers={"User-Agent": USER_AGENT})
        logger.info(f"💓 Keep-alive ping: {response.status_code}")
        return response.status_code
    except httpx.HTTPError as e:
        logger.warning(f"⚠️ Keep-alive ping failed: {e}")
        return None


async def keep_alive_loop(
    base_url: str = KEEP_ALIVE_URL,
    interval: float = KEEP_ALIVE_INTERVAL,
    initial_delay: float = INITIAL_DELAY,
    transport: httpx.AsyncBaseTransport = None
):
    """Runs until cancelled"""
    if not base_url:
        logger.info("ℹ️ KEEP_ALIVE_URL not set, keep-alive disabled")
        return

    logger.info(f"✅ Keep-alive enabled for {base_url} (every {interval}s)")
    async with httpx.AsyncClient(timeout=30.0, transport=transport) as client:
        await asyncio.sleep(initial_delay)
        while True:
            await ping_once(client, base_url)
            await asyncio.sleep(interval)
