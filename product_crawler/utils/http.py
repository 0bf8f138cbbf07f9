from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Mapping, Optional
from aiohttp import ClientSession, ClientTimeout
import aiohttp
import logging

logger = logging.getLogger(__name__)

RATE_LIMITED = 429
DEFAULT_RETRY_AFTER = 5.0


@dataclass
class FetchResult:
    """
    Content retrieved for one URL. ``content`` is None when every attempt failed;
    ``error`` then carries the last failure for logging/reporting.
    """
    url: str
    content: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.content is not None


def retry_after_seconds(headers: Mapping[str, str], default: float = DEFAULT_RETRY_AFTER) -> float:
    """Delay requested by a 429 response's Retry-After header, in seconds."""
    value = headers.get("Retry-After")
    if value is None:
        return default
    try:
        return max(float(value), 0.0)
    except ValueError:
        # HTTP-date form is not worth honouring precisely here.
        return default


async def fetch_text(
    session: ClientSession,
    url: str,
    *,
    timeout: float = 30.0,
    user_agent: Optional[str] = None,
    retries: int = 3,
) -> FetchResult:
    """
    Fetch a URL and return its body text.

    Makes at most ``retries + 1`` attempts. A 429 response waits for the server's
    Retry-After delay; any other failure backs off exponentially (1s, 2s, 4s, ...).
    Never raises: once attempts are exhausted the result has no content.
    """
    headers = {}
    if user_agent:
        headers["User-Agent"] = user_agent

    last_error: Optional[str] = None
    for attempt in range(retries + 1):
        try:
            async with session.get(url, headers=headers, timeout=ClientTimeout(total=timeout)) as resp:
                if resp.status == RATE_LIMITED:
                    delay = retry_after_seconds(resp.headers)
                    last_error = f"HTTP {RATE_LIMITED}"
                    logger.debug("Rate limited on %s (attempt %s), retrying in %ss", url, attempt + 1, delay)
                else:
                    resp.raise_for_status()
                    # Undecodable bytes become U+FFFD instead of failing the fetch.
                    return FetchResult(url=url, content=await resp.text(errors="replace"))
        except Exception as exc:  # broad catch to keep crawler moving
            delay = 2 ** attempt
            last_error = repr(exc)
            logger.debug("fetch_text attempt %s failed for %s: %s", attempt + 1, url, last_error)

        if attempt < retries:
            await asyncio.sleep(delay)

    logger.warning("Error fetching %s after %s attempts: %s", url, retries + 1, last_error)
    return FetchResult(url=url, error=last_error)


def create_session() -> ClientSession:
    """
    Create a shared aiohttp ClientSession. Per-request headers are set by ``fetch_text``.
    """
    # Note: caller is responsible for closing the session (await session.close()).
    connector = aiohttp.TCPConnector(limit=0)  # unlimited; concurrency bounded by batch size
    return aiohttp.ClientSession(connector=connector)
