"""
Headless rendering for JavaScript-driven storefronts.

One Chromium process is launched lazily and shared by every domain and page;
each render gets its own browser context so pages never see each other's state.
"""
from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from ..config import CrawlConfig
from ..utils.http import FetchResult

logger = logging.getLogger(__name__)

SCROLL_TO_BOTTOM = "window.scrollTo(0, document.body.scrollHeight)"
PAGE_HEIGHT = "document.body.scrollHeight"

_LAUNCH_ARGS = ["--disable-gpu", "--no-sandbox", "--disable-dev-shm-usage"]


def app_data_dir() -> Path:
    base = os.getenv("LOCALAPPDATA") or str(Path.home() / ".product-crawler")
    p = Path(base) / "product-crawler"
    p.mkdir(parents=True, exist_ok=True)
    return p


def _use_private_browsers_dir() -> None:
    # Respect an explicit PLAYWRIGHT_BROWSERS_PATH; otherwise keep browsers next to app data.
    os.environ.setdefault("PLAYWRIGHT_BROWSERS_PATH", str(app_data_dir() / "ms-playwright"))


async def scroll_until_stable(page: Any, max_scrolls: int, scroll_timeout: float) -> int:
    """
    Scroll to the bottom until the document height stops changing or ``max_scrolls`` is hit.
    Returns the number of scrolls performed.
    """
    last_height = await page.evaluate(PAGE_HEIGHT)
    scrolls = 0
    while scrolls < max_scrolls:
        await page.evaluate(SCROLL_TO_BOTTOM)
        await page.wait_for_timeout(scroll_timeout * 1000)
        scrolls += 1
        height = await page.evaluate(PAGE_HEIGHT)
        if height == last_height:
            break
        last_height = height
    return scrolls


class BrowserRenderer:
    """
    Renders pages in a shared headless Chromium and returns the final markup.

    ``browser`` may be passed in pre-launched; otherwise it is launched on first use.
    Call ``close()`` once when the whole run is over.
    """

    def __init__(self, config: CrawlConfig, browser: Any = None) -> None:
        self.config = config
        self._browser = browser
        self._playwright: Any = None
        self._launch_lock = asyncio.Lock()

    @property
    def launched(self) -> bool:
        return self._browser is not None

    async def _ensure_browser(self) -> Any:
        async with self._launch_lock:
            if self._browser is None:
                _use_private_browsers_dir()
                playwright = await async_playwright().start()
                try:
                    self._browser = await playwright.chromium.launch(headless=True, args=_LAUNCH_ARGS)
                except BaseException:
                    await playwright.stop()
                    raise
                self._playwright = playwright
                logger.info("Launched headless browser for dynamic rendering")
        return self._browser

    async def render(self, url: str) -> FetchResult:
        cfg = self.config
        timeout_ms = cfg.request_timeout * 1000
        try:
            browser = await self._ensure_browser()
            context = await browser.new_context(user_agent=cfg.user_agent)
        except PlaywrightError as exc:
            logger.warning("Browser unavailable for %s: %s", url, exc)
            return FetchResult(url=url, error=str(exc))

        try:
            page = await context.new_page()
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            await page.wait_for_load_state("networkidle", timeout=timeout_ms)
            if cfg.wait_for_selector:
                try:
                    await page.wait_for_selector(cfg.wait_for_selector, timeout=timeout_ms)
                except PlaywrightTimeoutError:
                    logger.info("Selector %r never appeared on %s; rendering anyway", cfg.wait_for_selector, url)
            scrolls = await scroll_until_stable(page, cfg.max_scrolls, cfg.scroll_timeout)
            logger.debug("Rendered %s after %s scrolls", url, scrolls)
            return FetchResult(url=url, content=await page.content())
        except PlaywrightError as exc:
            logger.warning("Error rendering %s: %s", url, exc)
            return FetchResult(url=url, error=str(exc))
        finally:
            await context.close()

    async def close(self) -> None:
        browser, playwright = self._browser, self._playwright
        self._browser = self._playwright = None
        try:
            if browser is not None:
                await browser.close()
        finally:
            if playwright is not None:
                await playwright.stop()
