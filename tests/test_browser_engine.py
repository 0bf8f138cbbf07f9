"""
Tests for the headless renderer, using fake Playwright objects.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from product_crawler.config import CrawlConfig
from product_crawler.engines.browser_engine import (
    PAGE_HEIGHT,
    SCROLL_TO_BOTTOM,
    BrowserRenderer,
    scroll_until_stable,
)


class FakePage:
    """Page whose scrollHeight after each scroll comes from ``heights`` (last value repeats)."""

    def __init__(self, heights, html="<html><a href='/product/1'>p</a></html>"):
        self.heights = list(heights)
        self.html = html
        self.scrolls = 0
        self.waits = []
        self.goto = AsyncMock()
        self.wait_for_load_state = AsyncMock()
        self.wait_for_selector = AsyncMock()

    async def evaluate(self, script):
        if script == SCROLL_TO_BOTTOM:
            self.scrolls += 1
            return None
        assert script == PAGE_HEIGHT
        return self.heights[min(self.scrolls, len(self.heights) - 1)]

    async def wait_for_timeout(self, ms):
        self.waits.append(ms)

    async def content(self):
        return self.html


def make_browser(page):
    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()
    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()
    return browser, context


class TestScrollUntilStable:

    @pytest.mark.asyncio
    async def test_stops_when_height_stabilizes(self):
        # Initial height, then grows for two scrolls and is unchanged after the third.
        page = FakePage([1000, 2000, 3000, 3000])
        scrolls = await scroll_until_stable(page, max_scrolls=10, scroll_timeout=0.5)
        assert scrolls == 3
        assert page.scrolls == 3
        assert page.waits == [500.0, 500.0, 500.0]

    @pytest.mark.asyncio
    async def test_never_stable_stops_at_max_scrolls(self):
        page = FakePage(range(1000, 100000, 1000))
        scrolls = await scroll_until_stable(page, max_scrolls=10, scroll_timeout=0)
        assert scrolls == 10
        assert page.scrolls == 10

    @pytest.mark.asyncio
    async def test_static_page_scrolls_once(self):
        page = FakePage([800])
        assert await scroll_until_stable(page, max_scrolls=10, scroll_timeout=0) == 1


class TestBrowserRenderer:

    @pytest.mark.asyncio
    async def test_render_returns_markup_and_closes_context(self):
        page = FakePage([1000, 1000])
        browser, context = make_browser(page)
        config = CrawlConfig(dynamic_loading_enabled=True, request_timeout=12, scroll_timeout=0)
        renderer = BrowserRenderer(config, browser=browser)

        result = await renderer.render("https://shop.com/")

        assert result.ok
        assert result.content == page.html
        page.goto.assert_awaited_once_with("https://shop.com/", wait_until="domcontentloaded", timeout=12000)
        page.wait_for_load_state.assert_awaited_once_with("networkidle", timeout=12000)
        page.wait_for_selector.assert_not_awaited()
        context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_wait_for_selector_is_enforced(self):
        page = FakePage([1000])
        browser, _ = make_browser(page)
        config = CrawlConfig(wait_for_selector=".grid", request_timeout=5, scroll_timeout=0)
        result = await BrowserRenderer(config, browser=browser).render("https://shop.com/")
        assert result.ok
        page.wait_for_selector.assert_awaited_once_with(".grid", timeout=5000)

    @pytest.mark.asyncio
    async def test_missing_selector_still_renders(self):
        page = FakePage([1000])
        page.wait_for_selector.side_effect = PlaywrightTimeoutError("no .grid")
        browser, _ = make_browser(page)
        config = CrawlConfig(wait_for_selector=".grid", scroll_timeout=0)
        result = await BrowserRenderer(config, browser=browser).render("https://shop.com/")
        assert result.ok

    @pytest.mark.asyncio
    async def test_navigation_failure_is_contained(self):
        page = FakePage([1000])
        page.goto.side_effect = PlaywrightTimeoutError("Timeout 30000ms exceeded")
        browser, context = make_browser(page)
        renderer = BrowserRenderer(CrawlConfig(scroll_timeout=0), browser=browser)

        result = await renderer.render("https://shop.com/slow")

        assert result.ok is False
        assert "Timeout" in result.error
        context.close.assert_awaited_once()
        browser.close.assert_not_awaited()
        assert renderer.launched

    @pytest.mark.asyncio
    async def test_browser_reused_across_renders(self):
        page = FakePage([1000])
        browser, _ = make_browser(page)
        renderer = BrowserRenderer(CrawlConfig(scroll_timeout=0), browser=browser)
        await renderer.render("https://shop.com/1")
        await renderer.render("https://shop.com/2")
        assert browser.new_context.await_count == 2

    @pytest.mark.asyncio
    async def test_context_failure_is_contained(self):
        browser = MagicMock()
        browser.new_context = AsyncMock(side_effect=PlaywrightError("browser has been closed"))
        renderer = BrowserRenderer(CrawlConfig(), browser=browser)
        result = await renderer.render("https://shop.com/")
        assert result.ok is False

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        browser, _ = make_browser(FakePage([1]))
        renderer = BrowserRenderer(CrawlConfig(), browser=browser)
        await renderer.close()
        await renderer.close()
        browser.close.assert_awaited_once()
        assert not renderer.launched

    @pytest.mark.asyncio
    async def test_close_without_launch_is_noop(self):
        await BrowserRenderer(CrawlConfig()).close()


def make_driver(browser=None, launch_error=None):
    """Fake ``async_playwright()`` whose ``start()`` yields a driver with a chromium launcher."""
    driver = MagicMock()
    driver.stop = AsyncMock()

    async def launch(**kwargs):
        await asyncio.sleep(0)
        if launch_error is not None:
            raise launch_error
        return browser

    driver.chromium.launch = AsyncMock(side_effect=launch)

    async def start():
        await asyncio.sleep(0)
        return driver

    manager = MagicMock()
    manager.start = AsyncMock(side_effect=start)
    return MagicMock(return_value=manager), driver


@pytest.fixture
def no_browsers_dir():
    with patch("product_crawler.engines.browser_engine._use_private_browsers_dir"):
        yield


@pytest.mark.usefixtures("no_browsers_dir")
class TestBrowserLaunch:
    """Lazy launch and shutdown of the shared browser."""

    @pytest.mark.asyncio
    async def test_concurrent_first_renders_launch_once(self):
        browser, _ = make_browser(FakePage([1000]))
        factory, driver = make_driver(browser=browser)
        renderer = BrowserRenderer(CrawlConfig(scroll_timeout=0))
        assert not renderer.launched

        with patch("product_crawler.engines.browser_engine.async_playwright", factory):
            results = await asyncio.gather(
                renderer.render("https://shop.com/1"),
                renderer.render("https://shop.com/2"),
            )

        assert all(r.ok for r in results)
        factory.assert_called_once()
        driver.chromium.launch.assert_awaited_once()
        assert driver.chromium.launch.call_args.kwargs["headless"] is True
        assert browser.new_context.await_count == 2
        assert renderer.launched

    @pytest.mark.asyncio
    async def test_launch_failure_stops_driver(self):
        factory, driver = make_driver(launch_error=PlaywrightError("Executable doesn't exist"))
        renderer = BrowserRenderer(CrawlConfig())

        with patch("product_crawler.engines.browser_engine.async_playwright", factory):
            result = await renderer.render("https://shop.com/")

        assert result.ok is False
        assert "Executable" in result.error
        driver.stop.assert_awaited_once()
        assert not renderer.launched

    @pytest.mark.asyncio
    async def test_close_shuts_browser_and_driver_once(self):
        browser, _ = make_browser(FakePage([1000]))
        factory, driver = make_driver(browser=browser)
        renderer = BrowserRenderer(CrawlConfig(scroll_timeout=0))

        with patch("product_crawler.engines.browser_engine.async_playwright", factory):
            await renderer.render("https://shop.com/")
            await renderer.close()
            await renderer.close()

        browser.close.assert_awaited_once()
        driver.stop.assert_awaited_once()
        assert not renderer.launched

    @pytest.mark.asyncio
    async def test_driver_stopped_even_if_browser_close_fails(self):
        browser, _ = make_browser(FakePage([1000]))
        browser.close.side_effect = PlaywrightError("Target closed")
        factory, driver = make_driver(browser=browser)
        renderer = BrowserRenderer(CrawlConfig(scroll_timeout=0))

        with patch("product_crawler.engines.browser_engine.async_playwright", factory):
            await renderer.render("https://shop.com/")
            with pytest.raises(PlaywrightError):
                await renderer.close()

        driver.stop.assert_awaited_once()
