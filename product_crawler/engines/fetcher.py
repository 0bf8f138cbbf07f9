from __future__ import annotations

from typing import Optional

from aiohttp import ClientSession

from ..config import CrawlConfig
from ..utils.http import FetchResult, create_session, fetch_text
from .browser_engine import BrowserRenderer


class Fetcher:
    """
    Retrieves page content for the engine: plain HTTP, or the headless renderer
    when dynamic loading is enabled. Owns the shared session and browser.
    """

    def __init__(
        self,
        config: CrawlConfig,
        session: Optional[ClientSession] = None,
        renderer: Optional[BrowserRenderer] = None,
    ) -> None:
        self.config = config
        self._session = session
        if renderer is None and config.dynamic_loading_enabled:
            renderer = BrowserRenderer(config)
        self.renderer = renderer

    @property
    def session(self) -> ClientSession:
        # Created on first use so it binds to the running event loop.
        if self._session is None:
            self._session = create_session()
        return self._session

    async def fetch(self, url: str) -> FetchResult:
        cfg = self.config
        if cfg.dynamic_loading_enabled and self.renderer is not None:
            return await self.renderer.render(url)
        return await fetch_text(
            self.session,
            url,
            timeout=cfg.request_timeout,
            user_agent=cfg.user_agent,
            retries=cfg.max_retries,
        )

    async def close(self) -> None:
        session, self._session = self._session, None
        try:
            if session is not None:
                await session.close()
        finally:
            if self.renderer is not None:
                await self.renderer.close()
