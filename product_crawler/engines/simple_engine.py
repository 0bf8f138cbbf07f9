from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

from .base import CrawlEngine, CrawlReport
from .fetcher import Fetcher
from .frontier import Frontier
from ..config import CrawlConfig
from ..export.store import ResultStore
from ..utils.parsing import extract_links, is_product_url, normalize_domain, normalize_url

logger = logging.getLogger(__name__)


@dataclass
class DomainCrawl:
    root: str
    frontier: Frontier
    products: Set[str]


class SimpleCrawlEngine(CrawlEngine):
    """
    Breadth-first product discovery across many domains.
    - Each domain has its own Frontier; batches of URLs are fetched together and joined.
    - Fetcher owns HTTP and rendering; parsing helpers classify and extract links.
    - ResultStore owns product sets and snapshots them on an interval.
    """
    def __init__(
        self,
        config: CrawlConfig,
        fetcher: Optional[Fetcher] = None,
        store: Optional[ResultStore] = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher or Fetcher(config)
        self.store = store or ResultStore.from_config(config)

    async def crawl_domain(self, root: str) -> Set[str]:
        """Crawl one site until its frontier is exhausted; returns its product URLs."""
        return (await self._crawl_domain(root)).products

    async def _crawl_domain(self, root: str) -> DomainCrawl:
        cfg = self.config
        root = normalize_domain(root)
        # Results are keyed by the domain as given; the frontier works on the normalized URL.
        state = DomainCrawl(root=root, frontier=Frontier(normalize_url(root)), products=self.store.open(root))
        frontier = state.frontier
        logger.info("Crawling %s", root)

        while frontier:
            batch = frontier.next_batch(cfg.max_concurrent_requests)
            results = await asyncio.gather(*(self.fetcher.fetch(url) for url in batch))

            for result in results:
                if not result.ok:
                    continue
                if is_product_url(result.url, cfg.product_patterns):
                    state.products.add(result.url)
                for link in extract_links(result.content, result.url).links:
                    frontier.add(link)

            logger.debug("%s: fetched %s, queued %s, products %s",
                         root, frontier.dispatched, len(frontier), len(state.products))

        logger.info("Finished %s: %s pages fetched, %s product URLs",
                    root, frontier.dispatched, len(state.products))
        return state

    async def _crawl_all(self, domains: List[str]) -> List[DomainCrawl]:
        done: List[DomainCrawl] = []
        chunk_size = self.config.max_concurrent_domains
        for i in range(0, len(domains), chunk_size):
            chunk = domains[i:i + chunk_size]
            done.extend(await asyncio.gather(*(self._crawl_domain(d) for d in chunk)))
        return done

    async def _snapshot_periodically(self) -> None:
        interval = self.config.snapshot_interval
        while True:
            await asyncio.sleep(interval)
            self.store.snapshot()

    async def crawl(self, domains: Iterable[str] | None = None) -> CrawlReport:
        cfg = self.config
        targets = [normalize_domain(d) for d in (cfg.domains if domains is None else domains)]
        started = time.monotonic()

        try:
            crawl_task = asyncio.ensure_future(self._crawl_all(targets))
            snapshot_task = None
            if cfg.snapshot_interval > 0:
                snapshot_task = asyncio.ensure_future(self._snapshot_periodically())
            tasks = [t for t in (crawl_task, snapshot_task) if t is not None]
            try:
                await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
                if snapshot_task is not None and snapshot_task.done():
                    # The snapshot loop only ends by raising; a failed write is fatal for the whole run.
                    snapshot_task.result()
                finished = crawl_task.result()
            finally:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
            self.store.snapshot()
        finally:
            await self.fetcher.close()

        duration = time.monotonic() - started
        logger.info("Crawling completed in %.2f seconds", duration)
        for state in finished:
            logger.info("%s: Found %s product URLs", state.root, len(state.products))

        return CrawlReport(
            discovered=self.store.as_dict(),
            fetched_count=sum(s.frontier.dispatched for s in finished),
            visited_count=sum(s.frontier.visited_count for s in finished),
            duration=duration,
        )
