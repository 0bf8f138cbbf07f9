from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List
from abc import ABC, abstractmethod


@dataclass
class CrawlReport:
    discovered: Dict[str, List[str]] = field(default_factory=dict)  # domain -> product URLs
    fetched_count: int = 0
    visited_count: int = 0
    duration: float = 0.0

    @property
    def product_count(self) -> int:
        return sum(len(urls) for urls in self.discovered.values())


class CrawlEngine(ABC):
    """
    Abstract engine interface. Implementations own the crawl lifecycle.
    """
    @abstractmethod
    async def crawl(self, domains: Iterable[str]) -> CrawlReport:  # pragma: no cover - interface
        ...
