from __future__ import annotations

import logging
from typing import Dict, List, Set

from .base import Exporter
from ..config import CrawlConfig
from ..utils.loader import load_symbol

logger = logging.getLogger(__name__)


class ResultStore:
    """
    Per-domain sets of discovered product URLs, snapshotted through an exporter.

    Each domain's crawl loop gets its own live set from ``open()`` and only ever adds to it.
    """

    def __init__(self, exporter: Exporter, path: str) -> None:
        self.exporter = exporter
        self.path = path
        self._products: Dict[str, Set[str]] = {}

    @classmethod
    def from_config(cls, config: CrawlConfig) -> "ResultStore":
        exporter_cls = load_symbol(config.exporter)
        return cls(exporter_cls(), config.output_path)

    def open(self, domain: str) -> Set[str]:
        return self._products.setdefault(domain, set())

    def as_dict(self) -> Dict[str, List[str]]:
        return {domain: sorted(urls) for domain, urls in self._products.items()}

    def snapshot(self) -> None:
        """Write every domain's product URLs, overwriting the previous snapshot. Errors propagate."""
        data = self.as_dict()
        self.exporter.export(data, self.path)
        logger.debug("Snapshot of %s product URLs written to %s",
                     sum(len(v) for v in data.values()), self.path)
