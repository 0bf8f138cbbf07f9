from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
from typing import Any, Dict, List

from ..config import CrawlConfig
from ..utils.logging import setup_logging
from ..utils.loader import load_symbol
from ..engines.base import CrawlReport

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Discover product pages on e-commerce sites")
    p.add_argument("domains", nargs="*", help="Domains or root URLs (space-separated)")
    p.add_argument("--config", type=str, help="Path to config JSON", default=None)
    p.add_argument("--max-concurrent-requests", type=int, default=None,
                   help="URLs fetched together per domain batch (default from config)")
    p.add_argument("--max-concurrent-domains", type=int, default=None,
                   help="Domains crawled in parallel (default from config)")
    p.add_argument("--request-timeout", type=float, default=None, help="Per-request timeout in seconds")
    p.add_argument("--max-retries", type=int, default=None, help="Retries after the first failed attempt")
    p.add_argument("--pattern", action="append", dest="patterns", default=None,
                   help="Product URL regex (repeatable; replaces the defaults)")
    p.add_argument("--dynamic", action="store_true", default=None,
                   help="Render pages in a headless browser instead of plain HTTP")
    p.add_argument("--scroll-timeout", type=float, default=None, help="Seconds to wait after each scroll")
    p.add_argument("--max-scrolls", type=int, default=None, help="Maximum scrolls per rendered page")
    p.add_argument("--wait-for-selector", type=str, default=None,
                   help="CSS selector to wait for before scrolling a rendered page")
    p.add_argument("--snapshot-interval", type=float, default=None,
                   help="Seconds between result snapshots (<= 0 disables periodic snapshots)")
    p.add_argument("--engine", type=str, default=None, help="Engine dotted path (module:ClassName)")
    p.add_argument("--exporter", type=str, default=None, help="Exporter dotted path (module:ClassName)")
    p.add_argument("--output", type=str, default=None, help="Output file path")
    p.add_argument("--log-level", type=str, default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
    p.add_argument("--log-file", type=str, default=None, help="Also write logs to this file")
    return p


# argparse dest -> CrawlConfig field
_OVERRIDES = {
    "max_concurrent_requests": "max_concurrent_requests",
    "max_concurrent_domains": "max_concurrent_domains",
    "request_timeout": "request_timeout",
    "max_retries": "max_retries",
    "patterns": "product_patterns",
    "dynamic": "dynamic_loading_enabled",
    "scroll_timeout": "scroll_timeout",
    "max_scrolls": "max_scrolls",
    "wait_for_selector": "wait_for_selector",
    "snapshot_interval": "snapshot_interval",
    "engine": "engine",
    "exporter": "exporter",
    "output": "output_path",
}


def _load_config(args: argparse.Namespace) -> CrawlConfig:
    if args.config:
        cfg = CrawlConfig.from_file(args.config)
    else:
        cfg = CrawlConfig.from_env()

    changes: Dict[str, Any] = {}
    if args.domains:
        changes["domains"] = tuple(args.domains)
    for dest, field_name in _OVERRIDES.items():
        value = getattr(args, dest)
        if value is not None:
            changes[field_name] = value

    cfg = dataclasses.replace(cfg, **changes)
    cfg.validate()
    return cfg


def run_cli(argv: List[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    cfg = _load_config(args)

    # Dynamic engine loading so upgrades don't require code edits.
    engine_cls = load_symbol(cfg.engine)

    async def _run() -> CrawlReport:
        engine = engine_cls(cfg)
        return await engine.crawl(cfg.domains)

    report: CrawlReport = asyncio.run(_run())

    logger.info("Fetched: %s | Products: %s | Output: %s",
                report.fetched_count, report.product_count, cfg.output_path)
    return 0
