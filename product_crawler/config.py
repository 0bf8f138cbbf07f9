from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, Optional, Pattern, Tuple, Union
from pathlib import Path
import os
import json
import re

from .version import __version__, CONFIG_SCHEMA_VERSION


def compile_patterns(patterns: Iterable[Union[str, Pattern[str]]]) -> Tuple[Pattern[str], ...]:
    """Compile string patterns case-insensitively; already-compiled ones pass through."""
    compiled = []
    for p in patterns:
        compiled.append(p if isinstance(p, re.Pattern) else re.compile(p, re.IGNORECASE))
    return tuple(compiled)


# Common e-commerce URL conventions. Order only matters for short-circuiting.
DEFAULT_PRODUCT_PATTERNS: Tuple[Pattern[str], ...] = compile_patterns([
    r"/products?/?",
    r"/items?/?",
    r"/p/",
    r"/pd/",
    r"/catalog/",
    r"-i-",
    r"/dp/",
])


@dataclass(frozen=True)
class CrawlConfig:
    """
    Canonical configuration object passed throughout the system.
    Built once at startup and never mutated; use ``dataclasses.replace`` to derive variants.
    """
    schema_version: int = CONFIG_SCHEMA_VERSION
    domains: Tuple[str, ...] = ()
    # Per-domain fetch batch size.
    max_concurrent_requests: int = 10
    # Number of domains crawled in parallel.
    max_concurrent_domains: int = 10
    request_timeout: float = 30.0
    max_retries: int = 3
    product_patterns: Tuple[Pattern[str], ...] = DEFAULT_PRODUCT_PATTERNS
    dynamic_loading_enabled: bool = False
    scroll_timeout: float = 1.0
    max_scrolls: int = 10
    wait_for_selector: Optional[str] = None
    user_agent: str = f"product_crawler/{__version__}"
    # Seconds between periodic snapshots; <= 0 disables them (the final one is always written).
    snapshot_interval: float = 5.0
    output_path: str = "output/product_urls.json"
    # Dotted paths for engine/exporter to allow runtime swapping without code changes.
    engine: str = "product_crawler.engines.simple_engine:SimpleCrawlEngine"
    exporter: str = "product_crawler.export.json_exporter:JSONExporter"

    def __post_init__(self) -> None:
        # Accept lists and raw regex strings from files, env and CLI.
        object.__setattr__(self, "domains", tuple(self.domains))
        object.__setattr__(self, "product_patterns", compile_patterns(self.product_patterns or DEFAULT_PRODUCT_PATTERNS))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["domains"] = list(self.domains)
        data["product_patterns"] = [p.pattern for p in self.product_patterns]
        return data

    # ---------- Loaders ----------

    @classmethod
    def from_env(cls) -> "CrawlConfig":
        """
        Build config from environment variables (all optional).
        """
        def _get(name: str, default: str) -> str:
            return os.getenv(name, default)

        def _split(name: str) -> list:
            return [v.strip() for v in _get(name, "").split(",") if v.strip()]

        selector = _get("CRAWLER_WAIT_FOR_SELECTOR", "").strip() or None

        return cls(
            domains=tuple(_split("CRAWLER_DOMAINS")),
            max_concurrent_requests=int(_get("CRAWLER_MAX_CONCURRENT_REQUESTS", "10")),
            max_concurrent_domains=int(_get("CRAWLER_MAX_CONCURRENT_DOMAINS", "10")),
            request_timeout=float(_get("CRAWLER_REQUEST_TIMEOUT", "30.0")),
            max_retries=int(_get("CRAWLER_MAX_RETRIES", "3")),
            product_patterns=compile_patterns(_split("CRAWLER_PRODUCT_PATTERNS")) or DEFAULT_PRODUCT_PATTERNS,
            dynamic_loading_enabled=_get("CRAWLER_DYNAMIC_LOADING", "false").lower() in ("1", "true", "yes", "on"),
            scroll_timeout=float(_get("CRAWLER_SCROLL_TIMEOUT", "1.0")),
            max_scrolls=int(_get("CRAWLER_MAX_SCROLLS", "10")),
            wait_for_selector=selector,
            user_agent=_get("CRAWLER_USER_AGENT", f"product_crawler/{__version__}"),
            snapshot_interval=float(_get("CRAWLER_SNAPSHOT_INTERVAL", "5.0")),
            output_path=_get("CRAWLER_OUTPUT_PATH", "output/product_urls.json"),
            engine=_get("CRAWLER_ENGINE", "product_crawler.engines.simple_engine:SimpleCrawlEngine"),
            exporter=_get("CRAWLER_EXPORTER", "product_crawler.export.json_exporter:JSONExporter"),
        )

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> "CrawlConfig":
        """
        Load configuration from a JSON file. Older schema versions are migrated first.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        data = migrate_config(data)
        return cls(**data)

    # ---------- Validation ----------

    def validate(self) -> None:
        if not self.domains:
            raise ValueError("domains cannot be empty; provide at least one domain.")
        if self.max_concurrent_requests <= 0:
            raise ValueError("max_concurrent_requests must be > 0")
        if self.max_concurrent_domains <= 0:
            raise ValueError("max_concurrent_domains must be > 0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")
        if self.scroll_timeout < 0:
            raise ValueError("scroll_timeout must be >= 0")
        if self.max_scrolls <= 0:
            raise ValueError("max_scrolls must be > 0")
        # Validate output path parent exists or is creatable
        parent = Path(self.output_path).parent
        parent.mkdir(parents=True, exist_ok=True)


def migrate_config(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Migrate config dict to the latest schema version.
    Keep this pure and additive. Add migrations here as you bump schema.
    """
    data = dict(raw)
    schema = data.get("schema_version", CONFIG_SCHEMA_VERSION)
    if schema > CONFIG_SCHEMA_VERSION:
        raise ValueError(
            f"config schema_version {schema} is newer than supported ({CONFIG_SCHEMA_VERSION}); upgrade product_crawler."
        )

    # Example placeholder for future migrations:
    # if schema < 2:
    #     # Map/rename schema 1 fields here.

    data["schema_version"] = CONFIG_SCHEMA_VERSION
    return data
