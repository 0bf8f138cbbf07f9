from __future__ import annotations

from typing import Dict, List, Protocol


class Exporter(Protocol):
    """Writes a full ``{domain: [product urls]}`` snapshot to ``path``, replacing prior content."""

    def export(self, data: Dict[str, List[str]], path: str) -> None:
        ...
