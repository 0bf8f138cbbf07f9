"""Breadth-first product page discovery for e-commerce sites."""

from .version import __version__

__all__ = ["__version__"]
