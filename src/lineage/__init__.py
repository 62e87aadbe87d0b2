"""
lineage - Content lineage hierarchy engine.

Tracks derives-from families of content published across platforms as
materialized-path trees over a relational store.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("content-lineage")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

__all__ = ["__version__"]
