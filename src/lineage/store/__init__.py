"""Persistence for hierarchy nodes, content records and relationships."""

from lineage.store.base import ContentLookup, NodeReader
from lineage.store.locks import RootLocks
from lineage.store.sqlite import SqliteStore, StoreSession

__all__ = ["ContentLookup", "NodeReader", "RootLocks", "SqliteStore", "StoreSession"]
