"""SQLite-backed hierarchy store.

Holds three tables: content records, hierarchy nodes and relationship
edges. All access goes through two scoped guards:

- transaction(): BEGIN IMMEDIATE ... COMMIT, rolled back on any exception
- session(): a read snapshot that never blocks writers (WAL mode)

Both yield a StoreSession whose methods return typed records; raw rows
never leave this module.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

from lineage.errors import ConflictError, StorageError
from lineage.graph.models import (
    ContentItem,
    ContentNode,
    ContentRelationship,
    CreationMethod,
    RelationshipKind,
)
from lineage.graph.paths import SEPARATOR, format_path
from lineage.store.locks import RootLocks

logger = logging.getLogger(__name__)

# SQLite's default bound-parameter limit is 999 on older builds
_IN_CHUNK = 500

# "/" is the character immediately after "." so [p + ".", p + "/") covers
# exactly the paths that extend p by at least one whole label.
_RANGE_END = chr(ord(SEPARATOR) + 1)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS contents (
    id TEXT PRIMARY KEY,
    platform_id TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    content_type TEXT NOT NULL DEFAULT '',
    url TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS content_nodes (
    id TEXT PRIMARY KEY,
    content_id TEXT NOT NULL UNIQUE,
    path TEXT NOT NULL UNIQUE,
    depth INTEGER NOT NULL,
    root_id TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_content_nodes_root ON content_nodes(root_id);
CREATE INDEX IF NOT EXISTS idx_content_nodes_depth ON content_nodes(depth);
CREATE TABLE IF NOT EXISTS content_relationships (
    id TEXT PRIMARY KEY,
    source_content_id TEXT NOT NULL,
    target_content_id TEXT NOT NULL,
    kind TEXT NOT NULL,
    confidence REAL NOT NULL,
    creation_method TEXT NOT NULL,
    metadata TEXT NOT NULL DEFAULT '{}',
    UNIQUE(source_content_id, target_content_id, kind)
);
CREATE INDEX IF NOT EXISTS idx_relationships_source
    ON content_relationships(source_content_id);
CREATE INDEX IF NOT EXISTS idx_relationships_target
    ON content_relationships(target_content_id);
"""

_NODE_COLUMNS = "id, content_id, path, depth, root_id"


def _descendant_bounds(path: Sequence[str]) -> tuple[str, str]:
    text = format_path(path)
    return text + SEPARATOR, text + _RANGE_END


def _chunks(values: Sequence[str]) -> Iterator[Sequence[str]]:
    for start in range(0, len(values), _IN_CHUNK):
        yield values[start : start + _IN_CHUNK]


def _content_from_row(row: sqlite3.Row) -> ContentItem:
    return ContentItem(
        id=row["id"],
        platform_id=row["platform_id"],
        title=row["title"],
        content_type=row["content_type"],
        url=row["url"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _relationship_from_row(row: sqlite3.Row) -> ContentRelationship:
    return ContentRelationship(
        id=row["id"],
        source_content_id=row["source_content_id"],
        target_content_id=row["target_content_id"],
        kind=RelationshipKind(row["kind"]),
        confidence=row["confidence"],
        creation_method=CreationMethod(row["creation_method"]),
        metadata=json.loads(row["metadata"] or "{}"),
    )


class StoreSession:
    """Typed queries over one open connection.

    A session is only valid inside the transaction() or session() block
    that produced it.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def _nodes(self, sql: str, params: Sequence[Any] = ()) -> list[ContentNode]:
        return [ContentNode.from_row(row) for row in self._conn.execute(sql, params)]

    def get_node(self, content_id: str) -> Optional[ContentNode]:
        row = self._conn.execute(
            f"SELECT {_NODE_COLUMNS} FROM content_nodes WHERE content_id = ?",
            (content_id,),
        ).fetchone()
        return ContentNode.from_row(row) if row else None

    def get_nodes(self, content_ids: Iterable[str]) -> list[ContentNode]:
        """Nodes for the given content ids; missing ids are skipped."""
        ids = list(dict.fromkeys(content_ids))
        nodes: list[ContentNode] = []
        for chunk in _chunks(ids):
            marks = ",".join("?" for _ in chunk)
            nodes.extend(
                self._nodes(
                    f"SELECT {_NODE_COLUMNS} FROM content_nodes WHERE content_id IN ({marks})",
                    chunk,
                )
            )
        return nodes

    def get_node_by_path(self, path: Sequence[str]) -> Optional[ContentNode]:
        row = self._conn.execute(
            f"SELECT {_NODE_COLUMNS} FROM content_nodes WHERE path = ?",
            (format_path(path),),
        ).fetchone()
        return ContentNode.from_row(row) if row else None

    def get_nodes_by_paths(self, paths: Iterable[Sequence[str]]) -> list[ContentNode]:
        texts = list(dict.fromkeys(format_path(p) for p in paths))
        nodes: list[ContentNode] = []
        for chunk in _chunks(texts):
            marks = ",".join("?" for _ in chunk)
            nodes.extend(
                self._nodes(
                    f"SELECT {_NODE_COLUMNS} FROM content_nodes WHERE path IN ({marks}) "
                    "ORDER BY depth",
                    chunk,
                )
            )
        return nodes

    def get_children(self, path: Sequence[str]) -> list[ContentNode]:
        lo, hi = _descendant_bounds(path)
        return self._nodes(
            f"SELECT {_NODE_COLUMNS} FROM content_nodes "
            "WHERE path >= ? AND path < ? AND depth = ? ORDER BY path",
            (lo, hi, len(path)),
        )

    def get_descendants(self, path: Sequence[str]) -> list[ContentNode]:
        """Every node strictly below `path`, ordered by (depth, path)."""
        lo, hi = _descendant_bounds(path)
        return self._nodes(
            f"SELECT {_NODE_COLUMNS} FROM content_nodes "
            "WHERE path >= ? AND path < ? ORDER BY depth, path",
            (lo, hi),
        )

    def count_descendants(self, path: Sequence[str]) -> int:
        lo, hi = _descendant_bounds(path)
        row = self._conn.execute(
            "SELECT COUNT(*) FROM content_nodes WHERE path >= ? AND path < ?", (lo, hi)
        ).fetchone()
        return int(row[0])

    def iter_descendant_pages(
        self, path: Sequence[str], page_size: int
    ) -> Iterator[list[ContentNode]]:
        """Yield descendants of `path` in pages, keyed on node id.

        Rows rewritten between pages are never revisited because each
        page starts strictly after the last id seen.
        """
        if page_size < 1:
            raise ValueError("page_size must be positive")
        lo, hi = _descendant_bounds(path)
        last_id = ""
        while True:
            page = self._nodes(
                f"SELECT {_NODE_COLUMNS} FROM content_nodes "
                "WHERE path >= ? AND path < ? AND id > ? ORDER BY id LIMIT ?",
                (lo, hi, last_id, page_size),
            )
            if not page:
                return
            yield page
            last_id = page[-1].id

    def iter_nodes(self, prefix: Sequence[str] = ()) -> Iterator[ContentNode]:
        """All nodes ordered by path, optionally limited to one subtree."""
        if prefix:
            text = format_path(prefix)
            lo, hi = _descendant_bounds(prefix)
            cursor = self._conn.execute(
                f"SELECT {_NODE_COLUMNS} FROM content_nodes "
                "WHERE path = ? OR (path >= ? AND path < ?) ORDER BY path",
                (text, lo, hi),
            )
        else:
            cursor = self._conn.execute(
                f"SELECT {_NODE_COLUMNS} FROM content_nodes ORDER BY path"
            )
        for row in cursor:
            yield ContentNode.from_row(row)

    def list_roots(self) -> list[ContentNode]:
        return self._nodes(
            f"SELECT {_NODE_COLUMNS} FROM content_nodes WHERE depth = 0 ORDER BY path"
        )

    def root_ids_for(self, content_ids: Iterable[str]) -> set[str]:
        return {node.root_id for node in self.get_nodes(content_ids)}

    def count_nodes(self) -> int:
        return int(self._conn.execute("SELECT COUNT(*) FROM content_nodes").fetchone()[0])

    def insert_node(self, node: ContentNode) -> None:
        self._conn.execute(
            f"INSERT INTO content_nodes ({_NODE_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
            (node.id, node.content_id, node.path_text, node.depth, node.root_id),
        )

    def insert_nodes(self, nodes: Iterable[ContentNode]) -> None:
        self._conn.executemany(
            f"INSERT INTO content_nodes ({_NODE_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
            [(n.id, n.content_id, n.path_text, n.depth, n.root_id) for n in nodes],
        )

    def update_node(self, node: ContentNode) -> None:
        self.update_nodes([node])

    def update_nodes(self, nodes: Iterable[ContentNode]) -> int:
        """Rewrite path, depth and root id of existing nodes (matched by id)."""
        rows = [(n.path_text, n.depth, n.root_id, n.id) for n in nodes]
        if not rows:
            return 0
        cursor = self._conn.executemany(
            "UPDATE content_nodes SET path = ?, depth = ?, root_id = ? WHERE id = ?", rows
        )
        if cursor.rowcount != len(rows):
            raise StorageError(f"Expected to update {len(rows)} nodes, updated {cursor.rowcount}")
        return cursor.rowcount

    def delete_node(self, content_id: str) -> bool:
        cursor = self._conn.execute(
            "DELETE FROM content_nodes WHERE content_id = ?", (content_id,)
        )
        return cursor.rowcount > 0

    def delete_descendants(self, path: Sequence[str]) -> int:
        lo, hi = _descendant_bounds(path)
        cursor = self._conn.execute(
            "DELETE FROM content_nodes WHERE path >= ? AND path < ?", (lo, hi)
        )
        return cursor.rowcount

    def delete_families(self, root_ids: Iterable[str]) -> int:
        ids = sorted(set(root_ids))
        deleted = 0
        for chunk in _chunks(ids):
            marks = ",".join("?" for _ in chunk)
            cursor = self._conn.execute(
                f"DELETE FROM content_nodes WHERE root_id IN ({marks})", chunk
            )
            deleted += cursor.rowcount
        return deleted

    # ------------------------------------------------------------------
    # Content records
    # ------------------------------------------------------------------

    def get_content_by_id(self, content_id: str) -> Optional[ContentItem]:
        row = self._conn.execute("SELECT * FROM contents WHERE id = ?", (content_id,)).fetchone()
        return _content_from_row(row) if row else None

    def get_content_by_ids(self, content_ids: Iterable[str]) -> list[ContentItem]:
        ids = list(dict.fromkeys(content_ids))
        items: list[ContentItem] = []
        for chunk in _chunks(ids):
            marks = ",".join("?" for _ in chunk)
            rows = self._conn.execute(f"SELECT * FROM contents WHERE id IN ({marks})", chunk)
            items.extend(_content_from_row(row) for row in rows)
        return items

    def upsert_content(self, item: ContentItem) -> None:
        self._conn.execute(
            """
            INSERT INTO contents (id, platform_id, title, content_type, url, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                platform_id = excluded.platform_id,
                title = excluded.title,
                content_type = excluded.content_type,
                url = excluded.url,
                updated_at = excluded.updated_at
            """,
            (
                item.id,
                item.platform_id,
                item.title,
                item.content_type,
                item.url,
                item.created_at.isoformat(),
                item.updated_at.isoformat(),
            ),
        )

    def delete_content(self, content_id: str) -> bool:
        cursor = self._conn.execute("DELETE FROM contents WHERE id = ?", (content_id,))
        return cursor.rowcount > 0

    def contents_without_nodes(
        self, platform_id: Optional[str] = None, content_type: Optional[str] = None
    ) -> list[ContentItem]:
        """Content records that have no hierarchy node, newest first."""
        return self._orphan_contents(
            "NOT EXISTS (SELECT 1 FROM content_nodes n WHERE n.content_id = c.id)",
            platform_id,
            content_type,
        )

    def contents_without_relationships(
        self, platform_id: Optional[str] = None, content_type: Optional[str] = None
    ) -> list[ContentItem]:
        """Content records that are neither source nor target of any edge."""
        return self._orphan_contents(
            "NOT EXISTS (SELECT 1 FROM content_relationships r "
            "WHERE r.source_content_id = c.id OR r.target_content_id = c.id)",
            platform_id,
            content_type,
        )

    def _orphan_contents(
        self, condition: str, platform_id: Optional[str], content_type: Optional[str]
    ) -> list[ContentItem]:
        sql = f"SELECT c.* FROM contents c WHERE {condition}"
        params: list[Any] = []
        if platform_id:
            sql += " AND c.platform_id = ?"
            params.append(platform_id)
        if content_type:
            sql += " AND c.content_type = ?"
            params.append(content_type)
        sql += " ORDER BY c.created_at DESC, c.id"
        return [_content_from_row(row) for row in self._conn.execute(sql, params)]

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    def add_relationship(self, edge: ContentRelationship) -> None:
        self._conn.execute(
            """
            INSERT INTO content_relationships
                (id, source_content_id, target_content_id, kind, confidence,
                 creation_method, metadata)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                edge.id,
                edge.source_content_id,
                edge.target_content_id,
                edge.kind.value,
                float(edge.confidence),
                edge.creation_method.value,
                json.dumps(edge.metadata, sort_keys=True),
            ),
        )

    def get_relationship(
        self, source_id: str, target_id: str, kind: RelationshipKind
    ) -> Optional[ContentRelationship]:
        row = self._conn.execute(
            "SELECT * FROM content_relationships "
            "WHERE source_content_id = ? AND target_content_id = ? AND kind = ?",
            (source_id, target_id, kind.value),
        ).fetchone()
        return _relationship_from_row(row) if row else None

    def delete_relationship(self, source_id: str, target_id: str, kind: RelationshipKind) -> bool:
        cursor = self._conn.execute(
            "DELETE FROM content_relationships "
            "WHERE source_content_id = ? AND target_content_id = ? AND kind = ?",
            (source_id, target_id, kind.value),
        )
        return cursor.rowcount > 0

    def relationships_for(self, content_id: str) -> list[ContentRelationship]:
        rows = self._conn.execute(
            "SELECT * FROM content_relationships "
            "WHERE source_content_id = ? OR target_content_id = ? ORDER BY rowid",
            (content_id, content_id),
        )
        return [_relationship_from_row(row) for row in rows]

    def relationships_among(self, content_ids: Iterable[str]) -> list[ContentRelationship]:
        """Edges whose two endpoints both lie in `content_ids`."""
        wanted = set(content_ids)
        if not wanted:
            return []
        edges: list[ContentRelationship] = []
        seen: set[str] = set()
        for chunk in _chunks(sorted(wanted)):
            marks = ",".join("?" for _ in chunk)
            rows = self._conn.execute(
                f"SELECT * FROM content_relationships WHERE source_content_id IN ({marks}) "
                "ORDER BY rowid",
                chunk,
            )
            for row in rows:
                if row["target_content_id"] in wanted and row["id"] not in seen:
                    seen.add(row["id"])
                    edges.append(_relationship_from_row(row))
        return edges

    def list_relationships(self) -> list[ContentRelationship]:
        rows = self._conn.execute("SELECT * FROM content_relationships ORDER BY rowid")
        return [_relationship_from_row(row) for row in rows]


class SqliteStore:
    """Injected store handle shared by every engine component.

    Each guard opens its own connection, so one store can serve several
    threads. The advisory root locks live here so that every mutator
    built over the same store shares them.

    Args:
        database: Path of the SQLite database file.
        busy_timeout: Seconds to wait for a competing writer.
    """

    def __init__(self, database: str | Path, busy_timeout: float = 5.0) -> None:
        self.database = Path(database)
        self.busy_timeout = busy_timeout
        self.locks = RootLocks()
        self.database.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()
        logger.info(f"Lineage store ready at {self.database}")

    def __repr__(self) -> str:
        return f"SqliteStore({str(self.database)!r})"

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.database,
            timeout=self.busy_timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        conn = None
        try:
            conn = self._connect()
            conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot initialize {self.database}: {e}") from e
        finally:
            if conn is not None:
                conn.close()

    @contextmanager
    def transaction(self) -> Iterator[StoreSession]:
        """Exclusive write transaction.

        Commits when the block exits normally and rolls back on any
        exception. sqlite3.IntegrityError surfaces as ConflictError,
        every other sqlite3.Error as StorageError.
        """
        conn = None
        try:
            conn = self._connect()
            conn.execute("BEGIN IMMEDIATE")
            yield StoreSession(conn)
            conn.execute("COMMIT")
        except sqlite3.IntegrityError as e:
            self._rollback(conn, e)
            raise ConflictError(f"Constraint violated: {e}") from e
        except sqlite3.Error as e:
            self._rollback(conn, e)
            raise StorageError(f"Transaction failed: {e}") from e
        except BaseException as e:
            self._rollback(conn, e)
            raise
        finally:
            if conn is not None:
                conn.close()

    @staticmethod
    def _rollback(conn: sqlite3.Connection | None, cause: BaseException) -> None:
        if conn is None or not conn.in_transaction:
            return
        try:
            conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.error(f"Rollback failed after {cause!r}: {e}")
            return
        logger.error(f"Transaction rolled back: {cause!r}")

    @contextmanager
    def session(self) -> Iterator[StoreSession]:
        """Read-only snapshot; never blocks and is never blocked by writers."""
        conn = None
        try:
            conn = self._connect()
            conn.execute("BEGIN")
            yield StoreSession(conn)
        except sqlite3.Error as e:
            raise StorageError(f"Read failed: {e}") from e
        finally:
            if conn is not None:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                conn.close()

    # ContentLookup, for callers that do not hold a session

    def get_content_by_id(self, content_id: str) -> Optional[ContentItem]:
        with self.session() as s:
            return s.get_content_by_id(content_id)

    def get_content_by_ids(self, content_ids: Iterable[str]) -> list[ContentItem]:
        with self.session() as s:
            return s.get_content_by_ids(content_ids)

    # NodeReader

    def get_node(self, content_id: str) -> Optional[ContentNode]:
        with self.session() as s:
            return s.get_node(content_id)

    def get_nodes(self, content_ids: Iterable[str]) -> list[ContentNode]:
        with self.session() as s:
            return s.get_nodes(content_ids)

    def get_node_by_path(self, path: Sequence[str]) -> Optional[ContentNode]:
        with self.session() as s:
            return s.get_node_by_path(path)


__all__ = ["SqliteStore", "StoreSession"]
