"""
Local projection — SQLite copy of the last materialized Graph Store

This is a PROJECTION, not source of truth.
Can always be rebuilt from the checkpoint and the author logs; it lives
under .decigraph/local/ and is never shared.

Commands validate against the graph stored here, so a rebuild that
fails part way must leave the previous graph readable: every save
replaces all tables inside a single transaction.
"""

import sqlite3
from pathlib import Path
from typing import Dict, Optional, Tuple

import orjson

from .graph import GraphStore, Node, Edge, PendingMutation
from ..utils.logger import get_logger

log = get_logger(__name__)


class ProjectionStore:
    """
    SQLite-backed persistence for a GraphStore.

    Rows keep the queried columns (kind, status, endpoints) next to the
    full orjson-encoded record, so the store can be reloaded exactly.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.path), cached_statements=256)
        self.conn.row_factory = sqlite3.Row
        self._configure_pragmas()
        self._init_schema()

    def _configure_pragmas(self):
        """Speed over durability: the projection is rebuildable."""
        self.conn.executescript("""
            PRAGMA journal_mode=WAL;
            PRAGMA synchronous=NORMAL;
            PRAGMA cache_size=-16384;
            PRAGMA temp_store=MEMORY;
        """)

    def _init_schema(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS nodes (
                change_id TEXT PRIMARY KEY,
                local_id INTEGER NOT NULL,
                kind TEXT NOT NULL,
                status TEXT NOT NULL,
                deleted INTEGER NOT NULL DEFAULT 0,
                content TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS edges (
                change_id TEXT PRIMARY KEY,
                from_id TEXT NOT NULL,
                to_id TEXT NOT NULL,
                edge_type TEXT NOT NULL,
                pending INTEGER NOT NULL DEFAULT 0,
                content TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS edge_tombstones (
                from_id TEXT NOT NULL,
                to_id TEXT NOT NULL,
                edge_type TEXT NOT NULL,
                order_key TEXT NOT NULL,
                PRIMARY KEY (from_id, to_id, edge_type)
            );

            CREATE TABLE IF NOT EXISTS pending_mutations (
                change_id TEXT NOT NULL,
                content TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_nodes_kind ON nodes(kind);
            CREATE INDEX IF NOT EXISTS idx_nodes_local ON nodes(local_id);
            CREATE INDEX IF NOT EXISTS idx_edges_from ON edges(from_id);
            CREATE INDEX IF NOT EXISTS idx_edges_to ON edges(to_id);
        """)
        self.conn.commit()

    # -------------------------------------------------------------------------
    # Write
    # -------------------------------------------------------------------------

    def save(self, graph: GraphStore, cursors: Dict[str, int], fingerprint: str = ""):
        """Replace the stored graph in one transaction."""
        with self.conn:
            self.conn.execute("DELETE FROM nodes")
            self.conn.execute("DELETE FROM edges")
            self.conn.execute("DELETE FROM edge_tombstones")
            self.conn.execute("DELETE FROM pending_mutations")
            self.conn.execute("DELETE FROM meta")

            self.conn.executemany(
                "INSERT INTO nodes (change_id, local_id, kind, status, deleted, content) VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (n.change_id, n.local_id, n.kind.value, n.status.value, int(n.deleted),
                     orjson.dumps(n.to_dict()).decode())
                    for n in graph.nodes.values()
                ]
            )
            self.conn.executemany(
                "INSERT INTO edges (change_id, from_id, to_id, edge_type, pending, content) VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (e.change_id, e.from_id, e.to_id, e.edge_type, pending, orjson.dumps(e.to_dict()).decode())
                    for pending, pool in ((0, graph.edges), (1, graph.pending_edges))
                    for e in pool.values()
                ]
            )
            self.conn.executemany(
                "INSERT INTO edge_tombstones (from_id, to_id, edge_type, order_key) VALUES (?, ?, ?, ?)",
                [
                    (key[0], key[1], key[2], orjson.dumps(list(value)).decode())
                    for key, value in graph.edge_tombstones.items()
                ]
            )
            self.conn.executemany(
                "INSERT INTO pending_mutations (change_id, content) VALUES (?, ?)",
                [
                    (m.change_id, orjson.dumps(m.to_dict()).decode())
                    for mutations in graph.pending_mutations.values()
                    for m in mutations
                ]
            )
            self.conn.executemany(
                "INSERT INTO meta (key, value) VALUES (?, ?)",
                [
                    ("next_local_id", str(graph.next_local_id)),
                    ("cursors", orjson.dumps(cursors).decode()),
                    ("fingerprint", fingerprint),
                ]
            )
        log.debug(f"projection saved: {len(graph.nodes)} node(s), {len(graph.edges)} edge(s)")

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    def _meta(self) -> Dict[str, str]:
        rows = self.conn.execute("SELECT key, value FROM meta").fetchall()
        return {r['key']: r['value'] for r in rows}

    def fingerprint(self) -> str:
        return self._meta().get("fingerprint", "")

    def is_empty(self) -> bool:
        return "next_local_id" not in self._meta()

    def load(self) -> Optional[Tuple[GraphStore, Dict[str, int]]]:
        """Stored graph and cursors, or None if nothing was saved yet."""
        meta = self._meta()
        if "next_local_id" not in meta:
            return None

        graph = GraphStore()
        for row in self.conn.execute("SELECT content FROM nodes"):
            node = Node.from_dict(orjson.loads(row['content']))
            graph.nodes[node.change_id] = node
        for row in self.conn.execute("SELECT pending, content FROM edges"):
            edge = Edge.from_dict(orjson.loads(row['content']))
            pool = graph.pending_edges if row['pending'] else graph.edges
            pool[edge.change_id] = edge
        for row in self.conn.execute("SELECT from_id, to_id, edge_type, order_key FROM edge_tombstones"):
            value = orjson.loads(row['order_key'])
            graph.edge_tombstones[(row['from_id'], row['to_id'], row['edge_type'])] = (
                str(value[0]), str(value[1]), int(value[2])
            )
        for row in self.conn.execute("SELECT content FROM pending_mutations"):
            mutation = PendingMutation.from_dict(orjson.loads(row['content']))
            graph.pending_mutations.setdefault(mutation.change_id, []).append(mutation)
        graph.next_local_id = int(meta["next_local_id"])

        cursors = {str(k): int(v) for k, v in orjson.loads(meta.get("cursors", "{}")).items()}
        return graph, cursors

    def stats(self) -> Dict[str, int]:
        nodes = self.conn.execute("SELECT COUNT(*) AS c FROM nodes WHERE deleted = 0").fetchone()['c']
        edges = self.conn.execute("SELECT COUNT(*) AS c FROM edges WHERE pending = 0").fetchone()['c']
        pending = self.conn.execute("SELECT COUNT(*) AS c FROM edges WHERE pending = 1").fetchone()['c']
        return {"nodes": nodes, "edges": edges, "pending_edges": pending}

    def close(self):
        self.conn.close()
