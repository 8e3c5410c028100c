"""Link graph of the indexed notes.

Uses :mod:`networkx` to hold the graph; :func:`graph_payload` flattens it
into the node-link JSON shape written by ``notedex graph``.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

import networkx as nx

from notedex.note import NoteRecord

EDGE_TYPE = "LINKS_TO"


def build_graph(records: Sequence[NoteRecord]) -> nx.DiGraph:
    """Return a directed graph with one node per note and one edge per link.

    Links whose target id is not indexed are left out.
    """
    G: nx.DiGraph = nx.DiGraph()
    for record in records:
        G.add_node(record.id, title=record.title, path=record.path, tags=list(record.tags))
    for record in records:
        for target in record.links:
            if target in G:
                G.add_edge(record.id, target, type=EDGE_TYPE)
    return G


def backlinks(G: nx.DiGraph, note_id: str) -> list[str]:
    """Ids of the notes that link to *note_id*, sorted."""
    if note_id not in G:
        return []
    return sorted(G.predecessors(note_id))


def graph_payload(records: Sequence[NoteRecord], *, now: datetime | None = None) -> dict[str, Any]:
    """Serialise the link graph as ``{nodes, edges, meta}``.

    Edges refer to nodes by their position in ``nodes``.
    """
    G = build_graph(records)
    position = {note_id: i for i, note_id in enumerate(G.nodes)}
    nodes = [
        {"id": note_id, "label": data["title"], "path": data["path"], "tags": data["tags"]}
        for note_id, data in G.nodes(data=True)
    ]
    edges = [
        {"source": position[src], "target": position[tgt], "type": data["type"]}
        for src, tgt, data in G.edges(data=True)
    ]
    generated = (now or datetime.now(timezone.utc)).isoformat()
    return {
        "nodes": nodes,
        "edges": edges,
        "meta": {"count": len(nodes), "links": len(edges), "generatedAt": generated},
    }
