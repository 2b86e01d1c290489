"""Focus neighbourhood search and edge filtering."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from ..models import EdgeKind, FocusDirection, GraphEdge, GraphNode


def neighbors_within_hops(
    start_id: str,
    hop_limit: int,
    direction: FocusDirection | str,
    edges: Sequence[GraphEdge],
) -> set[str]:
    """Bounded breadth-first search from ``start_id``.

    Edges run from data source to data consumer, so downstream follows
    them forwards and upstream backwards. Visited nodes never re-enter the
    frontier, which keeps cycles finite.

    Args:
        start_id: Node to start from.
        hop_limit: Maximum number of hops; 0 or less returns the start only.
        direction: Upstream, downstream or both.
        edges: Edge set to search.

    Returns:
        Ids reachable within the hop limit, always including ``start_id``
    """
    direction = FocusDirection(direction)
    downstream = direction in (FocusDirection.DOWNSTREAM, FocusDirection.BOTH)
    upstream = direction in (FocusDirection.UPSTREAM, FocusDirection.BOTH)

    seen = {start_id}
    frontier = [start_id]

    for _ in range(max(hop_limit, 0)):
        if not frontier:
            break
        next_frontier = []
        for node_id in frontier:
            for edge in edges:
                if downstream and edge.source == node_id and edge.target not in seen:
                    seen.add(edge.target)
                    next_frontier.append(edge.target)
                if upstream and edge.target == node_id and edge.source not in seen:
                    seen.add(edge.source)
                    next_frontier.append(edge.source)
        frontier = next_frontier

    return seen


def filter_edges(edges: Iterable[GraphEdge], visible_kinds: Mapping[EdgeKind, bool] | None = None) -> list[GraphEdge]:
    """Drop edges whose kind is switched off; missing kinds stay visible."""
    if not visible_kinds:
        return list(edges)
    return [e for e in edges if visible_kinds.get(e.edge_kind, True)]


def edge_kind_breakdown(node_id: str, edges: Iterable[GraphEdge]) -> dict[EdgeKind, int]:
    """Count the edges touching a node, per kind."""
    counts = {kind: 0 for kind in EdgeKind}
    for edge in edges:
        if edge.source == node_id or edge.target == node_id:
            counts[edge.edge_kind] += 1
    return counts


def nodes_for_workbook(nodes: Iterable[GraphNode], workbook_name: str) -> list[str]:
    """Ids of the nodes belonging to one workbook."""
    return [n.id for n in nodes if n.workbook_name == workbook_name]
