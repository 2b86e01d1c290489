"""Layout strategies.

All strategies assign top-left positions to freshly built nodes. They are
deterministic for fixed input and never run on an empty node set.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

import networkx as nx

from ..models import GraphEdge, GraphNode, LayoutMode, Position

log = logging.getLogger(__name__)

NODE_WIDTH = 190
NODE_HEIGHT = 88

RANK_SEP = 130
NODE_SEP = 55
MARGIN = 60

# Grouped mode
GROUP_NODE_SEP = 80
INTRA_VGAP = 100
INTRA_PAD_X = 40
INTRA_PAD_Y = 56
INTRA_PAD_BOTTOM = 30
EXTERNAL_GROUP = "__external__"

ORDER_SWEEPS = 4


# =============================================================================
# Ranking primitive
# =============================================================================


def layout_rank(
    sizes: Mapping[str, tuple[float, float]],
    edges: Iterable[tuple[str, str]],
    direction: str = "LR",
    rank_sep: float = RANK_SEP,
    node_sep: float = NODE_SEP,
    margin_x: float = MARGIN,
    margin_y: float = MARGIN,
) -> dict[str, tuple[float, float]]:
    """Hierarchical positioning of sized boxes.

    Nodes are ranked by longest path from the sources of the condensed
    graph (members of a cycle share a rank), ordered inside each rank by
    barycenter sweeps and packed with the given separations.

    Args:
        sizes: Node id to (width, height), in a stable order.
        edges: (source, target) pairs; unknown ids and self-loops are ignored.
        direction: "LR" (ranks run left to right) or "TB" (top to bottom).
        rank_sep: Gap between adjacent ranks.
        node_sep: Gap between neighbours inside a rank.
        margin_x: Left margin.
        margin_y: Top margin.

    Returns:
        Node id to center (x, y)
    """
    if direction not in ("LR", "TB"):
        raise ValueError(f"Unknown rank direction: {direction}")
    if not sizes:
        return {}

    graph = nx.DiGraph()
    graph.add_nodes_from(sizes)
    graph.add_edges_from((s, t) for s, t in edges if s != t and s in sizes and t in sizes)

    ranks = _longest_path_ranks(graph)
    layers = _order_layers(graph, ranks)
    return _assign_coordinates(layers, sizes, direction == "LR", rank_sep, node_sep, margin_x, margin_y)


def _longest_path_ranks(graph: nx.DiGraph) -> dict[str, int]:
    condensed = nx.condensation(graph)
    members = condensed.graph["mapping"]

    component_rank: dict[int, int] = {}
    for component in nx.topological_sort(condensed):
        component_rank[component] = max(
            (component_rank[p] + 1 for p in condensed.predecessors(component)),
            default=0,
        )
    return {node: component_rank[members[node]] for node in graph}


def _order_layers(graph: nx.DiGraph, ranks: dict[str, int]) -> list[list[str]]:
    layers: list[list[str]] = [[] for _ in range(max(ranks.values()) + 1)]
    for node in graph:
        layers[ranks[node]].append(node)

    for sweep in range(ORDER_SWEEPS):
        if sweep % 2 == 0:
            indices = range(1, len(layers))
            neighbours = graph.predecessors
        else:
            indices = range(len(layers) - 2, -1, -1)
            neighbours = graph.successors

        slot = _centered_slots(layers)
        for r in indices:
            layers[r] = _sort_by_barycenter(layers[r], neighbours, slot, ranks, r)
            slot.update(_centered_slots([layers[r]]))

    return layers


def _centered_slots(layers: Sequence[Sequence[str]]) -> dict[str, float]:
    # Slot index relative to the middle of its layer
    slots = {}
    for layer in layers:
        middle = (len(layer) - 1) / 2
        for i, node in enumerate(layer):
            slots[node] = i - middle
    return slots


def _sort_by_barycenter(layer, neighbours, slot, ranks, rank) -> list[str]:
    keyed = []
    for i, node in enumerate(layer):
        around = [slot[n] for n in neighbours(node) if ranks[n] != rank]
        center = sum(around) / len(around) if around else slot[node]
        keyed.append((center, i, node))
    keyed.sort()
    return [node for _, _, node in keyed]


def _assign_coordinates(
    layers: list[list[str]],
    sizes: Mapping[str, tuple[float, float]],
    horizontal: bool,
    rank_sep: float,
    node_sep: float,
    margin_x: float,
    margin_y: float,
) -> dict[str, tuple[float, float]]:
    def along(node):
        width, height = sizes[node]
        return width if horizontal else height

    def across(node):
        width, height = sizes[node]
        return height if horizontal else width

    rank_extent = [max(along(n) for n in layer) for layer in layers]
    layer_extent = [sum(across(n) for n in layer) + node_sep * (len(layer) - 1) for layer in layers]
    widest = max(layer_extent)

    centers: dict[str, tuple[float, float]] = {}
    rank_offset = 0.0
    for r, layer in enumerate(layers):
        rank_center = rank_offset + rank_extent[r] / 2
        cursor = (widest - layer_extent[r]) / 2
        for node in layer:
            size = across(node)
            cross_center = cursor + size / 2
            cursor += size + node_sep
            if horizontal:
                centers[node] = (margin_x + rank_center, margin_y + cross_center)
            else:
                centers[node] = (margin_x + cross_center, margin_y + rank_center)
        rank_offset += rank_extent[r] + rank_sep

    return centers


# =============================================================================
# Strategies
# =============================================================================


def graph_layout(nodes: list[GraphNode], edges: Sequence[GraphEdge]) -> list[GraphNode]:
    """Single left-to-right hierarchical layout over every node."""
    if not nodes:
        return nodes

    centers = layout_rank(
        {n.id: (NODE_WIDTH, NODE_HEIGHT) for n in nodes},
        [(e.source, e.target) for e in edges],
        direction="LR",
        rank_sep=RANK_SEP,
        node_sep=NODE_SEP,
        margin_x=MARGIN,
        margin_y=MARGIN,
    )
    for node in nodes:
        cx, cy = centers[node.id]
        node.position = Position(cx - NODE_WIDTH / 2, cy - NODE_HEIGHT / 2)
    return nodes


def group_size(member_count: int) -> tuple[float, float]:
    """Bounding box of a group stacking ``member_count`` nodes in one column."""
    width = NODE_WIDTH + INTRA_PAD_X * 2
    height = (
        INTRA_PAD_Y
        + member_count * NODE_HEIGHT
        + (member_count - 1) * (INTRA_VGAP - NODE_HEIGHT)
        + INTRA_PAD_BOTTOM
    )
    return width, height


def grouped_layout(nodes: list[GraphNode], edges: Sequence[GraphEdge]) -> list[GraphNode]:
    """Workbook groups laid out hierarchically, members stacked inside.

    External nodes share one catch-all group. Returned nodes are ordered
    group by group, externals last.
    """
    if not nodes:
        return nodes

    groups: dict[str, list[GraphNode]] = {}
    for node in nodes:
        if not node.is_external:
            groups.setdefault(node.workbook_name, []).append(node)
    external = [n for n in nodes if n.is_external]
    if external:
        groups[EXTERNAL_GROUP] = external

    group_of = {n.id: key for key, members in groups.items() for n in members}

    group_edges: list[tuple[str, str]] = []
    seen: set[tuple[str, str]] = set()
    for edge in edges:
        pair = (group_of.get(edge.source), group_of.get(edge.target))
        if pair[0] and pair[1] and pair[0] != pair[1] and pair not in seen:
            seen.add(pair)
            group_edges.append(pair)

    sizes = {key: group_size(len(members)) for key, members in groups.items()}
    centers = layout_rank(
        sizes,
        group_edges,
        direction="LR",
        rank_sep=RANK_SEP,
        node_sep=GROUP_NODE_SEP,
        margin_x=MARGIN,
        margin_y=MARGIN,
    )

    placed: list[GraphNode] = []
    for key, members in groups.items():
        width, height = sizes[key]
        cx, cy = centers[key]
        group_x = cx - width / 2
        group_y = cy - height / 2
        for row, node in enumerate(members):
            node.position = Position(group_x + INTRA_PAD_X, group_y + INTRA_PAD_Y + row * INTRA_VGAP)
            placed.append(node)

    log.debug("Grouped layout: %d groups, %d group edges", len(groups), len(group_edges))
    return placed


def apply_layout(nodes: list[GraphNode], edges: Sequence[GraphEdge], mode: LayoutMode | str) -> list[GraphNode]:
    """Position nodes with the strategy selected by ``mode``."""
    if not nodes:
        return []
    if LayoutMode(mode) == LayoutMode.GROUPED:
        return grouped_layout(nodes, edges)
    return graph_layout(nodes, edges)
