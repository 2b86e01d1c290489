"""Graph assembly, layout, clustering and focus search."""

from .builder import (
    GraphArena,
    ResolutionContext,
    ResolvedTarget,
    build_graph,
    build_overview_graph,
    classify_edge,
    classify_target,
    materialize_node,
)
from .clusters import compute_cluster_nodes
from .focus import edge_kind_breakdown, filter_edges, neighbors_within_hops, nodes_for_workbook
from .layout import apply_layout, graph_layout, grouped_layout, layout_rank

__all__ = [
    "GraphArena",
    "ResolutionContext",
    "ResolvedTarget",
    "build_graph",
    "build_overview_graph",
    "classify_edge",
    "classify_target",
    "materialize_node",
    "compute_cluster_nodes",
    "edge_kind_breakdown",
    "filter_edges",
    "neighbors_within_hops",
    "nodes_for_workbook",
    "apply_layout",
    "graph_layout",
    "grouped_layout",
    "layout_rank",
]
