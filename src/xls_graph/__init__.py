"""
xls-graph: Sheet and workbook dependency graphs for Excel files.

This library reads formulas from Excel workbooks (.xlsx, .xlsm), extracts
cross-sheet, cross-workbook, external and named-range references, and
assembles them into a positioned dependency graph.

Basic usage:
    >>> from xls_graph import analyze
    >>> result = analyze(["model.xlsx", "inputs.xlsx"])
    >>> for edge in result.edges:
    ...     print(edge.source, "->", edge.target, edge.edge_kind.value)

Writing the graph for a renderer:
    >>> from xls_graph import analyze_and_report
    >>> result = analyze_and_report(["model.xlsx"], "./output")
    >>> # Creates: output/graph.json
"""

from .analyze import (
    GraphOptions,
    analyze,
    analyze_and_report,
    analyze_workbooks,
    parse_workbook,
    workbook_id,
)
from .extractors import (
    build_external_link_map,
    extract_named_ranges,
    extract_references,
)
from .graph import (
    build_graph,
    compute_cluster_nodes,
    edge_kind_breakdown,
    filter_edges,
    layout_rank,
    neighbors_within_hops,
)
from .models import (
    # Enums
    EdgeKind,
    TargetKind,
    LayoutMode,
    FocusDirection,
    NamedRangeScope,
    # Parsing models
    SheetWorkload,
    SheetReference,
    NameDefinition,
    NamedRange,
    ExtractionResult,
    ParsedSheet,
    WorkbookFile,
    # Graph models
    Position,
    EdgeReference,
    GraphNode,
    GraphEdge,
    ClusterBox,
    GraphResult,
    GraphAnalysis,
    # Errors
    ExtractionError,
    ExtractionWarning,
)
from .session import GraphSession

__version__ = "0.1.0"

__all__ = [
    # Main API
    "analyze",
    "analyze_and_report",
    "analyze_workbooks",
    "parse_workbook",
    "workbook_id",
    "GraphOptions",
    "GraphSession",
    # Core functions
    "build_external_link_map",
    "extract_named_ranges",
    "extract_references",
    "build_graph",
    "compute_cluster_nodes",
    "edge_kind_breakdown",
    "filter_edges",
    "layout_rank",
    "neighbors_within_hops",
    # Enums
    "EdgeKind",
    "TargetKind",
    "LayoutMode",
    "FocusDirection",
    "NamedRangeScope",
    # Parsing models
    "SheetWorkload",
    "SheetReference",
    "NameDefinition",
    "NamedRange",
    "ExtractionResult",
    "ParsedSheet",
    "WorkbookFile",
    # Graph models
    "Position",
    "EdgeReference",
    "GraphNode",
    "GraphEdge",
    "ClusterBox",
    "GraphResult",
    "GraphAnalysis",
    # Errors
    "ExtractionError",
    "ExtractionWarning",
]
