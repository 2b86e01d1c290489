"""
Data models for workbook dependency graphs.

This module contains the dataclasses used to represent parsed workbooks,
formula references and the assembled dependency graph. Parsed records are
created once and treated as immutable afterwards; graph records are rebuilt
from scratch on every change of inputs.

Example:
    >>> from xls_graph import parse_workbook, build_graph
    >>> wb = parse_workbook("model.xlsx")
    >>> result = build_graph([wb])
    >>> for edge in result.edges:
    ...     print(f"{edge.source} -> {edge.target} ({edge.ref_count} refs)")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


# =============================================================================
# Enums
# =============================================================================


class EdgeKind(Enum):
    """Classification of a dependency edge.

    Attributes:
        INTERNAL: Source and consumer live in the same workbook.
        CROSS_FILE: Source workbook is another uploaded workbook.
        EXTERNAL: Source workbook is not uploaded, or is currently hidden.
        NAMED_RANGE: Reference routed through a named-range node.
    """

    INTERNAL = "internal"
    CROSS_FILE = "cross-file"
    EXTERNAL = "external"
    NAMED_RANGE = "named-range"


class TargetKind(Enum):
    """How a reference target is represented in the graph.

    Attributes:
        SHEET: One node per (workbook, sheet) of an uploaded, visible workbook.
        FILE: One collapsed node for a whole external or hidden workbook.
    """

    SHEET = "sheet"
    FILE = "file"


class LayoutMode(Enum):
    """Layout strategy used to position the graph.

    Attributes:
        GRAPH: Single hierarchical left-to-right layout over all nodes.
        GROUPED: Workbook groups laid out hierarchically, sheets stacked inside.
        OVERVIEW: One node per workbook, inter-file edges only.
    """

    GRAPH = "graph"
    GROUPED = "grouped"
    OVERVIEW = "overview"


class FocusDirection(Enum):
    """Direction followed by the focus neighborhood search.

    Attributes:
        UPSTREAM: Follow edges backwards, towards data sources.
        DOWNSTREAM: Follow edges forwards, towards data consumers.
        BOTH: Follow edges in both directions.
    """

    UPSTREAM = "upstream"
    DOWNSTREAM = "downstream"
    BOTH = "both"


class NamedRangeScope(Enum):
    """Scope of a defined name."""

    WORKBOOK = "workbook"
    SHEET = "sheet"


# =============================================================================
# Parsing Models
# =============================================================================


@dataclass
class SheetWorkload:
    """Formula workload counters accumulated for one sheet.

    A formula that only points at its own sheet increments
    ``within_sheet_refs`` and produces no ``SheetReference``.

    Attributes:
        total_formulas: Number of formula cells in the sheet.
        within_sheet_refs: References that resolved to the sheet itself.
        cross_sheet_refs: References to another sheet of the same workbook.
        cross_file_refs: References carrying a workbook token.
    """

    total_formulas: int = 0
    within_sheet_refs: int = 0
    cross_sheet_refs: int = 0
    cross_file_refs: int = 0


@dataclass
class SheetReference:
    """One formula-derived pointer from a cell to another sheet.

    Several references may come from the same formula, one per distinct
    target. All cell mentions of the same target inside one formula are
    collected in ``cells``.

    Attributes:
        target_workbook: Workbook token of the target, None for same workbook.
        target_sheet: Name of the referenced sheet.
        cells: Cell-range tokens mentioned for this target (e.g. "A1:B2").
        formula: Raw formula text.
        source_cell: Address of the cell holding the formula.
        named_range_name: Defined name the reference was detected through.

    Example:
        >>> ref = SheetReference(None, "Inputs", ["B2"], "Inputs!B2*2", "C4")
        >>> ref.is_cross_file
        False
    """

    target_workbook: str | None
    target_sheet: str
    cells: list[str]
    formula: str
    source_cell: str
    named_range_name: str | None = None

    @property
    def is_cross_file(self) -> bool:
        """Whether the reference names another workbook."""
        return self.target_workbook is not None


@dataclass
class NameDefinition:
    """One row of a workbook's name-definition table.

    Attributes:
        name: The defined name.
        ref: Raw definition string (e.g. "'My Sheet'!$A$1:$B$4").
        sheet_index: 0-based index of the owning sheet for local names.
    """

    name: str
    ref: str
    sheet_index: int | None = None


@dataclass
class NamedRange:
    """A normalized named range.

    Named ranges are always local to their defining workbook, so
    ``target_workbook`` is always None.

    Attributes:
        name: The defined name.
        ref: Raw definition string.
        target_sheet: Sheet the range points at ("" for constants).
        cells: Cell or range portion of the definition.
        scope: Workbook or sheet scope.
        scope_sheet: Owning sheet name when scope is SHEET.
        target_workbook: Always None.
    """

    name: str
    ref: str
    target_sheet: str
    cells: str
    scope: NamedRangeScope = NamedRangeScope.WORKBOOK
    scope_sheet: str | None = None
    target_workbook: None = None


@dataclass
class ExtractionResult:
    """Output of reference extraction for one sheet."""

    references: list[SheetReference] = field(default_factory=list)
    workload: SheetWorkload = field(default_factory=SheetWorkload)


@dataclass
class ParsedSheet:
    """A sheet with its outgoing references and workload.

    Attributes:
        workbook_name: Display name of the owning workbook.
        sheet_name: Name of the sheet as shown on the tab.
        references: Outgoing references found in the sheet's formulas.
        workload: Aggregate formula counters.
    """

    workbook_name: str
    sheet_name: str
    references: list[SheetReference] = field(default_factory=list)
    workload: SheetWorkload = field(default_factory=SheetWorkload)


# =============================================================================
# Error Handling
# =============================================================================


@dataclass
class ExtractionError:
    """An error that occurred during extraction.

    Non-fatal errors are collected here rather than raising exceptions,
    allowing partial extraction results to be returned.

    Attributes:
        extractor: Name of the extractor that failed.
        message: Human-readable error message.
        details: Additional technical details.
    """

    extractor: str
    message: str
    details: str | None = None


@dataclass
class ExtractionWarning:
    """A warning from extraction indicating partial success."""

    extractor: str
    message: str
    details: str | None = None


@dataclass
class WorkbookFile:
    """One uploaded workbook.

    Identity for cross-file resolution is ``name``, not ``id``.

    Attributes:
        id: Upload identifier (caller supplied or derived from file metadata).
        name: Display name, usually the file name.
        sheets: Parsed sheets in workbook order.
        named_ranges: Named ranges defined by the workbook.
        errors: Non-fatal extraction errors.
        warnings: Extraction warnings.
    """

    id: str
    name: str
    sheets: list[ParsedSheet] = field(default_factory=list)
    named_ranges: list[NamedRange] = field(default_factory=list)
    errors: list[ExtractionError] = field(default_factory=list)
    warnings: list[ExtractionWarning] = field(default_factory=list)

    @property
    def sheet_names(self) -> list[str]:
        """Names of all sheets in order."""
        return [s.sheet_name for s in self.sheets]

    @property
    def reference_count(self) -> int:
        """Total number of outgoing references across sheets."""
        return sum(len(s.references) for s in self.sheets)

    @property
    def has_errors(self) -> bool:
        """Whether extraction encountered any errors."""
        return len(self.errors) > 0


# =============================================================================
# Graph Models
# =============================================================================


@dataclass
class Position:
    """Top-left corner of a positioned node or cluster."""

    x: float = 0.0
    y: float = 0.0


@dataclass
class EdgeReference:
    """A single formula reference carried by an edge.

    Attributes:
        source_cell: Cell holding the formula (in the consumer sheet).
        target_cells: Cell-range tokens read from the data source.
        formula: Raw formula text.
    """

    source_cell: str
    target_cells: list[str]
    formula: str


@dataclass
class GraphNode:
    """A node of the dependency graph.

    A node is an uploaded sheet, a named range, or a collapsed
    external/hidden workbook (``is_file_node``). In overview mode every node
    is a file node.

    Attributes:
        id: Deterministic identifier derived from the semantic identity.
        label: Display label.
        workbook_name: Owning workbook.
        sheet_name: Sheet name (display name of the workbook for file nodes).
        is_external: Whether the node is not an uploaded, visible sheet.
        is_file_node: Whether the node stands for a whole workbook.
        is_named_range: Whether the node stands for a named range.
        named_range_name: Name of the range for named-range nodes.
        named_range_ref: Raw definition for named-range nodes.
        sheet_count: Number of sheets (overview nodes of uploaded workbooks).
        outgoing_count: Number of outgoing edges.
        incoming_count: Number of incoming edges.
        workload: Workload of the uploaded sheet, None otherwise.
        position: Top-left corner assigned by layout.
    """

    id: str
    label: str
    workbook_name: str
    sheet_name: str
    is_external: bool = False
    is_file_node: bool = False
    is_named_range: bool = False
    named_range_name: str | None = None
    named_range_ref: str | None = None
    sheet_count: int | None = None
    outgoing_count: int = 0
    incoming_count: int = 0
    workload: SheetWorkload | None = None
    position: Position = field(default_factory=Position)


@dataclass
class GraphEdge:
    """A deduplicated edge from a data source to a data consumer.

    All references sharing the same (source, target) pair collapse into
    one edge.

    Attributes:
        id: "{source}->{target}".
        source: Node id of the data source.
        target: Node id of the data consumer.
        edge_kind: Classification of the edge.
        references: Formula references carried by the edge.
    """

    id: str
    source: str
    target: str
    edge_kind: EdgeKind
    references: list[EdgeReference] = field(default_factory=list)

    @property
    def ref_count(self) -> int:
        """Number of references carried, used for visual weighting."""
        return len(self.references)


@dataclass
class ClusterBox:
    """Background rectangle for one workbook group in grouped mode.

    Attributes:
        id: "[cluster]{workbook}" or "[cluster]__external__".
        label: Display label.
        workbook_name: Workbook of the group ("__external__" for externals).
        position: Top-left corner.
        width: Rectangle width.
        height: Rectangle height, including the label band.
        is_external: Whether this is the external group.
    """

    id: str
    label: str
    workbook_name: str
    position: Position
    width: float
    height: float
    is_external: bool = False


@dataclass
class GraphResult:
    """Assembled and positioned graph.

    Example:
        >>> result = build_graph(workbooks, LayoutMode.GROUPED)
        >>> print(f"{len(result.nodes)} nodes, {len(result.edges)} edges")
    """

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    layout_mode: LayoutMode = LayoutMode.GRAPH

    @property
    def node_ids(self) -> list[str]:
        """Ids of all nodes in order."""
        return [n.id for n in self.nodes]

    @property
    def edge_ids(self) -> list[str]:
        """Ids of all edges in order."""
        return [e.id for e in self.edges]

    @property
    def is_empty(self) -> bool:
        """Whether the graph has no nodes."""
        return len(self.nodes) == 0

    def node(self, node_id: str) -> GraphNode | None:
        """Look up a node by id."""
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def edges_of_kind(self, kind: EdgeKind) -> list[GraphEdge]:
        """All edges of one kind."""
        return [e for e in self.edges if e.edge_kind == kind]


# =============================================================================
# Analysis Result
# =============================================================================


@dataclass
class GraphAnalysis:
    """Complete result of analyzing a set of workbooks.

    Attributes:
        workbooks: Parsed workbooks in upload order.
        graph: Assembled and positioned graph.
        edges: Graph edges left after the edge-kind filter.
        clusters: Cluster boxes (grouped layout only).
        focus_node: Start node of the focus search, if any.
        focus: Focus neighbourhood, None when no focus was requested.
    """

    workbooks: list[WorkbookFile] = field(default_factory=list)
    graph: GraphResult = field(default_factory=GraphResult)
    edges: list[GraphEdge] = field(default_factory=list)
    clusters: list[ClusterBox] = field(default_factory=list)
    focus_node: str | None = None
    focus: set[str] | None = None

    @property
    def errors(self) -> list[ExtractionError]:
        """Extraction errors of every workbook."""
        return [e for wb in self.workbooks for e in wb.errors]

    def edge_counts(self) -> dict[EdgeKind, int]:
        """Number of visible edges per kind."""
        counts = {kind: 0 for kind in EdgeKind}
        for edge in self.edges:
            counts[edge.edge_kind] += 1
        return counts
