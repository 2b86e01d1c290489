"""Graph assembler.

Turns parsed workbooks into a deduplicated node/edge graph. Every call
rebuilds the graph from scratch; node and edge ids are pure functions of
their semantic identity so repeated builds over the same inputs agree.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from ..models import (
    EdgeKind,
    EdgeReference,
    GraphEdge,
    GraphNode,
    GraphResult,
    LayoutMode,
    NamedRange,
    SheetReference,
    SheetWorkload,
    TargetKind,
    WorkbookFile,
)
from .layout import apply_layout

log = logging.getLogger(__name__)

_BRACKET_RE = re.compile(r"\[([^\]]+)\]")
_XLSX_RE = re.compile(r"\.xlsx$", re.IGNORECASE)


# =============================================================================
# Identity
# =============================================================================


def sheet_node_id(workbook: str, sheet: str) -> str:
    return f"{workbook}::{sheet}"


def file_node_id(workbook: str) -> str:
    return f"[file]{workbook}"


def named_range_node_id(workbook: str, name: str) -> str:
    return f"[nr]{workbook}::{name}"


def edge_id(source: str, target: str) -> str:
    return f"{source}->{target}"


def normalize_workbook_name(name: str) -> str:
    """Normalize a workbook name for matching.

    Bracket notation is unwrapped, a ``.xlsx`` suffix is dropped and the
    result is lowercased.

    Example:
        >>> normalize_workbook_name("[Prices.XLSX]")
        'prices'
    """
    match = _BRACKET_RE.search(name)
    if match:
        name = match.group(1)
    return _XLSX_RE.sub("", name.lower())


def display_name(workbook: str) -> str:
    """Workbook name without its ``.xlsx`` suffix."""
    return _XLSX_RE.sub("", workbook)


# =============================================================================
# Resolution
# =============================================================================


@dataclass
class ResolutionContext:
    """Name tables shared by every reference of one build.

    Attributes:
        canonical: Normalized name to uploaded display name, for all uploads.
        visible: Normalized names of uploaded workbooks that are not hidden.
        workloads: Sheet node id to workload, for all uploaded sheets.
        named_ranges: Workbook name to lowercase range name to NamedRange.
    """

    canonical: dict[str, str] = field(default_factory=dict)
    visible: set[str] = field(default_factory=set)
    workloads: dict[str, SheetWorkload] = field(default_factory=dict)
    named_ranges: dict[str, dict[str, NamedRange]] = field(default_factory=dict)

    @classmethod
    def from_workbooks(cls, workbooks: Sequence[WorkbookFile], hidden_files: Iterable[str] = ()) -> ResolutionContext:
        hidden = set(hidden_files)
        context = cls()
        for wb in workbooks:
            key = normalize_workbook_name(wb.name)
            context.canonical[key] = wb.name
            if wb.name not in hidden:
                context.visible.add(key)
            for sheet in wb.sheets:
                context.workloads[sheet_node_id(wb.name, sheet.sheet_name)] = sheet.workload
            context.named_ranges[wb.name] = {nr.name.lower(): nr for nr in wb.named_ranges}
        return context

    def resolve(self, raw: str) -> str:
        """Exact uploaded display name for a raw token, or the token itself."""
        return self.canonical.get(normalize_workbook_name(raw), raw)

    def is_uploaded(self, workbook: str) -> bool:
        return normalize_workbook_name(workbook) in self.canonical

    def is_visible(self, workbook: str) -> bool:
        return normalize_workbook_name(workbook) in self.visible

    def named_range(self, workbook: str, name: str) -> NamedRange | None:
        return self.named_ranges.get(workbook, {}).get(name.lower())


@dataclass(frozen=True)
class ResolvedTarget:
    """Where a reference's data comes from.

    Attributes:
        kind: SHEET for uploaded visible workbooks, FILE otherwise.
        workbook_name: Resolved workbook display name.
        sheet_name: Referenced sheet.
        same_workbook: Whether the target lives in the consumer's workbook.
        uploaded: Whether the target workbook is uploaded (hidden or not).
        visible: Whether the target workbook is uploaded and not hidden.
    """

    kind: TargetKind
    workbook_name: str
    sheet_name: str
    same_workbook: bool
    uploaded: bool
    visible: bool

    @property
    def node_id(self) -> str:
        if self.kind == TargetKind.FILE:
            return file_node_id(self.workbook_name)
        return sheet_node_id(self.workbook_name, self.sheet_name)


def classify_target(ref: SheetReference, consumer_workbook: str, context: ResolutionContext) -> ResolvedTarget:
    """Decide whether a reference's source is a sheet node or a file node."""
    if ref.target_workbook:
        workbook = context.resolve(ref.target_workbook)
        same = normalize_workbook_name(workbook) == normalize_workbook_name(consumer_workbook)
    else:
        workbook = consumer_workbook
        same = True

    uploaded = context.is_uploaded(workbook)
    visible = context.is_visible(workbook)
    kind = TargetKind.SHEET if uploaded and visible else TargetKind.FILE

    return ResolvedTarget(
        kind=kind,
        workbook_name=workbook,
        sheet_name=ref.target_sheet,
        same_workbook=same,
        uploaded=uploaded,
        visible=visible,
    )


def classify_edge(target: ResolvedTarget) -> EdgeKind:
    """Edge kind of a direct reference to ``target``."""
    if target.same_workbook:
        return EdgeKind.INTERNAL
    if target.uploaded and target.visible:
        return EdgeKind.CROSS_FILE
    return EdgeKind.EXTERNAL


def materialize_node(target: ResolvedTarget, sheet_workloads: dict[str, SheetWorkload] | None = None) -> GraphNode:
    """Create the node standing for a resolved target."""
    if target.kind == TargetKind.FILE:
        label = display_name(target.workbook_name)
        return GraphNode(
            id=target.node_id,
            label=label,
            workbook_name=target.workbook_name,
            sheet_name=label,
            is_external=True,
            is_file_node=True,
        )

    return GraphNode(
        id=target.node_id,
        label=target.sheet_name,
        workbook_name=target.workbook_name,
        sheet_name=target.sheet_name,
        workload=(sheet_workloads or {}).get(target.node_id),
    )


def _named_range_node(workbook: str, name: str, target_sheet: str, definition: NamedRange | None) -> GraphNode:
    return GraphNode(
        id=named_range_node_id(workbook, name),
        label=name,
        workbook_name=workbook,
        sheet_name=definition.target_sheet if definition else target_sheet,
        is_named_range=True,
        named_range_name=name,
        named_range_ref=definition.ref if definition else None,
    )


def _edge_reference(ref: SheetReference) -> EdgeReference:
    return EdgeReference(source_cell=ref.source_cell, target_cells=list(ref.cells), formula=ref.formula)


# =============================================================================
# Arena
# =============================================================================


class GraphArena:
    """Flat node and edge storage with key to index side maps."""

    def __init__(self):
        self.nodes: list[GraphNode] = []
        self.edges: list[GraphEdge] = []
        self._node_index: dict[str, int] = {}
        self._edge_index: dict[str, int] = {}

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._node_index

    def __len__(self) -> int:
        return len(self.nodes)

    def add_node(self, node: GraphNode) -> int:
        """Register a node unless one with the same id exists."""
        index = self._node_index.get(node.id)
        if index is None:
            index = len(self.nodes)
            self._node_index[node.id] = index
            self.nodes.append(node)
        return index

    def add_reference(self, source: str, target: str, kind: EdgeKind, reference: EdgeReference) -> GraphEdge | None:
        """Attach a reference to the (source, target) edge, creating it on first use.

        The kind of the first reference on an edge sticks. Self-loops are
        never created.
        """
        if source == target:
            return None

        eid = edge_id(source, target)
        index = self._edge_index.get(eid)
        if index is None:
            index = len(self.edges)
            self._edge_index[eid] = index
            self.edges.append(GraphEdge(id=eid, source=source, target=target, edge_kind=kind))
        edge = self.edges[index]
        edge.references.append(reference)
        return edge

    def compute_degrees(self) -> None:
        """Set in/out degree on every node with one scan over the edges."""
        outgoing = [0] * len(self.nodes)
        incoming = [0] * len(self.nodes)
        for edge in self.edges:
            outgoing[self._node_index[edge.source]] += 1
            incoming[self._node_index[edge.target]] += 1
        for i, node in enumerate(self.nodes):
            node.outgoing_count = outgoing[i]
            node.incoming_count = incoming[i]

    def mark_external(self, materialized: set[str]) -> None:
        """Flag every node outside ``materialized`` as external."""
        for node in self.nodes:
            node.is_external = node.id not in materialized


# =============================================================================
# Builders
# =============================================================================


def build_graph(
    workbooks: Sequence[WorkbookFile],
    layout_mode: LayoutMode | str = LayoutMode.GRAPH,
    hidden_files: Iterable[str] = frozenset(),
    show_named_ranges: bool = False,
) -> GraphResult:
    """Assemble and lay out the dependency graph.

    Args:
        workbooks: All uploaded workbooks.
        layout_mode: Layout strategy to apply.
        hidden_files: Workbook names excluded from the source side.
        show_named_ranges: Route named-range references through range nodes.

    Returns:
        GraphResult with positioned nodes and deduplicated edges
    """
    layout_mode = LayoutMode(layout_mode)
    hidden = set(hidden_files)

    if layout_mode == LayoutMode.OVERVIEW:
        return build_overview_graph(workbooks, hidden)

    context = ResolutionContext.from_workbooks(workbooks, hidden)
    visible = [wb for wb in workbooks if wb.name not in hidden]

    arena = GraphArena()
    materialized: set[str] = set()

    for wb in visible:
        for sheet in wb.sheets:
            node_id = sheet_node_id(wb.name, sheet.sheet_name)
            materialized.add(node_id)
            arena.add_node(GraphNode(
                id=node_id,
                label=sheet.sheet_name,
                workbook_name=wb.name,
                sheet_name=sheet.sheet_name,
                workload=context.workloads.get(node_id),
            ))

    for wb in visible:
        for sheet in wb.sheets:
            consumer_id = sheet_node_id(wb.name, sheet.sheet_name)

            for ref in sheet.references:
                target = classify_target(ref, wb.name, context)
                source_id = target.node_id
                if source_id not in arena:
                    arena.add_node(materialize_node(target, context.workloads))

                if show_named_ranges and ref.named_range_name:
                    nr_id = named_range_node_id(wb.name, ref.named_range_name)
                    if nr_id not in arena:
                        definition = context.named_range(wb.name, ref.named_range_name)
                        arena.add_node(_named_range_node(wb.name, ref.named_range_name, ref.target_sheet, definition))
                    materialized.add(nr_id)
                    arena.add_reference(source_id, nr_id, EdgeKind.NAMED_RANGE, _edge_reference(ref))
                    arena.add_reference(nr_id, consumer_id, EdgeKind.NAMED_RANGE, _edge_reference(ref))
                else:
                    arena.add_reference(source_id, consumer_id, classify_edge(target), _edge_reference(ref))

    arena.mark_external(materialized)
    arena.compute_degrees()

    log.debug("Built graph: %d nodes, %d edges (%s)", len(arena.nodes), len(arena.edges), layout_mode.value)

    if not arena.nodes:
        return GraphResult(layout_mode=layout_mode)

    nodes = apply_layout(arena.nodes, arena.edges, layout_mode)
    return GraphResult(nodes=nodes, edges=arena.edges, layout_mode=layout_mode)


def build_overview_graph(
    workbooks: Sequence[WorkbookFile],
    hidden_files: Iterable[str] = frozenset(),
) -> GraphResult:
    """Aggregate the graph to one node per visible workbook.

    Only inter-file references contribute; same-workbook references are
    dropped before any edge exists. Targets that are not uploaded, or are
    hidden, become external file nodes.
    """
    hidden = set(hidden_files)
    context = ResolutionContext.from_workbooks(workbooks, hidden)
    visible = [wb for wb in workbooks if wb.name not in hidden]

    arena = GraphArena()

    for wb in visible:
        label = display_name(wb.name)
        arena.add_node(GraphNode(
            id=file_node_id(wb.name),
            label=label,
            workbook_name=wb.name,
            sheet_name=label,
            is_file_node=True,
            sheet_count=len(wb.sheets),
        ))

    for wb in visible:
        consumer_id = file_node_id(wb.name)
        for sheet in wb.sheets:
            for ref in sheet.references:
                if not ref.target_workbook:
                    continue
                target_wb = context.resolve(ref.target_workbook)
                if normalize_workbook_name(target_wb) == normalize_workbook_name(wb.name):
                    continue

                shown = context.is_visible(target_wb)
                source_id = file_node_id(target_wb)
                if source_id not in arena:
                    label = display_name(target_wb)
                    arena.add_node(GraphNode(
                        id=source_id,
                        label=label,
                        workbook_name=target_wb,
                        sheet_name=label,
                        is_external=not shown,
                        is_file_node=True,
                    ))

                kind = EdgeKind.CROSS_FILE if shown else EdgeKind.EXTERNAL
                arena.add_reference(source_id, consumer_id, kind, _edge_reference(ref))

    arena.compute_degrees()

    if not arena.nodes:
        return GraphResult(layout_mode=LayoutMode.OVERVIEW)

    nodes = apply_layout(arena.nodes, arena.edges, LayoutMode.OVERVIEW)
    return GraphResult(nodes=nodes, edges=arena.edges, layout_mode=LayoutMode.OVERVIEW)
