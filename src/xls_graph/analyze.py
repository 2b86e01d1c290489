"""
Main entry point for workbook dependency analysis.

This module reads workbooks into WorkbookFile records and runs the graph
pipeline over them: assembly, layout, edge filtering, clustering and focus.

Example:
    >>> from xls_graph import analyze, GraphOptions
    >>> result = analyze(["model.xlsx", "inputs.xlsx"], GraphOptions(layout_mode="grouped"))
    >>> print(len(result.graph.nodes), len(result.clusters))
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import openpyxl

from .extractors import (
    ExternalLinkExtractor,
    FormulaCellExtractor,
    NamedRangeExtractor,
    extract_references,
    named_range_lookup,
)
from .graph import (
    build_graph,
    compute_cluster_nodes,
    filter_edges,
    neighbors_within_hops,
)
from .models import (
    EdgeKind,
    ExtractionError,
    ExtractionWarning,
    FocusDirection,
    GraphAnalysis,
    LayoutMode,
    ParsedSheet,
    WorkbookFile,
)

log = logging.getLogger(__name__)

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")

MAX_FOCUS_HOPS = 3


@dataclass
class GraphOptions:
    """Options controlling how the graph is built and queried.

    Attributes:
        layout_mode: Layout strategy (default: graph).
        hidden_files: Workbook names hidden from the source side (default: none).
        show_named_ranges: Route named-range references through range nodes
            (default: False).
        edge_kinds: Visibility per edge kind; missing kinds are visible
            (default: all visible).
        focus_node: Node id to compute a focus neighbourhood for (default: None).
        focus_hops: Hop limit of the focus search, 1 to 3 (default: 1).
        focus_direction: Direction of the focus search (default: both).

    Example:
        >>> options = GraphOptions(
        ...     layout_mode="grouped",
        ...     hidden_files={"Archive.xlsx"},
        ...     edge_kinds={EdgeKind.INTERNAL: False},  # cross-workbook flows only
        ... )
        >>> result = analyze(paths, options)
    """

    layout_mode: LayoutMode = LayoutMode.GRAPH
    hidden_files: frozenset[str] = frozenset()
    show_named_ranges: bool = False
    edge_kinds: dict[EdgeKind, bool] = field(default_factory=lambda: {kind: True for kind in EdgeKind})
    focus_node: str | None = None
    focus_hops: int = 1
    focus_direction: FocusDirection = FocusDirection.BOTH

    def __post_init__(self):
        self.layout_mode = LayoutMode(self.layout_mode)
        self.focus_direction = FocusDirection(self.focus_direction)
        self.hidden_files = frozenset(self.hidden_files)

        kinds = {kind: True for kind in EdgeKind}
        for kind, shown in dict(self.edge_kinds).items():
            kinds[EdgeKind(kind)] = bool(shown)
        self.edge_kinds = kinds

        if not 1 <= self.focus_hops <= MAX_FOCUS_HOPS:
            raise ValueError(f"focus_hops must be between 1 and {MAX_FOCUS_HOPS}, got {self.focus_hops}")


def workbook_id(name: str, size: int, mtime: float) -> str:
    """Reproducible upload id derived from file name, size and mtime."""
    digest = hashlib.sha1(f"{name}:{size}:{mtime}".encode("utf-8"))
    return digest.hexdigest()[:12]


def parse_workbook(
    file_path: str | Path,
    file_id: str | None = None,
    name: str | None = None,
) -> WorkbookFile:
    """Read a workbook into a WorkbookFile.

    Args:
        file_path: Path to the Excel file (.xlsx, .xlsm, .xltx or .xltm).
        file_id: Upload id; derived from the file metadata when omitted.
        name: Display name; defaults to the file name.

    Returns:
        WorkbookFile with parsed sheets and named ranges. Failures of
        individual extraction stages are recorded in ``errors``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a readable Excel workbook.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    if path.suffix.lower() not in EXCEL_SUFFIXES:
        raise ValueError(f"Not a valid Excel file: {path}")

    if file_id is None:
        stat = path.stat()
        file_id = workbook_id(path.name, stat.st_size, stat.st_mtime)

    result = WorkbookFile(id=file_id, name=name or path.name)

    try:
        workbook = openpyxl.load_workbook(path, data_only=False)
    except Exception as e:
        raise ValueError(f"Could not open Excel file: {e}") from e

    try:
        _run_extractors(workbook, path, result)
    finally:
        workbook.close()

    log.debug(
        "Parsed %s: %d sheets, %d references, %d named ranges",
        result.name, len(result.sheets), result.reference_count, len(result.named_ranges),
    )
    return result


def _run_extractors(workbook: openpyxl.Workbook, file_path: Path, result: WorkbookFile) -> None:
    """Run every extraction stage, recording failures instead of raising."""
    errors: list[ExtractionError] = result.errors
    warnings: list[ExtractionWarning] = result.warnings

    link_map: dict[str, str] = {}
    try:
        link_map = ExternalLinkExtractor(workbook, file_path).extract()
    except Exception as e:
        log.warning("External link resolution failed for %s: %s", file_path.name, e)
        errors.append(ExtractionError("external_links", str(e)))

    try:
        result.named_ranges = NamedRangeExtractor(workbook, file_path).extract()
    except Exception as e:
        log.warning("Named range extraction failed for %s: %s", file_path.name, e)
        errors.append(ExtractionError("named_ranges", str(e)))

    lookup = named_range_lookup(result.named_ranges)
    skipped = len(result.named_ranges) - len(lookup)
    if skipped:
        warnings.append(ExtractionWarning(
            "named_ranges", f"{skipped} named range(s) without a target sheet ignored",
        ))

    formulas = FormulaCellExtractor(workbook, file_path)
    for sheet_name in workbook.sheetnames:
        sheet = ParsedSheet(workbook_name=result.name, sheet_name=sheet_name)
        try:
            cells = formulas.cells_for_sheet(workbook[sheet_name])
            extraction = extract_references(cells, sheet_name, result.name, link_map, lookup)
            sheet.references = extraction.references
            sheet.workload = extraction.workload
        except Exception as e:
            log.warning("Formula extraction failed for %s!%s: %s", file_path.name, sheet_name, e)
            errors.append(ExtractionError("formulas", f"{sheet_name}: {e}"))
        result.sheets.append(sheet)


def analyze_workbooks(
    workbooks: Sequence[WorkbookFile],
    options: GraphOptions | None = None,
) -> GraphAnalysis:
    """Build, filter, cluster and focus the graph of parsed workbooks."""
    if options is None:
        options = GraphOptions()

    graph = build_graph(
        workbooks,
        layout_mode=options.layout_mode,
        hidden_files=options.hidden_files,
        show_named_ranges=options.show_named_ranges,
    )

    result = GraphAnalysis(
        workbooks=list(workbooks),
        graph=graph,
        edges=filter_edges(graph.edges, options.edge_kinds),
    )

    if options.layout_mode == LayoutMode.GROUPED:
        result.clusters = compute_cluster_nodes(graph.nodes)

    if options.focus_node:
        if graph.node(options.focus_node) is None:
            log.warning("Focus node not in graph: %s", options.focus_node)
        result.focus_node = options.focus_node
        result.focus = neighbors_within_hops(
            options.focus_node, options.focus_hops, options.focus_direction, graph.edges,
        )

    return result


def analyze(
    file_paths: Sequence[str | Path],
    options: GraphOptions | None = None,
    names: Mapping[str, str] | None = None,
) -> GraphAnalysis:
    """Parse workbooks from disk and analyze their dependency graph.

    Args:
        file_paths: Paths to the Excel files.
        options: Optional graph configuration.
        names: Optional path string to display name overrides.

    Returns:
        GraphAnalysis with graph, visible edges, clusters and focus.

    Raises:
        FileNotFoundError: If a file does not exist.
        ValueError: If a file is not a valid Excel file.

    Example:
        >>> result = analyze(["a.xlsx", "b.xlsx"])
        >>> for edge in result.edges:
        ...     print(edge.id, edge.edge_kind.value, edge.ref_count)
    """
    names = names or {}
    workbooks = [parse_workbook(p, name=names.get(str(p))) for p in file_paths]
    return analyze_workbooks(workbooks, options)


def analyze_and_report(
    file_paths: Sequence[str | Path],
    output_dir: str | Path,
    options: GraphOptions | None = None,
) -> GraphAnalysis:
    """Analyze workbooks and write ``graph.json`` into ``output_dir``.

    Example:
        >>> result = analyze_and_report(["model.xlsx"], "./graph")
        >>> # Creates: graph/graph.json
    """
    out_path = Path(output_dir)
    out_path.mkdir(parents=True, exist_ok=True)

    for p in file_paths:
        print(f"Analyzing: {Path(p).name}", flush=True)
    result = analyze(file_paths, options)

    print("Generating JSON graph...", flush=True)
    from .reports import JSONReportBuilder
    json_path = JSONReportBuilder(result, out_path).build()
    print(f"  Created: {json_path}", flush=True)

    return result
