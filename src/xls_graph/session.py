"""In-memory workbook session.

Holds the uploaded workbooks together with the display flags and rebuilds
the graph from scratch whenever any of them changes.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .analyze import MAX_FOCUS_HOPS, parse_workbook
from .graph import build_graph, compute_cluster_nodes, neighbors_within_hops
from .models import ClusterBox, FocusDirection, GraphResult, LayoutMode, WorkbookFile

log = logging.getLogger(__name__)


class GraphSession:
    """Uploaded workbooks plus the flags that shape their graph.

    Example:
        >>> session = GraphSession()
        >>> session.load("model.xlsx")
        >>> session.toggle_hidden("model.xlsx")
        >>> session.graph().is_empty
        True
    """

    def __init__(self, layout_mode: LayoutMode | str = LayoutMode.GRAPH, show_named_ranges: bool = False):
        self._workbooks: dict[str, WorkbookFile] = {}
        self._hidden: set[str] = set()
        self._layout_mode = LayoutMode(layout_mode)
        self._show_named_ranges = show_named_ranges
        self._graph: GraphResult | None = None

    @property
    def workbooks(self) -> list[WorkbookFile]:
        """Uploaded workbooks in upload order."""
        return list(self._workbooks.values())

    @property
    def hidden_files(self) -> frozenset[str]:
        return frozenset(self._hidden)

    @property
    def layout_mode(self) -> LayoutMode:
        return self._layout_mode

    @property
    def show_named_ranges(self) -> bool:
        return self._show_named_ranges

    def add_workbook(self, workbook: WorkbookFile) -> None:
        """Add a workbook, replacing one with the same id."""
        self._workbooks[workbook.id] = workbook
        self._invalidate()

    def load(self, file_path: str | Path) -> WorkbookFile:
        """Parse a workbook from disk and add it."""
        workbook = parse_workbook(file_path)
        self.add_workbook(workbook)
        return workbook

    def remove_workbook(self, file_id: str) -> WorkbookFile | None:
        """Remove a workbook by id; its name also leaves the hidden set."""
        workbook = self._workbooks.pop(file_id, None)
        if workbook is None:
            return None
        if not any(wb.name == workbook.name for wb in self._workbooks.values()):
            self._hidden.discard(workbook.name)
        self._invalidate()
        return workbook

    def toggle_hidden(self, workbook_name: str) -> bool:
        """Flip a workbook's hidden flag.

        Returns:
            True if the workbook is hidden afterwards
        """
        if workbook_name in self._hidden:
            self._hidden.remove(workbook_name)
        else:
            self._hidden.add(workbook_name)
        self._invalidate()
        return workbook_name in self._hidden

    def set_layout_mode(self, layout_mode: LayoutMode | str) -> None:
        layout_mode = LayoutMode(layout_mode)
        if layout_mode != self._layout_mode:
            self._layout_mode = layout_mode
            self._invalidate()

    def set_show_named_ranges(self, show: bool) -> None:
        if show != self._show_named_ranges:
            self._show_named_ranges = show
            self._invalidate()

    def graph(self) -> GraphResult:
        """Current graph, rebuilt if anything changed since the last call."""
        if self._graph is None:
            self._graph = build_graph(
                self.workbooks,
                layout_mode=self._layout_mode,
                hidden_files=self._hidden,
                show_named_ranges=self._show_named_ranges,
            )
        return self._graph

    def clusters(self) -> list[ClusterBox]:
        """Cluster boxes of the current graph; empty outside grouped mode."""
        if self._layout_mode != LayoutMode.GROUPED:
            return []
        return compute_cluster_nodes(self.graph().nodes)

    def focus(self, node_id: str, hops: int = 1, direction: FocusDirection | str = FocusDirection.BOTH) -> set[str]:
        """Focus neighbourhood of a node in the current graph."""
        if not 1 <= hops <= MAX_FOCUS_HOPS:
            raise ValueError(f"hops must be between 1 and {MAX_FOCUS_HOPS}, got {hops}")
        return neighbors_within_hops(node_id, hops, direction, self.graph().edges)

    def _invalidate(self) -> None:
        log.debug("Graph invalidated")
        self._graph = None
