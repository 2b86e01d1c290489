"""JSON graph document for rendering clients."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ..models import (
    ClusterBox,
    EdgeReference,
    GraphAnalysis,
    GraphEdge,
    GraphNode,
    SheetWorkload,
    WorkbookFile,
)


class JSONReportBuilder:
    """Writes the positioned graph as ``graph.json``."""

    file_name = "graph.json"

    def __init__(self, analysis: GraphAnalysis, output_dir: Path):
        """Initialize the builder.

        Args:
            analysis: The graph analysis results
            output_dir: Directory to write the JSON file
        """
        self.analysis = analysis
        self.output_dir = Path(output_dir)

    def build(self) -> Path:
        """Generate the JSON document.

        Returns:
            Path to the written file
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        out_file = self.output_dir / self.file_name
        out_file.write_text(json.dumps(self.document(), indent=2, ensure_ascii=False), encoding="utf-8")
        return out_file

    def document(self) -> dict[str, Any]:
        """The full document as plain data."""
        analysis = self.analysis
        return {
            "layoutMode": analysis.graph.layout_mode.value,
            "workbooks": [self._workbook(wb) for wb in analysis.workbooks],
            "nodes": [self._node(n) for n in analysis.graph.nodes],
            "edges": [self._edge(e) for e in analysis.edges],
            "clusters": [self._cluster(c) for c in analysis.clusters],
            "focus": self._focus(),
        }

    def _workbook(self, wb: WorkbookFile) -> dict[str, Any]:
        return {
            "id": wb.id,
            "name": wb.name,
            "sheets": wb.sheet_names,
            "namedRanges": [
                {
                    "name": nr.name,
                    "ref": nr.ref,
                    "targetSheet": nr.target_sheet,
                    "cells": nr.cells,
                    "scope": nr.scope.value,
                    "scopeSheet": nr.scope_sheet,
                }
                for nr in wb.named_ranges
            ],
            "referenceCount": wb.reference_count,
            "errors": [{"extractor": e.extractor, "message": e.message} for e in wb.errors],
            "warnings": [{"extractor": w.extractor, "message": w.message} for w in wb.warnings],
        }

    def _node(self, node: GraphNode) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": node.id,
            "label": node.label,
            "workbookName": node.workbook_name,
            "sheetName": node.sheet_name,
            "isExternal": node.is_external,
            "isFileNode": node.is_file_node,
            "isNamedRange": node.is_named_range,
            "outgoingCount": node.outgoing_count,
            "incomingCount": node.incoming_count,
            "workload": self._workload(node.workload),
            "position": {"x": node.position.x, "y": node.position.y},
        }
        if node.is_named_range:
            data["namedRangeName"] = node.named_range_name
            data["namedRangeRef"] = node.named_range_ref
        if node.sheet_count is not None:
            data["sheetCount"] = node.sheet_count
        return data

    def _workload(self, workload: SheetWorkload | None) -> dict[str, int] | None:
        if workload is None:
            return None
        return {
            "totalFormulas": workload.total_formulas,
            "withinSheetRefs": workload.within_sheet_refs,
            "crossSheetRefs": workload.cross_sheet_refs,
            "crossFileRefs": workload.cross_file_refs,
        }

    def _edge(self, edge: GraphEdge) -> dict[str, Any]:
        return {
            "id": edge.id,
            "source": edge.source,
            "target": edge.target,
            "edgeKind": edge.edge_kind.value,
            "refCount": edge.ref_count,
            "references": [self._reference(r) for r in edge.references],
        }

    def _reference(self, ref: EdgeReference) -> dict[str, Any]:
        return {"sourceCell": ref.source_cell, "targetCells": ref.target_cells, "formula": ref.formula}

    def _cluster(self, cluster: ClusterBox) -> dict[str, Any]:
        return {
            "id": cluster.id,
            "label": cluster.label,
            "workbookName": cluster.workbook_name,
            "position": {"x": cluster.position.x, "y": cluster.position.y},
            "width": cluster.width,
            "height": cluster.height,
            "isExternal": cluster.is_external,
        }

    def _focus(self) -> dict[str, Any] | None:
        if self.analysis.focus is None:
            return None
        return {"nodeId": self.analysis.focus_node, "nodes": sorted(self.analysis.focus)}
