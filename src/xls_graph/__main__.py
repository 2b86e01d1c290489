"""CLI entry point for xls-graph.

Usage:
    python -m xls_graph model.xlsx inputs.xlsx -o ./output
    xls-graph model.xlsx inputs.xlsx --layout grouped --named-ranges
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .models import EdgeKind, FocusDirection, LayoutMode


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="xls-graph",
        description="Build the sheet dependency graph of Excel workbooks",
    )
    parser.add_argument(
        "inputs",
        nargs="+",
        help="Paths to Excel files (.xlsx, .xlsm, .xltx, .xltm)",
    )
    parser.add_argument(
        "-o", "--output",
        default=".",
        help="Output directory for graph.json (default: current directory)",
    )
    parser.add_argument(
        "--layout",
        choices=[m.value for m in LayoutMode],
        default=LayoutMode.GRAPH.value,
        help="Layout strategy (default: graph)",
    )
    parser.add_argument(
        "--hide",
        nargs="+",
        default=[],
        metavar="NAME",
        help="Workbook names to hide from the source side",
    )
    parser.add_argument(
        "--named-ranges",
        action="store_true",
        help="Route named-range references through named-range nodes",
    )
    parser.add_argument(
        "--only-kinds",
        nargs="+",
        choices=[k.value for k in EdgeKind],
        metavar="KIND",
        help="Keep only these edge kinds (internal, cross-file, external, named-range)",
    )
    parser.add_argument(
        "--focus",
        metavar="NODE_ID",
        help="Compute the focus neighbourhood of this node id",
    )
    parser.add_argument(
        "--hops",
        type=int,
        choices=[1, 2, 3],
        default=1,
        help="Focus hop limit (default: 1)",
    )
    parser.add_argument(
        "--direction",
        choices=[d.value for d in FocusDirection],
        default=FocusDirection.BOTH.value,
        help="Focus direction (default: both)",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log errors")

    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.ERROR if args.quiet else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    for item in args.inputs:
        file_path = Path(item)
        if not file_path.exists():
            print(f"Error: File not found: {file_path}", flush=True)
            return 1

    edge_kinds = {kind: True for kind in EdgeKind}
    if args.only_kinds:
        edge_kinds = {kind: kind.value in args.only_kinds for kind in EdgeKind}

    try:
        from . import GraphOptions, analyze_and_report

        options = GraphOptions(
            layout_mode=args.layout,
            hidden_files=frozenset(args.hide),
            show_named_ranges=args.named_ranges,
            edge_kinds=edge_kinds,
            focus_node=args.focus,
            focus_hops=args.hops,
            focus_direction=args.direction,
        )

        output_dir = Path(args.output)
        result = analyze_and_report(args.inputs, output_dir, options)

        print(f"\nGraph complete:", flush=True)
        print(f"  Workbooks: {len(result.workbooks)}", flush=True)
        print(f"  Sheets: {sum(len(wb.sheets) for wb in result.workbooks)}", flush=True)
        print(f"  Nodes: {len(result.graph.nodes)}", flush=True)
        print(f"  Edges: {len(result.edges)}", flush=True)
        for kind, count in result.edge_counts().items():
            if count:
                print(f"    {kind.value}: {count}", flush=True)
        if result.clusters:
            print(f"  Clusters: {len(result.clusters)}", flush=True)
        if result.focus is not None:
            print(f"  Focus: {len(result.focus)} nodes around {result.focus_node}", flush=True)
        if result.errors:
            print(f"  Extraction errors: {len(result.errors)}", flush=True)

        print(f"\nOutput: {output_dir / 'graph.json'}", flush=True)
        return 0

    except KeyboardInterrupt:
        print("\nCancelled.", flush=True)
        return 130
    except (OSError, ValueError) as e:
        print(f"Error: {e}", flush=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
