"""Formula reference extractor.

A lexical recognizer over formula text: it scans for reference-shaped
substrings and never parses expression structure or evaluates anything.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from openpyxl.worksheet.formula import ArrayFormula, DataTableFormula
from openpyxl.worksheet.worksheet import Worksheet

from ..models import ExtractionResult, NamedRange, SheetReference, SheetWorkload
from .base import BaseExtractor

log = logging.getLogger(__name__)

EXCEL_EXT_RE = re.compile(r"\.(xlsx|xls|xlsm|xlsb)$", re.IGNORECASE)

# Cell part: A1, $A$1, A1:B2, $A$1:$B$2, A:A, 1:10
CELL_RE = r"(?:\$?[A-Z]+\$?\d+(?::\$?[A-Z]+\$?\d+)?|\$?[A-Z]+:\$?[A-Z]+|\$?\d+:\$?\d+)"

# Unquoted sheet: letter, digit, underscore or Latin letter, then word chars, dots, spaces
UNQUOTED_SHEET = r"[A-Za-z0-9_À-ɏ][\w. ]*"

REFERENCE_RE = re.compile(
    r"(?:'(?:(?:[^'\[\]]|'')*\[(?P<wb_quoted>[^\]]+)\])?(?P<sheet_quoted>(?:[^']|'')+)'"
    rf"|(?:\[(?P<wb_unquoted>[^\]]+)\])?(?P<sheet_unquoted>{UNQUOTED_SHEET}))"
    rf"!(?P<cells>{CELL_RE})"
)

# Double-quoted text constant; embedded quotes are doubled
STRING_LITERAL_RE = re.compile(r'"(?:[^"]|"")*"')

# Names per combined alternation pattern
MAX_NAMED_RANGE_PATTERN = 500


def strip_excel_ext(name: str) -> str:
    """Remove a trailing Excel extension (.xlsx, .xls, .xlsm, .xlsb)."""
    return EXCEL_EXT_RE.sub("", name)


def compile_named_range_patterns(names: list[str]) -> list[re.Pattern]:
    """Compile case-insensitive alternations matching named-range usages.

    Longer names come first so that a name is never shadowed by one of its
    prefixes. The ``(?!\\()`` lookahead skips function calls sharing a name.
    """
    unique = sorted(set(names), key=lambda n: (-len(n), n.lower()))
    patterns = []
    for start in range(0, len(unique), MAX_NAMED_RANGE_PATTERN):
        chunk = unique[start:start + MAX_NAMED_RANGE_PATTERN]
        alternation = "|".join(re.escape(n) for n in chunk)
        patterns.append(re.compile(rf"\b({alternation})\b(?!\()", re.IGNORECASE))
    return patterns


def formula_of(cell: Any) -> str | None:
    """Return the formula string exposed by a cell object, if any.

    Mappings expose it under ``"f"`` (or ``"formula"``); other objects
    through a ``formula`` attribute. Plain values are not cell objects.
    """
    if cell is None or isinstance(cell, (str, bytes, int, float, bool)):
        return None
    if isinstance(cell, Mapping):
        formula = cell.get("f") or cell.get("formula")
    else:
        formula = getattr(cell, "formula", None) or getattr(cell, "f", None)
    if isinstance(formula, str) and formula:
        return formula
    return None


def extract_references(
    cells: Mapping[str, Any] | None,
    sheet_name: str,
    workbook_name: str,
    link_map: Mapping[str, str] | None = None,
    named_range_map: Mapping[str, NamedRange] | None = None,
) -> ExtractionResult:
    """Extract outgoing references and workload counters for one sheet.

    Args:
        cells: Mapping of cell address to a cell object exposing a formula.
        sheet_name: Name of the sheet being scanned.
        workbook_name: Display name of the owning workbook.
        link_map: Numeric external-link index to filename.
        named_range_map: Lowercase defined name to NamedRange.

    Returns:
        ExtractionResult with references and workload. Never raises on
        sparse, partial or malformed cell data.
    """
    result = ExtractionResult()
    refs = result.references
    workload: SheetWorkload = result.workload
    if not cells:
        return result

    link_map = link_map or {}
    named_range_map = named_range_map or {}

    self_sheet = sheet_name.lower()
    self_wb = strip_excel_ext(workbook_name.lower())

    name_patterns = compile_named_range_patterns([nr.name for nr in named_range_map.values()])

    for cell_addr, cell in cells.items():
        if not isinstance(cell_addr, str) or cell_addr.startswith("!"):
            continue
        formula = formula_of(cell)
        if not formula:
            continue

        workload.total_formulas += 1

        # One reference per (workbook, sheet) target within this formula
        by_target: dict[tuple, SheetReference] = {}
        spans: list[tuple[int, int]] = []

        for match in REFERENCE_RE.finditer(formula):
            spans.append(match.span())
            target_workbook = _unquote(match.group("wb_quoted")) or match.group("wb_unquoted")
            target_sheet = _unquote(match.group("sheet_quoted")) or match.group("sheet_unquoted")
            if not target_sheet:
                continue

            if target_workbook and target_workbook in link_map:
                target_workbook = link_map[target_workbook]

            if _is_self_target(target_workbook, target_sheet, self_wb, self_sheet):
                workload.within_sheet_refs += 1
                continue

            key = ("sheet", target_workbook or "", target_sheet)
            if key not in by_target:
                by_target[key] = SheetReference(
                    target_workbook=target_workbook,
                    target_sheet=target_sheet,
                    cells=[],
                    formula=formula,
                    source_cell=cell_addr,
                )
            by_target[key].cells.append(match.group("cells"))

        # Names inside sheet references or text constants are not usages
        spans.extend(m.span() for m in STRING_LITERAL_RE.finditer(formula))
        names_text = _blank(formula, spans) if name_patterns else formula

        for pattern in name_patterns:
            for match in pattern.finditer(names_text):
                nr = named_range_map.get(match.group(0).lower())
                if nr is None:
                    continue
                if nr.target_sheet.lower() == self_sheet:
                    workload.within_sheet_refs += 1
                    continue
                key = ("name", nr.name, nr.target_sheet)
                if key not in by_target:
                    by_target[key] = SheetReference(
                        target_workbook=nr.target_workbook,
                        target_sheet=nr.target_sheet,
                        cells=[nr.cells],
                        formula=formula,
                        source_cell=cell_addr,
                        named_range_name=nr.name,
                    )

        for ref in by_target.values():
            if ref.target_workbook:
                workload.cross_file_refs += 1
            else:
                workload.cross_sheet_refs += 1
            refs.append(ref)

    return result


def _unquote(token: str | None) -> str | None:
    if token is None:
        return None
    return token.replace("''", "'")


def _blank(text: str, spans: list[tuple[int, int]]) -> str:
    chars = list(text)
    for start, end in spans:
        chars[start:end] = " " * (end - start)
    return "".join(chars)


def _is_self_target(target_workbook: str | None, target_sheet: str, self_wb: str, self_sheet: str) -> bool:
    if target_sheet.lower() != self_sheet:
        return False
    if not target_workbook:
        return True
    return strip_excel_ext(target_workbook.lower()) == self_wb


class FormulaCellExtractor(BaseExtractor):
    """Collects formula cells per sheet as extraction input."""

    name = "formulas"

    def extract(self) -> dict[str, dict[str, dict[str, str]]]:
        """Extract formula cells for every sheet.

        Returns:
            Mapping of sheet name to {cell address: {"f": formula}}
        """
        return {name: self.cells_for_sheet(self.workbook[name]) for name in self.workbook.sheetnames}

    def cells_for_sheet(self, sheet) -> dict[str, dict[str, str]]:
        """Formula cells of one sheet; chartsheets yield nothing."""
        cells: dict[str, dict[str, str]] = {}
        if not isinstance(sheet, Worksheet):
            return cells

        for row in sheet.iter_rows():
            for cell in row:
                formula = formula_text(cell.value)
                if formula:
                    cells[cell.coordinate] = {"f": formula}
        return cells


def formula_text(value: Any) -> str | None:
    """Formula text of an openpyxl cell value without its leading ``=``.

    Data table cells carry no formula text of their own and are rendered
    as ``TABLE(row_input,col_input)``.
    """
    if isinstance(value, str) and value.startswith("=") and len(value.strip()) > 1:
        return value[1:]
    if isinstance(value, ArrayFormula) and value.text:
        return value.text.lstrip("=")
    if isinstance(value, DataTableFormula):
        return f"TABLE({value.r1 or ''},{value.r2 or ''})"
    return None
