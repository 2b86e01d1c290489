"""Pytest fixtures for xls-graph tests."""

from __future__ import annotations

import tempfile
import zipfile
from pathlib import Path

import pytest
from openpyxl import Workbook
from openpyxl.workbook.defined_name import DefinedName

from xls_graph.models import NamedRange, ParsedSheet, SheetReference, WorkbookFile

RELS_TEMPLATE = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
    '<Relationship Id="rId1" '
    'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/externalLinkPath" '
    'Target="{target}" TargetMode="External"/>'
    "</Relationships>"
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def rels_xml():
    """Render a single-target external link relationships document."""
    def _render(target: str) -> str:
        return RELS_TEMPLATE.format(target=target)
    return _render


# =============================================================================
# In-memory records
# =============================================================================


@pytest.fixture
def make_ref():
    """Build a SheetReference with sensible defaults."""
    def _make(
        sheet: str,
        workbook: str | None = None,
        cells: tuple[str, ...] = ("A1",),
        source_cell: str = "A1",
        formula: str | None = None,
        named_range: str | None = None,
    ) -> SheetReference:
        if formula is None:
            prefix = f"[{workbook}]" if workbook else ""
            formula = f"{prefix}{sheet}!{cells[0]}"
        return SheetReference(
            target_workbook=workbook,
            target_sheet=sheet,
            cells=list(cells),
            formula=formula,
            source_cell=source_cell,
            named_range_name=named_range,
        )
    return _make


@pytest.fixture
def make_workbook():
    """Build a WorkbookFile from {sheet name: [references]}."""
    def _make(
        name: str,
        sheets: dict[str, list[SheetReference]],
        named_ranges: list[NamedRange] | None = None,
        file_id: str | None = None,
    ) -> WorkbookFile:
        return WorkbookFile(
            id=file_id or name.lower(),
            name=name,
            sheets=[
                ParsedSheet(workbook_name=name, sheet_name=sheet, references=list(refs))
                for sheet, refs in sheets.items()
            ],
            named_ranges=list(named_ranges or []),
        )
    return _make


@pytest.fixture
def sales_range() -> NamedRange:
    """Named range Sales pointing at Data!$A$1:$A$3."""
    return NamedRange(name="Sales", ref="Data!$A$1:$A$3", target_sheet="Data", cells="$A$1:$A$3")


# =============================================================================
# Workbooks on disk
# =============================================================================


@pytest.fixture
def model_workbook(temp_dir) -> Path:
    """Workbook with cross-sheet, same-sheet and cross-file formulas."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Summary"
    ws["A1"] = "Total"
    ws["B1"] = "=Calc!B2*2"
    ws["B2"] = "=SUM(Calc!A1:A10)+Calc!B2"

    calc = wb.create_sheet("Calc")
    calc["A1"] = 10
    calc["A2"] = "=A1*2"
    calc["B2"] = "=[Inputs.xlsx]Rates!$B$1*Calc!A1"
    calc["B3"] = "='Q1 Data'!C3"

    data = wb.create_sheet("Q1 Data")
    data["C3"] = 42

    path = temp_dir / "Model.xlsx"
    wb.save(path)
    wb.close()
    return path


@pytest.fixture
def inputs_workbook(temp_dir) -> Path:
    """Workbook referenced by the model workbook."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Rates"
    ws["A1"] = "Rate"
    ws["B1"] = 0.05

    path = temp_dir / "Inputs.xlsx"
    wb.save(path)
    wb.close()
    return path


@pytest.fixture
def named_range_workbook(temp_dir) -> Path:
    """Workbook with global, local and constant named ranges."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Data"
    ws["A1"] = 100
    ws["A2"] = 200
    ws["A3"] = 300
    ws["B1"] = 0.2

    report = wb.create_sheet("Report")
    report["A1"] = "=SUM(Sales)"
    report["A2"] = "=Sales*TaxRate"

    # Global named range
    wb.defined_names.add(DefinedName("Sales", attr_text="Data!$A$1:$A$3"))

    # Named constant
    wb.defined_names.add(DefinedName("TaxRate", attr_text="0.25"))

    # Sheet-scoped name
    ws.defined_names.add(DefinedName("Discount", attr_text="Data!$B$1"))

    path = temp_dir / "Named.xlsx"
    wb.save(path)
    wb.close()
    return path


@pytest.fixture
def external_link_workbook(temp_dir, rels_xml) -> Path:
    """Workbook using a numeric external link placeholder.

    The relationship part for link 1 is added to the container after
    openpyxl has written the file.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Sheet1"
    ws["A1"] = "=[1]Prices!C3*2"

    path = temp_dir / "Linked.xlsx"
    wb.save(path)
    wb.close()

    with zipfile.ZipFile(path, "a") as zf:
        zf.writestr(
            "xl/externalLinks/_rels/externalLink1.xml.rels",
            rels_xml("file:///C:/models/Assumptions.xlsx"),
        )
    return path
