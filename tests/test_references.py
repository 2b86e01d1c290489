"""Tests for formula reference extraction."""

from __future__ import annotations

from types import SimpleNamespace

from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.formula import ArrayFormula, DataTableFormula

from xls_graph.extractors.references import (
    MAX_NAMED_RANGE_PATTERN,
    FormulaCellExtractor,
    compile_named_range_patterns,
    extract_references,
    formula_of,
    formula_text,
    strip_excel_ext,
)
from xls_graph.models import NamedRange


def f(formula: str) -> dict:
    return {"f": formula}


class TestDirectReferences:
    """Tests for the sheet!cell pass."""

    def test_cross_sheet_reference(self):
        result = extract_references({"A1": f("Sheet2!A1+Sheet2!B1")}, "Sheet1", "Book.xlsx")

        assert len(result.references) == 1
        ref = result.references[0]
        assert ref.target_workbook is None
        assert ref.target_sheet == "Sheet2"
        assert ref.cells == ["A1", "B1"]
        assert ref.source_cell == "A1"
        assert ref.formula == "Sheet2!A1+Sheet2!B1"
        assert result.workload.cross_sheet_refs == 1
        assert result.workload.total_formulas == 1

    def test_one_reference_per_target(self):
        result = extract_references({"C4": f("Sheet2!A1+Sheet3!B1*Sheet2!C1")}, "Sheet1", "Book.xlsx")

        assert [r.target_sheet for r in result.references] == ["Sheet2", "Sheet3"]
        assert result.references[0].cells == ["A1", "C1"]
        assert result.workload.cross_sheet_refs == 2
        assert result.workload.total_formulas == 1

    def test_quoted_sheet_name(self):
        result = extract_references({"A1": f("SUM('Q1 Data'!A1:B2)")}, "Sheet1", "Book.xlsx")

        assert result.references[0].target_sheet == "Q1 Data"
        assert result.references[0].cells == ["A1:B2"]

    def test_quoted_sheet_with_workbook(self):
        result = extract_references({"A1": f("'[Other.xlsx]My Sheet'!$A$1")}, "Sheet1", "Book.xlsx")

        ref = result.references[0]
        assert ref.target_workbook == "Other.xlsx"
        assert ref.target_sheet == "My Sheet"
        assert ref.cells == ["$A$1"]
        assert result.workload.cross_file_refs == 1
        assert result.workload.cross_sheet_refs == 0

    def test_quoted_sheet_with_doubled_quote(self):
        result = extract_references({"A1": f("'Bob''s Data'!B2*2")}, "Summary", "Book.xlsx")

        assert [r.target_sheet for r in result.references] == ["Bob's Data"]
        assert result.references[0].cells == ["B2"]
        assert result.workload.cross_sheet_refs == 1

    def test_quoted_workbook_with_doubled_quote(self):
        result = extract_references({"A1": f("'[Bob''s.xlsx]Rates'!A1")}, "Sheet1", "Book.xlsx")

        assert result.references[0].target_workbook == "Bob's.xlsx"
        assert result.references[0].target_sheet == "Rates"

    def test_adjacent_quoted_sheets(self):
        result = extract_references({"A1": f("'Q1 Data'!A1+'Q2 Data'!A1")}, "Sheet1", "Book.xlsx")

        assert [r.target_sheet for r in result.references] == ["Q1 Data", "Q2 Data"]

    def test_quoted_sheet_with_path_and_workbook(self):
        result = extract_references({"A1": f("'C:\\files\\[Other.xlsx]Rates'!A1")}, "Sheet1", "Book.xlsx")

        assert result.references[0].target_workbook == "Other.xlsx"
        assert result.references[0].target_sheet == "Rates"

    def test_bracketed_workbook(self):
        result = extract_references({"A1": f("[Prices.xlsx]Rates!C3*2")}, "Sheet1", "Book.xlsx")

        assert result.references[0].target_workbook == "Prices.xlsx"
        assert result.references[0].target_sheet == "Rates"
        assert result.workload.cross_file_refs == 1

    def test_full_column_and_row_ranges(self):
        result = extract_references({"A1": f("SUM(Data!A:A)+SUM(Data!$1:$10)")}, "Sheet1", "Book.xlsx")

        assert result.references[0].cells == ["A:A", "$1:$10"]

    def test_unicode_sheet_name(self):
        result = extract_references({"A1": f("Données!B2")}, "Sheet1", "Book.xlsx")

        assert result.references[0].target_sheet == "Données"

    def test_leading_equals_is_tolerated(self):
        result = extract_references({"A1": f("=Sheet2!A1")}, "Sheet1", "Book.xlsx")

        assert result.references[0].target_sheet == "Sheet2"

    def test_formula_without_references(self):
        result = extract_references({"A1": f("SUM(A1:A10)")}, "Sheet1", "Book.xlsx")

        assert result.references == []
        assert result.workload.total_formulas == 1


class TestSelfReferences:
    """Tests for same-sheet suppression."""

    def test_explicit_self_reference(self):
        result = extract_references({"A1": f("Sheet1!B2")}, "Sheet1", "Book.xlsx")

        assert result.references == []
        assert result.workload.within_sheet_refs == 1

    def test_self_reference_with_doubled_quote(self):
        result = extract_references({"A1": f("'Bob''s Data'!B2*2")}, "Bob's Data", "Book.xlsx")

        assert result.references == []
        assert result.workload.within_sheet_refs == 1
        assert result.workload.cross_sheet_refs == 0

    def test_self_reference_is_case_insensitive(self):
        result = extract_references({"A1": f("SHEET1!B2")}, "Sheet1", "Book.xlsx")

        assert result.references == []
        assert result.workload.within_sheet_refs == 1

    def test_self_reference_through_own_workbook(self):
        result = extract_references({"A1": f("[book.xlsm]Sheet1!B2")}, "Sheet1", "Book.xlsx")

        assert result.references == []
        assert result.workload.within_sheet_refs == 1

    def test_same_sheet_name_in_other_workbook(self):
        result = extract_references({"A1": f("[Other.xlsx]Sheet1!B2")}, "Sheet1", "Book.xlsx")

        assert len(result.references) == 1
        assert result.workload.within_sheet_refs == 0

    def test_self_and_other_in_one_formula(self):
        result = extract_references({"A1": f("Sheet1!A2+Sheet2!A2")}, "Sheet1", "Book.xlsx")

        assert [r.target_sheet for r in result.references] == ["Sheet2"]
        assert result.workload.within_sheet_refs == 1
        assert result.workload.cross_sheet_refs == 1

    def test_mutual_references(self):
        first = extract_references({"A1": f("Sheet2!A1")}, "Sheet1", "Book.xlsx")
        second = extract_references({"A1": f("Sheet1!A1")}, "Sheet2", "Book.xlsx")

        assert len(first.references) == 1
        assert len(second.references) == 1


class TestExternalLinkSubstitution:
    """Tests for numeric link placeholders."""

    def test_index_is_substituted(self):
        result = extract_references(
            {"A1": f("[1]Prices!C3")}, "Sheet1", "Book.xlsx", link_map={"1": "Assumptions.xlsx"},
        )

        assert result.references[0].target_workbook == "Assumptions.xlsx"

    def test_unresolved_index_is_kept(self):
        result = extract_references({"A1": f("[2]Prices!C3")}, "Sheet1", "Book.xlsx", link_map={"1": "A.xlsx"})

        assert result.references[0].target_workbook == "2"
        assert result.workload.cross_file_refs == 1

    def test_substituted_self_reference(self):
        result = extract_references(
            {"A1": f("[1]Sheet1!C3")}, "Sheet1", "Book.xlsx", link_map={"1": "Book.xlsx"},
        )

        assert result.references == []
        assert result.workload.within_sheet_refs == 1


class TestNamedRangeReferences:
    """Tests for the named-range pass."""

    def test_named_range_usage(self, sales_range):
        result = extract_references(
            {"B1": f("SUM(Sales)+Sales*2")}, "Report", "Book.xlsx", named_range_map={"sales": sales_range},
        )

        assert len(result.references) == 1
        ref = result.references[0]
        assert ref.named_range_name == "Sales"
        assert ref.target_sheet == "Data"
        assert ref.target_workbook is None
        assert ref.cells == ["$A$1:$A$3"]
        assert result.workload.cross_sheet_refs == 1

    def test_named_range_is_case_insensitive(self, sales_range):
        result = extract_references(
            {"B1": f("sales*2")}, "Report", "Book.xlsx", named_range_map={"sales": sales_range},
        )

        assert result.references[0].named_range_name == "Sales"

    def test_function_call_is_not_a_usage(self):
        total = NamedRange(name="Total", ref="Data!$B$1", target_sheet="Data", cells="$B$1")
        result = extract_references(
            {"B1": f("TOTAL(A1:A3)")}, "Report", "Book.xlsx", named_range_map={"total": total},
        )

        assert result.references == []

    def test_partial_word_is_not_a_usage(self, sales_range):
        result = extract_references(
            {"B1": f("SalesTax*2")}, "Report", "Book.xlsx", named_range_map={"sales": sales_range},
        )

        assert result.references == []

    def test_named_range_on_own_sheet(self, sales_range):
        result = extract_references(
            {"B1": f("Sales+Sales")}, "Data", "Book.xlsx", named_range_map={"sales": sales_range},
        )

        assert result.references == []
        assert result.workload.within_sheet_refs == 2

    def test_name_inside_sheet_reference_is_not_a_usage(self, sales_range):
        result = extract_references(
            {"B1": f("'Sales Plan'!B2+Sales!C1")}, "Report", "Book.xlsx", named_range_map={"sales": sales_range},
        )

        assert [(r.target_sheet, r.named_range_name) for r in result.references] == [
            ("Sales Plan", None),
            ("Sales", None),
        ]

    def test_name_inside_text_constant_is_not_a_usage(self, sales_range):
        result = extract_references(
            {"B1": f("IF(A1=\"Sales\",\"\"\"Sales\"\" total\",Sales)")}, "Report", "Book.xlsx",
            named_range_map={"sales": sales_range},
        )

        assert len(result.references) == 1
        assert result.references[0].named_range_name == "Sales"

    def test_text_constant_only(self, sales_range):
        result = extract_references(
            {"B1": f("\"Sales\"&A1")}, "Report", "Book.xlsx", named_range_map={"sales": sales_range},
        )

        assert result.references == []
        assert result.workload.total_formulas == 1

    def test_longer_name_wins(self):
        rate = NamedRange(name="Rate", ref="Data!$A$1", target_sheet="Data", cells="$A$1")
        table = NamedRange(name="Rate_Table", ref="Lookup!$A$1:$B$9", target_sheet="Lookup", cells="$A$1:$B$9")
        result = extract_references(
            {"B1": f("VLOOKUP(1,Rate_Table,2)")}, "Report", "Book.xlsx",
            named_range_map={"rate": rate, "rate_table": table},
        )

        assert [r.named_range_name for r in result.references] == ["Rate_Table"]

    def test_patterns_are_chunked(self):
        names = [f"Name{i}" for i in range(MAX_NAMED_RANGE_PATTERN * 2 + 1)]

        patterns = compile_named_range_patterns(names)

        assert len(patterns) == 3
        assert any(p.search("=Name7*2") for p in patterns)


class TestMalformedInput:
    """Tests for sparse and partial sheets."""

    def test_empty_cells(self):
        result = extract_references({}, "Sheet1", "Book.xlsx")

        assert result.references == []
        assert result.workload.total_formulas == 0

    def test_none_cells(self):
        result = extract_references(None, "Sheet1", "Book.xlsx")

        assert result.references == []

    def test_skips_non_objects_and_markers(self):
        cells = {
            "A1": "Sheet2!A1",
            "A2": 5,
            "A3": None,
            "A4": {"v": 3},
            "!ref": f("Sheet2!A1"),
        }
        result = extract_references(cells, "Sheet1", "Book.xlsx")

        assert result.references == []
        assert result.workload.total_formulas == 0

    def test_object_with_formula_attribute(self):
        cells = {"A1": SimpleNamespace(formula="Sheet2!A1")}
        result = extract_references(cells, "Sheet1", "Book.xlsx")

        assert result.references[0].target_sheet == "Sheet2"

    def test_formula_of(self):
        assert formula_of({"formula": "A1"}) == "A1"
        assert formula_of({"f": ""}) is None
        assert formula_of("=A1") is None
        assert formula_of(SimpleNamespace(formula=None)) is None


class TestStripExcelExt:
    """Tests for extension stripping."""

    def test_known_extensions(self):
        assert strip_excel_ext("Book.xlsx") == "Book"
        assert strip_excel_ext("Book.XLSM") == "Book"
        assert strip_excel_ext("Book.xlsb") == "Book"
        assert strip_excel_ext("Book.csv") == "Book.csv"


class TestFormulaCellExtractor:
    """Tests for FormulaCellExtractor."""

    def test_collects_formula_cells(self, model_workbook):
        wb = load_workbook(model_workbook)
        cells = FormulaCellExtractor(wb, model_workbook).extract()

        assert set(cells) == {"Summary", "Calc", "Q1 Data"}
        assert cells["Summary"] == {
            "B1": {"f": "Calc!B2*2"},
            "B2": {"f": "SUM(Calc!A1:A10)+Calc!B2"},
        }
        assert "A1" not in cells["Calc"]
        assert cells["Q1 Data"] == {}
        wb.close()

    def test_feeds_reference_extraction(self, model_workbook):
        wb = load_workbook(model_workbook)
        cells = FormulaCellExtractor(wb, model_workbook).cells_for_sheet(wb["Calc"])
        result = extract_references(cells, "Calc", "Model.xlsx")

        assert result.workload.total_formulas == 3
        assert result.workload.within_sheet_refs == 1
        assert result.workload.cross_file_refs == 1
        assert result.workload.cross_sheet_refs == 1
        wb.close()

    def test_data_table_cells(self, temp_dir):
        wb = Workbook()
        ws = wb.active
        ws.title = "Scenarios"
        ws["A1"] = "=Inputs!B1*2"
        ws["B2"] = DataTableFormula(ref="B2:C5", r1="A1", r2="A2")

        cells = FormulaCellExtractor(wb, temp_dir / "Scenarios.xlsx").cells_for_sheet(ws)
        result = extract_references(cells, "Scenarios", "Scenarios.xlsx")

        assert cells["B2"] == {"f": "TABLE(A1,A2)"}
        assert result.workload.total_formulas == 2
        assert [r.target_sheet for r in result.references] == ["Inputs"]


class TestFormulaText:
    """Tests for formula_text."""

    def test_plain_formula(self):
        assert formula_text("=Calc!A1") == "Calc!A1"
        assert formula_text("=") is None
        assert formula_text("Calc!A1") is None
        assert formula_text(42) is None

    def test_array_formula(self):
        assert formula_text(ArrayFormula("A1:A3", "=Calc!B1:B3*2")) == "Calc!B1:B3*2"
        assert formula_text(ArrayFormula("A1:A3")) is None

    def test_data_table_formula(self):
        assert formula_text(DataTableFormula("B2:C5", r1="A1")) == "TABLE(A1,)"
