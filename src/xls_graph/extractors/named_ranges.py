"""Named range catalog."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from ..models import NameDefinition, NamedRange, NamedRangeScope
from .base import BaseExtractor

log = logging.getLogger(__name__)

# Excel built-in names (print areas, print titles, filter databases)
BUILTIN_PREFIXES = ("_xlnm.", "_xlnm\\")


def split_reference(ref: str) -> tuple[str, str]:
    """Split a definition into (sheet, cells) on the last unquoted ``!``.

    Surrounding quotes are stripped from the sheet portion and doubled
    quotes inside it are unescaped. A definition without ``!`` yields an
    empty sheet.

    Example:
        >>> split_reference("'Q1 Data'!$A$1:$B$4")
        ('Q1 Data', '$A$1:$B$4')
    """
    text = ref[1:] if ref.startswith("=") else ref
    bang = -1
    in_quotes = False
    for i, ch in enumerate(text):
        if ch == "'":
            in_quotes = not in_quotes
        elif ch == "!" and not in_quotes:
            bang = i

    if bang == -1:
        return "", text

    sheet = text[:bang]
    cells = text[bang + 1:]
    if len(sheet) >= 2 and sheet.startswith("'") and sheet.endswith("'"):
        sheet = sheet[1:-1].replace("''", "'")
    return sheet, cells


def extract_named_ranges(
    definitions: Iterable[NameDefinition],
    sheet_names: Sequence[str] = (),
) -> list[NamedRange]:
    """Normalize a workbook's name-definition table.

    Args:
        definitions: Rows of the name-definition table.
        sheet_names: Sheet names in workbook order, used to resolve the
            owning sheet of locally scoped names.

    Returns:
        List of NamedRange records in definition order
    """
    ranges: list[NamedRange] = []

    for entry in definitions:
        if not entry.name or not entry.ref:
            continue
        if entry.name.startswith(BUILTIN_PREFIXES):
            continue

        target_sheet, cells = split_reference(entry.ref)

        scope = NamedRangeScope.WORKBOOK
        scope_sheet = None
        if entry.sheet_index is not None:
            scope = NamedRangeScope.SHEET
            if 0 <= entry.sheet_index < len(sheet_names):
                scope_sheet = sheet_names[entry.sheet_index]

        ranges.append(NamedRange(
            name=entry.name,
            ref=entry.ref,
            target_sheet=target_sheet,
            cells=cells,
            scope=scope,
            scope_sheet=scope_sheet,
        ))

    return ranges


def named_range_lookup(ranges: Iterable[NamedRange]) -> dict[str, NamedRange]:
    """Build the lowercase name lookup used during reference extraction.

    Names without a target sheet (constants, LAMBDA definitions) do not
    point at sheet data and are left out.
    """
    lookup: dict[str, NamedRange] = {}
    for nr in ranges:
        if nr.target_sheet:
            lookup[nr.name.lower()] = nr
    return lookup


class NamedRangeExtractor(BaseExtractor):
    """Extracts named ranges from workbook and sheet-level definitions."""

    name = "named_ranges"

    def extract(self) -> list[NamedRange]:
        """Extract all named ranges.

        Returns:
            List of NamedRange objects
        """
        return extract_named_ranges(self.definitions(), self.workbook.sheetnames)

    def definitions(self) -> list[NameDefinition]:
        """Collect the raw name-definition table."""
        rows: list[NameDefinition] = []

        for defined_name in _iter_defined_names(self.workbook.defined_names):
            row = self._to_definition(defined_name, defined_name.localSheetId)
            if row:
                rows.append(row)

        # openpyxl 3.1+ keeps sheet-scoped names on the worksheet
        for sheet in self.workbook.worksheets:
            index = self.workbook.sheetnames.index(sheet.title)
            local_names = getattr(sheet, "defined_names", None)
            if not local_names:
                continue
            for defined_name in _iter_defined_names(local_names):
                local_id = getattr(defined_name, "localSheetId", None)
                row = self._to_definition(defined_name, index if local_id is None else local_id)
                if row:
                    rows.append(row)

        return rows

    def _to_definition(self, defined_name, sheet_index: int | None) -> NameDefinition | None:
        name = getattr(defined_name, "name", None)
        value = getattr(defined_name, "attr_text", None) or getattr(defined_name, "value", None)
        if not name or not value:
            log.debug("Skipping defined name without value: %r", name)
            return None
        return NameDefinition(name=name, ref=str(value), sheet_index=sheet_index)


def _iter_defined_names(container) -> list:
    # DefinedNameDict (openpyxl 3.1+) or DefinedNameList (older releases)
    if hasattr(container, "values"):
        return list(container.values())
    return list(getattr(container, "definedName", container))
