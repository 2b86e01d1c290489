"""Workbook content extractors."""

from .base import BaseExtractor
from .external_links import ExternalLinkExtractor, build_external_link_map
from .named_ranges import NamedRangeExtractor, extract_named_ranges, named_range_lookup
from .references import FormulaCellExtractor, extract_references

__all__ = [
    "BaseExtractor",
    "ExternalLinkExtractor",
    "NamedRangeExtractor",
    "FormulaCellExtractor",
    "build_external_link_map",
    "extract_named_ranges",
    "named_range_lookup",
    "extract_references",
]
