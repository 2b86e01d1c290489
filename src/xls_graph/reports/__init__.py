"""Report generation for graph analysis."""

from .json_builder import JSONReportBuilder

__all__ = ["JSONReportBuilder"]
