"""Run reports and their output formats."""

from lingopipe.reporting.formatters import save_report, to_csv, to_json, to_markdown
from lingopipe.reporting.report import RunReport

__all__ = ["RunReport", "save_report", "to_csv", "to_json", "to_markdown"]
