"""Report and diagram export modules."""

from threatforge.parsing.report_exporter import (
    EXPORT_FORMATS,
    ReportExporter,
    export_report,
    format_console_report,
)
from threatforge.parsing.visualization import DiagramGenerator

__all__ = [
    "EXPORT_FORMATS",
    "DiagramGenerator",
    "ReportExporter",
    "export_report",
    "format_console_report",
]
