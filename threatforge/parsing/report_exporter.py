"""Report generation and export in multiple formats.

This module provides:
- JSON report export
- Markdown report export (the shareable threat-model document)
- Console report formatting
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from threatforge.models import AnalysisResult
from threatforge.parsing.visualization import DiagramGenerator

logger = structlog.get_logger()

EXPORT_FORMATS: List[str] = ["json", "markdown", "console", "dot", "mermaid"]


class ReportExporter:
    """Export threat-model reports in various formats."""

    def __init__(self, result: AnalysisResult) -> None:
        self.result = result

    @property
    def title(self) -> str:
        name = self.result.project_name or "Untitled Project"
        return f"Threat Model for: {name}"

    def to_json(self, indent: int = 2) -> str:
        """
        Export report as JSON.

        Args:
            indent: JSON indentation level

        Returns:
            JSON string
        """
        return json.dumps(self._build_report_dict(), indent=indent)

    def to_markdown(self) -> str:
        """
        Export the full threat model as a Markdown document.

        Returns:
            Markdown string
        """
        summary = self.result.summary()
        lines = [
            f"# {self.title}",
            "",
            f"- Analysis ID: `{self.result.analysis_id}`",
            f"- Generated: {self.result.timestamp.isoformat()}",
            "",
            "## Summary",
            "",
            "| Metric | Value |",
            "|---|---|",
            f"| Identified Threats | {summary['total_threats']} |",
            f"| High-Risk Threats | {summary['high_risk_threats']} |",
            f"| Identified Assets | {summary['assets']} |",
            f"| Data Flows | {summary['data_flows']} |",
            "",
            "## Key Assets",
            "",
        ]
        lines.extend(f"- {asset}" for asset in self.result.assets)

        lines.extend(["", "## Data Flows", ""])
        lines.extend(f"- {flow}" for flow in self.result.data_flows)
        if not self.result.data_flows:
            lines.append("_No data flows derived._")

        lines.extend([
            "",
            "## Prioritized Threats (STRIDE)",
            "",
            "| Severity | Category | Threat | Component |",
            "|---|---|---|---|",
        ])
        for threat in self.result.prioritized_threats():
            lines.append(
                f"| {threat.severity.value} | {threat.category.value} "
                f"| {_md_cell(threat.threat)} | {_md_cell(threat.component)} |"
            )

        lines.extend(["", "## Mitigations", ""])
        for threat in self.result.prioritized_threats():
            lines.extend([
                f"### [{threat.severity.value}] {threat.category.value}: {threat.component}",
                "",
                threat.threat,
                "",
                f"**Mitigation:** {threat.mitigation}",
                "",
                "```",
                threat.code_snippet.rstrip(),
                "```",
                "",
            ])

        return "\n".join(lines)

    def to_console(self) -> str:
        """
        Format report for console output.

        Returns:
            Formatted string for console
        """
        summary = self.result.summary()
        lines = []
        lines.append("=" * 60)
        lines.append(self.title)
        lines.append(f"Analysis ID: {self.result.analysis_id}")
        lines.append(f"Timestamp: {self.result.timestamp.isoformat()}")
        lines.append("=" * 60)
        lines.append("")

        lines.append("SUMMARY")
        lines.append("-" * 40)
        lines.append(f"Identified Threats: {summary['total_threats']}")
        lines.append(f"High-Risk Threats: {summary['high_risk_threats']}")
        lines.append(f"Identified Assets: {summary['assets']}")
        lines.append(f"Data Flows: {summary['data_flows']}")
        lines.append("")

        by_severity = summary["by_severity"]
        if any(by_severity.values()):
            lines.append("By Severity:")
            for sev, count in by_severity.items():
                if count > 0:
                    lines.append(f"  {sev.upper()}: {count}")
            lines.append("")

        lines.append("ASSETS")
        lines.append("-" * 40)
        for asset in self.result.assets:
            lines.append(f"  - {asset}")
        lines.append("")

        if self.result.data_flows:
            lines.append("DATA FLOWS")
            lines.append("-" * 40)
            for flow in self.result.data_flows:
                lines.append(f"  {flow}")
            lines.append("")

        threats = self.result.prioritized_threats()
        if threats:
            lines.append("THREATS")
            lines.append("-" * 40)
            for threat in threats:
                lines.append(
                    f"  [{threat.severity.value.upper()}] {threat.category.value} "
                    f"({threat.component})"
                )
                lines.append(f"    {threat.threat}")
                lines.append(f"    Mitigation: {threat.mitigation}")
            lines.append("")

        return "\n".join(lines)

    def _build_report_dict(self) -> Dict[str, Any]:
        """Build complete report dict."""
        return {
            "analysis_id": self.result.analysis_id,
            "timestamp": self.result.timestamp.isoformat(),
            "project_name": self.result.project_name,
            "summary": self.result.summary(),
            "assets": list(self.result.assets),
            "data_flows": list(self.result.data_flows),
            "threats": [
                t.model_dump(mode="json", by_alias=True)
                for t in self.result.prioritized_threats()
            ],
            "diagram": self.result.graph.model_dump(mode="json", by_alias=True),
        }


def _md_cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def export_report(
    result: AnalysisResult,
    format: str = "json",
    output_path: Optional[str] = None,
) -> str:
    """
    Export analysis report in specified format.

    Args:
        result: AnalysisResult to export
        format: Output format (json, markdown, console, dot, mermaid)
        output_path: Optional path to save report

    Returns:
        Report content
    """
    exporter = ReportExporter(result)

    if format == "json":
        content = exporter.to_json()
    elif format == "markdown":
        content = exporter.to_markdown()
    elif format == "console":
        content = exporter.to_console()
    elif format == "dot":
        content = DiagramGenerator(result.graph).to_dot()
    elif format == "mermaid":
        content = DiagramGenerator(result.graph).to_mermaid()
    else:
        raise ValueError(f"Unknown format: {format}")

    if output_path:
        Path(output_path).write_text(content)
        logger.info("report_written", format=format, output_path=output_path)

    return content


def format_console_report(result: AnalysisResult) -> str:
    """
    Format analysis result for console output.

    Args:
        result: AnalysisResult to format

    Returns:
        Formatted string
    """
    return ReportExporter(result).to_console()


