"""Diagram rendering for data-flow graphs.

This module provides:
- DOT format generation (Graphviz)
- Mermaid flowchart generation
"""

from __future__ import annotations

from threatforge.models import DataFlowGraph


class DiagramGenerator:
    """Render a DataFlowGraph as text diagrams."""

    def __init__(self, graph: DataFlowGraph) -> None:
        self.graph = graph

    def to_dot(self) -> str:
        """
        Generate DOT format for the data-flow graph.

        Returns:
            DOT format string
        """
        dot = ["digraph data_flow {"]
        dot.append("  rankdir=LR;")
        dot.append("  node [shape=box, style=rounded];")

        for node in self.graph.nodes:
            dot.append(f'  "n{node.id}" [label="{_escape(node.label)}"];')

        for edge in self.graph.edges:
            dot.append(
                f'  "n{edge.source}" -> "n{edge.target}" [label="{_escape(edge.label)}"];'
            )

        dot.append("}")
        return "\n".join(dot)

    def to_mermaid(self) -> str:
        """
        Generate a Mermaid flowchart for the data-flow graph.

        Returns:
            Mermaid source string
        """
        lines = ["flowchart LR"]

        for node in self.graph.nodes:
            lines.append(f'    n{node.id}["{_escape(node.label)}"]')

        for edge in self.graph.edges:
            lines.append(f'    n{edge.source} -->|"{_escape(edge.label)}"| n{edge.target}')

        return "\n".join(lines)


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
