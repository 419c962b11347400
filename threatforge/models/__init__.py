"""Core data models for ThreatForge."""

from .schemas import (
    AnalysisRequest,
    AnalysisResult,
    ArtifactRecord,
    DataFlowGraph,
    GraphEdge,
    GraphNode,
    Severity,
    StrideCategory,
    Threat,
)

__all__ = [
    "AnalysisRequest",
    "AnalysisResult",
    "ArtifactRecord",
    "DataFlowGraph",
    "GraphEdge",
    "GraphNode",
    "Severity",
    "StrideCategory",
    "Threat",
]
