"""Pydantic schemas for ThreatForge data models."""

from collections import Counter
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StrideCategory(str, Enum):
    """STRIDE threat category."""

    SPOOFING = "Spoofing"
    TAMPERING = "Tampering"
    REPUDIATION = "Repudiation"
    INFORMATION_DISCLOSURE = "Information Disclosure"
    DENIAL_OF_SERVICE = "Denial of Service"
    ELEVATION_OF_PRIVILEGE = "Elevation of Privilege"


class Severity(str, Enum):
    """Assessed severity of a threat."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        """Ordering weight, highest first."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}


class ArtifactRecord(BaseModel):
    """A captured project artifact (source file, manifest, diagram, story)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="File name shown in the prompt header")
    content: str = Field(..., description="Decoded text content")
    size: Optional[int] = Field(default=None, description="Size in bytes (display only)")
    type: Optional[str] = Field(default=None, description="MIME type (display only)")


class AnalysisRequest(BaseModel):
    """The prompt and output contract sent to the reasoning service."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    response_schema: Dict[str, Any]

    def to_payload(self) -> Dict[str, Any]:
        """Build the JSON request body for a generateContent call."""
        return {
            "contents": [{"parts": [{"text": self.prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": self.response_schema,
            },
        }


class Threat(BaseModel):
    """A single STRIDE-categorized threat in an analysis result."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., description="Locally generated, unique within one result")
    category: StrideCategory
    threat: str = Field(..., description="Threat description")
    severity: Severity
    component: str = Field(..., description="Affected asset label")
    mitigation: str
    code_snippet: str = Field(..., alias="codeSnippet")


class GraphNode(BaseModel):
    """Data-flow diagram node, one per asset."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str


class GraphEdge(BaseModel):
    """Directed, labeled data-flow edge between two node ids."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: str = Field(..., alias="from")
    target: str = Field(..., alias="to")
    label: str


class DataFlowGraph(BaseModel):
    """Geometry-free graph handed to the diagram renderer."""

    model_config = ConfigDict(frozen=True)

    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)

    def label_for(self, node_id: str) -> Optional[str]:
        """Return the label of node_id, or None if no such node exists."""
        for node in self.nodes:
            if node.id == node_id:
                return node.label
        return None


class AnalysisResult(BaseModel):
    """Complete threat model produced by one successful analysis."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    analysis_id: str
    timestamp: datetime
    project_name: Optional[str] = None
    assets: List[str] = Field(default_factory=list, description="Unique, in reply order")
    threats: List[Threat] = Field(default_factory=list)
    data_flows: List[str] = Field(
        default_factory=list, description="Human-readable data-flow strings"
    )
    graph: DataFlowGraph = Field(default_factory=DataFlowGraph)

    def prioritized_threats(self) -> List[Threat]:
        """Threats ordered Critical first; ties keep reply order."""
        return sorted(self.threats, key=lambda t: t.severity.rank, reverse=True)

    def summary(self) -> Dict[str, Any]:
        """Dashboard statistics for the result."""
        by_severity = Counter(t.severity.value for t in self.threats)
        by_category = Counter(t.category.value for t in self.threats)
        return {
            "total_threats": len(self.threats),
            "high_risk_threats": by_severity[Severity.CRITICAL.value]
            + by_severity[Severity.HIGH.value],
            "assets": len(self.assets),
            "data_flows": len(self.data_flows),
            "by_severity": {s.value: by_severity[s.value] for s in Severity},
            "by_category": {c.value: by_category[c.value] for c in StrideCategory},
        }

    def content_signature(self) -> Dict[str, Any]:
        """
        Result content without generated identifiers.

        Two results normalized from the same reply compare equal here even
        though their threat ids and analysis ids differ.
        """
        return {
            "assets": list(self.assets),
            "threats": [
                t.model_dump(mode="json", by_alias=True, exclude={"id"})
                for t in self.threats
            ],
            "data_flows": list(self.data_flows),
            "graph": self.graph.model_dump(mode="json", by_alias=True),
        }
