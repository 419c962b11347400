"""Turn a raw reasoning-service reply into an AnalysisResult."""

import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import structlog
from pydantic import ValidationError

from threatforge.llm.errors import MalformedReply
from threatforge.models import (
    AnalysisResult,
    DataFlowGraph,
    GraphEdge,
    GraphNode,
    Threat,
)
from threatforge.models.contract import ThreatModelReply, validate_reply


logger = structlog.get_logger()

CHAIN_EDGE_LABEL = "Data/API Call"
CLOSING_EDGE_LABEL = "Auth Sync"
UNKNOWN_NODE_LABEL = "Unknown"


def extract_reply_text(body: Any) -> str:
    """
    Pull the generated text out of a generateContent reply.

    The text lives at ``candidates[0].content.parts[0].text``.

    Raises:
        MalformedReply: If that location is missing or empty
    """
    try:
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedReply(f"Reply has no candidate text: {e!r}") from e

    if not isinstance(text, str) or not text.strip():
        raise MalformedReply("Reply candidate text is empty")

    return text


def parse_reply(body: Any) -> ThreatModelReply:
    """
    Extract and validate the reply against the output contract.

    Either the whole reply satisfies the contract or nothing is returned;
    a single bad threat entry rejects the reply.

    Raises:
        MalformedReply: If the text is missing, not JSON, or violates the contract
    """
    text = extract_reply_text(body)
    try:
        return validate_reply(text)
    except ValidationError as e:
        raise MalformedReply(
            f"Reply violates the output contract: {e.error_count()} error(s)",
            raw=text,
        ) from e


def dedupe_assets(assets: Iterable[str]) -> List[str]:
    """Drop repeated asset labels, keeping first-seen order."""
    return list(dict.fromkeys(assets))


def build_data_flow_graph(assets: List[str]) -> DataFlowGraph:
    """
    Synthesize a data-flow graph from an ordered asset list.

    Nodes get 1-based string ids in asset order. Consecutive assets are
    chained with "Data/API Call" edges; with more than two assets a final
    "Auth Sync" edge closes the ring from the last node back to the first.

    This is a fixed heuristic, not inferred topology: it does not reflect
    how the assets actually talk to each other.
    """
    nodes = [GraphNode(id=str(i), label=asset) for i, asset in enumerate(assets, start=1)]

    edges = [
        GraphEdge(source=str(i), target=str(i + 1), label=CHAIN_EDGE_LABEL)
        for i in range(1, len(nodes))
    ]
    if len(nodes) > 2:
        edges.append(GraphEdge(source=str(len(nodes)), target="1", label=CLOSING_EDGE_LABEL))

    return DataFlowGraph(nodes=nodes, edges=edges)


def describe_data_flows(graph: DataFlowGraph) -> List[str]:
    """Render each edge as ``"<from> -> <to> (<label>)"``; dangling ends read "Unknown"."""
    flows = []
    for edge in graph.edges:
        source = graph.label_for(edge.source) or UNKNOWN_NODE_LABEL
        target = graph.label_for(edge.target) or UNKNOWN_NODE_LABEL
        flows.append(f"{source} -> {target} ({edge.label})")
    return flows


def normalize_reply(
    body: Dict[str, Any],
    project_name: Optional[str] = None,
) -> AnalysisResult:
    """
    Build the domain model from a successful reply body.

    Threat ids are generated here, ``T-<batch>-<n>`` with a random batch per
    call, so normalizing the same body twice gives equal content but
    different ids. Compare results with AnalysisResult.content_signature().

    Raises:
        MalformedReply: If the reply violates the output contract
    """
    reply = parse_reply(body)

    assets = dedupe_assets(reply.assets)
    batch = uuid.uuid4().hex[:8]
    threats = [
        Threat(
            id=f"T-{batch}-{index}",
            category=entry.category,
            threat=entry.threat,
            severity=entry.severity,
            component=entry.component,
            mitigation=entry.mitigation,
            code_snippet=entry.code_snippet,
        )
        for index, entry in enumerate(reply.threats, start=1)
    ]

    unknown_components = {t.component for t in threats} - set(assets)
    if unknown_components:
        logger.warning(
            "threat_component_not_an_asset",
            components=sorted(unknown_components),
        )

    graph = build_data_flow_graph(assets)

    return AnalysisResult(
        analysis_id=str(uuid.uuid4()),
        timestamp=datetime.now(),
        project_name=project_name,
        assets=assets,
        threats=threats,
        data_flows=describe_data_flows(graph),
        graph=graph,
    )
