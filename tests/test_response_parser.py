"""Tests for reply normalization into assets, threats and a data-flow graph."""

import pytest

from conftest import gemini_body, make_threat
from threatforge.llm import MalformedReply
from threatforge.llm.response_parser import (
    build_data_flow_graph,
    dedupe_assets,
    describe_data_flows,
    extract_reply_text,
    normalize_reply,
    parse_reply,
)
from threatforge.models import DataFlowGraph, GraphEdge, GraphNode, Severity


class TestExtractReplyText:
    """Test locating the generated text in a reply body."""

    def test_extracts_first_candidate_text(self):
        """Test the text comes from the first candidate's first part."""
        assert extract_reply_text(gemini_body('{"assets": []}')) == '{"assets": []}'

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"candidates": []},
            {"candidates": [{"content": {"parts": []}}]},
            {"candidates": [{"finishReason": "SAFETY"}]},
            {"candidates": [{"content": {"parts": [{"text": "   "}]}}]},
            None,
        ],
    )
    def test_missing_text_is_malformed(self, body):
        """Test any missing or empty text location is a malformed reply."""
        with pytest.raises(MalformedReply):
            extract_reply_text(body)


class TestParseReply:
    """Test contract validation of reply bodies."""

    def test_valid(self, sample_body):
        """Test a conforming body parses."""
        reply = parse_reply(sample_body)
        assert len(reply.threats) == 4

    def test_non_json_text_keeps_raw(self):
        """Test non-JSON text raises MalformedReply carrying the raw text."""
        with pytest.raises(MalformedReply) as exc_info:
            parse_reply(gemini_body("Sorry, I cannot help with that."))

        assert exc_info.value.raw == "Sorry, I cannot help with that."
        assert exc_info.value.provider == "gemini"

    def test_one_bad_threat_rejects_everything(self):
        """Test a single invalid entry rejects the whole reply."""
        payload = {
            "assets": ["A", "B", "C"],
            "threats": [make_threat("A"), make_threat("B", severity="Severe")],
        }
        with pytest.raises(MalformedReply):
            parse_reply(gemini_body(payload))


class TestDedupeAssets:
    """Test asset de-duplication."""

    def test_first_occurrence_wins(self):
        """Test repeats are dropped and first-seen order is kept."""
        assert dedupe_assets(["B", "A", "B", "C", "A"]) == ["B", "A", "C"]

    def test_exact_match_only(self):
        """Test labels differing in case are distinct assets."""
        assert dedupe_assets(["db", "DB"]) == ["db", "DB"]


class TestDataFlowGraph:
    """Test graph synthesis from the asset list."""

    def test_three_assets_form_a_ring(self):
        """Test A, B, C chain plus a closing edge C to A."""
        graph = build_data_flow_graph(["A", "B", "C"])

        assert [(n.id, n.label) for n in graph.nodes] == [("1", "A"), ("2", "B"), ("3", "C")]
        assert [(e.source, e.target, e.label) for e in graph.edges] == [
            ("1", "2", "Data/API Call"),
            ("2", "3", "Data/API Call"),
            ("3", "1", "Auth Sync"),
        ]

    def test_two_assets_no_closing_edge(self):
        """Test two assets give one chain edge and no ring."""
        graph = build_data_flow_graph(["A", "B"])

        assert [(e.source, e.target, e.label) for e in graph.edges] == [
            ("1", "2", "Data/API Call"),
        ]

    def test_single_asset(self):
        """Test one asset is a lone node."""
        graph = build_data_flow_graph(["A"])
        assert len(graph.nodes) == 1
        assert graph.edges == []

    def test_no_assets(self):
        """Test an empty asset list gives an empty graph."""
        graph = build_data_flow_graph([])
        assert graph.nodes == []
        assert graph.edges == []

    def test_edge_count(self):
        """Test n > 2 assets give exactly n edges."""
        assets = [f"asset-{i}" for i in range(6)]
        graph = build_data_flow_graph(assets)

        assert len(graph.edges) == 6
        assert graph.edges[-1].label == "Auth Sync"
        assert graph.edges[-1].source == "6"
        assert graph.edges[-1].target == "1"

    def test_edges_serialize_with_wire_names(self):
        """Test edges dump as from/to."""
        edge = build_data_flow_graph(["A", "B"]).edges[0]
        assert edge.model_dump(by_alias=True) == {
            "from": "1",
            "to": "2",
            "label": "Data/API Call",
        }


class TestDescribeDataFlows:
    """Test human-readable flow strings."""

    def test_ring_descriptions(self):
        """Test each edge becomes a from -> to (label) string."""
        flows = describe_data_flows(build_data_flow_graph(["A", "B", "C"]))

        assert flows == [
            "A -> B (Data/API Call)",
            "B -> C (Data/API Call)",
            "C -> A (Auth Sync)",
        ]

    def test_unknown_endpoint(self):
        """Test a dangling edge end reads Unknown."""
        graph = DataFlowGraph(
            nodes=[GraphNode(id="1", label="A")],
            edges=[GraphEdge(source="1", target="9", label="Data/API Call")],
        )
        assert describe_data_flows(graph) == ["A -> Unknown (Data/API Call)"]


class TestNormalizeReply:
    """Test building the full AnalysisResult."""

    def test_assets_deduplicated(self, sample_body):
        """Test the repeated Auth Service is kept once, in reply order."""
        result = normalize_reply(sample_body, project_name="Shop")

        assert result.assets == ["API Gateway", "Auth Service", "User Database"]
        assert result.project_name == "Shop"

    def test_threats_keep_reply_order_and_fields(self, sample_body, sample_reply):
        """Test threats are carried over unchanged, in order."""
        result = normalize_reply(sample_body)

        assert [t.component for t in result.threats] == [
            t["component"] for t in sample_reply["threats"]
        ]
        assert result.threats[1].severity == Severity.CRITICAL
        assert result.threats[0].code_snippet == "require_auth(request)"

    def test_threat_ids_unique(self, sample_body):
        """Test threat ids are unique within a result."""
        result = normalize_reply(sample_body)
        ids = [t.id for t in result.threats]

        assert len(set(ids)) == len(ids)
        assert all(i.startswith("T-") for i in ids)

    def test_graph_and_flows_follow_assets(self, sample_body):
        """Test the graph is derived from the de-duplicated assets."""
        result = normalize_reply(sample_body)

        assert [n.label for n in result.graph.nodes] == result.assets
        assert result.data_flows == [
            "API Gateway -> Auth Service (Data/API Call)",
            "Auth Service -> User Database (Data/API Call)",
            "User Database -> API Gateway (Auth Sync)",
        ]

    def test_same_body_same_content_different_ids(self, sample_body):
        """Test normalizing twice is equal except for generated ids."""
        first = normalize_reply(sample_body)
        second = normalize_reply(sample_body)

        assert first.content_signature() == second.content_signature()
        assert {t.id for t in first.threats}.isdisjoint(t.id for t in second.threats)
        assert first.analysis_id != second.analysis_id

    def test_component_outside_assets_is_kept(self):
        """Test a threat naming an unlisted component is not dropped."""
        payload = {"assets": ["A", "B", "C"], "threats": [make_threat("Z")]}
        result = normalize_reply(gemini_body(payload))

        assert result.threats[0].component == "Z"

    def test_two_assets_accepted(self):
        """Test a reply below the advisory asset minimum still normalizes."""
        payload = {"assets": ["Web", "DB"], "threats": []}
        result = normalize_reply(gemini_body(payload))

        assert result.data_flows == ["Web -> DB (Data/API Call)"]
        assert result.threats == []

    @pytest.mark.parametrize(
        "body",
        [
            {"candidates": []},
            gemini_body("not json at all"),
            gemini_body({"assets": ["A"], "threats": [make_threat("A", severity="Urgent")]}),
            gemini_body({"assets": ["A"]}),
        ],
    )
    def test_malformed_replies(self, body):
        """Test every contract violation raises MalformedReply."""
        with pytest.raises(MalformedReply):
            normalize_reply(body)
