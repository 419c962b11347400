"""Pytest configuration and fixtures for ThreatForge tests."""

import json
from typing import Any, Dict, List

import pytest

from threatforge.config import Settings
from threatforge.models import ArtifactRecord


def gemini_body(payload: Any) -> Dict[str, Any]:
    """Wrap a reply payload the way generateContent returns it."""
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return {
        "candidates": [
            {"content": {"parts": [{"text": text}], "role": "model"}}
        ],
        "usageMetadata": {"totalTokenCount": 1234},
    }


def make_threat(
    component: str,
    category: str = "Spoofing",
    severity: str = "High",
) -> Dict[str, str]:
    """A contract-valid threat entry."""
    return {
        "category": category,
        "threat": f"{category} against {component}",
        "severity": severity,
        "component": component,
        "mitigation": f"Harden {component}",
        "codeSnippet": "require_auth(request)",
    }


@pytest.fixture
def test_settings() -> Settings:
    """Settings with a dummy key and no .env lookups."""
    return Settings(
        _env_file=None,
        gemini_api_key="test-key",
        gemini_api_base="https://gemini.test/v1beta",
        llm_backoff_base_seconds=1.0,
        llm_max_attempts=5,
    )


@pytest.fixture
def sample_artifacts() -> List[ArtifactRecord]:
    """A small web application's artifacts."""
    return [
        ArtifactRecord(
            name="app.py",
            content=(
                "from flask import Flask, request\n"
                "app = Flask(__name__)\n\n"
                "@app.route('/login', methods=['POST'])\n"
                "def login():\n"
                "    user = db.find(request.form['user'])\n"
                "    return issue_token(user)\n"
            ),
        ),
        ArtifactRecord(
            name="main.tf",
            content='resource "aws_s3_bucket" "uploads" {\n  acl = "public-read"\n}\n',
        ),
        ArtifactRecord(
            name="stories.md",
            content="As a customer I want to upload invoices so that billing is faster.\n",
        ),
    ]


@pytest.fixture
def sample_reply() -> Dict[str, Any]:
    """A contract-valid reply payload with a repeated asset."""
    return {
        "assets": ["API Gateway", "Auth Service", "User Database", "Auth Service"],
        "threats": [
            make_threat("API Gateway", "Denial of Service", "Medium"),
            make_threat("Auth Service", "Spoofing", "Critical"),
            make_threat("User Database", "Information Disclosure", "High"),
            make_threat("API Gateway", "Repudiation", "Low"),
        ],
    }


@pytest.fixture
def sample_body(sample_reply: Dict[str, Any]) -> Dict[str, Any]:
    """sample_reply wrapped in a generateContent response."""
    return gemini_body(sample_reply)
