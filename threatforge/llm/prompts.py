"""Prompt templates for STRIDE threat-model generation."""

from typing import Sequence

from threatforge.models import AnalysisRequest, ArtifactRecord
from threatforge.models.contract import response_schema


FILE_HEADER = "--- FILE: {name} ---"


THREAT_MODEL_PROMPT = """
Analyze the following software project artifacts and generate a threat model.

**Project Artifacts:**
{artifact_bundle}

**Instructions:**
1.  Identify the key assets in the system (e.g., 'User Database', 'API Gateway', 'Authentication Service'). Provide at least 3 assets.
2.  Based on the assets and their interactions, identify potential threats.
3.  For each threat, provide a detailed analysis using the STRIDE framework (Spoofing, Tampering, Repudiation, Information Disclosure, Denial of Service, Elevation of Privilege).
4.  Assign a severity level ('Critical', 'High', 'Medium', 'Low') to each threat.
5.  Pinpoint the affected component (must be one of the identified assets) for each threat.
6.  Suggest a detailed mitigation strategy.
7.  Provide a relevant, concise code snippet in an appropriate language demonstrating the mitigation principle.

You must return ONLY a single valid JSON object matching the provided schema. Do not include any other text, explanations, or markdown formatting like ```json.
"""


def build_artifact_bundle(artifacts: Sequence[ArtifactRecord]) -> str:
    """Join artifacts under ``--- FILE: <name> ---`` headers, blank-line separated."""
    return "\n\n".join(
        f"{FILE_HEADER.format(name=artifact.name)}\n{artifact.content}"
        for artifact in artifacts
    )


def build_threat_model_prompt(artifacts: Sequence[ArtifactRecord]) -> str:
    """
    Build the threat-model prompt for a set of artifacts.

    Artifact content is embedded verbatim, in the given order. An empty
    sequence yields a prompt with an empty artifact section; callers are
    expected to reject that case before getting here.

    Args:
        artifacts: Captured project artifacts

    Returns:
        The formatted prompt string
    """
    return THREAT_MODEL_PROMPT.format(artifact_bundle=build_artifact_bundle(artifacts))


def build_analysis_request(artifacts: Sequence[ArtifactRecord]) -> AnalysisRequest:
    """Pair the prompt with the structured-output contract."""
    return AnalysisRequest(
        prompt=build_threat_model_prompt(artifacts),
        response_schema=response_schema(),
    )
