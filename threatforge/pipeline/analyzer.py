"""Main pipeline orchestrator for ThreatForge analysis."""

import asyncio
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import structlog

from threatforge.config import settings
from threatforge.llm import (
    AnalysisCanceled,
    CancellationToken,
    GeminiAdapter,
    LLMAdapter,
    MalformedReply,
    TransportFailure,
)
from threatforge.llm.prompts import build_analysis_request
from threatforge.llm.response_parser import normalize_reply
from threatforge.models import AnalysisResult, ArtifactRecord


logger = structlog.get_logger()


async def analyze_artifacts(
    artifacts: Sequence[ArtifactRecord],
    cancellation: Optional[CancellationToken] = None,
    llm_adapter: Optional[LLMAdapter] = None,
    project_name: Optional[str] = None,
) -> AnalysisResult:
    """
    Produce a threat model for a set of project artifacts.

    Pipeline steps:
    1. Build the prompt and output contract
    2. Exchange it with the reasoning service (retries live in the adapter)
    3. Normalize the reply into assets, threats and a data-flow graph

    Each call is independent: it gets its own cancellation token when none
    is given and keeps no state between calls.

    Args:
        artifacts: Non-empty, ordered artifact records
        cancellation: Handle the caller uses to abort this analysis
        llm_adapter: Adapter to use (a GeminiAdapter from settings if None)
        project_name: Carried into the result for reporting

    Returns:
        The complete AnalysisResult

    Raises:
        AnalysisCanceled: If the caller aborted; not an error to report
        TransportFailure: If the service stayed unavailable or rejected the request
        MalformedReply: If the reply did not satisfy the output contract
    """
    cancellation = cancellation or CancellationToken()
    owns_adapter = llm_adapter is None
    adapter = llm_adapter or GeminiAdapter()

    logger.info(
        "analysis_started",
        project_name=project_name,
        artifact_count=len(artifacts),
        artifacts=[a.name for a in artifacts],
    )

    request = build_analysis_request(artifacts)

    try:
        body = await adapter.generate(request, cancellation)
        result = normalize_reply(body, project_name=project_name)

    except AnalysisCanceled:
        logger.info("analysis_canceled", project_name=project_name)
        raise

    except TransportFailure as e:
        logger.error(
            "transport_failure",
            project_name=project_name,
            status_code=e.status_code,
            attempts=e.attempts,
            error=e.message,
        )
        raise

    except MalformedReply as e:
        logger.error(
            "malformed_reply",
            project_name=project_name,
            error=e.message,
            raw_length=len(e.raw or ""),
        )
        raise

    finally:
        if owns_adapter:
            await adapter.close()

    logger.info(
        "analysis_complete",
        project_name=project_name,
        analysis_id=result.analysis_id,
        assets=len(result.assets),
        total_threats=len(result.threats),
        high_risk_threats=result.summary()["high_risk_threats"],
    )

    return result


def analyze_artifacts_sync(
    artifacts: Sequence[ArtifactRecord],
    llm_adapter: Optional[LLMAdapter] = None,
    project_name: Optional[str] = None,
) -> AnalysisResult:
    """
    Synchronous wrapper for analyze_artifacts.

    Args:
        artifacts: Non-empty, ordered artifact records
        llm_adapter: Adapter to use (a GeminiAdapter from settings if None)
        project_name: Carried into the result for reporting

    Returns:
        The complete AnalysisResult
    """
    return asyncio.run(
        analyze_artifacts(artifacts, llm_adapter=llm_adapter, project_name=project_name)
    )


def load_artifacts(
    paths: Iterable[str],
    max_bytes: Optional[int] = None,
) -> List[ArtifactRecord]:
    """
    Read text files into artifact records, in the given order.

    Args:
        paths: File paths to read
        max_bytes: Per-file size cap (settings.max_artifact_bytes if None)

    Returns:
        One ArtifactRecord per path

    Raises:
        FileNotFoundError: If a path does not exist
        ValueError: If a file is too large or is not UTF-8 text
    """
    max_bytes = max_bytes if max_bytes is not None else settings.max_artifact_bytes
    records = []

    for path_str in paths:
        path = Path(path_str)
        if not path.is_file():
            raise FileNotFoundError(f"Artifact not found: {path_str}")

        size = path.stat().st_size
        if size > max_bytes:
            raise ValueError(
                f"Artifact {path.name} is {size} bytes, over the {max_bytes} byte limit"
            )

        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ValueError(f"Artifact {path.name} is not UTF-8 text") from e

        records.append(ArtifactRecord(name=path.name, content=content, size=size))

    return records
