"""Pipeline modules for ThreatForge."""

from .analyzer import analyze_artifacts, analyze_artifacts_sync, load_artifacts

__all__ = [
    "analyze_artifacts",
    "analyze_artifacts_sync",
    "load_artifacts",
]
