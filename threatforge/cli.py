"""Command-line interface for ThreatForge."""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional, Sequence

import structlog
import uvicorn

from threatforge import __version__
from threatforge.config import settings
from threatforge.llm import (
    AnalysisCanceled,
    CancellationToken,
    LLMAdapter,
    MalformedReply,
    TransportFailure,
)
from threatforge.logging_config import configure_logging
from threatforge.models import AnalysisResult, ArtifactRecord
from threatforge.parsing import EXPORT_FORMATS, export_report
from threatforge.pipeline import analyze_artifacts, load_artifacts

logger = structlog.get_logger()

SERVICE_UNAVAILABLE_MESSAGE = (
    "Failed to analyze artifacts. The AI model may be unavailable or the input "
    "is invalid. Please try again."
)

EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_CANCELED = 130


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.version:
        print_version()
        return

    if args.command == "analyze":
        analyze_command(args)
    elif args.command == "serve":
        serve_command(args)
    else:
        parser.print_help()
        sys.exit(EXIT_FAILURE)


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="threatforge",
        description="ThreatForge - STRIDE threat models from project artifacts",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    analyze_parser = subparsers.add_parser(
        "analyze", help="Generate a threat model from project artifacts"
    )
    analyze_parser.add_argument(
        "files",
        nargs="+",
        type=str,
        help="Artifacts to analyze (source, IaC, diagrams-as-text, user stories)",
    )
    analyze_parser.add_argument(
        "-p", "--project",
        type=str,
        required=True,
        help="Project name shown in the report",
    )
    analyze_parser.add_argument(
        "-o", "--output",
        type=str,
        help="Output file path",
    )
    analyze_parser.add_argument(
        "-f", "--format",
        type=str,
        choices=EXPORT_FORMATS,
        default="console",
        help="Output format (default: console)",
    )
    analyze_parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress log output",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP analysis service")
    serve_parser.add_argument("--host", type=str, help="Bind address (default: API_HOST)")
    serve_parser.add_argument("--port", type=int, help="Port (default: API_PORT)")
    serve_parser.add_argument(
        "--no-reload",
        action="store_true",
        help="Disable auto-reload even if API_RELOAD is set",
    )

    return parser


def print_version() -> None:
    """Print version information."""
    print(f"ThreatForge v{__version__}")
    print("STRIDE threat modeling from project artifacts")
    print()
    print("Export formats:")
    print(f"  - {', '.join(EXPORT_FORMATS)}")


def analyze_command(args: argparse.Namespace) -> None:
    """Execute analyze command."""
    configure_logging(quiet=args.quiet)

    if not args.project.strip():
        print("Error: Please provide a project name.", file=sys.stderr)
        sys.exit(EXIT_USAGE)

    try:
        artifacts = load_artifacts(args.files)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_USAGE)

    print(f"Analyzing {args.project} ({len(artifacts)} artifact(s))", file=sys.stderr)

    try:
        result = asyncio.run(run_analysis(artifacts, args.project))
    except AnalysisCanceled:
        print("Analysis canceled.", file=sys.stderr)
        sys.exit(EXIT_CANCELED)
    except (TransportFailure, MalformedReply) as e:
        logger.error("cli_analysis_failed", project_name=args.project, error=str(e))
        print(SERVICE_UNAVAILABLE_MESSAGE, file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    output = export_report(result, format=args.format, output_path=args.output)

    if args.output:
        print(f"Report saved to: {args.output}", file=sys.stderr)
    else:
        print(output)

    summary = result.summary()
    print(
        f"\nFound {summary['total_threats']} threat(s), "
        f"{summary['high_risk_threats']} high-risk",
        file=sys.stderr,
    )


def serve_command(args: argparse.Namespace) -> None:
    """Execute serve command."""
    uvicorn.run(
        "threatforge.main:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        reload=settings.api_reload and not args.no_reload,
    )


async def run_analysis(
    artifacts: Sequence[ArtifactRecord],
    project_name: str,
    llm_adapter: Optional[LLMAdapter] = None,
) -> AnalysisResult:
    """
    Run one analysis with Ctrl-C wired to its cancellation token.

    Args:
        artifacts: Loaded artifact records
        project_name: Project name for the report
        llm_adapter: Adapter to use (GeminiAdapter from settings if None)

    Returns:
        The AnalysisResult
    """
    token = CancellationToken()
    loop = asyncio.get_running_loop()

    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        # No signal support here (e.g. Windows, or not the main thread)
        handler_installed = False

    try:
        return await analyze_artifacts(
            artifacts, token, llm_adapter=llm_adapter, project_name=project_name
        )
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


if __name__ == "__main__":
    main()
