# src/main.py — v3
"""CLI entry point — analyze an admissions document from disk.

Usage:
    offerscope analyze <file> [-t TYPE] [--website URL] [--nationality N] [--json]
    offerscope --version

Exit codes: 0 success, 1 error, 2 document rejected (quota or unreadable).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from offerscope.version import __version__

logger = logging.getLogger(__name__)

EXIT_REJECTED = 2


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    from offerscope.analysis.errors import DocumentUnreadable, QuotaExceeded
    from offerscope.config.settings import ConfigurationError, load_settings
    from offerscope.logging.logger import setup_logging

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )

    try:
        return asyncio.run(args.func(args, settings))
    except (QuotaExceeded, DocumentUnreadable) as exc:
        logger.error("Document rejected: %s", exc)
        return EXIT_REJECTED
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="offerscope",
        description=f"offerscope v{__version__} — admissions document analyzer",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- analyze ---
    p_analyze = subparsers.add_parser(
        "analyze", help="Analyze a single document",
    )
    p_analyze.add_argument("file", type=Path, help="Path to document (.pdf or .txt)")
    p_analyze.add_argument(
        "-t", "--type", dest="doc_type", default="offer_letter",
        help="Document type: offer_letter, coe (default: offer_letter)",
    )
    p_analyze.add_argument(
        "--website", default=None,
        help="Institution website (derived from the document if omitted)",
    )
    p_analyze.add_argument(
        "--nationality", default=None,
        help="Student nationality, used to rank scholarships",
    )
    p_analyze.add_argument(
        "--user", default="cli",
        help="User id the analysis is recorded under (default: cli)",
    )
    p_analyze.add_argument(
        "--save-dir", type=Path, default=None,
        help="Write the analysis record as JSON under this directory",
    )
    p_analyze.add_argument(
        "--json", action="store_true",
        help="Print the full analysis as JSON instead of a summary",
    )
    p_analyze.set_defaults(func=_cmd_analyze)

    return parser


async def _cmd_analyze(args: argparse.Namespace, settings: object) -> int:
    """Execute single-document analysis."""
    from offerscope.api.facade import analyze_document, create_orchestrator
    from offerscope.enrichment.web_fetcher import RequestsWebFetcher
    from offerscope.extraction.extractor_factory import (
        UnsupportedFormatError,
        mime_type_for_extension,
    )
    from offerscope.storage.local_repository import LocalJsonRepository
    from offerscope.storage.memory_store import InMemoryRepository

    file_path: Path = args.file
    if not file_path.exists():
        logger.error("File not found: %s", file_path)
        return 1

    try:
        mime_type = mime_type_for_extension(file_path.suffix)
    except UnsupportedFormatError as exc:
        logger.error("%s", exc)
        return 1

    repository = (
        LocalJsonRepository(args.save_dir) if args.save_dir else InMemoryRepository()
    )
    fetcher = RequestsWebFetcher(user_agent=settings.enrichment_user_agent)  # type: ignore[attr-defined]
    try:
        orchestrator = create_orchestrator(settings, web_fetcher=fetcher)  # type: ignore[arg-type]

        logger.info("Analyzing %s (%s)", file_path.name, args.doc_type)
        recorded = await analyze_document(
            file_path.read_bytes(),
            mime_type,
            args.doc_type,
            args.user,
            orchestrator=orchestrator,
            repository=repository,
            website_hint=args.website,
            nationality=args.nationality,
        )
    finally:
        await fetcher.aclose()

    if args.json:
        print(json.dumps(recorded.to_json_dict(), indent=2, ensure_ascii=False))
    else:
        _print_result_summary(recorded)
    return 0


def _print_result_summary(recorded: object) -> None:
    """Print a human-readable summary of a RecordedAnalysis."""
    result = recorded.result
    metadata = recorded.metadata
    print("\nAnalysis complete:")
    print(f"  Record ID:    {recorded.record_id}")
    print(f"  Type:         {result.document_type}")
    print(f"  Score:        {result.analysis_score}/100")
    print(f"  Degraded:     {metadata.degraded}")
    print(f"  Cache hit:    {metadata.cache_hit}")
    print(f"  Tokens:       {metadata.total_tokens_used}")
    print(f"  Time:         {metadata.processing_time_ms} ms")
    preview = result.summary[:200]
    if len(result.summary) > 200:
        preview += "..."
    print(f"  Summary:      {preview}")
    if result.key_findings:
        print("  Key findings:")
        for finding in result.key_findings:
            print(f"    [{finding.importance}] {finding.title}")


if __name__ == "__main__":
    sys.exit(main())
