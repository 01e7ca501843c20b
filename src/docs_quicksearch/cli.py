"""Command line entry point for building and querying docs indexes."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
import json
import logging
from pathlib import Path
import signal
import sys
import threading

from pydantic import ValidationError

from docs_quicksearch.config import Settings
from docs_quicksearch.observability import (
    configure_logging,
    configure_trace_exporter,
    generate_span_id,
    generate_trace_id,
    get_metrics,
    init_tracing,
    set_trace_context,
)
from docs_quicksearch.search.builder import BuildCancelledError, BuildInputError, IndexBuilder
from docs_quicksearch.search.storage import VersionedIndexStore, list_candidates
from docs_quicksearch.search.version import VersionParseError, parse_target_version
from docs_quicksearch.service_layer.search_service import DocsSearchService


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_NO_INDEX = 2
EXIT_CANCELLED = 130


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docs-quicksearch",
        description="Build and query versioned quick search indexes for offline API documentation",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Generate an index from an offline documentation folder")
    build.add_argument("docs_path", type=Path, help="Top level documentation folder")
    build.add_argument(
        "--output",
        type=Path,
        help="Directory the index file is written to (defaults to DOCS_QUICKSEARCH_INDEX_OUTPUT_DIR)",
    )
    build.add_argument("--metrics-file", type=Path, help="Write Prometheus metrics of the build to this file")

    search = subparsers.add_parser("search", help="Query the best matching index")
    search.add_argument("query", help="Search text")
    _add_root_arguments(search)
    search.add_argument(
        "--version",
        dest="target_version",
        help="Target documentation version, 'major.minor' or 'major.minor.patch'",
    )
    search.add_argument("--limit", type=int, default=20, help="Maximum results to print")
    search.add_argument("--json", action="store_true", help="Print the response as JSON")

    candidates = subparsers.add_parser("candidates", help="List index files offered by each root")
    _add_root_arguments(candidates)

    return parser


def _add_root_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--root",
        dest="roots",
        action="append",
        type=Path,
        metavar="DIR",
        help="Index root, may repeat; highest priority first (defaults to DOCS_QUICKSEARCH_SEARCH_ROOTS)",
    )


def _resolve_roots(args: argparse.Namespace, settings: Settings) -> list[Path]:
    return list(args.roots) if args.roots else settings.get_search_roots()


def _run_build(args: argparse.Namespace, settings: Settings) -> int:
    cancel_event = threading.Event()

    def _cancel(signum: int, frame: object | None) -> None:  # pragma: no cover - signal glue
        logger.warning("Received %s, cancelling build", signal.Signals(signum).name)
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, _cancel)
    try:
        result = IndexBuilder(settings).build_from_docs(args.docs_path, args.output, cancel_event=cancel_event)
    except BuildInputError as exc:
        logger.error("%s", exc)
        return EXIT_INPUT_ERROR
    except BuildCancelledError as exc:
        logger.warning("%s", exc)
        return EXIT_CANCELLED
    finally:
        signal.signal(signal.SIGINT, previous)

    if args.metrics_file is not None:
        args.metrics_file.parent.mkdir(parents=True, exist_ok=True)
        args.metrics_file.write_bytes(get_metrics())

    payload = {
        "output_path": str(result.output_path),
        "unity_version": str(result.unity_version),
        "docs_version": result.docs_version,
        "pages": result.pages_indexed,
        "terms": result.terms_indexed,
        "errors": result.error_count,
        "warnings": result.warning_count,
        "types": {page_type.value: count for page_type, count in result.type_counts.items()},
        "duration_s": round(result.duration_s, 3),
    }
    sys.stdout.write(json.dumps(payload, sort_keys=True) + "\n")
    return EXIT_OK


def _run_search(args: argparse.Namespace, settings: Settings) -> int:
    if args.limit < 1:
        logger.error("--limit must be >= 1")
        return EXIT_INPUT_ERROR

    target = None
    if args.target_version:
        try:
            target = parse_target_version(args.target_version)
        except VersionParseError as exc:
            logger.error("%s", exc)
            return EXIT_INPUT_ERROR

    service = DocsSearchService(
        settings,
        store=VersionedIndexStore(_resolve_roots(args, settings)),
        target_version=target,
    )
    response = service.search(args.query, max_results=args.limit)

    if args.json:
        sys.stdout.write(response.model_dump_json() + "\n")
    else:
        for hit in response.results:
            sys.stdout.write(f"{hit.score:>8}  {hit.page_type.value:<12} {hit.title}  {hit.browse_url}\n")

    if response.index is None:
        return EXIT_NO_INDEX
    return EXIT_OK


def _run_candidates(args: argparse.Namespace, settings: Settings) -> int:
    roots = _resolve_roots(args, settings)
    found = False
    for root in roots:
        for candidate in list_candidates(root):
            found = True
            sys.stdout.write(f"{root}\t{candidate.version}\t{candidate.docs_version}\t{candidate.path.name}\n")
    return EXIT_OK if found else EXIT_NO_INDEX


_COMMANDS = {
    "build": _run_build,
    "search": _run_search,
    "candidates": _run_candidates,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings()
    except ValidationError as exc:
        sys.stderr.write(f"Invalid configuration: {exc}\n")
        return EXIT_INPUT_ERROR

    configure_logging(settings.log_level, json_output=settings.log_json)
    set_trace_context(generate_trace_id(), generate_span_id(), command=args.command)
    if settings.otlp_endpoint:
        configure_trace_exporter(settings, init_tracing())

    return _COMMANDS[args.command](args, settings)


if __name__ == "__main__":
    sys.exit(main())
