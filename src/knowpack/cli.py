"""CLI entry point for knowpack."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from knowpack.config import BuildConfig, load_config
from knowpack.errors import ConfigError
from knowpack.models import BuildManifest
from knowpack.orchestrator import BuildOrchestrator, load_manifest
from knowpack.renderers.search_index import INDEX_PATH, SearchIndex

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
    )


def _resolve_config(args: argparse.Namespace) -> BuildConfig:
    config = load_config(args.config)
    return config.with_overrides(
        budget=getattr(args, "budget", None),
        workers=getattr(args, "workers", None),
    )


def _print_issues(manifest: BuildManifest) -> None:
    if not manifest.issues:
        return
    print("")
    print(f"Issues ({len(manifest.issues)}):")
    for issue in manifest.issues:
        print(f"  - {issue}")


def build(source: str, output: str, config: BuildConfig, report: Optional[str] = None) -> int:
    """Build a content root into an output directory.

    Args:
        source: Path to the content folder or zip file
        output: Output directory for the artifacts
        config: Build settings
        report: Optional path to also write the manifest to

    Returns:
        Process exit code
    """
    logger.info(f"Building {source} -> {output}")
    result = BuildOrchestrator(source, output, config).run()
    manifest = result.manifest

    if report:
        report_path = Path(report)
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report_path.write_text(manifest.to_json(), encoding="utf-8")

    logger.info("")
    logger.info(
        f"Build {manifest.status.value}: {manifest.valid_count} chunks valid, "
        f"{manifest.invalid_count} invalid, {len(manifest.artifacts)} artifacts"
    )
    _print_issues(manifest)
    return manifest.status.exit_code


def validate(source: str, config: BuildConfig) -> int:
    """Load, validate and resolve without writing anything.

    Args:
        source: Path to the content folder or zip file
        config: Build settings

    Returns:
        Process exit code (1 when any chunk is invalid or the run failed)
    """
    result = BuildOrchestrator(source, None, config).run(dry_run=True)
    manifest = result.manifest

    print(f"Chunks: {manifest.valid_count} valid, {manifest.invalid_count} invalid")
    print(f"Load errors: {len(manifest.load_errors)}")
    print(f"Dangling references: {len(manifest.dangling)}")
    print(f"Cycles: {len(manifest.cycles)}")
    _print_issues(manifest)

    if manifest.error or manifest.invalid_count or manifest.load_errors:
        return 1
    return 0


def info(output: str) -> None:
    """Show information about a committed build.

    Args:
        output: Build output directory
    """
    output_path = Path(output)
    if not (output_path / "manifest.json").exists():
        logger.error(f"No build found at: {output}")
        sys.exit(1)

    manifest = load_manifest(output_path)

    print(f"Build: {output_path}")
    print(f"  Status: {manifest.status.value}")
    print(f"  Input digest: {manifest.input_digest[:16]}")
    print(f"")
    print(f"Chunks:")
    print(f"  Valid: {manifest.valid_count}")
    print(f"  Invalid: {manifest.invalid_count}")
    print(f"  Load errors: {len(manifest.load_errors)}")
    if manifest.selection and "included" in manifest.selection:
        selection = manifest.selection
        print(f"  Selected: {len(selection['included'])} ({selection['used']}/{selection['budget']} tokens)")
    print(f"")
    print(f"Artifacts:")
    for artifact in manifest.artifacts:
        print(f"  {artifact.path:<50} {artifact.size_bytes:>8} B  {artifact.sha256[:12]}")
    _print_issues(manifest)


def lookup(output: str, term: str, prefix: bool = False) -> int:
    """Query the search index of a committed build.

    Args:
        output: Build output directory
        term: Keyword (or keyword prefix)
        prefix: Match keywords starting with term

    Returns:
        Process exit code (1 when nothing matched)
    """
    index_path = Path(output) / INDEX_PATH
    if not index_path.exists():
        logger.error(f"No search index at: {index_path}")
        sys.exit(1)

    index = SearchIndex.from_file(index_path)
    if prefix:
        matches = index.prefix(term)
    else:
        ids = index.exact(term)
        matches = {term.lower(): ids} if ids else {}

    if not matches:
        print(f"No chunks found for: {term}")
        return 1

    for keyword, ids in matches.items():
        print(f"{keyword}:")
        for chunk_id in ids:
            card = index.card(chunk_id) or {}
            print(f"  {chunk_id:<40} {card.get('title', '')}")
    return 0


def serve(output: str, transport: str = "stdio") -> None:
    """Start the MCP lookup server for a committed build.

    Args:
        output: Build output directory
        transport: Transport protocol (stdio or sse)
    """
    output_path = Path(output)
    if not (output_path / INDEX_PATH).exists():
        logger.error(f"No build found at: {output}")
        sys.exit(1)

    # Import here to avoid loading MCP unless needed
    from knowpack.server import create_mcp_server

    from typing import cast, Literal

    logger.info(f"Serving {output} via {transport}")
    mcp = create_mcp_server(output_path)
    mcp.run(transport=cast(Literal["stdio", "sse", "streamable-http"], transport))


def deck() -> None:
    """Launch the Build Deck TUI for interactive builds."""
    from knowpack.build_deck import main as build_deck_main

    build_deck_main()


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default=None,
        help="YAML config file (default: ./knowpack.yaml if present)",
    )


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="knowpack",
        description="knowpack - build structured knowledge chunks into reference artifacts",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # build command
    build_parser = subparsers.add_parser(
        "build",
        help="Validate a content root and write all artifacts",
    )
    build_parser.add_argument("source", help="Content folder or zip file path")
    build_parser.add_argument(
        "-o",
        "--output",
        default="build",
        help="Output directory (default: build)",
    )
    build_parser.add_argument("--budget", type=int, default=None, help="Quick-reference token budget")
    build_parser.add_argument("--workers", type=int, default=None, help="Load/validate worker threads")
    build_parser.add_argument("--report", default=None, help="Also write the manifest here")
    _add_config_args(build_parser)

    # validate command
    validate_parser = subparsers.add_parser(
        "validate",
        help="Check a content root without writing artifacts",
    )
    validate_parser.add_argument("source", help="Content folder or zip file path")
    validate_parser.add_argument("--budget", type=int, default=None, help="Quick-reference token budget")
    _add_config_args(validate_parser)

    # info command
    info_parser = subparsers.add_parser(
        "info",
        help="Show information about a build",
    )
    info_parser.add_argument("output", help="Build output directory")

    # lookup command
    lookup_parser = subparsers.add_parser(
        "lookup",
        help="Look up chunks by keyword",
    )
    lookup_parser.add_argument("output", help="Build output directory")
    lookup_parser.add_argument("term", help="Keyword to look up")
    lookup_parser.add_argument("--prefix", action="store_true", help="Prefix match")

    # serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Start MCP lookup server for a build",
    )
    serve_parser.add_argument("output", help="Build output directory")
    serve_parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )

    # deck command
    subparsers.add_parser(
        "deck",
        help="Launch Build Deck TUI for interactive builds",
    )

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        if args.command == "build":
            sys.exit(build(args.source, args.output, _resolve_config(args), args.report))
        elif args.command == "validate":
            sys.exit(validate(args.source, _resolve_config(args)))
        elif args.command == "info":
            info(args.output)
        elif args.command == "lookup":
            sys.exit(lookup(args.output, args.term, args.prefix))
        elif args.command == "serve":
            serve(args.output, args.transport)
        elif args.command == "deck":
            deck()
    except ConfigError as exc:
        logger.error(f"Configuration error: {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
