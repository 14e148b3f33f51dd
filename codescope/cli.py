"""CLI entrypoints for codescope commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError, load_config
from .fetch import parse_repo_url
from .logging import configure_logging
from .orchestrator import build_orchestrator
from .report import render_report


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress_default else False,
        help="Increase log verbosity for troubleshooting.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codescope",
        description="Scan GitHub repositories for security, stability and delivery risks.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser(
        "scan",
        help="Scan one repository and print a Markdown report.",
    )
    _add_verbose_option(scan_parser, suppress_default=True)
    scan_parser.add_argument(
        "repository",
        help="Repository as owner/name or a github.com URL.",
    )
    scan_parser.add_argument(
        "--config",
        type=Path,
        default=Path("."),
        help="Path to .codescope.yml or the directory holding it.",
    )
    scan_parser.add_argument(
        "--store",
        type=Path,
        default=None,
        help="JSON file to persist audits in (defaults to storage.path or memory).",
    )
    scan_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the report to this file instead of stdout.",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")
    serve_parser.add_argument(
        "--config",
        type=Path,
        default=Path("."),
        help="Path to .codescope.yml or the directory holding it.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for codescope commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    if args.command == "scan":
        try:
            owner, name = parse_repo_url(args.repository)
        except ValueError as exc:
            parser.exit(1, f"{exc}\n")

        orchestrator = build_orchestrator(config, store_path=args.store)
        try:
            audit = orchestrator.store.create_audit(owner, name)
            started = orchestrator.start_scan(audit.id)
            if not started.accepted:
                parser.exit(1, f"codescope scan failed: {started.reason}\n")
            finished = orchestrator.wait(audit.id)
        finally:
            orchestrator.shutdown()
        if finished is None:  # pragma: no cover - store lost the audit
            parser.exit(1, "codescope scan failed: audit disappeared\n")

        report = render_report(finished, orchestrator.store.list_findings(finished.id))
        if args.output is not None:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(report, encoding="utf-8")
            print(f"Report written to {_relativize(args.output.resolve())}")
        else:
            print(report, end="")

        if finished.scores is None:
            parser.exit(1, "codescope scan did not complete; see the report for details.\n")
    elif args.command == "serve":
        from .service import run_service

        run_service(host=args.host, port=args.port, config=config)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
