"""
apmexport.cli - Command-line interface for apmexport.

This module provides a CLI that reads spans from an OTLP/JSON file, maps
each of them to an APM transaction and either posts them to an APM server
or prints the request bodies.

Usage:
    apmexport <input_file> [--endpoint/-e <url>] [--dry-run] [--output/-o <file>]

Examples:
    apmexport spans.json
    apmexport spans.json -e http://apm:8200/intake/v2/events
    apmexport spans.json --dry-run -o payload.ndjson
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List

from apmexport import __version__
from apmexport.core.mapper import map_span
from apmexport.core.span import SpanParser, SpanRecord
from apmexport.errors import SendError
from apmexport.exporters.sender import ApmSender, build_payload
from apmexport.integrations.setup import resolve_endpoint


def parse_args(args: List[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        args: List of arguments (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="apmexport",
        description="Send OpenTelemetry spans to an APM server as transactions",
        epilog="Example: apmexport spans.json -e http://localhost:8200/intake/v2/events",
    )

    parser.add_argument(
        "input_file",
        type=str,
        help="Path to the input span file (OTLP/JSON format)",
    )

    parser.add_argument(
        "-e", "--endpoint",
        type=str,
        default=None,
        help="APM intake URL (defaults to $APM_EXPORTER_ENDPOINT or the local APM server)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the ndjson request bodies instead of sending them",
    )

    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        help="With --dry-run, write the request bodies to this file (defaults to stdout)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parsed = parser.parse_args(args)
    if parsed.output and not parsed.dry_run:
        parser.error("-o/--output requires --dry-run")

    return parsed


def load_spans(input_path: str) -> List[SpanRecord]:
    """Load and parse spans from a JSON file.

    Args:
        input_path: Path to the input JSON file

    Returns:
        Parsed SpanRecord objects

    Raises:
        FileNotFoundError: If the input file doesn't exist
        json.JSONDecodeError: If the file contains invalid JSON
        ValueError: If the span data is invalid
    """
    path = Path(input_path)

    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    with open(path, "r", encoding="utf-8") as f:
        json_str = f.read()

    parser = SpanParser()
    return parser.parse_json(json_str)


def render_payloads(spans: List[SpanRecord]) -> str:
    """Render the request body that would be sent for each span.

    Args:
        spans: Spans to render

    Returns:
        Concatenated ndjson bodies, one per span
    """
    return "".join(build_payload(map_span(span)).decode("utf-8") for span in spans)


def send_spans(spans: List[SpanRecord], endpoint: str) -> int:
    """Map and send every span, one request each.

    Args:
        spans: Spans to send
        endpoint: APM intake URL

    Returns:
        Number of spans that failed to send
    """
    sender = ApmSender(endpoint)
    failed = 0
    try:
        for span in spans:
            try:
                sender.send(map_span(span))
            except SendError as e:
                print(f"Error: {e}", file=sys.stderr)
                failed += 1
    finally:
        sender.close()
    return failed


def write_output(content: str, output_path: str | None) -> None:
    """Write content to output file or stdout.

    Args:
        content: The content to write
        output_path: Path to output file, or None for stdout
    """
    if output_path:
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    else:
        sys.stdout.write(content)


def main(args: List[str] | None = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    try:
        parsed_args = parse_args(args)

        if parsed_args.verbose:
            logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

        spans = load_spans(parsed_args.input_file)

        if parsed_args.verbose:
            print(f"Parsed {len(spans)} spans", file=sys.stderr)

        if parsed_args.dry_run:
            write_output(render_payloads(spans), parsed_args.output)
            return 0

        endpoint = resolve_endpoint(parsed_args.endpoint)
        failed = send_spans(spans, endpoint)

        if parsed_args.verbose:
            print(
                f"Sent {len(spans) - failed}/{len(spans)} spans to {endpoint}",
                file=sys.stderr,
            )

        return 4 if failed else 0

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in input file: {e}", file=sys.stderr)
        return 2

    except ValueError as e:
        print(f"Error: Invalid span data: {e}", file=sys.stderr)
        return 3

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 4


if __name__ == "__main__":
    sys.exit(main())
