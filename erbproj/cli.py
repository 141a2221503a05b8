"""Command line interface for erbproj."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import yaml

from .converter import Converter
from .core.config import load_settings
from .core.errors import ErbprojError
from .core.logging import get_logger, setup_logging

logger = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="erbproj",
        description="Project ERB templates onto Ruby code with the template's exact layout.",
    )
    parser.add_argument(
        "sources",
        type=Path,
        nargs="*",
        help="Template files to convert.",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Write the converted code to this file (single source only).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML configuration file (extensions, html_visualization, logging).",
    )
    parser.add_argument(
        "--html-visualization",
        dest="html_visualization",
        action="store_true",
        default=None,
        help="Render markup as placeholder Ruby code.",
    )
    output_mode = parser.add_mutually_exclusive_group()
    output_mode.add_argument(
        "--hybrid",
        action="store_true",
        help="Print the hybrid code (restorable markup put back) instead of the Ruby code.",
    )
    output_mode.add_argument(
        "--json",
        action="store_true",
        help="Print the full conversion result as JSON.",
    )
    parser.add_argument(
        "--rubocop-config",
        action="store_true",
        help="Print the RuboCop configuration for the configured extensions and exit.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Convert files even when their extension is not configured.",
    )
    parser.add_argument(
        "--encoding",
        default="utf-8",
        help="Encoding to use when reading and writing files (default: utf-8).",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log errors.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ErbprojError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    if args.quiet:
        settings.LOG_LEVEL = "ERROR"
    setup_logging(settings)

    if args.rubocop_config:
        sys.stdout.write(yaml.safe_dump(settings.to_rubocop_config(), sort_keys=False))
        return 0

    if not args.sources:
        parser.error("at least one source file is required")
    if args.output is not None and len(args.sources) > 1:
        parser.error("--output requires exactly one source file")

    html_visualization = settings.HTML_VISUALIZATION
    if args.html_visualization is not None:
        html_visualization = args.html_visualization
    converter = Converter(html_visualization=html_visualization)

    status = 0
    outputs: list[tuple[Path, str]] = []
    for source in args.sources:
        if not args.force and not settings.supported_file(source):
            logger.warning("skipping %s: extension not in %s", source, settings.EXTENSIONS)
            continue
        try:
            result = converter.convert_file(source, encoding=args.encoding)
        except (ErbprojError, OSError, UnicodeDecodeError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            status = 1
            continue

        if args.json:
            text = result.model_dump_json() + "\n"
        elif args.hybrid:
            text = result.hybrid_code
        else:
            text = result.ruby_code
        outputs.append((source, text))

    if args.output is not None:
        for _, text in outputs:
            args.output.write_text(text, encoding=args.encoding)
            logger.info("wrote %s", args.output)
        return status

    for source, text in outputs:
        if len(args.sources) > 1 and not args.json:
            sys.stdout.write(f"==> {source} <==\n")
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")
    return status


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
