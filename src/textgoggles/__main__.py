"""Command line entry point: ``python -m textgoggles [FILE]``."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import PipelineConfig
from .parser import parse
from .pipeline import Pipeline
from .serialize import to_html


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="textgoggles",
        description="Convert matching text in an HTML document and print the result.",
    )
    parser.add_argument("file", nargs="?", type=Path, help="HTML file to read (default: stdin)")
    parser.add_argument("--chunk-size", type=int, default=None, help="Nodes visited per walker chunk")
    parser.add_argument("--no-cache", action="store_true", help="Disable the text cache")
    parser.add_argument("--stats", action="store_true", help="Print pipeline counters to stderr")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> PipelineConfig:
    config = PipelineConfig.from_env()
    changes: dict[str, object] = {}
    if args.chunk_size is not None:
        changes["chunk_size"] = args.chunk_size
    if args.no_cache:
        changes["use_cache"] = False
    return config.with_options(**changes) if changes else config


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = build_config(args)
    except ValueError as exc:
        print(f"textgoggles: {exc}", file=sys.stderr)
        return 2

    try:
        html = args.file.read_text(encoding="utf-8") if args.file else sys.stdin.read()
    except (OSError, UnicodeDecodeError) as exc:
        print(f"textgoggles: {exc}", file=sys.stderr)
        return 2

    pipeline = Pipeline(config=config)
    try:
        document = parse(html)
        walk = None
        if not pipeline.kill_switch_active(document):
            walk = pipeline.convert(document)
        sys.stdout.write(to_html(document))
        sys.stdout.write("\n")

        if args.stats:
            if walk is not None:
                s = walk.stats
                print(
                    f"visited={s.visited} converted={s.converted} wrappers={s.wrappers} "
                    f"chunks={s.chunks} max_slice={s.max_slice}",
                    file=sys.stderr,
                )
            for key, value in sorted(pipeline.stats.items()):
                print(f"{key}={value}", file=sys.stderr)
            for category, count in pipeline.errors.counts().items():
                print(f"errors.{category}={count}", file=sys.stderr)
    finally:
        pipeline.teardown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
