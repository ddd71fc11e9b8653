# wren/pipeline/cli.py
from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path

from wren import __version__
from wren.dac.compression import CompressionLevel
from wren.dac.manifest import ChecksumAlgorithm, ReadMode
from wren.debug.logging import LoggingConfig, configure_logging, resolve_level_name
from wren.errors import ContainerError
from wren.pipeline.builder import write_file
from wren.pipeline.config import WriteConfig
from wren.pipeline.errors import WriterError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wren-pack", description="Build an asset container from definitions."
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-i", "--input", type=Path, required=True, help="Definitions directory."
    )
    parser.add_argument(
        "-o", "--output", type=Path, required=True, help="Container file."
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="TOML file with a [wren] table. Flags below override it.",
    )
    parser.add_argument(
        "--flat", action="store_true", help="Do not descend into subdirectories."
    )
    parser.add_argument(
        "-c",
        "--compression",
        choices=[level.name.lower() for level in CompressionLevel],
        default=None,
    )
    parser.add_argument(
        "-a",
        "--checksum-algorithm",
        choices=[algo.name.lower() for algo in ChecksumAlgorithm],
        default=None,
    )
    parser.add_argument("--cache-dir", type=Path, default=None)
    parser.add_argument("--content-author", default=None)
    parser.add_argument("--content-description", default=None)
    parser.add_argument("--content-version", default=None)
    parser.add_argument("--content-license", default=None)
    parser.add_argument(
        "-j", "--jobs", type=int, default=1, help="Parallel conversions."
    )
    parser.add_argument(
        "--fail-fast", action="store_true", help="Stop at the first failing asset."
    )
    parser.add_argument("--log-file", type=Path, default=None)
    return parser


def config_from_args(args: argparse.Namespace) -> WriteConfig:
    config = WriteConfig.from_toml(args.config) if args.config else WriteConfig()
    overrides = {}
    if args.flat:
        overrides["read_mode"] = ReadMode.FLAT
    if args.compression:
        overrides["compression_level"] = CompressionLevel.parse(args.compression)
    if args.checksum_algorithm:
        overrides["checksum_algorithm"] = ChecksumAlgorithm.parse(
            args.checksum_algorithm
        )
    if args.cache_dir:
        overrides["cache_dir"] = args.cache_dir
    for name in ("author", "description", "version", "license"):
        value = getattr(args, f"content_{name}")
        if value is not None:
            overrides[name] = value
    return replace(config, **overrides)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(
        LoggingConfig(level_name=resolve_level_name(), file_path=args.log_file)
    )

    try:
        config = config_from_args(args)
        report = write_file(
            args.output,
            args.input,
            config,
            fail_fast=args.fail_fast,
            workers=args.jobs,
        )
    except (WriterError, ContainerError, OSError, ValueError) as e:
        logger.error("Build failed: %s", e)
        return 1

    for failure in report.failures:
        logger.error("%s: %s", failure.path, failure.error)
    return 0 if report.ok else 2


if __name__ == "__main__":
    raise SystemExit(main())
