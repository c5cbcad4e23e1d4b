#!/usr/bin/env python3
"""
Object-Store Filer command line

Usage:
    python -m blobfiler --url s3://my-bucket ls /logs/
    python -m blobfiler put ./report.csv /reports/2024/report.csv

    # Or with configuration from the environment
    BLOBFILER_URL=s3://my-bucket BLOBFILER_THREADS=4 python -m blobfiler cat /a.txt

Exit status: 0 on success, 1 on storage or local I/O errors, 2 on
configuration errors and malformed paths.
"""

from __future__ import annotations

import argparse
import shutil
import sys
from typing import Callable, Dict, List, Optional

from blobfiler.core.config import FilerConfig
from blobfiler.core.errors import ConfigurationError, FilerError
from blobfiler.core import constants as C
from blobfiler.observability.logging import LogLevel, StructuredLogger, setup_logging
from blobfiler.storage.protocols import Filer
from blobfiler.storage.s3_filer import S3Filer

logger = StructuredLogger("blobfiler.cli")

COPY_BUFFER_BYTES = 1 * C.MB


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blobfiler",
        description="Filesystem-style access to an S3-compatible bucket.",
    )
    parser.add_argument("--url", help="store URL, e.g. s3://my-bucket")
    parser.add_argument("--part-size", type=int, help="multipart chunk size in bytes")
    parser.add_argument("--threads", type=int, help="upload worker threads")
    parser.add_argument("--temp-dir", help="directory for chunk spill files")
    parser.add_argument("--log-level", default="WARNING", help="log level (default: WARNING)")
    parser.add_argument("--json-logs", action="store_true", help="emit JSON log lines")

    commands = parser.add_subparsers(dest="command", required=True)

    ls = commands.add_parser("ls", help="list records under a path prefix")
    ls.add_argument("path")

    stat = commands.add_parser("stat", help="show the record for a path")
    stat.add_argument("path")

    cat = commands.add_parser("cat", help="write an object to stdout")
    cat.add_argument("path")

    put = commands.add_parser("put", help="upload a local file ('-' for stdin)")
    put.add_argument("local")
    put.add_argument("path")

    rm = commands.add_parser("rm", help="delete an object")
    rm.add_argument("path")

    mkdir = commands.add_parser("mkdir", help="create a directory marker")
    mkdir.add_argument("path")

    return parser


def load_config(args: argparse.Namespace) -> FilerConfig:
    """Environment configuration with command-line overrides."""
    values: Dict[str, object] = dict(FilerConfig.env_mapping())
    overrides = {
        "url": args.url,
        "s3.partSize": args.part_size,
        "s3.threads": args.threads,
        "s3.tempDir": args.temp_dir,
    }
    values.update({key: value for key, value in overrides.items() if value is not None})

    result = FilerConfig.from_mapping(values)
    if result.is_err():
        raise ConfigurationError.invalid(result.error)
    return result.unwrap()


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_ls(filer: Filer, args: argparse.Namespace) -> None:
    for record in filer.list_records(args.path):
        kind = "d" if record.directory else "-"
        print(f"{kind} {record.size:>12} {record.time:>14} {record.path}")


def cmd_stat(filer: Filer, args: argparse.Namespace) -> None:
    record = filer.get_record(args.path)
    if not record.exists:
        print(f"{args.path}: no such file")
        return
    print(record)


def cmd_cat(filer: Filer, args: argparse.Namespace) -> None:
    body = filer.read_file(args.path)
    try:
        shutil.copyfileobj(body, sys.stdout.buffer, COPY_BUFFER_BYTES)
    finally:
        body.close()


def cmd_put(filer: Filer, args: argparse.Namespace) -> None:
    if args.local == "-":
        source = sys.stdin.buffer
        with filer.write_file(args.path) as out:
            shutil.copyfileobj(source, out, COPY_BUFFER_BYTES)
        return
    with open(args.local, "rb") as source, filer.write_file(args.path) as out:
        shutil.copyfileobj(source, out, COPY_BUFFER_BYTES)


def cmd_rm(filer: Filer, args: argparse.Namespace) -> None:
    filer.delete_file(args.path)


def cmd_mkdir(filer: Filer, args: argparse.Namespace) -> None:
    filer.create_dirs(args.path)


COMMANDS: Dict[str, Callable[[Filer, argparse.Namespace], None]] = {
    "ls": cmd_ls,
    "stat": cmd_stat,
    "cat": cmd_cat,
    "put": cmd_put,
    "rm": cmd_rm,
    "mkdir": cmd_mkdir,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        setup_logging(LogLevel.parse(args.log_level), json_output=args.json_logs)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    try:
        config = load_config(args)
    except ConfigurationError as e:
        print(e.message, file=sys.stderr)
        return 2

    with logger.context(command=args.command, path=args.path):
        try:
            with S3Filer(config) as filer:
                COMMANDS[args.command](filer, args)
        except FilerError as e:
            logger.error("Command failed", error=e.to_dict())
            print(f"blobfiler: {e.message}", file=sys.stderr)
            return 1
        except ValueError as e:
            # Malformed arguments, e.g. a path without the leading separator.
            print(f"blobfiler: {e}", file=sys.stderr)
            return 2
        except OSError as e:
            logger.error("Local I/O failed", error=str(e))
            print(f"blobfiler: {e}", file=sys.stderr)
            return 1

    return 0


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
