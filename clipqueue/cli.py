#!/usr/bin/env python3
"""
clipqueue CLI - Thin entrypoint for compressing files through the queue.

Commands:
- compress: queue files, run them one at a time, write outputs
- args: print the FFmpeg arguments a settings combination resolves to

Design Principles:
==================
- CLI is a dispatcher only
- No execution logic inside CLI (see clipqueue.execution.driver)
- Surface errors verbatim from the execution layer
- Exit non-zero on failure
- No interactive prompts

Exit Codes:
===========
- 0: Success (all files compressed)
- 1: Validation error (bad arguments, missing files)
- 2: Engine unavailable (ffmpeg not found or not runnable)
- 3: One or more files failed
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from .config import QueueConfig
from .deliver.naming import save_output
from .deliver.settings import (
    CompressionSettings,
    SizePreset,
    SpeedPreset,
    DEFAULT_QUALITY,
)
from .execution.driver import JobDriver
from .execution.ffmpeg import FFmpegEngine
from .jobs.models import JobStatus
from .jobs.store import QueueStore
from .jobs.submission import create_jobs
from .jobs.summary import summarize


EXIT_OK = 0
EXIT_VALIDATION = 1
EXIT_ENGINE = 2
EXIT_FAILED = 3

# Progress lines are printed in steps of this many percent
PROGRESS_STEP = 10


class _ProgressReporter:
    """Store listener printing coarse per-job progress to stderr."""

    def __init__(self, store: QueueStore, stream=None):
        self._store = store
        self._stream = stream or sys.stderr
        self._last: Dict[str, int] = {}

    def __call__(self) -> None:
        for job in self._store.snapshot():
            if job.status != JobStatus.PROCESSING:
                continue
            step = job.progress - job.progress % PROGRESS_STEP
            if self._last.get(job.id) == step:
                continue
            self._last[job.id] = step
            print(f"[{step:3d}%] {job.display_name}", file=self._stream)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S',
    )


def _build_settings(args: argparse.Namespace) -> Optional[CompressionSettings]:
    try:
        return CompressionSettings(size=args.size, quality=args.quality, speed=args.speed)
    except ValidationError as e:
        print(f"ERROR: Invalid compression settings: {e}", file=sys.stderr)
        return None


def cmd_compress(args: argparse.Namespace) -> int:
    """
    Compress files one at a time.

    Outputs are written next to each source unless --output-dir is given.

    Exit codes:
        0: All files compressed
        1: Validation error
        2: Engine unavailable
        3: One or more files failed
    """
    sources: List[Path] = [Path(p).resolve() for p in args.files]
    missing = [str(p) for p in sources if not p.is_file()]
    if missing:
        print(f"ERROR: Source file(s) not found: {', '.join(missing)}", file=sys.stderr)
        return EXIT_VALIDATION

    settings = _build_settings(args)
    if settings is None:
        return EXIT_VALIDATION

    try:
        config = QueueConfig.from_env(
            ffmpeg_path=args.ffmpeg,
            execution_timeout=args.timeout,
        )
    except ValidationError as e:
        print(f"ERROR: Invalid configuration: {e}", file=sys.stderr)
        return EXIT_VALIDATION

    engine = FFmpegEngine(
        ffmpeg_path=config.ffmpeg_path,
        work_dir=config.work_dir,
        timeout=config.execution_timeout,
    )
    store = QueueStore()
    driver = JobDriver(store, engine, settings=settings, config=config)

    try:
        if not driver.start():
            print(f"ERROR: {driver.engine_error}", file=sys.stderr)
            return EXIT_ENGINE

        store.subscribe(_ProgressReporter(store))
        store.append(create_jobs(sources))
        driver.resume()

        try:
            driver.wait_for_idle()
        except KeyboardInterrupt:
            print("\nPausing: finishing the current file, then stopping.", file=sys.stderr)
            driver.pause()
            driver.wait_for_idle()

        for job in store.snapshot():
            if job.status == JobStatus.DONE:
                directory = Path(args.output_dir) if args.output_dir else Path(job.source_ref).parent
                target = save_output(job, directory)
                print(f"✓ {job.display_name} -> {target}")
            elif job.status == JobStatus.ERROR:
                print(f"✗ {job.display_name}: {job.error_message}")
            else:
                print(f"- {job.display_name}: {job.status.value}")

        summary = summarize(store.snapshot())
        print(
            f"Done: {summary.done_count}  Failed: {summary.error_count}  "
            f"Not processed: {summary.queued_count + summary.skipped_count}"
        )

        if summary.error_count or summary.queued_count:
            return EXIT_FAILED
        return EXIT_OK
    finally:
        driver.stop()
        engine.close()


def cmd_args(args: argparse.Namespace) -> int:
    """
    Print the FFmpeg arguments for a settings combination.

    Exit codes:
        0: Arguments printed
        1: Validation error
    """
    settings = _build_settings(args)
    if settings is None:
        return EXIT_VALIDATION

    print(" ".join(settings.to_arguments(args.input, args.output)))
    return EXIT_OK


def _add_settings_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--size',
        choices=[p.value for p in SizePreset],
        default=SizePreset.ORIGINAL.value,
        help='Bound the longest side of the video (default: original)'
    )
    parser.add_argument(
        '--quality',
        type=int,
        default=DEFAULT_QUALITY,
        help=f'Quality dial 0-51, lower is better and larger (default: {DEFAULT_QUALITY})'
    )
    parser.add_argument(
        '--speed',
        choices=[p.value for p in SpeedPreset],
        default=SpeedPreset.MEDIUM.value,
        help='Encoder speed preset; slower gives smaller files (default: medium)'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='clipqueue',
        description='clipqueue - compress media files one at a time',
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Show debug logging'
    )

    subparsers = parser.add_subparsers(dest='command', required=True, help='Command to execute')

    # Compress command
    parser_compress = subparsers.add_parser(
        'compress',
        help='Compress one or more media files'
    )
    parser_compress.add_argument(
        'files',
        nargs='+',
        help='Media files to compress, processed in the given order'
    )
    _add_settings_arguments(parser_compress)
    parser_compress.add_argument(
        '--output-dir',
        default=None,
        help='Directory for outputs (default: next to each source)'
    )
    parser_compress.add_argument(
        '--ffmpeg',
        default=None,
        help='Path to the ffmpeg binary'
    )
    parser_compress.add_argument(
        '--timeout',
        type=float,
        default=None,
        help='Per-file timeout in seconds (default: none)'
    )
    parser_compress.set_defaults(func=cmd_compress)

    # Args command
    parser_args = subparsers.add_parser(
        'args',
        help='Print the FFmpeg arguments for the given settings'
    )
    _add_settings_arguments(parser_args)
    parser_args.add_argument('--input', default='input.mov', help='Input handle name')
    parser_args.add_argument('--output', default='output.mp4', help='Output handle name')
    parser_args.set_defaults(func=cmd_args)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entrypoint.

    Parses arguments and dispatches to subcommands.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
