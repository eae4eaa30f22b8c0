#!/usr/bin/env python3
"""
Command-line interface for the Vocabulary Lesson Audio Builder.

Two operator commands:
  lesson    narrate a lesson table into one MP3
  backfill  generate missing example sentences for a table
"""
import argparse
import os
import sys

from tqdm import tqdm

from config import ConfigManager
from errors import LessonAudioError
from models import EmptyResult
from processing import LessonWorker
from progress import get_memory_usage_mb


class CLIProgressCallback:
    """Draws one tqdm bar, created lazily once the total is known."""

    def __init__(self, desc: str, unit: str):
        self.desc = desc
        self.unit = unit
        self.pbar = None

    def __call__(self, current: int, total: int, status: str = ""):
        if self.pbar is None:
            self.pbar = tqdm(total=total, desc=self.desc, unit=self.unit,
                             leave=False, dynamic_ncols=True)
        self.pbar.n = current
        self.pbar.refresh()
        if status:
            self.pbar.set_postfix_str(status[:30])

    def close(self):
        if self.pbar:
            self.pbar.close()
            self.pbar = None


def _report_failure(error: Exception) -> None:
    if isinstance(error, LessonAudioError):
        print(f"Error {error.describe()}", file=sys.stderr)
    else:
        print(f"Error [unexpected] {error}", file=sys.stderr)


def cmd_lesson(args, cfg_mgr: ConfigManager, log, show_progress: bool, verbose: bool) -> int:
    if show_progress:
        print(f"\n🎧 Building lesson: {args.table}")
        mem_before = get_memory_usage_mb()

    progress_cb = CLIProgressCallback("Synthesizing", "segment") if show_progress else None
    try:
        result = LessonWorker.run_text_to_speech_process(
            args.table, cfg_mgr, log=log, progress_callback=progress_cb,
            show_progress=show_progress,
        )
    except Exception as e:
        _report_failure(e)
        return 1
    finally:
        if progress_cb:
            progress_cb.close()

    if isinstance(result, EmptyResult):
        print(f"Nothing to do: '{result.table_name}' has {result.reason}.")
        return 0

    if show_progress:
        print(f"✅ Audio saved: {result.location}")
        print(f"   Rows: {result.row_count} | Segments: {result.segment_count}")
        print(f"   Size: {len(result.data) / (1024*1024):.2f} MB")
        if verbose:
            print(f"   Memory: {mem_before:.0f} MB -> {get_memory_usage_mb():.0f} MB")
    else:
        print(result.location)
    return 0


def cmd_backfill(args, cfg_mgr: ConfigManager, log, show_progress: bool, verbose: bool) -> int:
    if show_progress:
        print(f"\n✍️  Filling sentences: {args.table}")

    progress_cb = CLIProgressCallback("Generating", "row") if show_progress else None
    try:
        updated = LessonWorker.fill_column3_from_table_name(
            args.table, cfg_mgr, log=log, progress_callback=progress_cb,
            show_progress=show_progress,
        )
    except Exception as e:
        _report_failure(e)
        return 1
    finally:
        if progress_cb:
            progress_cb.close()

    if not updated:
        print(f"Nothing to do: no rows in '{args.table}' are missing a sentence.")
    elif show_progress:
        print(f"✅ Updated {updated} row(s)")
    else:
        print(updated)
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Narrate vocabulary lesson tables into MP3 lessons.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py lesson week01
  python cli.py backfill week01 --verbose
  python cli.py lesson week01 --config ~/lessons/config.json
        """
    )
    parser.add_argument(
        "--config",
        help="Path to config.json (defaults to project config.json)",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress progress bars (show only final output)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed progress messages",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    lesson_parser = subparsers.add_parser("lesson", help="Build the narrated MP3 for a table")
    lesson_parser.add_argument("table", help="Table name (CSV file name without extension)")
    lesson_parser.set_defaults(func=cmd_lesson)

    backfill_parser = subparsers.add_parser("backfill", help="Generate missing example sentences")
    backfill_parser.add_argument("table", help="Table name (CSV file name without extension)")
    backfill_parser.set_defaults(func=cmd_backfill)

    args = parser.parse_args(argv)

    project_dir = os.path.dirname(os.path.abspath(__file__))
    config_path = os.path.expanduser(args.config) if args.config else os.path.join(project_dir, "config.json")
    cfg_mgr = ConfigManager(config_path)
    cfg_mgr.ensure_config()

    verbose = args.verbose and not args.quiet
    show_progress = not args.quiet

    def log(msg: str):
        if verbose:
            print(f"  {msg}")

    sys.exit(args.func(args, cfg_mgr, log, show_progress, verbose))


if __name__ == "__main__":
    main()
