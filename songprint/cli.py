"""Command-line interface for songprint.

Commands:
    analyze      - Fingerprint one audio file into the database
    analyze-dir  - Fingerprint every audio file in a directory (non-recursive)
    recognize    - Identify an audio clip against the database
    stats        - Show database statistics
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from .config import SongprintConfig, load_config
from .database import FingerprintDB
from .exceptions import DatabaseNotFoundError, SongprintError
from .logger import setup_logging
from .pipeline import analyze_directory, analyze_song, recognize_file

logger = logging.getLogger(__name__)


def _db_path(args: argparse.Namespace, config: SongprintConfig) -> Path:
    return args.db if args.db is not None else config.database.path


def _open_or_create(args: argparse.Namespace, config: SongprintConfig) -> FingerprintDB:
    return FingerprintDB.load_or_create(
        _db_path(args, config), config.spectrogram, config.fingerprint
    )


def cmd_analyze(args: argparse.Namespace, config: SongprintConfig) -> int:
    """Fingerprint a single audio file into the database."""
    db_path = _db_path(args, config)
    db = _open_or_create(args, config)

    start = time.time()
    metadata = analyze_song(args.file, db, config.spectrogram, title=args.title)
    db.save(db_path)

    print(f"Added song {metadata.song_id}: {metadata.title} ({time.time() - start:.1f}s)")
    return 0


def cmd_analyze_dir(args: argparse.Namespace, config: SongprintConfig) -> int:
    """Fingerprint every supported file in a directory."""
    db_path = _db_path(args, config)
    db = _open_or_create(args, config)

    report = analyze_directory(args.directory, db, config.spectrogram)
    if report.added:
        db.save(db_path)

    print(f"Added {len(report.added)} song(s), {len(report.failed)} failed")
    for filepath, error in report.failed:
        print(f"  {filepath.name}: ERROR - {error}")

    return 0 if report.ok else 1


def cmd_recognize(args: argparse.Namespace, config: SongprintConfig) -> int:
    """Identify an audio clip."""
    db_path = _db_path(args, config)
    try:
        db = FingerprintDB.load(db_path, config.fingerprint)
    except DatabaseNotFoundError:
        print(f"Error: No database at {db_path}, analyze some songs first", file=sys.stderr)
        return 1

    print(f"Identifying: {args.file}")
    start = time.time()
    result = recognize_file(args.file, db, config.spectrogram)
    elapsed = time.time() - start

    if result is None:
        print("No match found.")
        return 0

    song = db.get_song(result.song_id)
    title = song.title if song else f"<song {result.song_id}>"
    print(f"Found a match in {elapsed:.1f}s:")
    print(f"   Song:       {title} (id {result.song_id})")
    print(f"   Confidence: {result.confidence:.0%}")
    print(f"   Votes:      {result.votes}")
    print(f"   Offset:     {result.time_offset / 1000:.2f}s")
    return 0


def cmd_stats(args: argparse.Namespace, config: SongprintConfig) -> int:
    """Show fingerprint database statistics."""
    db_path = _db_path(args, config)
    try:
        db = FingerprintDB.load(db_path)
    except DatabaseNotFoundError:
        print(f"Error: No database at {db_path}", file=sys.stderr)
        return 1

    stats = db.get_stats()
    print("Songprint Fingerprint Database Statistics")
    print("=" * 40)
    print(f"Songs:                      {stats['songs']:,}")
    print(f"Unique fingerprints:        {stats['unique_fingerprints']:,}")
    print(f"Total fingerprints:         {stats['total_fingerprints']:,}")
    print(f"Avg collisions/fingerprint: {stats['avg_collisions']:.2f}")
    if db.config is not None:
        print(
            f"Spectrogram:                window {db.config.window_size}, "
            f"stride {db.config.stride}, {db.config.sample_rate:g} Hz"
        )
    print()

    for song_id, song in sorted(db.songs.items()):
        print(f"{song_id:<5} {song.title}")

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="songprint",
        description="An audio fingerprinting and song recognizing CLI",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Path to database (default: database.path from config)",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="More logging (DEBUG)",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="count",
        default=0,
        help="Less logging (WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser("analyze", help="Add one audio file to the database")
    analyze_parser.add_argument("file", type=Path, help="Audio file to analyze")
    analyze_parser.add_argument("--title", "-t", help="Catalog title (default: file path)")
    analyze_parser.set_defaults(func=cmd_analyze)

    dir_parser = subparsers.add_parser(
        "analyze-dir", help="Add every audio file in a directory (not recursive)"
    )
    dir_parser.add_argument("directory", type=Path, help="Directory of audio files")
    dir_parser.set_defaults(func=cmd_analyze_dir)

    recognize_parser = subparsers.add_parser("recognize", help="Identify an audio clip")
    recognize_parser.add_argument("file", type=Path, help="Audio clip to identify")
    recognize_parser.set_defaults(func=cmd_recognize)

    stats_parser = subparsers.add_parser("stats", help="Show database statistics")
    stats_parser.set_defaults(func=cmd_stats)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.logging, args.verbose - args.quiet)

    try:
        return args.func(args, config)
    except (SongprintError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
