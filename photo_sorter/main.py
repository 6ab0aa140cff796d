import argparse
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from tqdm.contrib.logging import logging_redirect_tqdm

from . import config
from .core import MediaIndexer, Syncer, inspect_file
from .exceptions import InputInvalidError, PhotoSorterError
from .metadata.timestamps import ms_to_rfc3339
from .organization.markdown import MarkdownWriter
from .progress import ProgressReporter
from .reporting import IndexReporter, log_index_summary
from .scanning.containers import DirectoryContainer, open_container

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def setup_logging(verbose: bool):
    """Console logging on stderr; stdout is kept for command output."""
    log_level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def add_file_logging(output_root: Path):
    """Keeps a log of the run next to the library it produced."""
    output_root.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(output_root / config.LOG_FILE_NAME, encoding='utf-8')
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    return handler


def _utc_offset(value: str):
    try:
        return config.parse_utc_offset(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        prog="photo-sorter",
        description="Sorts Google Takeout and iCloud photo exports into a dated library",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    # sort
    s = sub.add_parser("sort", help="Sort one or more exports into the output library")
    s.add_argument("--directory", type=Path, required=True, help="Base directory; relative paths resolve against it")
    s.add_argument("--input-takeout", type=Path, default=None, help="Google Takeout export (directory or zip)")
    s.add_argument("--input-icloud", type=Path, default=None, help="iCloud export (directory or zip)")
    s.add_argument("--output", type=Path, default=None, help="Output library root (default: --directory)")
    s.add_argument("--dry-run", action="store_true", help="Simulate actions without modifying disk")
    s.add_argument("--skip-media", action="store_true", help="Do not sync media files")
    s.add_argument("--skip-markdown", action="store_true", help="Do not write markdown sidecars")
    s.add_argument("--skip-albums", action="store_true", help="Do not process albums")
    s.add_argument("--workers", type=int, default=config.DEFAULT_MAX_WORKERS, help="Parallel workers (1 = sequential)")
    s.add_argument("--tz", type=_utc_offset, default=None, help="UTC offset for zip timestamps, e.g. +10:00 (default: local)")
    s.add_argument("--no-set-modified", action="store_true", help="Leave modified times of written media alone")
    s.add_argument("--no-progress", action="store_true", help="Hide progress bars")

    # index
    i = sub.add_parser("index", help="Classify every entry of an export and report counts")
    i.add_argument("path", type=Path, help="Export directory or zip")
    i.add_argument("--report-csv", type=Path, default=None, help="Write one CSV row per entry")
    i.add_argument("--tz", type=_utc_offset, default=None, help="UTC offset for zip timestamps")

    # db
    d = sub.add_parser("db", help="Scan an export into a SQLite index")
    d.add_argument("path", type=Path, help="Export directory or zip")
    d.add_argument("--db", type=Path, default=config.DB_PATH, help=f"SQLite file (default: {config.DB_PATH})")
    d.add_argument("--workers", type=int, default=config.DEFAULT_MAX_WORKERS, help="Parallel workers")
    d.add_argument("--tz", type=_utc_offset, default=None, help="UTC offset for zip timestamps")

    # markdown
    m = sub.add_parser("markdown", help="Print the sidecar markdown for one media file")
    m.add_argument("--input", type=Path, required=True, help="Media file")
    m.add_argument("--output", type=Path, default=None, help="Merge into this markdown file (written only on change)")

    # info
    n = sub.add_parser("info", help="Print everything known about one media file")
    n.add_argument("--input", type=Path, required=True, help="Media file, or an entry path inside --root")
    n.add_argument("--root", type=Path, default=None, help="Export directory or zip holding --input")
    n.add_argument("--tz", type=_utc_offset, default=None, help="UTC offset for zip timestamps")

    return p.parse_args(argv)


def _under(base: Path, path: Path) -> Path:
    return path if path.is_absolute() else base / path


def cmd_sort(args) -> int:
    directory = args.directory.resolve()
    output_root = _under(directory, args.output).resolve() if args.output else directory

    input_paths = [p for p in (args.input_takeout, args.input_icloud) if p is not None]
    if not input_paths:
        logging.error("Nothing to sort: pass --input-takeout and/or --input-icloud")
        return 1

    file_handler = None
    if not args.dry_run:
        file_handler = add_file_logging(output_root)

    logging.info("=== Photo Sorter Started ===")
    logging.info(f"Output: {output_root}")

    containers = []
    try:
        for path in input_paths:
            containers.append(open_container(_under(directory, path), args.tz))

        syncer = Syncer(
            output_root,
            dry_run=args.dry_run,
            skip_media=args.skip_media,
            skip_markdown=args.skip_markdown,
            skip_albums=args.skip_albums,
            max_workers=args.workers,
            set_modified=not args.no_set_modified,
            progress=ProgressReporter(enabled=not args.no_progress),
        )
        with logging_redirect_tqdm(), syncer.progress:
            summary = syncer.sync(containers)
    finally:
        for container in containers:
            container.close()
        if file_handler is not None:
            logging.getLogger().removeHandler(file_handler)
            file_handler.close()

    logging.info(
        f"Media: {summary.media_seen} seen, {summary.media_written} written, "
        f"{summary.media_unchanged} unchanged, {summary.media_skipped} skipped, "
        f"{summary.media_failed} failed; {summary.markdown_written} sidecars written"
    )
    logging.info(
        f"Albums: {summary.albums_found} found, {summary.albums_written} written, "
        f"{summary.albums_rejected} rejected"
    )
    return 0


def cmd_index(args) -> int:
    container = open_container(args.path, args.tz)
    try:
        summary = IndexReporter(container).build(args.report_csv)
    finally:
        container.close()
    log_index_summary(summary)
    return 0


def cmd_db(args) -> int:
    container = open_container(args.path, args.tz)
    try:
        MediaIndexer(args.db).index(container, args.workers)
    finally:
        container.close()
    return 0


def cmd_markdown(args) -> int:
    media = _existing_file(args.input)
    report = inspect_file(media)

    if args.output is None:
        sys.stdout.write(report.markdown)
        return 0

    out = args.output.resolve()
    writer = MarkdownWriter(DirectoryContainer(out.parent))
    if writer.write_sidecar(out.name, [str(args.input)]):
        logging.info(f"Updated {out}")
    else:
        logging.info(f"{out} already up to date")
    sys.stdout.write(writer.read_existing(out.name) or '')
    return 0


def cmd_info(args) -> int:
    if args.root is not None:
        media = args.input
        report = inspect_file(media, args.root, args.tz)
    else:
        media = _existing_file(args.input)
        report = inspect_file(media)
    info = report.info

    print(f"Path:           {media}")
    print(f"Quick type:     {info.quick_type.value}")
    print(f"Accurate type:  {info.accurate_type.value}")
    print(f"Long checksum:  {info.hash_info.long_checksum}")
    print(f"Short checksum: {info.hash_info.short_checksum}")
    print(f"Modified:       {ms_to_rfc3339(info.modified_ms) or '-'}")
    print(f"Created:        {ms_to_rfc3339(info.created_ms) or '-'}")
    _print_section("EXIF", asdict(info.parsed_exif) if info.parsed_exif else None)
    _print_section("MP4", asdict(info.parsed_mp4) if info.parsed_mp4 else None)
    _print_section("Supplemental", asdict(info.supp_info) if info.supp_info else None)
    print(f"Guessed datetime: {ms_to_rfc3339(report.guessed_datetime) or '-'}")
    print(f"Planned path:     {report.derived.media_path}")
    print()
    print(report.markdown, end="")

    if report.exif_tags:
        print()
        print("code   | type      | tag                            | value")
        print("-------+-----------+--------------------------------+------")
        for tag in report.exif_tags:
            print(f"{tag.code} | {tag.type.ljust(9)} | {tag.description.ljust(30)} | {tag.value}")
    return 0


def _print_section(title: str, fields: Optional[dict]):
    if not fields:
        print(f"{title}: -")
        return
    print(f"{title}:")
    for key, value in fields.items():
        print(f"  {key}: {value if value is not None else '-'}")


def _existing_file(path: Path) -> Path:
    if not path.is_file():
        raise InputInvalidError(f"Input file does not exist: {path}")
    return path


COMMANDS = {
    "sort": cmd_sort,
    "index": cmd_index,
    "db": cmd_db,
    "markdown": cmd_markdown,
    "info": cmd_info,
}


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        return COMMANDS[args.command](args)
    except InputInvalidError as e:
        logging.error(f"Invalid input: {e}")
        return 1
    except PhotoSorterError as e:
        logging.error(f"{args.command} failed: {e}")
        return 1
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
