#!/usr/bin/env python
"""Command-line entry point for the Fusen vault engine."""
import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from fusen_vault import __version__
from fusen_vault.config import config
from fusen_vault.exceptions import FusenError
from fusen_vault.observability import configure_logging
from fusen_vault.services.tag_filter import window_label
from fusen_vault.services.vault_service import VaultService


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Fusen sticky-note vault")
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "--notes-dir",
        help="Vault folder holding the note files",
        type=str,
        default=os.environ.get("FUSEN_NOTES_DIR"),
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("FUSEN_LOG_LEVEL", "WARNING"),
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List notes with their metadata")
    sub.add_parser("tags", help="List every tag in use")

    visible = sub.add_parser("visible", help="Notes shown for the given tags")
    visible.add_argument("tags", nargs="*", help="Active tags (none = all notes)")

    create = sub.add_parser("create", help="Create a new note")
    create.add_argument("context", nargs="?", help="Title of the new note")

    archive = sub.add_parser("archive", help="Move a note into the archive")
    archive.add_argument("path", help="Path of the note file")

    imp = sub.add_parser("import", help="Import Markdown files from a folder")
    imp.add_argument("source", help="Folder to import from")

    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.notes_dir:
        config.notes_dir = Path(args.notes_dir)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def run_command(service: VaultService, args) -> int:
    """Execute one parsed sub-command against an opened vault."""
    if args.command == "list":
        _print_json(
            [
                {**r.model_dump(by_alias=True), "window": window_label(r.path)}
                for r in service.list_notes()
            ]
        )
    elif args.command == "tags":
        for tag in service.all_tags():
            print(tag)
    elif args.command == "visible":
        service.set_active_tags(args.tags)
        for path in service.visible_paths():
            print(path)
    elif args.command == "create":
        note = service.create_note(context=args.context)
        print(note.meta.path)
    elif args.command == "archive":
        report = service.archive_note(args.path)
        print(report.archived_path)
        for tag, error in report.link_errors:
            print(f"link for tag '{tag}' failed: {error}", file=sys.stderr)
        return 0 if report.complete else 2
    elif args.command == "import":
        stats = service.import_notes(args.source)
        _print_json(
            {
                "totalFiles": stats.total_files,
                "importedMd": stats.imported_md,
                "importedImages": stats.imported_images,
                "skipped": stats.skipped,
                "errors": stats.errors,
            }
        )
        return 1 if stats.errors else 0
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Run a single vault command."""
    args = parse_args(argv)
    update_config(args)

    log_level = getattr(logging, args.log_level.upper(), logging.WARNING)
    try:
        configure_logging(log_dir=config.log_dir, level=log_level, console=True)
    except OSError as e:
        logging.basicConfig(level=log_level)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")

    logger = logging.getLogger(__name__)
    notes_dir = config.get_notes_dir()
    service = VaultService()
    try:
        service.open_folder(str(notes_dir))
        return run_command(service, args)
    except FusenError as e:
        logger.error(f"{args.command} failed: {e}")
        print(json.dumps(e.to_dict(), ensure_ascii=False), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
