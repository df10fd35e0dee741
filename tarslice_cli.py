# -*- coding: utf-8 -*-
"""
tarslice_cli.py

Command Line Interface (CLI) for reading files and directories out of tar
archives without unpacking them.

Uses the tarslice module to print a single entry, stream a whole directory as
one concatenated blob, or list the entries of an archive.
"""

import argparse
import sys
from tarslice import (
    CHUNK_SIZE,
    SUPPORTED_FORMATS,
    CloseError,
    CodecConstructionError,
    ContainerScanError,
    EntryScanner,
    FileNotFoundInArchiveError,
    ResourceOpenError,
    TarSliceError,
    UnsupportedFormatError,
    open_archive,
    open_dir_reader,
    read_file_from_tar,
)


def _open_output(path):
    if path is None or path == "-":
        return sys.stdout.buffer, False
    return open(path, "wb"), True


def _report_archive_error(archive_file, e):
    """Prints an archive-level error in a consistent form."""
    if isinstance(e, ResourceOpenError):
        print(f'Error: Archive "{archive_file}" could not be opened. {e}', file=sys.stderr)
    elif isinstance(e, UnsupportedFormatError):
        print(f"Error: {e}", file=sys.stderr)
    elif isinstance(e, CodecConstructionError):
        print(f'Error: "{archive_file}" does not match its extension or is corrupted. {e}', file=sys.stderr)
    elif isinstance(e, ContainerScanError):
        print(f'Error: "{archive_file}" is not a valid tar archive or is truncated. {e}', file=sys.stderr)
    elif isinstance(e, CloseError):
        print(f"Error while closing archive: {e}", file=sys.stderr)
    else:
        print(f'Error reading "{archive_file}": {e}', file=sys.stderr)


# --- Command Functions ---


def handle_cat(args):
    """Handles the 'cat' command."""
    try:
        with open_archive(args.archive_file) as archive:
            data = read_file_from_tar(archive, args.name)
    except FileNotFoundInArchiveError as e:
        print(f'Error: Entry "{e.name}" not found in "{args.archive_file}".', file=sys.stderr)
        sys.exit(1)
    except TarSliceError as e:
        _report_archive_error(args.archive_file, e)
        sys.exit(1)

    try:
        out, owned = _open_output(args.output)
        try:
            out.write(data)
            out.flush()
        finally:
            if owned:
                out.close()
    except OSError as e:
        print(f'Error writing "{args.output or "<stdout>"}": {e}', file=sys.stderr)
        sys.exit(1)

    if args.output:
        print(f'Wrote {len(data):,} bytes of "{args.name}" to "{args.output}".', file=sys.stderr)


def handle_cat_dir(args):
    """Handles the 'cat-dir' command."""
    total = 0
    try:
        with open_archive(args.archive_file) as archive, EntryScanner(archive) as scanner:
            with open_dir_reader(scanner, args.directory) as reader:
                out, owned = _open_output(args.output)
                try:
                    while True:
                        chunk = reader.read(CHUNK_SIZE)
                        if not chunk:
                            break
                        out.write(chunk)
                        total += len(chunk)
                    out.flush()
                finally:
                    if owned:
                        out.close()
    except FileNotFoundInArchiveError:
        print(f'Error: Directory "{args.directory}" not found in "{args.archive_file}".', file=sys.stderr)
        sys.exit(1)
    except TarSliceError as e:
        _report_archive_error(args.archive_file, e)
        sys.exit(1)
    except OSError as e:
        print(f'Error writing "{args.output or "<stdout>"}": {e}', file=sys.stderr)
        sys.exit(1)

    if args.output:
        print(f'Wrote {total:,} bytes of "{args.directory}/" to "{args.output}".', file=sys.stderr)


def handle_list(args):
    """Handles the 'list' command."""
    count = 0
    try:
        with open_archive(args.archive_file) as archive, EntryScanner(archive) as scanner:
            if args.long:
                print(f"{'Type':<6} {'Size':>12} {'Name'}")
                print("-" * 40)
            for entry in scanner:
                count += 1
                if args.long:
                    if entry.is_dir():
                        type_str = "Dir"
                    elif entry.is_file():
                        type_str = "File"
                    else:
                        type_str = "Other"
                    print(f"{type_str:<6} {entry.size:>12} {entry.name}")
                else:
                    print(entry.name)
    except TarSliceError as e:
        _report_archive_error(args.archive_file, e)
        sys.exit(1)

    if count == 0:
        print(f'Archive "{args.archive_file}" contains no entries.', file=sys.stderr)


# --- Main Execution ---


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=f"tarslice - Read files and directories out of tar archives ({', '.join(SUPPORTED_FORMATS)}).",
        epilog="Example: tarslice cat-dir backup.tar.xz data -o data.bin",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Available commands")

    # --- Cat Command ---
    parser_cat = subparsers.add_parser("cat", help="Print one file of an archive.")
    parser_cat.add_argument("archive_file", help="Path to the archive.")
    parser_cat.add_argument("name", help="Exact entry name inside the archive.")
    parser_cat.add_argument("-o", "--output", help="Write to this file instead of stdout.")
    parser_cat.set_defaults(func=handle_cat)

    # --- Cat-Dir Command ---
    parser_cat_dir = subparsers.add_parser("cat-dir", help="Print all files directly inside an archive directory as one stream.")
    parser_cat_dir.add_argument("archive_file", help="Path to the archive.")
    parser_cat_dir.add_argument("directory", help="Directory entry inside the archive (subdirectories are not descended into).")
    parser_cat_dir.add_argument("-o", "--output", help="Write to this file instead of stdout.")
    parser_cat_dir.set_defaults(func=handle_cat_dir)

    # --- List Command ---
    parser_list = subparsers.add_parser("list", help="List the entries of an archive.")
    parser_list.add_argument("archive_file", help="Path to the archive.")
    parser_list.add_argument("-l", "--long", action="store_true", help="Show entry type and size.")
    parser_list.set_defaults(func=handle_list)

    return parser


def main(argv=None):
    parser = build_parser()

    # --- Parse Arguments ---
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        parser.print_help(sys.stderr)
        sys.exit(1)
    args = parser.parse_args(argv)

    # --- Execute Command ---
    args.func(args)


if __name__ == "__main__":
    main()
