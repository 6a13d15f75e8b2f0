"""
CLI entrypoint for file_concatenator package.
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from colorama import Fore

from . import __version__
from .config import DEFAULT_BUFFER_SIZE, DEFAULT_COMMENT_STYLE, Configuration
from .core import (
    FileConcatError,
    PatternMatcher,
    build_tree,
    concatenate_files,
    log,
    select_files,
    walk_directory,
)

EPILOG = """examples:
  # Concatenate all .ts files, excluding those in node_modules
  file_concatenator -d ./src -o output.txt -p '**/*.ts' -p '!**/node_modules/**'

  # Concatenate all files, limit depth to 2, and write tree
  file_concatenator -d ./project -o output.txt --max-depth 2 --write-tree

  # Use custom comment style and buffer size
  file_concatenator -d ./docs -o output.md -p '**/*.md' --comment-style '<!--' --buffer-size 16384
"""


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="file_concatenator",
        description="Concatenate the files of a directory tree into a single file.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("-d", "--directory", type=Path, required=True, help="Search root")
    p.add_argument("-o", "--output", type=Path, required=True, help="Output file")
    p.add_argument(
        "-p",
        "--pattern",
        action="append",
        metavar="GLOB",
        help="Pattern to include, or exclude with a leading '!'. "
        "Repeatable; comma-separated values are split",
    )
    p.add_argument(
        "--config",
        type=Path,
        help="Path to a file with extra patterns (one per line)",
    )
    p.add_argument("--max-depth", type=int, help="Maximum directory depth to descend into")
    p.add_argument(
        "--write-tree",
        action="store_true",
        help="Write the directory tree at the top of the output file",
    )
    p.add_argument(
        "--write-filenames",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Write each file's relative path as a comment (default: on)",
    )
    p.add_argument(
        "--comment-style",
        default=DEFAULT_COMMENT_STYLE,
        help=f"Comment delimiter for file headers (default: {DEFAULT_COMMENT_STYLE})",
    )
    p.add_argument(
        "--buffer-size",
        type=int,
        default=DEFAULT_BUFFER_SIZE,
        help=f"I/O buffer size in bytes (default: {DEFAULT_BUFFER_SIZE})",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def run(config: Configuration) -> None:
    """Walk, filter and concatenate according to *config*."""
    matcher = PatternMatcher(config.patterns)

    if config.verbose:
        log(f"Scanning {config.directory} …")

    entries = list(
        walk_directory(config.directory, config.max_depth, exclude=config.output)
    )
    tree = build_tree(entries, config.directory.name) if config.write_tree else None
    selected = select_files(entries, matcher)

    if config.verbose:
        n_files = sum(1 for e in entries if not e.is_dir)
        log(f"{n_files} files found, {len(selected)} kept after filtering.")

    result = concatenate_files(
        selected,
        config.output,
        comment_style=config.comment_style,
        write_filenames=config.write_filenames,
        tree=tree,
        buffer_size=config.buffer_size,
        verbose=config.verbose,
    )

    if config.verbose:
        log(
            f"Done → {config.output}. "
            f"{result.files_written} files, {result.bytes_written} bytes written.",
            Fore.GREEN,
        )


def main(argv: Optional[List[str]] = None) -> None:
    try:
        ns = _parse_args(argv)
        try:
            config = Configuration.from_namespace(ns)
            run(config)
        except FileConcatError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
