"""
Run configuration for file_concatenator.

A :class:`Configuration` is built once from the parsed command line and is
read-only afterwards.  :meth:`Configuration.validate` checks everything that
can be checked before touching the output file, so that configuration
mistakes are reported before any I/O happens.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .core import ConfigError, ConfigFileError

DEFAULT_COMMENT_STYLE = "//"
DEFAULT_BUFFER_SIZE = 8192


def split_patterns(values: Iterable[str]) -> List[str]:
    """Flatten ``--pattern`` values, splitting comma-separated entries."""
    patterns: List[str] = []
    for value in values:
        patterns.extend(part.strip() for part in value.split(",") if part.strip())
    return patterns


def load_extra_patterns(config_path: Path) -> List[str]:
    """Read newline-separated patterns from *config_path*.

    Blank lines and lines starting with ``#`` are ignored.  The order of the
    remaining lines is preserved because later patterns override earlier ones.
    """
    if not config_path.exists():
        raise ConfigFileError(f"Config file '{config_path}' does not exist")
    if not config_path.is_file():
        raise ConfigFileError(f"'{config_path}' is not a file")
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            return [
                ln.strip()
                for ln in fh
                if ln.strip() and not ln.lstrip().startswith("#")
            ]
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFileError(f"Could not read config file '{config_path}': {e}")


@dataclass(frozen=True)
class Configuration:
    """Settings for a single concatenation run.

    Attributes
    ----------
    directory: Path
        Search root.
    output: Path
        Destination file; created or truncated.
    patterns: Tuple[str, ...]
        Ordered glob patterns, ``!``-prefixed ones exclude.
    max_depth: Optional[int]
        Number of directory levels below the root to descend into.
        ``None`` means unlimited, ``0`` means the root's own files only.
    comment_style: str
        Delimiter placed before each file's relative path in its header.
    write_filenames: bool
        Emit a header line before every file.
    write_tree: bool
        Prepend the rendered directory tree.
    buffer_size: int
        Size in bytes of the copy buffer and of the output buffer.
    """

    directory: Path
    output: Path
    patterns: Tuple[str, ...] = ()
    max_depth: Optional[int] = None
    comment_style: str = DEFAULT_COMMENT_STYLE
    write_filenames: bool = True
    write_tree: bool = False
    buffer_size: int = DEFAULT_BUFFER_SIZE
    verbose: bool = False

    @staticmethod
    def from_namespace(ns: argparse.Namespace) -> "Configuration":
        """Build a validated configuration from parsed CLI arguments."""
        patterns = split_patterns(ns.pattern or [])
        if ns.config:
            patterns.extend(load_extra_patterns(ns.config.resolve()))
        config = Configuration(
            directory=ns.directory.resolve(),
            output=ns.output.resolve(),
            patterns=tuple(patterns),
            max_depth=ns.max_depth,
            comment_style=ns.comment_style,
            write_filenames=ns.write_filenames,
            write_tree=ns.write_tree,
            buffer_size=ns.buffer_size,
            verbose=ns.verbose,
        )
        config.validate()
        return config

    def validate(self) -> None:
        if self.max_depth is not None and self.max_depth < 0:
            raise ConfigError(f"--max-depth must be >= 0, got {self.max_depth}")
        if self.buffer_size <= 0:
            raise ConfigError(f"--buffer-size must be > 0, got {self.buffer_size}")
        if self.write_filenames and not self.comment_style:
            raise ConfigError("--comment-style must not be empty")
        if self.output.exists() and self.output.is_dir():
            raise ConfigError(f"Output path '{self.output}' is a directory")
