"""
Core logic for file_concatenator package.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterable, Iterator, List, Optional, Sequence, Tuple

import pathspec
from colorama import Fore, Style, init as colorama_init

colorama_init()

# Exceptions
class FileConcatError(Exception): ...
class ConfigError(FileConcatError): ...
class PatternError(ConfigError): ...
class ConfigFileError(ConfigError): ...
class InvalidRootError(FileConcatError): ...
class OutputError(FileConcatError): ...
class FileReadError(FileConcatError): ...

LOG_PREFIX = "[file_concatenator]"

# Closing delimiters for comment styles that need one
_BLOCK_COMMENT_CLOSERS = {
    "<!--": " -->",
    "/*": " */",
    "(*": " *)",
    "{-": " -}",
}


def to_bytes(text: str) -> bytes:
    """Encode *text* restoring any raw filename bytes carried as surrogates."""
    return text.encode("utf-8", "surrogateescape")


def _check_brackets(pattern: str) -> None:
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if c == "\\":
            i += 2
            continue
        if c == "[":
            j = i + 1
            if j < len(pattern) and pattern[j] in "!^":
                j += 1
            if j < len(pattern) and pattern[j] == "]":
                j += 1
            while j < len(pattern) and pattern[j] != "]":
                j += 1
            if j >= len(pattern):
                raise PatternError(f"Invalid pattern {pattern!r}: unclosed '['")
            i = j
        i += 1


# Console helpers
def log(msg: str, color: Optional[str] = None, file: Optional[IO[str]] = None) -> None:
    # undecodable filename bytes arrive as surrogates; show them escaped
    text = to_bytes(f"{LOG_PREFIX} {msg}").decode("utf-8", "backslashreplace")
    if color:
        text = color + text + Style.RESET_ALL
    print(text, file=file or sys.stdout)


def warn(msg: str) -> None:
    log(msg, Fore.YELLOW, file=sys.stderr)


@dataclass(frozen=True)
class FileEntry:
    """A walked path.  ``depth`` counts the directories between the root and
    the entry, so the root's own children have depth 0."""

    rel_path: str
    path: Path
    is_dir: bool
    depth: int


@dataclass
class ConcatResult:
    files_written: int = 0
    bytes_written: int = 0


# Pattern matching
class PatternMatcher:
    """Ordered include/exclude glob patterns.

    Patterns use gitignore-style wildcards.  A ``!`` prefix turns a pattern
    into an exclusion.  Patterns are applied left to right and the last one
    matching a path decides whether it is included.  Paths matching nothing
    are excluded as soon as one positive pattern is given; with no positive
    pattern every path starts out included.
    """

    def __init__(self, patterns: Sequence[str] = ()) -> None:
        self.patterns: Tuple[str, ...] = tuple(patterns)
        lines: List[str] = []
        for pattern in self.patterns:
            negated = pattern.startswith("!")
            body = pattern[1:] if negated else pattern
            if not body.strip():
                raise PatternError(f"Invalid pattern: {pattern!r}")
            _check_brackets(body)
            # a leading '#' would otherwise turn the pattern into a comment
            if body.startswith("#"):
                body = "\\" + body
            lines.append(("!" if negated else "") + body)

        if not any(not p.startswith("!") for p in self.patterns):
            lines.insert(0, "*")
        try:
            self._spec = pathspec.PathSpec.from_lines("gitwildmatch", lines)
        except ValueError as e:
            raise PatternError(f"Invalid pattern: {e}")

    def matches(self, rel_path: str) -> bool:
        return self._spec.match_file(rel_path)


# Directory walking
def resolve_root(root: Path) -> Path:
    try:
        root = root.resolve()
    except (OSError, RuntimeError) as e:
        raise InvalidRootError(f"Could not resolve root path '{root}': {e}")
    if not root.exists():
        raise InvalidRootError(f"Root directory '{root}' does not exist")
    if not root.is_dir():
        raise InvalidRootError(f"Root path '{root}' is not a directory")
    return root


def walk_directory(
    root: Path,
    max_depth: Optional[int] = None,
    exclude: Optional[Path] = None,
) -> Iterator[FileEntry]:
    """Lazily yield every entry under *root*, sorted by name per directory.

    Directories are yielded before their contents.  Nothing deeper than
    *max_depth* is produced.  Unreadable directories are skipped with a
    warning.  Symlinked directories are listed but not followed.  *exclude*
    (typically the output file) is never yielded.
    """
    root = resolve_root(root)
    return _walk(root, root, 0, max_depth, exclude)


def _walk(
    root: Path,
    directory: Path,
    depth: int,
    max_depth: Optional[int],
    exclude: Optional[Path],
) -> Iterator[FileEntry]:
    try:
        with os.scandir(directory) as it:
            children = sorted(it, key=lambda e: e.name)
    except OSError as e:
        warn(f"! Could not read directory {directory}: {e}")
        return

    for child in children:
        path = Path(child.path)
        if exclude is not None and path == exclude:
            continue
        rel = path.relative_to(root).as_posix()
        try:
            is_link = child.is_symlink()
            is_dir = child.is_dir(follow_symlinks=False)
            is_file = child.is_file()
            link_to_dir = is_link and child.is_dir()
        except OSError as e:
            warn(f"! Could not stat {rel}: {e}")
            continue

        if is_dir:
            yield FileEntry(rel, path, True, depth)
            if max_depth is None or depth < max_depth:
                yield from _walk(root, path, depth + 1, max_depth, exclude)
        elif link_to_dir:
            yield FileEntry(rel, path, True, depth)
        elif is_file:
            yield FileEntry(rel, path, False, depth)
        else:
            warn(f"- Skipping {rel}: not a regular file")


def select_files(entries: Iterable[FileEntry], matcher: PatternMatcher) -> List[FileEntry]:
    """Keep the files (never directories) *matcher* includes, in walk order."""
    return [e for e in entries if not e.is_dir and matcher.matches(e.rel_path)]


# Directory-tree renderer
def build_tree(entries: Iterable[FileEntry], root_label: str) -> str:
    """
    Return an ASCII tree (à la the Unix ``tree`` utility).

    • Works purely from the walked *entries*, so it shows the same structure
      the walker saw, depth limit included, whatever the patterns select.
    • Directories are listed before files and carry a trailing ``/``.
    • Uses ``├──``, ``└──``, ``│   `` connectors.
    """
    tree: dict[str, dict | None] = {}

    for entry in entries:
        *parents, name = entry.rel_path.split("/")
        cur = tree
        for part in parents:
            cur = cur.setdefault(part, {})  # type: ignore[assignment]
        if entry.is_dir:
            cur.setdefault(name, {})
        else:
            cur[name] = None

    lines: List[str] = [f"{root_label}/"]

    def _walk_tree(node: dict | None, prefix: str = "") -> None:
        if node is None:
            return
        items = sorted(node.items(), key=lambda kv: (kv[1] is None, kv[0]))  # dirs first
        for idx, (name, child) in enumerate(items):
            last = idx == len(items) - 1
            connector = "└── " if last else "├── "
            lines.append(f"{prefix}{connector}{name}{'/' if child is not None else ''}")
            _walk_tree(child, prefix + ("    " if last else "│   "))

    _walk_tree(tree)
    return "\n".join(lines)


# Concatenation
def format_header(rel_path: str, comment_style: str) -> bytes:
    closer = _BLOCK_COMMENT_CLOSERS.get(comment_style.strip(), "")
    return to_bytes(f"{comment_style} {rel_path}{closer}\n")


def _copy_file(entry: FileEntry, out_fh: IO[bytes], buffer_size: int) -> Tuple[int, bytes]:
    """Copy *entry* into *out_fh*; return bytes copied and the last byte."""
    copied = 0
    tail = b""
    try:
        src = entry.path.open("rb")
    except OSError as e:
        raise FileReadError(f"Could not read '{entry.rel_path}': {e}")
    with src:
        while True:
            try:
                chunk = src.read(buffer_size)
            except OSError as e:
                raise FileReadError(f"Could not read '{entry.rel_path}': {e}")
            if not chunk:
                break
            out_fh.write(chunk)
            copied += len(chunk)
            tail = chunk[-1:]
    return copied, tail


def concatenate_files(
    entries: Iterable[FileEntry],
    out_path: Path,
    *,
    comment_style: str = "//",
    write_filenames: bool = True,
    tree: Optional[str] = None,
    buffer_size: int = 8192,
    verbose: bool = False,
) -> ConcatResult:
    """Write *tree* (if given) and then every entry's header and bytes to *out_path*."""
    if not out_path.parent.exists():
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputError(f"Could not create directory '{out_path.parent}': {e}")

    try:
        out_fh = out_path.open("wb", buffering=buffer_size)
    except OSError as e:
        raise OutputError(f"Could not open output file '{out_path}': {e}")

    result = ConcatResult()
    try:
        with out_fh:
            if tree is not None:
                out_fh.write(to_bytes(tree) + b"\n\n")
            for entry in entries:
                if write_filenames:
                    out_fh.write(format_header(entry.rel_path, comment_style))
                copied, tail = _copy_file(entry, out_fh, buffer_size)
                if copied and tail != b"\n":
                    out_fh.write(b"\n")
                result.files_written += 1
                result.bytes_written += copied
                if verbose:
                    log(f"+ {entry.rel_path} ({copied} bytes)")
    except OSError as e:
        raise OutputError(f"Could not write to output file '{out_path}': {e}")

    return result
