"""
File Concatenator - join the files of a directory tree into one output file.

This package walks a directory tree, selects files with glob-style
include/exclude patterns, and writes them into a single file, optionally
preceded by a rendered directory tree and a comment line per file naming
its relative path.
"""

__version__ = "0.1.0"
__author__ = "File Concatenator Team"
