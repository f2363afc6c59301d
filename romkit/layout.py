# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Fixed file names inside a ROM directory.

Every other name in the directory is an asset declared by the project.
"""

from __future__ import annotations

META = "_meta"
BIN = "_bin"
HASH = "_hash"
SIG = "_sig"
KEY = "_key"

RESERVED_NAMES = frozenset({META, BIN, HASH, SIG, KEY})

# Files that are not covered by the ROM hash (they are derived from it).
UNHASHED_NAMES = frozenset({HASH, SIG})

MAX_FILE_SIZE = 10 * 1024 * 1024
