# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
ROM directory hash.

One SHA-256 over every hashed file, in byte-wise sorted name order:
  for each file: 0x00, name bytes, 0x00, file bytes

The zero bytes keep name/content boundaries unambiguous ("ab"+"c" differs
from "a"+"bc"). `_hash` and `_sig` are excluded since they are derived from
the digest.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

from romkit.errors import ValidationError
from romkit.layout import HASH, UNHASHED_NAMES

_CHUNK_SIZE = 64 * 1024


def sha256_hex(data: bytes) -> str:
	return hashlib.sha256(data).hexdigest()


def list_rom_files(rom_path: Path) -> list[str]:
	"""Return file names in hashing order; reject anything but regular files."""
	names: list[str] = []
	with os.scandir(rom_path) as entries:
		for entry in entries:
			if not entry.is_file(follow_symlinks=False):
				raise ValidationError("ROM directory must contain only regular files", path=entry.path)
			names.append(entry.name)
	names.sort(key=os.fsencode)
	return names


def hash_dir(rom_path: Path) -> bytes:
	hasher = hashlib.sha256()
	for name in list_rom_files(rom_path):
		if name in UNHASHED_NAMES:
			continue
		hasher.update(b"\x00")
		hasher.update(os.fsencode(name))
		hasher.update(b"\x00")
		with (rom_path / name).open("rb") as f:
			while True:
				chunk = f.read(_CHUNK_SIZE)
				if not chunk:
					break
				hasher.update(chunk)
	return hasher.digest()


def write_hash(rom_path: Path) -> bytes:
	digest = hash_dir(rom_path)
	(rom_path / HASH).write_bytes(digest)
	return digest
