# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Installed-ROM verification.

Checks, in order:
- the directory hash matches `_hash`,
- `_meta` decodes and names valid ids,
- `_sig` (when present) verifies against the caller's key, or the bundled `_key`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from romkit.errors import IntegrityError, RomError
from romkit.hashing import hash_dir
from romkit.layout import HASH, KEY, META, SIG
from romkit.meta import Meta, decode_meta
from romkit.signing import verify_digest

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifyReport:
	rom_path: Path
	meta: Meta
	hash_hex: str
	signed: bool

	def to_dict(self) -> dict[str, Any]:
		return {
			"rom_path": str(self.rom_path),
			"author_id": self.meta.author_id,
			"app_id": self.meta.app_id,
			"version": self.meta.version,
			"hash": self.hash_hex,
			"signed": self.signed,
		}


def _read_meta(rom_path: Path) -> Meta:
	meta_path = rom_path / META
	if not meta_path.is_file():
		raise IntegrityError(f"the ROM has no {META} file", path=str(rom_path))
	try:
		meta = decode_meta(meta_path.read_bytes())
		meta.validate()
	except RomError as err:
		raise err.with_path(meta_path) from err
	return meta


def verify_rom(rom_path: Path, public_key: bytes | None = None, *, require_signature: bool = False) -> VerifyReport:
	if not rom_path.is_dir():
		raise FileNotFoundError(f"ROM not found: {rom_path}")
	hash_path = rom_path / HASH
	if not hash_path.is_file():
		raise IntegrityError(f"the ROM has no {HASH} file", path=str(rom_path))
	expected = hash_path.read_bytes()
	actual = hash_dir(rom_path)
	if expected != actual:
		raise IntegrityError(
			"ROM hash mismatch",
			path=str(rom_path),
			sha256_expected=expected.hex(),
			sha256_got=actual.hex(),
		)

	meta = _read_meta(rom_path)

	sig_path = rom_path / SIG
	if not sig_path.is_file():
		if require_signature:
			raise IntegrityError("the ROM is not signed", path=str(rom_path))
		log.warning("%s.%s is not signed", meta.author_id, meta.app_id)
		return VerifyReport(rom_path=rom_path, meta=meta, hash_hex=actual.hex(), signed=False)

	if public_key is None:
		key_path = rom_path / KEY
		if not key_path.is_file():
			raise IntegrityError("the ROM is signed but no public key is available", path=str(rom_path))
		public_key = key_path.read_bytes()
	if not verify_digest(actual, sig_path.read_bytes(), public_key):
		raise IntegrityError("invalid ROM signature", path=str(sig_path))
	log.debug("verified %s.%s", meta.author_id, meta.app_id)
	return VerifyReport(rom_path=rom_path, meta=meta, hash_hex=actual.hex(), signed=True)
