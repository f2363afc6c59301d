# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import logging
import zipfile
from pathlib import Path

from romkit.hashing import list_rom_files

log = logging.getLogger(__name__)

# zip can't store timestamps before 1980; pin every entry to the earliest one.
_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)


def default_archive_name(author_id: str, app_id: str) -> str:
	return f"{author_id}.{app_id}.zip"


def export_rom(rom_path: Path, out_path: Path) -> list[str]:
	"""
	Pack an installed ROM into a zip archive.

	Entries are stored flat, in hashing order, with a fixed timestamp, so
	exporting the same ROM twice gives byte-identical archives. Returns the
	archived names.
	"""
	if not rom_path.is_dir():
		raise FileNotFoundError(f"ROM not found: {rom_path}")
	names = list_rom_files(rom_path)
	out_path.parent.mkdir(parents=True, exist_ok=True)
	with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
		for name in names:
			info = zipfile.ZipInfo(name, date_time=_FIXED_DATE_TIME)
			info.compress_type = zipfile.ZIP_DEFLATED
			info.external_attr = 0o644 << 16
			archive.writestr(info, (rom_path / name).read_bytes())
	log.info("exported %s to %s", rom_path, out_path)
	return names
