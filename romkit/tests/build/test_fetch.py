# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from romkit.config import FileSpec
from romkit.errors import IntegrityError
from romkit.fetch import ensure_local

BODY = b"font bytes"
BODY_SHA = hashlib.sha256(BODY).hexdigest()


def _fetcher(calls: list[str]):
	def fetch(url: str) -> bytes:
		calls.append(url)
		return BODY

	return fetch


def test_existing_file_is_not_fetched(tmp_path: Path) -> None:
	path = tmp_path / "font.fff"
	path.write_bytes(b"local")
	calls: list[str] = []
	assert not ensure_local(path, FileSpec(path=path, url="https://x/font.fff"), _fetcher(calls))
	assert calls == []
	assert path.read_bytes() == b"local"


def test_missing_file_without_url(tmp_path: Path) -> None:
	with pytest.raises(FileNotFoundError):
		ensure_local(tmp_path / "nope.fff", FileSpec(path=Path("nope.fff")), _fetcher([]))


def test_download_with_matching_hash(tmp_path: Path) -> None:
	path = tmp_path / "assets" / "font.fff"
	calls: list[str] = []
	spec = FileSpec(path=Path("assets/font.fff"), url="https://x/font.fff", sha256=BODY_SHA.upper())
	assert ensure_local(path, spec, _fetcher(calls))
	assert calls == ["https://x/font.fff"]
	assert path.read_bytes() == BODY


def test_download_without_hash(tmp_path: Path) -> None:
	path = tmp_path / "font.fff"
	assert ensure_local(path, FileSpec(path=path, url="https://x/font.fff"), _fetcher([]))
	assert path.read_bytes() == BODY


def test_download_hash_mismatch(tmp_path: Path) -> None:
	path = tmp_path / "font.fff"
	spec = FileSpec(path=path, url="https://x/font.fff", sha256="00" * 32)
	with pytest.raises(IntegrityError) as excinfo:
		ensure_local(path, spec, _fetcher([]))
	assert excinfo.value.sha256_expected == "00" * 32
	assert excinfo.value.sha256_got == BODY_SHA
	assert not path.exists()


def test_network_errors_propagate(tmp_path: Path) -> None:
	def broken(url: str) -> bytes:
		raise OSError("connection refused")

	with pytest.raises(OSError, match="refused"):
		ensure_local(tmp_path / "f.fff", FileSpec(path=Path("f.fff"), url="https://x/f.fff"), broken)
