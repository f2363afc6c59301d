# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import logging
import urllib.request
from pathlib import Path
from typing import Callable

from romkit.config import FileSpec
from romkit.errors import IntegrityError
from romkit.hashing import sha256_hex

log = logging.getLogger(__name__)

FETCH_TIMEOUT = 30.0

Fetcher = Callable[[str], bytes]


def http_get(url: str) -> bytes:
	"""GET `url` and return the body. Network errors propagate as URLError/OSError."""
	req = urllib.request.Request(url, headers={"User-Agent": "romkit"})
	with urllib.request.urlopen(req, timeout=FETCH_TIMEOUT) as resp:
		return resp.read()


def ensure_local(input_path: Path, spec: FileSpec, fetch: Fetcher = http_get) -> bool:
	"""
	Make sure the asset source exists locally.

	If the file is missing, download it from `spec.url` and check it against
	`spec.sha256` when given. Returns True if a download happened.
	"""
	if input_path.exists():
		return False
	if spec.url is None:
		raise FileNotFoundError(f"file does not exist and no url specified: {input_path}")

	log.info("downloading %s", spec.url)
	data = fetch(spec.url)
	if spec.sha256 is not None:
		actual = sha256_hex(data)
		if actual != spec.sha256.lower():
			raise IntegrityError(
				"sha256 hash mismatch for downloaded file",
				path=str(input_path),
				sha256_expected=spec.sha256,
				sha256_got=actual,
			)
	input_path.parent.mkdir(parents=True, exist_ok=True)
	input_path.write_bytes(data)
	return True
