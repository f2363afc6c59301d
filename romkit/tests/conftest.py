# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Callable

import numpy as np
import pytest
import soundfile as sf
from cryptography.hazmat.primitives.asymmetric import rsa
from PIL import Image

from romkit.config import FileSpec, ProjectDescriptor
from romkit.keys import PUBLIC_EXPONENT, KeyStore, private_key_der, public_key_der
from romkit.vfs import init_vfs
from romkit.wasm import MODULE_HEADER, encode_uleb

AUTHOR_ID = "demo"
APP_ID = "hello"

# A type section with a single `() -> ()` function type.
TYPE_SECTION = bytes([1, 4, 1, 0x60, 0, 0])


def custom_section(name: str, payload: bytes) -> bytes:
	body = encode_uleb(len(name)) + name.encode("utf-8") + payload
	return bytes([0]) + encode_uleb(len(body)) + body


@pytest.fixture(scope="session")
def key_pair() -> tuple[bytes, bytes]:
	"""One RSA key pair for the whole session; generating keys is slow."""
	key = rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=2048)
	return private_key_der(key), public_key_der(key.public_key())


@pytest.fixture
def vfs(tmp_path: Path) -> Path:
	path = tmp_path / "vfs"
	init_vfs(path)
	return path


@pytest.fixture
def key_store(vfs: Path, key_pair: tuple[bytes, bytes]) -> KeyStore:
	store = KeyStore(vfs)
	priv, pub = key_pair
	store.priv_path(AUTHOR_ID).write_bytes(priv)
	store.pub_path(AUTHOR_ID).write_bytes(pub)
	return store


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
	root = tmp_path / "project"
	root.mkdir()
	return root


@pytest.fixture
def make_project(project_root: Path) -> Callable[..., ProjectDescriptor]:
	base = ProjectDescriptor(
		author_id=AUTHOR_ID,
		app_id=APP_ID,
		author_name="Demo Author",
		app_name="Hello",
		version=3,
		root_path=project_root,
	)

	def make(files: dict[str, FileSpec] | None = None, **changes: object) -> ProjectDescriptor:
		return replace(base, files=dict(files or {}), **changes)

	return make


@pytest.fixture
def fake_compile() -> Callable[[ProjectDescriptor, Path], None]:
	"""A compiler stand-in that emits a tiny module with debug info attached."""

	def compile_bin(project: ProjectDescriptor, out_path: Path) -> None:
		out_path.write_bytes(MODULE_HEADER + custom_section("name", b"\x00\x01") + TYPE_SECTION)

	return compile_bin


@pytest.fixture
def write_png() -> Callable[[Path, list[list[tuple[int, int, int, int]]]], Path]:
	def write(path: Path, rows: list[list[tuple[int, int, int, int]]]) -> Path:
		height = len(rows)
		width = len(rows[0])
		img = Image.new("RGBA", (width, height))
		img.putdata([px for row in rows for px in row])
		path.parent.mkdir(parents=True, exist_ok=True)
		img.save(path, format="PNG")
		return path

	return write


@pytest.fixture
def write_wav() -> Callable[..., Path]:
	def write(path: Path, data: np.ndarray, *, subtype: str = "PCM_16", samplerate: int = 44_100) -> Path:
		path.parent.mkdir(parents=True, exist_ok=True)
		sf.write(str(path), data, samplerate, subtype=subtype, format="WAV")
		return path

	return write
