# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Author key store.

Keys live in the VFS as raw PKCS#1 DER files:
  <vfs>/sys/priv/<author_id>   RSA private key
  <vfs>/sys/pub/<author_id>    RSA public key
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from romkit.errors import ValidationError
from romkit.meta import validate_id

log = logging.getLogger(__name__)

DEFAULT_KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537


def private_key_der(key: rsa.RSAPrivateKey) -> bytes:
	return key.private_bytes(
		encoding=serialization.Encoding.DER,
		format=serialization.PrivateFormat.TraditionalOpenSSL,
		encryption_algorithm=serialization.NoEncryption(),
	)


def public_key_der(key: rsa.RSAPublicKey) -> bytes:
	return key.public_bytes(
		encoding=serialization.Encoding.DER,
		format=serialization.PublicFormat.PKCS1,
	)


@dataclass(frozen=True)
class KeyStore:
	vfs_path: Path

	def pub_path(self, author_id: str) -> Path:
		return self.vfs_path / "sys" / "pub" / author_id

	def priv_path(self, author_id: str) -> Path:
		return self.vfs_path / "sys" / "priv" / author_id

	def public_key(self, author_id: str) -> bytes | None:
		path = self.pub_path(author_id)
		if not path.is_file():
			return None
		return path.read_bytes()

	def private_key(self, author_id: str) -> bytes | None:
		path = self.priv_path(author_id)
		if not path.is_file():
			return None
		return path.read_bytes()

	def generate(self, author_id: str, *, key_size: int = DEFAULT_KEY_SIZE) -> None:
		"""Generate and store a new key pair; refuse to replace existing keys."""
		validate_id(author_id, field="author_id")
		priv_path = self.priv_path(author_id)
		pub_path = self.pub_path(author_id)
		if priv_path.exists():
			raise ValidationError(f"the key pair for {author_id} already exists", path=str(priv_path))
		if pub_path.exists():
			raise ValidationError(f"the public key for {author_id} already exists", path=str(pub_path))

		log.info("generating %d-bit key pair for %s", key_size, author_id)
		key = rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=key_size)
		priv_path.parent.mkdir(parents=True, exist_ok=True)
		pub_path.parent.mkdir(parents=True, exist_ok=True)
		priv_path.write_bytes(private_key_der(key))
		pub_path.write_bytes(public_key_der(key.public_key()))

	def export(self, author_id: str, out_path: Path, *, public: bool) -> None:
		"""Copy one key of the pair to `out_path` and make the copy read-only."""
		if out_path.is_dir():
			raise ValidationError("the output path must be a file, not a directory", path=str(out_path))
		if out_path.exists():
			raise ValidationError("the output path already exists", path=str(out_path))
		key_type = "public" if public else "private"
		raw = self.public_key(author_id) if public else self.private_key(author_id)
		if raw is None:
			raise FileNotFoundError(f"{key_type} key for {author_id} not found")
		out_path.write_bytes(raw)
		mode = os.stat(out_path).st_mode
		os.chmod(out_path, mode & ~(stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH))

	def remove(self, author_id: str) -> tuple[bool, bool]:
		"""Remove the key pair; return which of (private, public) existed."""
		validate_id(author_id, field="author_id")
		found: list[bool] = []
		for path in (self.priv_path(author_id), self.pub_path(author_id)):
			if path.exists():
				path.unlink()
				found.append(True)
			else:
				found.append(False)
		return found[0], found[1]
