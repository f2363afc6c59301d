# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
ROM signatures.

Pinned scheme:
- RSA PKCS#1 v1.5 over the ROM hash, with SHA-256 as the declared digest.
- The 32-byte `_hash` contents are signed as an already computed digest
  (no second hashing pass).
- Keys are PKCS#1 DER; the signature is raw bytes, as long as the modulus.
"""

from __future__ import annotations

import logging
from pathlib import Path

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa, utils

from romkit.errors import CryptoError
from romkit.keys import KeyStore
from romkit.layout import HASH, SIG

log = logging.getLogger(__name__)

DIGEST_SIZE = 32


def load_private_key(der: bytes) -> rsa.RSAPrivateKey:
	try:
		key = serialization.load_der_private_key(der, password=None)
	except (ValueError, TypeError, UnsupportedAlgorithm) as err:
		raise CryptoError(f"cannot parse private key: {err}") from err
	if not isinstance(key, rsa.RSAPrivateKey):
		raise CryptoError("private key is not an RSA key")
	return key


def load_public_key(der: bytes) -> rsa.RSAPublicKey:
	try:
		key = serialization.load_der_public_key(der)
	except (ValueError, UnsupportedAlgorithm) as err:
		raise CryptoError(f"cannot parse public key: {err}") from err
	if not isinstance(key, rsa.RSAPublicKey):
		raise CryptoError("public key is not an RSA key")
	return key


def _check_digest(digest: bytes) -> None:
	if len(digest) != DIGEST_SIZE:
		raise CryptoError(f"ROM hash must be {DIGEST_SIZE} bytes, got {len(digest)}")


def sign_digest(digest: bytes, private_der: bytes) -> bytes:
	_check_digest(digest)
	key = load_private_key(private_der)
	try:
		return key.sign(digest, padding.PKCS1v15(), utils.Prehashed(hashes.SHA256()))
	except ValueError as err:
		raise CryptoError(f"sign hash: {err}") from err


def verify_digest(digest: bytes, signature: bytes, public_der: bytes) -> bool:
	"""
	Verify a ROM signature.

	Returns True on success, False on verification failure.
	Raises CryptoError on key decoding errors.
	"""
	_check_digest(digest)
	key = load_public_key(public_der)
	try:
		key.verify(signature, digest, padding.PKCS1v15(), utils.Prehashed(hashes.SHA256()))
		return True
	except InvalidSignature:
		return False


def write_sig(rom_path: Path, author_id: str, key_store: KeyStore) -> bool:
	"""
	Sign `<rom>/_hash` and write `<rom>/_sig`.

	A missing private key is not an error: unsigned ROMs are fine for local
	testing. Returns whether a signature was written.
	"""
	private_der = key_store.private_key(author_id)
	if private_der is None:
		if key_store.public_key(author_id) is None:
			log.warning("no key found for %s, cannot sign ROM", author_id)
		else:
			log.warning("there is only public key for %s, cannot sign ROM", author_id)
		return False

	digest = (rom_path / HASH).read_bytes()
	sig = sign_digest(digest, private_der)
	(rom_path / SIG).write_bytes(sig)
	log.debug("signed ROM for %s (%d-byte signature)", author_id, len(sig))
	return True
