# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
romkit: build, sign, verify and export Firefly Zero ROMs.

Modules:
  meta, images, audio, wasm: per-file encoders written into a ROM
  hashing, signing, keys: ROM digest, RSA signature, author key store
  build: the ROM builder; verify and export work on installed ROMs
  cli: the `romkit` command
"""

__all__ = ["build", "cli", "export", "verify"]
