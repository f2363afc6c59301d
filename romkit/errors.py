# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, ClassVar


@dataclass(frozen=True)
class RomError(Exception):
	"""
	A structured, serializable error for ROM tooling.

	Subclasses only pin `reason_code`; the context fields are shared so that the
	CLI can render any failure the same way (human or JSON).
	"""

	message: str
	path: str | None = None
	field: str | None = None
	pixel: tuple[int, int] | None = None
	sha256_expected: str | None = None
	sha256_got: str | None = None

	reason_code: ClassVar[str] = "ROM_ERROR"

	def __str__(self) -> str:
		return self.format_human()

	def with_path(self, path: Path | str) -> RomError:
		"""Return a copy of the error attributed to `path` (kept if already set)."""
		if self.path is not None:
			return self
		return replace(self, path=str(path))

	def to_dict(self) -> dict[str, Any]:
		return {
			"reason_code": self.reason_code,
			"message": self.message,
			"path": self.path,
			"field": self.field,
			"pixel": list(self.pixel) if self.pixel is not None else None,
			"sha256_expected": self.sha256_expected,
			"sha256_got": self.sha256_got,
		}

	def format_human(self) -> str:
		parts: list[str] = [f"[{self.reason_code}] {self.message}"]
		if self.field:
			parts.append(f"field={self.field}")
		if self.pixel is not None:
			parts.append(f"pixel=({self.pixel[0]}, {self.pixel[1]})")
		if self.path:
			parts.append(f"path={self.path}")
		if self.sha256_expected or self.sha256_got:
			parts.append(f"sha256_expected={self.sha256_expected}")
			parts.append(f"sha256_got={self.sha256_got}")
		return " ".join(parts)


class ValidationError(RomError):
	"""Bad identifier, name, palette, size, or reserved-name collision."""

	reason_code = "VALIDATION"


class FormatError(RomError):
	"""Unsupported codec, malformed container, or unknown file type."""

	reason_code = "FORMAT"


class IntegrityError(RomError):
	"""Content hash or signature does not match."""

	reason_code = "INTEGRITY"


class CryptoError(RomError):
	"""Key parsing or signing failed."""

	reason_code = "CRYPTO"


class ToolchainError(RomError):
	"""The external compiler is missing or failed."""

	reason_code = "TOOLCHAIN"
