# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
ROM metadata record (`_meta`).

Byte layout (pinned):
  app_id, app_name, author_id, author_name  : LEB128 length + UTF-8 bytes each
  launcher, sudo                            : one byte each, 0 or 1
  version                                   : LEB128 u32

The runtime reads the same layout; field order is part of the format.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from romkit.errors import FormatError, ValidationError
from romkit.layout import META

if TYPE_CHECKING:
	from romkit.config import ProjectDescriptor

log = logging.getLogger(__name__)

ID_MIN_LEN = 2
ID_MAX_LEN = 16
NAME_MAX_LEN = 40
U32_MAX = 0xFFFF_FFFF


def validate_id(value: str, *, field: str = "id") -> None:
	"""Check an author or app identifier; raise ValidationError naming `field`."""
	if len(value) < ID_MIN_LEN:
		raise ValidationError(f"{field} is too short: must be at least {ID_MIN_LEN} characters", field=field)
	if len(value.encode("utf-8")) > ID_MAX_LEN:
		raise ValidationError(f"{field} is too long: must be at most {ID_MAX_LEN} characters", field=field)
	for ch in value:
		if not ("a" <= ch <= "z" or "0" <= ch <= "9" or ch == "-"):
			raise ValidationError(f"{field} contains invalid character {ch!r}", field=field)
	if value.startswith("-") or value.endswith("-"):
		raise ValidationError(f"{field} must not start or end with '-'", field=field)
	if "--" in value:
		raise ValidationError(f"{field} must not contain '--'", field=field)


def validate_name(value: str, *, field: str = "name") -> None:
	"""Check a human-readable name; raise ValidationError naming `field`."""
	if not value:
		raise ValidationError(f"{field} must not be empty", field=field)
	if len(value.encode("utf-8")) > NAME_MAX_LEN:
		raise ValidationError(f"{field} is too long: must be at most {NAME_MAX_LEN} bytes", field=field)
	for ch in value:
		if not (" " <= ch <= "~"):
			raise ValidationError(f"{field} contains non-printable or non-ASCII character {ch!r}", field=field)


def _encode_uleb(value: int) -> bytes:
	out = bytearray()
	while True:
		byte = value & 0x7F
		value >>= 7
		if value:
			out.append(byte | 0x80)
		else:
			out.append(byte)
			return bytes(out)


class _Reader:
	def __init__(self, data: bytes) -> None:
		self.data = data
		self.pos = 0

	def byte(self) -> int:
		if self.pos >= len(self.data):
			raise FormatError("unexpected end of metadata record")
		b = self.data[self.pos]
		self.pos += 1
		return b

	def uleb(self) -> int:
		result = 0
		shift = 0
		while True:
			b = self.byte()
			result |= (b & 0x7F) << shift
			if not b & 0x80:
				break
			shift += 7
			if shift >= 35:
				raise FormatError("LEB128 value too long in metadata record")
		if result > U32_MAX:
			raise FormatError("LEB128 value out of u32 range in metadata record")
		return result

	def flag(self) -> bool:
		b = self.byte()
		if b > 1:
			raise FormatError(f"invalid boolean byte {b:#04x} in metadata record")
		return b == 1

	def text(self) -> str:
		n = self.uleb()
		end = self.pos + n
		if end > len(self.data):
			raise FormatError("string runs past the end of metadata record")
		raw = self.data[self.pos:end]
		self.pos = end
		try:
			return raw.decode("utf-8")
		except UnicodeDecodeError as err:
			raise FormatError("invalid UTF-8 in metadata record") from err


@dataclass(frozen=True)
class Meta:
	app_id: str
	app_name: str
	author_id: str
	author_name: str
	launcher: bool = False
	sudo: bool = False
	version: int = 0

	def validate(self) -> None:
		validate_id(self.app_id, field="app_id")
		validate_id(self.author_id, field="author_id")
		validate_name(self.app_name, field="app_name")
		validate_name(self.author_name, field="author_name")
		if not 0 <= self.version <= U32_MAX:
			raise ValidationError("version must fit into an unsigned 32-bit integer", field="version")

	def encode(self) -> bytes:
		out = bytearray()
		for text in (self.app_id, self.app_name, self.author_id, self.author_name):
			raw = text.encode("utf-8")
			out += _encode_uleb(len(raw))
			out += raw
		out.append(1 if self.launcher else 0)
		out.append(1 if self.sudo else 0)
		out += _encode_uleb(self.version)
		return bytes(out)


def decode_meta(data: bytes) -> Meta:
	r = _Reader(data)
	app_id = r.text()
	app_name = r.text()
	author_id = r.text()
	author_name = r.text()
	launcher = r.flag()
	sudo = r.flag()
	version = r.uleb()
	if r.pos != len(data):
		raise FormatError(f"{len(data) - r.pos} trailing byte(s) after metadata record")
	return Meta(
		app_id=app_id,
		app_name=app_name,
		author_id=author_id,
		author_name=author_name,
		launcher=launcher,
		sudo=sudo,
		version=version,
	)


def meta_from_project(project: ProjectDescriptor) -> Meta:
	return Meta(
		app_id=project.app_id,
		app_name=project.app_name,
		author_id=project.author_id,
		author_name=project.author_name,
		launcher=project.launcher,
		sudo=project.sudo,
		version=project.version,
	)


def write_meta(project: ProjectDescriptor, rom_path: Path) -> Meta:
	"""Validate the project identity and write the `_meta` record into `rom_path`."""
	meta = meta_from_project(project)
	meta.validate()
	rom_path.mkdir(parents=True, exist_ok=True)
	(rom_path / META).write_bytes(meta.encode())
	log.debug("wrote %s for %s.%s", META, meta.author_id, meta.app_id)
	return meta
