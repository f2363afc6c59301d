# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Custom-section stripping for WebAssembly binaries.

Handles both core modules and components. A component may embed core modules
(section id 1) and other components (section id 4); those nested binaries are
stripped too and re-wrapped with a freshly encoded length.

Custom sections (id 0) carry DWARF, producer info, names, etc. The runtime
does not use any of it.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path

from romkit.errors import FormatError, RomError

log = logging.getLogger(__name__)

MAGIC = b"\0asm"
HEADER_SIZE = 8

# version(u16), layer(u16) following the magic
_VERSION_STRUCT = struct.Struct("<HH")

MODULE_VERSION = 1
COMPONENT_VERSION = 0x0D
LAYER_MODULE = 0
LAYER_COMPONENT = 1

MODULE_HEADER = MAGIC + _VERSION_STRUCT.pack(MODULE_VERSION, LAYER_MODULE)
COMPONENT_HEADER = MAGIC + _VERSION_STRUCT.pack(COMPONENT_VERSION, LAYER_COMPONENT)

CUSTOM_SECTION = 0
# Section ids that nest a whole binary, valid only inside a component.
COMPONENT_CORE_MODULE_SECTION = 1
COMPONENT_COMPONENT_SECTION = 4


def encode_uleb(value: int) -> bytes:
	out = bytearray()
	while True:
		byte = value & 0x7F
		value >>= 7
		if value:
			out.append(byte | 0x80)
		else:
			out.append(byte)
			return bytes(out)


def read_uleb_u32(data: bytes, pos: int, end: int) -> tuple[int, int]:
	"""Decode an unsigned LEB128 u32 at `pos`; return (value, next_pos)."""
	result = 0
	shift = 0
	while True:
		if pos >= end:
			raise FormatError("unexpected end of binary while reading LEB128")
		b = data[pos]
		pos += 1
		result |= (b & 0x7F) << shift
		if not b & 0x80:
			break
		shift += 7
		if shift >= 35:
			raise FormatError("LEB128 value is too long for u32")
	if result > 0xFFFF_FFFF:
		raise FormatError("LEB128 value is out of u32 range")
	return result, pos


def _read_header(data: bytes, pos: int, end: int) -> bool:
	"""Validate a binary header at `pos`; return True for components."""
	if end - pos < HEADER_SIZE:
		raise FormatError("binary is too short for a wasm header")
	if data[pos:pos + 4] != MAGIC:
		raise FormatError("bad wasm magic bytes")
	version, layer = _VERSION_STRUCT.unpack_from(data, pos + 4)
	if layer == LAYER_MODULE and version == MODULE_VERSION:
		return False
	if layer == LAYER_COMPONENT and version == COMPONENT_VERSION:
		return True
	raise FormatError(f"unsupported wasm version {version:#x} (layer {layer})")


@dataclass
class _Frame:
	"""A container being copied: input cursor plus the output built so far."""

	is_component: bool
	pos: int
	end: int
	out: bytearray = field(default_factory=bytearray)


def strip_custom_bytes(data: bytes) -> bytes:
	"""Return `data` with every custom section removed at any nesting depth."""
	is_component = _read_header(data, 0, len(data))
	cur = _Frame(is_component=is_component, pos=HEADER_SIZE, end=len(data))
	cur.out += COMPONENT_HEADER if is_component else MODULE_HEADER
	stack: list[_Frame] = []
	dropped = 0

	while True:
		if cur.pos >= cur.end:
			if not stack:
				break
			child = cur
			cur = stack.pop()
			section_id = COMPONENT_COMPONENT_SECTION if child.is_component else COMPONENT_CORE_MODULE_SECTION
			cur.out.append(section_id)
			cur.out += encode_uleb(len(child.out))
			cur.out += child.out
			continue

		section_start = cur.pos
		section_id = data[cur.pos]
		size, payload_start = read_uleb_u32(data, cur.pos + 1, cur.end)
		payload_end = payload_start + size
		if payload_end > cur.end:
			raise FormatError(f"section {section_id} at offset {section_start} runs past the end of its container")
		cur.pos = payload_end

		if section_id == CUSTOM_SECTION:
			dropped += 1
			continue
		if cur.is_component and section_id in (COMPONENT_CORE_MODULE_SECTION, COMPONENT_COMPONENT_SECTION):
			child_is_component = _read_header(data, payload_start, payload_end)
			stack.append(cur)
			cur = _Frame(is_component=child_is_component, pos=payload_start + HEADER_SIZE, end=payload_end)
			cur.out += COMPONENT_HEADER if child_is_component else MODULE_HEADER
			continue

		cur.out.append(section_id)
		cur.out += encode_uleb(size)
		cur.out += data[payload_start:payload_end]

	log.debug("dropped %d custom section(s)", dropped)
	return bytes(cur.out)


def strip_custom(bin_path: Path) -> None:
	"""Strip custom sections from the wasm file at `bin_path`, in place."""
	data = bin_path.read_bytes()
	try:
		stripped = strip_custom_bytes(data)
	except RomError as err:
		raise err.with_path(bin_path) from err
	bin_path.write_bytes(stripped)
	log.debug("stripped %s: %d -> %d bytes", bin_path, len(data), len(stripped))
