# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Indexed image encoding.

Wire layout (little-endian):
  tag(u8 = 0x21), bpp(u8: 1|2|4), width(u16), transparent(u8),
  remap table (one 4-bit system-palette index per local slot, high nibble first),
  pixel data (row-major, `bpp` bits per pixel, most significant bits first).

The transparent byte is a system-palette index, or 17 when the image has no
transparent pixels.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

from romkit.errors import FormatError, RomError, ValidationError
from romkit.palettes import TRANSPARENT, Color, Palette, Rgb, find_color

log = logging.getLogger(__name__)

IMAGE_TAG = 0x21
NO_TRANSPARENCY = 17
ALPHA_THRESHOLD = 128

_HEADER_STRUCT = struct.Struct("<BBHB")


@dataclass(frozen=True)
class IndexedImage:
	bpp: int
	width: int
	transparent: int | None
	remap: tuple[int, ...]
	pixels: bytes

	def to_bytes(self) -> bytes:
		transparent = NO_TRANSPARENCY if self.transparent is None else self.transparent
		out = bytearray(_HEADER_STRUCT.pack(IMAGE_TAG, self.bpp, self.width, transparent))
		for i in range(0, len(self.remap), 2):
			out.append(((self.remap[i] & 0x0F) << 4) | (self.remap[i + 1] & 0x0F))
		out += self.pixels
		return bytes(out)


def _pixel_colors(img: Image.Image) -> list[Color]:
	raw = img.tobytes()
	colors: list[Color] = []
	for i in range(0, len(raw), 4):
		if raw[i + 3] < ALPHA_THRESHOLD:
			colors.append(TRANSPARENT)
		else:
			colors.append(Rgb(raw[i], raw[i + 1], raw[i + 2]))
	return colors


def _collect_colors(pixels: list[Color], width: int, palette: Palette) -> list[Color]:
	"""Distinct colors in first-seen order; every opaque one must be in `palette`."""
	seen: list[Color] = []
	for i, color in enumerate(pixels):
		if color in seen:
			continue
		if isinstance(color, Rgb) and find_color(palette, color) is None:
			x, y = i % width, i // width
			raise ValidationError(
				f"found a color not present in the color palette: {color.hex()} at ({x}, {y})",
				pixel=(x, y),
			)
		seen.append(color)
	return seen


def _sort_key(palette: Palette, color: Color) -> int:
	idx = find_color(palette, color) if isinstance(color, Rgb) else None
	# Transparency goes after every real slot.
	return len(palette) + 1 if idx is None else idx


def _pick_bpp(n_colors: int) -> int:
	if n_colors <= 2:
		return 1
	if n_colors <= 4:
		return 2
	if n_colors <= 16:
		return 4
	raise ValidationError(f"the image has too many colors: {n_colors}, at most 16 are allowed")


def _pick_transparent(palette: Palette, local: list[Color]) -> int | None:
	"""Pick a system slot the image does not use to stand for transparency."""
	if TRANSPARENT not in local:
		return None
	for i, slot in enumerate(palette):
		if slot is None or slot not in local:
			return i
	raise ValidationError("an image cannot contain all palette colors and transparency")


def encode_image(img: Image.Image, palette: Palette) -> IndexedImage:
	if img.mode != "RGBA":
		img = img.convert("RGBA")
	width, _height = img.size
	if width % 8 != 0:
		raise ValidationError(f"image width must be divisible by 8, got {width}")
	if width > 0xFFFF:
		raise ValidationError(f"the image is too big: width {width} does not fit into 16 bits")

	pixels = _pixel_colors(img)
	local = _collect_colors(pixels, width, palette)
	local.sort(key=lambda c: _sort_key(palette, c))
	bpp = _pick_bpp(len(local))

	first = palette[0]
	if first is None:
		raise ValidationError("the color palette must define its first color", field="palette")
	slots = 1 << bpp
	local.extend([first] * (slots - len(local)))

	transparent = _pick_transparent(palette, local)
	remap: list[int] = []
	for color in local:
		idx = find_color(palette, color) if isinstance(color, Rgb) else transparent
		if idx is None:
			raise ValidationError(f"no palette slot for the color {color.hex()}")
		remap.append(idx)

	per_byte = 8 // bpp
	packed = bytearray()
	byte = 0
	for i, color in enumerate(pixels):
		byte = ((byte << bpp) | local.index(color)) & 0xFF
		if (i + 1) % per_byte == 0:
			packed.append(byte)
			byte = 0

	return IndexedImage(bpp=bpp, width=width, transparent=transparent, remap=tuple(remap), pixels=bytes(packed))


def load_rgba(path: Path) -> Image.Image:
	try:
		with Image.open(path) as img:
			return img.convert("RGBA")
	except (Image.UnidentifiedImageError, Image.DecompressionBombError) as err:
		raise FormatError(f"cannot decode image: {err}", path=str(path)) from err


def convert_image(input_path: Path, output_path: Path, palette: Palette) -> IndexedImage:
	"""Convert a PNG (or any Pillow-readable raster) into the indexed image format."""
	img = load_rgba(input_path)
	try:
		encoded = encode_image(img, palette)
	except RomError as err:
		raise err.with_path(input_path) from err
	output_path.write_bytes(encoded.to_bytes())
	log.debug("converted image %s: %d bpp, width %d", input_path, encoded.bpp, encoded.width)
	return encoded
