# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Color palettes.

A palette has exactly 16 slots; each slot is an `Rgb` color or `None` (unused).
Built-in palettes are module-level tuples and never change at runtime. Images
are validated against one of them (the "system palette") when converted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from romkit.errors import ValidationError

PALETTE_SIZE = 16


@dataclass(frozen=True)
class Rgb:
	r: int
	g: int
	b: int

	@classmethod
	def from_int(cls, raw: int) -> Rgb:
		return cls((raw >> 16) & 0xFF, (raw >> 8) & 0xFF, raw & 0xFF)

	def hex(self) -> str:
		return f"#{self.r:02X}{self.g:02X}{self.b:02X}"


@dataclass(frozen=True)
class Transparent:
	"""The color of any pixel with alpha below the opacity threshold."""

	def hex(self) -> str:
		return "ALPHA"


TRANSPARENT = Transparent()

# A pixel color as seen by the image converter.
Color = Union[Rgb, Transparent]

Palette = tuple[Optional[Rgb], ...]


def _palette(*colors: int) -> Palette:
	slots = [Rgb.from_int(c) for c in colors]
	slots.extend([None] * (PALETTE_SIZE - len(slots)))
	return tuple(slots)


# https://lospec.com/palette-list/sweetie-16
SWEETIE16: Palette = _palette(
	0x1A1C2C,  # black
	0x5D275D,  # purple
	0xB13E53,  # red
	0xEF7D57,  # orange
	0xFFCD75,  # yellow
	0xA7F070,  # light green
	0x38B764,  # green
	0x257179,  # dark green
	0x29366F,  # dark blue
	0x3B5DC9,  # blue
	0x41A6F6,  # light blue
	0x73EFF7,  # cyan
	0xF4F4F4,  # white
	0x94B0C2,  # light gray
	0x566C86,  # gray
	0x333C57,  # dark gray
)

# https://nerdyteachers.com/PICO-8/Guide/PALETTES
PICO8: Palette = _palette(
	0x000000,  # black
	0x1D2B53,  # dark blue
	0x7E2553,  # dark purple
	0x008751,  # dark green
	0xAB5236,  # brown
	0x5F574F,  # dark gray
	0xC2C3C7,  # light gray
	0xFFF1E8,  # white
	0xFF004D,  # red
	0xFFA300,  # orange
	0xFFEC27,  # yellow
	0x00E436,  # green
	0x29ADFF,  # blue
	0x83769C,  # indigo
	0xFF77A8,  # pink
	0xFFCCAA,  # peach
)

# https://lospec.com/palette-list/kirokaze-gameboy
GAMEBOY: Palette = _palette(
	0x332C50,  # purple
	0x46878F,  # blue
	0x94E344,  # green
	0xE2F3E4,  # white
)

_BUILTIN_ALIASES: dict[str, Palette] = {
	"sweetie16": SWEETIE16,
	"sweetie-16": SWEETIE16,
	"tic80": SWEETIE16,
	"tic-80": SWEETIE16,
	"default": SWEETIE16,
	"pico": PICO8,
	"pico8": PICO8,
	"pico-8": PICO8,
	"gameboy": GAMEBOY,
	"game-boy": GAMEBOY,
	"gb": GAMEBOY,
	"kirokaze": GAMEBOY,
}


def find_color(palette: Palette, color: Rgb) -> int | None:
	"""Return the first slot index holding `color`, or None."""
	for i, slot in enumerate(palette):
		if slot == color:
			return i
	return None


def get_builtin_palette(name: str) -> Palette:
	palette = _BUILTIN_ALIASES.get(name.lower())
	if palette is None:
		raise ValidationError(f"palette {name} not found", field="palette")
	return palette


def get_palette(name: str | None, custom: Mapping[str, Palette] | None = None) -> Palette:
	"""
	Resolve the palette to validate images against.

	No name means the default palette. Project-defined palettes shadow the
	built-in ones of the same name.
	"""
	if name is None:
		return SWEETIE16
	if custom is not None and name in custom:
		return custom[name]
	return get_builtin_palette(name)


def parse_color(raw: Any) -> Rgb:
	if isinstance(raw, bool) or not isinstance(raw, int):
		raise ValidationError(f"color must be an integer like 0xRRGGBB, got {raw!r}", field="palettes")
	if raw < 0 or raw > 0xFFFFFF:
		raise ValidationError(f"the color {raw:#x} is out of range", field="palettes")
	return Rgb.from_int(raw)


def parse_palette(raw: Mapping[str, Any]) -> Palette:
	"""
	Parse one project palette.

	Slots are keyed by 1-based string ids ("1".."16") that must be consecutive.
	"""
	n = len(raw)
	if n > PALETTE_SIZE:
		raise ValidationError("too many colors", field="palettes")
	if n < 2:
		raise ValidationError("too few colors", field="palettes")
	if "0" in raw:
		raise ValidationError("color IDs must start at 1", field="palettes")
	slots: list[Optional[Rgb]] = [None] * PALETTE_SIZE
	for slot_id in range(1, n + 1):
		key = str(slot_id)
		if key not in raw:
			raise ValidationError(f"color IDs must be consecutive but ID {slot_id} is missing", field="palettes")
		slots[slot_id - 1] = parse_color(raw[key])
	return tuple(slots)


def parse_palettes(raws: Mapping[str, Mapping[str, Any]] | None) -> dict[str, Palette]:
	palettes: dict[str, Palette] = {}
	if not raws:
		return palettes
	for name, raw in raws.items():
		if not isinstance(raw, Mapping):
			raise ValidationError(f"palette {name} must be a table", field="palettes")
		try:
			palettes[name] = parse_palette(raw)
		except ValidationError as err:
			raise ValidationError(f"parse {name} palette: {err.message}", field="palettes") from err
	return palettes
