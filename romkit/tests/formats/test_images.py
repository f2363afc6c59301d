# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from romkit.errors import FormatError, ValidationError
from romkit.images import NO_TRANSPARENCY, convert_image, encode_image
from romkit.palettes import GAMEBOY, SWEETIE16

BLACK = (0x1A, 0x1C, 0x2C, 255)  # sweetie16 slot 0
PURPLE = (0x5D, 0x27, 0x5D, 255)  # slot 1
RED = (0xB1, 0x3E, 0x53, 255)  # slot 2
WHITE = (0xF4, 0xF4, 0xF4, 255)  # slot 12
CLEAR = (0, 0, 0, 0)


def _image(rows: list[list[tuple[int, int, int, int]]]) -> Image.Image:
	img = Image.new("RGBA", (len(rows[0]), len(rows)))
	img.putdata([px for row in rows for px in row])
	return img


def test_two_colors_use_one_bit() -> None:
	encoded = encode_image(_image([[BLACK, WHITE] * 4]), SWEETIE16)
	assert encoded.bpp == 1
	assert encoded.transparent is None
	assert encoded.remap == (0, 12)
	assert encoded.to_bytes() == bytes([0x21, 1, 8, 0, NO_TRANSPARENCY, 0x0C, 0x55])


def test_three_colors_use_two_bits_and_pad_with_first_color() -> None:
	rows = [[RED, WHITE, PURPLE, RED, RED, RED, RED, RED]]
	encoded = encode_image(_image(rows), SWEETIE16)
	assert encoded.bpp == 2
	# Local slots are ordered by system index; the spare one is the first color.
	assert encoded.remap == (1, 2, 12, 0)
	assert encoded.to_bytes() == bytes([0x21, 2, 8, 0, NO_TRANSPARENCY, 0x12, 0xC0, 0x61, 0x55])


def test_transparency_gets_an_unused_slot() -> None:
	encoded = encode_image(_image([[CLEAR, WHITE] * 4]), SWEETIE16)
	assert encoded.bpp == 1
	assert encoded.transparent == 0
	assert encoded.remap == (12, 0)
	assert encoded.to_bytes() == bytes([0x21, 1, 8, 0, 0, 0xC0, 0xAA])


def test_transparency_can_use_an_undefined_slot() -> None:
	colors = [GAMEBOY[i] for i in range(4)]
	row = [(c.r, c.g, c.b, 255) for c in colors] + [CLEAR] * 4
	encoded = encode_image(_image([row]), GAMEBOY)
	assert encoded.bpp == 4
	assert encoded.transparent == 4
	assert encoded.remap == (0, 1, 2, 3, 4) + (0,) * 11
	assert encoded.pixels == bytes([0x01, 0x23, 0x44, 0x44])


def test_alpha_threshold() -> None:
	almost_clear = (0xF4, 0xF4, 0xF4, 127)
	barely_opaque = (0x1A, 0x1C, 0x2C, 128)
	encoded = encode_image(_image([[almost_clear, barely_opaque] * 4]), SWEETIE16)
	assert encoded.transparent is not None
	# Opaque black sorts before transparency.
	assert encoded.remap[0] == 0
	assert encoded.pixels == bytes([0xAA])


def test_rows_are_packed_in_order() -> None:
	rows = [[BLACK] * 8, [WHITE] * 8]
	encoded = encode_image(_image(rows), SWEETIE16)
	assert encoded.pixels == bytes([0x00, 0xFF])


def test_color_outside_palette_names_the_pixel() -> None:
	rows = [[BLACK] * 8, [BLACK, BLACK, BLACK, (1, 2, 3, 255)] + [BLACK] * 4]
	with pytest.raises(ValidationError) as excinfo:
		encode_image(_image(rows), SWEETIE16)
	err = excinfo.value
	assert err.pixel == (3, 1)
	assert "#010203" in err.message
	assert "(3, 1)" in err.message


def test_width_must_be_divisible_by_eight() -> None:
	with pytest.raises(ValidationError, match="divisible by 8"):
		encode_image(_image([[BLACK] * 7]), SWEETIE16)


def test_all_colors_plus_transparency_is_rejected() -> None:
	row = [(c.r, c.g, c.b, 255) for c in SWEETIE16 if c is not None] + [CLEAR] * 8
	with pytest.raises(ValidationError, match="too many colors"):
		encode_image(_image([row]), SWEETIE16)


def test_sixteen_colors_fit() -> None:
	row = [(c.r, c.g, c.b, 255) for c in SWEETIE16 if c is not None]
	encoded = encode_image(_image([row]), SWEETIE16)
	assert encoded.bpp == 4
	assert encoded.remap == tuple(range(16))
	assert encoded.pixels == bytes([0x01, 0x23, 0x45, 0x67, 0x89, 0xAB, 0xCD, 0xEF])
	assert encoded.transparent is None
	assert encoded.to_bytes()[:5] == bytes([0x21, 4, 16, 0, NO_TRANSPARENCY])


def test_transparency_needs_a_spare_slot() -> None:
	# Slot 15 repeats slot 0, so 15 colors cover every slot.
	palette = SWEETIE16[:15] + (SWEETIE16[0],)
	row = [(c.r, c.g, c.b, 255) for c in palette[:15]] + [CLEAR]
	with pytest.raises(ValidationError, match="all palette colors and transparency"):
		encode_image(_image([row]), palette)


def test_convert_image_writes_file(tmp_path: Path, write_png) -> None:
	src = write_png(tmp_path / "sprite.png", [[BLACK, WHITE] * 4])
	out = tmp_path / "sprite"
	convert_image(src, out, SWEETIE16)
	assert out.read_bytes()[:1] == b"\x21"


def test_convert_image_attaches_source_path(tmp_path: Path, write_png) -> None:
	src = write_png(tmp_path / "bad.png", [[(9, 9, 9, 255)] * 8])
	out = tmp_path / "bad"
	with pytest.raises(ValidationError) as excinfo:
		convert_image(src, out, SWEETIE16)
	assert excinfo.value.path == str(src)
	assert not out.exists()


def test_convert_image_rejects_non_images(tmp_path: Path) -> None:
	src = tmp_path / "fake.png"
	src.write_bytes(b"not a png")
	with pytest.raises(FormatError):
		convert_image(src, tmp_path / "fake", SWEETIE16)
