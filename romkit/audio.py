# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
PCM audio encoding.

Wire layout (little-endian):
  tag(u8 = 0x31), flags(u8), sample_rate(u16), samples...

Flags: bit0 = stereo, bit1 = 16-bit samples, bit2 = compressed (reserved, 0).
Samples keep the channel interleaving of the source file.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import soundfile as sf

from romkit.errors import FormatError

log = logging.getLogger(__name__)

AUDIO_TAG = 0x31
SAMPLE_RATE = 44_100

FLAG_STEREO = 0b001
FLAG_16BIT = 0b010
FLAG_COMPRESSED = 0b100

_HEADER_STRUCT = struct.Struct("<BBH")

# libsndfile subtype -> (float?, bits)
_SUBTYPE_FORMATS: dict[str, tuple[bool, int]] = {
	"PCM_S8": (False, 8),
	"PCM_U8": (False, 8),
	"PCM_16": (False, 16),
	"PCM_24": (False, 24),
	"PCM_32": (False, 32),
	"FLOAT": (True, 32),
	"DOUBLE": (True, 64),
}

I16_MAX = 32767


@dataclass(frozen=True)
class AudioStream:
	channels: int
	sixteen_bit: bool
	sample_rate: int
	samples: bytes

	@property
	def flags(self) -> int:
		flags = 0
		if self.channels > 1:
			flags |= FLAG_STEREO
		if self.sixteen_bit:
			flags |= FLAG_16BIT
		return flags

	def to_bytes(self) -> bytes:
		return _HEADER_STRUCT.pack(AUDIO_TAG, self.flags, self.sample_rate) + self.samples


def _sample_format(subtype: str, path: Path) -> tuple[bool, int]:
	fmt = _SUBTYPE_FORMATS.get(subtype)
	if fmt is None:
		raise FormatError(f"unsupported sample format: {subtype}", path=str(path))
	return fmt


def read_wav(path: Path) -> AudioStream:
	try:
		info = sf.info(str(path))
	except sf.LibsndfileError as err:
		raise FormatError(f"cannot decode wav file: {err}", path=str(path)) from err
	if info.format not in ("WAV", "WAVEX"):
		raise FormatError(f"expected a wav file, got {info.format}", path=str(path))
	if info.channels > 2:
		raise FormatError(f"wav files must have 1 or 2 channels, not {info.channels}", path=str(path))
	if info.samplerate != SAMPLE_RATE:
		raise FormatError(f"sample rate must be {SAMPLE_RATE} Hz, got {info.samplerate} Hz", path=str(path))

	is_float, bits = _sample_format(info.subtype, path)
	if (is_float, bits) == (False, 8):
		# libsndfile scales integer PCM into the top bits of the requested type.
		data, _ = sf.read(str(path), dtype="int16", always_2d=True)
		samples = (data >> 8).astype("<i1")
	elif (is_float, bits) == (False, 16):
		data, _ = sf.read(str(path), dtype="int16", always_2d=True)
		samples = data.astype("<i2")
	elif (is_float, bits) == (True, 32):
		data, _ = sf.read(str(path), dtype="float32", always_2d=True)
		scaled = np.trunc(np.nan_to_num(data, nan=0.0) * np.float32(I16_MAX))
		samples = np.clip(scaled, -32768, I16_MAX).astype("<i2")
	else:
		letter = "f" if is_float else "i"
		raise FormatError(f"unsupported sample format: {letter}{bits}", path=str(path))

	return AudioStream(
		channels=info.channels,
		sixteen_bit=bits > 8,
		sample_rate=SAMPLE_RATE,
		samples=np.ascontiguousarray(samples).tobytes(order="C"),
	)


def convert_wav(input_path: Path, output_path: Path) -> AudioStream:
	"""Convert a PCM wav file; nothing is written unless the input is accepted."""
	stream = read_wav(input_path)
	output_path.write_bytes(stream.to_bytes())
	log.debug(
		"converted audio %s: %d channel(s), %d-bit",
		input_path,
		stream.channels,
		16 if stream.sixteen_bit else 8,
	)
	return stream
