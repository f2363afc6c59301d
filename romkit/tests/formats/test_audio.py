# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import struct
from pathlib import Path

import numpy as np
import pytest

from romkit.audio import FLAG_16BIT, FLAG_STEREO, convert_wav, read_wav
from romkit.errors import FormatError


def _header(data: bytes) -> tuple[int, int, int]:
	return struct.unpack_from("<BBH", data)


def test_mono_16bit(tmp_path: Path, write_wav) -> None:
	src = write_wav(tmp_path / "a.wav", np.array([0, 1, -1, 32767, -32768], dtype=np.int16))
	out = tmp_path / "a"
	stream = convert_wav(src, out)
	assert stream.channels == 1
	raw = out.read_bytes()
	assert _header(raw) == (0x31, FLAG_16BIT, 44_100)
	assert np.frombuffer(raw[4:], dtype="<i2").tolist() == [0, 1, -1, 32767, -32768]


def test_stereo_keeps_interleaving(tmp_path: Path, write_wav) -> None:
	data = np.array([[1, -1], [2, -2], [3, -3]], dtype=np.int16)
	stream = read_wav(write_wav(tmp_path / "s.wav", data))
	assert stream.flags == FLAG_STEREO | FLAG_16BIT
	assert np.frombuffer(stream.samples, dtype="<i2").tolist() == [1, -1, 2, -2, 3, -3]


def test_8bit_samples_are_signed(tmp_path: Path, write_wav) -> None:
	data = np.array([256, -256, 0, 32767, -32768], dtype=np.int16)
	stream = read_wav(write_wav(tmp_path / "u8.wav", data, subtype="PCM_U8"))
	assert stream.flags == 0
	assert np.frombuffer(stream.samples, dtype="i1").tolist() == [1, -1, 0, 127, -128]


def test_float_samples_are_scaled_and_truncated(tmp_path: Path, write_wav) -> None:
	data = np.array([0.5, -0.5, 1.0, -1.0, 0.0], dtype=np.float32)
	stream = read_wav(write_wav(tmp_path / "f.wav", data, subtype="FLOAT"))
	assert stream.sixteen_bit
	assert np.frombuffer(stream.samples, dtype="<i2").tolist() == [16383, -16383, 32767, -32767, 0]


def test_float_samples_are_clipped(tmp_path: Path, write_wav) -> None:
	data = np.array([2.0, -2.0], dtype=np.float32)
	stream = read_wav(write_wav(tmp_path / "loud.wav", data, subtype="FLOAT"))
	assert np.frombuffer(stream.samples, dtype="<i2").tolist() == [32767, -32768]


def test_wrong_sample_rate(tmp_path: Path, write_wav) -> None:
	src = write_wav(tmp_path / "slow.wav", np.zeros(4, dtype=np.int16), samplerate=22_050)
	out = tmp_path / "slow"
	with pytest.raises(FormatError, match="44100"):
		convert_wav(src, out)
	assert not out.exists()


def test_too_many_channels(tmp_path: Path, write_wav) -> None:
	src = write_wav(tmp_path / "surround.wav", np.zeros((4, 3), dtype=np.int16))
	with pytest.raises(FormatError, match="channels"):
		read_wav(src)


def test_unsupported_bit_depth(tmp_path: Path, write_wav) -> None:
	src = write_wav(tmp_path / "deep.wav", np.zeros(4, dtype=np.int32), subtype="PCM_24")
	with pytest.raises(FormatError, match="i24") as excinfo:
		read_wav(src)
	assert excinfo.value.path == str(src)


def test_not_a_wav(tmp_path: Path) -> None:
	src = tmp_path / "noise.wav"
	src.write_bytes(b"RIFF\x00\x00")
	with pytest.raises(FormatError):
		read_wav(src)
