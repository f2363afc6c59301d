# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
ROM builder.

Stages run strictly in this order (each one needs the complete output of the
previous ones; the hash covers every file and the signature covers the hash):

	INIT -> META_WRITTEN -> BINARY_BUILT -> ASSETS_CONVERTED -> KEY_COPIED
	     -> HASHED -> SIGNED -> VALIDATED -> DONE

A failed build leaves whatever was written so far; the next build wipes the
ROM directory before writing anything.
"""

from __future__ import annotations

import enum
import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from romkit.audio import convert_wav
from romkit.config import FileSpec, ProjectDescriptor
from romkit.errors import FormatError, ValidationError
from romkit.fetch import Fetcher, ensure_local, http_get
from romkit.hashing import write_hash
from romkit.images import convert_image
from romkit.keys import KeyStore
from romkit.layout import BIN, KEY, MAX_FILE_SIZE, RESERVED_NAMES
from romkit.meta import write_meta
from romkit.palettes import Palette, get_palette
from romkit.signing import write_sig
from romkit.toolchain import compile_project, optimize
from romkit.wasm import strip_custom

log = logging.getLogger(__name__)

# The author_id in the project template.
DEFAULT_AUTHOR_ID = "joearms"

# Already in a runtime format; copied as-is.
NATIVE_EXTENSIONS = frozenset({"fff", "ffi", "ffz"})

Compiler = Callable[[ProjectDescriptor, Path], None]


class BuildStage(enum.Enum):
	INIT = "init"
	META_WRITTEN = "meta_written"
	BINARY_BUILT = "binary_built"
	ASSETS_CONVERTED = "assets_converted"
	KEY_COPIED = "key_copied"
	HASHED = "hashed"
	SIGNED = "signed"
	VALIDATED = "validated"
	DONE = "done"


_STAGE_ORDER = list(BuildStage)


@dataclass
class BuildState:
	stage: BuildStage = BuildStage.INIT

	def advance(self, to: BuildStage) -> None:
		idx = _STAGE_ORDER.index(self.stage)
		if idx + 1 >= len(_STAGE_ORDER) or _STAGE_ORDER[idx + 1] is not to:
			raise RuntimeError(f"invalid build stage transition: {self.stage.value} -> {to.value}")
		self.stage = to
		log.debug("build stage: %s", to.value)


@dataclass(frozen=True)
class BuildOptions:
	project: ProjectDescriptor
	rom_path: Path
	key_store: KeyStore
	compile_bin: Compiler = compile_project
	fetch: Fetcher = http_get
	strip: bool = True
	optimize: bool = False
	jobs: int = 1


@dataclass(frozen=True)
class SizeChange:
	name: str
	old_size: int
	new_size: int

	@property
	def diff(self) -> int:
		return self.new_size - self.old_size

	def to_dict(self) -> dict[str, Any]:
		return {"name": self.name, "old_size": self.old_size, "new_size": self.new_size, "diff": self.diff}


@dataclass(frozen=True)
class BuildReport:
	rom_path: Path
	author_id: str
	app_id: str
	stage: BuildStage
	hash_hex: str
	signed: bool
	sizes: list[SizeChange] = field(default_factory=list)

	def to_dict(self) -> dict[str, Any]:
		return {
			"rom_path": str(self.rom_path),
			"author_id": self.author_id,
			"app_id": self.app_id,
			"stage": self.stage.value,
			"hash": self.hash_hex,
			"signed": self.signed,
			"sizes": [s.to_dict() for s in self.sizes],
		}


def collect_sizes(root: Path) -> dict[str, int]:
	"""Size of every file in `root`; a missing directory has no files."""
	sizes: dict[str, int] = {}
	if not root.is_dir():
		return sizes
	for entry in root.iterdir():
		if entry.is_file():
			sizes[entry.name] = entry.stat().st_size
	return sizes


def check_sizes(sizes: dict[str, int]) -> None:
	for name in sorted(sizes):
		size = sizes[name]
		if size == 0:
			raise ValidationError(f"the file {name} is empty", path=name)
		if size > MAX_FILE_SIZE:
			raise ValidationError(f"the file {name} is too big: {size} bytes, max {MAX_FILE_SIZE}", path=name)


def size_changes(old_sizes: dict[str, int], new_sizes: dict[str, int]) -> list[SizeChange]:
	return [SizeChange(name=name, old_size=old_sizes.get(name, 0), new_size=new_sizes[name]) for name in sorted(new_sizes)]


def format_size(size: int) -> str:
	"""Right-aligned size, in Kb or Mb once it gets big."""
	if size > 1024 * 1024:
		return f"{size // 1024 // 1024:>5} Mb"
	if size > 1024:
		return f"{size // 1024:>5} Kb"
	return f"{size:>8}"


def validate_asset_name(name: str) -> None:
	if name in RESERVED_NAMES:
		raise ValidationError(f"ROM file name \"{name}\" is reserved", field=f"files.{name}")
	if not name or name in (".", "..") or "/" in name or "\\" in name or "\0" in name:
		raise ValidationError(f"ROM file name \"{name}\" is not a valid file name", field=f"files.{name}")


def _recreate_dir(path: Path) -> None:
	if path.is_dir() and not path.is_symlink():
		shutil.rmtree(path)
	elif path.exists() or path.is_symlink():
		path.unlink()
	path.mkdir(parents=True)


def convert_file(name: str, spec: FileSpec, opts: BuildOptions, palette: Palette) -> None:
	"""Fetch (if needed), convert, and write one declared asset into the ROM."""
	validate_asset_name(name)
	input_path = opts.project.root_path / spec.path
	ensure_local(input_path, spec, opts.fetch)
	output_path = opts.rom_path / name
	if spec.copy:
		shutil.copyfile(input_path, output_path)
		return
	ext = input_path.suffix.lower().lstrip(".")
	if not ext:
		raise FormatError(f"cannot detect extension for {input_path.name}", path=str(input_path))
	if ext == "png":
		convert_image(input_path, output_path, palette)
	elif ext == "wav":
		convert_wav(input_path, output_path)
	elif ext in NATIVE_EXTENSIONS:
		shutil.copyfile(input_path, output_path)
	else:
		raise FormatError(f"unknown file extension: {ext}", path=str(input_path))


def _convert_files(opts: BuildOptions, palette: Palette) -> None:
	items = list(opts.project.files.items())
	if opts.jobs <= 1 or len(items) <= 1:
		for name, spec in items:
			convert_file(name, spec, opts, palette)
		return
	with ThreadPoolExecutor(max_workers=opts.jobs) as pool:
		futures = [pool.submit(convert_file, name, spec, opts, palette) for name, spec in items]
	# Every future has finished once the pool is shut down; report the first
	# failure in declaration order.
	for fut in futures:
		fut.result()


def write_key(project: ProjectDescriptor, rom_path: Path, key_store: KeyStore) -> bool:
	"""Copy the author's public key into the ROM; a missing key is reported later by signing."""
	raw = key_store.public_key(project.author_id)
	if raw is None:
		return False
	(rom_path / KEY).write_bytes(raw)
	return True


def build_rom(opts: BuildOptions) -> BuildReport:
	project = opts.project
	rom_path = opts.rom_path
	state = BuildState()
	if project.author_id == DEFAULT_AUTHOR_ID:
		log.warning("author_id has the default value %r; change it before sharing the app", DEFAULT_AUTHOR_ID)
	# Resolve the palette before touching the ROM so a typo fails fast.
	palette = get_palette(project.palette, project.palettes)

	old_sizes = collect_sizes(rom_path)
	_recreate_dir(rom_path)
	write_meta(project, rom_path)
	state.advance(BuildStage.META_WRITTEN)

	bin_path = rom_path / BIN
	opts.compile_bin(project, bin_path)
	if not bin_path.is_file():
		raise FileNotFoundError(f"the compiler did not produce {bin_path}")
	if opts.strip:
		strip_custom(bin_path)
	if opts.optimize:
		optimize(bin_path, strip=opts.strip)
	state.advance(BuildStage.BINARY_BUILT)

	_convert_files(opts, palette)
	state.advance(BuildStage.ASSETS_CONVERTED)

	write_key(project, rom_path, opts.key_store)
	state.advance(BuildStage.KEY_COPIED)

	digest = write_hash(rom_path)
	state.advance(BuildStage.HASHED)

	signed = write_sig(rom_path, project.author_id, opts.key_store)
	state.advance(BuildStage.SIGNED)

	new_sizes = collect_sizes(rom_path)
	check_sizes(new_sizes)
	state.advance(BuildStage.VALIDATED)

	report = BuildReport(
		rom_path=rom_path,
		author_id=project.author_id,
		app_id=project.app_id,
		stage=BuildStage.DONE,
		hash_hex=digest.hex(),
		signed=signed,
		sizes=size_changes(old_sizes, new_sizes),
	)
	state.advance(BuildStage.DONE)
	log.info("installed: %s.%s", project.author_id, project.app_id)
	return report
