# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Project descriptor (`firefly.toml`).

Example:

	author_id = "demo"
	app_id = "hello"
	author_name = "Demo Author"
	app_name = "Hello"
	version = 3
	palette = "pico8"

	[files.sprite]
	path = "assets/sprite.png"

	[files.font]
	path = "font.fff"
	url = "https://example.com/font.fff"
	sha256 = "..."

	[palettes.mine]
	1 = 0x1a1c2c
	2 = 0xf4f4f4
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from romkit.errors import ValidationError
from romkit.palettes import Palette, parse_palettes

CONFIG_FILE_NAME = "firefly.toml"

_TOP_LEVEL_KEYS = {
	"app_id",
	"author_id",
	"app_name",
	"author_name",
	"version",
	"lang",
	"compile_args",
	"launcher",
	"sudo",
	"palette",
	"palettes",
	"files",
}
_FILE_KEYS = {"path", "url", "sha256", "copy"}


@dataclass(frozen=True)
class FileSpec:
	path: Path
	url: str | None = None
	sha256: str | None = None
	copy: bool = False


@dataclass(frozen=True)
class ProjectDescriptor:
	author_id: str
	app_id: str
	author_name: str
	app_name: str
	launcher: bool = False
	sudo: bool = False
	version: int = 0
	files: dict[str, FileSpec] = field(default_factory=dict)
	root_path: Path = Path(".")
	lang: str | None = None
	compile_args: list[str] = field(default_factory=list)
	palette: str | None = None
	palettes: dict[str, Palette] = field(default_factory=dict)


def _expect(obj: Mapping[str, Any], key: str, typ: type | tuple[type, ...], *, required: bool = False, where: str = "") -> Any:
	value = obj.get(key)
	name = f"{where}{key}"
	if value is None:
		if required:
			raise ValidationError(f"missing required key '{name}'", field=name)
		return None
	# bool is an int subclass; never accept it where a number is expected.
	if isinstance(value, bool) and bool not in (typ if isinstance(typ, tuple) else (typ,)):
		raise ValidationError(f"'{name}' has the wrong type", field=name)
	if not isinstance(value, typ):
		raise ValidationError(f"'{name}' has the wrong type", field=name)
	return value


def _reject_unknown(obj: Mapping[str, Any], allowed: set[str], *, where: str) -> None:
	unknown = sorted(set(obj.keys()) - allowed)
	if unknown:
		raise ValidationError(f"unknown field(s) in {where}: {', '.join(unknown)}", field=unknown[0])


def _parse_file_spec(name: str, raw: Any) -> FileSpec:
	where = f"files.{name}."
	if not isinstance(raw, dict):
		raise ValidationError(f"'files.{name}' must be a table", field=f"files.{name}")
	_reject_unknown(raw, _FILE_KEYS, where=f"files.{name}")
	path = _expect(raw, "path", str, required=True, where=where)
	url = _expect(raw, "url", str, where=where)
	sha256 = _expect(raw, "sha256", str, where=where)
	copy = _expect(raw, "copy", bool, where=where)
	return FileSpec(
		path=Path(path),
		url=url,
		sha256=sha256.lower() if sha256 else None,
		copy=bool(copy),
	)


def parse_project(obj: Mapping[str, Any], *, root_path: Path) -> ProjectDescriptor:
	_reject_unknown(obj, _TOP_LEVEL_KEYS, where="project config")
	files_obj = _expect(obj, "files", dict) or {}
	files = {name: _parse_file_spec(name, raw) for name, raw in files_obj.items()}

	compile_args = _expect(obj, "compile_args", list) or []
	if not all(isinstance(a, str) for a in compile_args):
		raise ValidationError("'compile_args' must be a list of strings", field="compile_args")

	version = _expect(obj, "version", int)
	return ProjectDescriptor(
		author_id=_expect(obj, "author_id", str, required=True),
		app_id=_expect(obj, "app_id", str, required=True),
		author_name=_expect(obj, "author_name", str, required=True),
		app_name=_expect(obj, "app_name", str, required=True),
		launcher=bool(_expect(obj, "launcher", bool)),
		sudo=bool(_expect(obj, "sudo", bool)),
		version=version if version is not None else 0,
		files=files,
		root_path=root_path,
		lang=_expect(obj, "lang", str),
		compile_args=list(compile_args),
		palette=_expect(obj, "palette", str),
		palettes=parse_palettes(_expect(obj, "palettes", dict)),
	)


def load_project(root: Path) -> ProjectDescriptor:
	"""Read `<root>/firefly.toml`; asset paths resolve against the absolute root."""
	config_path = root / CONFIG_FILE_NAME
	text = config_path.read_text(encoding="utf-8")
	try:
		obj = tomllib.loads(text)
	except tomllib.TOMLDecodeError as err:
		raise ValidationError(f"parse config: {err}", path=str(config_path)) from err
	try:
		return parse_project(obj, root_path=root.absolute())
	except ValidationError as err:
		raise err.with_path(config_path) from err
