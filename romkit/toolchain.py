# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Default compiler driver.

Builds the project's wasm binary with the language's own toolchain and
writes it to the requested output path. The ROM builder treats this as a
replaceable collaborator; anything with the `compile_project` signature works.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from pathlib import Path

from romkit.config import ProjectDescriptor
from romkit.errors import ToolchainError

log = logging.getLogger(__name__)

GETTING_STARTED_URL = "https://docs.fireflyzero.com/dev/getting-started/"
TINYGO_DEFAULT_TARGET = "wasm-unknown"

# Languages detect_lang recognizes but compile_project has no driver for.
_UNBUILDABLE_LANGS = {"zig": "Zig", "ts": "TypeScript", "python": "Python"}
_BUILDABLE_LANGS = ("go", "rust", "c", "cpp")

_WASM_OPT_FEATURES = [
	"--disable-exception-handling",
	"--disable-gc",
	"--enable-bulk-memory",
	"--enable-multivalue",
	"--enable-mutable-globals",
	"--enable-nontrapping-float-to-int",
	"--enable-reference-types",
	"--enable-sign-ext",
	"--enable-simd",
	"--enable-tail-call",
]


def detect_lang(root: Path) -> str:
	checks = [
		("go.mod", "go"),
		("Cargo.toml", "rust"),
		("main.rs", "rust"),
		("build.zig", "zig"),
		("build.zig.zon", "zig"),
		("package.json", "ts"),
		("pyproject.toml", "python"),
		("main.c", "c"),
		("main.cpp", "cpp"),
		("src/main.c", "c"),
		("src/main.cpp", "cpp"),
	]
	for rel, lang in checks:
		if (root / rel).exists():
			return lang
	raise ToolchainError("failed to detect the programming language", path=str(root))


def _check_installed(lang: str, binary: str) -> None:
	if shutil.which(binary) is None:
		raise ToolchainError(
			f"you're trying to build a {lang} app but you don't have {binary} installed; "
			f"follow the getting started guide: {GETTING_STARTED_URL}"
		)


def _run(cmd: list[str], cwd: Path) -> None:
	log.debug("running %s in %s", " ".join(cmd), cwd)
	res = subprocess.run(cmd, cwd=str(cwd), check=False, capture_output=True, text=True)
	if res.stdout:
		sys.stdout.write(res.stdout)
	if res.stderr:
		sys.stderr.write(res.stderr)
	if res.returncode != 0:
		raise ToolchainError(f"{cmd[0]} exited with status code {res.returncode}")


def _build_go(project: ProjectDescriptor, out_path: Path) -> None:
	_check_installed("Go", "tinygo")
	# A project-local target.json wins over the stock wasm target.
	target_json = project.root_path / "target.json"
	target = str(target_json) if target_json.is_file() else TINYGO_DEFAULT_TARGET
	cmd = ["tinygo", "build", "-target", target, "-o", str(out_path), "."]
	_run(cmd + project.compile_args, project.root_path)


def _find_rust_target_dir(root: Path) -> Path:
	for path in [root.resolve(), *root.resolve().parents]:
		if (path / "target").exists():
			return path / "target"
	raise ToolchainError("cannot find Rust's \"target\" output directory", path=str(root))


def _build_rust(project: ProjectDescriptor, out_path: Path) -> None:
	_check_installed("Rust", "cargo")
	root = project.root_path
	name = root.resolve().name
	example = not (root / "Cargo.toml").exists()
	cmd = ["cargo", "build", "--target", "wasm32-unknown-unknown", "--release"]
	if example:
		cmd += ["--example", name]
	_run(cmd + project.compile_args, root)

	release_dir = _find_rust_target_dir(root) / "wasm32-unknown-unknown" / "release"
	for candidate in (release_dir / f"{name}.wasm", release_dir / "examples" / f"{name}.wasm"):
		if candidate.is_file():
			shutil.copyfile(candidate, out_path)
			return
	raise ToolchainError("cannot find wasm binary", path=str(release_dir))


def _build_zig_cc(project: ProjectDescriptor, out_path: Path, lang: str, fname: str) -> None:
	_check_installed(lang, "zig")
	root = project.root_path
	src = root / fname
	if not src.exists():
		src = root / "src" / fname
		if not src.exists():
			raise ToolchainError(f"file {fname} not found", path=str(root))
	cmd = [
		"zig",
		"build-lib",
		"-rdynamic",
		"-dynamic",
		"-target",
		"wasm32-freestanding",
		"-OReleaseSmall",
		str(src),
	]
	_run(cmd + project.compile_args, root)
	produced = root / "main.wasm"
	shutil.copyfile(produced, out_path)
	produced.unlink()


def compile_project(project: ProjectDescriptor, out_path: Path) -> None:
	"""Compile `project` and write the raw wasm binary to `out_path`."""
	lang = (project.lang or detect_lang(project.root_path)).lower()
	if lang == "go":
		_build_go(project, out_path)
	elif lang == "rust":
		_build_rust(project, out_path)
	elif lang == "c":
		_build_zig_cc(project, out_path, "C", "main.c")
	elif lang == "cpp":
		_build_zig_cc(project, out_path, "C++", "main.cpp")
	elif lang in _UNBUILDABLE_LANGS:
		name = _UNBUILDABLE_LANGS[lang]
		raise ToolchainError(
			f"this looks like a {name} project, but romkit cannot build {name} apps; "
			f"supported languages: {', '.join(_BUILDABLE_LANGS)}",
			path=str(project.root_path),
			field="lang",
		)
	else:
		raise ToolchainError(f"unknown language {lang!r}; supported languages: {', '.join(_BUILDABLE_LANGS)}", field="lang")


def optimize(bin_path: Path, *, strip: bool) -> bool:
	"""Run wasm-opt on `bin_path` in place; returns False when it is not installed."""
	if shutil.which("wasm-opt") is None:
		log.warning("wasm-opt not installed, the binary won't be optimized")
		return False
	cmd = ["wasm-opt", "-Oz", *_WASM_OPT_FEATURES]
	if strip:
		cmd += ["--strip-debug", "--strip-dwarf", "--strip-producers"]
	else:
		cmd += ["--debuginfo"]
	cmd += ["-o", str(bin_path), str(bin_path)]
	_run(cmd, bin_path.parent)
	return True
