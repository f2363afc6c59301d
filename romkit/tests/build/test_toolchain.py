# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import logging
from pathlib import Path

import pytest

from romkit import toolchain
from romkit.errors import ToolchainError
from romkit.vfs import get_vfs_path, init_vfs, rom_dir


@pytest.mark.parametrize(
	("marker", "lang"),
	[("go.mod", "go"), ("Cargo.toml", "rust"), ("main.c", "c"), ("src/main.cpp", "cpp"), ("build.zig", "zig")],
)
def test_detect_lang(tmp_path: Path, marker: str, lang: str) -> None:
	(tmp_path / marker).parent.mkdir(parents=True, exist_ok=True)
	(tmp_path / marker).write_text("", encoding="utf-8")
	assert toolchain.detect_lang(tmp_path) == lang


def test_detect_lang_fails(tmp_path: Path) -> None:
	with pytest.raises(ToolchainError, match="detect"):
		toolchain.detect_lang(tmp_path)


def test_missing_compiler(make_project, project_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
	monkeypatch.setattr(toolchain.shutil, "which", lambda name: None)
	with pytest.raises(ToolchainError, match="tinygo"):
		toolchain.compile_project(make_project(lang="go"), project_root / "_bin")


def test_unknown_language(make_project, project_root: Path) -> None:
	with pytest.raises(ToolchainError, match="unknown language 'cobol'; supported languages: go, rust, c, cpp"):
		toolchain.compile_project(make_project(lang="cobol"), project_root / "_bin")


@pytest.mark.parametrize(
	("marker", "name"),
	[("build.zig", "Zig"), ("package.json", "TypeScript"), ("pyproject.toml", "Python")],
)
def test_detected_language_without_driver(make_project, project_root: Path, marker: str, name: str) -> None:
	(project_root / marker).write_text("", encoding="utf-8")
	with pytest.raises(ToolchainError, match=f"looks like a {name} project, but romkit cannot build {name} apps") as excinfo:
		toolchain.compile_project(make_project(), project_root / "_bin")
	assert excinfo.value.field == "lang"
	assert excinfo.value.path == str(project_root)


def test_optimize_without_wasm_opt(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
	monkeypatch.setattr(toolchain.shutil, "which", lambda name: None)
	with caplog.at_level(logging.WARNING):
		assert not toolchain.optimize(tmp_path / "_bin", strip=True)
	assert "wasm-opt not installed" in caplog.text


def test_vfs_path_prefers_local_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
	monkeypatch.chdir(tmp_path)
	monkeypatch.setenv("FIREFLY_VFS", str(tmp_path / "env"))
	assert get_vfs_path() == tmp_path / "env"
	(tmp_path / ".firefly").mkdir()
	assert get_vfs_path() == tmp_path / ".firefly"


def test_init_vfs(tmp_path: Path) -> None:
	init_vfs(tmp_path)
	init_vfs(tmp_path)
	for sub in ("roms", "sys/pub", "sys/priv", "data"):
		assert (tmp_path / sub).is_dir()
	assert rom_dir(tmp_path, "demo", "hello") == tmp_path / "roms" / "demo" / "hello"
