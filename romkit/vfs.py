# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Virtual filesystem layout shared with the emulator:

	<vfs>/roms/<author_id>/<app_id>/   installed ROMs
	<vfs>/sys/pub/, <vfs>/sys/priv/    author keys
	<vfs>/data/                        app data
"""

from __future__ import annotations

import os
from pathlib import Path

VFS_ENV = "FIREFLY_VFS"
LOCAL_VFS_DIR = ".firefly"


def get_vfs_path() -> Path:
	local = Path.cwd() / LOCAL_VFS_DIR
	if local.is_dir():
		return local
	env = os.environ.get(VFS_ENV)
	if env:
		return Path(env)
	return Path.home() / LOCAL_VFS_DIR


def init_vfs(path: Path) -> None:
	(path / "roms").mkdir(parents=True, exist_ok=True)
	(path / "sys" / "pub").mkdir(parents=True, exist_ok=True)
	(path / "sys" / "priv").mkdir(parents=True, exist_ok=True)
	(path / "data").mkdir(parents=True, exist_ok=True)


def rom_dir(vfs_path: Path, author_id: str, app_id: str) -> Path:
	return vfs_path / "roms" / author_id / app_id
