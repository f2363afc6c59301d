# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from romkit.build import BuildOptions, BuildReport, build_rom, format_size
from romkit.config import load_project
from romkit.errors import RomError, ValidationError
from romkit.export import default_archive_name, export_rom
from romkit.keys import DEFAULT_KEY_SIZE, KeyStore
from romkit.meta import validate_id
from romkit.toolchain import compile_project
from romkit.verify import verify_rom
from romkit.vfs import get_vfs_path, init_vfs, rom_dir

log = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog="romkit", description="Build, sign, verify and export Firefly ROMs")
	p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
	sub = p.add_subparsers(dest="cmd", required=True)

	build = sub.add_parser("build", help="Build the project in --root and install the ROM into the VFS")
	build.add_argument("--root", type=Path, default=Path("."), help="Project root with firefly.toml (default: .)")
	build.add_argument("--vfs", type=Path, default=None, help="VFS root (default: ./.firefly, $FIREFLY_VFS or ~/.firefly)")
	build.add_argument("--no-strip", action="store_true", help="Keep custom sections (debug info, names) in the binary")
	build.add_argument("--opt", action="store_true", help="Run wasm-opt on the binary if it is installed")
	build.add_argument("--jobs", type=int, default=1, help="Convert assets on N threads (default: 1)")
	build.add_argument("--json", action="store_true", help="Emit machine-readable JSON report")

	verify = sub.add_parser("verify", help="Check the hash and signature of an installed ROM")
	verify.add_argument("app", nargs="?", default=None, help="Installed app as AUTHOR.APP")
	verify.add_argument("--rom", type=Path, default=None, help="Path to a ROM directory")
	verify.add_argument("--vfs", type=Path, default=None, help="VFS root")
	verify.add_argument("--require-signature", action="store_true", help="Fail on unsigned ROMs")
	verify.add_argument("--json", action="store_true", help="Emit machine-readable JSON report")

	export = sub.add_parser("export", help="Pack an installed ROM into a zip archive")
	export.add_argument("--root", type=Path, default=Path("."), help="Project root to read ids from (default: .)")
	export.add_argument("--author", type=str, default=None, help="Author id (default: from firefly.toml)")
	export.add_argument("--app", type=str, default=None, help="App id (default: from firefly.toml)")
	export.add_argument("--vfs", type=Path, default=None, help="VFS root")
	export.add_argument("--output", type=Path, default=None, help="Archive path (default: ./AUTHOR.APP.zip)")

	key = sub.add_parser("key", help="Manage author signing keys")
	key_sub = key.add_subparsers(dest="key_cmd", required=True)
	key_new = key_sub.add_parser("new", help="Generate a new key pair")
	key_new.add_argument("author", type=str, help="Author id")
	key_new.add_argument("--bits", type=int, default=DEFAULT_KEY_SIZE, help=f"RSA key size (default: {DEFAULT_KEY_SIZE})")
	for name, help_text in (("pub", "Export the public key"), ("priv", "Export the private key")):
		key_export = key_sub.add_parser(name, help=help_text)
		key_export.add_argument("author", type=str, help="Author id")
		key_export.add_argument("--output", type=Path, default=None, help="Output file (default: ./AUTHOR.der)")
	key_rm = key_sub.add_parser("rm", help="Remove a key pair")
	key_rm.add_argument("author", type=str, help="Author id")
	for sp in key_sub.choices.values():
		sp.add_argument("--vfs", type=Path, default=None, help="VFS root")
	return p


def _vfs(arg: Path | None) -> Path:
	path = arg if arg is not None else get_vfs_path()
	init_vfs(path)
	return path


def _print_sizes(report: BuildReport) -> None:
	for change in report.sizes:
		line = f"{change.name:<16} {format_size(change.new_size)}"
		if change.diff:
			line += f" ({change.diff:+})"
		print(line)
	status = "signed" if report.signed else "unsigned"
	print(f"{report.author_id}.{report.app_id} {report.hash_hex} ({status})")


def _parse_full_id(value: str) -> tuple[str, str]:
	author_id, sep, app_id = value.partition(".")
	if not sep:
		raise ValidationError(f"expected AUTHOR.APP, got {value!r}", field="app")
	validate_id(author_id, field="author_id")
	validate_id(app_id, field="app_id")
	return author_id, app_id


def _cmd_build(args: argparse.Namespace) -> int:
	if args.jobs < 1:
		raise ValidationError("--jobs must be at least 1", field="jobs")
	project = load_project(args.root)
	vfs = _vfs(args.vfs)
	opts = BuildOptions(
		project=project,
		rom_path=rom_dir(vfs, project.author_id, project.app_id),
		key_store=KeyStore(vfs),
		compile_bin=compile_project,
		strip=not args.no_strip,
		optimize=bool(args.opt),
		jobs=args.jobs,
	)
	report = build_rom(opts)
	if args.json:
		print(json.dumps(report.to_dict(), sort_keys=True, separators=(",", ":")))
	else:
		_print_sizes(report)
	return 0


def _cmd_verify(args: argparse.Namespace) -> int:
	if (args.rom is None) == (args.app is None):
		raise ValidationError("pass either --rom DIR or AUTHOR.APP", field="app")
	if args.rom is not None:
		path = args.rom
	else:
		author_id, app_id = _parse_full_id(args.app)
		path = rom_dir(_vfs(args.vfs), author_id, app_id)
	report = verify_rom(path, require_signature=bool(args.require_signature))
	if args.json:
		print(json.dumps(report.to_dict(), sort_keys=True, separators=(",", ":")))
	else:
		status = "signed" if report.signed else "unsigned"
		print(f"ok: {report.meta.author_id}.{report.meta.app_id} {report.hash_hex} ({status})")
	return 0


def _cmd_export(args: argparse.Namespace) -> int:
	author_id, app_id = args.author, args.app
	if author_id is None or app_id is None:
		project = load_project(args.root)
		author_id = author_id or project.author_id
		app_id = app_id or project.app_id
	validate_id(author_id, field="author_id")
	validate_id(app_id, field="app_id")
	out_path = args.output if args.output is not None else Path(default_archive_name(author_id, app_id))
	export_rom(rom_dir(_vfs(args.vfs), author_id, app_id), out_path)
	print(out_path)
	return 0


def _cmd_key(args: argparse.Namespace) -> int:
	store = KeyStore(_vfs(args.vfs))
	if args.key_cmd == "new":
		store.generate(args.author, key_size=args.bits)
		print(f"generated key pair for {args.author}")
		return 0
	if args.key_cmd in ("pub", "priv"):
		out_path = args.output if args.output is not None else Path(f"{args.author}.der")
		store.export(args.author, out_path, public=args.key_cmd == "pub")
		print(out_path)
		return 0
	if args.key_cmd == "rm":
		priv_found, pub_found = store.remove(args.author)
		if not priv_found and not pub_found:
			raise FileNotFoundError(f"no keys found for {args.author}")
		if not priv_found:
			log.warning("private key for %s not found", args.author)
		if not pub_found:
			log.warning("public key for %s not found", args.author)
		return 0
	raise AssertionError("unreachable")


_COMMANDS = {
	"build": _cmd_build,
	"verify": _cmd_verify,
	"export": _cmd_export,
	"key": _cmd_key,
}


def main(argv: list[str] | None = None) -> int:
	p = _build_parser()
	args = p.parse_args(argv)
	logging.basicConfig(
		level=logging.DEBUG if args.verbose else logging.INFO,
		format="%(levelname)s %(name)s: %(message)s",
	)
	try:
		return _COMMANDS[args.cmd](args)
	except RomError as err:
		print(err.format_human(), file=sys.stderr)
		return 2
	except (OSError, ValueError) as err:
		print(f"romkit: error: {err}", file=sys.stderr)
		return 2
