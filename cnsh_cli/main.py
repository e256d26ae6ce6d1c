"""Command line dispatch for cnsh."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Callable, NoReturn, Sequence

from cnsh_core import __version__
from cnsh_core.config import CnshConfig, load_config
from cnsh_core.errors import CnshError, UsageError
from cnsh_core.installer import InstallOutcome, PackageInstaller, RemoveState
from cnsh_core.lockfile import LockStore
from cnsh_core.manifest import Prompt, manifest_version, scaffold_manifest
from cnsh_core.publish import publish_package
from cnsh_core.registry import RegistryClient, RegistryClientConfig
from cnsh_core.workspace import InstallLayout

logger = logging.getLogger(__name__)

PROG = "cnsh"


class _CliParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Enable diagnostic logging",
    )

    parser = _CliParser(prog=PROG, description="Minimal package manager", parents=[common])
    parser.add_argument("--version", action="store_true", help="Print the project version and exit")
    sub = parser.add_subparsers(dest="command", metavar="<command>")

    add = sub.add_parser("add", parents=[common], help="Install one package")
    add.add_argument("-g", "--global", dest="global_", action="store_true", help="Use the global install root")
    add.add_argument("name", help="Package name")

    remove = sub.add_parser("remove", parents=[common], help="Remove one package")
    remove.add_argument("-g", "--global", dest="global_", action="store_true", help="Use the global install root")
    remove.add_argument("name", help="Package name")

    sub.add_parser("install", parents=[common], help="Install dependencies from package.json")

    init = sub.add_parser("init", parents=[common], help="Create a new package.json")
    init.add_argument("-y", "--yes", action="store_true", help="Accept all defaults without prompting")

    sub.add_parser("publish", parents=[common], help="Publish the current project")
    return parser


def main(
    argv: Sequence[str] | None = None,
    *,
    start_dir: Path | None = None,
    prompt: Prompt | None = None,
) -> int:
    args_list = list(sys.argv[1:] if argv is None else argv)
    start = (start_dir or Path.cwd()).resolve()
    parser = build_parser()
    try:
        args = parser.parse_args(args_list)
    except UsageError as exc:
        print(f"[{PROG}] {exc}")
        print(parser.format_usage().rstrip())
        return 1
    except SystemExit as exc:
        # --help exits through argparse
        return int(exc.code or 0)

    _configure_logging(bool(getattr(args, "verbose", False)))

    if args.version:
        print(manifest_version(start / "package.json") or __version__)
        return 0
    if not args.command:
        print(parser.format_usage().rstrip())
        return 1

    handler = _COMMANDS[args.command]
    try:
        return handler(args, start, prompt)
    except CnshError as exc:
        print(f"[{PROG}:{args.command}] {exc}")
        return 1
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.debug("unexpected error while running %s", args.command, exc_info=True)
        print(f"[{PROG}:{args.command}] unexpected failure: {exc}")
        return 1


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _layout(args: Any, start: Path, config: CnshConfig) -> InstallLayout:
    if getattr(args, "global_", False):
        return InstallLayout.global_root(config.global_dir)
    return InstallLayout.project(start)


def _installer(layout: InstallLayout, config: CnshConfig, command: str) -> PackageInstaller:
    store = LockStore(layout.lock_path)
    store.load()
    client = RegistryClient(
        RegistryClientConfig(
            base_url=config.registry_url,
            timeout_seconds=config.timeout_seconds,
            max_retries=config.max_retries,
            backoff_seconds=config.backoff_seconds,
        )
    )
    return PackageInstaller(
        layout,
        store,
        client,
        min_archive_bytes=config.min_archive_bytes,
        max_concurrency=config.max_concurrency,
        on_outcome=_outcome_printer(command),
    )


def _outcome_printer(command: str) -> Callable[[InstallOutcome], None]:
    def _print(outcome: InstallOutcome) -> None:
        if outcome.ok:
            label = f"{outcome.name}@{outcome.version}" if outcome.version else outcome.name
            print(f"[{PROG}:{command}] installed {label}")
        else:
            stage = outcome.failed_at.value if outcome.failed_at else "unknown"
            print(f"[{PROG}:{command}] failed to install {outcome.name} ({stage}): {outcome.error}")

    return _print


def _cmd_add(args: Any, start: Path, prompt: Prompt | None) -> int:
    config = load_config(start)
    installer = _installer(_layout(args, start, config), config, "add")
    outcome = asyncio.run(installer.install_package(args.name))
    return 0 if outcome.ok else 1


def _cmd_remove(args: Any, start: Path, prompt: Prompt | None) -> int:
    config = load_config(start)
    installer = _installer(_layout(args, start, config), config, "remove")
    outcome = asyncio.run(installer.remove_package(args.name))
    if outcome.state is RemoveState.REMOVED:
        print(f"[{PROG}:remove] removed {outcome.name}")
        return 0
    if outcome.state is RemoveState.NOT_INSTALLED:
        print(f"[{PROG}:remove] {outcome.name} is not installed")
        return 0
    print(f"[{PROG}:remove] failed to remove {outcome.name}: {outcome.error}")
    return 1


def _cmd_install(args: Any, start: Path, prompt: Prompt | None) -> int:
    config = load_config(start)
    installer = _installer(InstallLayout.project(start), config, "install")
    result = asyncio.run(installer.install_all())
    if result.nothing_to_do:
        print(f"[{PROG}:install] no dependencies to install")
        return 0
    total = len(result.outcomes)
    print(f"[{PROG}:install] installed {len(result.succeeded)}/{total} dependencies")
    if result.failed:
        print(f"[{PROG}:install] failed: {', '.join(result.failed)}")
        return 1
    return 0


def _cmd_init(args: Any, start: Path, prompt: Prompt | None) -> int:
    path = scaffold_manifest(start, use_defaults=bool(args.yes), prompt=prompt or _input_prompt)
    print(f"[{PROG}:init] wrote {path}")
    return 0


def _cmd_publish(args: Any, start: Path, prompt: Prompt | None) -> int:
    config = load_config(start)
    publish_package(start, config.publish_command)
    print(f"[{PROG}:publish] published {start.name}")
    return 0


def _input_prompt(question: str, default: str) -> str:
    suffix = f" ({default})" if default else ""
    try:
        return input(f"{question}:{suffix} ")
    except EOFError:
        return ""


_COMMANDS: dict[str, Callable[[Any, Path, Prompt | None], int]] = {
    "add": _cmd_add,
    "remove": _cmd_remove,
    "install": _cmd_install,
    "init": _cmd_init,
    "publish": _cmd_publish,
}
