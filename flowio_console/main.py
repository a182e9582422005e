from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Awaitable, Callable

from flowio_console.domain.models import UPGRADE_TARGETS, FieldKind
from flowio_console.services.device_api import DeviceApiError
from flowio_console.services.polling import MonitorState
from flowio_console.services.settings import ConsoleSettings, configure_logging, load_settings
from flowio_console.ui.session import ConsoleSession
from flowio_console.version import __version__


logger = logging.getLogger(__name__)

TRUE_WORDS = {"1", "true", "yes", "on"}
FALSE_WORDS = {"0", "false", "no", "off"}

Command = Callable[[ConsoleSession, argparse.Namespace], Awaitable[int]]


async def cmd_status(session: ConsoleSession, _args: argparse.Namespace) -> int:
    ok = await session.flow_status.refresh()
    print(session.flow_status.chip)
    if not ok:
        print(session.flow_status.raw)
        return 1
    for card in session.flow_status.cards:
        print(f"\n[{card.title}]")
        for label, value in card.rows:
            print(f"  {label}: {value}")
    return 0


async def cmd_upgrade_status(session: ConsoleSession, _args: argparse.Namespace) -> int:
    status = await session.upgrade.refresh_status()
    print(session.upgrade.message)
    if status is None:
        return 1
    print(f"progress: {session.upgrade.progress:.0f}%")
    return 0


async def cmd_upgrade(session: ConsoleSession, args: argparse.Namespace) -> int:
    upgrade = session.upgrade
    if not await upgrade.load_configuration():
        print(upgrade.message)
        return 1
    if args.update_host is not None:
        upgrade.config.update_host = args.update_host
    ok = await upgrade.start_upgrade(args.target)
    print(upgrade.message)
    return 0 if ok else 1


async def cmd_scan(session: ConsoleSession, args: argparse.Namespace) -> int:
    scan = session.scan
    await scan.refresh_scan_status(trigger_scan=not args.cached)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + args.timeout
    while scan.monitor.state != MonitorState.IDLE and loop.time() < deadline:
        await asyncio.sleep(0.1)
    scan.stop()
    print(scan.message)
    if scan.monitor.last_error is not None:
        return 1
    for option in scan.options[1:]:
        print(f"  {option.label}")
    return 0


async def cmd_cfg_ls(session: ConsoleSession, args: argparse.Namespace) -> int:
    try:
        node = await session.tree.fetch_children(args.path)
    except DeviceApiError as exc:
        print(f"Failed to load branches: {exc}")
        return 1
    if node.has_exact_module:
        print(f"{node.prefix or 'cfg'} (module)")
    for child in node.children:
        print(f"  {child}")
    if not node.children:
        print("No sub-branch available.")
    return 0


def _print_module(session: ConsoleSession) -> None:
    for control in session.editor.controls:
        if control.kind == FieldKind.BOOL:
            value = "true" if control.checked else "false"
        elif control.masked:
            value = f"<{control.placeholder}>"
        else:
            value = control.text
        print(f"  {control.key} = {value}")


async def cmd_cfg_show(session: ConsoleSession, args: argparse.Namespace) -> int:
    ok = await session.editor.load(args.module)
    print(session.editor.message)
    if ok:
        _print_module(session)
    return 0 if ok else 1


def _parse_assignment(text: str) -> tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key.strip():
        raise ValueError(f"Expected key=value, got {text!r}.")
    return key.strip(), value


def _bool_word(text: str) -> bool:
    word = text.strip().lower()
    if word in TRUE_WORDS:
        return True
    if word in FALSE_WORDS:
        return False
    raise ValueError(f"Expected a boolean, got {text!r}.")


async def cmd_cfg_set(session: ConsoleSession, args: argparse.Namespace) -> int:
    editor = session.editor
    try:
        assignments = [_parse_assignment(item) for item in args.assignments]
    except ValueError as exc:
        print(str(exc))
        return 2
    if not await editor.load(args.module):
        print(editor.message)
        return 1
    try:
        for key, value in assignments:
            control = editor.control(key)
            editor.set_field(key, _bool_word(value) if control.kind == FieldKind.BOOL else value)
    except KeyError as exc:
        print(f"Unknown field in {editor.module}: {exc.args[0]}")
        return 2
    except ValueError as exc:
        print(str(exc))
        return 2
    ok = await editor.apply()
    print(editor.message)
    return 0 if ok else 1


async def cmd_reboot(session: ConsoleSession, args: argparse.Namespace) -> int:
    ok = await session.system.reboot(args.target)
    print(session.system.message)
    return 0 if ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowio-console",
        description="Control surface for a Flow.IO supervisor board.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--url",
        default=None,
        help="Supervisor base URL (default: settings file, FLOWIO_CONSOLE_URL, http://flowio.local).",
    )
    parser.add_argument(
        "--timeout",
        dest="request_timeout_seconds",
        type=float,
        default=None,
        help="HTTP request timeout in seconds.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    status_parser = subparsers.add_parser("status", help="Show Flow.IO runtime status.")
    status_parser.set_defaults(func=cmd_status)

    upgrade_status_parser = subparsers.add_parser(
        "upgrade-status",
        help="Show the firmware update state.",
    )
    upgrade_status_parser.set_defaults(func=cmd_upgrade_status)

    upgrade_parser = subparsers.add_parser("upgrade", help="Start a firmware update.")
    upgrade_parser.add_argument("target", choices=UPGRADE_TARGETS)
    upgrade_parser.add_argument(
        "--update-host",
        default=None,
        help="Override the update host saved on the device before starting.",
    )
    upgrade_parser.set_defaults(func=cmd_upgrade)

    scan_parser = subparsers.add_parser("scan", help="Scan for WiFi networks.")
    scan_parser.add_argument(
        "--cached",
        action="store_true",
        help="Read the last scan result without requesting a new scan.",
    )
    scan_parser.add_argument(
        "--scan-timeout",
        dest="timeout",
        type=float,
        default=30.0,
        help="Give up waiting for the scan after this many seconds (default: 30).",
    )
    scan_parser.set_defaults(func=cmd_scan)

    cfg_parser = subparsers.add_parser("cfg", help="Browse and edit the Flow.IO configuration.")
    cfg_subparsers = cfg_parser.add_subparsers(dest="cfg_command", required=True)

    ls_parser = cfg_subparsers.add_parser("ls", help="List child branches.")
    ls_parser.add_argument("path", nargs="?", default="")
    ls_parser.set_defaults(func=cmd_cfg_ls)

    show_parser = cfg_subparsers.add_parser("show", help="Show the fields of a module.")
    show_parser.add_argument("module")
    show_parser.set_defaults(func=cmd_cfg_show)

    set_parser = cfg_subparsers.add_parser("set", help="Apply field values to a module.")
    set_parser.add_argument("module")
    set_parser.add_argument("assignments", nargs="+", metavar="key=value")
    set_parser.set_defaults(func=cmd_cfg_set)

    reboot_parser = subparsers.add_parser("reboot", help="Reboot a board.")
    reboot_parser.add_argument("target", choices=("supervisor", "flow"))
    reboot_parser.set_defaults(func=cmd_reboot)

    return parser


async def _run(settings: ConsoleSettings, command: Command, args: argparse.Namespace) -> int:
    async with ConsoleSession(settings) as session:
        return await command(session, args)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)
    try:
        settings = load_settings(
            base_url=args.url,
            request_timeout_seconds=args.request_timeout_seconds,
        )
    except ValueError as exc:
        logger.error("%s", exc)
        return 2
    return asyncio.run(_run(settings, args.func, args))


if __name__ == "__main__":
    raise SystemExit(main())
