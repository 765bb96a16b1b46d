"""Command-line helpers around the operation dispatcher."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Awaitable, Callable, Sequence

from opsengine import config as engine_config
from opsengine.dispatcher import OperationDispatcher
from opsengine.models import OperationKind


def _create_dispatcher(args: argparse.Namespace) -> OperationDispatcher:
    settings = engine_config.EngineSettings.from_config()
    return OperationDispatcher(platform=args.platform, settings=settings)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _run(args: argparse.Namespace, action: Callable[[OperationDispatcher], Awaitable[Any]]) -> Any:
    dispatcher = _create_dispatcher(args)

    async def _main() -> Any:
        try:
            return await action(dispatcher)
        finally:
            await dispatcher.close()

    return asyncio.run(_main())


def _parse_options(pairs: Sequence[str] | None) -> dict[str, Any]:
    options: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise SystemExit(f"Options must look like key=value, got: {pair}")
        options[key.strip()] = engine_config.parse_override_value(value)
    return options


def _status(args: argparse.Namespace) -> None:
    snapshot = _run(args, lambda dispatcher: dispatcher.get_health_snapshot())
    _emit(snapshot.as_dict())


def _stats(args: argparse.Namespace) -> None:
    stats = _run(args, lambda dispatcher: dispatcher.get_detailed_stats())
    _emit(stats.as_dict())


def _summary(args: argparse.Namespace) -> None:
    print(_run(args, lambda dispatcher: dispatcher.status_summary()))


def _info(args: argparse.Namespace) -> None:
    result = _run(args, lambda dispatcher: dispatcher.execute({"operation": OperationKind.GET_SYSTEM_INFO.value}))
    _emit(result.data if result.success else result.as_dict())


def _context(args: argparse.Namespace) -> None:
    _emit(_run(args, lambda dispatcher: dispatcher.get_current_context()))


def _exec(args: argparse.Namespace) -> None:
    request = {
        "operation": args.operation,
        "target": args.target or "",
        "options": _parse_options(args.option),
    }
    result = _run(args, lambda dispatcher: dispatcher.execute(request))
    _emit(result.as_dict())
    if not result.success:
        raise SystemExit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Operation dispatch and system health CLI")
    parser.add_argument(
        "--platform",
        choices=["windows", "macos", "linux"],
        default=None,
        help="Override the detected platform profile",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    status_parser = sub.add_parser("status", help="Print a classified health snapshot")
    status_parser.set_defaults(func=_status)

    stats_parser = sub.add_parser("stats", help="Print detailed CPU, memory, disk and uptime statistics")
    stats_parser.set_defaults(func=_stats)

    summary_parser = sub.add_parser("summary", help="Print a short human-readable health summary")
    summary_parser.set_defaults(func=_summary)

    info_parser = sub.add_parser("info", help="Print cheap host facts without sampling")
    info_parser.set_defaults(func=_info)

    context_parser = sub.add_parser("context", help="Print the current automation context")
    context_parser.set_defaults(func=_context)

    exec_parser = sub.add_parser("exec", help="Dispatch a single operation")
    exec_parser.add_argument("operation", choices=[kind.value for kind in OperationKind])
    exec_parser.add_argument("target", nargs="?", default="")
    exec_parser.add_argument(
        "-o",
        "--option",
        action="append",
        metavar="KEY=VALUE",
        help="Operation option (repeatable), e.g. -o destination=archive/notes.txt",
    )
    exec_parser.set_defaults(func=_exec)

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = engine_config.EngineSettings.from_config()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level_number,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    args.func(args)


if __name__ == "__main__":
    main()
