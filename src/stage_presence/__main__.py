"""Entry point for ``python -m stage_presence``.

Subcommands:
    resolve   -- Print who is present in the last message of a chat log.
    simulate  -- Replay a chat log through the stage and print each step.

Exit codes:
    0 -- Success.
    1 -- An error occurred (file not found, unreadable, config error).
    2 -- Argument parsing error (handled by argparse).
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from stage_presence.config import ConfigError, ConfigStore, load_settings
from stage_presence.demo_output import print_resolution, print_simulation
from stage_presence.exceptions import ChatLogError
from stage_presence.log import setup_logging
from stage_presence.models.transcript import ChatLogParseResult
from stage_presence.parser import parse_chat_log_file
from stage_presence.replay import replay_chat_log, resolve_last_message


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="stage-presence",
        description="Work out who is on stage in a multi-party chat log.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("chat_log", type=str, help="Path to the .jsonl chat log.")
    common.add_argument(
        "--members",
        type=str,
        default=None,
        help="Comma-separated custom member list (first entry is the user).",
    )
    common.add_argument(
        "--exclude",
        type=str,
        default=None,
        help="Comma-separated names never counted as present.",
    )
    common.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Show debug logging from stage-presence.",
    )

    subparsers.add_parser(
        "resolve",
        parents=[common],
        help="Print who is present in the last message.",
    )

    simulate_parser = subparsers.add_parser(
        "simulate",
        parents=[common],
        help="Replay the log through the stage and print each step.",
    )
    simulate_parser.add_argument(
        "--num-left",
        type=int,
        default=None,
        help="Left group capacity, -1 for unlimited (overrides STAGE_NUM_LEFT).",
    )
    simulate_parser.add_argument(
        "--num-right",
        type=int,
        default=None,
        help="Right group capacity, -1 for unlimited (overrides STAGE_NUM_RIGHT).",
    )

    return parser


def _load_log(path_arg: str) -> ChatLogParseResult | None:
    path = Path(path_arg)
    if not path.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        return None
    try:
        return parse_chat_log_file(path)
    except (ChatLogError, PermissionError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return None


def _build_config(args: argparse.Namespace) -> ConfigStore:
    settings = load_settings()
    store = ConfigStore(settings)
    store.load_chat({"members": args.members or [], "exclude": args.exclude or []})
    changes = {}
    if getattr(args, "num_left", None) is not None:
        changes["num_left"] = args.num_left
    if getattr(args, "num_right", None) is not None:
        changes["num_right"] = args.num_right
    if changes:
        store.update_settings(**changes)
    return store


def _handle_resolve(args: argparse.Namespace, config: ConfigStore) -> int:
    result = _load_log(args.chat_log)
    if result is None:
        return 1
    message, names = resolve_last_message(result, config)
    print_resolution(result.source, message, names)
    return 0


def _handle_simulate(args: argparse.Namespace, config: ConfigStore) -> int:
    result = _load_log(args.chat_log)
    if result is None:
        return 1
    steps = asyncio.run(replay_chat_log(result, config))
    print_simulation(result.source, steps)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the stage-presence CLI.

    Args:
        argv: Command-line arguments.  Defaults to ``sys.argv[1:]``.

    Returns:
        Exit code: ``0`` on success, ``1`` on error.
    """
    parser = build_parser()
    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    try:
        config = _build_config(args)
        setup_logging(config.settings.log_level, verbose=args.verbose)
    except (ConfigError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.command == "simulate":
        return _handle_simulate(args, config)
    return _handle_resolve(args, config)


if __name__ == "__main__":
    raise SystemExit(main())
