"""hlsandbox CLI entry point."""

from __future__ import annotations

import argparse
import logging
import subprocess
import sys
from pathlib import Path

from pydantic import ValidationError

from hlsandbox.config import get_config, load_profile, load_tool_config
from hlsandbox.sandbox import Sandbox

logger = logging.getLogger("hlsandbox")


def _add_profile_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--profile",
        type=Path,
        required=True,
        help="YAML sandbox profile (root, files, mounts, env, limits)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML tool config (sandbox executable path, default timeout)",
    )
    parser.add_argument(
        "program",
        nargs=argparse.REMAINDER,
        help="Program and arguments to run inside the sandbox, after --",
    )


def _load_sandbox(parser: argparse.ArgumentParser, args: argparse.Namespace) -> tuple[Sandbox, list[str]]:
    program = list(args.program)
    if program and program[0] == "--":
        program = program[1:]
    if not program:
        parser.error("missing program to run inside the sandbox")

    try:
        if args.config is not None:
            load_tool_config(args.config)
        profile = load_profile(args.profile)
    except (FileNotFoundError, ValueError, ValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    return profile.to_sandbox(), program


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="hlsandbox",
        description="Run programs through the sandbox executable",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # hlsandbox args
    args_parser = subparsers.add_parser("args", help="Print the compiled sandbox arguments")
    _add_profile_args(args_parser)

    # hlsandbox run
    run_parser = subparsers.add_parser("run", help="Run a program inside the sandbox")
    _add_profile_args(run_parser)
    run_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Kill the sandbox after this many seconds (default: no limit)",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    sub_parser = args_parser if args.command == "args" else run_parser
    sb, program = _load_sandbox(sub_parser, args)

    if args.command == "args":
        for token in sb.build_exec_args(program[0], program[1:]):
            print(token)
        return

    cmd = sb.command(program[0], *program[1:])
    try:
        cmd.start()
    except OSError as e:
        print(f"Error: cannot start sandbox {cmd.executable}: {e}", file=sys.stderr)
        sys.exit(127)
    try:
        returncode = cmd.wait(args.timeout)
    except subprocess.TimeoutExpired:
        timeout = args.timeout if args.timeout is not None else get_config().default_timeout
        print(f"Error: sandbox timed out after {timeout}s", file=sys.stderr)
        sys.exit(124)
    if returncode < 0:
        # killed by signal; report it the way shells do
        returncode = 128 - returncode
    logger.debug("Sandbox exited with status %d", returncode)
    sys.exit(returncode)


if __name__ == "__main__":
    main()
