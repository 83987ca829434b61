# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Command line entry point.

    resticops [--backup | --check | --info | --list | --prune |
               --restore | --repair | --unlock | --snapshots | --help]

Without arguments a full backup lifecycle runs. Only the first command
given is executed. Exit status is 0 on success, 1 on configuration
errors or unknown options, and restic's own exit code when restic fails.
"""

import argparse
import asyncio
import os
import sys
from typing import List, NoReturn, Sequence

import structlog

from resticops.backend.restic import ResticBackend
from resticops.commands import Command, CommandContext, dispatch
from resticops.config import ResticOpsConfig
from resticops.env import create_config_from_env, read_environment
from resticops.errors import explain_locked_repository
from resticops.exceptions import (
    BackendError,
    ConfigurationError,
    LifecycleFailure,
    LockError,
    ResticOpsError,
)
from resticops.locator import resolve_target
from resticops.logs import configure_logging

logger = structlog.get_logger()

# (short flag, long flag, command, help text)
_FLAGS = (
    ("-b", "--backup", Command.BACKUP, "Perform backup"),
    ("-c", "--check", Command.CHECK, "Check repository"),
    ("-i", "--info", Command.INFO, "Get repository stats"),
    ("-l", "--list", Command.LIST, "List files in the repository"),
    ("-p", "--prune", Command.PRUNE, "Prune unwanted data"),
    ("-r", "--restore", Command.RESTORE, "Restore files from the repository"),
    ("-f", "--repair", Command.REPAIR, "Repair / fix the repository"),
    ("-u", "--unlock", Command.UNLOCK, "Unlock the repository"),
    ("-s", "--snapshots", Command.SNAPSHOTS, "List snapshots"),
)


class _Parser(argparse.ArgumentParser):
    """ArgumentParser that reports unknown options on stdout with exit 1."""

    def parse_args(self, args=None, namespace=None):
        tokens = sys.argv[1:] if args is None else list(args)
        # Only exact flags are accepted: no "--backup=x", no bundled "-bx"
        for token in tokens:
            if token not in self._option_string_actions:
                self.reject(token)
        return super().parse_args(tokens, namespace)

    def reject(self, token: str) -> NoReturn:
        sys.stdout.write(f"Unknown parameter passed: {token}\n")
        self.print_help(sys.stdout)
        self.exit(1)

    def error(self, message: str) -> NoReturn:
        unknown = message.split(":", 1)[-1].strip() if "unrecognized arguments" in message else message
        self.reject(unknown)


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="resticops",
        allow_abbrev=False,
        description="Back up this host with restic: init, backup, check, prune and restore.",
    )
    for short, long, command, help_text in _FLAGS:
        parser.add_argument(
            short,
            long,
            dest="commands",
            action="append_const",
            const=command,
            help=help_text,
        )
    return parser


def parse_command(argv: Sequence[str] | None = None) -> Command:
    """
    Parse the command line into a single command.

    --help and unknown options exit from here (status 0 and 1).
    """
    args = build_parser().parse_args(argv)
    commands: List[Command] = args.commands or []
    if not commands:
        logger.info("no_command_given", default=Command.BACKUP.value)
        return Command.BACKUP
    if len(commands) > 1:
        logger.warning(
            "extra_commands_ignored",
            running=commands[0].value,
            ignored=[c.value for c in commands[1:]],
        )
    return commands[0]


def build_context(config: ResticOpsConfig) -> CommandContext:
    """Resolve the repository target and wire up the restic backend."""
    target = resolve_target(config)
    backend = ResticBackend(
        target,
        binary=config.restic_binary,
        global_flags=config.global_flags,
        timeout=config.command_timeout,
    )
    return CommandContext(config=config, backend=backend)


def _fail(label: str, error: ResticOpsError) -> int:
    """Print the single diagnostic line and pick the exit status."""
    cause = error.cause if isinstance(error, LifecycleFailure) else error
    if isinstance(error, LifecycleFailure):
        line = f"resticops: {error}"
        exit_code = error.exit_code
    else:
        line = f"resticops: {label} failed: {error}"
        exit_code = error.exit_code if isinstance(error, BackendError) and error.exit_code and error.exit_code > 0 else 1

    if isinstance(cause, LockError):
        line = f"{line} ({explain_locked_repository()})"

    print(line, file=sys.stderr)
    return exit_code


def main(argv: Sequence[str] | None = None) -> int:
    configure_logging(os.environ.get("RESTICOPS_LOG_LEVEL", "info"))
    command = parse_command(argv)

    try:
        config = create_config_from_env(read_environment())
        context = build_context(config)
    except ConfigurationError as e:
        return _fail("configuration", e)

    try:
        outcome = asyncio.run(dispatch(command, context))
    except ResticOpsError as e:
        return _fail(command.value, e)

    for line in outcome.lines:
        print(line)
    return outcome.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
