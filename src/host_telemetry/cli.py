"""Command-line interface entry points for host-telemetry."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from argparse import Namespace
from typing import Protocol

from host_telemetry import __version__
from host_telemetry import config as config_module
from host_telemetry.commands import (  # type: ignore[import]
    run_diagnostics,
    run_publish,
    run_setup,
    run_uploader,
)

DEFAULT_COMMAND = "run"
LOG_LEVEL_ENV_VAR = "HOST_TELEMETRY_LOG_LEVEL"

_LOG_LEVEL_ALIASES: dict[str, int] = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class CommandHandler(Protocol):
    """Callable signature for CLI subcommands."""

    def __call__(self, args: Namespace) -> int:  # pragma: no cover - typing hook
        ...


def _resolve_log_level(candidate: str | None) -> int:
    for value in (candidate, os.getenv(LOG_LEVEL_ENV_VAR)):
        if not value:
            continue
        stripped = value.strip()
        if not stripped:
            continue
        lower = stripped.lower()
        if lower in _LOG_LEVEL_ALIASES:
            return _LOG_LEVEL_ALIASES[lower]
        if stripped.isdigit():
            return int(stripped)
    return logging.INFO


def _configure_logging(level_name: str | None) -> None:
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter("%(message)s"))
    handlers: list[logging.Handler] = [stream_handler]

    try:
        log_dir = config_module.get_logs_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / "host-telemetry.log", encoding="utf-8")
        file_formatter = logging.Formatter(
            "%(asctime)sZ %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
        file_formatter.converter = time.gmtime
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)
    except OSError:
        # Continue with console logging only when the log directory is unusable.
        pass

    logging.basicConfig(
        level=_resolve_log_level(level_name),
        handlers=handlers,
        force=True,
    )


def _interval_seconds(value: str) -> int:
    try:
        seconds = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid interval: {value!r}") from exc
    if seconds < config_module.MIN_INTERVAL_S:
        raise argparse.ArgumentTypeError(
            f"interval must be at least {config_module.MIN_INTERVAL_S} seconds"
        )
    return seconds


def build_parser(handlers: dict[str, CommandHandler] | None = None) -> argparse.ArgumentParser:
    """Construct the top-level argument parser."""

    handlers = handlers or _command_handlers()

    parser = argparse.ArgumentParser(
        prog="host-telemetry",
        description="Publish host telemetry to an MQTT broker.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Environment overrides:\n"
            f"  {LOG_LEVEL_ENV_VAR}    Default logging level when --log-level is omitted.\n"
            f"  {config_module.CONFIG_ENV_VAR}  Path to config.toml."
        ),
    )
    parser.set_defaults(command=DEFAULT_COMMAND, handler=handlers[DEFAULT_COMMAND])
    parser.add_argument(
        "--log-level",
        help="Set log verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL or numeric)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"host-telemetry {__version__}",
        help="Show package version and exit",
    )

    subparsers = parser.add_subparsers(dest="command", required=False)

    run_parser = subparsers.add_parser(
        "run", help="Publish telemetry on a fixed interval until interrupted"
    )
    run_parser.set_defaults(command="run", handler=handlers["run"])
    run_parser.add_argument(
        "--config",
        help="Path to configuration file (overrides default location)",
    )
    run_parser.add_argument(
        "--interval",
        type=_interval_seconds,
        help="Seconds between publish cycles (overrides configuration)",
    )
    run_parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single publish cycle and exit",
    )

    publish_parser = subparsers.add_parser(
        "publish", help="Publish one snapshot and report success or failure"
    )
    publish_parser.set_defaults(command="publish", handler=handlers["publish"])
    publish_parser.add_argument(
        "--config",
        help="Path to configuration file (overrides default location)",
    )

    setup_parser = subparsers.add_parser("setup", help="Run the onboarding wizard")
    setup_parser.set_defaults(command="setup", handler=handlers["setup"])
    setup_parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete existing configuration before starting",
    )
    setup_parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Validate an existing config file instead of prompting",
    )
    setup_parser.add_argument(
        "--config",
        help="Path to configuration file (overrides default location)",
    )
    setup_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the wizard without writing any files",
    )

    diagnostics_parser = subparsers.add_parser(
        "diagnostics", help="Check packages, configuration, host sampling and broker reachability"
    )
    diagnostics_parser.set_defaults(command="diagnostics", handler=handlers["diagnostics"])
    diagnostics_parser.add_argument(
        "--config",
        help="Path to configuration file (overrides default location)",
    )
    diagnostics_parser.add_argument(
        "--json",
        action="store_true",
        help="Emit diagnostics in JSON format",
    )
    diagnostics_parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show extended diagnostic information",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Process CLI arguments and dispatch to the requested command."""

    handlers = _command_handlers()
    parser = build_parser(handlers)

    argv_list = list(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(_normalize_argv(argv_list, handlers))

    _configure_logging(getattr(args, "log_level", None))

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 0

    return handler(args)


def _command_handlers() -> dict[str, CommandHandler]:
    """Return the mapping of subcommand names to handler callables."""

    return {
        "run": run_uploader,
        "publish": run_publish,
        "setup": run_setup,
        "diagnostics": run_diagnostics,
    }


def _normalize_argv(argv: list[str], handlers: dict[str, CommandHandler]) -> list[str]:
    """Inject the default subcommand when only subcommand flags are given."""

    if not argv:
        return [DEFAULT_COMMAND]

    first = argv[0]
    if first in ("-h", "--help", "--version") or first in handlers:
        return argv
    if first == "--log-level":
        return [*argv[:2], *_normalize_argv(argv[2:], handlers)]
    if first.startswith("--log-level="):
        return [first, *_normalize_argv(argv[1:], handlers)]
    if first.startswith("-"):
        return [DEFAULT_COMMAND, *argv]
    return argv


if __name__ == "__main__":  # pragma: no cover - direct CLI execution path
    raise SystemExit(main())
