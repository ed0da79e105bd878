"""
Command line interface for jwks-to-pem.

    jwks-to-pem --url https://idp.example.com/.well-known/jwks.json --out /etc/keys
    jwks-to-pem --url ... --out ... --reload.pidfile /run/nginx.pid cron --schedule "*/5 * * * *"

Every flag can also be given as a ``JWKS_*`` environment variable, with dots
and dashes replaced by underscores (``--reload.url`` is ``JWKS_RELOAD_URL``).
"""

import argparse
import asyncio
import functools
from typing import List, Optional, Sequence

from shared.errors import (
    ConfigError,
    FetchError,
    JwksToPemError,
    KeyProcessingError,
    PatternError,
    ReloadError,
)
from shared.logging import SERVICE_NAME, configure_logging, get_logger
from .config import DEFAULT_PATTERN, JwksToPemConfig, load_config
from .cron import CronRunner, build_trigger
from .keys.writer import compile_pattern
from .reload.signals import SUPPORTED_SIGNALS
from .runner import run_once

logger = get_logger("jwks_to_pem.cli")

# Log event for each failure kind, most specific first
_FAILURE_EVENTS = (
    (PatternError, "problem parsing pattern"),
    (FetchError, "problem fetching JWKS"),
    (KeyProcessingError, "problem processing keys"),
    (ReloadError, "reload failed"),
)


def _common_flags() -> argparse.ArgumentParser:
    # SUPPRESS keeps unset flags out of the namespace so the environment and
    # defaults can fill them, and so flags given before a sub-command survive.
    common = argparse.ArgumentParser(add_help=False, argument_default=argparse.SUPPRESS)
    common.add_argument("-u", "--url", dest="url", help="URL for JSON Web Key Set (JWKS)")
    common.add_argument("-o", "--out", dest="out", help="Output directory (keys are printed to stdout when unset)")
    common.add_argument("-p", "--pattern", dest="pattern",
                        help=f"Output file name pattern (default: {DEFAULT_PATTERN!r}); "
                             "variables: key_id, index, algorithm, key_type")
    common.add_argument("--timeout", dest="timeout", help="Timeout to retrieve JWKS, e.g. 5s or 500ms (default: 5s)")
    common.add_argument("--fetch-attempts", dest="fetch_attempts", type=int, help="Attempts to retrieve JWKS (default: 1)")
    common.add_argument("--file-mode", dest="file_mode", help="Octal permissions for written key files (default: 0644)")
    common.add_argument("--reload.url", dest="reload_url", help="URL to use for reloads")
    common.add_argument("--reload.method", dest="reload_method", help="Method to use for reload URL (default: POST)")
    common.add_argument("--reload.pid", dest="reload_pid", type=int, help="Process ID to signal for reloads")
    common.add_argument("--reload.pidfile", dest="reload_pidfile", help="File to look up process ID to signal for reloads")
    common.add_argument("--reload.signal", dest="reload_signal",
                        help="Signal to send for reloads, one of "
                             f"{', '.join(name[3:] for name in SUPPORTED_SIGNALS)} (default: HUP)")
    common.add_argument("--reload.socket", dest="reload_socket", help="Unix domain socket to write to for reloads")
    common.add_argument("--reload.payload", dest="reload_payload", help="Payload sent to the reload URL or socket")
    common.add_argument("--debug", dest="debug", action="store_true", help="Enable debug logging")
    common.add_argument("--log-format", dest="log_format", choices=["text", "json"], help="Log output format (default: text)")
    return common


def build_parser() -> argparse.ArgumentParser:
    common = _common_flags()

    parser = argparse.ArgumentParser(
        prog=SERVICE_NAME,
        description="Retrieve keys from a JWKS URL and save as PEM encoded files",
        parents=[common],
    )
    subparsers = parser.add_subparsers(dest="command")

    cron = subparsers.add_parser(
        "cron",
        help="Check the JWKS on a schedule",
        description="Check the JWKS on a cron schedule",
        parents=[common],
        argument_default=argparse.SUPPRESS,
    )
    cron.add_argument("--schedule", dest="schedule", help="Cron pattern for scheduling check of JWKS")
    cron.add_argument("--run-on-start", dest="run_on_start", action="store_true",
                      help="Also check once immediately at startup")

    return parser


def _failure_event(error: JwksToPemError) -> str:
    for error_type, event in _FAILURE_EVENTS:
        if isinstance(error, error_type):
            return event
    return "run failed"


async def _serve_cron(config: JwksToPemConfig) -> None:
    runner = CronRunner(
        config.schedule,
        functools.partial(run_once, config),
        run_on_start=config.run_on_start
    )
    await runner.serve()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = vars(parser.parse_args(argv))
    command = args.pop("command", None)

    try:
        config = load_config(**args)
        if command == "cron":
            build_trigger(config.schedule)
    except ConfigError as e:
        parser.error(e.message)

    configure_logging(SERVICE_NAME, config.log_level, config.log_format)
    logger.debug(
        "configuration",
        url=config.url,
        out=config.out,
        pattern=config.pattern,
        timeout=config.timeout,
        reload_targets=config.reload_targets()
    )

    try:
        compile_pattern(config.pattern)
        if command == "cron":
            asyncio.run(_serve_cron(config))
        else:
            asyncio.run(run_once(config))
    except KeyboardInterrupt:
        return 130
    except JwksToPemError as e:
        logger.error(_failure_event(e), error=e.message, code=e.code)
        return 1

    return 0


def run(argv: Optional[List[str]] = None) -> None:
    """Console script entry point."""
    raise SystemExit(main(argv))


if __name__ == "__main__":
    run()
