"""ACMERENEW command-line entry point.

Usage::

    acmerenew -c /etc/acmerenew/config.yaml
    acmerenew -c config.yaml renew
    acmerenew -c config.yaml check
    acmerenew -c config.yaml --validate-only
    python -m acmerenew -c config.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from acmerenew import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="acmerenew",
        description="ACMERENEW: keep ACME-issued TLS certificates current",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser(
        "renew",
        help="Renew every certificate that needs it (default)",
    )
    subparsers.add_parser(
        "check",
        help="Report which certificates need renewal, without contacting the CA",
    )
    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"acmerenew: error: {message}", file=sys.stderr)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, runs the command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # -- resolve config path ---
    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    from acmerenew.config import ConfigValidationError, load_config

    try:
        settings = load_config(config_path)
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)

    # -- replace bootstrap logging with configured logging ---
    from acmerenew.logging import configure_logging

    configure_logging(settings.logging)
    if args.debug:
        logging.getLogger("acmerenew").setLevel(logging.DEBUG)

    if args.validate_only:
        _print_settings_summary(settings)
        sys.exit(0)

    # -- dispatch subcommand ---
    if args.command == "check":
        from acmerenew.cli.commands.check import run_check

        sys.exit(run_check(settings, args))

    from acmerenew.cli.commands.renew import run_renew

    sys.exit(run_renew(settings, args))


def _print_settings_summary(settings) -> None:
    """Print a short summary of the loaded configuration."""
    print(f"Configuration OK: {len(settings.certificates)} certificate(s)")
    print(f"  directory: {settings.acme.directory_url}")
    for cert in settings.certificates:
        print(
            f"  - {cert.common_name}: {', '.join(cert.names)} -> {cert.crt_path} "
            f"(key {cert.key_size} bits, renew {cert.renew_days} days before expiry, "
            f"provisioner {cert.provisioner})",
        )
