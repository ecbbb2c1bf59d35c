#!/usr/bin/env python3
# PYTHON_ARGCOMPLETE_OK
# The comment above enables global autocomplete using argcomplete

"""
Check OpenSSH authorized_keys files and report the keys they authorize.
"""

import argparse
import os
import sys
from typing import Dict, List, Optional

try:
    import argcomplete
except ModuleNotFoundError:
    argcomplete = None

from authkeys import authkeys_logging, config
from authkeys.common.exception import AuthKeysException, KeyAuthorizationError, LineParseFailure
from authkeys.openssh import KeysFile, parse_file
from authkeys.openssh.report import FORMATS, render, unknown_options

logger = authkeys_logging.init_logging("check")

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_UNREADABLE = 2


def get_arg_parser() -> argparse.ArgumentParser:
    """Perform the setup of the command-line arguments."""
    parser = argparse.ArgumentParser(prog="authkeys-check", description=__doc__)
    parser.add_argument(
        "files",
        nargs="*",
        metavar="FILE",
        help=f"authorized_keys files to check (default: {config.DEFAULT_AUTHORIZED_KEYS} or the configured files)",
    )
    parser.add_argument(
        "-f",
        "--format",
        dest="format",
        choices=FORMATS,
        type=str.lower,
        default=None,
        help="Output format of the report",
    )
    parser.add_argument(
        "--strict-options",
        dest="strict_options",
        action="store_true",
        default=None,
        help="Fail on option names not documented by sshd(8)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _log_parse_failure(path: str, e: LineParseFailure) -> None:
    logger.error("%s: %s", path, e)
    cause = e.cause
    if isinstance(cause, KeyAuthorizationError):
        if cause.optionless_cause is not None:
            logger.debug("%s: as a bare public key: %s", path, cause.optionless_cause)
        if cause.cause is not None:
            logger.debug("%s: with leading options: %s", path, cause.cause)


def check_file(path: str, strict_options: bool) -> Optional[KeysFile]:
    """Parse one file; return None if it is invalid.

    :raises OSError: if the file cannot be read
    :raises UnicodeDecodeError: if the file is not UTF-8 text
    """
    with open(path, encoding="utf-8") as f:
        text = f.read()

    try:
        keys_file = parse_file(text)
    except LineParseFailure as e:
        _log_parse_failure(path, e)
        return None

    unknown = unknown_options(keys_file)
    if unknown:
        if strict_options:
            logger.error("%s: unknown options: %s", path, ", ".join(unknown))
            return None
        logger.warning("%s: unknown options: %s", path, ", ".join(unknown))

    return keys_file


def main(argv: Optional[List[str]] = None) -> int:
    """authkeys-check entry point."""
    parser = get_arg_parser()

    if argcomplete:
        # This should happen before parse_args()
        argcomplete.autocomplete(parser)

    args = parser.parse_args(argv)
    authkeys_logging.set_verbose(args.verbose)

    try:
        paths = args.files or config.authorized_keys_paths()
        fmt = args.format or config.get("check", "format", fallback="text").lower()
        strict_options = args.strict_options
        if strict_options is None:
            strict_options = config.getboolean("check", "strict_options", fallback=False)
    except AuthKeysException as e:
        logger.error("%s", e)
        return EXIT_INVALID

    if fmt not in FORMATS:
        logger.error("Invalid format '%s' in configuration, expected one of %s", fmt, ", ".join(FORMATS))
        return EXIT_INVALID

    status = EXIT_OK
    reports: Dict[str, KeysFile] = {}
    for path in paths:
        try:
            keys_file = check_file(path, strict_options)
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Could not read %s: %s", path, e)
            status = max(status, EXIT_UNREADABLE)
            continue

        if keys_file is None:
            status = max(status, EXIT_INVALID)
            continue

        logger.debug("%s: %d keys", path, sum(1 for _ in keys_file.keys()))
        reports[path] = keys_file

    if reports:
        try:
            sys.stdout.write(render(reports, fmt))
            sys.stdout.flush()
        except BrokenPipeError:
            # Python flushes standard streams on exit; redirect remaining output
            # to devnull to avoid another BrokenPipeError at shutdown.
            devnull = os.open(os.devnull, os.O_WRONLY)
            os.dup2(devnull, sys.stdout.fileno())
            return EXIT_INVALID

    return status


if __name__ == "__main__":
    sys.exit(main())
