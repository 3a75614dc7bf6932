"""Command-line argument parsing for alarmcal."""

import argparse
from pathlib import Path

LOG_LEVELS = ["DEBUG", "VERBOSE", "INFO", "WARNING", "ERROR", "CRITICAL"]


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser.

    Returns:
        Parser with ``dump`` and ``diff`` subcommands
    """
    parser = argparse.ArgumentParser(
        prog="alarmcal",
        description="Inspect alarm calendars holding X-KDE-KALARM events",
    )
    parser.add_argument("--config", type=Path, help="YAML configuration file")

    logging_group = parser.add_argument_group("logging")
    logging_group.add_argument("--log-level", choices=LOG_LEVELS, help="Console and file log level")
    logging_group.add_argument("--log-dir", type=Path, help="Write log files to this directory")
    logging_group.add_argument("-v", "--verbose", action="store_true", help="Verbose console output")
    logging_group.add_argument("-q", "--quiet", action="store_true", help="Only show errors")

    subparsers = parser.add_subparsers(dest="command", required=True)

    dump = subparsers.add_parser("dump", help="Decode a calendar file and list its alarms")
    dump.add_argument("file", type=Path, help="Calendar (.ics) file")
    dump.add_argument("--lines", type=int, default=1, help="Maximum summary lines per alarm")

    diff = subparsers.add_parser("diff", help="Compare the alarms with the same ID in two calendar files")
    diff.add_argument("file_a", type=Path, help="First calendar file")
    diff.add_argument("file_b", type=Path, help="Second calendar file")

    return parser
