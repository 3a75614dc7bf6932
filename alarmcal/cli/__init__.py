"""Command line interface for alarmcal."""

import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from ..config import get_settings
from ..events import AlarmEvent, TriggerType, compare
from ..exceptions import AlarmCalError
from ..ics.models import CalendarDecodeResult
from ..ics.serializer import AlarmSerializer
from ..text import summary
from ..timezone import TimezoneError
from ..utils import apply_command_line_overrides, setup_logging
from .parser import create_parser

logger = logging.getLogger(__name__)


def _load(serializer: AlarmSerializer, path: Path) -> CalendarDecodeResult:
    """Read and decode a calendar file.

    Raises:
        AlarmCalError: If the file can't be read or decoded
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise AlarmCalError(f"Cannot read {path}: {e}") from e
    result = serializer.from_calendar(text)
    if not result.success:
        raise AlarmCalError(f"{path}: {result.error_message}")
    for failure in result.failures:
        logger.warning(f"{path}: skipped event ({failure.error_kind.value}): {failure.error_message}")
    return result


def run_dump(serializer: AlarmSerializer, path: Path, max_lines: int = 1) -> int:
    """Print one line per alarm in a calendar file."""
    result = _load(serializer, path)
    for event in result.events:
        trigger = event.next_trigger(TriggerType.DISPLAY)
        when = trigger.format() if trigger is not None else "-"
        text, _ = summary(event, max_lines, serializer.locale)
        print(f"{event.id}\t{event.category.value}\t{event.action.kind}\t{when}\t{text}")
    print(f"{result.event_count} alarms, {len(result.failures)} not decoded")
    return 0


def run_diff(serializer: AlarmSerializer, path_a: Path, path_b: Path) -> int:
    """Print the differences between alarms sharing an ID in two calendar files.

    Returns:
        0 if the files hold the same alarms, 1 otherwise
    """
    left: Dict[str, AlarmEvent] = {e.id: e for e in _load(serializer, path_a).events}
    right: Dict[str, AlarmEvent] = {e.id: e for e in _load(serializer, path_b).events}
    different = False

    for uid in sorted(set(left) | set(right)):
        if uid not in right:
            print(f"{uid}: only in {path_a}")
            different = True
            continue
        if uid not in left:
            print(f"{uid}: only in {path_b}")
            different = True
            continue
        differences = compare(left[uid], right[uid])
        if differences:
            different = True
            print(f"{uid}:")
            for difference in differences:
                print(f"  {difference.label}: {difference.left!r} -> {difference.right!r}")
    return 1 if different else 0


def main_entry(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, configure logging and run the selected command.

    Returns:
        Process exit code
    """
    args = create_parser().parse_args(argv)
    settings = get_settings(config_file=args.config) if args.config else get_settings()
    apply_command_line_overrides(settings, args)
    setup_logging(settings)

    try:
        serializer = AlarmSerializer(settings)
    except TimezoneError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 2
    try:
        if args.command == "dump":
            return run_dump(serializer, args.file, args.lines)
        return run_diff(serializer, args.file_a, args.file_b)
    except AlarmCalError as e:
        logger.error(e.message)
        print(f"Error: {e.message}", file=sys.stderr)
        return 2


__all__ = ["create_parser", "main_entry", "run_diff", "run_dump"]
