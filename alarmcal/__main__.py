"""Entry point for `python -m alarmcal`."""

import sys

from alarmcal.cli import main_entry


def main() -> None:
    """Entry point for python -m alarmcal and the console script."""
    try:
        sys.exit(main_entry())
    except KeyboardInterrupt:
        print("Operation cancelled by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
