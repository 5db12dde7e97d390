"""
Command Line Interface Module

This module provides the command-line interface for running the
fan control loop once, at a fixed interval, or for printing the
temperature curve.
"""

import argparse
import logging
import re
from typing import List, Optional

from ..config import ConfigError, load_config
from ..control import ControlManager, Scheduler
from ..control.curve import RelationalCurve, describe
from ..ipmi import SensorSourceUnavailable

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

logging.getLogger('chairman').setLevel(logging.INFO)

MIN_INTERVAL = 1

_INTEGER = re.compile(r"[+-]?\d+")


class InvalidArguments(Exception):
    """Raised when the command line does not match any supported mode"""
    pass


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser that reports errors instead of exiting"""

    def error(self, message):
        raise InvalidArguments(message)


def parse_interval(value: str) -> int:
    """Parse an interval argument.

    Args:
        value: Command line string

    Returns:
        Interval in seconds

    Raises:
        InvalidArguments: If value is not a whole integer >= MIN_INTERVAL
    """
    if not _INTEGER.fullmatch(value):
        raise InvalidArguments(f"'{value}' is not an integer")
    interval = int(value)
    if interval < MIN_INTERVAL:
        raise InvalidArguments(f"{interval} is below the minimum of {MIN_INTERVAL} second")
    return interval


class CLI:
    """Command-line interface handler"""

    def __init__(self):
        """Initialize CLI handler"""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create command-line argument parser

        Returns:
            Configured argument parser
        """
        parser = _ArgumentParser(
            prog="chairman",
            add_help=False,
            usage="%(prog)s [-h] [--table] [--debug] [-c CONFIG] [INTERVAL]",
            description=(
                "Temperature control for X9 based Supermicro boards.\n"
                "Bang-bang control with the fan duty taken from the hottest sensor.\n"
                f"Relational approach {describe()}"
            ),
            epilog=(
                "Without INTERVAL a single control cycle is run. "
                "--debug may be given before or after INTERVAL."
            ),
            formatter_class=argparse.RawDescriptionHelpFormatter
        )

        parser.add_argument(
            "interval",
            nargs="?",
            metavar="INTERVAL",
            help="Repeat the control cycle every INTERVAL seconds (>= 1)"
        )

        parser.add_argument(
            "-h", "--help",
            action="store_true",
            help="Show this help message and exit"
        )

        parser.add_argument(
            "--table",
            action="store_true",
            help="Print the fan curve from 0 to 100 °C and exit"
        )

        parser.add_argument(
            "--debug",
            action="store_true",
            help="Report the selected temperature and duty code every cycle"
        )

        parser.add_argument(
            "-c", "--config",
            help="Path to configuration file",
            default=None
        )

        return parser

    def _print_table(self) -> None:
        for line in RelationalCurve().format_table(0, 100):
            print(line)

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run the CLI interface

        Args:
            argv: Command line arguments (None for sys.argv)

        Returns:
            Process exit status
        """
        try:
            args = self.parser.parse_args(argv)
        except InvalidArguments as e:
            print(f"Invalid arguments: {e}")
            print(self.parser.format_usage().rstrip())
            return 2

        if args.help:
            print(self.parser.format_help().rstrip())
            return 0

        if args.table and (args.interval is not None or args.debug):
            print("Invalid arguments: --table cannot be combined with other modes")
            print(self.parser.format_usage().rstrip())
            return 2

        if args.table:
            self._print_table()
            return 0

        interval = None
        if args.interval is not None:
            try:
                interval = parse_interval(args.interval)
            except InvalidArguments as e:
                print(f"Invalid interval: {e}")
                return 2

        if args.debug:
            logging.getLogger('chairman').setLevel(logging.DEBUG)

        try:
            config = load_config(args.config).with_mode(interval, args.debug)
        except ConfigError as e:
            logger.error(f"Error: {e}")
            return 1

        scheduler = Scheduler(ControlManager(config))

        try:
            if interval is None:
                scheduler.run_once()
            else:
                print(f"Hysteresis: {interval} seconds")
                scheduler.run_forever()

        except SensorSourceUnavailable as e:
            logger.error(f"Failed to run command: {e}")
            return 1

        except KeyboardInterrupt:
            print("\nExiting...")

        return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    cli = CLI()
    return cli.run(argv)


if __name__ == "__main__":
    raise SystemExit(main())
