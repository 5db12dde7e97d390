"""
Temperature Sensor Acquisition Module

This module runs the platform sensor command and turns its output
into the integer readings consumed by a control cycle.
"""

import logging
import re
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

# Decimal, 0x hexadecimal or 0 octal, as scanf %i reads them
_LEADING_INT = re.compile(r"([+-]?)(?:0[xX]([0-9a-fA-F]+)|(0[0-7]*)|([1-9][0-9]*))")


def _parse_int(match: re.Match) -> int:
    sign, hex_digits, octal_digits, decimal_digits = match.groups()
    if hex_digits:
        value = int(hex_digits, 16)
    elif octal_digits:
        value = int(octal_digits, 8)
    else:
        value = int(decimal_digits)
    return -value if sign == "-" else value


class SensorSourceUnavailable(Exception):
    """Raised when the sensor command cannot be started"""
    pass


class SensorSourceTimeout(SensorSourceUnavailable):
    """Raised when the sensor command does not finish in time"""
    pass


@dataclass
class SensorReading:
    """A single temperature line from the sensor command.

    Attributes:
        name: Sensor label as printed by the command
            (e.g. "dev.cpu.0.temperature:")
        value: Integer temperature, 0 when the line could not be parsed
    """
    name: str
    value: int

    @property
    def is_valid(self) -> bool:
        """Only strictly positive readings take part in selection"""
        return self.value > 0


def parse_sensor_line(line: str) -> SensorReading:
    """Parse a "<label> <integer>" line.

    The value is the leading integer of the token after the label, so
    "dev.cpu.0.temperature: 45.0C" reads as 45. A 0x prefix reads
    hexadecimal and a leading 0 reads octal. Lines without such a token
    yield a reading of 0.

    Args:
        line: One line of sensor command output

    Returns:
        SensorReading for the line
    """
    parts = line.split()
    if not parts:
        return SensorReading(name="", value=0)

    name = parts[0]
    if len(parts) < 2:
        logger.debug(f"No value in sensor line: {line.strip()}")
        return SensorReading(name=name, value=0)

    match = _LEADING_INT.match(parts[1])
    if not match:
        logger.debug(f"Could not parse value from: {line.strip()}")
        return SensorReading(name=name, value=0)

    return SensorReading(name=name, value=_parse_int(match))


def parse_sensor_output(output: str, pattern: Optional[re.Pattern] = None,
                        limit: Optional[int] = None) -> List[SensorReading]:
    """Parse sensor command output into readings.

    Args:
        output: Complete command output
        pattern: Only lines matching this expression are read (None for all)
        limit: Maximum number of readings to return

    Returns:
        Readings in output order
    """
    readings = []
    for line in output.splitlines():
        if not line.strip():
            continue
        if pattern is not None and not pattern.search(line):
            continue
        if limit is not None and len(readings) >= limit:
            logger.debug(f"Sensor limit {limit} reached, ignoring: {line.strip()}")
            continue
        readings.append(parse_sensor_line(line))
    return readings


class SensorReader:
    """Reads temperature sensors through an external command"""

    def __init__(self, command: Sequence[str] = ("sysctl", "-a"),
                 sensor_filter: Optional[str] = "temperature",
                 capacity: int = 24, timeout: float = 10.0):
        """Initialize sensor reader

        Args:
            command: Command and arguments listing the sensors
            sensor_filter: Regular expression selecting sensor lines (None for all)
            capacity: Maximum number of readings per call
            timeout: Seconds to wait for the command
        """
        self.command = list(command)
        self.pattern = re.compile(sensor_filter) if sensor_filter else None
        self.capacity = capacity
        self.timeout = timeout

    def read(self) -> List[SensorReading]:
        """Run the sensor command and parse its output.

        A non-zero exit status is logged and the output is still parsed.

        Returns:
            Up to capacity readings in command output order

        Raises:
            SensorSourceUnavailable: If the command cannot be started
            SensorSourceTimeout: If the command exceeds the timeout
        """
        try:
            result = subprocess.run(
                self.command,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            raise SensorSourceTimeout(
                f"Sensor command '{' '.join(self.command)}' timed out after {self.timeout}s"
            )
        except OSError as e:
            raise SensorSourceUnavailable(f"Failed to run sensor command '{' '.join(self.command)}': {e}")

        if result.returncode != 0:
            logger.debug(f"Sensor command exited with status {result.returncode}: {result.stderr.strip()}")

        readings = parse_sensor_output(result.stdout, self.pattern, self.capacity)
        for reading in readings:
            logger.debug(f"Raw reading: {reading.name} = {reading.value}")
        return readings
