"""Fan curve implementations."""

from typing import List, Tuple
import logging
import math

logger = logging.getLogger(__name__)

# g(x) = e^((x - OFFSET) / SLOPE) + FLOOR
CURVE_OFFSET = 17.33793493
CURVE_SLOPE = 15.0
CURVE_FLOOR = 7.65

# Default Supermicro fan
MAX_FANSPEED = 12000  # RPM
MAX_PWM_VAL = 255

MIN_DUTY_CODE = 0x00
MAX_DUTY_CODE = 0xff


class DutyCodeRejected(ValueError):
    """Raised when a duty code is outside the byte range under the reject policy"""
    pass


def _relational(temp: float, offset: float, slope: float, floor: float) -> float:
    try:
        return math.exp((temp - offset) / slope) + floor
    except OverflowError:
        return math.inf


def calculate_fan_speed(temp: float) -> float:
    """Map a temperature to a fan speed value on the relational curve.

    Args:
        temp: Temperature in degrees

    Returns:
        Continuous fan speed value, never below CURVE_FLOOR. Temperatures
        too large for a float result give math.inf.
    """
    return _relational(temp, CURVE_OFFSET, CURVE_SLOPE, CURVE_FLOOR)


def interpolate_fan_speed(speed: float) -> int:
    """Round a fan speed value to the nearest integer duty code.

    Halves round away from zero: negative values subtract 0.5 and
    non-negative values add 0.5 before truncating toward zero.
    Infinite values map one step outside the byte range so that
    apply_duty_policy() treats them like any other out-of-range code.

    Args:
        speed: Fan speed value from calculate_fan_speed()

    Returns:
        Integer duty code
    """
    if math.isinf(speed):
        return MAX_DUTY_CODE + 1 if speed > 0 else MIN_DUTY_CODE - 1
    return int(speed - 0.5) if speed < 0 else int(speed + 0.5)


def estimate_rpm(speed: float) -> float:
    """Convert a fan speed value or duty code to revolutions per minute"""
    return speed * MAX_FANSPEED / MAX_PWM_VAL


def apply_duty_policy(code: int, policy: str) -> int:
    """Apply the configured out-of-range handling to a duty code.

    Args:
        code: Duty code from interpolate_fan_speed()
        policy: "passthrough", "clamp" or "reject"

    Returns:
        Duty code to send to the BMC

    Raises:
        DutyCodeRejected: If the code is out of range under the reject policy
        ValueError: If the policy is unknown
    """
    if MIN_DUTY_CODE <= code <= MAX_DUTY_CODE or policy == "passthrough":
        return code
    if policy == "clamp":
        clamped = max(MIN_DUTY_CODE, min(MAX_DUTY_CODE, code))
        logger.warning(f"Duty code {hex(code)} out of range, clamped to {hex(clamped)}")
        return clamped
    if policy == "reject":
        raise DutyCodeRejected(f"Duty code {hex(code)} outside {hex(MIN_DUTY_CODE)}-{hex(MAX_DUTY_CODE)}")
    raise ValueError(f"Unknown duty code policy '{policy}'")


class FanCurve:
    """Base class for fan speed curves."""

    def get_speed(self, temp: float) -> float:
        """Get fan speed value for a temperature.

        Args:
            temp: Temperature in degrees

        Returns:
            Continuous fan speed value
        """
        raise NotImplementedError

    def get_duty_code(self, temp: float) -> int:
        """Get the quantized duty code for a temperature."""
        return interpolate_fan_speed(self.get_speed(temp))


class RelationalCurve(FanCurve):
    """Exponential curve fitted to the PWM response of the X9 chassis fans.

    The curve rises slowly around room temperature and superlinearly
    above it, approaching CURVE_FLOOR at low temperatures. It reaches
    the full 0xff duty byte at 100 degrees.
    """

    def __init__(self, offset: float = CURVE_OFFSET, slope: float = CURVE_SLOPE,
                 floor: float = CURVE_FLOOR):
        """Initialize curve parameters.

        Args:
            offset: Temperature at which the exponential term equals 1
            slope: Temperature change that scales the exponential term by e
            floor: Additive floor approached at low temperatures
        """
        if slope <= 0:
            raise ValueError(f"Invalid slope {slope}, must be > 0")
        self.offset = offset
        self.slope = slope
        self.floor = floor

    def get_speed(self, temp: float) -> float:
        return _relational(temp, self.offset, self.slope, self.floor)

    def sweep(self, start: int = 0, stop: int = 100) -> List[Tuple[int, float, float]]:
        """Evaluate the curve at every integer temperature in [start, stop].

        Returns:
            List of (temperature, fan speed value, estimated RPM) tuples
        """
        table = []
        for temp in range(start, stop + 1):
            speed = self.get_speed(temp)
            table.append((temp, speed, estimate_rpm(speed)))
        return table

    def format_table(self, start: int = 0, stop: int = 100) -> List[str]:
        """Render sweep() as printable lines"""
        return [
            f"{temp:3d} °C: {speed:f} = {rpm:f} 1/60s"
            for temp, speed, rpm in self.sweep(start, stop)
        ]


def describe() -> str:
    """Human readable formula of the default curve"""
    return f"g(x) = e^((x - {CURVE_OFFSET}) / {CURVE_SLOPE:g}) + {CURVE_FLOOR}"
