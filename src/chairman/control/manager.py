"""
Fan Control Manager Module

This module provides the control cycle that turns the current sensor
readings into a fan duty command, and the scheduler that repeats it.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..config import Configuration
from ..ipmi import IPMICommander, ActuationResult
from ..ipmi.sensors import SensorReader, SensorSourceUnavailable
from .curve import FanCurve, RelationalCurve, DutyCodeRejected, apply_duty_policy, estimate_rpm
from .ranker import ReadingBuffer, select_max_positive

logger = logging.getLogger(__name__)


@dataclass
class CycleResult:
    """Outcome of one control cycle.

    Attributes:
        max_temp: Highest valid reading, None if there was none
        fan_speed: Curve value for max_temp
        duty_code: Duty code sent to the BMC, None if nothing was sent
        actuations: One result per fan channel that was commanded
        skipped: Reason the cycle sent no command
    """
    max_temp: Optional[int] = None
    fan_speed: Optional[float] = None
    duty_code: Optional[int] = None
    actuations: List[ActuationResult] = field(default_factory=list)
    skipped: Optional[str] = None

    @property
    def actuated(self) -> bool:
        return self.duty_code is not None

    @property
    def success(self) -> bool:
        """True if a command was sent and every channel accepted it"""
        return self.actuated and all(r.success for r in self.actuations)


class ControlManager:
    """Runs single control cycles"""

    def __init__(self, config: Configuration,
                 commander: Optional[IPMICommander] = None,
                 sensor_reader: Optional[SensorReader] = None,
                 curve: Optional[FanCurve] = None):
        """Initialize control manager

        Args:
            config: Runtime configuration
            commander: IPMI commander (built from config if None)
            sensor_reader: Sensor reader (built from config if None)
            curve: Temperature to fan speed curve
        """
        self.config = config
        self.commander = commander or IPMICommander.from_settings(config.ipmi)
        self.sensor_reader = sensor_reader or SensorReader(
            command=config.sensor_command,
            sensor_filter=config.sensor_filter,
            capacity=config.capacity,
            timeout=config.sensor_timeout
        )
        self.curve = curve or RelationalCurve()
        logger.debug("Control manager initialized")

    def run_cycle(self) -> CycleResult:
        """Run one control cycle.

        Reads the sensors into a fresh buffer, selects the hottest
        strictly positive reading, maps it through the curve and sends
        the resulting duty code to both fan channels.

        Returns:
            CycleResult describing what was done

        Raises:
            SensorSourceUnavailable: If the sensor command cannot be run
        """
        readings = self.sensor_reader.read()

        buffer = ReadingBuffer(self.config.capacity)
        buffer.fill(r.value for r in readings)

        max_temp = select_max_positive(buffer)
        if max_temp is None:
            logger.debug(f"No valid temperature among {len(buffer)} readings, leaving fans unchanged")
            return CycleResult(skipped="no valid reading")

        fan_speed = self.curve.get_speed(max_temp)
        try:
            duty_code = apply_duty_policy(self.curve.get_duty_code(max_temp),
                                          self.config.duty_code_policy)
        except DutyCodeRejected as e:
            logger.warning(f"Not setting fan duty for {max_temp}°C: {e}")
            return CycleResult(max_temp=max_temp, fan_speed=fan_speed, skipped="duty code rejected")

        report = logger.info if self.config.debug else logger.debug
        report(f"Highest temp: {max_temp}")
        report(f"Target fan speed: {hex(duty_code)} = {estimate_rpm(duty_code):.0f} 1/60s")

        actuations = self.commander.set_fan_duty(duty_code)
        failed = [r for r in actuations if not r.success]
        if failed:
            logger.error(f"Fan duty {hex(duty_code)} not applied on: {', '.join(r.channel for r in failed)}")

        return CycleResult(
            max_temp=max_temp,
            fan_speed=fan_speed,
            duty_code=duty_code,
            actuations=actuations
        )


class Scheduler:
    """Repeats control cycles at a fixed interval"""

    def __init__(self, manager: ControlManager, sleep: Callable[[float], None] = time.sleep):
        """Initialize scheduler

        Args:
            manager: Control manager whose cycles are run
            sleep: Function used to wait between cycles
        """
        self.manager = manager
        self.config = manager.config
        self._sleep = sleep

    def run_once(self) -> CycleResult:
        """Run a single cycle.

        Raises:
            SensorSourceUnavailable: If the sensor command cannot be run
        """
        return self.manager.run_cycle()

    def run_forever(self, max_cycles: Optional[int] = None) -> int:
        """Run cycles separated by the configured interval.

        Errors inside a cycle are logged and the next cycle runs after the
        interval. A sensor source failure either skips the cycle or stops
        the loop, depending on the on_sensor_failure setting.

        Args:
            max_cycles: Stop after this many cycles (None runs until interrupted)

        Returns:
            Number of cycles run

        Raises:
            SensorSourceUnavailable: If the sensor command fails under the abort policy
        """
        interval = self.config.interval or 1
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            try:
                self.manager.run_cycle()
            except SensorSourceUnavailable as e:
                if self.config.on_sensor_failure == "abort":
                    logger.error(f"Sensor source unavailable, stopping: {e}")
                    raise
                logger.warning(f"Sensor source unavailable, skipping cycle: {e}")
            except Exception as e:
                logger.error(f"Control loop error: {e}")

            cycles += 1
            self._sleep(interval)
        return cycles
