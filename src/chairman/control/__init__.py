"""
Control package for chairman

This package provides the fan control logic: the temperature curve,
sensor ranking, the control cycle and its scheduler.
"""

from .curve import FanCurve, RelationalCurve, calculate_fan_speed, interpolate_fan_speed
from .ranker import ReadingBuffer, heapsort, select_max_positive
from .manager import ControlManager, CycleResult, Scheduler

__all__ = [
    'FanCurve',
    'RelationalCurve',
    'calculate_fan_speed',
    'interpolate_fan_speed',
    'ReadingBuffer',
    'heapsort',
    'select_max_positive',
    'ControlManager',
    'CycleResult',
    'Scheduler'
]
