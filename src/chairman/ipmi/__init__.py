"""
IPMI Communication Package for chairman

This package talks to the platform on behalf of the control loop: it reads
the chassis temperature sensors and sends fan duty commands to the BMC.

Key Components:
- IPMICommander: Sends the X9 fan duty command to both fan channels
- SensorReader: Runs the sensor command and parses its readings

Example Usage:
    >>> from chairman.ipmi import IPMICommander, SensorReader
    >>>
    >>> reader = SensorReader()
    >>> readings = reader.read()
    >>>
    >>> commander = IPMICommander()
    >>> results = commander.set_fan_duty(0x20)
"""

from .commander import (
    IPMICommander,
    IPMIError,
    IPMIConnectionError,
    IPMICommandError,
    ActuationResult
)
from .sensors import (
    SensorReader,
    SensorReading,
    SensorSourceUnavailable,
    SensorSourceTimeout
)

__all__ = [
    'IPMICommander',
    'IPMIError',
    'IPMIConnectionError',
    'IPMICommandError',
    'ActuationResult',
    'SensorReader',
    'SensorReading',
    'SensorSourceUnavailable',
    'SensorSourceTimeout'
]
