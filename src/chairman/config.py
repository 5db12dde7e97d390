"""
Configuration Module

This module loads the YAML configuration file and turns it into an
immutable Configuration value that is handed to the control manager
and scheduler at construction time.
"""

import logging
import os
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/chairman/config.yaml"

DUTY_CODE_POLICIES = ("passthrough", "clamp", "reject")
SENSOR_FAILURE_POLICIES = ("skip", "abort")


class ConfigError(ValueError):
    """Raised when the configuration file or one of its values is invalid"""
    pass


@dataclass(frozen=True)
class IPMISettings:
    """Connection details for the BMC that receives the fan commands"""
    host: str = "localhost"
    username: str = "ADMIN"
    password: str = "ADMIN"
    interface: str = "lanplus"
    timeout: float = 10.0
    retries: int = 1
    retry_delay: float = 1.0


@dataclass(frozen=True)
class Configuration:
    """Runtime configuration for one chairman process.

    Attributes:
        interval: Seconds between control cycles, or None to run once
        debug: Report the selected temperature and duty code every cycle
        capacity: Maximum number of sensor readings considered per cycle
        sensor_command: Command whose output lists the temperature sensors
        sensor_filter: Regular expression selecting the sensor lines
        sensor_timeout: Seconds before the sensor command is abandoned
        duty_code_policy: How duty codes outside 0x00-0xff are handled
        on_sensor_failure: Whether a sensor source failure skips the cycle
            or aborts the loop
        ipmi: BMC connection settings
    """
    interval: Optional[int] = None
    debug: bool = False
    capacity: int = 24
    sensor_command: List[str] = field(default_factory=lambda: ["sysctl", "-a"])
    sensor_filter: str = "temperature"
    sensor_timeout: float = 10.0
    duty_code_policy: str = "clamp"
    on_sensor_failure: str = "skip"
    ipmi: IPMISettings = field(default_factory=IPMISettings)

    def __post_init__(self):
        if self.interval is not None and self.interval < 1:
            raise ConfigError(f"Invalid interval {self.interval}, must be >= 1")
        if self.capacity < 1:
            raise ConfigError(f"Invalid sensor capacity {self.capacity}, must be >= 1")
        if not self.sensor_command:
            raise ConfigError("Sensor command must not be empty")
        try:
            re.compile(self.sensor_filter)
        except re.error as e:
            raise ConfigError(f"Invalid sensor filter '{self.sensor_filter}': {e}")
        if self.sensor_timeout <= 0:
            raise ConfigError(f"Invalid sensor timeout {self.sensor_timeout}, must be > 0")
        if self.duty_code_policy not in DUTY_CODE_POLICIES:
            raise ConfigError(
                f"Invalid duty code policy '{self.duty_code_policy}', "
                f"must be one of {', '.join(DUTY_CODE_POLICIES)}"
            )
        if self.on_sensor_failure not in SENSOR_FAILURE_POLICIES:
            raise ConfigError(
                f"Invalid sensor failure policy '{self.on_sensor_failure}', "
                f"must be one of {', '.join(SENSOR_FAILURE_POLICIES)}"
            )
        if self.ipmi.timeout <= 0:
            raise ConfigError(f"Invalid IPMI timeout {self.ipmi.timeout}, must be > 0")
        if self.ipmi.retries < 1:
            raise ConfigError(f"Invalid IPMI retries {self.ipmi.retries}, must be >= 1")

    def with_mode(self, interval: Optional[int], debug: bool) -> "Configuration":
        """Return a copy carrying the run mode chosen on the command line"""
        return replace(self, interval=interval, debug=debug)


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return section


def from_dict(data: Optional[Dict[str, Any]]) -> Configuration:
    """Build a Configuration from parsed YAML data.

    Missing sections and keys fall back to the defaults.

    Args:
        data: Parsed configuration mapping (None for an empty file)

    Returns:
        Validated Configuration

    Raises:
        ConfigError: If a value has the wrong type or is out of range
    """
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    sensors = _section(data, "sensors")
    fans = _section(data, "fans")
    ipmi = _section(data, "ipmi")
    safety = _section(data, "safety")

    defaults = Configuration()
    ipmi_defaults = IPMISettings()

    command = sensors.get("command", defaults.sensor_command)
    if isinstance(command, str):
        command = command.split()

    try:
        settings = IPMISettings(
            host=str(ipmi.get("host", ipmi_defaults.host)),
            username=str(ipmi.get("username", ipmi_defaults.username)),
            password=str(ipmi.get("password", ipmi_defaults.password)),
            interface=str(ipmi.get("interface", ipmi_defaults.interface)),
            timeout=float(ipmi.get("timeout", ipmi_defaults.timeout)),
            retries=int(ipmi.get("retries", ipmi_defaults.retries)),
            retry_delay=float(ipmi.get("retry_delay", ipmi_defaults.retry_delay)),
        )
        return Configuration(
            capacity=int(sensors.get("capacity", defaults.capacity)),
            sensor_command=[str(part) for part in command],
            sensor_filter=str(sensors.get("filter", defaults.sensor_filter)),
            sensor_timeout=float(sensors.get("timeout", defaults.sensor_timeout)),
            duty_code_policy=str(fans.get("duty_code_policy", defaults.duty_code_policy)),
            on_sensor_failure=str(safety.get("on_sensor_failure", defaults.on_sensor_failure)),
            ipmi=settings,
        )
    except ConfigError:
        raise
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration value: {e}")


def load_config(config_path: Optional[str] = None) -> Configuration:
    """Load configuration from a YAML file.

    When no path is given the default location is used if it exists,
    otherwise the built-in defaults apply.

    Args:
        config_path: Path to configuration file

    Returns:
        Validated Configuration

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    if config_path is None:
        if not os.path.exists(DEFAULT_CONFIG_PATH):
            logger.debug(f"No configuration at {DEFAULT_CONFIG_PATH}, using defaults")
            return Configuration()
        config_path = DEFAULT_CONFIG_PATH

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Failed to read configuration {config_path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration {config_path}: {e}")

    config = from_dict(data)
    logger.info(f"Loaded configuration from {config_path}")
    return config
