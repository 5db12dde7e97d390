"""
IPMI Command Execution Module

This module provides a wrapper around ipmitool for executing IPMI commands
and setting the fan duty cycle on X9 based Supermicro boards.
"""

import subprocess
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)


class IPMIError(Exception):
    """Base exception for IPMI-related errors"""
    pass


class IPMIConnectionError(IPMIError):
    """Raised when IPMI connection fails"""
    pass


class IPMICommandError(IPMIError):
    """Raised when an IPMI command fails"""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


@dataclass
class ActuationResult:
    """Outcome of a single fan duty command.

    Attributes:
        channel: Fan channel name ("system" or "peripheral")
        command: Raw IPMI command that was issued
        success: True if ipmitool exited with status 0
        returncode: Exit status, None if the command never ran to completion
        error: Error description for failed commands
    """
    channel: str
    command: str
    success: bool
    returncode: Optional[int] = None
    error: Optional[str] = None


class IPMICommander:
    """Handles IPMI command execution and fan duty control"""

    # Known dangerous commands that should never be executed
    BLACKLISTED_COMMANDS = {
        # Commands that affect fan/sensor behavior
        (0x06, 0x01),  # Get supported commands - causes fans to drop speed
        (0x06, 0x02),  # Get OEM commands - may affect sensor readings
    }

    # X9 OEM fan duty command, the channel byte and duty byte are appended
    SET_FAN_DUTY = "raw 0x30 0x91 0x5A 0x3"

    # Both channels always receive the same duty code
    FAN_CHANNELS = {
        "system": 0x10,
        "peripheral": 0x11,
    }

    def __init__(self, host: str = "localhost", username: str = "ADMIN",
                 password: str = "ADMIN", interface: str = "lanplus",
                 timeout: float = 10.0, retries: int = 1, retry_delay: float = 1.0):
        """Initialize IPMI commander with connection details

        Args:
            host: IPMI host address ("localhost" uses the local BMC interface)
            username: IPMI username
            password: IPMI password
            interface: IPMI interface type
            timeout: Seconds before an ipmitool call is abandoned
            retries: Number of attempts per command
            retry_delay: Delay between retries in seconds
        """
        self.host = host
        self.username = username
        self.password = password
        self.interface = interface
        self.timeout = timeout
        self.retries = retries
        self.retry_delay = retry_delay

    @classmethod
    def from_settings(cls, settings) -> "IPMICommander":
        """Create a commander from an IPMISettings value"""
        return cls(
            host=settings.host,
            username=settings.username,
            password=settings.password,
            interface=settings.interface,
            timeout=settings.timeout,
            retries=settings.retries,
            retry_delay=settings.retry_delay,
        )

    def _validate_raw_command(self, command: str) -> None:
        """Validate a raw IPMI command for safety and format.

        This method checks IPMI commands for:
        1. Blacklisted commands that could affect system stability
        2. Valid hex format in command bytes
        3. Duty bytes within 0x00-0xff

        Args:
            command: Raw IPMI command string (e.g., "raw 0x30 0x91 0x5A 0x3 0x10 0x20")

        Raises:
            IPMIError: If command is blacklisted or invalid

        Examples:
            >>> commander._validate_raw_command("raw 0x30 0x91 0x5A 0x3 0x10 0x20")
            >>> commander._validate_raw_command("raw 0x06 0x01")  # Raises IPMIError (blacklisted)
            >>> commander._validate_raw_command("raw 0xZZ 0x01")  # Raises IPMIError (invalid hex)
        """
        parts = command.split()
        if len(parts) < 3 or parts[0] != "raw":
            return  # Not a raw command, skip validation

        for p in parts[1:]:
            hex_val = p[2:] if p.lower().startswith('0x') else p
            if not hex_val or not all(c in '0123456789abcdefABCDEF' for c in hex_val):
                raise IPMIError("Invalid command format: malformed hex value")

        netfn = int(parts[1], 16)
        cmd = int(parts[2], 16)

        if (netfn, cmd) in self.BLACKLISTED_COMMANDS:
            raise IPMIError(f"Command {hex(netfn)} {hex(cmd)} is blacklisted for safety")

        if netfn == 0x30 and cmd == 0x91 and len(parts) >= 7:
            duty = int(parts[-1], 16)
            if duty > 0xff:
                raise IPMIError(f"Invalid fan duty: {hex(duty)}")

    def _base_command(self) -> List[str]:
        if self.host == "localhost":
            return ["ipmitool"]
        return [
            "ipmitool", "-I", self.interface,
            "-H", self.host,
            "-U", self.username,
            "-P", self.password
        ]

    def _execute_ipmi_command(self, command: str) -> str:
        """Execute an IPMI command and return its output

        Args:
            command: IPMI command to execute

        Returns:
            Command output as string

        Raises:
            IPMIConnectionError: If connection fails
            IPMICommandError: If command execution fails or times out
            IPMIError: If command is invalid or unsafe
        """
        self._validate_raw_command(command)

        full_cmd = self._base_command() + command.split()
        last_error = None
        for attempt in range(self.retries):
            if attempt > 0:
                time.sleep(self.retry_delay)
                logger.debug(f"Retrying IPMI command (attempt {attempt + 1}/{self.retries})")

            try:
                result = subprocess.run(
                    full_cmd,
                    capture_output=True,
                    text=True,
                    check=True,
                    timeout=self.timeout
                )
                return result.stdout.strip()
            except subprocess.CalledProcessError as e:
                last_error = e
                stderr = e.stderr or ""
                if "Device or resource busy" in stderr and attempt < self.retries - 1:
                    logger.debug(f"IPMI device busy, retrying... ({attempt + 1}/{self.retries})")
                    continue
                if "Error in open session" in stderr:
                    raise IPMIConnectionError(f"Failed to connect to IPMI: {stderr.strip()}")
                if attempt == self.retries - 1:
                    raise IPMICommandError(
                        f"Command failed after {self.retries} attempts: {stderr.strip()}",
                        returncode=e.returncode
                    )
            except subprocess.TimeoutExpired:
                raise IPMICommandError(f"Command timed out after {self.timeout}s: {command}")
            except OSError as e:
                raise IPMIError(f"Failed to run ipmitool: {e}")

        raise IPMIError(f"Command failed after {self.retries} attempts: {last_error}")

    def fan_duty_command(self, channel: str, duty_code: int) -> str:
        """Build the raw command setting one channel to a duty code.

        The duty code is written as lowercase hex without zero padding,
        e.g. 13 becomes "0xd".
        """
        return f"{self.SET_FAN_DUTY} {hex(self.FAN_CHANNELS[channel])} 0x{duty_code:x}"

    def set_fan_duty(self, duty_code: int) -> List[ActuationResult]:
        """Send the same duty code to both fan channels.

        Each channel is commanded independently; a failure on one
        channel is logged and does not prevent the other.

        Args:
            duty_code: Duty byte to apply

        Returns:
            One ActuationResult per channel, in FAN_CHANNELS order

        Examples:
            >>> commander = IPMICommander()
            >>> results = commander.set_fan_duty(0x20)
            >>> all(r.success for r in results)
            True
        """
        results = []
        for channel in self.FAN_CHANNELS:
            command = self.fan_duty_command(channel, duty_code)
            try:
                self._execute_ipmi_command(command)
                logger.info(f"{channel.title()} fans set to duty {hex(duty_code)}")
                results.append(ActuationResult(channel=channel, command=command,
                                               success=True, returncode=0))
            except IPMIError as e:
                logger.error(f"Failed to set {channel} fan duty: {e}")
                results.append(ActuationResult(
                    channel=channel,
                    command=command,
                    success=False,
                    returncode=getattr(e, "returncode", None),
                    error=str(e)
                ))
        return results
