"""
ChannelFactory - Parse device strings into command channels.

Format-based routing:
    (empty)                     → only connected device, local adb server
    emulator-5554               → device by serial, local adb server
    emulator-5554@host          → device by serial, adb server on host:5037
    emulator-5554@host:5038     → device by serial, adb server on host:5038
    @host:5038                  → only device of the adb server on host:5038
    serial@[fe80::1]:5038       → IPv6 adb server host
"""

from typing import Optional, Tuple

from apkdeploy.core.protocols import Logger, ProcessExecutor
from .adb_channel import AdbChannel, DEFAULT_ADB_EXEC_TIMEOUT

DEFAULT_ADB_SERVER_PORT = 5037


def parse_device_string(device: Optional[str]) -> Tuple[Optional[str], Optional[str], Optional[int]]:
    """
    Split a device string into (serial, adb_host, adb_port).

    Raises:
        ValueError: If format not recognized
    """
    if not device:
        return None, None, None

    if '@' not in device:
        return device, None, None

    serial, host_part = device.split('@', 1)
    if not host_part:
        raise ValueError(f"Missing adb server host: {device}")

    # Check for IPv6 brackets
    if host_part.startswith('['):
        bracket_end = host_part.find(']')
        if bracket_end == -1:
            raise ValueError(f"Malformed IPv6 address: {device}")
        host = host_part[1:bracket_end]
        remainder = host_part[bracket_end + 1:]
        port_str = remainder[1:] if remainder.startswith(':') else None
    elif ':' in host_part:
        host, port_str = host_part.rsplit(':', 1)
    else:
        host, port_str = host_part, None

    try:
        port = int(port_str) if port_str else DEFAULT_ADB_SERVER_PORT
    except ValueError:
        raise ValueError(f"Invalid adb server port in device string: {device}")

    return serial or None, host, port


class ChannelFactory:
    """Factory for parsing device strings into adb channels."""

    @staticmethod
    def from_device_string(
        device: Optional[str],
        process_executor: ProcessExecutor,
        logger: Logger,
        adb_path: str = 'adb',
        exec_timeout: float = DEFAULT_ADB_EXEC_TIMEOUT
    ) -> AdbChannel:
        """
        Parse device string and return an AdbChannel bound to it.

        Args:
            device: Device string (or None for the only connected device)
            process_executor: Subprocess execution abstraction
            logger: Logging abstraction
            adb_path: adb executable
            exec_timeout: Default timeout in seconds for each adb call

        Raises:
            ValueError: If format not recognized

        Example:
            channel = ChannelFactory.from_device_string(
                "emulator-5554@build-host:5037", SubprocessExecutor(), ConsoleLogger()
            )
        """
        serial, host, port = parse_device_string(device)
        return AdbChannel(
            process_executor,
            logger,
            serial=serial,
            adb_path=adb_path,
            adb_host=host,
            adb_port=port,
            exec_timeout=exec_timeout
        )
