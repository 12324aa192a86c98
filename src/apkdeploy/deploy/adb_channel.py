"""
AdbChannel - Drive an Android device through the adb binary.

Targets: physical devices over USB, emulators, devices behind a remote adb server
Strategy: one adb invocation per operation, with a timeout on each call
"""

import subprocess
from typing import Optional

from apkdeploy.core.protocols import Logger, ProcessExecutor
from .exceptions import CommandError, RemotePathNotFoundError, TransportError

DEFAULT_ADB_EXEC_TIMEOUT = 20.0
LS_ERROR_MARKER = '_ERROR_'
LS_MISSING_PATH = 'No such file or directory'

# stderr fragments meaning the device, not the command, is the problem
_TRANSPORT_FAILURES = (
    'no devices/emulators found',
    'device offline',
    'device unauthorized',
    'cannot connect to daemon',
    'protocol fault',
)


class AdbChannel:
    """
    Command channel backed by adb.

    Requirements: adb on PATH (or adb_path), device visible to the adb server
    """

    def __init__(
        self,
        process_executor: ProcessExecutor,
        logger: Logger,
        serial: Optional[str] = None,
        adb_path: str = 'adb',
        adb_host: Optional[str] = None,
        adb_port: Optional[int] = None,
        exec_timeout: float = DEFAULT_ADB_EXEC_TIMEOUT
    ):
        """
        Initialize adb channel.

        Args:
            process_executor: Subprocess execution abstraction
            logger: Logging abstraction
            serial: Device serial (e.g., "emulator-5554"); None = only device
            adb_path: adb executable
            adb_host: Host of a remote adb server (default: local server)
            adb_port: Port of the adb server (default: 5037)
            exec_timeout: Default timeout in seconds for each adb call
        """
        self.process = process_executor
        self.log = logger
        self.serial = serial
        self.adb_path = adb_path
        self.adb_host = adb_host
        self.adb_port = adb_port
        self.exec_timeout = exec_timeout
        self._extended_ls_supported: Optional[bool] = None
        self._api_level: Optional[int] = None
        self._streamed_install_supported: Optional[bool] = None

    def _adb_cmd(self, args: list[str]) -> list[str]:
        """Build adb command with server and device selection."""
        cmd = [self.adb_path]
        if self.adb_host:
            cmd += ['-H', self.adb_host]
        if self.adb_port:
            cmd += ['-P', str(self.adb_port)]
        if self.serial:
            cmd += ['-s', self.serial]
        return cmd + list(args)

    def adb_exec(self, args: list[str], timeout: Optional[float] = None) -> str:
        """
        Run adb with the given arguments and return its stdout.

        Raises:
            TransportError: adb missing, device unreachable, or timeout
            CommandError: adb ran but exited with a non-zero code
        """
        cmd = self._adb_cmd(args)
        timeout = self.exec_timeout if timeout is None else timeout
        self.log.debug(f"Running '{' '.join(cmd)}'")
        try:
            result = self.process.run(cmd, timeout=timeout)
        except subprocess.TimeoutExpired:
            raise TransportError(
                f"'{' '.join(cmd)}' timed out after {timeout:.0f}s\n"
                f"Check the device connection: {self.adb_path} devices"
            )
        except FileNotFoundError:
            raise TransportError(
                f"adb executable not found at '{self.adb_path}'\n"
                f"Install Android platform-tools or set adb_path in the config"
            )

        if result.returncode != 0:
            output = '\n'.join(x for x in (result.stdout.strip(), result.stderr.strip()) if x)
            lowered = output.lower()
            if any(marker in lowered for marker in _TRANSPORT_FAILURES) or (
                'device' in lowered and 'not found' in lowered
            ):
                raise TransportError(
                    f"Device {self.serial or '(default)'} is not reachable: {output}"
                )
            raise CommandError(
                f"'{' '.join(args)}' exited with code {result.returncode}: {output}",
                output=output
            )
        return result.stdout

    def shell(self, command: list[str], timeout: Optional[float] = None) -> str:
        """Run a shell command on the device and return its output."""
        return self.adb_exec(['shell', *command], timeout=timeout)

    def list_directory(self, path: str) -> str:
        """
        List a remote directory, newest first when `ls -t` is supported.

        Older devices reject extended ls options; that is detected once and
        the plain listing is used afterwards.

        Raises:
            RemotePathNotFoundError: If the directory does not exist
            CommandError: If the directory exists but cannot be listed
        """
        output = None
        if self._extended_ls_supported is not False:
            output = self.shell([f"ls -t -1 {path} 2>&1 || echo {LS_ERROR_MARKER}"])
        if output is None or (LS_ERROR_MARKER in output and path not in output):
            if self._extended_ls_supported is None:
                self.log.debug(
                    "The current Android API does not support extended ls options. "
                    "Defaulting to no-options call"
                )
            output = self.shell([f"ls {path} 2>&1 || echo {LS_ERROR_MARKER}"])
            self._extended_ls_supported = False
        else:
            self._extended_ls_supported = True

        if LS_ERROR_MARKER in output:
            message = output[:output.index(LS_ERROR_MARKER)].strip() or f"Cannot list '{path}'"
            if LS_MISSING_PATH in output:
                raise RemotePathNotFoundError(message, output=output)
            raise CommandError(message, output=output)
        return output

    def make_directory(self, path: str) -> None:
        self.shell(['mkdir', '-p', path])

    def remove_files(self, paths: list[str], recursive: bool = False) -> None:
        self.shell(['rm', '-rf' if recursive else '-f', *paths])

    def touch(self, path: str) -> None:
        self.shell(['touch', '-am', path])

    def push(self, local_path: str, remote_path: str, timeout: Optional[float] = None) -> None:
        self.adb_exec(['push', local_path, remote_path], timeout=timeout)

    def run_installer(self, args: list[str], timeout: Optional[float] = None) -> str:
        """Run `pm install` on the device and return its output."""
        return self.shell(['pm', 'install', *args], timeout=timeout)

    def install_local(self, args: list[str], local_path: str, timeout: Optional[float] = None) -> str:
        """Run `adb install` with a local file and return its output."""
        return self.adb_exec(['install', *args, local_path], timeout=timeout)

    def install_multiple(self, args: list[str], local_paths: list[str],
                         timeout: Optional[float] = None) -> str:
        return self.adb_exec(['install-multiple', *args, *local_paths], timeout=timeout)

    def force_stop(self, package_name: str) -> None:
        self.shell(['am', 'force-stop', package_name])

    def uninstall(self, package_name: str, keep_data: bool = False,
                  timeout: Optional[float] = None) -> bool:
        """
        Uninstall a package.

        Returns:
            True if adb reported Success

        Raises:
            CommandError: If the uninstall command could not be executed
        """
        cmd = ['uninstall']
        if keep_data:
            cmd.append('-k')
        cmd.append(package_name)

        try:
            self.force_stop(package_name)
            stdout = self.adb_exec(cmd, timeout=timeout).strip()
        except CommandError as e:
            raise CommandError(f"Unable to uninstall APK. Original error: {e}", output=e.output)
        self.log.debug(f"'adb {' '.join(cmd)}' command output: {stdout}")
        if 'Success' in stdout:
            self.log.info(f"{package_name} was successfully uninstalled")
            return True
        self.log.info(f"{package_name} was not uninstalled")
        return False

    def get_api_level(self) -> int:
        """Device API level, read once from ro.build.version.sdk."""
        if self._api_level is None:
            output = self.shell(['getprop', 'ro.build.version.sdk']).strip()
            try:
                self._api_level = int(output)
            except ValueError:
                raise CommandError(f"Cannot parse the API level from '{output}'", output=output)
            self.log.debug(f"Device API level: {self._api_level}")
        return self._api_level

    def list_features(self) -> list[str]:
        return [line.strip() for line in self.adb_exec(['features']).splitlines() if line.strip()]

    def is_streamed_install_supported(self) -> bool:
        """
        Whether adb and the device both support streamed installs.

        adb advertises --streaming in its help and the device must expose the
        `cmd` feature. The answer is memoized per channel.
        """
        if self._streamed_install_supported is None:
            try:
                help_output = self.adb_exec(['help'])
            except CommandError as e:
                # `adb help` exits non-zero on some releases
                help_output = e.output
            self._streamed_install_supported = (
                '--streaming' in help_output and 'cmd' in self.list_features()
            )
        return self._streamed_install_supported

    def dump_package(self, package_name: str) -> str:
        return self.shell(['dumpsys', 'package', package_name])
