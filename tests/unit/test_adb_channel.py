"""Unit tests for AdbChannel.

Follows the mocked-process style: every adb invocation goes through a
Mock(spec=ProcessExecutor), so no adb binary or device is needed.
"""
import subprocess
from unittest.mock import Mock

import pytest

from apkdeploy.core.protocols import Logger, ProcessExecutor, ProcessResult
from apkdeploy.deploy.adb_channel import AdbChannel
from apkdeploy.deploy.base import CommandChannel
from apkdeploy.deploy.exceptions import (
    CommandError,
    RemotePathNotFoundError,
    TransportError,
)


def ok(stdout=''):
    return ProcessResult(returncode=0, stdout=stdout, stderr='')


def failed(stdout='', stderr='', returncode=1):
    return ProcessResult(returncode=returncode, stdout=stdout, stderr=stderr)


class AdbChannelTestBase:
    def setup_method(self):
        self.process = Mock(spec=ProcessExecutor)
        self.process.run.return_value = ok()
        self.logger = Mock(spec=Logger)
        self.channel = AdbChannel(self.process, self.logger, serial='emulator-5554')

    def commands(self):
        return [c[0][0] for c in self.process.run.call_args_list]


class TestAdbChannelCommands(AdbChannelTestBase):
    """Test command construction."""

    def test_satisfies_command_channel_protocol(self):
        assert isinstance(self.channel, CommandChannel)

    def test_serial_selects_device(self):
        self.channel.push('/builds/app.apk', '/data/local/tmp/x.apk')

        self.process.run.assert_called_once_with(
            ['adb', '-s', 'emulator-5554', 'push', '/builds/app.apk', '/data/local/tmp/x.apk'],
            timeout=20.0
        )

    def test_remote_server_options(self):
        channel = AdbChannel(
            self.process, self.logger, adb_path='/sdk/adb', adb_host='build-host', adb_port=5038
        )

        channel.make_directory('/data/local/tmp/cache')

        assert self.commands() == [
            ['/sdk/adb', '-H', 'build-host', '-P', '5038',
             'shell', 'mkdir', '-p', '/data/local/tmp/cache']
        ]

    def test_explicit_timeout_wins(self):
        self.channel.install_local(['-r'], '/builds/app.apk', timeout=120)

        self.process.run.assert_called_once_with(
            ['adb', '-s', 'emulator-5554', 'install', '-r', '/builds/app.apk'], timeout=120
        )

    def test_run_installer_uses_package_manager(self):
        self.process.run.return_value = ok('Success\n')

        output = self.channel.run_installer(['-r', '/data/local/tmp/x.apk'])

        assert output == 'Success\n'
        assert self.commands()[0][3:] == ['shell', 'pm', 'install', '-r', '/data/local/tmp/x.apk']

    def test_install_multiple(self):
        self.channel.install_multiple(['-r', '-g'], ['/t/base.apk', '/t/en.apk'])

        assert self.commands()[0][3:] == ['install-multiple', '-r', '-g', '/t/base.apk', '/t/en.apk']

    def test_remove_files(self):
        self.channel.remove_files(['/c/a.apk', '/c/b.apk'])
        self.channel.remove_files(['/c/*'], recursive=True)

        assert self.commands()[0][3:] == ['shell', 'rm', '-f', '/c/a.apk', '/c/b.apk']
        assert self.commands()[1][3:] == ['shell', 'rm', '-rf', '/c/*']

    def test_touch(self):
        self.channel.touch('/c/a.apk')

        assert self.commands()[0][3:] == ['shell', 'touch', '-am', '/c/a.apk']


class TestAdbChannelErrors(AdbChannelTestBase):
    """Test error mapping."""

    def test_timeout_is_transport_error(self):
        self.process.run.side_effect = subprocess.TimeoutExpired(cmd='adb', timeout=20)

        with pytest.raises(TransportError, match='timed out'):
            self.channel.push('/a.apk', '/b.apk')

    def test_missing_adb_is_transport_error(self):
        self.process.run.side_effect = FileNotFoundError('adb')

        with pytest.raises(TransportError, match='adb executable not found'):
            self.channel.dump_package('io.example')

    @pytest.mark.parametrize('stderr', [
        "error: device 'emulator-5554' not found",
        'error: device offline',
        'error: no devices/emulators found',
        'adb: error: failed to get feature set: device unauthorized.',
    ])
    def test_unreachable_device_is_transport_error(self, stderr):
        self.process.run.return_value = failed(stderr=stderr)

        with pytest.raises(TransportError):
            self.channel.touch('/c/a.apk')

    def test_non_zero_exit_is_command_error_with_output(self):
        self.process.run.return_value = failed(
            stdout='Performing Streamed Install', stderr='Failure [INSTALL_FAILED_INVALID_APK]'
        )

        with pytest.raises(CommandError) as exc_info:
            self.channel.install_local(['-r'], '/builds/app.apk')

        assert not isinstance(exc_info.value, TransportError)
        assert 'INSTALL_FAILED_INVALID_APK' in exc_info.value.output


class TestAdbChannelListDirectory(AdbChannelTestBase):
    """Test list_directory() with and without extended ls support."""

    def test_sorted_listing(self):
        self.process.run.return_value = ok('b.apk\na.apk\n')

        assert self.channel.list_directory('/c') == 'b.apk\na.apk\n'
        assert self.commands()[0][-1] == 'ls -t -1 /c 2>&1 || echo _ERROR_'

    def test_missing_directory(self):
        self.process.run.return_value = ok('ls: /c: No such file or directory\n_ERROR_\n')

        with pytest.raises(RemotePathNotFoundError, match='No such file'):
            self.channel.list_directory('/c')

    def test_permission_denied_is_not_a_missing_directory(self):
        self.process.run.return_value = ok('ls: /c: Permission denied\n_ERROR_\n')

        with pytest.raises(CommandError, match='Permission denied') as exc_info:
            self.channel.list_directory('/c')
        assert not isinstance(exc_info.value, RemotePathNotFoundError)
        assert '_ERROR_' in exc_info.value.output

    def test_unexplained_failure_is_command_error(self):
        self.process.run.return_value = ok('/c\n_ERROR_\n')

        with pytest.raises(CommandError, match="Cannot list|/c") as exc_info:
            self.channel.list_directory('/c')
        assert not isinstance(exc_info.value, RemotePathNotFoundError)

    def test_falls_back_to_plain_ls_once(self):
        self.process.run.side_effect = [
            ok('ls: Unknown option -t\n_ERROR_\n'),
            ok('a.apk\n'),
            ok('a.apk\nb.apk\n'),
        ]

        assert self.channel.list_directory('/c') == 'a.apk\n'
        assert self.channel.list_directory('/c') == 'a.apk\nb.apk\n'

        commands = [c[-1] for c in self.commands()]
        assert commands == [
            'ls -t -1 /c 2>&1 || echo _ERROR_',
            'ls /c 2>&1 || echo _ERROR_',
            'ls /c 2>&1 || echo _ERROR_',
        ]


class TestAdbChannelDeviceQueries(AdbChannelTestBase):
    """Test uninstall, API level and streamed install detection."""

    def test_uninstall_success(self):
        self.process.run.side_effect = [ok(), ok('Success\n')]

        assert self.channel.uninstall('io.example', keep_data=True) is True
        assert self.commands()[0][3:] == ['shell', 'am', 'force-stop', 'io.example']
        assert self.commands()[1][3:] == ['uninstall', '-k', 'io.example']

    def test_uninstall_reports_not_removed(self):
        self.process.run.side_effect = [ok(), ok('Failure [DELETE_FAILED_INTERNAL_ERROR]\n')]

        assert self.channel.uninstall('io.example') is False

    def test_uninstall_command_failure(self):
        self.process.run.side_effect = [ok(), failed(stderr='Failure [DELETE_FAILED]')]

        with pytest.raises(CommandError, match='Unable to uninstall APK'):
            self.channel.uninstall('io.example')

    def test_api_level_is_read_once(self):
        self.process.run.return_value = ok('30\n')

        assert self.channel.get_api_level() == 30
        assert self.channel.get_api_level() == 30
        assert self.process.run.call_count == 1

    def test_unparseable_api_level(self):
        self.process.run.return_value = ok('\n')

        with pytest.raises(CommandError):
            self.channel.get_api_level()

    def test_streamed_install_supported(self):
        self.process.run.side_effect = [
            ok(' --streaming: force streaming APK directly into package manager\n'),
            ok('shell_v2\ncmd\nstat_v2\n'),
        ]

        assert self.channel.is_streamed_install_supported() is True
        assert self.channel.is_streamed_install_supported() is True
        assert self.process.run.call_count == 2

    def test_streamed_install_needs_cmd_feature(self):
        self.process.run.side_effect = [ok('--streaming'), ok('shell_v2\n')]

        assert self.channel.is_streamed_install_supported() is False

    def test_help_exiting_non_zero_is_still_read(self):
        self.process.run.side_effect = [failed(stdout='usage ... --streaming ...'), ok('cmd\n')]

        assert self.channel.is_streamed_install_supported() is True
