"""Unit tests for package metadata parsing and AaptMetadataReader."""
import subprocess
from unittest.mock import Mock

import pytest

from apkdeploy.cache.bundle import BundleExtractionCache
from apkdeploy.core.protocols import Logger, ProcessExecutor, ProcessResult, ToolLocator
from apkdeploy.deploy.base import CommandChannel, PackageVersion
from apkdeploy.deploy.exceptions import CommandError, DeploymentError, TransportError
from apkdeploy.deploy.metadata import AaptMetadataReader, parse_badging, parse_package_dump

BADGING = (
    "package: name='io.example.app' versionCode='42' versionName='1.4.2' "
    "platformBuildVersionName='13' compileSdkVersion='33'\n"
    "sdkVersion:'24'\n"
    "targetSdkVersion:'33'\n"
    "application-label:'Example'\n"
)

DUMPSYS = """\
Packages:
  Package [io.example.app] (5b3c1e2):
    userId=10123
    pkg=Package{9d2f0a io.example.app}
    versionCode=41 minSdk=24 targetSdk=33
    versionName=1.4.1
    splits=[base]
"""


class TestParseBadging:
    """Test parse_badging()."""

    def test_reads_name_and_version(self):
        info = parse_badging(BADGING)

        assert info.name == 'io.example.app'
        assert info.version == PackageVersion(42, '1.4.2')

    def test_missing_package_line(self):
        info = parse_badging("ERROR: dump failed because no AndroidManifest.xml found\n")

        assert info.name is None
        assert info.version == PackageVersion()

    def test_missing_version_attributes(self):
        info = parse_badging("package: name='io.example.app'\n")

        assert info.name == 'io.example.app'
        assert info.version == PackageVersion(None, None)


class TestParsePackageDump:
    """Test parse_package_dump()."""

    def test_installed_package(self):
        info = parse_package_dump('io.example.app', DUMPSYS)

        assert info.is_installed
        assert info.version == PackageVersion(41, '1.4.1')

    def test_other_package_is_not_installed(self):
        info = parse_package_dump('io.example', DUMPSYS)

        assert not info.is_installed
        assert info.name == 'io.example'

    def test_empty_dump(self):
        assert not parse_package_dump('io.example.app', '').is_installed


class TestAaptMetadataReader:
    """Test AaptMetadataReader with mocked tools and device."""

    def setup_method(self):
        self.channel = Mock(spec=CommandChannel)
        self.bundles = Mock(spec=BundleExtractionCache)
        self.process = Mock(spec=ProcessExecutor)
        self.tools = Mock(spec=ToolLocator)
        self.tools.find_tool.side_effect = lambda name: f'/sdk/build-tools/34.0.0/{name}'
        self.logger = Mock(spec=Logger)
        self.reader = AaptMetadataReader(
            self.channel, self.bundles, self.process, self.tools, self.logger
        )

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(DeploymentError, match='does not exist'):
            self.reader.read_candidate(str(tmp_path / 'missing.apk'))

    def test_reads_candidate_with_aapt2(self, tmp_path):
        apk = tmp_path / 'app.apk'
        apk.write_bytes(b'apk')
        self.process.run.return_value = ProcessResult(0, BADGING, '')

        info = self.reader.read_candidate(str(apk))

        assert info.name == 'io.example.app'
        self.process.run.assert_called_once_with(
            ['/sdk/build-tools/34.0.0/aapt2', 'dump', 'badging', str(apk)], timeout=60.0
        )

    def test_falls_back_to_aapt(self, tmp_path):
        apk = tmp_path / 'app.apk'
        apk.write_bytes(b'apk')
        self.process.run.side_effect = [
            ProcessResult(1, '', 'error: not a valid apk'),
            ProcessResult(0, BADGING, ''),
        ]

        info = self.reader.read_candidate(str(apk))

        assert info.version.version_code == 42
        assert self.process.run.call_args[0][0][0].endswith('/aapt')

    def test_no_tools_gives_unknown_candidate(self, tmp_path):
        apk = tmp_path / 'app.apk'
        apk.write_bytes(b'apk')
        self.tools.find_tool.side_effect = None
        self.tools.find_tool.return_value = None

        info = self.reader.read_candidate(str(apk))

        assert info.name is None
        self.process.run.assert_not_called()
        self.logger.warning.assert_called_once()

    def test_tool_timeout_is_tolerated(self, tmp_path):
        apk = tmp_path / 'app.apk'
        apk.write_bytes(b'apk')
        self.process.run.side_effect = [
            subprocess.TimeoutExpired(cmd='aapt2', timeout=60),
            ProcessResult(0, BADGING, ''),
        ]

        assert self.reader.read_candidate(str(apk)).name == 'io.example.app'

    def test_bundle_reads_base_part(self, tmp_path):
        bundle = tmp_path / 'app.apks'
        bundle.write_bytes(b'zip')
        self.bundles.extract_base.return_value = '/tmp/x/splits/base-master.apk'
        self.process.run.return_value = ProcessResult(0, BADGING, '')

        self.reader.read_candidate(str(bundle))

        self.bundles.extract_base.assert_called_once_with(str(bundle))
        assert self.process.run.call_args[0][0][-1] == '/tmp/x/splits/base-master.apk'

    def test_reads_installed(self):
        self.channel.dump_package.return_value = DUMPSYS

        info = self.reader.read_installed('io.example.app')

        assert info.is_installed
        assert info.version.version_name == '1.4.1'

    def test_package_manager_error_means_not_installed(self):
        self.channel.dump_package.side_effect = CommandError('dumpsys failed')

        info = self.reader.read_installed('io.example.app')

        assert not info.is_installed
        self.logger.warning.assert_called_once()

    def test_transport_error_propagates(self):
        self.channel.dump_package.side_effect = TransportError('device offline')

        with pytest.raises(TransportError):
            self.reader.read_installed('io.example.app')
