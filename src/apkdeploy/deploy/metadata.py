"""
Package metadata reading.

Candidate metadata comes from the badging dump of aapt2 (or aapt) on the
local machine; installed metadata comes from the device package manager.
"""

import os
import re
import subprocess
from typing import Optional

from apkdeploy.cache.bundle import BUNDLE_EXTENSION, BundleExtractionCache
from apkdeploy.core.protocols import Logger, ProcessExecutor, ToolLocator
from .base import CommandChannel, PackageInfo, PackageVersion
from .exceptions import CommandError, DeploymentError

BADGING_TIMEOUT = 60.0
_BADGING_TOOLS = ('aapt2', 'aapt')

_BADGING_PACKAGE_RE = re.compile(r"^package:(.*)$", re.MULTILINE)
_BADGING_ATTR_RE = re.compile(r"(\w+)='([^']*)'")
_VERSION_NAME_RE = re.compile(r'versionName=([\d+.]+)')
_VERSION_CODE_RE = re.compile(r'versionCode=(\d+)')


def parse_badging(output: str) -> PackageInfo:
    """
    Parse the `package:` line of an aapt/aapt2 badging dump.

    Example line:
        package: name='io.example' versionCode='12' versionName='1.2.0'
    """
    match = _BADGING_PACKAGE_RE.search(output)
    if not match:
        return PackageInfo(name=None)
    attrs = dict(_BADGING_ATTR_RE.findall(match.group(1)))
    code = attrs.get('versionCode')
    return PackageInfo(
        name=attrs.get('name') or None,
        version=PackageVersion(
            version_code=int(code) if code and code.isdigit() else None,
            version_name=attrs.get('versionName') or None
        )
    )


def parse_package_dump(package_name: str, output: str) -> PackageInfo:
    """Parse `dumpsys package <name>` output into installed package info."""
    installed_re = re.compile(rf"^\s*Package\s+\[{re.escape(package_name)}\][^:]+:$", re.MULTILINE)
    if not installed_re.search(output):
        return PackageInfo(name=package_name, is_installed=False)

    name_match = _VERSION_NAME_RE.search(output)
    code_match = _VERSION_CODE_RE.search(output)
    return PackageInfo(
        name=package_name,
        version=PackageVersion(
            version_code=int(code_match.group(1)) if code_match else None,
            version_name=name_match.group(1) if name_match else None
        ),
        is_installed=True
    )


class AaptMetadataReader:
    """
    Metadata reader using aapt2/aapt locally and dumpsys on the device.

    Args:
        channel: Device command channel
        bundle_cache: Extraction cache used to reach the base part of bundles
        process_executor: Subprocess execution abstraction
        tool_locator: External tool discovery
        logger: Logging abstraction
    """

    def __init__(
        self,
        channel: CommandChannel,
        bundle_cache: BundleExtractionCache,
        process_executor: ProcessExecutor,
        tool_locator: ToolLocator,
        logger: Logger
    ):
        self.channel = channel
        self.bundles = bundle_cache
        self.process = process_executor
        self.tools = tool_locator
        self.log = logger

    def read_candidate(self, app_path: str) -> PackageInfo:
        """
        Read name and version of a local package.

        Returns:
            PackageInfo; name is None if the badging could not be read

        Raises:
            DeploymentError: If the file does not exist
            ExtractionFailure: If a bundle has no base part
        """
        if not os.path.exists(app_path):
            raise DeploymentError(f"The file at path {app_path} does not exist or is not accessible")

        if app_path.endswith(BUNDLE_EXTENSION):
            app_path = self.bundles.extract_base(app_path)

        for tool in _BADGING_TOOLS:
            binary = self.tools.find_tool(tool)
            if not binary:
                continue
            try:
                result = self.process.run([binary, 'dump', 'badging', app_path], timeout=BADGING_TIMEOUT)
            except (OSError, subprocess.TimeoutExpired) as e:
                self.log.warning(f"Error '{e}' while getting badging info with {tool}")
                continue
            if result.returncode != 0:
                self.log.warning(f"Error '{result.stderr.strip()}' while getting badging info with {tool}")
                continue
            return parse_badging(result.stdout)

        self.log.warning(f"Cannot read the badging info of '{app_path}': neither aapt2 nor aapt worked")
        return PackageInfo(name=None)

    def read_installed(self, package_name: str) -> PackageInfo:
        """
        Read the installed package's version from the device.

        A package manager error is reported as "not installed" metadata with
        a warning; transport errors propagate.
        """
        self.log.debug(f"Getting package info for '{package_name}'")
        try:
            output = self.channel.dump_package(package_name)
        except CommandError as e:
            self.log.warning(f"Got an unexpected error while dumping package info: {e}")
            return PackageInfo(name=package_name)
        return parse_package_dump(package_name, output)
