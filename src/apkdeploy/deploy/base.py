"""
Deployment types and collaborator protocols.

This module defines the value types shared across the deploy subsystem and
the two protocols the orchestrator drives: the device command channel and
the package-metadata reader. AdbChannel and AaptMetadataReader are the
production implementations; tests substitute mocks.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, Optional, runtime_checkable


class InstallState(str, Enum):
    """Relationship between a candidate package and the installed one."""
    NOT_INSTALLED = "notInstalled"
    SAME_VERSION_INSTALLED = "sameVersionInstalled"
    OLDER_VERSION_INSTALLED = "olderVersionInstalled"
    NEWER_VERSION_INSTALLED = "newerVersionInstalled"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PackageVersion:
    """
    Version metadata of a package.

    Attributes:
        version_code: Integer build number (None if it could not be read)
        version_name: Human-readable version string (None if it could not be read)
    """
    version_code: Optional[int] = None
    version_name: Optional[str] = None


@dataclass
class PackageInfo:
    """
    Package identity plus version, as reported by a metadata reader.

    Attributes:
        name: Package identifier (e.g., "io.example.app"), None if unreadable
        version: Version metadata
        is_installed: Presence flag; only meaningful for installed lookups
    """
    name: Optional[str]
    version: PackageVersion = field(default_factory=PackageVersion)
    is_installed: bool = False


@dataclass
class InstallOptions:
    """
    Options for a single install or install-or-upgrade call.

    Attributes:
        replace: Reinstall in place, keeping data (-r)
        allow_test_packages: Allow test-only packages (-t)
        use_sdcard: Install to external storage (-s)
        grant_permissions: Grant all runtime permissions (-g, API >= 23)
        timeout: Install timeout in seconds (None = configured default)
        enforce_current_build: Reinstall/downgrade even when the device already
            has the same or a newer version
    """
    replace: bool = True
    allow_test_packages: bool = False
    use_sdcard: bool = False
    grant_permissions: bool = False
    timeout: Optional[float] = None
    enforce_current_build: bool = False


@dataclass
class InstallOrUpgradeResult:
    """
    Result of install_or_upgrade().

    Attributes:
        app_state: Classification computed before any action
        was_uninstalled: Whether the installed package was removed on the way
        action: What was done: skip, install, upgrade, downgrade or reinstall
    """
    app_state: InstallState
    was_uninstalled: bool
    action: str


@dataclass
class CleanupResult:
    """
    Result of cleanup operation.

    Attributes:
        success: Whether cleanup succeeded
        errors: List of non-fatal issues encountered during cleanup
    """
    success: bool
    errors: list[str]


@runtime_checkable
class CommandChannel(Protocol):
    """
    Interface to the target device.

    Every call accepts a timeout where the operation can block for long;
    transport failures raise TransportError, command-level failures
    raise CommandError.

    Implementations:
        - AdbChannel: shells out to the adb binary
    """

    def list_directory(self, path: str) -> str:
        """
        List a remote directory, newest entries first where supported.

        Raises:
            RemotePathNotFoundError: If the directory does not exist
        """
        ...

    def make_directory(self, path: str) -> None:
        """Create a remote directory including parents."""
        ...

    def remove_files(self, paths: list[str], recursive: bool = False) -> None:
        """Remove remote files in a single command."""
        ...

    def touch(self, path: str) -> None:
        """Bump access/modification time of a remote file."""
        ...

    def push(self, local_path: str, remote_path: str, timeout: Optional[float] = None) -> None:
        """Transfer a local file to the device."""
        ...

    def run_installer(self, args: list[str], timeout: Optional[float] = None) -> str:
        """Run the on-device package installer and return its output."""
        ...

    def install_local(self, args: list[str], local_path: str, timeout: Optional[float] = None) -> str:
        """Install a local package file through the channel, return output."""
        ...

    def install_multiple(self, args: list[str], local_paths: list[str],
                         timeout: Optional[float] = None) -> str:
        """Install several split packages as one application, return output."""
        ...

    def uninstall(self, package_name: str, keep_data: bool = False,
                  timeout: Optional[float] = None) -> bool:
        """Uninstall a package. Returns True if the device confirmed removal."""
        ...

    def get_api_level(self) -> int:
        """Device API level."""
        ...

    def is_streamed_install_supported(self) -> bool:
        """Whether the device can stream installs without a pushed copy."""
        ...

    def dump_package(self, package_name: str) -> str:
        """Raw package manager dump for an installed package."""
        ...


@runtime_checkable
class PackageMetadataReader(Protocol):
    """
    Reads package identity and version metadata.

    Implementations:
        - AaptMetadataReader: aapt2/aapt for local files, dumpsys for installed
    """

    def read_candidate(self, app_path: str) -> PackageInfo:
        """Metadata of a local package file or bundle."""
        ...

    def read_installed(self, package_name: str) -> PackageInfo:
        """Metadata of the installed package, with the presence flag set."""
        ...
