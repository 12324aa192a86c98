"""
Device deployment subsystem.

Decides how a package relates to what is installed on the device and
installs, upgrades, reinstalls or downgrades it accordingly.

Public API:
    - classify, InstallState: Install decision engine
    - CommandChannel, PackageMetadataReader: Collaborator protocols
    - AdbChannel, ChannelFactory: adb-backed command channel
    - DeploymentError and subclasses: Exceptions

The orchestrator (deploy.orchestrator) and the metadata reader
(deploy.metadata) build on the caches and are imported from their modules.
"""

from .base import (
    CleanupResult,
    CommandChannel,
    InstallOptions,
    InstallOrUpgradeResult,
    InstallState,
    PackageInfo,
    PackageMetadataReader,
    PackageVersion,
)
from .decision import classify, coerce_version
from .exceptions import (
    CacheCorruptionError,
    CacheMissError,
    CommandError,
    DeploymentError,
    ExtractionFailure,
    InstallFailure,
    RemotePathNotFoundError,
    TransportError,
    UninstallError,
)
from .adb_channel import AdbChannel
from .factory import ChannelFactory

__all__ = [
    # Types and protocols
    "CleanupResult",
    "CommandChannel",
    "InstallOptions",
    "InstallOrUpgradeResult",
    "InstallState",
    "PackageInfo",
    "PackageMetadataReader",
    "PackageVersion",

    # Decision engine
    "classify",
    "coerce_version",

    # Exceptions
    "CacheCorruptionError",
    "CacheMissError",
    "CommandError",
    "DeploymentError",
    "ExtractionFailure",
    "InstallFailure",
    "RemotePathNotFoundError",
    "TransportError",
    "UninstallError",

    # Implementations
    "AdbChannel",
    "ChannelFactory",
]
