"""Wiring of production dependencies for CLI commands.

Builds the channel, caches, metadata reader and orchestrator from a
DeployConfig, and owns their shutdown.
"""
from typing import Optional

from apkdeploy.cache.bundle import BundleExtractionCache
from apkdeploy.cache.remote import RemotePackageCache
from apkdeploy.core import (
    ConsoleLogger,
    RealFileSystemService,
    SubprocessExecutor,
    SystemTimeProvider,
    SystemToolLocator,
    YamlConfigLoader,
)
from apkdeploy.deploy.factory import ChannelFactory
from apkdeploy.deploy.metadata import AaptMetadataReader
from apkdeploy.deploy.orchestrator import DeploymentOrchestrator
from apkdeploy.utils.config import DeployConfig, load_config


class DeploySession:
    """All collaborators for one CLI invocation.

    Usage:
        with DeploySession.from_args(args) as session:
            session.orchestrator.install_or_upgrade(path)
    """

    def __init__(self, config: DeployConfig, verbose: bool = False, use_remote_cache: bool = True):
        self.config = config
        self.log = ConsoleLogger(verbose=verbose)
        self.fs = RealFileSystemService()
        self.time = SystemTimeProvider()
        process = SubprocessExecutor()

        self.channel = ChannelFactory.from_device_string(
            config.device,
            process,
            self.log,
            adb_path=config.adb_path,
            exec_timeout=config.adb_exec_timeout
        )
        self.bundle_cache = BundleExtractionCache(self.fs, self.log, limit=config.bundle_cache_limit)
        self.remote_cache: Optional[RemotePackageCache] = None
        if use_remote_cache and config.remote_cache_limit > 0:
            self.remote_cache = RemotePackageCache(
                self.channel,
                self.fs,
                self.time,
                self.log,
                limit=config.remote_cache_limit,
                root=config.remote_cache_root
            )
        self.metadata = AaptMetadataReader(
            self.channel, self.bundle_cache, process, SystemToolLocator(), self.log
        )
        self.orchestrator = DeploymentOrchestrator(
            self.channel,
            self.metadata,
            self.bundle_cache,
            self.time,
            self.log,
            remote_cache=self.remote_cache,
            install_timeout=config.install_timeout
        )

    @classmethod
    def from_args(cls, args, use_remote_cache: bool = True) -> 'DeploySession':
        """Build a session from parsed CLI arguments (--config, --device, --verbose)."""
        filesystem = RealFileSystemService()
        config = load_config(
            YamlConfigLoader(filesystem),
            filesystem,
            config_path=getattr(args, 'config', None),
            overrides={'device': getattr(args, 'device', None)}
        )
        return cls(config, verbose=getattr(args, 'verbose', False), use_remote_cache=use_remote_cache)

    def __enter__(self) -> 'DeploySession':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Stop background work and delete extracted bundles."""
        if self.remote_cache is not None:
            self.remote_cache.close()
        result = self.bundle_cache.close()
        for error in result.errors:
            self.log.warning(f"Cleanup: {error}")


def add_session_arguments(parser) -> None:
    """Arguments shared by every command that talks to a device."""
    parser.add_argument(
        '--device', '-d',
        help='Device serial, optionally with adb server: serial@host:port'
    )
    parser.add_argument(
        '--config',
        help='Use custom config file (default: configs/apkdeploy.yaml if present)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Show debug output'
    )
