"""Unit tests for DeploySession wiring."""
from apkdeploy.cache.bundle import BundleExtractionCache
from apkdeploy.cache.remote import RemotePackageCache
from apkdeploy.deploy.adb_channel import AdbChannel
from apkdeploy.deploy.orchestrator import DeploymentOrchestrator
from apkdeploy.utils.config import DeployConfig
from apkdeploy.utils.session import DeploySession


class TestDeploySession:
    """Test DeploySession construction and shutdown."""

    def test_wires_collaborators(self):
        config = DeployConfig(device='emulator-5554@build-host:5038', remote_cache_limit=4)

        with DeploySession(config) as session:
            assert isinstance(session.channel, AdbChannel)
            assert session.channel.serial == 'emulator-5554'
            assert isinstance(session.bundle_cache, BundleExtractionCache)
            assert isinstance(session.remote_cache, RemotePackageCache)
            assert session.remote_cache.limit == 4
            assert isinstance(session.orchestrator, DeploymentOrchestrator)
            assert session.orchestrator.remote_cache is session.remote_cache

    def test_zero_limit_disables_remote_cache(self):
        with DeploySession(DeployConfig(remote_cache_limit=0)) as session:
            assert session.remote_cache is None
            assert session.orchestrator.remote_cache is None

    def test_remote_cache_can_be_turned_off(self):
        with DeploySession(DeployConfig(), use_remote_cache=False) as session:
            assert session.remote_cache is None
