"""Unit tests for configuration loading."""
from unittest.mock import Mock

import pytest

from apkdeploy.cache.remote import REMOTE_CACHE_ROOT
from apkdeploy.core.implementations import RealFileSystemService, YamlConfigLoader
from apkdeploy.core.protocols import ConfigLoader, FileSystemService
from apkdeploy.utils.config import DEFAULT_CONFIG_PATH, DeployConfig, load_config


def create_mock_sources(files=None):
    """Mock filesystem and loader serving parsed YAML by path."""
    files = files or {}
    fs = Mock(spec=FileSystemService)
    fs.exists.side_effect = lambda path: path in files
    loader = Mock(spec=ConfigLoader)
    loader.load_yaml.side_effect = lambda path: files[path]
    return loader, fs


class TestLoadConfig:
    """Test load_config()."""

    def test_defaults_without_file(self):
        loader, fs = create_mock_sources()

        config = load_config(loader, fs)

        assert config == DeployConfig()
        assert config.remote_cache_root == REMOTE_CACHE_ROOT
        loader.load_yaml.assert_not_called()

    def test_default_file_under_section(self):
        loader, fs = create_mock_sources({
            DEFAULT_CONFIG_PATH: {'apkdeploy': {'remote_cache_limit': 3, 'adb_path': '/sdk/adb'}}
        })

        config = load_config(loader, fs)

        assert config.remote_cache_limit == 3
        assert config.adb_path == '/sdk/adb'

    def test_explicit_file_with_top_level_keys(self):
        loader, fs = create_mock_sources({'ci.yaml': {'device': 'emulator-5554'}})

        assert load_config(loader, fs, 'ci.yaml').device == 'emulator-5554'

    def test_explicit_missing_file_raises(self):
        loader, fs = create_mock_sources()

        with pytest.raises(FileNotFoundError):
            load_config(loader, fs, 'missing.yaml')

    def test_overrides_win_and_none_is_ignored(self):
        loader, fs = create_mock_sources({'ci.yaml': {'device': 'from-file', 'install_timeout': 90}})

        config = load_config(loader, fs, 'ci.yaml', overrides={'device': 'from-cli', 'install_timeout': None})

        assert config.device == 'from-cli'
        assert config.install_timeout == 90

    def test_unknown_key_raises(self):
        loader, fs = create_mock_sources({'ci.yaml': {'remote_cache_size': 5}})

        with pytest.raises(ValueError, match='remote_cache_size'):
            load_config(loader, fs, 'ci.yaml')

    @pytest.mark.parametrize('values', [
        {'remote_cache_limit': -1},
        {'bundle_cache_limit': 0},
        {'install_timeout': 0},
    ])
    def test_invalid_values_raise(self, values):
        loader, fs = create_mock_sources({'ci.yaml': values})

        with pytest.raises(ValueError):
            load_config(loader, fs, 'ci.yaml')

    def test_zero_remote_limit_is_allowed(self):
        loader, fs = create_mock_sources({'ci.yaml': {'remote_cache_limit': 0}})

        assert load_config(loader, fs, 'ci.yaml').remote_cache_limit == 0

    def test_non_mapping_file_raises(self):
        loader, fs = create_mock_sources({'ci.yaml': ['not', 'a', 'mapping']})

        with pytest.raises(ValueError):
            load_config(loader, fs, 'ci.yaml')

    def test_real_yaml_file(self, tmp_path):
        path = tmp_path / 'apkdeploy.yaml'
        path.write_text("apkdeploy:\n  device: R58M@build-host:5038\n  bundle_cache_limit: 4\n")
        fs = RealFileSystemService()

        config = load_config(YamlConfigLoader(fs), fs, str(path))

        assert config.device == 'R58M@build-host:5038'
        assert config.bundle_cache_limit == 4

    def test_empty_yaml_file_gives_defaults(self, tmp_path):
        path = tmp_path / 'empty.yaml'
        path.write_text('')
        fs = RealFileSystemService()

        assert load_config(YamlConfigLoader(fs), fs, str(path)) == DeployConfig()
