"""
Tests for configuration loading.
"""

import pytest
from pydantic import ValidationError
from tocminer.config import Config, find_config_file
from tocminer.config.config import ExtractionSettings, LibraryConfig
from tocminer.errors import ConfigError


@pytest.mark.unit
class TestConfig:
    def test_defaults(self):
        config = Config()
        assert config.extraction.strategy_order[0] == "json_ld"
        assert config.extraction.early_exit_threshold == 0.8
        assert config.aggregator.providers == ["kyobo", "aladin", "yes24"]
        assert config.aggregator.cache_ttl_seconds == 604800
        assert config.monitoring.prometheus_port is None

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "tocminer.yaml"
        path.write_text(
            "library:\n"
            "  base_url: https://lib.example.test/\n"
            "  api_key: abc\n"
            "extraction:\n"
            "  strategy_order: [metadata, json_ld]\n"
            "  enabled:\n"
            "    json_ld: false\n"
            "aggregator:\n"
            "  enabled: false\n",
            encoding="utf-8",
        )
        config = Config.from_yaml(path)
        assert config.library.base_url == "https://lib.example.test"
        assert config.library.api_key == "abc"
        assert config.extraction.strategy_order == ["metadata", "json_ld"]
        assert not config.extraction.is_enabled("json_ld")
        assert config.extraction.is_enabled("metadata")
        assert not config.aggregator.enabled

    def test_empty_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert Config.from_yaml(path) == Config()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            Config.from_yaml(tmp_path / "absent.yaml")

    def test_unknown_keys_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("library:\n  base_url: x\n  unexpected: 1\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            Config.from_yaml(path)

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("TOCMINER_LIBRARY__API_KEY", "from-env")
        monkeypatch.setenv("TOCMINER_AGGREGATOR__PROVIDER_TIMEOUT", "2.5")
        config = Config()
        assert config.library.api_key == "from-env"
        assert config.aggregator.provider_timeout == 2.5

    def test_snapshot_parent_created(self, tmp_path):
        target = tmp_path / "a" / "b" / "snapshot.json"
        Config.model_validate({"monitoring": {"snapshot_path": str(target)}})
        assert target.parent.is_dir()

    @pytest.mark.parametrize("order", [[], ["json_ld", "json_ld"]])
    def test_invalid_strategy_order(self, order):
        with pytest.raises(ValidationError):
            ExtractionSettings(strategy_order=order)

    @pytest.mark.parametrize("threshold", [-0.1, 1.1])
    def test_threshold_bounds(self, threshold):
        with pytest.raises(ValidationError):
            ExtractionSettings(early_exit_threshold=threshold)

    def test_library_trailing_slash(self):
        assert LibraryConfig(base_url="https://x.test///").base_url == "https://x.test"


@pytest.mark.unit
class TestConfigFiles:
    def test_find_config_file_in_directory(self, tmp_path):
        assert find_config_file(tmp_path) is None
        (tmp_path / "tocminer.yml").write_text("library:\n  api_key: found\n", encoding="utf-8")
        assert find_config_file(tmp_path) == tmp_path / "tocminer.yml"

    def test_yaml_preferred_over_yml(self, tmp_path, monkeypatch):
        (tmp_path / "tocminer.yml").write_text("{}\n", encoding="utf-8")
        (tmp_path / "tocminer.yaml").write_text("{}\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        assert find_config_file() == tmp_path / "tocminer.yaml"

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "tocminer.yaml"
        path.write_text("library: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="not valid YAML"):
            Config.from_yaml(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "tocminer.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            Config.from_yaml(path)
