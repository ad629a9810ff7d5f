"""Tests for configuration file loader."""

import json
from pathlib import Path

import pytest
import yaml

from translationrouter.infrastructure.config.file_loader import ConfigurationFileLoader
from translationrouter.infrastructure.config.settings import RouterSettings
from translationrouter.domain.models.system_error import ConfigurationError

VALID_CONFIG = {
    "settings": {"max_provider_attempts": 4, "backoff_base_seconds": 0.5},
    "tiers": [
        {
            "name": "free",
            "keys": [
                {
                    "key_id": "deepl-free-2",
                    "provider_id": "DeepL",
                    "credential_ref": "DEEPL_FREE_2",
                    "character_limit": 500000,
                    "priority": 1,
                },
                {
                    "key_id": "deepl-free-1",
                    "provider_id": "deepl",
                    "credential_ref": "DEEPL_FREE_1",
                    "character_limit": 500000,
                    "priority": 0,
                },
            ],
        },
        {
            "name": "paid",
            "keys": [
                {"key_id": "azure-s1", "provider_id": "azure", "metadata": {"region": "westeurope"}}
            ],
        },
    ],
}


def write_yaml(tmp_path: Path, data: object, name: str = "router.yaml") -> Path:
    path = tmp_path / name
    path.write_text(yaml.dump(data))
    return path


class TestConfigurationFileLoader:
    """Tests for ConfigurationFileLoader."""

    def test_init_with_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = write_yaml(tmp_path, VALID_CONFIG)
        monkeypatch.setenv("TRANSLATIONROUTER_CONFIG_FILE", str(config_file))

        loader = ConfigurationFileLoader()
        assert loader.path == config_file

    def test_init_no_path_no_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TRANSLATIONROUTER_CONFIG_FILE", raising=False)
        with pytest.raises(ConfigurationError, match="Configuration file path not provided"):
            ConfigurationFileLoader()

    def test_init_file_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Configuration file not found"):
            ConfigurationFileLoader(tmp_path / "nonexistent.yaml")

    def test_unsupported_extension(self, tmp_path: Path) -> None:
        config_file = tmp_path / "router.toml"
        config_file.write_text("tiers = []")
        with pytest.raises(ConfigurationError, match="Unsupported configuration file format"):
            ConfigurationFileLoader(config_file).load()

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "router.yaml"
        config_file.write_text("tiers: [unclosed")
        with pytest.raises(ConfigurationError, match="Invalid YAML format"):
            ConfigurationFileLoader(config_file).load()

    def test_empty_yaml_loads_as_empty_dict(self, tmp_path: Path) -> None:
        config_file = tmp_path / "router.yaml"
        config_file.write_text("")
        assert ConfigurationFileLoader(config_file).load() == {}

    def test_json_must_be_object(self, tmp_path: Path) -> None:
        config_file = tmp_path / "router.json"
        config_file.write_text("[]")
        with pytest.raises(ConfigurationError, match="must contain an object"):
            ConfigurationFileLoader(config_file).load()

    def test_load_pool_config_from_yaml(self, tmp_path: Path) -> None:
        pool_config = ConfigurationFileLoader(write_yaml(tmp_path, VALID_CONFIG)).load_pool_config()

        assert [tier.name for tier in pool_config.tiers] == ["free", "paid"]
        free = pool_config.tiers[0]
        assert [key.key_id for key in free.keys] == ["deepl-free-1", "deepl-free-2"]
        assert free.keys[1].provider_id == "deepl"
        assert free.keys[0].credential_ref == "DEEPL_FREE_1"
        paid_key = pool_config.tiers[1].keys[0]
        assert paid_key.tier == "paid"
        assert paid_key.character_limit == 0
        assert paid_key.metadata == {"region": "westeurope"}

    def test_load_pool_config_from_json(self, tmp_path: Path) -> None:
        config_file = tmp_path / "router.json"
        config_file.write_text(json.dumps(VALID_CONFIG))

        pool_config = ConfigurationFileLoader(config_file).load_pool_config()
        assert len(pool_config.keys) == 3

    def test_load_settings(self, tmp_path: Path) -> None:
        settings = ConfigurationFileLoader(write_yaml(tmp_path, VALID_CONFIG)).load_settings()

        assert isinstance(settings, RouterSettings)
        assert settings.max_provider_attempts == 4
        assert settings.backoff_base_seconds == 0.5
        assert settings.usage_sync_interval_seconds == 3600


class TestValidation:
    def loader(self, tmp_path: Path, data: dict) -> ConfigurationFileLoader:
        return ConfigurationFileLoader(write_yaml(tmp_path, data))

    def test_unknown_top_level_key(self, tmp_path: Path) -> None:
        data = {**VALID_CONFIG, "policies": []}
        with pytest.raises(ConfigurationError) as exc_info:
            self.loader(tmp_path, data).load_pool_config()
        assert exc_info.value.field == "policies"

    def test_zero_tiers(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            self.loader(tmp_path, {"tiers": []}).load_pool_config()
        assert exc_info.value.field == "tiers"

    def test_empty_tier(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            self.loader(tmp_path, {"tiers": [{"name": "free", "keys": []}]}).load_pool_config()
        assert exc_info.value.field == "tiers[0].keys"

    def test_missing_provider_id_names_field(self, tmp_path: Path) -> None:
        data = {
            "tiers": [
                {
                    "name": "free",
                    "keys": [
                        {"key_id": "k1", "provider_id": "deepl"},
                        {"key_id": "k2"},
                    ],
                }
            ]
        }
        with pytest.raises(ConfigurationError) as exc_info:
            self.loader(tmp_path, data).load_pool_config()
        assert exc_info.value.field == "tiers[0].keys[1].provider_id"
        assert "tiers[0].keys[1].provider_id" in str(exc_info.value)

    def test_negative_limit(self, tmp_path: Path) -> None:
        data = {
            "tiers": [
                {
                    "name": "free",
                    "keys": [{"key_id": "k1", "provider_id": "deepl", "character_limit": -5}],
                }
            ]
        }
        with pytest.raises(ConfigurationError) as exc_info:
            self.loader(tmp_path, data).load_pool_config()
        assert exc_info.value.field == "tiers[0].keys[0].character_limit"

    def test_duplicate_key_ids(self, tmp_path: Path) -> None:
        data = {
            "tiers": [
                {"name": "free", "keys": [{"key_id": "k1", "provider_id": "deepl"}]},
                {"name": "paid", "keys": [{"key_id": "k1", "provider_id": "azure"}]},
            ]
        }
        with pytest.raises(ConfigurationError) as exc_info:
            self.loader(tmp_path, data).load_pool_config()
        assert exc_info.value.field == "tiers[1].keys[0].key_id"

    def test_unknown_key_field(self, tmp_path: Path) -> None:
        data = {
            "tiers": [
                {
                    "name": "free",
                    "keys": [{"key_id": "k1", "provider_id": "deepl", "api_key": "secret"}],
                }
            ]
        }
        with pytest.raises(ConfigurationError) as exc_info:
            self.loader(tmp_path, data).load_pool_config()
        assert exc_info.value.field == "tiers[0].keys[0].api_key"

    def test_invalid_setting_names_field(self, tmp_path: Path) -> None:
        data = {**VALID_CONFIG, "settings": {"jitter_ratio": 3}}
        with pytest.raises(ConfigurationError) as exc_info:
            self.loader(tmp_path, data).load_settings()
        assert exc_info.value.field == "settings.jitter_ratio"
