"""Configuration file loader for YAML and JSON files."""

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from translationrouter.domain.components.provider_pool import ProviderPool
from translationrouter.domain.models.provider_key import PoolConfig, ProviderKey, Tier
from translationrouter.domain.models.system_error import ConfigurationError
from translationrouter.infrastructure.config.settings import RouterSettings

CONFIG_FILE_ENV_VAR = "TRANSLATIONROUTER_CONFIG_FILE"

_KEY_FIELDS = {"key_id", "provider_id", "credential_ref", "priority", "character_limit", "metadata", "tier"}


class ConfigurationFileLoader:
    """Loads the tier structure and settings from YAML or JSON files.

    Expected layout:

        ```yaml
        settings:
          max_provider_attempts: 6
        tiers:
          - name: free
            keys:
              - key_id: deepl-free-1
                provider_id: deepl
                credential_ref: DEEPL_FREE_1
                character_limit: 500000
          - name: paid
            keys:
              - key_id: azure-s1
                provider_id: azure
        ```

    Secrets never appear in the file; ``credential_ref`` names where a
    CredentialResolver finds them.
    """

    def __init__(self, config_file_path: str | Path | None = None) -> None:
        """Initialize ConfigurationFileLoader.

        Args:
            config_file_path: Path to configuration file. If None, attempts to
                            load from TRANSLATIONROUTER_CONFIG_FILE environment variable.

        Raises:
            ConfigurationError: If no path is available or the file is missing.
        """
        if config_file_path is None:
            config_file_path = os.getenv(CONFIG_FILE_ENV_VAR)
            if not config_file_path:
                raise ConfigurationError(
                    f"Configuration file path not provided and {CONFIG_FILE_ENV_VAR} "
                    "environment variable is not set"
                )

        self._config_path = Path(config_file_path)
        if not self._config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {self._config_path}")

        # Validate file path to prevent directory traversal
        try:
            self._config_path.resolve().relative_to(Path.cwd().resolve())
        except ValueError:
            if not self._config_path.is_absolute():
                raise ConfigurationError(
                    f"Configuration file path must be within current directory or absolute: {self._config_path}"
                ) from None

    @property
    def path(self) -> Path:
        return self._config_path

    def load(self) -> dict[str, Any]:
        """Load raw configuration from file.

        Automatically detects file format (YAML or JSON) based on file extension.

        Raises:
            ConfigurationError: If file format is invalid or file cannot be parsed.
        """
        suffix = self._config_path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            return self._load_yaml()
        elif suffix == ".json":
            return self._load_json()
        else:
            raise ConfigurationError(
                f"Unsupported configuration file format: {suffix}. "
                "Supported formats: .yaml, .yml, .json"
            )

    def load_pool_config(self) -> PoolConfig:
        """Load, validate and build the PoolConfig in one step."""
        config = self.load()
        self.validate_structure(config)
        return self.build_pool_config(config)

    def load_settings(self) -> RouterSettings:
        """Load the optional ``settings`` section (environment fills the rest)."""
        return self.parse_settings(self.load())

    def _load_yaml(self) -> dict[str, Any]:
        try:
            with self._config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
                if data is None:
                    return {}
                if not isinstance(data, dict):
                    raise ConfigurationError("YAML file must contain a dictionary/mapping")
                return data
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML format: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file: {e}") from e

    def _load_json(self) -> dict[str, Any]:
        try:
            with self._config_path.open("r", encoding="utf-8") as f:
                data = json.load(f)
                if not isinstance(data, dict):
                    raise ConfigurationError("JSON file must contain an object")
                return data
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON format: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file: {e}") from e

    def parse_tiers(self, config: dict[str, Any]) -> list[tuple[str, list[dict[str, Any]]]]:
        """Parse the ``tiers`` section into ``(tier_name, [key_fields, ...])`` pairs.

        Raises:
            ConfigurationError: If the tiers section is invalid. ``field``
                names the offending entry, e.g. ``tiers[0].keys[1].provider_id``.
        """
        tiers_config = config.get("tiers")
        if not isinstance(tiers_config, list) or not tiers_config:
            raise ConfigurationError(
                "Configuration 'tiers' must be a non-empty list", field="tiers"
            )

        parsed: list[tuple[str, list[dict[str, Any]]]] = []
        for idx, tier_config in enumerate(tiers_config):
            path = f"tiers[{idx}]"
            if not isinstance(tier_config, dict):
                raise ConfigurationError(
                    f"Tier configuration at index {idx} must be a dictionary", field=path
                )

            name = tier_config.get("name")
            if not isinstance(name, str) or not name.strip():
                raise ConfigurationError(
                    f"Tier configuration at index {idx} has invalid 'name' (must be non-empty string)",
                    field=f"{path}.name",
                )

            keys_config = tier_config.get("keys")
            if not isinstance(keys_config, list) or not keys_config:
                raise ConfigurationError(
                    f"Tier '{name}' must list at least one key", field=f"{path}.keys"
                )

            keys = [
                self._parse_key(key_config, name.strip(), f"{path}.keys[{key_idx}]")
                for key_idx, key_config in enumerate(keys_config)
            ]
            parsed.append((name.strip(), keys))

        return parsed

    def _parse_key(self, key_config: Any, tier_name: str, path: str) -> dict[str, Any]:
        if not isinstance(key_config, dict):
            raise ConfigurationError("Key configuration must be a dictionary", field=path)

        unknown = set(key_config) - _KEY_FIELDS
        if unknown:
            raise ConfigurationError(
                f"Unknown key configuration field(s): {', '.join(sorted(unknown))}",
                field=f"{path}.{sorted(unknown)[0]}",
            )

        for required in ("key_id", "provider_id"):
            value = key_config.get(required)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(
                    f"Key configuration has invalid '{required}' (must be non-empty string)",
                    field=f"{path}.{required}",
                )

        if "tier" in key_config and key_config["tier"] != tier_name:
            raise ConfigurationError(
                f"Key declares tier '{key_config['tier']}' but is listed under '{tier_name}'",
                field=f"{path}.tier",
            )

        credential_ref = key_config.get("credential_ref")
        if credential_ref is not None and (
            not isinstance(credential_ref, str) or not credential_ref.strip()
        ):
            raise ConfigurationError(
                "Key configuration has invalid 'credential_ref' (must be non-empty string)",
                field=f"{path}.credential_ref",
            )

        for int_field in ("priority", "character_limit"):
            if int_field not in key_config:
                continue
            value = key_config[int_field]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigurationError(
                    f"Key configuration has invalid '{int_field}' (must be a non-negative integer)",
                    field=f"{path}.{int_field}",
                )

        if "metadata" in key_config and not isinstance(key_config["metadata"], dict):
            raise ConfigurationError(
                "Key configuration has invalid 'metadata' (must be a dictionary)",
                field=f"{path}.metadata",
            )

        return {
            "key_id": key_config["key_id"].strip(),
            "provider_id": key_config["provider_id"].strip(),
            "credential_ref": credential_ref.strip() if credential_ref else None,
            "priority": key_config.get("priority", 0),
            "character_limit": key_config.get("character_limit", 0),
            "metadata": key_config.get("metadata", {}),
        }

    def parse_settings(self, config: dict[str, Any]) -> RouterSettings:
        """Build RouterSettings from the optional ``settings`` section.

        Raises:
            ConfigurationError: If a setting has an invalid value.
        """
        settings_config = config.get("settings", {}) or {}
        if not isinstance(settings_config, dict):
            raise ConfigurationError(
                "Configuration 'settings' must be a dictionary", field="settings"
            )
        try:
            return RouterSettings.from_dict(settings_config)
        except ValidationError as e:
            error = e.errors()[0]
            loc = ".".join(str(part) for part in error["loc"])
            raise ConfigurationError(error["msg"], field=f"settings.{loc}") from e

    def build_pool_config(self, config: dict[str, Any]) -> PoolConfig:
        """Build and validate a PoolConfig from loaded configuration.

        Raises:
            ConfigurationError: If tiers are invalid or key ids repeat.
        """
        parsed = self.parse_tiers(config)
        tiers = []
        for idx, (name, key_fields) in enumerate(parsed):
            keys = []
            for key_idx, fields in enumerate(key_fields):
                try:
                    keys.append(ProviderKey(tier=name, **fields))
                except ValidationError as e:
                    error = e.errors()[0]
                    loc = ".".join(str(part) for part in error["loc"])
                    raise ConfigurationError(
                        error["msg"], field=f"tiers[{idx}].keys[{key_idx}].{loc}"
                    ) from e
            tiers.append(Tier(name=name, keys=tuple(keys)))

        pool_config = PoolConfig(tiers=tuple(tiers))
        ProviderPool.validate_config(pool_config)
        return pool_config

    def validate_structure(self, config: dict[str, Any]) -> None:
        """Validate configuration file structure.

        Raises:
            ConfigurationError: If configuration structure is invalid.
        """
        if not isinstance(config, dict):
            raise ConfigurationError("Configuration must be a dictionary")

        allowed_keys = {"tiers", "settings"}
        for key in config:
            if key not in allowed_keys:
                raise ConfigurationError(
                    f"Unknown configuration key: '{key}'. Allowed keys: {', '.join(sorted(allowed_keys))}",
                    field=key,
                )

        self.parse_tiers(config)
        if "settings" in config:
            self.parse_settings(config)
