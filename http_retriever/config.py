"""Configuration management for the HTTP library retriever.

This module provides YAML-based configuration loading and saving,
following the XDG Base Directory Specification.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import structlog
import yaml

from .credentials import InMemoryCredentialStore
from .models import AppConfig, Credential, RetrieverConfig, RetrieverSettings

logger = structlog.get_logger(__name__)


def get_config_dir() -> Path:
    """Get the configuration directory following XDG spec.

    Returns:
        Path to the configuration directory.
    """
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg_config_home) if xdg_config_home else Path.home() / ".config"

    config_dir = base / "http-retriever"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_default_config_path() -> Path:
    """Get the default configuration file path.

    Returns:
        Path to the default config file.
    """
    return get_config_dir() / "config.yaml"


class YamlConfigLoader:
    """Loads and saves configuration dictionaries from/to YAML files."""

    def load(self, path: str) -> dict[str, Any]:
        """Load configuration from a YAML file.

        Args:
            path: Path to the configuration file.

        Returns:
            Configuration dictionary.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            yaml.YAMLError: If the file is not valid YAML.
        """
        config_path = Path(path)

        if not config_path.exists():
            logger.debug("config_file_not_found", path=path)
            raise FileNotFoundError(f"Configuration file not found: {path}")

        data = yaml.safe_load(config_path.read_text())

        if data is None:
            return {}

        return data  # type: ignore[no-any-return]

    def save(self, config: dict[str, Any], path: str) -> None:
        """Save configuration to a YAML file.

        Args:
            config: Configuration dictionary.
            path: Path to save the configuration.
        """
        config_path = Path(path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        content = yaml.dump(config, default_flow_style=False, sort_keys=False)
        config_path.write_text(content)
        # The file may carry passwords
        config_path.chmod(0o600)

        logger.info("config_saved", path=path)


class ConfigManager:
    """Manages the retriever configuration file.

    Layout::

        global:       # RetrieverSettings
        libraries:    # name -> RetrieverConfig
        credentials:  # id -> Credential (without the id key)
    """

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialize the configuration manager.

        Args:
            config_path: Optional path to configuration file.
                        Uses default path if not provided.
        """
        self.config_path = config_path or get_default_config_path()
        self._loader = YamlConfigLoader()
        self._config: AppConfig | None = None

    def load(self) -> AppConfig:
        """Load configuration from file.

        Returns:
            AppConfig with loaded values, or defaults if file doesn't exist.
        """
        try:
            data = self._loader.load(str(self.config_path))
            self._config = self._parse_config(data)
        except FileNotFoundError:
            logger.info("using_default_config")
            self._config = AppConfig()

        return self._config

    def save(self, config: AppConfig | None = None) -> None:
        """Save configuration to file.

        Args:
            config: Configuration to save. Uses current config if not provided.
        """
        if config is not None:
            self._config = config

        if self._config is None:
            self._config = AppConfig()

        self._loader.save(self._serialize_config(self._config), str(self.config_path))

    def get_config(self) -> AppConfig:
        """Get the current configuration, loading it from file if needed."""
        if self._config is None:
            self.load()
        return self._config or AppConfig()

    def get_settings(self) -> RetrieverSettings:
        """Get global retriever settings."""
        return self.get_config().settings

    def get_library_config(self, name: str) -> RetrieverConfig:
        """Get the retriever configuration of a library.

        Args:
            name: Library name.

        Returns:
            RetrieverConfig for the library (no URL if not configured).
        """
        return self.get_config().libraries.get(name, RetrieverConfig())

    def build_credential_store(self) -> InMemoryCredentialStore:
        """Create a credential store holding the configured credentials."""
        return InMemoryCredentialStore(self.get_config().credentials.values())

    def init_config(self, force: bool = False) -> bool:
        """Initialize a new configuration file with defaults.

        Args:
            force: If True, overwrite existing configuration.

        Returns:
            True if configuration was created, False if it already exists.
        """
        if self.config_path.exists() and not force:
            logger.info("config_exists", path=str(self.config_path))
            return False

        self.save(AppConfig())
        logger.info("config_initialized", path=str(self.config_path))
        return True

    def _parse_config(self, data: dict[str, Any]) -> AppConfig:
        global_data = data.get("global") or {}
        libraries_data = data.get("libraries") or {}
        credentials_data = data.get("credentials") or {}

        libraries = {
            name: RetrieverConfig.model_validate(library or {})
            for name, library in libraries_data.items()
        }
        credentials = {
            cred_id: Credential(id=cred_id, **cred) for cred_id, cred in credentials_data.items()
        }

        return AppConfig(
            settings=RetrieverSettings(**global_data),
            libraries=libraries,
            credentials=credentials,
        )

    def _serialize_config(self, config: AppConfig) -> dict[str, Any]:
        credentials: dict[str, Any] = {}
        for cred_id, credential in config.credentials.items():
            entry = credential.model_dump(exclude={"id", "password"}, exclude_defaults=True)
            entry["password"] = credential.password.get_secret_value()
            if "allowed_owners" in entry:
                entry["allowed_owners"] = sorted(entry["allowed_owners"])
            credentials[cred_id] = entry

        return {
            "global": config.settings.model_dump(mode="json", exclude_defaults=True),
            "libraries": {
                name: library.model_dump(exclude_defaults=True)
                for name, library in config.libraries.items()
            },
            "credentials": credentials,
        }
