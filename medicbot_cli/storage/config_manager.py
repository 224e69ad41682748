"""
Manages loading, validation, and migration of the INI settings file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from medicbot_cli.exceptions import ConfigurationError
from medicbot_cli.models.config import MedicBotSettings, resolve_config

log = logging.getLogger(__name__)


class ConfigManager:
    """Handles all operations related to the application's INI settings file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(
        self, cli_options: dict[str, Any] | None = None
    ) -> MedicBotSettings:
        """
        Loads settings from the INI file, applies CLI overrides, and validates them.

        A missing file is not an error; every setting has a default.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated MedicBotSettings object.

        Raises:
            ConfigurationError: If the file cannot be parsed or validation fails.
        """
        config_from_file: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(
                    f"Error parsing configuration file: {e}"
                ) from e

            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            config_from_file = self._get_config_as_dict()
        else:
            log.debug(
                f"No configuration file at '{self.config_file_path}', using defaults."
            )

        if cli_options:
            config_from_file.update(cli_options)

        try:
            config_from_file["config_path"] = str(self.config_file_path.parent)
            return resolve_config(config_from_file)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save. Missing keys get defaults.
        """
        try:
            validated = resolve_config(settings)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {
            key: str(getattr(validated, key))
            for key in sorted(MedicBotSettings.get_ini_keys())
        }
        self._write(config)

    def update_value(self, key: str, value: str) -> None:
        """Sets a single key in the existing file, creating it when needed."""
        if key not in MedicBotSettings.get_ini_keys():
            raise ConfigurationError(
                f"Unknown setting '{key}'. Valid keys: "
                f"{', '.join(sorted(MedicBotSettings.get_ini_keys()))}"
            )
        current = self.read_raw() if self.config_file_path.is_file() else {}
        current[key] = value
        self.save_new_config(current)

    def read_raw(self) -> dict[str, str]:
        """Returns the file's known settings as unconverted strings."""
        if not self.config_file_path.is_file():
            return {}
        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e
        known_keys = MedicBotSettings.get_ini_keys()
        return {
            key: value
            for key, value in self._parser["DEFAULT"].items()
            if key in known_keys
        }

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        values: dict[str, Any] = {
            "api_base_url": section.get("api_base_url", ""),
            "shareable_base_url": section.get("shareable_base_url", ""),
            "discord_client_id": section.get("discord_client_id", ""),
        }
        for key in ("redirect_port", "auth_timeout", "request_timeout"):
            if key in section:
                try:
                    values[key] = section.getint(key)
                except ValueError as e:
                    raise ConfigurationError(
                        f"Setting '{key}' must be an integer."
                    ) from e
        return values

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = MedicBotSettings()
        needs_saving = False
        config_section = self._parser["DEFAULT"]

        for key in sorted(MedicBotSettings.get_ini_keys()):
            if key not in config_section:
                config_section[key] = str(getattr(defaults, key))
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                self._write(self._parser)
            except ConfigurationError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving

    def _write(self, config: configparser.ConfigParser) -> None:
        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e
