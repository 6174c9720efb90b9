"""Configuration loader with validation and error handling."""

import json
import os
import yaml
import logging
from pathlib import Path
from typing import Optional, Dict, Any
from pydantic import ValidationError

from .models import SystemConfig, CharacterProfile, ApiCredentials

logger = logging.getLogger(__name__)

# User credential files, checked in order
USER_API_CONFIG_FILES = ("api-config-user.json", "config/api-config-user.json")

# env var -> (credential field, key in api-config-user.json)
CREDENTIAL_SOURCES = {
    "ZAI_API_KEY": ("zai_api_key", "zaiApiKey"),
    "OPENAI_API_KEY": ("openai_api_key", "openaiApiKey"),
    "ANTHROPIC_API_KEY": ("anthropic_api_key", "anthropicApiKey"),
    "OLLAMA_BASE_URL": ("ollama_base_url", "ollamaBaseUrl"),
    "OLLAMA_MODEL": ("ollama_model", "ollamaModel"),
}


class ConfigLoadError(Exception):
    """Base exception for configuration loading errors."""
    pass


class ConfigValidationError(ConfigLoadError):
    """Configuration validation failed."""

    def __init__(self, errors: list[dict], file_path: Path):
        self.errors = errors
        self.file_path = file_path
        super().__init__(self._format_errors())

    def _format_errors(self) -> str:
        """Format validation errors for user display."""
        lines = [f"Configuration validation failed for {self.file_path}:\n"]
        for error in self.errors:
            loc = " → ".join(str(l) for l in error['loc'])
            msg = error['msg']
            lines.append(f"  • {loc}: {msg}")
        return "\n".join(lines)


class ConfigLoader:
    """Loads and validates configuration files."""

    def __init__(self, config_dir: Path = Path(".")):
        self.config_dir = Path(config_dir)

    def load_yaml(self, file_path: Path) -> Dict[str, Any]:
        """Load YAML file with error handling."""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
                if data is None:
                    return {}
                return data
        except FileNotFoundError:
            raise ConfigLoadError(f"Configuration file not found: {file_path}")
        except yaml.YAMLError as e:
            raise ConfigLoadError(f"Invalid YAML in {file_path}: {e}")
        except Exception as e:
            raise ConfigLoadError(f"Failed to load {file_path}: {e}")

    def load_system_config(self, file_path: Optional[Path] = None) -> SystemConfig:
        """
        Load system configuration.

        Falls back to defaults if file not found.
        """
        if file_path is None:
            file_path = self.config_dir / "config" / "system.yaml"

        try:
            if not file_path.exists():
                logger.info(f"System config not found at {file_path}, using defaults")
                return SystemConfig()

            data = self.load_yaml(file_path)
            config = SystemConfig(**data)
            logger.info(f"Loaded system config from {file_path}")
            return config

        except ValidationError as e:
            raise ConfigValidationError(e.errors(), file_path)

    def load_credentials(self, environ: Optional[Dict[str, str]] = None) -> ApiCredentials:
        """
        Resolve provider credentials.

        Environment variables win; values from api-config-user.json only fill
        the gaps. The environment itself is never modified. An unreadable
        credentials file is logged and ignored.
        """
        environ = os.environ if environ is None else environ
        file_config = self._load_user_api_config()

        values = {}
        for env_name, (field_name, file_key) in CREDENTIAL_SOURCES.items():
            value = environ.get(env_name) or file_config.get(file_key)
            if value:
                values[field_name] = value

        credentials = ApiCredentials(**values)
        logger.info(
            "Resolved API credentials: "
            + ", ".join(
                f"{name}={'set' if getattr(credentials, name) else 'unset'}"
                for name in ("zai_api_key", "openai_api_key", "anthropic_api_key")
            )
            + f", demo_mode={credentials.demo_mode}"
        )
        return credentials

    def _load_user_api_config(self) -> Dict[str, Any]:
        for relative in USER_API_CONFIG_FILES:
            file_path = self.config_dir / relative
            if not file_path.exists():
                continue
            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    logger.debug(f"Loaded user API config from {file_path}")
                    return data
                logger.warning(f"Ignoring {file_path}: expected a JSON object")
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Error reading API config {file_path}: {e}")
            return {}
        return {}

    def load_character(self, character_id: str, characters_dir: Optional[Path] = None) -> CharacterProfile:
        """
        Load character profile by ID.

        Raises ConfigLoadError if character not found or invalid.
        """
        characters_dir = characters_dir or self.config_dir / "characters"
        file_path = characters_dir / f"{character_id}.yaml"

        try:
            data = self.load_yaml(file_path)

            # Ensure ID matches filename
            if 'id' not in data:
                data['id'] = character_id
            elif data['id'] != character_id:
                raise ConfigLoadError(
                    f"Character ID mismatch: filename is '{character_id}' but "
                    f"config has id '{data['id']}'"
                )

            profile = CharacterProfile(**data)
            logger.info(f"Loaded character '{profile.name}' from {file_path}")
            return profile

        except ValidationError as e:
            raise ConfigValidationError(e.errors(), file_path)

    def load_all_characters(self, characters_dir: Optional[Path] = None) -> Dict[str, CharacterProfile]:
        """
        Load all character profiles.

        Returns dict of {character_id: profile}.
        Logs warnings for invalid characters but continues loading others.
        """
        characters = {}
        characters_dir = characters_dir or self.config_dir / "characters"

        if not characters_dir.exists():
            logger.warning(f"Characters directory not found: {characters_dir}")
            return characters

        for file_path in sorted(characters_dir.glob("*.yaml")):
            character_id = file_path.stem

            # Skip template file
            if character_id == "template":
                logger.debug("Skipping template.yaml (not a real character)")
                continue

            try:
                profile = self.load_character(character_id, characters_dir)
                characters[character_id] = profile
            except ConfigLoadError as e:
                logger.error(f"Failed to load character '{character_id}': {e}")
                # Continue loading other characters

        logger.info(f"Loaded {len(characters)} character(s)")
        return characters
