# -*- coding: utf-8 -*-
"""
Configuration management module
Loads, saves and manages the client configuration
"""

import copy
import json
import os
from typing import Any, Dict, Optional, List
from pathlib import Path
from loguru import logger


class ConfigManager:
    """Configuration manager"""

    #Default configuration
    DEFAULT_CONFIG = {
        "sip": {
            "host": "localhost",
            "port": 6001,
            "username": "",
            "password": "",
            "location": "",
            "institution_id": "",
            "terminal_password": "",
            "language": "000",
            "field_terminator": "|",
            "sequencing": True,
            "checksumming": True,
            "max_attempts": 3
        },
        "timeouts": {
            "connect": 5,
            "send": 6,
            "recv": 3
        },
        "log": {
            "dir": "./logs",
            "level": "INFO",
            "console_level": "INFO",
            "rotation": "10 MB",
            "retention": 10
        }
    }

    def __init__(self, config_path: Optional[str] = None, save_missing: bool = True):
        """
        Initialise the configuration manager

        Args:
            config_path: configuration file path, default path when None
            save_missing: write the defaults when the file does not exist
        """
        if config_path is None:
            base_dir = Path(__file__).parent.parent
            config_path = str(base_dir / "config" / "config.json")

        self._config_path = config_path
        self._save_missing = save_missing
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load the configuration file"""
        try:
            if os.path.exists(self._config_path):
                with open(self._config_path, 'r', encoding='utf-8') as f:
                    self._config = json.load(f)
                logger.info(f"Configuration loaded: {self._config_path}")
                #Fill in missing entries from the defaults
                self._merge_defaults()
            else:
                logger.warning(f"Configuration file not found, using defaults: {self._config_path}")
                self._config = copy.deepcopy(self.DEFAULT_CONFIG)
                if self._save_missing:
                    self._save_config()
        except json.JSONDecodeError as e:
            logger.error(f"Configuration file is not valid JSON: {e}")
            self._config = copy.deepcopy(self.DEFAULT_CONFIG)
        except OSError as e:
            logger.error(f"Failed to load configuration: {e}")
            self._config = copy.deepcopy(self.DEFAULT_CONFIG)

    def _merge_defaults(self) -> None:
        """Merge the defaults under the loaded configuration"""
        def merge_dict(base: dict, override: dict) -> dict:
            result = copy.deepcopy(base)
            for key, value in override.items():
                if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                    result[key] = merge_dict(result[key], value)
                else:
                    result[key] = value
            return result

        self._config = merge_dict(self.DEFAULT_CONFIG, self._config)

    def _save_config(self) -> bool:
        """
        Save the configuration to its file

        Returns:
            whether the save succeeded
        """
        try:
            config_dir = os.path.dirname(self._config_path)
            if config_dir and not os.path.exists(config_dir):
                os.makedirs(config_dir)

            with open(self._config_path, 'w', encoding='utf-8') as f:
                json.dump(self._config, f, indent=2, ensure_ascii=False)
            logger.info(f"Configuration saved: {self._config_path}")
            return True
        except OSError as e:
            logger.error(f"Failed to save configuration: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration entry (dotted nested keys)

        Args:
            key: key such as "sip.port" or "timeouts.recv"
            default: value returned when missing

        Returns:
            the configured value
        """
        keys = key.split('.')
        value = self._config

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any, save: bool = True) -> bool:
        """
        Set a configuration entry (dotted nested keys)

        Args:
            key: configuration key
            value: value
            save: write the file immediately

        Returns:
            whether the entry was set
        """
        keys = key.split('.')
        config = self._config

        for k in keys[:-1]:
            if not isinstance(config.get(k), dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value
        logger.debug(f"Configuration updated: {key}")

        if save:
            return self._save_config()
        return True

    def reload(self) -> None:
        """Reload the configuration file"""
        self._load_config()

    @property
    def config(self) -> Dict[str, Any]:
        """The whole configuration dictionary"""
        return self._config

    @property
    def sip_host(self) -> str:
        """ACS host"""
        return self.get("sip.host", "localhost")

    @property
    def sip_port(self) -> int:
        """ACS port"""
        return self.get("sip.port", 6001)

    @property
    def sip_username(self) -> str:
        """Login user id, empty to skip login"""
        return self.get("sip.username", "")

    @property
    def sip_password(self) -> str:
        """Login password"""
        return self.get("sip.password", "")

    @property
    def sip_location(self) -> str:
        """Location code sent at login"""
        return self.get("sip.location", "")

    @property
    def sip_institution_id(self) -> str:
        """Institution id"""
        return self.get("sip.institution_id", "")

    @property
    def sip_terminal_password(self) -> str:
        """Terminal password"""
        return self.get("sip.terminal_password", "")

    @property
    def sip_language(self) -> str:
        """3-character language code"""
        return self.get("sip.language", "000")

    @property
    def sip_field_terminator(self) -> str:
        """Variable field terminator"""
        return self.get("sip.field_terminator", "|")

    @property
    def sip_sequencing(self) -> bool:
        """Send sequence tags"""
        return self.get("sip.sequencing", True)

    @property
    def sip_checksumming(self) -> bool:
        """Send checksum tags"""
        return self.get("sip.checksumming", True)

    @property
    def sip_max_attempts(self) -> int:
        """Writes per request before giving up"""
        return self.get("sip.max_attempts", 3)

    @property
    def connect_timeout(self) -> float:
        """Connect timeout (seconds)"""
        return self.get("timeouts.connect", 5)

    @property
    def send_timeout(self) -> float:
        """Send timeout (seconds)"""
        return self.get("timeouts.send", 6)

    @property
    def recv_timeout(self) -> float:
        """Receive timeout (seconds)"""
        return self.get("timeouts.recv", 3)

    def get_all(self) -> Dict[str, Any]:
        """A copy of the whole configuration"""
        return copy.deepcopy(self._config)

    def validate_config(self) -> List[str]:
        """
        Validate the configuration

        Returns:
            list of error messages, empty when valid
        """
        errors = []

        port = self.sip_port
        if not isinstance(port, int) or isinstance(port, bool) or not 1 <= port <= 65535:
            errors.append(f"Invalid port: {port}, valid range 1-65535")

        if not self.sip_host:
            errors.append("Host must not be empty")

        terminator = self.sip_field_terminator
        if not isinstance(terminator, str) or len(terminator) != 1:
            errors.append(f"Field terminator must be a single character: {terminator!r}")

        language = self.sip_language
        if not isinstance(language, str) or len(language) != 3:
            errors.append(f"Language must be 3 characters: {language!r}")

        attempts = self.sip_max_attempts
        if not isinstance(attempts, int) or isinstance(attempts, bool) or attempts < 1:
            errors.append(f"max_attempts must be at least 1: {attempts}")

        for name in ("connect", "send", "recv"):
            timeout = self.get(f"timeouts.{name}")
            if not isinstance(timeout, (int, float)) or timeout <= 0:
                errors.append(f"Invalid {name} timeout: {timeout}, must be greater than 0")

        if bool(self.sip_username) != bool(self.sip_password):
            errors.append("Username and password must be given together")

        return errors

    def reset_to_defaults(self) -> bool:
        """
        Reset to the default configuration

        Returns:
            whether the reset was saved
        """
        self._config = copy.deepcopy(self.DEFAULT_CONFIG)
        logger.info("Configuration reset to defaults")
        return self._save_config()


#Global configuration instance
_config_instance: Optional[ConfigManager] = None


def get_config(config_path: Optional[str] = None) -> ConfigManager:
    """
    Get the global configuration instance (singleton)

    Args:
        config_path: configuration file path (first call only)

    Returns:
        configuration manager
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = ConfigManager(config_path)
    return _config_instance
