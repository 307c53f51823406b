"""YAML configuration loader with environment overrides for SentiViz."""

import os
import copy
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "sentiviz.yaml"

DEFAULTS: Dict[str, Any] = {
    "relay": {
        "api_key": None,
        "base_url": "https://api.groq.com/openai/v1",
        "model": "llama-3.1-8b-instant",
        "timeout_seconds": 30.0,
        "clamp_score": False,
    },
    "server": {
        "host": "0.0.0.0",
        "port": 4000,
        "max_body_bytes": 1024 * 1024,
    },
    "client": {
        "backend_url": "http://localhost:4000",
        "discard_stale_results": False,
        "request_timeout_seconds": 30.0,
    },
    "transcription": {
        "api_key": None,
        "url": "wss://api.deepgram.com/v1/listen",
        "model": "nova-3",
        "chunk_interval_ms": 250,
    },
    "audio": {
        "sample_rate": 16000,
        "channels": 1,
    },
    "logging": {
        "level": "INFO",
        "file_path": "data/logs/sentiviz.log",
        "console_output": True,
    },
}


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _ms_to_seconds(value: str) -> float:
    return float(value) / 1000.0


# env var -> (config key, converter)
ENV_OVERRIDES: Dict[str, tuple] = {
    "OPENAI_API_KEY": ("relay.api_key", str),
    "OPENAI_BASE_URL": ("relay.base_url", str),
    "OPENAI_MODEL": ("relay.model", str),
    "API_TIMEOUT": ("relay.timeout_seconds", _ms_to_seconds),
    "SENTIMENT_CLAMP_SCORE": ("relay.clamp_score", _to_bool),
    "HOST": ("server.host", str),
    "PORT": ("server.port", int),
    "BACKEND_URL": ("client.backend_url", str),
    "DISCARD_STALE_RESULTS": ("client.discard_stale_results", _to_bool),
    "DEEPGRAM_API_KEY": ("transcription.api_key", str),
    "DEEPGRAM_URL": ("transcription.url", str),
    "LOG_LEVEL": ("logging.level", str),
}


class SentivizConfig:
    """SentiViz configuration loader.

    Values come from built-in defaults, then the YAML file, then the
    environment (a `.env` file in the working directory is loaded first).
    """

    def __init__(self, config_path: Optional[str] = None,
                 environ: Optional[Dict[str, str]] = None,
                 load_env_file: bool = True):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, uses sentiviz.yaml
                        from the current directory when it exists.
            environ: Environment mapping to read overrides from (os.environ by default)
            load_env_file: Whether to load a .env file into the environment first
        """
        if load_env_file and environ is None:
            load_dotenv()

        self.config_file: Optional[Path] = None
        if config_path:
            self.config_file = Path(config_path)
            if not self.config_file.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_file}")
        elif Path(DEFAULT_CONFIG_FILE).exists():
            self.config_file = Path(DEFAULT_CONFIG_FILE)

        self.config = copy.deepcopy(DEFAULTS)
        if self.config_file:
            logger.info(f"Loading configuration from: {self.config_file}")
            self._merge(self.config, self._load_config())

        self._apply_env(os.environ if environ is None else environ)

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ValueError("Configuration file must contain a mapping")

        self._resolve_paths(config)
        logger.info("Configuration loaded successfully")
        return config

    def _merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> None:
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                self._merge(base[key], value)
            else:
                base[key] = value

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve the log file path relative to the config file location."""
        config_dir = self.config_file.parent
        if 'logging' in config and 'file_path' in config['logging']:
            log_path = config['logging']['file_path']
            if not os.path.isabs(log_path):
                config['logging']['file_path'] = str(config_dir / log_path)

    def _apply_env(self, environ) -> None:
        for var, (key_path, convert) in ENV_OVERRIDES.items():
            raw = environ.get(var)
            if raw is None or raw == "":
                continue
            try:
                self.set(key_path, convert(raw))
            except ValueError:
                raise ValueError(f"Invalid value for {var}: {raw!r}")

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'relay.model').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return default if value is None else value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'server.port')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set")

    def require(self, key_path: str, env_var: str) -> Any:
        """Get a mandatory value - CRASHES if not configured."""
        value = self.get(key_path)
        if value is None or value == "":
            raise ValueError(f"{key_path} is not configured (set {env_var} or add it to {DEFAULT_CONFIG_FILE})")
        return value

    def get_relay_api_key(self) -> str:
        return self.require('relay.api_key', 'OPENAI_API_KEY')

    def get_transcription_api_key(self) -> str:
        return self.require('transcription.api_key', 'DEEPGRAM_API_KEY')

    def get_log_file_path(self) -> str:
        return str(Path(self.get('logging.file_path')).absolute())
