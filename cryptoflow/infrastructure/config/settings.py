"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
YAML configuration file (~/.cryptoflow/config.yaml).
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional, Dict

from dotenv import load_dotenv
import yaml

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".cryptoflow"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_SEARCH_MODEL = "gpt-4o-mini-search-preview"
DEFAULT_CACHE_DIR = DEFAULT_CONFIG_DIR / "cache"
DEFAULT_CACHE_TTL_SECONDS = 2 * 60 * 60  # 2 hours
DEFAULT_QUEUE_COOLDOWN_SECONDS = 2.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_RETRY_DELAY_SECONDS = 5.0

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(yaml_config)
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above the current directory.")

    # 3. Environment Variables (Highest priority) are handled by get_config
    _loaded = True
    logger.info("Configuration loading process completed.")


def _coerce(value: str) -> Any:
    """Converts common string forms from the environment to Python values."""
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        return float(value) if '.' in value else int(value)
    except ValueError:
        return value


def _lookup_file_config(key: str) -> Any:
    """Finds a key in the YAML config, either flat ('cache.dir') or nested."""
    if key in _config:
        return _config[key]
    node: Any = _config
    for part in key.split('.'):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (KEY upper-cased, dots replaced by underscores)
    3. YAML config
    4. Default value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace('.', '_')
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    value = _lookup_file_config(key)
    if value is not None:
        return value

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None

# --- Convenience Functions ---

def get_api_key() -> Optional[str]:
    """Gets the AI provider credential (OPENAI_API_KEY, then API_KEY, then ai.api_key)."""
    key = get_config('OPENAI_API_KEY') or get_config('API_KEY') or get_config('ai.api_key')
    return str(key) if key else None


def get_model() -> str:
    return str(get_config('ai.model', DEFAULT_MODEL))


def get_search_model() -> str:
    return str(get_config('ai.search_model', DEFAULT_SEARCH_MODEL))


def get_cache_dir() -> Path:
    return Path(get_config('cache.dir', DEFAULT_CACHE_DIR)).expanduser()


def get_cache_ttl_seconds() -> float:
    return float(get_config('cache.ttl_seconds', DEFAULT_CACHE_TTL_SECONDS))


def get_queue_cooldown_seconds() -> float:
    return float(get_config('queue.cooldown_seconds', DEFAULT_QUEUE_COOLDOWN_SECONDS))


def get_max_retries() -> int:
    return int(get_config('retry.max_retries', DEFAULT_MAX_RETRIES))


def get_initial_retry_delay_seconds() -> float:
    return float(get_config('retry.initial_delay_seconds', DEFAULT_INITIAL_RETRY_DELAY_SECONDS))


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
