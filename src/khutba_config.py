"""
Configuration and logging setup for the khutba client.

Settings come from ``config.yaml`` (path from ``--config`` or the
KHUTBA_CONFIG env var), then environment variables (a ``.env`` file is
honoured) override individual keys. Anything unset falls back to
``DEFAULT_CONFIG``.
"""

import copy
import logging
import os
import sys
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = 'KHUTBA_CONFIG'
DEFAULT_CONFIG_PATH = 'config.yaml'

DEFAULT_CONFIG: dict[str, Any] = {
    'api': {
        'base_url': 'https://islamicaudio.techrealm.online',
        'endpoint': '/generate-khutab',
        'timeout_seconds': 30,
        'max_retries': 2,
        'backoff_base_seconds': 1.0,
    },
    'connectivity': {
        'enabled': True,
        'probe_url': 'https://clients3.google.com/generate_204',
        'timeout_seconds': 3,
    },
    'notifications': {
        'enabled': True,
    },
}

# env var -> (config path, converter)
ENV_OVERRIDES = {
    'KHUTBA_API_BASE_URL': (('api', 'base_url'), str),
    'KHUTBA_API_TIMEOUT': (('api', 'timeout_seconds'), float),
    'KHUTBA_MAX_RETRIES': (('api', 'max_retries'), int),
    'KHUTBA_CONNECTIVITY_CHECK': (('connectivity', 'enabled'), 'bool'),
}


def setup_logging(verbose: bool = False):
    """Send log records to stderr; debug detail only with ``verbose``.

    Without it only errors are shown, since fallbacks already surface
    through notifications.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s' if verbose else '%(message)s',
        stream=sys.stderr,
        force=True,
    )
    # urllib3 logs every connection at DEBUG
    logging.getLogger('urllib3').setLevel(logging.INFO if verbose else logging.ERROR)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if value is None and isinstance(merged.get(key), dict):
            # an emptied YAML section keeps its defaults
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def apply_env_overrides(config: dict[str, Any], environ=None) -> dict[str, Any]:
    """Return a copy of ``config`` with KHUTBA_* environment overrides applied."""
    environ = os.environ if environ is None else environ
    config = copy.deepcopy(config)
    for env_var, (path, convert) in ENV_OVERRIDES.items():
        raw = environ.get(env_var)
        if raw is None or raw == '':
            continue
        try:
            value = _to_bool(raw) if convert == 'bool' else convert(raw)
        except ValueError:
            logger.warning(f"Ignoring invalid value for {env_var}: {raw!r}")
            continue
        section = config
        for key in path[:-1]:
            section = section.setdefault(key, {})
        section[path[-1]] = value
        logger.debug(f"Config override from {env_var}: {'.'.join(path)}")
    return config


def load_config(path: str | None = None) -> dict[str, Any]:
    """
    Load configuration merged over the defaults.

    Args:
        path: Explicit config file. When None, KHUTBA_CONFIG or
            ``config.yaml`` is used if it exists.

    Returns:
        Complete configuration dictionary

    Raises:
        FileNotFoundError: If an explicit ``path`` does not exist
        ValueError: If the file is not valid YAML or not a mapping
    """
    load_dotenv()

    explicit = path is not None or bool(os.environ.get(CONFIG_ENV_VAR))
    path = path or os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)

    user_config: dict[str, Any] = {}
    if os.path.exists(path):
        try:
            with open(path, encoding='utf-8') as fh:
                user_config = yaml.safe_load(fh) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {path}: {e}") from e
        if not isinstance(user_config, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        logger.debug(f"Loaded configuration from {path}")
    elif explicit:
        raise FileNotFoundError(f"Config file not found: {path}")
    else:
        logger.debug(f"No config file at {path}, using defaults")

    return apply_env_overrides(_deep_merge(DEFAULT_CONFIG, user_config))
