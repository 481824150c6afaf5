# zscaler_trust/config/loader.py
"""
Configuration Loading Logic.

Bridges an optional YAML file on disk and the Pydantic models in
`config_models.py`.

Resolution order:
    1.  An explicit path passed by the caller (CLI `--config`). It must exist.
    2.  The per-user default `~/.config/zscaler-trust/config.yaml`, if present.
    3.  Built-in defaults (no file at all).
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from zscaler_trust.config.config_models import TrustConfig

__all__: list[str] = ['DEFAULT_CONFIG_PATH', 'load_config']

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH: Path = Path('~/.config/zscaler-trust/config.yaml')


def load_config(config_path: Path | str | None = None) -> TrustConfig:
    """Load and validate the trust setup configuration.

    Args:
        config_path: Path to a YAML configuration file. If None, the per-user
            default is used when it exists, otherwise built-in defaults.

    Returns:
        Validated TrustConfig instance.

    Raises:
        FileNotFoundError: If an explicit config_path does not exist.
        yaml.YAMLError: If the YAML file is malformed.
        ValueError: If the configuration fails Pydantic validation.

    Example:
        >>> config = load_config('zscaler-trust.yaml')
        >>> config.discovery.max_attempts
        3
    """
    if config_path is None:
        default_path: Path = DEFAULT_CONFIG_PATH.expanduser()
        if not default_path.exists():
            logger.debug(
                'No config path provided and %s not found, using built-in defaults',
                default_path,
            )
            return TrustConfig()
        config_path = default_path
    else:
        config_path = Path(config_path).expanduser()

        if not config_path.exists():
            error_message: str = f'Configuration file not found: {config_path}'
            logger.error(error_message)
            raise FileNotFoundError(error_message)

    logger.info('Loading configuration from: %s', config_path)

    try:
        with Path.open(config_path, encoding='utf-8') as config_file:
            raw_config_data: Any = yaml.safe_load(config_file)
    except yaml.YAMLError as error:
        error_message = f'Failed to parse YAML configuration: {error}'
        logger.error(error_message)
        raise yaml.YAMLError(error_message) from error

    # An empty file is a valid "use every default" configuration
    if raw_config_data is None:
        raw_config_data = {}

    if not isinstance(raw_config_data, dict):
        error_message = (
            f'Configuration root must be a mapping, got {type(raw_config_data).__name__}'
        )
        logger.error(error_message)
        raise ValueError(error_message)

    try:
        validated_config = TrustConfig(**raw_config_data)
    except ValueError as error:
        error_message = f'Configuration validation failed: {error}'
        logger.error(error_message)
        raise ValueError(error_message) from error

    logger.info('Configuration loaded and validated successfully')
    return validated_config
