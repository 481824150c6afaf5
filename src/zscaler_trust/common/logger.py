# zscaler_trust/common/logger.py
"""
Logging configuration for the zscaler_trust package.

All modules log through `logging.getLogger(__name__)`; this module attaches
handlers to the package-level logger so they inherit one format and level.
"""

import logging
import sys
from pathlib import Path

from zscaler_trust.config import LoggingConfig

__all__: list[str] = ['PACKAGE_LOGGER_NAME', 'setup_logger']

PACKAGE_LOGGER_NAME: str = 'zscaler_trust'


def setup_logger(
    logging_level: int | None = None,
    config: LoggingConfig | None = None,
) -> logging.Logger:
    """
    Set up logging for the zscaler_trust package.

    Idempotent: calling it again clears and rebuilds the handlers, so the CLI
    can configure logging from defaults first and again once the config file
    has been read.

    Args:
        logging_level: Console level used when no config is given.
            Defaults to INFO.
        config: Validated logging configuration. When given, its console
            level wins over `logging_level` and a file handler is added if
            `file_path` is set.

    Returns:
        The package-level logger.

    Example:
        >>> setup_logger(logging_level=logging.DEBUG)
        >>> setup_logger(config=load_config().logging)
    """
    package_logger: logging.Logger = logging.getLogger(PACKAGE_LOGGER_NAME)

    # Clear existing handlers so repeated calls do not duplicate output
    package_logger.handlers.clear()

    log_format: logging.Formatter = logging.Formatter(
        fmt='%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )

    # --- 1. Console Handler ---
    if logging_level is None:
        logging_level = logging.INFO
    if config:
        console_level: int = config.get_console_level_int()
    else:
        console_level = logging_level

    console_handler: logging.Handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(log_format)
    console_handler.setLevel(console_level)
    package_logger.addHandler(console_handler)

    # --- 2. File Handler (config only) ---
    file_level: int | None = None

    if config and config.file_path:
        file_level = config.get_file_level_int()
        log_file_path: Path = config.file_path
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler: logging.FileHandler = logging.FileHandler(
            filename=str(log_file_path),
            mode='a',
            encoding='utf-8',
        )
        file_handler.setFormatter(log_format)
        if file_level is not None:
            file_handler.setLevel(file_level)

        package_logger.addHandler(file_handler)

        if console_level <= logging.INFO:
            print(f'Logging to file: {log_file_path}', file=sys.stderr)

    # --- 3. Package Logger Level ---
    # Must be the most verbose of the handler levels or DEBUG never reaches the file
    effective_level: int = console_level
    if file_level is not None:
        effective_level = min(console_level, file_level)

    package_logger.setLevel(effective_level)

    return package_logger
