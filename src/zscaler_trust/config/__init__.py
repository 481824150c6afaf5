"""
Configuration Package for zscaler_trust.

Exposes the configuration models and the loader function.
"""

from zscaler_trust.config.config_models import (
    SUPPORTED_TOOLS,
    BundleConfig,
    DiscoveryConfig,
    LoggingConfig,
    PropagationConfig,
    ToolName,
    TrustConfig,
    VerificationConfig,
)
from zscaler_trust.config.loader import DEFAULT_CONFIG_PATH, load_config

__all__: list[str] = [
    'DEFAULT_CONFIG_PATH',
    'SUPPORTED_TOOLS',
    'BundleConfig',
    'DiscoveryConfig',
    'LoggingConfig',
    'PropagationConfig',
    'ToolName',
    'TrustConfig',
    'VerificationConfig',
    'load_config',
]
