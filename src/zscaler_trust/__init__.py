# zscaler_trust/__init__.py
"""
Zscaler Trust - make local developer tools trust a TLS-intercepting proxy.

Behind Zscaler, every HTTPS connection is re-signed by the proxy's own CA.
Tools that ship their own CA bundle (Python, Node, git, gcloud, pip, curl)
reject those connections until they are told to trust the proxy chain.

This package:

1. **Discovers** the chain the proxy currently presents, with a TLS handshake
   that has verification disabled, retried a bounded number of times.
2. **Validates** it: clean PEM encoding, then an issuer containing 'Zscaler'.
3. **Builds** a golden bundle: certifi's public CA bundle followed by the
   proxy chain, written atomically to ~/certs.
4. **Propagates** the bundle path to ten environment variables (process,
   shell profile, Windows user environment) and to git, gcloud and pip.

Quick Start:
    >>> import os
    >>> from zscaler_trust import TrustPipeline, load_config
    >>>
    >>> result = TrustPipeline(load_config(), environ=os.environ).run()
    >>> result.bundle.bundle_path
    PosixPath('/home/dev/certs/ncs_golden_bundle.pem')

Or from a shell:

    $ zscaler-trust
    $ zscaler-trust status
"""

__version__ = '0.1.0'

from zscaler_trust.bundle import BundleBuilder
from zscaler_trust.common import setup_logger
from zscaler_trust.config import TrustConfig, load_config
from zscaler_trust.errors import (
    DiscoveryError,
    DiscoveryExhaustedError,
    MissingBaselineBundleError,
    PersistenceError,
    PropagationError,
    TrustSetupError,
)
from zscaler_trust.pipeline import PipelineResult, TrustPipeline
from zscaler_trust.propagator import ConfigPropagator, PropagationReport
from zscaler_trust.retry import RetryController

__all__: list[str] = [
    'BundleBuilder',
    'ConfigPropagator',
    'DiscoveryError',
    'DiscoveryExhaustedError',
    'MissingBaselineBundleError',
    'PersistenceError',
    'PipelineResult',
    'PropagationError',
    'PropagationReport',
    'RetryController',
    'TrustConfig',
    'TrustPipeline',
    'TrustSetupError',
    '__version__',
    'load_config',
    'setup_logger',
]
