"""
Data models for zscaler_trust.

Certificate models describe what the handshake produced; target models
describe what the pipeline writes and which consumers reference it.
"""

from zscaler_trust.models.certificates import (
    PEM_BEGIN_MARKER,
    PEM_END_MARKER,
    Certificate,
    CertificateChain,
    HandshakeCapture,
)
from zscaler_trust.models.discovery import DiscoveryAttempt, DiscoveryOutcome
from zscaler_trust.models.targets import (
    ConfigTarget,
    PlatformProfile,
    ShellKind,
    TargetKind,
    TargetResult,
    TargetStatus,
    ToolSetting,
    TrustBundle,
)

__all__: list[str] = [
    'PEM_BEGIN_MARKER',
    'PEM_END_MARKER',
    'Certificate',
    'CertificateChain',
    'ConfigTarget',
    'DiscoveryAttempt',
    'DiscoveryOutcome',
    'HandshakeCapture',
    'PlatformProfile',
    'ShellKind',
    'TargetKind',
    'TargetResult',
    'TargetStatus',
    'ToolSetting',
    'TrustBundle',
]
