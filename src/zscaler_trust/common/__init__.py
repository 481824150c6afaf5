# zscaler_trust/common/__init__.py

from zscaler_trust.common.file_io import (
    BlockWriteResult,
    MarkedBlockFile,
    UnterminatedBlockError,
    atomic_write_bytes,
    atomic_write_text,
)
from zscaler_trust.common.logger import setup_logger

__all__: list[str] = [
    'BlockWriteResult',
    'MarkedBlockFile',
    'UnterminatedBlockError',
    'atomic_write_bytes',
    'atomic_write_text',
    'setup_logger',
]
