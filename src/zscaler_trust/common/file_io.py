# zscaler_trust/common/file_io.py
"""
File writing utilities for certificate artifacts and shell startup files.

Design Philosophy:
------------------
- Every write goes to a temporary file in the target directory and is then
  renamed over the target. A crash or Ctrl-C mid-write leaves either the old
  file or the new one, never a truncated bundle or half a profile.
- Managed regions in user-owned text files are delimited by begin/end marker
  lines. Writing a block replaces the existing region in place, so running
  the tool any number of times leaves exactly one block.
- Errors are raised, not swallowed. Callers decide whether a failure is
  fatal (bundle persistence) or isolated (one propagation target).

Thread Safety:
--------------
Not thread-safe. The pipeline is a single-writer, one-shot process; two
concurrent runs against the same profile can lose one of the updates.

Usage:
------
    from zscaler_trust.common.file_io import MarkedBlockFile, atomic_write_bytes

    atomic_write_bytes(Path('~/certs/bundle.pem').expanduser(), bundle_bytes)

    profile = MarkedBlockFile(Path('~/.zshrc').expanduser())
    profile.apply_marked_block('zscaler-trust', 'export SSL_CERT_FILE="..."')
"""

import logging
import os
import tempfile
from contextlib import suppress
from enum import Enum
from pathlib import Path

__all__: list[str] = [
    'BlockWriteResult',
    'MarkedBlockFile',
    'UnterminatedBlockError',
    'atomic_write_bytes',
    'atomic_write_text',
]

logger: logging.Logger = logging.getLogger(__name__)


class UnterminatedBlockError(ValueError):
    """A begin marker line has no matching end marker line."""

    def __init__(self, path: Path, marker: str, line_number: int) -> None:
        self.path: Path = path
        self.marker: str = marker
        self.line_number: int = line_number
        super().__init__(
            f'{path}:{line_number}: block {marker!r} has no end marker; '
            f'add "# <<< {marker} <<<" after its last line or delete the begin line'
        )


class BlockWriteResult(str, Enum):
    """What apply_marked_block did to the file."""

    ADDED = 'added'
    REPLACED = 'replaced'
    UNCHANGED = 'unchanged'


def atomic_write_bytes(file_path: Path, data: bytes) -> None:
    """
    Write bytes to `file_path` atomically.

    The parent directory must already exist. An existing file keeps its
    permission bits; a new file gets 0644.

    Args:
        file_path: Destination file.
        data: Exact bytes to write.

    Raises:
        OSError: If the temp file cannot be written or renamed.
    """
    existing_mode: int | None = None
    if file_path.exists():
        existing_mode = file_path.stat().st_mode & 0o777

    # Same directory keeps the rename on one filesystem, which makes it atomic
    try:
        with tempfile.NamedTemporaryFile(
            mode='wb',
            prefix=f'.{file_path.name}.',
            suffix='.tmp',
            dir=file_path.parent,
            delete=False,
        ) as temp_file:
            temp_path = Path(temp_file.name)
            temp_file.write(data)
            temp_file.flush()
            os.fsync(temp_file.fileno())

        # NamedTemporaryFile creates 0600; bundles and profiles are world-readable
        temp_path.chmod(existing_mode if existing_mode is not None else 0o644)

        temp_path.replace(file_path)

    except OSError:
        if 'temp_path' in locals() and temp_path.exists():  # pyright: ignore[reportPossiblyUnboundVariable]
            with suppress(OSError):
                temp_path.unlink()  # pyright: ignore[reportPossiblyUnboundVariable]
        raise

    logger.debug('Wrote %d bytes to %s', len(data), file_path)


def atomic_write_text(file_path: Path, text: str) -> None:
    """Write UTF-8 text atomically. See atomic_write_bytes."""
    atomic_write_bytes(file_path, text.encode('utf-8'))


class MarkedBlockFile:
    """
    A user-owned text file containing at most one managed block per marker.

    The block looks like:

        # >>> zscaler-trust >>>
        export SSL_CERT_FILE="/home/dev/certs/ncs_golden_bundle.pem"
        # <<< zscaler-trust <<<

    `#` starts a comment in POSIX shells, fish and PowerShell, so the same
    delimiters work in every supported startup file. Content outside the
    block is never touched.

    Attributes:
        path: The managed file.
    """

    def __init__(self, path: Path) -> None:
        self._path: Path = path

    @property
    def path(self) -> Path:
        """The managed file path."""
        return self._path

    @staticmethod
    def begin_line(marker: str) -> str:
        """Opening delimiter for `marker`."""
        return f'# >>> {marker} >>>'

    @staticmethod
    def end_line(marker: str) -> str:
        """Closing delimiter for `marker`."""
        return f'# <<< {marker} <<<'

    def _read_lines(self) -> list[str]:
        if not self._path.exists():
            return []
        return self._path.read_text(encoding='utf-8').splitlines()

    def _find_block(self, lines: list[str], marker: str) -> tuple[int, int] | None:
        """
        Locate the block for `marker`.

        Returns:
            (begin_index, end_index) of the delimiter lines, or None.

        Raises:
            UnterminatedBlockError: If the begin line has no end line. The
                extent of the block is unknown, so nothing after it may be
                treated as managed.
        """
        begin: str = self.begin_line(marker)
        end: str = self.end_line(marker)

        begin_index: int | None = None
        for index, line in enumerate(lines):
            if line.strip() == begin:
                begin_index = index
                break

        if begin_index is None:
            return None

        for index in range(begin_index + 1, len(lines)):
            if lines[index].strip() == end:
                return begin_index, index

        logger.warning(
            'Block %r in %s has no end marker (begin on line %d); leaving file untouched',
            marker,
            self._path,
            begin_index + 1,
        )
        raise UnterminatedBlockError(self._path, marker, begin_index + 1)

    def read_block(self, marker: str) -> str | None:
        """Content between the delimiters, or None if the block is absent."""
        lines: list[str] = self._read_lines()
        span: tuple[int, int] | None = self._find_block(lines, marker)
        if span is None:
            return None
        begin_index, end_index = span
        return '\n'.join(lines[begin_index + 1 : end_index])

    def count_blocks(self, marker: str) -> int:
        """Number of begin delimiters for `marker` in the file."""
        begin: str = self.begin_line(marker)
        return sum(1 for line in self._read_lines() if line.strip() == begin)

    def apply_marked_block(self, marker: str, content: str) -> BlockWriteResult:
        """
        Insert or replace the block for `marker` with `content`.

        The file and its parent directory are created if missing. If the
        block already holds exactly `content`, the file is not rewritten.

        Args:
            marker: Block identifier.
            content: Block body without delimiters; trailing newlines are
                stripped.

        Returns:
            Whether the block was added, replaced, or already up to date.

        Raises:
            OSError: If the file cannot be read or written.
            UnterminatedBlockError: If an earlier block for `marker` lost its
                end line. The file is left as it is.
        """
        body_lines: list[str] = content.rstrip('\n').splitlines()
        block_lines: list[str] = [
            self.begin_line(marker),
            *body_lines,
            self.end_line(marker),
        ]

        lines: list[str] = self._read_lines()
        span: tuple[int, int] | None = self._find_block(lines, marker)

        if span is None:
            new_lines: list[str] = list(lines)
            # Separate the block from whatever the user already has
            if new_lines and new_lines[-1].strip():
                new_lines.append('')
            new_lines.extend(block_lines)
            result: BlockWriteResult = BlockWriteResult.ADDED
        else:
            begin_index, end_index = span
            if lines[begin_index : end_index + 1] == block_lines:
                logger.debug('Block %r in %s already up to date', marker, self._path)
                return BlockWriteResult.UNCHANGED
            new_lines = lines[:begin_index] + block_lines + lines[end_index + 1 :]
            result = BlockWriteResult.REPLACED

        self._path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_text(self._path, '\n'.join(new_lines) + '\n')

        logger.info('Block %r %s in %s', marker, result.value, self._path)
        return result

    def remove_block(self, marker: str) -> bool:
        """
        Delete the block for `marker`.

        Returns:
            True if a block was removed, False if none was present.

        Raises:
            OSError: If the file cannot be rewritten.
            UnterminatedBlockError: If the block has no end line.
        """
        lines: list[str] = self._read_lines()
        span: tuple[int, int] | None = self._find_block(lines, marker)
        if span is None:
            return False

        begin_index, end_index = span
        remaining: list[str] = lines[:begin_index] + lines[end_index + 1 :]
        atomic_write_text(self._path, '\n'.join(remaining) + '\n' if remaining else '')
        logger.info('Removed block %r from %s', marker, self._path)
        return True
