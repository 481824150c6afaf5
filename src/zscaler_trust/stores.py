# zscaler_trust/stores.py
"""
Environment variable stores.

A ConfigStore is a named key/value environment the propagator writes the
target variables into. The process store wraps an explicit mapping (the CLI
passes `os.environ`, tests pass a dict), so no component mutates the ambient
environment behind another's back. On Windows the persistent per-user
environment (HKCU\\Environment) is a second store.
"""

import logging
from collections.abc import MutableMapping
from typing import Protocol

__all__: list[str] = [
    'ConfigStore',
    'MappingEnvironmentStore',
    'WindowsUserEnvironmentStore',
]

logger: logging.Logger = logging.getLogger(__name__)


class ConfigStore(Protocol):
    """Named key/value environment."""

    name: str

    def get(self, key: str) -> str | None:
        """Current value, or None if unset."""
        ...

    def set(self, key: str, value: str) -> None:
        """
        Set `key` to `value`.

        Raises:
            OSError: If the store cannot be written.
        """
        ...

    def remove(self, key: str) -> None:
        """Unset `key`; a missing key is not an error."""
        ...


class MappingEnvironmentStore:
    """
    ConfigStore over a mutable mapping.

    Attributes:
        name: Label used in propagation reports.
    """

    def __init__(self, environ: MutableMapping[str, str], name: str = 'process-env') -> None:
        self.name: str = name
        self._environ: MutableMapping[str, str] = environ

    def get(self, key: str) -> str | None:
        return self._environ.get(key)

    def set(self, key: str, value: str) -> None:
        self._environ[key] = value

    def remove(self, key: str) -> None:
        self._environ.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        """Copy of the mapping, used as the environment for child processes."""
        return dict(self._environ)


class WindowsUserEnvironmentStore:
    """
    Persistent user environment in the Windows registry.

    New values are seen by processes started after the write; already running
    shells keep their environment.
    """

    _SUBKEY: str = 'Environment'

    def __init__(self, name: str = 'user-env') -> None:
        self.name: str = name

    def get(self, key: str) -> str | None:
        import winreg  # noqa: PLC0415

        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, self._SUBKEY) as registry_key:
                value, _value_type = winreg.QueryValueEx(registry_key, key)
        except FileNotFoundError:
            return None
        return str(value)

    def set(self, key: str, value: str) -> None:
        import winreg  # noqa: PLC0415

        with winreg.CreateKeyEx(
            winreg.HKEY_CURRENT_USER,
            self._SUBKEY,
            0,
            winreg.KEY_SET_VALUE,
        ) as registry_key:
            winreg.SetValueEx(registry_key, key, 0, winreg.REG_SZ, value)
        logger.debug('Set user environment %s', key)

    def remove(self, key: str) -> None:
        import winreg  # noqa: PLC0415

        try:
            with winreg.OpenKey(
                winreg.HKEY_CURRENT_USER,
                self._SUBKEY,
                0,
                winreg.KEY_SET_VALUE,
            ) as registry_key:
                winreg.DeleteValue(registry_key, key)
        except FileNotFoundError:
            return
