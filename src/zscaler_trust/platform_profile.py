# zscaler_trust/platform_profile.py
"""
Resolve the shell family and startup file once per run.

The result is a PlatformProfile value passed explicitly to the propagator.
Nothing downstream inspects `os.environ`, `platform.system()` or the home
directory on its own, which keeps propagation deterministic under test.

Profile selection:

    Windows                -> $PROFILE as reported by pwsh, else powershell,
                              else ~/Documents/WindowsPowerShell/Microsoft.PowerShell_profile.ps1
    $SHELL ends in fish    -> ~/.config/fish/config.fish
    $SHELL ends in zsh     -> ~/.zshrc
    $SHELL ends in bash    -> ~/.bashrc
    anything else          -> ~/.profile
"""

import logging
import platform
import shutil
import subprocess
from collections.abc import Callable, Mapping
from pathlib import Path, PurePath

from zscaler_trust.models import PlatformProfile, ShellKind

__all__: list[str] = [
    'PowerShellProfileResolver',
    'detect_platform',
    'resolve_powershell_profile',
]

logger: logging.Logger = logging.getLogger(__name__)

# Returns the current user's $PROFILE path, or None if no PowerShell answered
PowerShellProfileResolver = Callable[[], str | None]

_POSIX_PROFILES: dict[str, str] = {
    'zsh': '.zshrc',
    'bash': '.bashrc',
}

# PowerShell 7 first; Windows PowerShell 5.1 ships with every Windows install
_POWERSHELL_EXECUTABLES: tuple[str, ...] = ('pwsh', 'powershell')


def resolve_powershell_profile() -> str | None:
    """
    Ask PowerShell where its current-user profile lives.

    This follows Documents redirection (OneDrive, roaming profiles) and the
    5.1 vs 7 directory split, neither of which can be derived from the home
    directory.
    """
    for name in _POWERSHELL_EXECUTABLES:
        executable: str | None = shutil.which(name)
        if executable is None:
            continue
        try:
            completed: subprocess.CompletedProcess[str] = subprocess.run(  # noqa: S603
                [executable, '-NoLogo', '-NoProfile', '-Command', '$PROFILE'],
                capture_output=True,
                text=True,
                timeout=30,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as error:
            logger.debug('%s could not report $PROFILE: %s', name, error)
            continue

        profile_path: str = completed.stdout.strip()
        if completed.returncode == 0 and profile_path:
            logger.debug('%s reports $PROFILE=%s', name, profile_path)
            return profile_path

    return None


def detect_platform(
    environ: Mapping[str, str],
    system: str | None = None,
    home: Path | None = None,
    powershell_profile_resolver: PowerShellProfileResolver = resolve_powershell_profile,
) -> PlatformProfile:
    """
    Determine the shell family and the profile file to manage.

    Args:
        environ: Environment to read SHELL from. Passed in rather than read
            from os.environ so callers control what is inspected.
        system: `platform.system()` result. Detected when None.
        home: User home directory. `Path.home()` when None.
        powershell_profile_resolver: Only called on Windows.

    Returns:
        The PlatformProfile for this run.
    """
    if system is None:
        system = platform.system()
    if home is None:
        home = Path.home()

    if system == 'Windows':
        reported: str | None = powershell_profile_resolver()
        if reported:
            profile_path: Path = Path(reported)
        else:
            profile_path = (
                home / 'Documents' / 'WindowsPowerShell' / 'Microsoft.PowerShell_profile.ps1'
            )
            logger.warning('PowerShell did not report $PROFILE; using %s', profile_path)
        profile: PlatformProfile = PlatformProfile(
            shell=ShellKind.WINDOWS,
            profile_path=profile_path,
            home=home,
        )
    else:
        shell_name: str = PurePath(environ.get('SHELL', '')).name
        if shell_name == 'fish':
            profile = PlatformProfile(
                shell=ShellKind.FISH,
                profile_path=home / '.config' / 'fish' / 'config.fish',
                home=home,
            )
        else:
            profile = PlatformProfile(
                shell=ShellKind.POSIX,
                profile_path=home / _POSIX_PROFILES.get(shell_name, '.profile'),
                home=home,
            )

    logger.debug(
        'Platform: system=%s shell=%s profile=%s',
        system,
        profile.shell.value,
        profile.profile_path,
    )
    return profile
