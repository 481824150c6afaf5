"""
Tests for zscaler_trust.platform_profile module.
"""

import subprocess
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from zscaler_trust.models import ShellKind
from zscaler_trust.platform_profile import detect_platform, resolve_powershell_profile


class TestDetectPlatform:
    """Test shell and profile resolution."""

    def test_windows_uses_reported_profile(self, home_dir: Path) -> None:
        """SHELL is ignored on Windows; PowerShell's own $PROFILE wins."""
        onedrive_profile: str = (
            r'C:\Users\dev\OneDrive\Documents\PowerShell\Microsoft.PowerShell_profile.ps1'
        )

        profile = detect_platform(
            {'SHELL': '/bin/bash'},
            system='Windows',
            home=home_dir,
            powershell_profile_resolver=lambda: onedrive_profile,
        )

        assert profile.shell is ShellKind.WINDOWS
        assert profile.profile_path == Path(onedrive_profile)

    def test_windows_without_powershell_answer(self, home_dir: Path) -> None:
        """Falls back to the Windows PowerShell 5.1 location under the home."""
        profile = detect_platform(
            {},
            system='Windows',
            home=home_dir,
            powershell_profile_resolver=lambda: None,
        )

        assert profile.profile_path == (
            home_dir / 'Documents' / 'WindowsPowerShell' / 'Microsoft.PowerShell_profile.ps1'
        )

    def test_resolver_not_called_off_windows(self, home_dir: Path) -> None:
        resolver = Mock(return_value='ignored')

        detect_platform(
            {'SHELL': '/bin/zsh'},
            system='Linux',
            home=home_dir,
            powershell_profile_resolver=resolver,
        )

        resolver.assert_not_called()

    def test_fish(self, home_dir: Path) -> None:
        """fish gets its own syntax and config file."""
        profile = detect_platform({'SHELL': '/usr/local/bin/fish'}, system='Darwin', home=home_dir)

        assert profile.shell is ShellKind.FISH
        assert profile.profile_path == home_dir / '.config' / 'fish' / 'config.fish'

    @pytest.mark.parametrize(
        ('shell', 'file_name'),
        [
            ('/bin/zsh', '.zshrc'),
            ('/usr/bin/bash', '.bashrc'),
            ('/bin/sh', '.profile'),
            ('/usr/bin/ksh', '.profile'),
        ],
    )
    def test_posix_shells(self, home_dir: Path, shell: str, file_name: str) -> None:
        """POSIX shells share syntax but not startup files."""
        profile = detect_platform({'SHELL': shell}, system='Linux', home=home_dir)

        assert profile.shell is ShellKind.POSIX
        assert profile.profile_path == home_dir / file_name

    def test_missing_shell_variable(self, home_dir: Path) -> None:
        """No SHELL falls back to ~/.profile."""
        profile = detect_platform({}, system='Linux', home=home_dir)

        assert profile.shell is ShellKind.POSIX
        assert profile.profile_path == home_dir / '.profile'
        assert profile.home == home_dir


class TestResolvePowerShellProfile:
    """Test resolve_powershell_profile()."""

    def test_prefers_pwsh(self) -> None:
        """The first executable that answers decides."""
        result = subprocess.CompletedProcess(
            args=[], returncode=0, stdout='C:\\Docs\\PowerShell\\profile.ps1\r\n', stderr=''
        )

        with (
            patch('zscaler_trust.platform_profile.shutil.which', side_effect=lambda name: name),
            patch('zscaler_trust.platform_profile.subprocess.run', return_value=result) as run,
        ):
            assert resolve_powershell_profile() == 'C:\\Docs\\PowerShell\\profile.ps1'

        run.assert_called_once()
        assert run.call_args.args[0] == ['pwsh', '-NoLogo', '-NoProfile', '-Command', '$PROFILE']

    def test_falls_through_to_windows_powershell(self) -> None:
        """pwsh missing: powershell is asked."""
        result = subprocess.CompletedProcess(
            args=[], returncode=0, stdout='C:\\Docs\\WindowsPowerShell\\profile.ps1\n', stderr=''
        )

        with (
            patch(
                'zscaler_trust.platform_profile.shutil.which',
                side_effect=lambda name: name if name == 'powershell' else None,
            ),
            patch('zscaler_trust.platform_profile.subprocess.run', return_value=result) as run,
        ):
            assert resolve_powershell_profile() == 'C:\\Docs\\WindowsPowerShell\\profile.ps1'

        assert run.call_args.args[0][0] == 'powershell'

    def test_no_answer(self) -> None:
        """Failures and empty output give None."""
        empty = subprocess.CompletedProcess(args=[], returncode=0, stdout='\n', stderr='')

        with (
            patch('zscaler_trust.platform_profile.shutil.which', side_effect=lambda name: name),
            patch(
                'zscaler_trust.platform_profile.subprocess.run',
                side_effect=[subprocess.TimeoutExpired(cmd='pwsh', timeout=30), empty],
            ),
        ):
            assert resolve_powershell_profile() is None
