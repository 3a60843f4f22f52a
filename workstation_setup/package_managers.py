"""
Package manager registry.

The package managers are external collaborators invoked as opaque
subprocesses: only their exit codes and plain-text list output are used.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageManager:
    """
    Package manager definition.

    Attributes:
        name: Package manager identifier, matching an install method ("scoop", "winget")
        display_name: Human-readable name
        executable: Command name resolved through the probe
        install_command_template: Install arguments (use {package} placeholder)
        list_command: Arguments printing installed packages as plain text
        cleanup_command: Arguments removing caches and old versions (optional)
    """
    name: str
    display_name: str
    executable: str
    install_command_template: tuple[str, ...]
    list_command: tuple[str, ...] = ()
    cleanup_command: tuple[str, ...] = ()

    def get_install_command(self, package: str, executable_path: str | None = None) -> tuple[str, ...]:
        """
        Get install command for a package.

        Args:
            package: Package id
            executable_path: Resolved executable (defaults to the bare name)

        Returns:
            Command tuple to install the package
        """
        command = [executable_path or self.executable]
        command.extend(part.replace("{package}", package) for part in self.install_command_template)
        return tuple(command)

    def list_installed(self, executable_path: str | None = None, timeout: float = 60) -> str:
        """
        Get the installed-package listing as plain text.

        Returns:
            Listing output, or an empty string if the listing fails
        """
        if not self.list_command:
            return ""
        command = [executable_path or self.executable, *self.list_command]
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"{self.display_name} listing failed: {e}")
            return ""
        if result.returncode != 0:
            logger.debug(f"{self.display_name} listing exited with code {result.returncode}")
            return ""
        return result.stdout or ""

    @staticmethod
    def listing_key(package: str) -> str:
        """
        Text searched for in listing output.

        Scoop refs may carry a bucket prefix ("extras/vscode"); listings show
        only the app name.
        """
        return package.rsplit("/", 1)[-1].strip().lower()


PACKAGE_MANAGERS = (
    PackageManager(
        name="scoop",
        display_name="Scoop",
        executable="scoop",
        install_command_template=("install", "{package}"),
        list_command=("list",),
        cleanup_command=("cleanup", "--all", "--cache"),
    ),
    PackageManager(
        name="winget",
        display_name="winget",
        executable="winget",
        install_command_template=(
            "install",
            "--id", "{package}",
            "--exact",
            "--silent",
            "--accept-package-agreements",
            "--accept-source-agreements",
            "--disable-interactivity",
        ),
        list_command=("list", "--accept-source-agreements", "--disable-interactivity"),
    ),
)


# Package manager lookup by name
_PM_BY_NAME = {pm.name: pm for pm in PACKAGE_MANAGERS}


def get_package_manager(name: str) -> PackageManager | None:
    """
    Get package manager by name.

    Returns:
        PackageManager object, or None if not found
    """
    return _PM_BY_NAME.get(name)
