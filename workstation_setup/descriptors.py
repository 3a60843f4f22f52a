"""
Application descriptors.

An AppDescriptor is a declarative, immutable record describing one
installable application: how to detect it and which backend installs it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class InstallMethod(str, Enum):
    """Installation backend selected by a descriptor."""

    SCOOP = "scoop"
    WINGET = "winget"
    DOWNLOAD = "download"
    CUSTOM = "custom"

    @property
    def is_package_manager(self) -> bool:
        return self in (InstallMethod.SCOOP, InstallMethod.WINGET)

    @classmethod
    def parse(cls, value: str | InstallMethod) -> InstallMethod:
        """
        Parse an install method name.

        Accepts the enum values plus the generic names
        (PackageManagerA, PackageManagerB, DirectDownload, CustomCommand).

        Raises:
            ValueError: If the name is not recognized
        """
        if isinstance(value, InstallMethod):
            return value
        key = str(value).strip().lower()
        if key in _METHOD_ALIASES:
            return _METHOD_ALIASES[key]
        raise ValueError(
            f"Invalid install method: {value}. "
            f"Must be one of: {', '.join(m.value for m in cls)}"
        )


_METHOD_ALIASES = {
    "scoop": InstallMethod.SCOOP,
    "packagemanagera": InstallMethod.SCOOP,
    "winget": InstallMethod.WINGET,
    "packagemanagerb": InstallMethod.WINGET,
    "download": InstallMethod.DOWNLOAD,
    "directdownload": InstallMethod.DOWNLOAD,
    "custom": InstallMethod.CUSTOM,
    "customcommand": InstallMethod.CUSTOM,
}

# Catalog keys accepted in camelCase besides the field names
_KEY_ALIASES = {
    "installMethod": "install_method",
    "packageRef": "package_ref",
    "downloadUrl": "download_url",
    "installerArgs": "installer_args",
    "detectionPaths": "detection_paths",
    "detectionCommand": "detection_command",
}

SHELLS = ("default", "powershell")


@dataclass(frozen=True)
class AppDescriptor:
    """
    Declarative description of one installable application.

    Attributes:
        name: Human-readable identifier used in logs and reports
        install_method: Backend that installs the application
        package_ref: Package id for scoop ("extras/vscode") or winget ("Git.Git")
        download_url: Installer URL (download method only)
        installer_args: Arguments for the downloaded installer, e.g. "/S"
        command: Shell command string (custom method only)
        shell: Shell for custom commands ("default" or "powershell")
        detection_paths: Path patterns whose existence means "installed"
        detection_command: Executable whose presence on PATH means "installed"
        description: Optional free text shown in dry-run output
    """
    name: str
    install_method: InstallMethod
    package_ref: str | None = None
    download_url: str | None = None
    installer_args: str = ""
    command: str | None = None
    shell: str = "default"
    detection_paths: tuple[str, ...] = ()
    detection_command: str | None = None
    description: str = ""

    def __post_init__(self):
        """Validate the descriptor against its install method."""
        if not self.name or not self.name.strip():
            raise ValueError("Descriptor name must not be empty")

        method = InstallMethod.parse(self.install_method)
        object.__setattr__(self, "install_method", method)
        object.__setattr__(self, "detection_paths", tuple(self.detection_paths))

        if method.is_package_manager and not self.package_ref:
            raise ValueError(f"{self.name}: install method '{method.value}' requires package_ref")
        if method is InstallMethod.DOWNLOAD and not self.download_url:
            raise ValueError(f"{self.name}: install method 'download' requires download_url")
        if method is InstallMethod.CUSTOM and not self.command:
            raise ValueError(f"{self.name}: install method 'custom' requires command")
        if self.shell not in SHELLS:
            raise ValueError(
                f"{self.name}: invalid shell '{self.shell}'. Must be one of: {', '.join(SHELLS)}"
            )

    @property
    def payload(self) -> str:
        """The one backend-specific value selected by the install method."""
        if self.install_method is InstallMethod.DOWNLOAD:
            return self.download_url or ""
        if self.install_method is InstallMethod.CUSTOM:
            return self.command or ""
        return self.package_ref or ""

    @staticmethod
    def from_dict(data: dict[str, Any]) -> AppDescriptor:
        """
        Create an AppDescriptor from a catalog record.

        Raises:
            ValueError: If required fields are missing or inconsistent
        """
        normalized = {_KEY_ALIASES.get(key, key): value for key, value in data.items()}
        if "install_method" not in normalized:
            raise ValueError(f"{normalized.get('name') or '<unnamed>'}: install_method is required")

        name = normalized.get("name")
        paths = normalized.get("detection_paths") or ()
        if isinstance(paths, str):
            paths = (paths,)

        return AppDescriptor(
            name=str(name) if name is not None else "",
            install_method=InstallMethod.parse(normalized["install_method"]),
            package_ref=normalized.get("package_ref"),
            download_url=normalized.get("download_url"),
            installer_args=normalized.get("installer_args") or "",
            command=normalized.get("command"),
            shell=normalized.get("shell") or "default",
            detection_paths=tuple(str(p) for p in paths),
            detection_command=normalized.get("detection_command"),
            description=normalized.get("description") or "",
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "install_method": self.install_method.value,
            "package_ref": self.package_ref,
            "download_url": self.download_url,
            "installer_args": self.installer_args,
            "command": self.command,
            "shell": self.shell,
            "detection_paths": list(self.detection_paths),
            "detection_command": self.detection_command,
            "description": self.description,
        }
