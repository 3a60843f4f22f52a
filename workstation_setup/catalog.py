"""
Descriptor catalog: the ordered list of applications to provision.

A catalog file is YAML or JSON holding either a list of descriptor records
or a mapping with an ``apps`` list. Order matters: bootstrap entries (the
package manager itself, extra buckets) must come before the entries that
depend on them.
"""

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from .descriptors import AppDescriptor

logger = logging.getLogger(__name__)


class CatalogError(ValueError):
    """Raised when a catalog file cannot be loaded or is invalid."""
    pass


# Built-in example catalog for a Windows developer workstation
DEFAULT_CATALOG: tuple[dict[str, Any], ...] = (
    {
        "name": "Scoop",
        "install_method": "custom",
        "shell": "powershell",
        "command": "Invoke-RestMethod -Uri https://get.scoop.sh | Invoke-Expression",
        "detection_paths": ["~/scoop/shims/scoop.ps1"],
        "detection_command": "scoop",
        "description": "Command-line installer used by most entries below",
    },
    {
        "name": "Git",
        "install_method": "scoop",
        "package_ref": "main/git",
        "detection_paths": ["~/scoop/apps/git/current/cmd/git.exe"],
        "detection_command": "git",
    },
    {
        "name": "Scoop extras bucket",
        "install_method": "custom",
        "shell": "powershell",
        "command": "scoop bucket add extras",
        "detection_paths": ["~/scoop/buckets/extras"],
    },
    {
        "name": "Visual Studio Code",
        "install_method": "scoop",
        "package_ref": "extras/vscode",
        "detection_paths": [
            "~/scoop/apps/vscode/current/Code.exe",
            "~/AppData/Local/Programs/Microsoft VS Code/Code.exe",
        ],
        "detection_command": "code",
    },
    {
        "name": "7-Zip",
        "install_method": "winget",
        "package_ref": "7zip.7zip",
        "detection_paths": ["C:/Program Files/7-Zip/7z.exe"],
        "detection_command": "7z",
    },
    {
        "name": "Python",
        "install_method": "winget",
        "package_ref": "Python.Python.3.12",
        "detection_paths": ["~/AppData/Local/Programs/Python/Python312/python.exe"],
    },
    {
        "name": "Windows Terminal",
        "install_method": "winget",
        "package_ref": "Microsoft.WindowsTerminal",
        "detection_paths": ["~/AppData/Local/Microsoft/WindowsApps/wt.exe"],
        "detection_command": "wt",
    },
    {
        "name": "Docker Desktop",
        "install_method": "download",
        "download_url": "https://desktop.docker.com/win/main/amd64/Docker%20Desktop%20Installer.exe",
        "installer_args": "install --quiet --accept-license",
        "detection_paths": ["C:/Program Files/Docker/Docker/Docker Desktop.exe"],
        "detection_command": "docker",
    },
)


def descriptors_from_records(records: Any, source: str = "<catalog>") -> tuple[AppDescriptor, ...]:
    """
    Build descriptors from raw catalog records.

    Args:
        records: List of descriptor mappings, or a mapping with an ``apps`` list
        source: Name of the origin, used in error messages

    Returns:
        Descriptors in catalog order

    Raises:
        CatalogError: If the structure or any record is invalid
    """
    if isinstance(records, dict):
        records = records.get("apps")
    if not isinstance(records, (list, tuple)):
        raise CatalogError(f"{source}: expected a list of apps")

    descriptors: list[AppDescriptor] = []
    seen: set[str] = set()
    for index, record in enumerate(records, 1):
        if not isinstance(record, dict):
            raise CatalogError(f"{source}: entry {index} is not a mapping")
        try:
            descriptor = AppDescriptor.from_dict(record)
        except (ValueError, TypeError) as e:
            raise CatalogError(f"{source}: entry {index}: {e}") from e
        if descriptor.name in seen:
            raise CatalogError(f"{source}: duplicate entry '{descriptor.name}'")
        seen.add(descriptor.name)
        descriptors.append(descriptor)

    logger.debug(f"Loaded {len(descriptors)} catalog entries from {source}")
    return tuple(descriptors)


def default_catalog() -> tuple[AppDescriptor, ...]:
    """Descriptors of the built-in catalog."""
    return descriptors_from_records(list(DEFAULT_CATALOG), source="<built-in>")


def load_catalog(path: str | Path) -> tuple[AppDescriptor, ...]:
    """
    Load descriptors from a YAML or JSON catalog file.

    Args:
        path: Catalog file path (.json is parsed as JSON, anything else as YAML)

    Returns:
        Descriptors in file order

    Raises:
        CatalogError: If the file is missing, unparsable or invalid
    """
    catalog_path = Path(path)
    try:
        with open(catalog_path, "r", encoding="utf-8") as f:
            if catalog_path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except OSError as e:
        raise CatalogError(f"Cannot read catalog {catalog_path}: {e}") from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise CatalogError(f"Cannot parse catalog {catalog_path}: {e}") from e

    return descriptors_from_records(data, source=str(catalog_path))
