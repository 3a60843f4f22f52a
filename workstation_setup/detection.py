"""
Installed-application detection.

Strategies run in order and the first match wins:
1. Filesystem paths from the descriptor (glob wildcards allowed)
2. Executable lookup through the command probe
3. Package manager listing (scoop/winget descriptors only)
"""

from __future__ import annotations

import glob
import logging
import os
from dataclasses import dataclass
from typing import Mapping

from .common import expand_path
from .descriptors import AppDescriptor
from .package_managers import PACKAGE_MANAGERS, PackageManager
from .probe import CommandProbe

logger = logging.getLogger(__name__)

METHOD_PATH = "filesystem path"
METHOD_COMMAND = "command probe"
METHOD_LISTING = "package listing"

LISTING_TIMEOUT_SECONDS = 60


@dataclass(frozen=True)
class DetectionResult:
    """
    Outcome of a detection attempt.

    Attributes:
        found: Whether the application is present
        method: Strategy that matched (None when not found)
        detail: Matched path, resolved executable or package id
    """
    found: bool
    method: str | None = None
    detail: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {"found": self.found, "method": self.method, "detail": self.detail}


NOT_FOUND = DetectionResult(found=False)


def path_matches(pattern: str) -> list[str]:
    """
    Expand a detection path pattern.

    Args:
        pattern: Path with optional ``~``, environment variables and wildcards

    Returns:
        Existing paths matching the pattern (possibly several)
    """
    expanded = expand_path(pattern)
    if glob.has_magic(expanded):
        return sorted(glob.glob(expanded))
    return [expanded] if os.path.exists(expanded) else []


class Detector:
    """
    Determines whether a described application is already installed.

    Args:
        probe: Executable lookup used for command and manager checks
        package_managers: Managers consulted for listing-based detection
            (None disables listing checks)
        listing_timeout: Timeout for one listing subprocess
    """

    def __init__(
        self,
        probe: CommandProbe,
        package_managers: Mapping[str, PackageManager] | None = None,
        listing_timeout: float = LISTING_TIMEOUT_SECONDS,
    ):
        self.probe = probe
        self.package_managers = dict(package_managers or {})
        self.listing_timeout = listing_timeout
        self._listings: dict[str, str] = {}

    def detect(self, descriptor: AppDescriptor) -> DetectionResult:
        """
        Detect whether the descriptor's application is present.

        Lookup errors never propagate; they resolve to "not found".
        """
        for pattern in descriptor.detection_paths:
            try:
                matches = path_matches(pattern)
            except (OSError, ValueError) as e:
                logger.debug(f"{descriptor.name}: cannot check {pattern}: {e}")
                continue
            if matches:
                logger.debug(f"{descriptor.name}: found at {matches[0]}")
                return DetectionResult(True, METHOD_PATH, matches[0])

        if descriptor.detection_command:
            resolved = self.probe.resolve(descriptor.detection_command)
            if resolved:
                logger.debug(f"{descriptor.name}: {descriptor.detection_command} resolves to {resolved}")
                return DetectionResult(True, METHOD_COMMAND, resolved)

        if descriptor.install_method.is_package_manager and descriptor.package_ref:
            if self._listed(descriptor):
                return DetectionResult(True, METHOD_LISTING, descriptor.package_ref)

        return NOT_FOUND

    def forget(self, manager_name: str | None = None) -> None:
        """Drop cached listings (all managers when no name is given)."""
        if manager_name is None:
            self._listings.clear()
        else:
            self._listings.pop(manager_name, None)

    def _listed(self, descriptor: AppDescriptor) -> bool:
        manager = self.package_managers.get(descriptor.install_method.value)
        if manager is None:
            return False

        if manager.name not in self._listings:
            executable = self.probe.resolve(manager.executable)
            if not executable:
                return False
            self._listings[manager.name] = manager.list_installed(executable, self.listing_timeout).lower()

        key = PackageManager.listing_key(descriptor.package_ref or "")
        found = bool(key) and key in self._listings[manager.name]
        if found:
            logger.debug(f"{descriptor.name}: listed by {manager.display_name}")
        return found


def default_package_managers() -> dict[str, PackageManager]:
    """Registry mapping used for listing-based detection."""
    return {pm.name: pm for pm in PACKAGE_MANAGERS}
