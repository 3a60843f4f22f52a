"""
Executable resolution on PATH and explicitly configured directories.
"""

from __future__ import annotations

import logging
import os
import shutil
from typing import Sequence

from .common import expand_path

logger = logging.getLogger(__name__)


class CommandProbe:
    """
    Read-only lookup of executables.

    Searches the process PATH followed by ``extra_paths``. Extra paths are
    passed in explicitly so that freshly installed tools (scoop shims, for
    instance) are found without mutating the environment.
    """

    def __init__(self, extra_paths: Sequence[str] = ()):
        self.extra_paths = tuple(extra_paths)

    def search_path(self) -> str:
        """PATH string used for lookups."""
        parts = [p for p in os.environ.get("PATH", "").split(os.pathsep) if p]
        for extra in self.extra_paths:
            expanded = expand_path(extra)
            if expanded not in parts:
                parts.append(expanded)
        return os.pathsep.join(parts)

    def resolve(self, executable: str) -> str | None:
        """
        Resolve an executable to its full path.

        Args:
            executable: Command name or path (e.g., "git", "scoop")

        Returns:
            Absolute path, or None when not found or on any lookup error
        """
        if not executable:
            return None
        try:
            return shutil.which(executable, path=self.search_path())
        except Exception as e:
            logger.debug(f"Lookup of {executable} failed: {e}")
            return None

    def is_available(self, executable: str) -> bool:
        """Check whether an executable can be resolved."""
        found = self.resolve(executable)
        if found:
            logger.debug(f"Found {executable} at: {found}")
        return found is not None
