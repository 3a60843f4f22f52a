"""
Periodic cleanup: package manager caches and stale scratch files.
"""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .common import truncate
from .config import Config
from .package_managers import PACKAGE_MANAGERS, PackageManager
from .probe import CommandProbe

logger = logging.getLogger(__name__)

CLEANUP_TIMEOUT_SECONDS = 600


@dataclass(frozen=True)
class MaintenanceResult:
    """
    Result of one cleanup task.

    Attributes:
        task: Task name (e.g., "scoop cleanup", "scratch files")
        success: Whether the task completed
        message: Summary or error description
        removed: Number of files removed (scratch cleanup only)
    """
    task: str
    success: bool
    message: str = ""
    removed: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "task": self.task,
            "success": self.success,
            "message": self.message,
            "removed": self.removed,
        }


def clean_package_manager(manager: PackageManager, probe: CommandProbe, timeout: float = CLEANUP_TIMEOUT_SECONDS) -> MaintenanceResult | None:
    """
    Run a package manager's cleanup command.

    Returns:
        MaintenanceResult, or None when the manager has no cleanup command
        or is not installed
    """
    task = f"{manager.name} cleanup"
    if not manager.cleanup_command:
        return None
    executable = probe.resolve(manager.executable)
    if not executable:
        logger.debug(f"{manager.display_name} not installed, skipping cleanup")
        return None

    command = [executable, *manager.cleanup_command]
    logger.info(f"Running {' '.join(command)}")
    try:
        result = subprocess.run(
            command,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        return MaintenanceResult(task, False, f"Timed out after {timeout:g}s")
    except OSError as e:
        return MaintenanceResult(task, False, f"Cannot start cleanup: {e}")

    if result.returncode != 0:
        return MaintenanceResult(
            task,
            False,
            f"Exited with code {result.returncode}: {truncate(result.stderr or result.stdout or '')}",
        )
    return MaintenanceResult(task, True, "Caches and old versions removed")


def clean_scratch_dir(directory: str | Path, max_age_days: int, now: float | None = None) -> MaintenanceResult:
    """
    Remove files older than ``max_age_days`` from a scratch directory.

    Files that cannot be removed (still in use by a running installer,
    for instance) are skipped and counted in the message.
    """
    task = "scratch files"
    root = Path(directory)
    if not root.is_dir():
        return MaintenanceResult(task, True, f"{root} does not exist")

    cutoff = (now if now is not None else time.time()) - max_age_days * 86400
    removed = 0
    skipped = 0
    for path in root.iterdir():
        try:
            if path.is_file() and path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
        except OSError as e:
            logger.debug(f"Could not remove {path}: {e}")
            skipped += 1

    message = f"Removed {removed} file(s) from {root}"
    if skipped:
        message += f", {skipped} in use"
    return MaintenanceResult(task, True, message, removed=removed)


def render_maintenance(results: Iterable[MaintenanceResult]) -> str:
    """Render cleanup results as a text block."""
    lines = ["Maintenance:"]
    for result in results:
        lines.append(f"  {'ok' if result.success else 'failed'}: {result.task}: {result.message}")
    return "\n".join(lines)


def run_maintenance(
    config: Config,
    probe: CommandProbe,
    managers: Iterable[PackageManager] = PACKAGE_MANAGERS,
) -> list[MaintenanceResult]:
    """
    Run every cleanup task.

    Failures are reported in the results, never raised.
    """
    results: list[MaintenanceResult] = []
    for manager in managers:
        result = clean_package_manager(manager, probe)
        if result is not None:
            results.append(result)

    results.append(clean_scratch_dir(config.effective_scratch_dir, config.temp_max_age_days))

    for result in results:
        if result.success:
            logger.info(f"{result.task}: {result.message}")
        else:
            logger.error(f"{result.task}: {result.message}")
    return results
