"""
Provisioning outcomes, run summary and text rendering.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence


# Environment options
USE_EMOJI = os.environ.get("WORKSTATION_SETUP_EMOJI", "1") == "1"

RULE_WIDTH = 80


class ItemState(str, Enum):
    """Processing state of one descriptor."""

    PENDING = "pending"
    DETECTING = "detecting"
    INSTALLING = "installing"
    ALREADY_PRESENT = "already_present"
    VERIFIED = "verified"
    FAILED = "failed"
    PLANNED = "planned"

    @property
    def terminal(self) -> bool:
        return self in (
            ItemState.ALREADY_PRESENT,
            ItemState.VERIFIED,
            ItemState.FAILED,
            ItemState.PLANNED,
        )


@dataclass(frozen=True)
class InstallOutcome:
    """
    Result of processing one descriptor.

    Attributes:
        name: Descriptor name
        succeeded: True for already present and verified items
        state: Terminal state reached
        detection_method: Strategy that found the application, if any
        error_detail: Human-readable failure description
        warning: Set when the installer reported success but detection failed
        duration_seconds: Time spent on the item
    """
    name: str
    succeeded: bool
    state: ItemState
    detection_method: str | None = None
    error_detail: str | None = None
    warning: str | None = None
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "succeeded": self.succeeded,
            "state": self.state.value,
            "detection_method": self.detection_method,
            "error_detail": self.error_detail,
            "warning": self.warning,
            "duration_seconds": self.duration_seconds,
        }


@dataclass(frozen=True)
class ProvisionReport:
    """
    Aggregate of all outcomes of one run.

    Attributes:
        total: Number of descriptors processed
        succeeded: Number of successful outcomes
        outcomes: Every outcome, in processing order
        failures: Failed outcomes, in processing order
        duration_seconds: Total run time
        dry_run: Whether the run stopped after detection
    """
    total: int
    succeeded: int
    outcomes: tuple[InstallOutcome, ...] = ()
    failures: tuple[InstallOutcome, ...] = ()
    duration_seconds: float = 0.0
    dry_run: bool = False

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def planned(self) -> tuple[InstallOutcome, ...]:
        """Outcomes of a dry run that would have been installed."""
        return tuple(o for o in self.outcomes if o.state is ItemState.PLANNED)

    @property
    def all_succeeded(self) -> bool:
        return self.succeeded == self.total

    def outcome(self, name: str) -> InstallOutcome | None:
        """Look up the outcome of a descriptor by name."""
        for outcome in self.outcomes:
            if outcome.name == name:
                return outcome
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed_count,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "failures": [o.to_dict() for o in self.failures],
            "duration_seconds": self.duration_seconds,
            "dry_run": self.dry_run,
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


def summarize(
    outcomes: Iterable[InstallOutcome],
    duration_seconds: float = 0.0,
    dry_run: bool = False,
) -> ProvisionReport:
    """
    Aggregate outcomes into a report.

    Args:
        outcomes: Per-descriptor outcomes in processing order
        duration_seconds: Total run time
        dry_run: Whether installation was skipped

    Returns:
        ProvisionReport with counts and the ordered failure list
    """
    items = tuple(outcomes)
    return ProvisionReport(
        total=len(items),
        succeeded=sum(1 for o in items if o.succeeded),
        outcomes=items,
        failures=tuple(o for o in items if o.state is ItemState.FAILED),
        duration_seconds=duration_seconds,
        dry_run=dry_run,
    )


def status_icon(outcome: InstallOutcome) -> str:
    """Get status icon for an outcome."""
    if not USE_EMOJI:
        if outcome.state is ItemState.FAILED:
            return "x"
        if outcome.state is ItemState.PLANNED:
            return "+"
        if outcome.warning:
            return "!"
        return "✓"

    if outcome.state is ItemState.FAILED:
        return "❌"
    if outcome.state is ItemState.PLANNED:
        return "➕"
    if outcome.warning:
        return "⚠️"
    return "✅"


def _describe(outcome: InstallOutcome) -> str:
    if outcome.state is ItemState.ALREADY_PRESENT:
        return f"already present ({outcome.detection_method})"
    if outcome.state is ItemState.VERIFIED:
        if outcome.warning:
            return f"installed, {outcome.warning}"
        return f"installed and verified ({outcome.detection_method})"
    if outcome.state is ItemState.PLANNED:
        return "would be installed"
    return f"failed: {outcome.error_detail}"


def render(report: ProvisionReport, next_steps: Sequence[str] = ()) -> str:
    """
    Render a report as text.

    A dry run ends with what would be installed. Otherwise the next-steps
    block appears only when every item succeeded, and a warning banner
    points to the per-item log lines when one did not.

    Args:
        report: Run summary
        next_steps: Follow-up guidance for a fully successful run

    Returns:
        Multi-line summary text
    """
    lines = []

    lines.append("=" * RULE_WIDTH)
    lines.append("Provisioning Summary")
    lines.append("=" * RULE_WIDTH)
    lines.append(f"Succeeded: {report.succeeded}/{report.total} ({report.duration_seconds:.1f}s)")
    lines.append("")

    for outcome in report.outcomes:
        lines.append(f"  {status_icon(outcome)} {outcome.name}: {_describe(outcome)}")

    if report.failures:
        lines.append("")
        lines.append("Failures:")
        for outcome in report.failures:
            lines.append(f"  - {outcome.name}: {outcome.error_detail}")

    lines.append("")
    lines.append("-" * RULE_WIDTH)

    planned = report.planned
    if report.dry_run and not report.failures:
        if planned:
            lines.append(f"Dry run: {len(planned)} item(s) would be installed.")
            lines.append("Run again without --dry-run to install them.")
        else:
            lines.append("Dry run: nothing to install.")
    elif report.all_succeeded:
        if next_steps:
            lines.append("Next steps:")
            for i, step in enumerate(next_steps, 1):
                lines.append(f"  {i}. {step}")
        else:
            lines.append("All items are present.")
    else:
        failed = report.total - report.succeeded - len(planned)
        lines.append(
            f"WARNING: {failed} item(s) did not complete. "
            "Review the error lines in the log above for details."
        )

    return "\n".join(lines)
