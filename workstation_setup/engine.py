"""
Provisioning engine.

Processes descriptors one at a time, in caller order:

    pending -> detecting -> already_present
                         -> installing -> verified | failed

A failing item never stops the run.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Callable, Mapping, Sequence

from .adapters import AdapterResult, BackendAdapter, Unavailable, default_adapters
from .config import Config
from .descriptors import AppDescriptor, InstallMethod
from .detection import Detector, default_package_managers
from .probe import CommandProbe
from .report import InstallOutcome, ItemState, ProvisionReport, summarize

logger = logging.getLogger(__name__)


class ProvisionEngine:
    """
    Detects, installs and verifies a sequence of applications.

    Args:
        detector: Detection strategies
        adapters: Backend adapter per install method
        dry_run: Stop after detection and report what would be installed
        on_state: Optional callback invoked on every state change
    """

    def __init__(
        self,
        detector: Detector,
        adapters: Mapping[InstallMethod, BackendAdapter],
        dry_run: bool = False,
        on_state: Callable[[str, ItemState], None] | None = None,
    ):
        self.detector = detector
        self.adapters = dict(adapters)
        self.dry_run = dry_run
        self.on_state = on_state

    def run(self, descriptors: Sequence[AppDescriptor]) -> ProvisionReport:
        """
        Process every descriptor and summarize the outcomes.

        Never raises for per-item problems; each becomes a failed outcome.
        """
        start_time = time.time()
        outcomes: list[InstallOutcome] = []
        total = len(descriptors)

        for index, descriptor in enumerate(descriptors, 1):
            logger.info(f"[{index}/{total}] {descriptor.name}")
            item_start = time.time()
            try:
                outcome = self._process(descriptor)
            except Exception as e:
                logger.error(f"{descriptor.name}: unexpected error: {e}", exc_info=logger.isEnabledFor(logging.DEBUG))
                outcome = InstallOutcome(
                    name=descriptor.name,
                    succeeded=False,
                    state=ItemState.FAILED,
                    error_detail=f"Unexpected error: {e}",
                )
                self._notify(descriptor.name, ItemState.FAILED)
            outcomes.append(replace(outcome, duration_seconds=time.time() - item_start))

        return summarize(
            outcomes,
            duration_seconds=time.time() - start_time,
            dry_run=self.dry_run,
        )

    def _notify(self, name: str, state: ItemState) -> None:
        if self.on_state is not None:
            self.on_state(name, state)

    def _process(self, descriptor: AppDescriptor) -> InstallOutcome:
        name = descriptor.name
        self._notify(name, ItemState.PENDING)

        self._notify(name, ItemState.DETECTING)
        detection = self.detector.detect(descriptor)
        if detection.found:
            logger.info(f"{name}: already present ({detection.method}: {detection.detail})")
            self._notify(name, ItemState.ALREADY_PRESENT)
            return InstallOutcome(
                name=name,
                succeeded=True,
                state=ItemState.ALREADY_PRESENT,
                detection_method=detection.method,
            )

        if self.dry_run:
            logger.info(f"{name}: would install via {descriptor.install_method.value}")
            self._notify(name, ItemState.PLANNED)
            return InstallOutcome(name=name, succeeded=False, state=ItemState.PLANNED)

        self._notify(name, ItemState.INSTALLING)
        result = self._install(descriptor)

        if descriptor.install_method.is_package_manager:
            self.detector.forget(descriptor.install_method.value)

        if not result.success:
            detail = result.error_message or "Installer reported failure"
            logger.error(f"{name}: installation failed: {detail}")
            if result.error is not None and result.error.remediation:
                logger.info(f"{name}: {result.error.remediation}")
            self._notify(name, ItemState.FAILED)
            return InstallOutcome(
                name=name,
                succeeded=False,
                state=ItemState.FAILED,
                error_detail=detail,
            )

        verification = self.detector.detect(descriptor)
        self._notify(name, ItemState.VERIFIED)
        if verification.found:
            logger.info(f"{name}: installed and verified ({verification.method})")
            return InstallOutcome(
                name=name,
                succeeded=True,
                state=ItemState.VERIFIED,
                detection_method=verification.method,
            )

        warning = "installer reported success but the application was not detected afterwards"
        logger.warning(f"{name}: {warning}")
        return InstallOutcome(
            name=name,
            succeeded=True,
            state=ItemState.VERIFIED,
            warning=warning,
        )

    def _install(self, descriptor: AppDescriptor) -> AdapterResult:
        adapter = self.adapters.get(descriptor.install_method)
        if adapter is None:
            return AdapterResult(
                success=False,
                error=Unavailable(f"{descriptor.install_method.value} backend"),
            )
        return adapter.install(descriptor)


def build_engine(config: Config, dry_run: bool = False) -> ProvisionEngine:
    """
    Wire a ProvisionEngine from configuration.

    Args:
        config: Loaded configuration
        dry_run: Detect only

    Returns:
        Engine with the default detector and adapters
    """
    probe = CommandProbe(extra_paths=config.extra_paths)
    package_managers = default_package_managers()
    detector = Detector(probe, package_managers)
    adapters = default_adapters(
        probe,
        package_managers,
        scratch_dir=config.effective_scratch_dir,
        timeout=config.timeout_seconds,
        download_timeout=config.download_timeout_seconds,
    )
    return ProvisionEngine(detector, adapters, dry_run=dry_run)
