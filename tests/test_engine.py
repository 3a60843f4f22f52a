"""
Tests for the provisioning engine (workstation_setup/engine.py).
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from workstation_setup.adapters import (
    AdapterResult,
    BackendAdapter,
    BackendFailure,
    DirectDownloadAdapter,
    Timeout,
)
from workstation_setup.config import Config
from workstation_setup.descriptors import AppDescriptor, InstallMethod
from workstation_setup.detection import METHOD_PATH, Detector
from workstation_setup.engine import ProvisionEngine, build_engine
from workstation_setup.report import ItemState


class SpyAdapter(BackendAdapter):
    """Adapter double recording calls and optionally creating a marker file."""

    def __init__(self, succeed=True, creates=None, exit_code=1):
        self.calls = []
        self.succeed = succeed
        self.creates = creates or {}
        self.exit_code = exit_code

    def install(self, descriptor):
        self.calls.append(descriptor.name)
        if not self.succeed:
            return AdapterResult(success=False, exit_code=self.exit_code, error=BackendFailure(self.exit_code))
        marker = self.creates.get(descriptor.name)
        if marker is not None:
            Path(marker).parent.mkdir(parents=True, exist_ok=True)
            Path(marker).write_text("", encoding="utf-8")
        return AdapterResult(success=True, exit_code=0)


def _probe():
    probe = MagicMock()
    probe.resolve.return_value = None
    return probe


def _custom(name, path):
    return AppDescriptor(
        name=name,
        install_method=InstallMethod.CUSTOM,
        command=f"install {name}",
        detection_paths=(str(path),),
    )


def _adapters(**by_method):
    adapters = {method: SpyAdapter() for method in InstallMethod}
    adapters.update({InstallMethod(k): v for k, v in by_method.items()})
    return adapters


class TestAlreadyPresent:
    """Tests for skipping detected applications."""

    def test_no_adapter_call_when_path_exists(self, tmp_path):
        target = tmp_path / "tool.exe"
        target.write_text("", encoding="utf-8")
        adapters = _adapters()
        engine = ProvisionEngine(Detector(_probe()), adapters)

        report = engine.run([_custom("Tool", target)])

        assert all(a.calls == [] for a in adapters.values())
        outcome = report.outcome("Tool")
        assert outcome.state is ItemState.ALREADY_PRESENT
        assert outcome.succeeded
        assert outcome.detection_method == METHOD_PATH

    def test_second_run_is_idempotent(self, tmp_path):
        """Test re-running after a successful run invokes no installer."""
        marker = tmp_path / "apps" / "one.exe"
        custom = SpyAdapter(creates={"One": marker})
        engine = ProvisionEngine(Detector(_probe()), _adapters(custom=custom))
        descriptors = [_custom("One", marker)]

        first = engine.run(descriptors)
        second = engine.run(descriptors)

        assert custom.calls == ["One"]
        assert first.outcome("One").state is ItemState.VERIFIED
        assert second.outcome("One").state is ItemState.ALREADY_PRESENT
        assert second.all_succeeded


class TestInstall:
    """Tests for install, verify and failure handling."""

    def test_dispatches_only_selected_backend(self, tmp_path):
        adapters = _adapters()
        descriptor = AppDescriptor(
            name="Git",
            install_method=InstallMethod.SCOOP,
            package_ref="git",
            detection_paths=(str(tmp_path / "git.exe"),),
        )
        ProvisionEngine(Detector(_probe()), adapters).run([descriptor])

        assert adapters[InstallMethod.SCOOP].calls == ["Git"]
        for method in (InstallMethod.WINGET, InstallMethod.DOWNLOAD, InstallMethod.CUSTOM):
            assert adapters[method].calls == []

    def test_verified_after_install(self, tmp_path):
        marker = tmp_path / "Tool" / "tool.exe"
        custom = SpyAdapter(creates={"Tool": marker})
        report = ProvisionEngine(Detector(_probe()), _adapters(custom=custom)).run([_custom("Tool", marker)])

        outcome = report.outcome("Tool")
        assert outcome.state is ItemState.VERIFIED
        assert outcome.succeeded
        assert outcome.detection_method == METHOD_PATH
        assert outcome.warning is None

    def test_success_without_detection_is_verified_with_warning(self, tmp_path):
        report = ProvisionEngine(Detector(_probe()), _adapters()).run([_custom("Ghost", tmp_path / "ghost.exe")])

        outcome = report.outcome("Ghost")
        assert outcome.state is ItemState.VERIFIED
        assert outcome.succeeded
        assert "not detected" in outcome.warning

    def test_backend_failure(self, tmp_path):
        custom = SpyAdapter(succeed=False, exit_code=1)
        report = ProvisionEngine(Detector(_probe()), _adapters(custom=custom)).run([_custom("Bad", tmp_path / "bad")])

        outcome = report.outcome("Bad")
        assert outcome.state is ItemState.FAILED
        assert not outcome.succeeded
        assert "1" in outcome.error_detail
        assert report.failures == (outcome,)

    def test_partial_failure_continues(self, tmp_path):
        """Test one failing item does not stop the others."""

        class FailSecond(SpyAdapter):
            def install(self, descriptor):
                result = super().install(descriptor)
                if descriptor.name == "App2":
                    return AdapterResult(success=False, exit_code=1, error=BackendFailure(1))
                return result

        markers = {f"App{i}": tmp_path / f"app{i}.exe" for i in range(1, 5)}
        custom = FailSecond(creates=markers)
        descriptors = [_custom(name, path) for name, path in markers.items()]

        report = ProvisionEngine(Detector(_probe()), _adapters(custom=custom)).run(descriptors)

        assert custom.calls == ["App1", "App2", "App3", "App4"]
        assert report.total == 4
        assert report.succeeded == 3
        assert [o.name for o in report.failures] == ["App2"]
        assert not report.all_succeeded

    def test_timeout_fails_item_and_run_continues(self, tmp_path):
        class TimesOutFirst(SpyAdapter):
            def install(self, descriptor):
                result = super().install(descriptor)
                if descriptor.name == "Slow":
                    return AdapterResult(success=False, error=Timeout(1))
                return result

        later = tmp_path / "later.exe"
        custom = TimesOutFirst(creates={"Later": later})
        report = ProvisionEngine(Detector(_probe()), _adapters(custom=custom)).run(
            [_custom("Slow", tmp_path / "slow.exe"), _custom("Later", later)]
        )

        slow = report.outcome("Slow")
        assert slow.state is ItemState.FAILED
        assert "Timed out after 1s" in slow.error_detail
        assert custom.calls == ["Slow", "Later"]
        assert report.outcome("Later").state is ItemState.VERIFIED
        assert [o.name for o in report.failures] == ["Slow"]

    def test_order_preserved(self, tmp_path):
        names = ["Scoop", "Git", "Editor"]
        report = ProvisionEngine(Detector(_probe()), _adapters()).run(
            [_custom(n, tmp_path / n) for n in names]
        )
        assert [o.name for o in report.outcomes] == names

    def test_unexpected_error_becomes_failure(self, tmp_path):
        class Exploding(BackendAdapter):
            def install(self, descriptor):
                raise RuntimeError("kaboom")

        report = ProvisionEngine(Detector(_probe()), _adapters(custom=Exploding())).run(
            [_custom("Boom", tmp_path / "boom"), _custom("Next", tmp_path / "next")]
        )

        boom = report.outcome("Boom")
        assert boom.state is ItemState.FAILED
        assert "kaboom" in boom.error_detail
        assert report.outcome("Next").state is ItemState.FAILED
        assert report.total == 2

    def test_missing_adapter(self, tmp_path):
        descriptor = AppDescriptor(
            name="7-Zip",
            install_method=InstallMethod.WINGET,
            package_ref="7zip.7zip",
            detection_paths=(str(tmp_path / "7z.exe"),),
        )
        report = ProvisionEngine(Detector(_probe()), {}).run([descriptor])

        outcome = report.outcome("7-Zip")
        assert outcome.state is ItemState.FAILED
        assert "winget backend is not available" in outcome.error_detail

    def test_listing_forgotten_after_package_install(self, tmp_path):
        detector = MagicMock(spec=Detector)
        detector.detect.return_value = MagicMock(found=False)
        descriptor = AppDescriptor(name="Git", install_method=InstallMethod.SCOOP, package_ref="git")

        ProvisionEngine(detector, _adapters()).run([descriptor])

        detector.forget.assert_called_once_with("scoop")

    def test_state_callback_sequence(self, tmp_path):
        marker = tmp_path / "tool.exe"
        states = []
        engine = ProvisionEngine(
            Detector(_probe()),
            _adapters(custom=SpyAdapter(creates={"Tool": marker})),
            on_state=lambda name, state: states.append(state),
        )
        engine.run([_custom("Tool", marker)])

        assert states == [
            ItemState.PENDING,
            ItemState.DETECTING,
            ItemState.INSTALLING,
            ItemState.VERIFIED,
        ]
        assert states[-1].terminal


class TestDirectDownloadScenario:
    """Tests for the download backend wired through the engine."""

    def test_installer_creates_detected_path(self, tmp_path):
        install_dir = tmp_path / "apps" / "Tool"
        descriptor = AppDescriptor(
            name="Tool",
            install_method=InstallMethod.DOWNLOAD,
            download_url="http://x/installer.exe",
            installer_args="/S",
            detection_paths=(str(install_dir / "tool.exe"),),
        )

        def downloader(url, destination, timeout):
            destination.write_bytes(b"MZ")

        def fake_installer(command, **kwargs):
            install_dir.mkdir(parents=True)
            (install_dir / "tool.exe").write_text("", encoding="utf-8")
            return MagicMock(returncode=0, stdout="", stderr="")

        adapters = _adapters(download=DirectDownloadAdapter(tmp_path / "scratch", 300, downloader=downloader))
        with patch("workstation_setup.adapters.run_process", side_effect=fake_installer):
            report = ProvisionEngine(Detector(_probe()), adapters).run([descriptor])

        outcome = report.outcome("Tool")
        assert outcome.state is ItemState.VERIFIED
        assert outcome.detection_method == METHOD_PATH
        assert list((tmp_path / "scratch").iterdir()) == []

    def test_installer_exit_code_fails_item(self, tmp_path):
        descriptor = AppDescriptor(
            name="Tool",
            install_method=InstallMethod.DOWNLOAD,
            download_url="http://x/installer.exe",
            detection_paths=(str(tmp_path / "tool.exe"),),
        )
        adapters = _adapters(download=DirectDownloadAdapter(
            tmp_path / "scratch", 300, downloader=lambda url, dest, timeout: None,
        ))
        with patch(
            "workstation_setup.adapters.run_process",
            return_value=MagicMock(returncode=1, stdout="", stderr=""),
        ):
            report = ProvisionEngine(Detector(_probe()), adapters).run([descriptor])

        outcome = report.outcome("Tool")
        assert outcome.succeeded is False
        assert "1" in outcome.error_detail


class TestDryRun:
    """Tests for detection-only runs."""

    def test_dry_run_never_installs(self, tmp_path):
        present = tmp_path / "present.exe"
        present.write_text("", encoding="utf-8")
        adapters = _adapters()
        engine = ProvisionEngine(Detector(_probe()), adapters, dry_run=True)

        report = engine.run([_custom("Present", present), _custom("Missing", tmp_path / "missing.exe")])

        assert all(a.calls == [] for a in adapters.values())
        assert report.outcome("Present").state is ItemState.ALREADY_PRESENT
        assert report.outcome("Missing").state is ItemState.PLANNED
        assert report.failures == ()
        assert [o.name for o in report.planned] == ["Missing"]
        assert report.dry_run

    def test_dry_run_flag_without_planned_items(self, tmp_path):
        present = tmp_path / "present.exe"
        present.write_text("", encoding="utf-8")

        report = ProvisionEngine(Detector(_probe()), _adapters(), dry_run=True).run([_custom("Present", present)])

        assert report.planned == ()
        assert report.dry_run
        assert report.all_succeeded


class TestBuildEngine:
    """Tests for engine wiring from configuration."""

    def test_build_engine(self, tmp_path):
        config = Config(timeout_seconds=42, scratch_dir=str(tmp_path), extra_paths=("~/bin",))
        engine = build_engine(config, dry_run=True)

        assert engine.dry_run
        assert set(engine.adapters) == set(InstallMethod)
        assert engine.adapters[InstallMethod.CUSTOM].timeout == 42
        assert engine.adapters[InstallMethod.DOWNLOAD].scratch_dir == Path(tmp_path)
        assert engine.detector.probe.extra_paths == ("~/bin",)

    @pytest.mark.parametrize("dry_run", [False, True])
    def test_empty_catalog(self, dry_run):
        report = ProvisionEngine(Detector(_probe()), _adapters(), dry_run=dry_run).run([])
        assert report.total == 0
        assert report.all_succeeded
