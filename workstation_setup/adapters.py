"""
Backend adapters: one per installation method.

Adapters run synchronously, bounded by a timeout, and never raise for
expected failures. They return an AdapterResult whose ``error`` carries an
InstallError describing what went wrong.
"""

from __future__ import annotations

import http.client
import logging
import os
import shlex
import shutil
import signal
import subprocess
import tempfile
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence
from urllib.parse import unquote, urlparse

from .common import is_windows, slugify, truncate
from .descriptors import AppDescriptor, InstallMethod
from .package_managers import PackageManager
from .probe import CommandProbe

logger = logging.getLogger(__name__)

USER_AGENT = "workstation-setup/1.0"

# Wait for a killed process tree to release its output pipes
KILL_GRACE_SECONDS = 5


class InstallError(Exception):
    """
    Base exception for installation errors.

    Attributes:
        message: Human-readable error message
        remediation: Suggested fix for the error
    """
    def __init__(self, message: str, remediation: str | None = None):
        self.message = message
        self.remediation = remediation
        super().__init__(message)


class BackendFailure(InstallError):
    """The installer or package manager exited with a non-zero code."""

    def __init__(self, exit_code: int, output: str = ""):
        self.exit_code = exit_code
        message = f"Installer exited with code {exit_code}"
        if output:
            message += f": {truncate(output)}"
        super().__init__(message)


class DownloadFailure(InstallError):
    """The installer could not be downloaded."""

    def __init__(self, url: str, cause: object):
        self.url = url
        self.cause = cause
        super().__init__(
            f"Download of {url} failed: {cause}",
            remediation="Check network connectivity and the download URL",
        )


class Timeout(InstallError):
    """The installer did not finish within the configured bound."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        super().__init__(
            f"Timed out after {seconds:g}s",
            remediation="The installer may be waiting for input; run it manually",
        )


class Unavailable(InstallError):
    """The tool required by the selected backend is not present."""

    def __init__(self, tool: str, remediation: str | None = None):
        self.tool = tool
        super().__init__(f"{tool} is not available on this system", remediation=remediation)


@dataclass(frozen=True)
class AdapterResult:
    """
    Result of one adapter invocation.

    Attributes:
        success: Whether the backend reported success
        exit_code: Subprocess exit code (-1 when no process finished)
        stdout: Standard output from the subprocess
        stderr: Standard error from the subprocess
        duration_seconds: Time taken
        error: Failure description (None on success)
    """
    success: bool
    exit_code: int = -1
    stdout: str = ""
    stderr: str = ""
    duration_seconds: float = 0.0
    error: InstallError | None = None

    @property
    def error_message(self) -> str | None:
        return self.error.message if self.error else None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration_seconds": self.duration_seconds,
            "error": self.error_message,
        }


def _decode(data: str | bytes | None) -> str:
    if not data:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data


def kill_tree(process: subprocess.Popen) -> None:
    """Kill a process together with every child it started."""
    try:
        if is_windows():
            subprocess.run(
                ["taskkill", "/T", "/F", "/PID", str(process.pid)],
                capture_output=True,
                timeout=KILL_GRACE_SECONDS,
                check=False,
            )
        else:
            os.killpg(process.pid, signal.SIGKILL)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"Could not kill process tree {process.pid}: {e}")
    try:
        process.kill()
    except OSError as e:
        logger.debug(f"Could not kill process {process.pid}: {e}")


def run_process(
    command: Sequence[str] | str,
    timeout: float,
    shell: bool = False,
) -> subprocess.CompletedProcess:
    """
    Run a process in its own group with captured text output.

    When ``timeout`` elapses the whole process tree is killed, so helpers
    spawned by an installer cannot finish the job after the fact.

    Raises:
        subprocess.TimeoutExpired: After the tree was killed
        OSError: If the process cannot be started
    """
    if is_windows():
        group = {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    else:
        group = {"start_new_session": True}

    with subprocess.Popen(
        command,
        shell=shell,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        **group,
    ) as process:
        try:
            stdout, stderr = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            kill_tree(process)
            try:
                stdout, stderr = process.communicate(timeout=KILL_GRACE_SECONDS)
            except subprocess.TimeoutExpired:
                # A detached grandchild still holds the pipes
                stdout, stderr = None, None
            raise subprocess.TimeoutExpired(command, timeout, output=stdout, stderr=stderr)

    return subprocess.CompletedProcess(command, process.returncode, stdout, stderr)


def run_command(
    command: Sequence[str] | str,
    timeout: float,
    shell: bool = False,
) -> AdapterResult:
    """
    Run an installer subprocess and map its outcome.

    Args:
        command: Argument list, or a command string when ``shell`` is True
        timeout: Seconds before the process is killed
        shell: Run through the system shell

    Returns:
        AdapterResult; exit code 0 is the only success
    """
    start_time = time.time()
    display = command if isinstance(command, str) else " ".join(command)
    logger.debug(f"Executing: {display}")

    try:
        result = run_process(
            command if shell else list(command),
            timeout=timeout,
            shell=shell,
        )
    except subprocess.TimeoutExpired as e:
        return AdapterResult(
            success=False,
            stdout=_decode(e.stdout),
            stderr=_decode(e.stderr),
            duration_seconds=time.time() - start_time,
            error=Timeout(timeout),
        )
    except FileNotFoundError:
        name = display if shell else (list(command) or ["<empty>"])[0]
        return AdapterResult(
            success=False,
            duration_seconds=time.time() - start_time,
            error=Unavailable(name),
        )
    except OSError as e:
        return AdapterResult(
            success=False,
            duration_seconds=time.time() - start_time,
            error=InstallError(f"Cannot start installer: {e}"),
        )

    duration = time.time() - start_time
    if result.returncode == 0:
        return AdapterResult(
            success=True,
            exit_code=0,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
            duration_seconds=duration,
        )

    return AdapterResult(
        success=False,
        exit_code=result.returncode,
        stdout=result.stdout or "",
        stderr=result.stderr or "",
        duration_seconds=duration,
        error=BackendFailure(result.returncode, result.stderr or result.stdout or ""),
    )


class BackendAdapter:
    """Base class for installation backends."""

    name = "backend"

    def install(self, descriptor: AppDescriptor) -> AdapterResult:
        raise NotImplementedError


class PackageManagerAdapter(BackendAdapter):
    """
    Installs packages through a package manager such as scoop or winget.

    Only the exit code is interpreted; verification is left to detection.
    """

    def __init__(self, manager: PackageManager, probe: CommandProbe, timeout: float):
        self.manager = manager
        self.probe = probe
        self.timeout = timeout
        self.name = manager.name

    def install(self, descriptor: AppDescriptor) -> AdapterResult:
        executable = self.probe.resolve(self.manager.executable)
        if not executable:
            return AdapterResult(
                success=False,
                error=Unavailable(
                    self.manager.display_name,
                    remediation=f"Install {self.manager.display_name} before entries that use it",
                ),
            )

        command = self.manager.get_install_command(descriptor.package_ref or "", executable)
        logger.info(f"Installing {descriptor.name} via {self.manager.display_name} ({descriptor.package_ref})")
        return run_command(command, timeout=self.timeout)


def download_file(url: str, destination: Path, timeout: float) -> None:
    """
    Download a URL to a file.

    Raises:
        urllib.error.URLError: On HTTP or connection errors
        http.client.HTTPException: On truncated or malformed responses
        OSError: On socket timeouts or write errors
        ValueError: On malformed URLs
    """
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    with urllib.request.urlopen(req, timeout=timeout) as response, open(destination, "wb") as f:
        shutil.copyfileobj(response, f)


def artifact_suffix(url: str) -> str:
    """File extension of the installer named by a URL (".exe" if none)."""
    name = unquote(urlparse(url).path.rsplit("/", 1)[-1])
    suffix = Path(name).suffix.lower()
    return suffix if suffix else ".exe"


class DirectDownloadAdapter(BackendAdapter):
    """
    Downloads an installer, runs it unattended and deletes it.

    Each invocation uses a uniquely named file in the scratch directory. The
    file is removed on every exit path.
    """

    name = "download"

    def __init__(
        self,
        scratch_dir: str | Path,
        timeout: float,
        download_timeout: float = 60,
        downloader: Callable[[str, Path, float], None] = download_file,
    ):
        self.scratch_dir = Path(scratch_dir)
        self.timeout = timeout
        self.download_timeout = download_timeout
        self.downloader = downloader

    def installer_command(self, artifact: Path, installer_args: str) -> list[str]:
        """Command line running a downloaded installer."""
        args = shlex.split(installer_args, posix=not is_windows()) if installer_args else []
        if artifact.suffix.lower() == ".msi":
            return ["msiexec", "/i", str(artifact), *args]
        return [str(artifact), *args]

    def install(self, descriptor: AppDescriptor) -> AdapterResult:
        url = descriptor.download_url or ""
        start_time = time.time()

        try:
            self.scratch_dir.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(
                prefix=f"{slugify(descriptor.name)}-",
                suffix=artifact_suffix(url),
                dir=self.scratch_dir,
            )
            os.close(fd)
        except OSError as e:
            return AdapterResult(
                success=False,
                duration_seconds=time.time() - start_time,
                error=InstallError(f"Cannot create scratch file in {self.scratch_dir}: {e}"),
            )

        artifact = Path(name)
        try:
            logger.info(f"Downloading {descriptor.name} from {url}")
            try:
                self.downloader(url, artifact, self.download_timeout)
            except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as e:
                return AdapterResult(
                    success=False,
                    duration_seconds=time.time() - start_time,
                    error=DownloadFailure(url, getattr(e, "reason", e)),
                )

            if not is_windows():
                try:
                    artifact.chmod(0o755)
                except OSError as e:
                    return AdapterResult(
                        success=False,
                        duration_seconds=time.time() - start_time,
                        error=InstallError(f"Cannot make installer {artifact} executable: {e}"),
                    )

            logger.info(f"Running installer for {descriptor.name}")
            result = run_command(
                self.installer_command(artifact, descriptor.installer_args),
                timeout=self.timeout,
            )
            return AdapterResult(
                success=result.success,
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
                duration_seconds=time.time() - start_time,
                error=result.error,
            )
        finally:
            try:
                artifact.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not remove installer {artifact}: {e}")


class CustomCommandAdapter(BackendAdapter):
    """Runs a descriptor-supplied shell command, e.g. a bootstrap one-liner."""

    name = "custom"

    def __init__(self, timeout: float, powershell: str | None = None):
        self.timeout = timeout
        self.powershell = powershell

    def _powershell(self) -> str:
        if self.powershell:
            return self.powershell
        return shutil.which("pwsh") or shutil.which("powershell") or "powershell"

    def install(self, descriptor: AppDescriptor) -> AdapterResult:
        command = descriptor.command or ""
        logger.info(f"Running custom command for {descriptor.name}")
        if descriptor.shell == "powershell":
            return run_command(
                [
                    self._powershell(),
                    "-NoProfile",
                    "-NonInteractive",
                    "-ExecutionPolicy", "Bypass",
                    "-Command", command,
                ],
                timeout=self.timeout,
            )
        return run_command(command, timeout=self.timeout, shell=True)


def default_adapters(
    probe: CommandProbe,
    package_managers: dict[str, PackageManager],
    scratch_dir: str | Path,
    timeout: float,
    download_timeout: float = 60,
) -> dict[InstallMethod, BackendAdapter]:
    """
    Build one adapter per install method.

    Args:
        probe: Executable lookup for package managers
        package_managers: Registry keyed by install method value
        scratch_dir: Directory for downloaded installers
        timeout: Per-call subprocess timeout in seconds
        download_timeout: Socket timeout for downloads

    Returns:
        Mapping of install method to adapter
    """
    adapters: dict[InstallMethod, BackendAdapter] = {
        InstallMethod.DOWNLOAD: DirectDownloadAdapter(scratch_dir, timeout, download_timeout),
        InstallMethod.CUSTOM: CustomCommandAdapter(timeout),
    }
    for method in (InstallMethod.SCOOP, InstallMethod.WINGET):
        manager = package_managers.get(method.value)
        if manager is not None:
            adapters[method] = PackageManagerAdapter(manager, probe, timeout)
    return adapters
