"""
Workstation Setup - declarative workstation provisioning.

Core Modules:
- Descriptors and Catalog: what to install and how to recognize it
- Detection: filesystem, command and package-listing checks
- Backend Adapters: scoop/winget, direct download, custom commands
- Engine and Report: sequential, fail-soft provisioning with a summary
- Maintenance: cache and scratch-file cleanup
"""

__version__ = "1.0.0"
__author__ = "Workstation Setup Contributors"

VERSION = __version__

# Data model
from .descriptors import AppDescriptor, InstallMethod
from .catalog import CatalogError, DEFAULT_CATALOG, default_catalog, load_catalog

# Foundation
from .config import Config, load_config, load_config_file, validate_config
from .probe import CommandProbe
from .package_managers import PackageManager, PACKAGE_MANAGERS, get_package_manager

# Detection
from .detection import DetectionResult, Detector

# Installation
from .adapters import (
    AdapterResult,
    BackendAdapter,
    BackendFailure,
    CustomCommandAdapter,
    DirectDownloadAdapter,
    DownloadFailure,
    InstallError,
    PackageManagerAdapter,
    Timeout,
    Unavailable,
    default_adapters,
)

# Engine and reporting
from .report import InstallOutcome, ItemState, ProvisionReport, render, summarize
from .engine import ProvisionEngine, build_engine

# Maintenance
from .maintenance import MaintenanceResult, run_maintenance

# Logging configuration
from .logging_config import setup_logging, get_logger, log

__all__ = [
    # Version
    "__version__",
    "VERSION",
    # Data model
    "AppDescriptor",
    "InstallMethod",
    "CatalogError",
    "DEFAULT_CATALOG",
    "default_catalog",
    "load_catalog",
    # Foundation
    "Config",
    "load_config",
    "load_config_file",
    "validate_config",
    "CommandProbe",
    "PackageManager",
    "PACKAGE_MANAGERS",
    "get_package_manager",
    # Detection
    "DetectionResult",
    "Detector",
    # Installation
    "AdapterResult",
    "BackendAdapter",
    "BackendFailure",
    "CustomCommandAdapter",
    "DirectDownloadAdapter",
    "DownloadFailure",
    "InstallError",
    "PackageManagerAdapter",
    "Timeout",
    "Unavailable",
    "default_adapters",
    # Engine and reporting
    "InstallOutcome",
    "ItemState",
    "ProvisionReport",
    "render",
    "summarize",
    "ProvisionEngine",
    "build_engine",
    # Maintenance
    "MaintenanceResult",
    "run_maintenance",
    # Logging
    "setup_logging",
    "get_logger",
    "log",
]
