"""
Command-line entry point.

Exit code 0 when the run completes, even with per-item failures.
Exit code 1 when the run cannot start or aborts outside the per-item loop.
"""

import argparse
import json
import logging
import sys

from .catalog import CatalogError, default_catalog, load_catalog
from .config import Config, load_config, validate_config
from .engine import build_engine
from .logging_config import LEVELS, setup_logging
from .maintenance import render_maintenance, run_maintenance
from .probe import CommandProbe
from .report import ItemState, ProvisionReport, render

logger = logging.getLogger("workstation_setup.cli")

# Descriptor whose success enables the SSH follow-up
VERSION_CONTROL_ITEM = "Git"


def _log_level(value: str) -> str:
    normalized = value.strip().capitalize()
    if normalized.upper() not in LEVELS:
        raise argparse.ArgumentTypeError(
            f"invalid level '{value}' (choose from Debug, Info, Warning, Error)"
        )
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workstation-setup",
        description="Provision a workstation from a declarative application catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        type=_log_level,
        default=None,
        metavar="{Debug,Info,Warning,Error}",
        help="Console log threshold (default: Info)",
    )
    parser.add_argument(
        "--email",
        help="E-mail address for the SSH key follow-up step",
    )
    parser.add_argument(
        "--config",
        help="Configuration file (YAML or JSON)",
    )
    parser.add_argument(
        "--catalog",
        help="Catalog file with the applications to provision (default: built-in catalog)",
    )
    parser.add_argument(
        "--log-file",
        help="Also write a DEBUG log to this file",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only detect; report what would be installed",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )
    parser.add_argument(
        "--cleanup",
        action="store_true",
        help="Clean package manager caches and stale downloads after provisioning",
    )
    return parser


def follow_up_steps(config: Config, report: ProvisionReport, email: str | None) -> list[str]:
    """Next steps for a successful run, including the SSH key hint."""
    steps = list(config.next_steps)
    git = report.outcome(VERSION_CONTROL_ITEM)
    if email and git is not None and git.succeeded and git.state is not ItemState.PLANNED:
        steps.append(
            f'Create an SSH key for {email}: ssh-keygen -t ed25519 -C "{email}" '
            "and add the public key to your Git host."
        )
    return steps


def run(args: argparse.Namespace) -> int:
    """Load configuration and catalog, provision, and print the report."""
    config = load_config(args.config)
    setup_logging(
        level=args.log_level or config.log_level,
        log_file=args.log_file or config.log_file,
        quiet=args.json,
    )

    for warning in validate_config(config):
        logger.warning(warning)

    catalog_path = args.catalog or config.catalog
    descriptors = load_catalog(catalog_path) if catalog_path else default_catalog()
    logger.info(f"Provisioning {len(descriptors)} item(s){' (dry run)' if args.dry_run else ''}")

    engine = build_engine(config, dry_run=args.dry_run)
    report = engine.run(descriptors)

    maintenance = []
    if args.cleanup and not args.dry_run:
        maintenance = run_maintenance(config, CommandProbe(config.extra_paths))

    if args.json:
        data = report.to_dict()
        if maintenance:
            data["maintenance"] = [r.to_dict() for r in maintenance]
        print(json.dumps(data, indent=2))
    else:
        print(render(report, follow_up_steps(config, report, args.email)))
        if maintenance:
            print()
            print(render_maintenance(maintenance))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level or "Info", log_file=args.log_file)

    try:
        return run(args)
    except CatalogError as e:
        logger.error(str(e))
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.error(f"Provisioning aborted: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)
