"""CLI commands for ticket-relations.

This module provides command-line utilities for:
- Validating configuration
- Dumping configuration (with secrets redacted)
- Showing deprecated environment variables
- Serving the HTTP API
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Sequence

from ticket_relations.config.env_aliases import _DEPRECATED_ALIASES
from ticket_relations.config.load import load_settings
from ticket_relations.config.redact import redact_settings_dict
from ticket_relations.config.validate import ConfigValidationError


def cmd_validate_config(args: argparse.Namespace) -> int:
    """Validate configuration and exit with appropriate code.

    Exit codes:
        0: Configuration is valid
        1: Configuration is invalid
    """
    try:
        settings = load_settings(config_path=args.config)
    except ConfigValidationError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    print("✓ Configuration is valid")
    print(f"  - Storage backend: {settings.storage.backend}")
    print(f"  - Lock backend: {settings.locks.backend}")
    print(f"  - Max conflict retries: {settings.relations.max_conflict_retries}")
    print(f"  - Metrics enabled: {settings.observability.metrics_enabled}")
    return 0


def cmd_dump_config(args: argparse.Namespace) -> int:
    """Dump current configuration as JSON (with secrets redacted)."""
    try:
        settings = load_settings(config_path=args.config)
    except ConfigValidationError as e:
        print(f"✗ Failed to load configuration: {e}", file=sys.stderr)
        return 1
    redacted = redact_settings_dict(settings.model_dump(mode="json"))
    print(json.dumps(redacted, indent=2, default=str))
    return 0


def cmd_show_deprecated(args: argparse.Namespace) -> int:
    """Show deprecated environment variables that are in use."""
    found = []
    for old_name, new_name in _DEPRECATED_ALIASES.items():
        if old_name in os.environ:
            found.append((old_name, new_name, os.environ.get(new_name) is None))

    if not found:
        print("No deprecated environment variables in use.")
        return 0

    print("Deprecated environment variables detected:")
    print()
    for old_name, new_name, needs_migration in found:
        status = "NEEDS MIGRATION" if needs_migration else "has canonical override"
        print(f"  {old_name} → {new_name} ({status})")

    print()
    print("These variables will be removed in a future version.")
    print("Please migrate to the canonical names.")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API with uvicorn."""
    from ticket_relations.runtime import serve

    try:
        settings = load_settings(config_path=args.config)
    except ConfigValidationError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    return serve(settings)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ticket-relations",
        description="Help-desk ticket relationship, split and merge service",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML config file (default: CONFIG_PATH or config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    validate_parser = subparsers.add_parser(
        "validate-config",
        help="Validate configuration and exit",
    )
    validate_parser.set_defaults(func=cmd_validate_config)

    dump_parser = subparsers.add_parser(
        "dump-config",
        help="Dump configuration as JSON (secrets redacted)",
    )
    dump_parser.set_defaults(func=cmd_dump_config)

    deprecated_parser = subparsers.add_parser(
        "show-deprecated",
        help="Show deprecated environment variables in use",
    )
    deprecated_parser.set_defaults(func=cmd_show_deprecated)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.set_defaults(func=cmd_serve)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
