#!/usr/bin/env python3
"""
Query-based Stack Exporter — Entry Point.

Exports the part of a stack selected by a query, together with everything
that part depends on, so the export directory can be imported on its own.

The export pipeline (managed by QueryExporter) performs 8 steps:
  1. Parse and validate the query
  2. Export general modules (stack, locales, environments)
  3. Export the queried modules
  4. Export content types referenced by the exported ones
  5. Export global fields, extensions, marketplace apps, taxonomies, personalize
  6. Export entries of every exported content type
  7. Export the assets referenced by those entries, in batches
  8. Write _query-meta.json

Usage:
    python run.py -k <stack key> --management-token <token> --query '{"modules": {...}}'
    python run.py -a prod --query ./query.json       # token (and key) from alias
    python run.py ... --skip-references              # no referenced content types
    python run.py ... --skip-dependencies            # no global fields/extensions/taxonomies
    python run.py ... --config ./export-config.json  # external JSON config
    python run.py --version                          # Show version
"""

import argparse
import logging
import sys
from pathlib import Path

from core import ExportConfig, QueryExportError, QueryExporter, load_export_config, resolve_alias

# Read version from the repo-root VERSION file (e.g., "0.1.0").
VERSION_FILE = Path(__file__).resolve().parent / "VERSION"
VERSION = VERSION_FILE.read_text().strip() if VERSION_FILE.exists() else "unknown"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Query-based stack exporter - export a queried subset of a stack with its dependencies"
    )
    parser.add_argument("--stack-api-key", "-k", help="Stack API key")
    parser.add_argument("--management-token", help="Management token")
    parser.add_argument("--alias", "-a", help="Management token alias (MANAGEMENT_TOKEN_<ALIAS>)")
    parser.add_argument("--query", "-q", help="Query as JSON text or path to a .json file")
    parser.add_argument("--data-dir", "-d", help="Export directory")
    parser.add_argument("--branch", help="Branch to export")
    parser.add_argument("--skip-references", action="store_true", help="Do not export referenced content types")
    parser.add_argument("--skip-dependencies", action="store_true", help="Do not export dependent modules")
    parser.add_argument("--secured-assets", action="store_true", help="Stack uses secured assets")
    parser.add_argument("--backend", choices=["api", "command"], help="Export through the API or an external command")
    parser.add_argument("--config", "-c", help="Path to an external JSON config file")
    parser.add_argument("--env", "-e", default="./.env", help="Path to .env file")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument("--version", "-v", action="store_true", help="Show version and exit")
    return parser


def config_from_args(args) -> ExportConfig:
    """Resolve the run configuration from CLI arguments, .env and the external config."""
    overrides = {
        "stack_api_key": args.stack_api_key,
        "management_token": args.management_token,
        "query_input": args.query,
        "export_dir": args.data_dir,
        "branch_name": args.branch,
        "export_backend": args.backend,
        # Flags only override when set on the command line
        "skip_references": True if args.skip_references else None,
        "skip_dependencies": True if args.skip_dependencies else None,
        "secured_assets": True if args.secured_assets else None,
        "debug": True if args.debug else None,
    }

    config = load_export_config(env_file=args.env, overrides=overrides, config_path=args.config)

    if args.alias:
        resolved = resolve_alias(args.alias)
        if not resolved:
            logging.getLogger(__name__).warning(f"No management token found for alias: {args.alias}")
        changes = {"management_token_alias": args.alias}
        if not args.management_token and resolved.get("management_token"):
            changes["management_token"] = resolved["management_token"]
        if not args.stack_api_key and resolved.get("stack_api_key"):
            changes["stack_api_key"] = resolved["stack_api_key"]
        config = config.with_overrides(**changes)

    return config


def main():
    """Parse CLI arguments and run the export pipeline."""
    args = build_parser().parse_args()

    if args.version:
        print(f"stack-export-query {VERSION}")
        sys.exit(0)

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO, format=LOG_FORMAT)

    try:
        config = config_from_args(args)
    except QueryExportError as e:
        print(f"\nConfiguration Error: {e}")
        sys.exit(1)

    # Print header
    print(f"\n{'='*60}")
    print(f"QUERY-BASED STACK EXPORTER v{VERSION}")
    print("="*60)
    print(f"Stack: {config.stack_api_key or 'N/A'}")
    print(f"Branch: {config.branch_name or 'default'}")
    print(f"Export directory: {config.export_dir}")
    print(f"Backend: {config.export_backend}")

    # Validate required configuration before proceeding
    errors = config.validate()
    if errors:
        print("\nConfiguration Errors:")
        for err in errors:
            print(f"  - {err}")
        sys.exit(1)

    exporter = QueryExporter(config)
    results = exporter.run()

    # Print final summary
    exporter.print_summary(results)

    # Exit with error code if the export failed
    if not results.get("success"):
        sys.exit(1)


if __name__ == "__main__":
    main()
