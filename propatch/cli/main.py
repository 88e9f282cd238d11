"""propatch CLI - inspect patch state from the command line.

This module provides the main CLI entrypoint for propatch, allowing users to
import modules that define patches, optionally enable them, and dump the
resulting state as YAML.
"""

import argparse
import importlib
import logging
import sys
from typing import Any, List, Optional

from propatch.core.config import get_config_value, load_config
from propatch.core.descriptors import read_descriptor
from propatch.core.errors import PatchError, PropertyNotFoundError
from propatch.core.registry import default_registry
from propatch.core.report import DEFAULT_WIDTH, describe_record, describe_registry, dump_report

logger = logging.getLogger(__name__)


def resolve_owner(path: str) -> Any:
    """Resolve ``package.module:Attr.sub`` (or just ``package.module``) to an object.

    Raises:
        ValueError: If the module or attribute path cannot be resolved
    """
    module_name, _, attr_path = path.partition(":")
    try:
        obj = importlib.import_module(module_name)
    except ImportError as exc:
        raise ValueError(f"Cannot import module {module_name!r}: {exc}") from exc

    for part in filter(None, attr_path.split(".")):
        try:
            obj = getattr(obj, part)
        except AttributeError as exc:
            raise ValueError(f"{path!r} has no attribute {part!r}") from exc
    return obj


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint for propatch."""
    parser = argparse.ArgumentParser(
        prog="propatch",
        description="propatch - reversible property patches",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Report every patch created while importing a module
  propatch report --import myproject.extensions

  # Enable them first, and only show patches for one owner
  propatch report --import myproject.extensions --owner builtins --enable

  # Show the live descriptors of some keys
  propatch describe collections:OrderedDict move_to_end __repr__

  # Fail when a key is missing
  propatch describe builtins len clamp --require

Note:
  Modules listed under {"cli": {"imports": [...]}} in propatch.json are
  imported by `report` when no --import is given.
"""
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Report command
    report_parser = subparsers.add_parser(
        "report",
        help="Dump registered patches as YAML"
    )
    report_parser.add_argument(
        "--import",
        dest="imports",
        action="append",
        default=None,
        metavar="MODULE",
        help="Module to import before reporting (repeatable)"
    )
    report_parser.add_argument(
        "--owner",
        action="append",
        default=None,
        metavar="MODULE:ATTR",
        help="Only report patches for this owner (repeatable)"
    )
    report_parser.add_argument(
        "--enable",
        action="store_true",
        help="Apply the reported patches before dumping"
    )
    report_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    # Describe command
    describe_parser = subparsers.add_parser(
        "describe",
        help="Show live descriptor records for keys on an owner"
    )
    describe_parser.add_argument(
        "owner",
        help="Owner as MODULE or MODULE:ATTR"
    )
    describe_parser.add_argument(
        "keys",
        nargs="+",
        help="Property keys to read"
    )
    describe_parser.add_argument(
        "--require",
        action="store_true",
        help="Exit with status 1 if any key is missing"
    )
    describe_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args(argv)
    config = load_config()

    # Setup logging
    if getattr(args, "verbose", False):
        level = logging.INFO
    else:
        level = str(get_config_value(["logging", "level"], "WARNING", config)).upper()
        if not isinstance(logging.getLevelName(level), int):
            print(f"Error: unknown logging level {level!r}, using WARNING", file=sys.stderr)
            level = logging.WARNING
    logging.basicConfig(level=level, format='%(levelname)s: %(message)s')

    # Handle commands
    if args.command == "report":
        return cmd_report(args, config)
    elif args.command == "describe":
        return cmd_describe(args, config)
    else:
        parser.print_help()
        return 1


def cmd_report(args, config) -> int:
    """Import patch-defining modules and dump the registry."""
    imports = args.imports or get_config_value(["cli", "imports"], [], config)
    if isinstance(imports, str):
        imports = [name for name in imports.split(",") if name]
    width = int(get_config_value(["report", "width"], DEFAULT_WIDTH, config))

    try:
        for module_name in imports:
            logger.info(f"Importing {module_name}")
            importlib.import_module(module_name)
        owners = [resolve_owner(path) for path in args.owner] if args.owner else None
    except (ImportError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        if args.enable:
            default_registry.enable_all(owners)
    except PatchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    dump_report(describe_registry(default_registry, owners), sys.stdout, width=width)
    return 0


def cmd_describe(args, config) -> int:
    """Print the live descriptor record of each requested key."""
    width = int(get_config_value(["report", "width"], DEFAULT_WIDTH, config))

    try:
        owner = resolve_owner(args.owner)
        records = [read_descriptor(owner, key) for key in args.keys]
        if args.require:
            for record in records:
                if not record.existed:
                    raise PropertyNotFoundError(owner, record.key)
    except (ValueError, PatchError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    dump_report([describe_record(record) for record in records], sys.stdout, width=width)
    return 0


if __name__ == "__main__":
    sys.exit(main())
