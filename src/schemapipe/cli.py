"""Command line interface for schemapipe.

    schemapipe validate SCHEMA DATA [--ref URI=PATH ...]
    schemapipe check SCHEMA
    schemapipe config init|show
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import yaml

from schemapipe.config.logging_utils import configure_split_stream_logging
from schemapipe.config.project import ProjectConfig
from schemapipe.core.errors import SchemaPipeError
from schemapipe.core.handlers import get_handler
from schemapipe.core.registry import SchemaRegistry

logger = logging.getLogger(__name__)

EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_ERROR = 2


def parse_refs(values: list[str] | None) -> dict[str, str]:
    """Parse repeated URI=PATH options"""
    refs = {}
    for value in values or []:
        uri, sep, path = value.rpartition("=")
        if not sep or not uri or not path:
            raise argparse.ArgumentTypeError(f"Expected URI=PATH, got '{value}'")
        refs[uri] = path
    return refs


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schemapipe",
        description="Validate and transform JSON/YAML documents against JSON Schema",
    )
    parser.add_argument('--config-dir', default='.', help='Directory holding .schemapipe/config.json')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Log more (-v info, -vv debug)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    validate = subparsers.add_parser('validate', help='Validate a data document')
    validate.add_argument('schema', help='Path to schema file (.json, .yaml)')
    validate.add_argument('data', help='Path to data file (.json, .yaml)')
    validate.add_argument('--ref', action='append', metavar='URI=PATH',
                          help='Serve the document at PATH for references to URI')
    validate.add_argument('--no-defaults', action='store_true',
                          help='Do not fill in schema default values')

    check = subparsers.add_parser('check', help='Check that a schema compiles')
    check.add_argument('schema', help='Path to schema file (.json, .yaml)')
    check.add_argument('--ref', action='append', metavar='URI=PATH',
                       help='Serve the document at PATH for references to URI')

    config = subparsers.add_parser('config', help='Manage project configuration')
    config.add_argument('action', choices=['init', 'show'])
    config.add_argument('--draft', default='2020-12', help='Default JSON Schema draft')

    return parser


def _log_level(verbose: int, configured: str) -> "int | str":
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return configured


def _print(payload: dict) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    project = ProjectConfig(Path(args.config_dir))
    settings = project.load()
    configure_split_stream_logging(
        level=_log_level(args.verbose, settings["log_level"]),
        stderr_level=logging.DEBUG,
    )

    if args.command == 'config':
        handler = get_handler('init_project' if args.action == 'init' else 'get_project_config')
        handler_args = {"output_dir": args.config_dir}
        if args.action == 'init':
            handler_args["default_draft"] = args.draft
        result = asyncio.run(handler(None, handler_args))
        _print(result)
        return EXIT_VALID if result.get("success", True) else EXIT_ERROR

    try:
        refs = parse_refs(args.ref)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    registry_config = project.registry_config()
    if getattr(args, 'no_defaults', False):
        registry_config.use_defaults = False
    registry = SchemaRegistry(config=registry_config)

    if args.command == 'check':
        result = asyncio.run(get_handler('check_schema')(
            registry, {"schema_path": args.schema, "refs": refs},
        ))
        _print(result)
        return EXIT_VALID if result["valid"] else EXIT_ERROR

    try:
        result = asyncio.run(get_handler('validate_data')(
            registry, {"schema_path": args.schema, "data_path": args.data, "refs": refs},
        ))
    except (SchemaPipeError, ValueError, yaml.YAMLError, OSError) as e:
        # ValueError covers malformed JSON and undecodable text
        logger.error("%s", e)
        _print({"success": False, "error": str(e)})
        return EXIT_ERROR

    _print(result)
    return EXIT_VALID if result["success"] else EXIT_INVALID


if __name__ == '__main__':
    sys.exit(main())
