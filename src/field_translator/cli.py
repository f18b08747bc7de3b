"""
Command-line interface for the field translator.

Provides operational commands for checking metadata and the backend
without starting a host application:
- scan: Show which entities and fields would be translated
- translate: Translate one string through the configured backend
- read: Run a batch of records through the full startup + read pipeline
- config: Print the effective configuration

Usage:
    field-translator scan METADATA
    field-translator translate TEXT [--target LANG] [--source LANG]
    field-translator read METADATA ENTITY RECORDS [--target LANG]
    field-translator config

Common options (before the command):
    --config PATH       INI file to load instead of config/translator.ini
    --log-level LEVEL   Override the configured log level

Environment Variables:
    TRANSLATOR_TARGET_LANGUAGE, TRANSLATOR_BACKEND_ENDPOINT, ... (see
    field_translator.config for the full list)
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from field_translator.config import (
    Settings,
    configure_logging,
    get_config_summary,
    load_config,
)
from field_translator.core.hooks import ServingHooks
from field_translator.core.metadata import load_services
from field_translator.errors import TranslatorError
from field_translator.translation.client import TranslationClient
from field_translator.translation.plugin import TranslationPlugin
from field_translator.translation.registry import build_registry


def _settings_from_args(args: argparse.Namespace) -> Settings:
    """Load settings, letting CLI flags win over every other source."""
    overrides: dict[str, Any] = {
        "target_language": getattr(args, "target", None),
        "source_language": getattr(args, "source", None),
    }
    settings = load_config(getattr(args, "config", None), overrides=overrides)
    if getattr(args, "log_level", None):
        settings.logging.level = args.log_level.upper()
    configure_logging(settings.logging)
    return settings


def cmd_scan(args: argparse.Namespace) -> int:
    """
    Print the translation registry for a metadata file.

    Needs no configuration and makes no network call.

    Returns:
        0 on success, 1 when the metadata cannot be loaded.
    """
    try:
        registry = build_registry(load_services(args.metadata))
    except (OSError, ValueError, TranslatorError) as e:
        print(f"Error reading metadata: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(registry.as_dict(), indent=2))
        return 0

    if not registry:
        print("No translatable fields found.")
        return 0
    for entity, field_names in registry.items():
        print(f"{entity}: {', '.join(field_names)}")
    return 0


async def _translate_text(settings: Settings, text: str) -> str:
    client = TranslationClient(settings.translation)
    try:
        return await client.get_translation(text)
    finally:
        await client.aclose()


def cmd_translate(args: argparse.Namespace) -> int:
    """
    Translate a single string with the configured backend.

    Returns:
        0 on success, 1 on configuration or backend failure.
    """
    try:
        settings = _settings_from_args(args)
        print(asyncio.run(_translate_text(settings, args.text)))
    except TranslatorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


async def _read_batch(
    settings: Settings, metadata: Path, entity: str, records: Any
) -> tuple[Any, dict[str, Any]]:
    hooks = ServingHooks()
    plugin = TranslationPlugin(hooks, settings.translation).install()
    try:
        await hooks.emit_served(load_services(metadata))
        result = await hooks.emit_after_read(entity, records)
        return result, plugin.client.stats()
    finally:
        await plugin.aclose()


def cmd_read(args: argparse.Namespace) -> int:
    """
    Run a JSON batch of records through the full pipeline.

    The records file holds a JSON list of objects (or one object).  The
    translated batch is printed as JSON; client statistics go to stderr
    with ``--stats``.

    Returns:
        0 on success, 1 on configuration, metadata or input errors.
    """
    try:
        settings = _settings_from_args(args)
        records = json.loads(Path(args.records).read_text(encoding="utf-8"))
        result, stats = asyncio.run(
            _read_batch(settings, Path(args.metadata), args.entity, records)
        )
    except (OSError, ValueError, TranslatorError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, ensure_ascii=False))
    if args.stats:
        print(json.dumps(stats), file=sys.stderr)
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Print the effective configuration."""
    try:
        settings = _settings_from_args(args)
    except TranslatorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("\n" + "=" * 60)
    print("TRANSLATOR CONFIGURATION")
    print("=" * 60)
    for key, value in get_config_summary(settings).items():
        print(f"{key + ':':<20}{value}")
    print("=" * 60 + "\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="field-translator",
        description="Read-time translation of translatable entity fields",
    )
    parser.add_argument("--config", type=Path, help="INI file (default: config/translator.ini)")
    parser.add_argument("--log-level", type=str, help="Log level override (e.g. DEBUG)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # scan command
    scan_parser = subparsers.add_parser(
        "scan",
        help="Show translatable fields per entity",
        description="Load service metadata (YAML or JSON) and print the translation registry.",
    )
    scan_parser.add_argument("metadata", type=Path, help="Service metadata file")
    scan_parser.add_argument("--json", action="store_true", help="Print the registry as JSON")
    scan_parser.set_defaults(func=cmd_scan)

    # translate command
    translate_parser = subparsers.add_parser(
        "translate",
        help="Translate one string",
        description="Send one string to the configured translation backend.",
    )
    translate_parser.add_argument("text", help="Text to translate")
    translate_parser.add_argument("--target", "-t", help="Target language")
    translate_parser.add_argument("--source", "-s", help="Source language")
    translate_parser.set_defaults(func=cmd_translate)

    # read command
    read_parser = subparsers.add_parser(
        "read",
        help="Translate a batch of records as a read would",
        description=(
            "Build the registry from METADATA, then pass the JSON records in RECORDS "
            "through the read hook of ENTITY and print the result."
        ),
    )
    read_parser.add_argument("metadata", type=Path, help="Service metadata file")
    read_parser.add_argument("entity", help="Qualified entity name, e.g. CatalogService.Books")
    read_parser.add_argument("records", type=Path, help="JSON file with the records")
    read_parser.add_argument("--target", "-t", help="Target language")
    read_parser.add_argument("--source", "-s", help="Source language")
    read_parser.add_argument("--stats", action="store_true", help="Print client stats to stderr")
    read_parser.set_defaults(func=cmd_read)

    # config command
    config_parser = subparsers.add_parser("config", help="Print the effective configuration")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
