"""
MonkeysCMS command line.

Usage:
    monkeyscms install [--admin-email EMAIL] [--admin-password PASS]
    monkeyscms cache-clear
    monkeyscms fields [--entity-type TYPE] [--bundle BUNDLE]
"""

import argparse
import sys
from typing import List, Optional

from .cache import get_cache
from .config import settings
from .database import SessionLocal, init_db
from .fields.manager import FieldManager
from .installer import Installer
from .logging_config import setup_logging


def run_install(args: argparse.Namespace) -> int:
    print("=" * 60)
    print("INSTALLING MONKEYSCMS")
    print("=" * 60)

    init_db()
    print("✓ Database tables ready")

    db = SessionLocal()
    try:
        report = Installer(db).install(args.admin_email, args.admin_password)
    except ValueError as e:
        print(f"\n✗ Installation failed: {e}")
        return 1
    finally:
        db.close()

    for line in report.log:
        print(f"  ✓ {line}")
    if report.generated_password:
        print(f"\nGenerated admin password: {report.generated_password}")
        print("Store it now, it is not shown again.")
    print("\nMonkeysCMS installed successfully")
    return 0


def run_cache_clear(args: argparse.Namespace) -> int:
    cache = get_cache()
    size = cache.stats()["size"]
    cache.clear()
    print(f"✓ Cache cleared ({size} entries)")
    return 0


def run_fields(args: argparse.Namespace) -> int:
    db = SessionLocal()
    try:
        manager = FieldManager(db)
        if args.entity_type:
            fields = manager.get_fields_for(args.entity_type, args.bundle)
        else:
            fields = manager.get_all_fields()
    finally:
        db.close()

    if not fields:
        print("No fields defined")
        return 0

    print(f"{'MACHINE NAME':<32} {'NAME':<24} {'TYPE':<14} {'WIDGET':<16} REQUIRED")
    for definition in fields:
        print(
            f"{definition.machine_name:<32} {definition.name[:24]:<24} {definition.field_type:<14} "
            f"{(definition.widget or '-'):<16} {'yes' if definition.required else 'no'}"
        )
    print(f"\n{len(fields)} field(s)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="monkeyscms", description="MonkeysCMS maintenance commands")
    subparsers = parser.add_subparsers(dest="command", required=True)

    install = subparsers.add_parser("install", help="Create tables and seed roles, vocabularies and an admin")
    install.add_argument("--admin-email", help="Create an administrator with this email")
    install.add_argument("--admin-password", help="Administrator password (generated if omitted)")
    install.set_defaults(handler=run_install)

    cache_clear = subparsers.add_parser("cache-clear", help="Empty the application cache")
    cache_clear.set_defaults(handler=run_cache_clear)

    fields = subparsers.add_parser("fields", help="List field definitions")
    fields.add_argument("--entity-type", help="Only fields attached to this entity type")
    fields.add_argument("--bundle", help="Only fields attached to this bundle")
    fields.set_defaults(handler=run_fields)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    setup_logging(log_level=settings.LOG_LEVEL, service_name="monkeyscms", use_json=settings.LOG_JSON)
    args = build_parser().parse_args(argv)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
