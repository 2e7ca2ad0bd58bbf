"""Import records into a JSON collection file.

Sources (pick one):
    FILE                 CSV or XLSX spreadsheet (first sheet, header row)
    --list SITE:LIST     Remote list, read with the configured access token
    --webhook            Accounting webhook configured in secrets.env

Options:
    -k, --kind KIND      project, ticket, lead or purchase
    -c, --collection     JSON file holding the existing records (updated in place)
    --projects FILE      JSON file of known projects for ticket/purchase linking
    --filter FIELD=VALUE Keep only rows whose FIELD equals VALUE
    --remap              Re-run column auto-mapping, discarding saved choices
    -n, --dry-run        Report what would change without writing anything
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from tabsync.config import settings
from tabsync.models.records import RECORD_MODELS, EntityKind, Project
from tabsync.services.import_service import (
    ImportOrchestrator,
    RowFilter,
    SourceUnavailable,
)
from tabsync.services.mapping_store import JsonFileMappingStore, MemoryMappingStore
from tabsync.services.sources import FileRowSource, RemoteListRowSource, RowSource, WebhookRowSource

logger = logging.getLogger(__name__)


def load_collection(path: Optional[Path], kind: EntityKind) -> list[Any]:
    """Load existing records of one kind from a JSON list file.

    A missing file is an empty collection.

    Raises:
        ValueError: If the file is not a JSON list of valid records.
    """
    if path is None or not path.exists():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{path} is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of records")

    model = RECORD_MODELS[kind]
    try:
        return [model.model_validate(item) for item in data]
    except ValidationError as e:
        raise ValueError(f"{path} has an invalid {kind.value} record: {e.errors()[0]['msg']}") from e


def save_collection(path: Path, records: list[Any]) -> None:
    """Write records to a JSON list file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [record.model_dump(mode="json") for record in records]
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


def parse_filter(value: Optional[str]) -> Optional[RowFilter]:
    """Parse a FIELD=VALUE filter argument."""
    if not value:
        return None
    field, sep, target = value.partition("=")
    if not sep or not field.strip():
        raise ValueError(f"Filter must look like FIELD=VALUE, got '{value}'")
    return RowFilter(field.strip(), target.strip())


def build_source(args: argparse.Namespace) -> RowSource:
    """Create the row source selected on the command line."""
    if args.list:
        site_id, sep, list_id = args.list.partition(":")
        if not sep or not site_id or not list_id:
            raise ValueError(f"--list must look like SITE:LIST, got '{args.list}'")
        remote = settings.remote
        return RemoteListRowSource(
            site_id,
            list_id,
            settings.remote_access_token,
            base_url=remote.base_url,
            page_size=remote.page_size,
            timeout=remote.timeout_seconds,
        )
    if args.webhook:
        return WebhookRowSource(settings.webhook_url or "", timeout=settings.remote.timeout_seconds)
    return FileRowSource(args.file, max_rows=settings.max_rows)


async def run_import(args: argparse.Namespace) -> int:
    """Run one import and print its summary."""
    kind = EntityKind(args.kind)
    collection_path = Path(args.collection) if args.collection else None

    try:
        source = build_source(args)
        row_filter = parse_filter(args.filter)
        existing = load_collection(collection_path, kind)
        projects = load_collection(Path(args.projects), EntityKind.PROJECT) if args.projects else []
    except ValueError as e:
        print(f"Error: {e}")
        return 2

    if args.dry_run:
        mapping_store = MemoryMappingStore()
    else:
        mapping_store = JsonFileMappingStore(Path(args.mappings) if args.mappings else settings.mappings_path)

    orchestrator = ImportOrchestrator(source, kind, mapping_store=mapping_store, config=settings.imports)
    try:
        result = await orchestrator.run(
            existing,
            row_filter=row_filter,
            known_projects=[p for p in projects if isinstance(p, Project)],
            remap=args.remap,
        )
    except SourceUnavailable as e:
        print(f"Import failed: {e}")
        return 1

    print(f"{kind.value.capitalize()} import from {source.source_id}: {result.summary()}")
    if result.degraded:
        print(f"  {result.degraded} values could not be read and were defaulted")
    for error in result.errors[:10]:
        print(f"  - {error}")
    if len(result.errors) > 10:
        print(f"  ... and {len(result.errors) - 10} more")

    if args.dry_run:
        print("Dry run: collection not written.")
    elif collection_path is not None:
        save_collection(collection_path, result.records)
        print(f"Wrote {len(result.records)} records to {collection_path}")

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Import tabular records into TabSync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    # Mutually exclusive sources
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "file",
        nargs="?",
        help="CSV or XLSX file to import"
    )
    group.add_argument(
        "--list",
        metavar="SITE:LIST",
        help="Import from a remote list"
    )
    group.add_argument(
        "--webhook",
        action="store_true",
        help="Import from the configured accounting webhook"
    )

    # Options
    parser.add_argument(
        "-k", "--kind",
        choices=[kind.value for kind in EntityKind],
        required=True,
        help="Kind of record to import"
    )
    parser.add_argument(
        "-c", "--collection",
        metavar="FILE",
        help="JSON collection of existing records (updated unless --dry-run)"
    )
    parser.add_argument(
        "--projects",
        metavar="FILE",
        help="JSON collection of known projects for linking tickets and purchases"
    )
    parser.add_argument(
        "--filter",
        metavar="FIELD=VALUE",
        help="Keep only rows whose mapped FIELD equals VALUE (case-insensitive)"
    )
    parser.add_argument(
        "--mappings",
        metavar="FILE",
        help="Field mapping store (default: from config)"
    )
    parser.add_argument(
        "--remap",
        action="store_true",
        help="Re-run column auto-mapping over every field"
    )
    parser.add_argument(
        "-n", "--dry-run",
        action="store_true",
        help="Show the result without writing the collection or mappings"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    return asyncio.run(run_import(args))


if __name__ == "__main__":
    sys.exit(main())
