#!/usr/bin/env python3
"""
Refuel entries sync bridge - Main Entry Point

Stores and loads the refuel entries snapshot in a synchronized
key-value store, either directly or over a JSON-lines RPC channel.

Usage:
    python -m refuelsync.main load
    python -m refuelsync.main save --entries-json '[]' --updated-at 2026-01-01T00:00:00Z
    python -m refuelsync.main serve          # JSON-lines RPC on stdin/stdout
    python -m refuelsync.main status

Environment Variables (all optional):
    REFUELSYNC_STORAGE_BACKEND  - sqlite (default) or memory
    REFUELSYNC_DATABASE_PATH    - SQLite file (default data/refuelsync.db)
    REFUELSYNC_CLOUD_URL        - Remote key-value service (HTTPS)
    REFUELSYNC_CLOUD_TOKEN      - Bearer token for the remote service
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from config.settings import ConfigurationError, Settings, load_settings
from refuelsync.bridge import MethodChannel, SyncBridge
from refuelsync.cloud import CloudSyncClient
from refuelsync.rpc import serve
from refuelsync.storage import (
    CloudKeyValueStore,
    InMemoryKeyValueStore,
    KeyValueStore,
    KeyValueStoreError,
    SQLiteKeyValueStore,
    SyncRecord,
)


def setup_logging(verbose: bool = False, level_name: str = "INFO") -> None:
    """
    Configure logging for the application.

    Logs go to stderr; stdout carries command output and RPC responses.

    Args:
        verbose: If True, enable DEBUG level logging
        level_name: Level used when not verbose
    """
    level = logging.DEBUG if verbose else getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stderr),
        ],
        force=True,
    )

    # Reduce noise from external libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="refuelsync",
        description="Save and load refuel entries in a synchronized key-value store",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )

    parser.add_argument(
        "--env",
        type=Path,
        help="Path to .env file (default: .env in current directory)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    save = subparsers.add_parser("save", help="Store an entries snapshot")
    save.add_argument("--entries-json", required=True, help="Serialized entries")
    save.add_argument("--updated-at", default="", help="Snapshot timestamp")

    subparsers.add_parser("load", help="Print the stored snapshot as JSON")
    subparsers.add_parser("serve", help="Answer JSON-lines requests on stdin/stdout")
    subparsers.add_parser("status", help="Show storage status")

    return parser.parse_args(argv)


def build_store(settings: Settings, client: Optional[CloudSyncClient] = None) -> KeyValueStore:
    """
    Create the key-value store described by the settings.

    Args:
        settings: Loaded settings
        client: Cloud client; wraps the local store when given

    Returns:
        Ready-to-use store
    """
    journal = None
    if settings.storage.backend == "memory":
        local: KeyValueStore = InMemoryKeyValueStore()
    else:
        local = SQLiteKeyValueStore(settings.storage.database_path)
        journal = local.pending_journal()

    if client is None:
        return local

    store = CloudKeyValueStore(local=local, client=client, journal=journal)
    store.pull()
    return store


def build_client(settings: Settings) -> Optional[CloudSyncClient]:
    if not settings.cloud.enabled:
        return None
    return CloudSyncClient(
        base_url=settings.cloud.base_url,
        access_token=settings.cloud.access_token,
        timeout=settings.cloud.timeout,
        max_retries=settings.cloud.max_retries,
    )


def show_status(store: KeyValueStore, settings: Settings, record: SyncRecord) -> None:
    """
    Display current storage status.

    Args:
        store: Store to query
        settings: Loaded settings
        record: Snapshot currently stored
    """
    logger = logging.getLogger(__name__)

    keys = store.keys()

    logger.info("=" * 50)
    logger.info("Storage Status")
    logger.info("=" * 50)
    logger.info(f"Backend:      {settings.storage.backend}")
    if settings.storage.backend == "sqlite":
        logger.info(f"Database:     {settings.storage.database_path}")
    logger.info(f"Cloud:        {settings.cloud.base_url or 'disabled'}")
    logger.info(f"Keys stored:  {len(keys)}")
    for key in keys:
        logger.info(f"  - {key}")
    if record.is_empty:
        logger.info("Snapshot:     none saved yet")
    else:
        logger.info(f"Snapshot:     {len(record.entries_json)} chars, updatedAt={record.updated_at!r}")
    if isinstance(store, CloudKeyValueStore):
        logger.info(f"Pending push: {len(store.pending_keys)}")
    logger.info("=" * 50)


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    logger = logging.getLogger(__name__)

    try:
        settings = load_settings(env_file=args.env)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Please check your .env file or environment variables")
        return 1

    if not args.verbose:
        setup_logging(level_name=settings.log_level)

    client = None
    store = None
    try:
        client = build_client(settings)
        store = build_store(settings, client)

        bridge = SyncBridge(store)
        channel = bridge.attach(MethodChannel(settings.bridge.channel_name))

        if args.command == "save":
            result = channel.invoke_method(
                "saveEntries",
                {"entriesJson": args.entries_json, "updatedAt": args.updated_at},
            )
        elif args.command == "load":
            result = channel.invoke_method("loadEntries")
            if result.is_success:
                print(json.dumps(result.value, ensure_ascii=False))
        elif args.command == "serve":
            serve(channel, sys.stdin, sys.stdout)
            return 0
        else:
            show_status(store, settings, bridge.load_entries())
            return 0

        if not result.is_success:
            logger.error(f"{args.command} failed: {result.to_dict()['error']}")
            return 1

        return 0

    except KeyValueStoreError as e:
        logger.error(f"Storage error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    finally:
        if store is not None:
            store.close()
        if client:
            client.close()


if __name__ == "__main__":
    sys.exit(main())
