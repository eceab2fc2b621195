#!/usr/bin/env python3
"""
Operator helpers for the catalog snapshot.

- warm:  fetch the catalog from the commerce backend and persist the snapshot
- clear: delete the persisted snapshot so the next request fetches fresh data
- count: report how many products the commerce backend holds

Settings come from the same STOREFRONT_* environment variables and .env file
the catalog service reads.
"""

import argparse
import asyncio
import json
from typing import Any, Dict, Optional
import sys
import os

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from shared.config import ServiceConfig, get_config  # noqa: E402
from shared.logging import configure_logging  # noqa: E402
from service_catalog.app.adapters.commerce_client import CommerceClient  # noqa: E402
from service_catalog.app.caching.models import CatalogSnapshot  # noqa: E402
from service_catalog.app.caching.snapshot_store import build_snapshot_store  # noqa: E402


def _client(config: ServiceConfig) -> CommerceClient:
    return CommerceClient(
        config.commerce_url,
        config.commerce_consumer_key,
        config.commerce_consumer_secret,
        per_page=config.commerce_per_page,
        timeout=config.commerce_timeout_seconds,
    )


async def _close(store) -> None:
    close = getattr(store, "close", None)
    if close is not None:
        await close()


async def warm(config: ServiceConfig) -> Dict[str, Any]:
    """Fetch the catalog and overwrite the persisted snapshot.

    The existing snapshot is only replaced after a complete fetch, so a failed
    warm leaves the last good copy in place.
    """
    items = await _client(config).fetch_all_products()
    snapshot = CatalogSnapshot.from_items(items)
    store = build_snapshot_store(config)
    if store is None:
        return {"products": len(snapshot), "persisted": False}
    try:
        await store.save(snapshot)
    finally:
        await _close(store)
    return {"products": len(snapshot), "persisted": True, "fetched_at": snapshot.fetched_at}


async def clear(config: ServiceConfig) -> Dict[str, Any]:
    """Delete the persisted snapshot."""
    store = build_snapshot_store(config)
    if store is None:
        return {"cleared": False, "reason": "snapshot persistence disabled"}
    try:
        await store.delete()
    finally:
        await _close(store)
    return {"cleared": True, "backend": config.snapshot_backend}


async def count(config: ServiceConfig) -> Dict[str, Any]:
    """Report backend product totals."""
    return await _client(config).count_products()


COMMANDS = {"warm": warm, "clear": clear, "count": count}


def _parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage the storefront catalog snapshot.")
    parser.add_argument("command", choices=sorted(COMMANDS), help="Operation to run")
    parser.add_argument("--snapshot-backend", default=None, help="Override snapshot backend (file, redis, none)")
    parser.add_argument("--snapshot-path", default=None, help="Override snapshot file path")
    return parser.parse_args(argv)


def main(argv: Optional[list] = None) -> int:
    args = _parse_args(argv)
    overrides = {}
    if args.snapshot_backend:
        overrides["snapshot_backend"] = args.snapshot_backend
    if args.snapshot_path:
        overrides["snapshot_path"] = args.snapshot_path
    config = get_config("catalog", 8020, **overrides)
    configure_logging("catalog", config.log_level)

    try:
        summary = asyncio.run(COMMANDS[args.command](config))
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[catalog-cache] {args.command} failed: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
