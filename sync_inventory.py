#!/usr/bin/env python3
"""
sync_inventory.py

Log into VinSolutions with a headless Chromium, read the inventory grid and
upsert every vehicle into the local SQLite inventory table (keyed by stock
number).

This is the *offline* data-population step for the BDC agent:
  - At sync time: drive the dealership web app and write into SQLite.
  - At query time: the FastAPI service reads from SQLite only.

Usage examples (from repo root, with your venv activated and .env filled in):

    # Run one sync into the DATABASE_URL from the environment
    python sync_inventory.py

    # Write somewhere else, with a visible browser window for debugging
    python sync_inventory.py --db data/inventory_debug.db --headed

Exit code is 0 when the sync succeeded and 1 otherwise; the JSON outcome
({success, vehiclesFound, inserted, updated, errors, error?}) is printed on
stdout either way.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import List

from bdc_agent.config import init_logging, load_settings
from bdc_agent.errors import ConfigError, SyncError
from bdc_agent.sync_job import run_inventory_sync


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sync VinSolutions inventory into the local SQLite store."
    )
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Path to SQLite DB file (default: DATABASE_URL or data/inventory.db)",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window instead of running headless.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO).",
    )
    return parser.parse_args(argv)


def main(argv: List[str]) -> int:
    args = parse_args(argv)
    settings = load_settings()
    init_logging(args.log_level or settings.log_level)

    if args.headed:
        settings = dataclasses.replace(settings, headless=False)
    db_path = Path(args.db) if args.db else settings.db_path

    logging.info("Starting inventory sync -> DB=%s", db_path)
    try:
        result = run_inventory_sync(settings, db_path=db_path)
    except (ConfigError, SyncError) as e:
        logging.error("Sync failed: %s", e)
        print(json.dumps({"success": False, "error": str(e)}))
        return 1
    except Exception as e:
        logging.exception("Unexpected sync failure")
        print(json.dumps({"success": False, "error": f"Sync failed: {e}"}))
        return 1

    print(json.dumps(result.to_payload()))
    return 0 if result.success else 1


def main_entry() -> None:
    sys.exit(main(sys.argv[1:]))


if __name__ == "__main__":
    main_entry()
