"""
sync_job.py

One inventory sync run:

    login -> open inventory -> find the grid frame -> parse rows -> upsert

The job is strictly sequential and holds a single browser. Runs are
serialized with a process-wide lock because logging into the same VinSolutions
account from two sessions at once tends to invalidate both.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from . import db, inventory_store
from .browser_session import VinSolutionsLogin, launch_browser, new_page
from .config import Settings
from .discovery import find_inventory_frame, open_inventory
from .errors import SyncError, SyncInProgressError
from .models import SyncResult
from .row_parser import VehicleRecord, extract_table_rows, parse_rows

logger = logging.getLogger(__name__)

NO_VEHICLES_ERROR = "No vehicles found in table"
SAMPLE_SIZE = 3

_sync_lock = threading.Lock()


@dataclass
class ReconcileSummary:
    inserted: int = 0
    updated: int = 0
    errors: int = 0


# ---------------------- SCRAPE ----------------------


def scrape_inventory(settings: Settings) -> List[VehicleRecord]:
    """
    Drive the browser through login and discovery and return the parsed rows.
    The browser is closed on every exit path.
    """
    settings.require_vin_credentials()

    stage = "launch"
    try:
        with sync_playwright() as playwright:
            browser = launch_browser(
                playwright,
                headless=settings.headless,
                executable_path=settings.chromium_executable_path,
            )
            try:
                page = new_page(browser)

                stage = "login"
                VinSolutionsLogin(
                    login_url=settings.vin_login_url,
                    username=settings.vin_username,
                    password=settings.vin_password,
                    logged_in_selector=settings.vin_logged_in_selector,
                ).login(page)

                stage = "navigation"
                route = open_inventory(page, settings.vin_inventory_url)
                logger.info("Inventory view requested via %s", route)

                stage = "discovery"
                frame = find_inventory_frame(page)

                stage = "extraction"
                logger.info("Extracting vehicle rows...")
                rows = extract_table_rows(frame.content())
                return parse_rows(rows)
            finally:
                logger.info("Closing browser...")
                browser.close()
    except PlaywrightError as e:
        raise SyncError(f"{stage} failed: {e}", stage=stage) from e


# ---------------------- RECONCILE ----------------------


def reconcile(conn: sqlite3.Connection, vehicles: Sequence[VehicleRecord]) -> ReconcileSummary:
    summary = ReconcileSummary()
    for vehicle in vehicles:
        try:
            outcome = inventory_store.upsert_vehicle(conn, vehicle)
        except (sqlite3.Error, ValueError) as e:
            conn.rollback()
            logger.error("Error upserting vehicle %s: %s", vehicle.stock_number, e)
            summary.errors += 1
            continue
        if outcome == inventory_store.INSERTED:
            summary.inserted += 1
        else:
            summary.updated += 1

    logger.info(
        "Summary: %d new, %d updated, %d errors",
        summary.inserted,
        summary.updated,
        summary.errors,
    )
    return summary


def _log_sample(vehicles: Sequence[VehicleRecord]) -> None:
    logger.info("Sample vehicles (first %d):", min(SAMPLE_SIZE, len(vehicles)))
    for idx, v in enumerate(vehicles[:SAMPLE_SIZE], start=1):
        logger.info("  %d. %s %s %s %s (Stock: %s)", idx, v.year, v.make, v.model, v.trim, v.stock_number)


# ---------------------- MAIN PIPELINE ----------------------


def run_inventory_sync(
    settings: Settings,
    db_path: Optional[Path] = None,
    scraper: Callable[[Settings], List[VehicleRecord]] = scrape_inventory,
) -> SyncResult:
    """
    Entry point for a full sync. Stage failures (config, login, discovery)
    propagate as exceptions; "table found but nothing parseable" comes back as
    an unsuccessful SyncResult.
    """
    if not _sync_lock.acquire(blocking=False):
        raise SyncInProgressError("inventory sync already in progress")
    try:
        settings.require_vin_credentials()
        logger.info("Starting VinSolutions inventory sync")

        vehicles = scraper(settings)
        logger.info("Found %d vehicles", len(vehicles))

        if not vehicles:
            logger.warning("No vehicles found in table; layout may have changed or page did not load")
            return SyncResult(success=False, error=NO_VEHICLES_ERROR)

        _log_sample(vehicles)

        path = db_path or settings.db_path
        db.init_db(path)
        conn = db.get_connection(path)
        try:
            summary = reconcile(conn, vehicles)
        finally:
            conn.close()

        return SyncResult(
            success=True,
            vehicles_found=len(vehicles),
            inserted=summary.inserted,
            updated=summary.updated,
            errors=summary.errors,
        )
    finally:
        _sync_lock.release()
