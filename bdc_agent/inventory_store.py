from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from .models import InventoryStats, Vehicle
from .row_parser import VehicleRecord

logger = logging.getLogger(__name__)

VEHICLE_COLUMNS = """
    stock_number, vin, year, make, model, trim,
    body_style, engine, transmission,
    exterior_color, interior_color, mileage, location,
    price_msrp, price_internet,
    status, last_scraped_at, created_at, updated_at
"""

INSERTED = "inserted"
UPDATED = "updated"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def upsert_vehicle(conn: sqlite3.Connection, vehicle: VehicleRecord) -> str:
    """
    Insert the vehicle, or overwrite the scraped fields of the existing row
    with the same stock_number. Returns INSERTED or UPDATED.

    created_at is only written on insert.
    """
    if not vehicle.stock_number:
        raise ValueError("Missing stock_number for vehicle")

    now_iso = _utc_now_iso()
    existing = conn.execute(
        "SELECT 1 FROM inventory WHERE stock_number = ?",
        (vehicle.stock_number,),
    ).fetchone()
    conn.execute(
        """
        INSERT INTO inventory (
            stock_number, year, make, model, trim, vin, status,
            last_scraped_at, created_at, updated_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(stock_number) DO UPDATE SET
            year = excluded.year,
            make = excluded.make,
            model = excluded.model,
            trim = excluded.trim,
            vin = excluded.vin,
            status = excluded.status,
            updated_at = excluded.updated_at,
            last_scraped_at = excluded.last_scraped_at;
        """,
        (
            vehicle.stock_number,
            vehicle.year,
            vehicle.make,
            vehicle.model,
            vehicle.trim,
            vehicle.vin,
            vehicle.status,
            now_iso,
            now_iso,
            now_iso,
        ),
    )
    conn.commit()
    return UPDATED if existing else INSERTED


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_vehicles(
    conn: sqlite3.Connection,
    q: str,
    limit: int = 50,
) -> List[Vehicle]:
    """Case-insensitive substring match on make, model, trim and year."""
    pattern = f"%{_escape_like(q.strip().lower())}%"
    cur = conn.execute(
        f"""
        SELECT {VEHICLE_COLUMNS}
        FROM inventory
        WHERE LOWER(COALESCE(make, '')) LIKE ? ESCAPE '\\'
           OR LOWER(COALESCE(model, '')) LIKE ? ESCAPE '\\'
           OR LOWER(COALESCE(trim, '')) LIKE ? ESCAPE '\\'
           OR CAST(year AS TEXT) LIKE ? ESCAPE '\\'
        ORDER BY year DESC, stock_number
        LIMIT ?
        """,
        (pattern, pattern, pattern, pattern, limit),
    )
    return [Vehicle(**dict(row)) for row in cur.fetchall()]


def get_vehicle(conn: sqlite3.Connection, stock_number: str) -> Optional[Vehicle]:
    cur = conn.execute(
        f"SELECT {VEHICLE_COLUMNS} FROM inventory WHERE stock_number = ?",
        (stock_number,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return Vehicle(**dict(row))


def inventory_stats(conn: sqlite3.Connection) -> InventoryStats:
    cur = conn.execute(
        """
        SELECT
            COUNT(*) AS total_vehicles,
            COALESCE(SUM(CASE WHEN status = 'available' THEN 1 ELSE 0 END), 0) AS available,
            COALESCE(SUM(CASE WHEN status = 'sold' THEN 1 ELSE 0 END), 0) AS sold,
            MAX(last_scraped_at) AS last_updated
        FROM inventory
        """
    )
    row = cur.fetchone()
    return InventoryStats(**dict(row))
