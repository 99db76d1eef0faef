from pathlib import Path
import sqlite3
from typing import Generator

from fastapi import Request

SCHEMA = """
CREATE TABLE IF NOT EXISTS inventory (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    stock_number TEXT NOT NULL UNIQUE,
    vin TEXT,
    year INTEGER,
    make TEXT,
    model TEXT,
    trim TEXT,
    body_style TEXT,
    engine TEXT,
    transmission TEXT,
    exterior_color TEXT,
    interior_color TEXT,
    mileage INTEGER,
    location TEXT,
    price_msrp REAL,
    price_internet REAL,
    status TEXT NOT NULL DEFAULT 'available',
    last_scraped_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_inventory_status ON inventory(status);
CREATE INDEX IF NOT EXISTS idx_inventory_make_model ON inventory(make, model);
"""


def get_connection(db_path: Path) -> sqlite3.Connection:
    """
    Open a SQLite connection with row_factory set,
    so dict(row) works everywhere.
    """
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: Path) -> None:
    """Create the data directory and the inventory table if they are missing."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA)
        conn.commit()
    finally:
        conn.close()


def get_db(request: Request) -> Generator[sqlite3.Connection, None, None]:
    """
    FastAPI dependency: opens a connection for each request against the
    database configured on the app, and closes it when the request is done.
    """
    conn = get_connection(request.app.state.settings.db_path)
    try:
        yield conn
    finally:
        conn.close()
