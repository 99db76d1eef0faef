"""Inventory table: upsert reconciliation by stock number, search, stats."""

from __future__ import annotations

import pytest

from bdc_agent import inventory_store
from bdc_agent.inventory_store import INSERTED, UPDATED
from bdc_agent.row_parser import VehicleRecord

SILVERADO = VehicleRecord(
    stock_number="M37385",
    year=2024,
    make="Chevrolet",
    model="Silverado MD",
    trim="Work Truck",
    vin="HTKJPVM4RH178232",
)


def _row(conn, stock_number):
    return conn.execute("SELECT * FROM inventory WHERE stock_number = ?", (stock_number,)).fetchone()


class TestUpsert:
    def test_insert_then_update(self, conn):
        assert inventory_store.upsert_vehicle(conn, SILVERADO) == INSERTED
        assert inventory_store.upsert_vehicle(conn, SILVERADO) == UPDATED

        rows = conn.execute("SELECT * FROM inventory").fetchall()
        assert len(rows) == 1
        row = rows[0]
        for field in ("stock_number", "year", "make", "model", "trim", "vin", "status"):
            assert row[field] == getattr(SILVERADO, field)
        assert row["last_scraped_at"] is not None

    def test_update_overwrites_every_scraped_field(self, conn):
        inventory_store.upsert_vehicle(conn, SILVERADO)
        first = _row(conn, "M37385")

        changed = VehicleRecord(stock_number="M37385", year=None, make="Chevy", model="", trim="", vin=None)
        inventory_store.upsert_vehicle(conn, changed)
        row = _row(conn, "M37385")

        assert row["year"] is None
        assert row["make"] == "Chevy"
        assert row["model"] == ""
        assert row["vin"] is None
        assert row["created_at"] == first["created_at"]
        assert row["updated_at"] >= first["updated_at"]

    def test_update_keeps_enrichment_columns(self, conn):
        inventory_store.upsert_vehicle(conn, SILVERADO)
        conn.execute("UPDATE inventory SET exterior_color = 'Summit White' WHERE stock_number = 'M37385'")
        conn.commit()
        inventory_store.upsert_vehicle(conn, SILVERADO)
        assert _row(conn, "M37385")["exterior_color"] == "Summit White"

    def test_last_write_wins_across_duplicates(self, conn):
        records = [
            VehicleRecord(stock_number="A1", year=2022, make="Ford", model="F-150"),
            VehicleRecord(stock_number="B2", year=2023, make="Ram", model="1500"),
            VehicleRecord(stock_number="A1", year=2022, make="Ford", model="F-250"),
            VehicleRecord(stock_number="C3", year=2024, make="GMC", model="Sierra"),
            VehicleRecord(stock_number="B2", year=2023, make="Ram", model="2500", status="sold"),
        ]
        outcomes = [inventory_store.upsert_vehicle(conn, r) for r in records]

        assert outcomes == [INSERTED, INSERTED, UPDATED, INSERTED, UPDATED]
        rows = {r["stock_number"]: r for r in conn.execute("SELECT * FROM inventory")}
        assert len(rows) == 3
        assert rows["A1"]["model"] == "F-250"
        assert rows["B2"]["model"] == "2500"
        assert rows["B2"]["status"] == "sold"

    def test_outcome_does_not_depend_on_the_clock(self, conn, monkeypatch):
        monkeypatch.setattr(inventory_store, "_utc_now_iso", lambda: "2024-05-01T12:00:00+00:00")

        outcomes = [inventory_store.upsert_vehicle(conn, SILVERADO) for _ in range(3)]

        assert outcomes == [INSERTED, UPDATED, UPDATED]

    def test_missing_stock_number_is_rejected(self, conn):
        with pytest.raises(ValueError):
            inventory_store.upsert_vehicle(conn, VehicleRecord(stock_number=""))


@pytest.fixture()
def seeded(conn):
    for record in [
        SILVERADO,
        VehicleRecord(stock_number="K1002", year=2023, make="Ford", model="F-150", trim="XLT"),
        VehicleRecord(stock_number="T900", year=2021, make="Toyota", model="Tacoma", trim="SR5 Silver Sky"),
        VehicleRecord(stock_number="S555", year=2019, make="Honda", model="Civic", trim="EX", status="sold"),
    ]:
        inventory_store.upsert_vehicle(conn, record)
    return conn


class TestSearch:
    def test_matches_model_and_trim_case_insensitively(self, seeded):
        results = inventory_store.search_vehicles(seeded, "SILV")
        assert [v.stock_number for v in results] == ["M37385", "T900"]

    def test_matches_year_as_text(self, seeded):
        results = inventory_store.search_vehicles(seeded, "2023")
        assert [v.stock_number for v in results] == ["K1002"]

    def test_does_not_match_stock_number_or_vin(self, seeded):
        assert inventory_store.search_vehicles(seeded, "M373") == []
        assert inventory_store.search_vehicles(seeded, "HTKJ") == []

    def test_like_wildcards_are_literal(self, seeded):
        assert inventory_store.search_vehicles(seeded, "%%") == []

    def test_limit(self, seeded):
        assert len(inventory_store.search_vehicles(seeded, "20", limit=2)) == 2


def test_get_vehicle(seeded):
    vehicle = inventory_store.get_vehicle(seeded, "K1002")
    assert vehicle.make == "Ford"
    assert inventory_store.get_vehicle(seeded, "NOPE") is None


def test_stats(seeded):
    stats = inventory_store.inventory_stats(seeded)
    assert stats.total_vehicles == 4
    assert stats.available == 3
    assert stats.sold == 1
    assert stats.last_updated is not None


def test_stats_on_empty_store(conn):
    stats = inventory_store.inventory_stats(conn)
    assert stats.total_vehicles == 0
    assert stats.available == 0
    assert stats.sold == 0
    assert stats.last_updated is None
