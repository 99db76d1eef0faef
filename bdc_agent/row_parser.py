"""
row_parser.py

Turn rows of the VinSolutions inventory table into VehicleRecord objects.

The table is read positionally. Which column holds which field is described
by a RowSchema (an ordered list of named column extractors), so a layout
change on the site only means editing VINSOLUTIONS_SCHEMA:

    col 0  photos
    col 1  stock #               -> stock_number   (e.g. "M37385")
    col 2  desk icon
    col 3  autotrader icon
    col 4  CARFAX VB Yr Make     -> year + make    (e.g. "24 Chevrolet")
    col 5  model                 -> model          (e.g. "Silverado MD")
    col 6  trim                  -> trim           (e.g. "Work Truck")
    col 7  VIN                   -> vin            (e.g. "HTKJPVM4RH178232")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

MIN_ROW_CELLS = 8
DEFAULT_STATUS = "available"


# ---------------------- DATA CLASSES ----------------------


@dataclass
class VehicleRecord:
    stock_number: str
    year: Optional[int] = None
    make: str = ""
    model: str = ""
    trim: str = ""
    vin: Optional[str] = None
    status: str = DEFAULT_STATUS


@dataclass(frozen=True)
class ColumnField:
    """Read cell ``index`` and hand the stripped text to ``transform``."""

    name: str
    index: int
    transform: Callable[[str], Dict[str, object]]


@dataclass(frozen=True)
class RowSchema:
    columns: Tuple[ColumnField, ...]
    min_cells: int = MIN_ROW_CELLS
    key_field: str = "stock_number"
    defaults: Dict[str, object] = field(default_factory=dict)

    def extract(self, cells: Sequence[str]) -> Dict[str, object]:
        values: Dict[str, object] = dict(self.defaults)
        for column in self.columns:
            raw = cells[column.index] if column.index < len(cells) else ""
            values.update(column.transform((raw or "").strip()))
        return values


# ---------------------- FIELD TRANSFORMS ----------------------


def normalize_year(token: str) -> Optional[int]:
    """
    "24" -> 2024, "2024" -> 2024, "abc" -> None.

    Anything below 100 is a two-digit year in the 2000s. Larger values pass
    through untouched.
    """
    try:
        year = int(token.strip())
    except (AttributeError, ValueError):
        return None
    if year < 100:
        year += 2000
    return year


def split_year_make(text: str) -> Tuple[Optional[int], str]:
    """'24 Chevrolet' -> (2024, 'Chevrolet'); 'Land Rover' stays on the make side."""
    parts = text.split()
    if len(parts) < 2:
        return None, ""
    return normalize_year(parts[0]), " ".join(parts[1:])


def _text(name: str) -> Callable[[str], Dict[str, object]]:
    return lambda raw: {name: raw}


def _year_make(raw: str) -> Dict[str, object]:
    year, make = split_year_make(raw)
    return {"year": year, "make": make}


def _vin(raw: str) -> Dict[str, object]:
    return {"vin": raw or None}


VINSOLUTIONS_SCHEMA = RowSchema(
    columns=(
        ColumnField("stock_number", 1, _text("stock_number")),
        ColumnField("year_make", 4, _year_make),
        ColumnField("model", 5, _text("model")),
        ColumnField("trim", 6, _text("trim")),
        ColumnField("vin", 7, _vin),
    ),
    defaults={"status": DEFAULT_STATUS},
)


# ---------------------- PARSING ----------------------


def parse_row(
    cells: Sequence[str], schema: RowSchema = VINSOLUTIONS_SCHEMA
) -> Optional[VehicleRecord]:
    """Return None for header/footer/decorative rows instead of a partial record."""
    if len(cells) < schema.min_cells:
        return None
    values = schema.extract(cells)
    if not values.get(schema.key_field):
        return None
    return VehicleRecord(**values)


def parse_rows(
    rows: Sequence[Sequence[str]], schema: RowSchema = VINSOLUTIONS_SCHEMA
) -> List[VehicleRecord]:
    vehicles = []
    for cells in rows:
        vehicle = parse_row(cells, schema)
        if vehicle is not None:
            vehicles.append(vehicle)
    logger.info("Parsed %d vehicles from %d table rows", len(vehicles), len(rows))
    return vehicles


def extract_table_rows(html: str, skip_header: bool = True) -> List[List[str]]:
    """
    Pull the cell texts of every ``table tr`` out of a document.
    The first row is the column header on the inventory grid.
    """
    soup = BeautifulSoup(html, "html.parser")
    rows = soup.select("table tr")
    if skip_header:
        rows = rows[1:]
    return [[td.get_text(" ", strip=True) for td in tr.find_all("td")] for tr in rows]
