from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class VehicleStatus(str, Enum):
    available = "available"
    sold = "sold"


class Vehicle(BaseModel):
    stock_number: str
    vin: Optional[str] = None
    year: Optional[int] = None
    make: Optional[str] = None
    model: Optional[str] = None
    trim: Optional[str] = None
    body_style: Optional[str] = None
    engine: Optional[str] = None
    transmission: Optional[str] = None
    exterior_color: Optional[str] = None
    interior_color: Optional[str] = None
    mileage: Optional[int] = None
    location: Optional[str] = None
    price_msrp: Optional[float] = None
    price_internet: Optional[float] = None
    status: str = VehicleStatus.available.value
    last_scraped_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class InventoryStats(BaseModel):
    total_vehicles: int
    available: int
    sold: int
    last_updated: Optional[str] = None


class SearchResponse(BaseModel):
    success: bool = True
    query: str
    count: int
    vehicles: List[Vehicle]


class StatsResponse(BaseModel):
    success: bool = True
    stats: InventoryStats


class VehicleResponse(BaseModel):
    success: bool = True
    vehicle: Vehicle


class SyncResult(BaseModel):
    """Outcome of one sync run, serialized with the camelCase names callers expect."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    vehicles_found: int = Field(0, alias="vehiclesFound")
    inserted: int = 0
    updated: int = 0
    errors: int = 0
    error: Optional[str] = None

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
