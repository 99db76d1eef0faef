import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from . import inventory_store, sync_job
from .db import get_db
from .errors import ConfigError, SyncError, SyncInProgressError
from .models import SearchResponse, StatsResponse, SyncResult, VehicleResponse

logger = logging.getLogger(__name__)

router = APIRouter()

MIN_QUERY_LENGTH = 2


def get_sync_runner() -> Callable[..., SyncResult]:
    return sync_job.run_inventory_sync


@router.get("/search", response_model=SearchResponse)
def search_inventory(
    q: Optional[str] = Query(None, description="Make, model, trim or year"),
    limit: int = Query(50, ge=1, le=200),
    conn=Depends(get_db),
):
    """
    Search vehicles by make, model, trim or model year (case-insensitive substring).
    """
    query = (q or "").strip()
    if len(query) < MIN_QUERY_LENGTH:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": f"Query must be at least {MIN_QUERY_LENGTH} characters",
            },
        )

    vehicles = inventory_store.search_vehicles(conn, query, limit=limit)
    return SearchResponse(query=query, count=len(vehicles), vehicles=vehicles)


@router.get("/stats", response_model=StatsResponse)
def get_inventory_stats(conn=Depends(get_db)):
    return StatsResponse(stats=inventory_store.inventory_stats(conn))


@router.post("/sync")
def trigger_sync(request: Request, runner=Depends(get_sync_runner)):
    """
    Run the VinSolutions sync now. Always answers with a JSON outcome.
    """
    settings = request.app.state.settings
    try:
        result = runner(settings)
    except SyncInProgressError as e:
        return JSONResponse(status_code=409, content={"success": False, "error": str(e)})
    except ConfigError as e:
        logger.error("Sync not started: %s", e)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
    except SyncError as e:
        logger.error("Sync failed at %s stage: %s", e.stage, e)
        return JSONResponse(
            status_code=500,
            content={"success": False, "stage": e.stage, "error": str(e)},
        )
    except Exception as e:
        logger.exception("Unexpected sync failure")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": f"Sync failed: {e}"},
        )
    return result.to_payload()


@router.get("/{stock_number}", response_model=VehicleResponse)
def get_vehicle(stock_number: str, conn=Depends(get_db)):
    vehicle = inventory_store.get_vehicle(conn, stock_number)
    if vehicle is None:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return VehicleResponse(vehicle=vehicle)
