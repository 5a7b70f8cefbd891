"""HTTP endpoints for pushing and reading vitals."""

import json
from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from app.core.context import AppContext
from app.modules.vitals.schemas import Reading
from app.shared.deps import get_context
from app.shared.exceptions import ReadingValidationError
from app.shared.schemas import StatusResponse

router = APIRouter()
log = structlog.get_logger()


async def _read_json(request: Request) -> object:
    body = await request.body()
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ReadingValidationError("vitals payload is not valid JSON") from exc


@router.post(
    "",
    response_model=StatusResponse,
    summary="Push a vitals reading from the sensor",
)
async def ingest_vitals(
    request: Request,
    context: AppContext = Depends(get_context),
) -> StatusResponse:
    """
    Accept one reading and broadcast it to every connected dashboard.
    The reading is evaluated for alerts in the background.
    """
    raw = await _read_json(request)
    context.vitals.accept(raw)
    return StatusResponse(success=True, message="Vitals data broadcasted successfully")


@router.get("/history", response_model=List[Reading], summary="Recent readings")
async def read_history(context: AppContext = Depends(get_context)) -> List[Reading]:
    """Rolling window used by the dashboard charts, oldest first."""
    return context.history.list_readings()


@router.get("/latest", response_model=Reading, summary="Most recent reading")
async def read_latest(context: AppContext = Depends(get_context)) -> Reading:
    reading = context.history.latest()
    if reading is None:
        raise HTTPException(status_code=404, detail="No vitals received yet")
    return reading
