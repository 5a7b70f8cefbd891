"""AI trend summary over recent vitals."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import Field

from app.core.context import AppContext
from app.shared.deps import get_context
from app.shared.schemas import CamelModel

router = APIRouter()


class PredictRequest(CamelModel):
    vitals_history: Optional[List[Dict[str, Any]]] = Field(default=None)


class PredictResponse(CamelModel):
    prediction: str


@router.post("/predict", response_model=PredictResponse, summary="Summarise recent vitals")
async def predict(
    payload: Optional[PredictRequest] = None,
    context: AppContext = Depends(get_context),
) -> PredictResponse:
    """
    Ask the configured language model for a short health summary.

    Uses ``vitalsHistory`` from the body when given, otherwise the server's
    rolling history. Answers 503 when no AI service is configured.
    """
    history = payload.vitals_history if payload and payload.vitals_history else None
    if history is None:
        history = [
            reading.model_dump(by_alias=True, mode="json")
            for reading in context.history.list_readings()
        ]
    return PredictResponse(prediction=await context.insights.summarize(history))
