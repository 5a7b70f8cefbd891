"""HTTP endpoints for the session alert list."""

from typing import List

from fastapi import APIRouter, Depends, Response, status

from app.core.context import AppContext
from app.modules.alerts.schemas import Alert
from app.shared.deps import get_context

router = APIRouter()


@router.get("", response_model=List[Alert], summary="Active alerts")
async def read_alerts(context: AppContext = Depends(get_context)) -> List[Alert]:
    """
    Alerts currently shown on the dashboard, in arrival order.

    **Returns:**
    - At most ``ALERT_RETENTION`` alerts; older ones have been pushed out.
    """
    return context.alerts.list_alerts()


@router.delete(
    "/{alert_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Dismiss an alert",
)
async def dismiss_alert(
    alert_id: str,
    context: AppContext = Depends(get_context),
) -> Response:
    """Remove one alert from the list. Unknown ids are accepted and ignored."""
    context.alerts.dismiss(alert_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
