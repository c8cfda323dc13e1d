"""
Processing-status monitoring API routes.

Lets a host UI start and stop monitoring a transaction, read the current
status and metrics, and fetch the recent notification feed.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field
import logging

from compliance_console.processing.clients import MockStatusClient
from compliance_console.processing.config import MonitorOptions
from compliance_console.processing.notifications import Notification, NotificationFeed
from compliance_console.processing.poller import (
    ProcessingStatusPoller,
    StartResult,
    get_notification_feed,
    get_poller,
)
from compliance_console.core.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/monitoring", tags=["monitoring"])


class StartMonitoringRequest(BaseModel):
    """Request body for starting a monitoring session."""

    transaction_id: Optional[Union[int, str]] = None
    poll_interval_ms: Optional[int] = Field(default=None, gt=0)
    max_attempts: Optional[int] = Field(default=None, ge=1)


class StartMonitoringResponse(BaseModel):
    started: bool
    result: str
    message: str
    status: Dict[str, Any]


class StopMonitoringResponse(BaseModel):
    stopped: bool
    status: Dict[str, Any]


class MetricsResponse(BaseModel):
    aggregate: Dict[str, Any]
    completion_rate: float
    recent_sessions: List[Dict[str, Any]]


@router.post("/start", response_model=StartMonitoringResponse)
async def start_monitoring(
    request: StartMonitoringRequest,
    poller: ProcessingStatusPoller = Depends(get_poller),
):
    """
    Start monitoring a transaction's processing status.

    The first status query runs before the response is returned, so the
    response already carries the first snapshot (or the error).
    Starting while a session is running is a no-op.
    """
    settings = get_settings()
    if isinstance(poller.client, MockStatusClient) and settings.ENV != "development":
        logger.error(
            "Mock status client is active outside development; "
            "configure STATUS_CLIENT_TYPE=http."
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Status service not properly configured for this environment",
        )

    options = MonitorOptions(
        poll_interval_ms=request.poll_interval_ms,
        max_attempts=request.max_attempts,
    )
    result = await poller.start_monitoring(request.transaction_id, options)

    if result == StartResult.INVALID_TARGET:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid transaction ID. Please provide a valid transaction ID.",
        )

    if result == StartResult.ALREADY_ACTIVE:
        message = "Monitoring already active"
    else:
        message = f"Started monitoring transaction #{poller.last_target_id}"

    return StartMonitoringResponse(
        started=result == StartResult.STARTED,
        result=result.value,
        message=message,
        status=poller.get_status(),
    )


@router.post("/stop", response_model=StopMonitoringResponse)
async def stop_monitoring(poller: ProcessingStatusPoller = Depends(get_poller)):
    """Stop the active monitoring session, if any."""
    stopped = poller.stop_monitoring()
    return StopMonitoringResponse(stopped=stopped, status=poller.get_status())


@router.get("/status")
async def get_status(poller: ProcessingStatusPoller = Depends(get_poller)):
    """Current session state and the last status snapshot."""
    return poller.get_status()


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(
    hours: Optional[int] = None,
    poller: ProcessingStatusPoller = Depends(get_poller),
):
    """
    Get aggregate metrics for monitoring sessions.

    Args:
        hours: Limit to last N hours (omit for all history)
    """
    return poller.get_metrics(hours=hours)


@router.get("/notifications", response_model=List[Notification])
async def get_notifications(
    limit: int = Query(20, ge=1),
    feed: NotificationFeed = Depends(get_notification_feed),
):
    """Recent notifications, newest first."""
    return feed.recent(limit=limit)
