"""Google Calendar OAuth endpoints"""

import logging

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from roboshop.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/google-calendar", tags=["google-calendar"])


class GoogleCalendarStartResponse(BaseModel):
    authorization_url: str


class GoogleCalendarStatus(BaseModel):
    success: bool
    message: str


@router.get("/start", response_model=GoogleCalendarStartResponse)
async def start_oauth_flow(request: Request) -> GoogleCalendarStartResponse:
    """
    Initiate Google Calendar OAuth flow

    Returns authorization URL for the shop account to visit
    """
    provider = request.app.state.calendar_provider
    return GoogleCalendarStartResponse(authorization_url=provider.get_authorization_url())


@router.get("/callback", response_model=GoogleCalendarStatus)
async def oauth_callback(request: Request, code: str = Query(...)) -> GoogleCalendarStatus:
    """
    Google OAuth callback endpoint

    Exchanges the authorization code and stores the refresh token
    """
    provider = request.app.state.calendar_provider
    try:
        await provider.exchange_code(code)
    except ExternalServiceError as e:
        logger.error(f"OAuth callback error: {e}")
        raise HTTPException(status_code=502, detail="Failed to connect Google Calendar")

    return GoogleCalendarStatus(success=True, message="Google Calendar connected successfully")


@router.get("/status", response_model=GoogleCalendarStatus)
async def calendar_status(request: Request) -> GoogleCalendarStatus:
    ready = request.app.state.calendar_provider.ready()
    return GoogleCalendarStatus(
        success=ready,
        message="Google Calendar ready" if ready else "Google Calendar not authenticated",
    )
