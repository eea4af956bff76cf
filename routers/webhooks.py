"""Webhook router for PubSubHubbub verification and notifications."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from services.dependencies import Dependencies, get_dependencies
from services.notification import InvalidNotificationError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.get("/", response_class=PlainTextResponse)
async def webhook_verification(
    hub_challenge: Optional[str] = Query(None, alias="hub.challenge"),
    hub_mode: Optional[str] = Query(None, alias="hub.mode"),
    hub_topic: Optional[str] = Query(None, alias="hub.topic"),
):
    """
    Handle the hub's intent verification by echoing the challenge.

    Returns:
        PlainTextResponse: Challenge string, or 400 when it is missing
    """
    if not hub_challenge:
        return PlainTextResponse(content="", status_code=400)

    logger.info(f"Hub verification: mode={hub_mode} topic={hub_topic}")
    return PlainTextResponse(content=hub_challenge)


@router.post("/", response_class=PlainTextResponse)
async def webhook_notification(request: Request, deps: Dependencies = Depends(get_dependencies)):
    """
    Handle a push notification (Atom feed) from the hub.

    New videos are forwarded to the workflow dispatcher; edits are ignored.
    """
    body = await request.body()
    try:
        result = await deps.notification_service().process(body)
    except InvalidNotificationError as e:
        return PlainTextResponse(content=str(e), status_code=400)

    status_code = 500 if result.status == "error" else 200
    return PlainTextResponse(content=result.message, status_code=status_code)
