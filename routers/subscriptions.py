"""Subscription management router."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from schemas.subscriptions import (
    APIResponse,
    RenewalSummaryResponse,
    SubscriptionsListResponse,
    format_timestamp,
)
from services.dependencies import Dependencies, get_dependencies

router = APIRouter(tags=["subscriptions"])


@router.post("/subscribe", response_model=APIResponse, response_model_exclude_none=True)
async def subscribe(
    channel_id: Optional[str] = Query(None),
    deps: Dependencies = Depends(get_dependencies),
) -> APIResponse:
    """
    Subscribe to a channel's feed through the hub.

    Args:
        channel_id: Channel ID to subscribe to
        deps: Injected store and hub clients

    Returns:
        APIResponse: Success envelope with the new expiry
    """
    result = await deps.subscription_service().subscribe(channel_id)
    return APIResponse(
        status="success",
        channel_id=result.channel_id,
        message="Subscription initiated",
        expires_at=format_timestamp(result.expires_at),
    )


@router.delete("/unsubscribe", status_code=204, response_class=Response)
async def unsubscribe(
    channel_id: Optional[str] = Query(None),
    deps: Dependencies = Depends(get_dependencies),
) -> Response:
    """Unsubscribe from a channel; responds 204 with no body."""
    await deps.subscription_service().unsubscribe(channel_id)
    return Response(status_code=204)


@router.get("/subscriptions", response_model=SubscriptionsListResponse)
async def list_subscriptions(deps: Dependencies = Depends(get_dependencies)) -> SubscriptionsListResponse:
    """List all subscriptions with their computed expiry status."""
    return await deps.subscription_service().list_subscriptions()


@router.post("/renew", response_model=RenewalSummaryResponse, response_model_exclude_none=True)
async def renew_subscriptions(deps: Dependencies = Depends(get_dependencies)) -> RenewalSummaryResponse:
    """
    Renew subscriptions that are inside the renewal threshold.

    Meant to be called by an external scheduler (cron, Cloud Scheduler).
    """
    summary = await deps.renewal_scheduler().run()
    return RenewalSummaryResponse.from_summary(summary)
