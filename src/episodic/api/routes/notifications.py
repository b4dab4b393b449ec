"""Notification feed, read state, deletion and preference endpoints."""

import asyncio
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Query, Request
from fastapi.responses import StreamingResponse

from episodic.dependencies import CurrentUser, Engine
from episodic.models.enums import NotificationType
from episodic.models.notification import CountResponse, GroupedFeed, Notification, PreferenceUpdate
from episodic.services.grouping import count_unread_groups, group_notifications

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=GroupedFeed)
async def get_grouped_feed(user: CurrentUser, engine: Engine) -> GroupedFeed:
    return await engine.grouped_feed(user["sub"])


@router.get("/raw", response_model=list[Notification])
async def get_raw_feed(
    user: CurrentUser,
    engine: Engine,
    limit: int | None = Query(None, ge=1, le=500),
) -> list[Notification]:
    return await engine.notifications.get_feed(user["sub"], limit)


async def _feed_events(request: Request, engine: Engine, user_id: str) -> AsyncGenerator[str, None]:
    """Yield one SSE ``feed`` event per change of the user's notifications."""
    feed = engine.get_notification_feed(user_id)
    logger.info("Feed subscriber connected (user=%s)", user_id)
    try:
        async for batch in feed:
            if await request.is_disconnected():
                break
            grouped = GroupedFeed(
                items=group_notifications(batch), unread_count=count_unread_groups(batch)
            )
            yield f"event: feed\ndata: {grouped.model_dump_json()}\n\n"
    except asyncio.CancelledError:
        pass
    finally:
        await feed.aclose()
        logger.info("Feed subscriber disconnected (user=%s)", user_id)


@router.get("/stream")
async def stream_feed(request: Request, user: CurrentUser, engine: Engine):
    """Push the grouped feed via SSE: the current state, then every change."""
    return StreamingResponse(
        _feed_events(request, engine, user["sub"]),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        },
    )


@router.post("/read-all", response_model=CountResponse)
async def mark_all_read(user: CurrentUser, engine: Engine) -> CountResponse:
    return CountResponse(count=await engine.mark_all_read(user["sub"]))


@router.post("/cleanup", response_model=CountResponse)
async def cleanup(user: CurrentUser, engine: Engine) -> CountResponse:
    return CountResponse(count=await engine.cleanup(user["sub"]))


@router.get("/preferences")
async def get_preferences(user: CurrentUser, engine: Engine) -> dict[str, bool]:
    return await engine.notifications.get_preferences(user["sub"])


@router.put("/preferences")
async def set_preference(body: PreferenceUpdate, user: CurrentUser, engine: Engine) -> dict[str, bool]:
    return await engine.notifications.set_preference(user["sub"], body.event_type, body.enabled)


@router.post("/{notification_id}/read", status_code=204)
async def mark_read(notification_id: str, user: CurrentUser, engine: Engine) -> None:
    await engine.mark_read(notification_id, user["sub"])


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(notification_id: str, user: CurrentUser, engine: Engine) -> None:
    await engine.delete_notification(notification_id, user["sub"])


@router.delete("", response_model=CountResponse)
async def delete_of_type(
    user: CurrentUser,
    engine: Engine,
    event_type: NotificationType = Query(..., alias="type"),
    sender_id: str | None = Query(None),
) -> CountResponse:
    count = await engine.notifications.delete_of_type(user["sub"], event_type, sender_id)
    return CountResponse(count=count)
