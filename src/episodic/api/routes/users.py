"""Account lifecycle hooks, called by the service that owns user accounts."""

import logging

from fastapi import APIRouter

from episodic.dependencies import Engine, ServiceCaller
from episodic.models.notification import CountResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.delete("/{user_id}/notifications", response_model=CountResponse)
async def purge_user_notifications(user_id: str, caller: ServiceCaller, engine: Engine) -> CountResponse:
    count = await engine.on_user_deleted(user_id)
    logger.info("Notifications of %s purged by %s (%d removed)", user_id, caller["sub"], count)
    return CountResponse(count=count)
