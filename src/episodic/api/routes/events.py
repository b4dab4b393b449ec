"""Side-effect hook endpoint for comment, follow, episode and review writers."""

from fastapi import APIRouter

from episodic.dependencies import Engine, ServiceCaller
from episodic.models.notification import EventAccepted, EventRequest

router = APIRouter(prefix="/events", tags=["Events"])


@router.post("", status_code=202, response_model=EventAccepted)
async def notify_on_event(body: EventRequest, caller: ServiceCaller, engine: Engine) -> EventAccepted:
    intent_id = await engine.notify_on_event(
        recipient_id=body.recipient_id,
        event_type=body.event_type,
        sender_id=body.sender_id,
        related_entity_key=body.related_entity_key,
        message=body.message,
        context=body.context,
    )
    return EventAccepted(intent_id=intent_id)
