"""Target registry endpoints, called by the service that owns reviews and lists."""

import logging

from fastapi import APIRouter

from episodic.dependencies import Engine, ServiceCaller
from episodic.models.reaction import TargetRegistration

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/targets", tags=["Targets"])


@router.put("")
async def register_target(body: TargetRegistration, caller: ServiceCaller, engine: Engine) -> dict:
    row = await engine.reactions.register_target(body.target_key, body.owner_id, body.title)
    return {
        "target_key": row.target_key,
        "owner_id": row.owner_id,
        "title": row.title,
        "count": row.like_count,
    }


@router.delete("/{target_key}")
async def delete_target(target_key: str, caller: ServiceCaller, engine: Engine) -> dict:
    """Cascade hook: drop the entity's reactions, pending intents and notifications."""
    removed = await engine.on_entity_deleted(target_key)
    logger.info("Entity %s deleted by %s: %s", target_key, caller["sub"], removed)
    return {"target_key": target_key, "removed": removed}
