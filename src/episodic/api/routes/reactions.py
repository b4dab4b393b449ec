"""Reaction toggle and summary endpoints."""

from fastapi import APIRouter

from episodic.dependencies import CurrentUser, Engine
from episodic.models.reaction import ReactionSummary, ToggleRequest, ToggleResult

router = APIRouter(prefix="/reactions", tags=["Reactions"])


@router.post("/toggle", response_model=ToggleResult)
async def toggle_reaction(body: ToggleRequest, user: CurrentUser, engine: Engine) -> ToggleResult:
    return await engine.toggle_reaction(
        body.target_key, user["sub"], body.reaction_type, body.desired
    )


@router.get("/{target_key}", response_model=ReactionSummary)
async def get_reaction_summary(target_key: str, user: CurrentUser, engine: Engine) -> ReactionSummary:
    count = await engine.reactions.get_count(target_key)
    reacted = await engine.reactions.has_reacted(target_key, user["sub"])
    return ReactionSummary(target_key=target_key, count=count, reacted=reacted)
