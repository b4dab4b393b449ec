"""Pydantic models for reaction toggles and target registration."""

from pydantic import BaseModel, ConfigDict, Field

from episodic.models.enums import ReactionType


class ToggleRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    target_key: str = Field(..., min_length=3, max_length=400)
    reaction_type: ReactionType = ReactionType.LIKE
    # None flips, True/False force the state
    desired: bool | None = None


class ToggleResult(BaseModel):
    """Reaction state after a toggle, as seen by the actor."""

    active: bool
    count: int = Field(..., ge=0)


class ReactionSummary(BaseModel):
    target_key: str
    count: int = Field(..., ge=0)
    reacted: bool


class TargetRegistration(BaseModel):
    model_config = ConfigDict(extra="forbid")

    target_key: str = Field(..., min_length=3, max_length=400)
    owner_id: str = Field(..., min_length=1, max_length=128)
    title: str | None = Field(None, max_length=300)
