"""Master API router mounted at /api/v1."""

from fastapi import APIRouter

from episodic.api.routes import events, health, notifications, reactions, targets, users

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(reactions.router)
api_router.include_router(targets.router)
api_router.include_router(events.router)
api_router.include_router(users.router)
api_router.include_router(notifications.router)
