"""API router for version 1."""
from fastapi import APIRouter

from app.api.v1.endpoints import notifications, subscriptions


api_router = APIRouter()
api_router.include_router(notifications.router)
api_router.include_router(subscriptions.router)
