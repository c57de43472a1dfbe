"""Device subscription and preference endpoints."""
from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api import deps
from app.schemas.notification import (
    ApiResponse,
    PreferenceRead,
    PreferenceUpsert,
    SubscriptionCreate,
    SubscriptionCreated,
    SubscriptionRead,
)
from app.services.subscriptions import AuthContext, SubscriptionService
from app.utils.exceptions import (
    AccessDeniedError,
    SubscriptionNotFoundError,
    ValidationError,
    handle_access_denied_error,
    handle_not_found_error,
    handle_validation_error,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_subscription_service(
    db: Session = Depends(deps.get_db),
    auth: AuthContext = Depends(deps.get_auth_context),
) -> SubscriptionService:
    return SubscriptionService(db, auth)


@router.post(
    "/subscribe",
    response_model=ApiResponse[SubscriptionCreated],
    dependencies=[Depends(deps.require_notifications_enabled)],
)
def subscribe(
    payload: SubscriptionCreate,
    service: SubscriptionService = Depends(get_subscription_service),
) -> ApiResponse[SubscriptionCreated]:
    """Register this device, or refresh it if the endpoint is already known."""

    subscription = service.register(payload)
    return ApiResponse(data=SubscriptionCreated(id=subscription.id))


@router.delete("/subscribe", response_model=ApiResponse[None])
def unsubscribe(
    endpoint: str = Query(..., min_length=1),
    service: SubscriptionService = Depends(get_subscription_service),
) -> ApiResponse[None]:
    try:
        service.unregister(endpoint)
    except SubscriptionNotFoundError as exc:
        raise handle_not_found_error(exc) from exc
    except AccessDeniedError as exc:
        raise handle_access_denied_error(exc) from exc
    return ApiResponse()


@router.get("/subscriptions", response_model=ApiResponse[List[SubscriptionRead]])
def list_subscriptions(
    service: SubscriptionService = Depends(get_subscription_service),
) -> ApiResponse[List[SubscriptionRead]]:
    subscriptions = service.list_subscriptions()
    return ApiResponse(data=[SubscriptionRead.model_validate(item) for item in subscriptions])


@router.delete("/subscriptions/{subscription_id}", response_model=ApiResponse[None])
def delete_subscription(
    subscription_id: uuid.UUID,
    service: SubscriptionService = Depends(get_subscription_service),
) -> ApiResponse[None]:
    try:
        service.delete(subscription_id)
    except SubscriptionNotFoundError as exc:
        raise handle_not_found_error(exc) from exc
    except AccessDeniedError as exc:
        raise handle_access_denied_error(exc) from exc
    return ApiResponse()


@router.get("/preferences", response_model=ApiResponse[List[PreferenceRead]])
def list_preferences(
    service: SubscriptionService = Depends(get_subscription_service),
) -> ApiResponse[List[PreferenceRead]]:
    preferences = service.list_preferences()
    return ApiResponse(data=[PreferenceRead.model_validate(item) for item in preferences])


@router.put("/preferences", response_model=ApiResponse[PreferenceRead])
def upsert_preference(
    payload: PreferenceUpsert,
    service: SubscriptionService = Depends(get_subscription_service),
) -> ApiResponse[PreferenceRead]:
    try:
        preference = service.upsert_preference(payload)
    except SubscriptionNotFoundError as exc:
        raise handle_not_found_error(exc) from exc
    except AccessDeniedError as exc:
        raise handle_access_denied_error(exc) from exc
    except ValidationError as exc:
        raise handle_validation_error(exc) from exc
    return ApiResponse(data=PreferenceRead.model_validate(preference))
