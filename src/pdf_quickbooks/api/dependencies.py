from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request

from pdf_quickbooks.errors import AuthenticationError, NotFoundError
from pdf_quickbooks.models import UserContext
from pdf_quickbooks.services.batches import BatchManager
from pdf_quickbooks.storage.base import Store


def get_store(request: Request) -> Store:
    store = getattr(request.app.state, "store", None)
    if not store:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return store


def get_batch_manager(request: Request) -> BatchManager:
    manager = getattr(request.app.state, "batch_manager", None)
    if not manager:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return manager


def get_current_user(
    store: Annotated[Store, Depends(get_store)],
    x_user_id: Annotated[str | None, Header()] = None,
) -> UserContext:
    """Build the caller's capability from the id the auth gateway forwards."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise AuthenticationError("Please sign in to continue")

    profile = store.get_profile(user_id)
    if profile is None:
        raise NotFoundError("User profile not found")

    return UserContext(user_id=profile.id, subscription_active=profile.subscription_active)
