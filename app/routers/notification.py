from fastapi import APIRouter, Depends
from typing import List
from app.dependencies import get_current_actor, get_notifier
from app.schemas.notification import Notification
from app.schemas.user import Actor
from app.services.notifications import StoreNotificationSink

router = APIRouter()


@router.get("", response_model=List[Notification])
def get_my_notifications(
    actor: Actor = Depends(get_current_actor),
    notifier: StoreNotificationSink = Depends(get_notifier),
):
    """Your notifications, newest first."""
    return notifier.list_for_user(actor.uid)
