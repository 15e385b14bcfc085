from typing import List

from app.core.exceptions import DispatchError
from app.core.logging_config import logger
from app.crud.base import DocumentStore
from app.crud.subscriptions import Document
from app.utils.clock import Clock, now_ms

COLLECTION = "notifications"


class NotificationSink:
    """Fire-and-forget delivery of a message to a user."""

    def notify(self, user_id: str, message: str) -> None:
        raise NotImplementedError


class StoreNotificationSink(NotificationSink):
    """
    Writes notifications into the ``notifications`` collection, where the
    recipient's client picks them up through its subscription.

    Delivery is best effort: a failed write is logged and dropped.
    """

    def __init__(self, store: DocumentStore, clock: Clock = now_ms):
        self.store = store
        self.clock = clock

    def notify(self, user_id: str, message: str) -> None:
        if not user_id:
            return
        try:
            self.store.create(COLLECTION, {
                "userId": user_id,
                "message": message,
                "createdAt": self.clock(),
                "read": False,
            })
        except DispatchError as e:
            logger.warning(f"Notification to {user_id} dropped: {e.detail}")

    def list_for_user(self, user_id: str) -> List[Document]:
        notifications = self.store.query(COLLECTION, {"userId": user_id})
        return sorted(notifications, key=lambda n: n.get("createdAt") or 0, reverse=True)
