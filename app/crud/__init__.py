from app.crud.base import DocumentStore
from .subscriptions import Subscription, SubscriptionHub

__all__ = ["DocumentStore", "Subscription", "SubscriptionHub"]
