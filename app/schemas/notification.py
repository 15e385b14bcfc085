from typing import Optional
from app.schemas.common import DocumentModel


class Notification(DocumentModel):
    id: str
    user_id: str
    message: str
    created_at: Optional[int] = None
    read: bool = False
