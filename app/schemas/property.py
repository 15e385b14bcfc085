from typing import Optional
from app.schemas.common import CamelModel, DocumentModel, Location


class Property(DocumentModel):
    id: str
    host_id: str
    address: str
    label: Optional[str] = None
    coordinates: Optional[Location] = None
    is_main: bool = False


class PropertyCreate(CamelModel):
    address: str
    label: Optional[str] = None
    coordinates: Optional[Location] = None
