import enum
from typing import Optional
from app.schemas.common import CamelModel, DocumentModel


class UserRole(str, enum.Enum):
    host = "host"
    worker = "worker"
    cleaner = "cleaner"
    admin = "admin"
    customer_service = "customer_service"
    manager_admin = "manager_admin"
    super_admin = "super_admin"


ADMIN_ROLES = (UserRole.admin, UserRole.customer_service, UserRole.manager_admin, UserRole.super_admin)


class Actor(CamelModel):
    """The authenticated identity behind a request; read-only to the core."""
    uid: str
    role: Optional[UserRole] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


class UserProfile(DocumentModel):
    """A registered account as mirrored in the ``users`` collection."""
    id: str
    role: Optional[UserRole] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()
