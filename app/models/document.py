from sqlalchemy import Column, String, JSON, Index
from app.database import Base, TimestampMixin


class DocumentRecord(Base, TimestampMixin):
    """
    One loosely-typed document, addressed by (collection, id).

    The ``data`` column holds the camelCase field bag exactly as written by
    the services; the ``id`` is duplicated into it when read back.
    """
    __tablename__ = "document"

    collection = Column(String, primary_key=True)
    id = Column(String, primary_key=True)
    data = Column(JSON, nullable=False, default=dict)

    __table_args__ = (
        Index("ix_document_collection", "collection"),
    )

    def to_dict(self) -> dict:
        return {**(self.data or {}), "id": self.id}
