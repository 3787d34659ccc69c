# models.py
from datetime import date, datetime
from uuid import uuid4

from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from database import Base


def new_id() -> str:
    return str(uuid4())


class IsoDate(TypeDecorator):
    """DATE column that also accepts ISO date strings on the way in."""

    impl = Date
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if isinstance(value, str):
            return date.fromisoformat(value[:10]) if value else None
        if isinstance(value, datetime):
            return value.date()
        return value


class Book(Base):
    __tablename__ = "books"
    id = Column(String(36), primary_key=True, default=new_id)
    owner_id = Column(String(255), nullable=False, index=True)
    title = Column(String, nullable=False, index=True)
    authors = Column(String, nullable=False, default="")
    year = Column(Integer, nullable=True)
    publisher = Column(String(255), nullable=False, default="")
    binding = Column(String(32), nullable=False, default="Paperback")
    isbn = Column(String(13), nullable=False, default="N/A", index=True)
    cover_image_url = Column(String, nullable=False, default="")
    sort_index = Column(Integer, nullable=False, default=0)

    copies = relationship(
        "Copy",
        back_populates="book",
        order_by="Copy.sort_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Copy(Base):
    __tablename__ = "copies"
    id = Column(String(36), primary_key=True, default=new_id)
    book_id = Column(String(36), ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    condition = Column(String(16), nullable=False, default="Good")
    purchase_price = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    market_price = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    acquired_date = Column(IsoDate, nullable=True)
    purchase_location = Column(String(255), nullable=False, default="")
    notes = Column(Text, nullable=False, default="")
    is_listed = Column(Boolean, nullable=False, default=False)
    sort_index = Column(Integer, nullable=False, default=0)

    book = relationship("Book", back_populates="copies")


def as_row(obj: Base) -> dict:
    """Column values of a mapped object, keyed by column name."""
    return {column.key: getattr(obj, column.key) for column in obj.__table__.columns}
