"""
Translation between persisted rows and application entities.

Rows are flat dicts keyed by column name (``cover_image_url``,
``acquired_date``, authors as one comma separated string). Entities are the
pydantic ``Book`` / ``Copy`` models. The field tables below are the only
place the two vocabularies meet; a column missing from a table is never
copied, so a misspelled key cannot slip through unnoticed.

None of these functions fail on well-typed input: malformed prices, dates
or ISBNs are rejected by the forms before they get here.
"""
from datetime import date, datetime
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel

from schemas import Book, BookForm, BookUpdate, Copy

AUTHOR_SEPARATOR = ", "

# (entity attribute, row column)
BOOK_FIELDS = (
    ("id", "id"),
    ("title", "title"),
    ("year", "year"),
    ("publisher", "publisher"),
    ("binding", "binding"),
    ("isbn", "isbn"),
    ("cover_url", "cover_image_url"),
    ("sort_index", "sort_index"),
)

COPY_FIELDS = (
    ("id", "id"),
    ("book_id", "book_id"),
    ("condition", "condition"),
    ("notes", "notes"),
    ("purchase_location", "purchase_location"),
    ("sort_index", "sort_index"),
    ("purchase_price", "purchase_price"),
    ("market_price", "market_price"),
    ("is_listed", "is_listed"),
)

NESTED_COPY_KEYS = ("copies", "inventory")


def split_authors(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


def join_authors(authors: list[str]) -> str:
    return AUTHOR_SEPARATOR.join(authors)


def parse_row_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def _set_values(model: BaseModel) -> dict[str, Any]:
    """Attribute values the caller actually provided."""
    return {name: getattr(model, name) for name in model.model_fields_set}


def row_to_book(row: Mapping[str, Any]) -> Book:
    data = {attr: row[column] for attr, column in BOOK_FIELDS if row.get(column) is not None}
    data["authors"] = split_authors(row.get("authors"))
    nested = next((row[key] for key in NESTED_COPY_KEYS if row.get(key)), None)
    copies = [row_to_copy(copy_row) for copy_row in nested or []]
    data["copies"] = sorted(copies, key=lambda c: c.sort_index)
    return Book(**data)


def book_to_row(book: Union[Book, BookForm, BookUpdate]) -> dict[str, Any]:
    values = _set_values(book)
    row = {column: values[attr] for attr, column in BOOK_FIELDS if attr in values}
    if "authors" in values and values["authors"] is not None:
        row["authors"] = join_authors(values["authors"])
    return row


def row_to_copy(row: Mapping[str, Any]) -> Copy:
    data = {attr: row[column] for attr, column in COPY_FIELDS if row.get(column) is not None}
    data["purchase_date"] = parse_row_date(row.get("acquired_date"))
    return Copy(**data)


def copy_to_row(copy: Copy) -> dict[str, Any]:
    values = _set_values(copy)
    row = {column: values[attr] for attr, column in COPY_FIELDS if attr in values}
    row["acquired_date"] = copy.purchase_date.isoformat() if copy.purchase_date else None
    return row
