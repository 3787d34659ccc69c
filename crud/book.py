# crud/book.py: owner-scoped book persistence
import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from database import safe_commit, safe_query
from errors import NotFound, Unauthenticated
from mappers import book_to_row, row_to_book
from models import Book as BookRow
from models import as_row
from schemas import Book, BookForm, BookUpdate

logger = logging.getLogger(__name__)


def require_owner(owner_id: Optional[str]) -> str:
    if not owner_id:
        raise Unauthenticated("You must be signed in to manage your collection.")
    return owner_id


def book_row_with_copies(book: BookRow) -> dict:
    row = as_row(book)
    row["copies"] = [as_row(copy) for copy in book.copies]
    return row


async def list_books(db: AsyncSession, owner_id: Optional[str]) -> List[Book]:
    owner_id = require_owner(owner_id)
    stmt = (
        select(BookRow)
        .where(BookRow.owner_id == owner_id)
        .options(selectinload(BookRow.copies))
        .execution_options(populate_existing=True)
        .order_by(BookRow.sort_index.asc())
    )
    result = await safe_query(db, lambda s: s.execute(stmt), "list books")
    return [row_to_book(book_row_with_copies(b)) for b in result.scalars().all()]


async def find_book(db: AsyncSession, owner_id: Optional[str], book_id: str) -> Optional[Book]:
    owner_id = require_owner(owner_id)
    stmt = (
        select(BookRow)
        .where(BookRow.id == book_id, BookRow.owner_id == owner_id)
        .options(selectinload(BookRow.copies))
        .execution_options(populate_existing=True)
    )
    result = await safe_query(db, lambda s: s.execute(stmt), "find book")
    book = result.scalar_one_or_none()
    return row_to_book(book_row_with_copies(book)) if book else None


async def next_sort_index(db: AsyncSession, owner_id: str) -> int:
    stmt = select(func.max(BookRow.sort_index)).where(BookRow.owner_id == owner_id)
    result = await safe_query(db, lambda s: s.execute(stmt), "read max sort index")
    current = result.scalar()
    return 0 if current is None else current + 1


async def create_book(db: AsyncSession, owner_id: Optional[str], fields: BookForm) -> Book:
    owner_id = require_owner(owner_id)
    row = book_to_row(fields)
    row.pop("id", None)
    row["owner_id"] = owner_id
    row["sort_index"] = await next_sort_index(db, owner_id)

    new_book = BookRow(**row)
    db.add(new_book)
    await safe_commit(db, "create book")
    await db.refresh(new_book)
    logger.info("Created book %s (%r) at position %d", new_book.id, new_book.title, new_book.sort_index)
    return row_to_book(as_row(new_book))


async def update_book_fields(db: AsyncSession, owner_id: Optional[str], book_id: str, fields: BookUpdate) -> None:
    owner_id = require_owner(owner_id)
    values = book_to_row(fields)
    for protected in ("id", "sort_index"):
        values.pop(protected, None)

    if not values:
        if await find_book(db, owner_id, book_id) is None:
            raise NotFound(f"Book {book_id} not found")
        return

    stmt = (
        update(BookRow)
        .where(BookRow.id == book_id, BookRow.owner_id == owner_id)
        .values(**values)
    )
    result = await safe_query(db, lambda s: s.execute(stmt), "update book")
    if result.rowcount == 0:
        await db.rollback()
        raise NotFound(f"Book {book_id} not found")
    await safe_commit(db, "update book")


async def delete_book(db: AsyncSession, owner_id: Optional[str], book_id: str) -> None:
    """Delete a book; its copies go with it through ON DELETE CASCADE."""
    owner_id = require_owner(owner_id)
    stmt = delete(BookRow).where(BookRow.id == book_id, BookRow.owner_id == owner_id)
    result = await safe_query(db, lambda s: s.execute(stmt), "delete book")
    if result.rowcount == 0:
        await db.rollback()
        raise NotFound(f"Book {book_id} not found")
    await safe_commit(db, "delete book")
    logger.info("Deleted book %s", book_id)


async def reorder_books(db: AsyncSession, owner_id: Optional[str], ordering: Sequence[Tuple[str, int]]) -> None:
    """Store ``(book_id, sort_index)`` pairs in one bulk update."""
    owner_id = require_owner(owner_id)
    if not ordering:
        return
    ids = [book_id for book_id, _ in ordering]
    stmt = select(BookRow.id).where(BookRow.owner_id == owner_id, BookRow.id.in_(ids))
    result = await safe_query(db, lambda s: s.execute(stmt), "check book ownership")
    missing = set(ids) - set(result.scalars().all())
    if missing:
        raise NotFound(f"Books not found: {', '.join(sorted(missing))}")

    params = [{"id": book_id, "sort_index": index} for book_id, index in ordering]
    await safe_query(db, lambda s: s.execute(update(BookRow), params), "reorder books")
    await safe_commit(db, "reorder books")
    logger.debug("Stored order of %d books", len(params))
