# crud/copy.py: copies belong to a book; ownership is checked through it
import logging
from typing import Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crud.book import require_owner
from database import safe_commit, safe_query
from errors import NotFound
from mappers import copy_to_row, row_to_copy
from models import Book as BookRow
from models import Copy as CopyRow
from models import as_row
from schemas import Copy

logger = logging.getLogger(__name__)


async def _check_book(db: AsyncSession, owner_id: str, book_id: str) -> None:
    stmt = select(BookRow.id).where(BookRow.id == book_id, BookRow.owner_id == owner_id)
    result = await safe_query(db, lambda s: s.execute(stmt), "check book ownership")
    if result.scalar_one_or_none() is None:
        raise NotFound(f"Book {book_id} not found")


async def next_copy_index(db: AsyncSession, book_id: str) -> int:
    stmt = select(func.max(CopyRow.sort_index)).where(CopyRow.book_id == book_id)
    result = await safe_query(db, lambda s: s.execute(stmt), "read max copy index")
    current = result.scalar()
    return 0 if current is None else current + 1


async def upsert_copy(db: AsyncSession, owner_id: Optional[str], book_id: str, copy: Copy) -> Copy:
    """Insert or replace a copy by id under ``book_id``.

    The whole copy value is written; a copy seen for the first time is
    placed after its siblings.
    """
    owner_id = require_owner(owner_id)
    await _check_book(db, owner_id, book_id)

    row = copy_to_row(copy)
    row["book_id"] = book_id

    existing = await safe_query(db, lambda s: s.get(CopyRow, copy.id, populate_existing=True), "load copy")
    if existing is not None:
        if existing.book_id != book_id:
            await _check_book(db, owner_id, existing.book_id)
        for column, value in row.items():
            setattr(existing, column, value)
        saved = existing
    else:
        row["sort_index"] = await next_copy_index(db, book_id)
        saved = CopyRow(**row)
        db.add(saved)

    await safe_commit(db, "save copy")
    await db.refresh(saved)
    logger.debug("Saved copy %s of book %s", saved.id, book_id)
    return row_to_copy(as_row(saved))


async def delete_copy(db: AsyncSession, owner_id: Optional[str], copy_id: str, book_id: Optional[str] = None) -> None:
    """Delete one copy, optionally only if it sits under ``book_id``.
    Siblings keep their sort indices."""
    owner_id = require_owner(owner_id)
    owned_books = select(BookRow.id).where(BookRow.owner_id == owner_id)
    if book_id is not None:
        owned_books = owned_books.where(BookRow.id == book_id)
    stmt = delete(CopyRow).where(CopyRow.id == copy_id, CopyRow.book_id.in_(owned_books))
    result = await safe_query(db, lambda s: s.execute(stmt), "delete copy")
    if result.rowcount == 0:
        await db.rollback()
        raise NotFound(f"Copy {copy_id} not found")
    await safe_commit(db, "delete copy")
    logger.info("Deleted copy %s", copy_id)


async def reorder_copies(db: AsyncSession, owner_id: Optional[str], book_id: str, copies: Sequence[Copy]) -> None:
    """Give the book's copies sort indices 0..n-1 in list order."""
    owner_id = require_owner(owner_id)
    await _check_book(db, owner_id, book_id)
    if not copies:
        return

    ids = [copy.id for copy in copies]
    stmt = select(CopyRow.id).where(CopyRow.book_id == book_id, CopyRow.id.in_(ids))
    result = await safe_query(db, lambda s: s.execute(stmt), "check copy ownership")
    missing = set(ids) - set(result.scalars().all())
    if missing:
        raise NotFound(f"Copies not found in book {book_id}: {', '.join(sorted(missing))}")

    params = [{"id": copy_id, "sort_index": index} for index, copy_id in enumerate(ids)]
    await safe_query(db, lambda s: s.execute(update(CopyRow), params), "reorder copies")
    await safe_commit(db, "reorder copies")
    logger.debug("Stored order of %d copies in book %s", len(params), book_id)
