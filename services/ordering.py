# services/ordering.py: manual drag-and-drop ordering
from typing import List, Optional, Sequence, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from crud.book import reorder_books
from crud.copy import reorder_copies
from schemas import Book, Copy, DragItem

Item = TypeVar("Item", Book, Copy)


def array_move(items: Sequence, old_index: int, new_index: int) -> list:
    """Take the item at ``old_index`` out and put it back at ``new_index``."""
    moved = list(items)
    moved.insert(new_index, moved.pop(old_index))
    return moved


def reindex(items: Sequence[Item]) -> List[Item]:
    return [item.model_copy(update={"sort_index": position}) for position, item in enumerate(items)]


def move(items: Sequence[Item], active_id: str, over_id: str) -> Optional[List[Item]]:
    """New order after dropping ``active_id`` onto ``over_id``, with dense
    sort indices. None when there is nothing to move."""
    if active_id == over_id:
        return None
    ids = [item.id for item in items]
    if active_id not in ids or over_id not in ids:
        return None
    return reindex(array_move(items, ids.index(active_id), ids.index(over_id)))


def drop_target(active: DragItem, over: Optional[DragItem]) -> Optional[str]:
    """Which sequence a drop reorders: "book", "copy" or None.

    Copies only move within their own book; mixed drops do nothing.
    """
    if over is None or active.kind != over.kind or active.id == over.id:
        return None
    if active.kind == "copy" and (not active.book_id or active.book_id != over.book_id):
        return None
    return active.kind


async def save_book_order(db: AsyncSession, owner_id: Optional[str], books: Sequence[Book]) -> None:
    await reorder_books(db, owner_id, [(book.id, book.sort_index) for book in books])


async def save_copy_order(db: AsyncSession, owner_id: Optional[str], book_id: str, copies: Sequence[Copy]) -> None:
    await reorder_copies(db, owner_id, book_id, copies)
