# services/collection.py: one owner's in-memory view of the collection
import logging
import uuid
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable, List, Optional, Sequence

from crud import book as book_crud
from crud import copy as copy_crud
from errors import InvalidInput, InventoryError, NotFound
from schemas import (
    Book,
    BookForm,
    BookLookup,
    BookUpdate,
    Condition,
    Copy,
    CopyForm,
    DragItem,
    LookupOutcome,
    SortOption,
)
from services.isbn_utils import normalize_isbn, same_isbn
from services.ordering import drop_target, move, save_book_order, save_copy_order

logger = logging.getLogger(__name__)

LookupFn = Callable[[str, Optional[str]], Awaitable[BookLookup]]
EstimatorFn = Callable[[str, Sequence[str], str, str], Awaitable[float]]


@dataclass
class Notice:
    title: str
    description: str
    variant: str = "default"


def listed_only_view(books: Sequence[Book]) -> List[Book]:
    """Keep only listed copies, then only books that still have copies."""
    kept = []
    for book in books:
        listed = [c for c in book.copies if c.is_listed]
        if listed:
            kept.append(book.model_copy(update={"copies": listed}))
    return kept


def title_matches(books: Sequence[Book], term: str) -> List[Book]:
    needle = term.strip().casefold()
    if not needle:
        return list(books)
    return [b for b in books if needle in b.title.casefold()]


def sort_books(books: Sequence[Book], option: SortOption | str) -> List[Book]:
    match SortOption(option):
        case SortOption.TITLE_ASC:
            return sorted(books, key=lambda b: b.title.casefold())
        case SortOption.TITLE_DESC:
            return sorted(books, key=lambda b: b.title.casefold(), reverse=True)
        case SortOption.YEAR_NEWEST:
            return sorted(books, key=lambda b: b.year or 0, reverse=True)
        case SortOption.YEAR_OLDEST:
            return sorted(books, key=lambda b: b.year or 0)
        case _:
            return list(books)


class CollectionState:
    """The book list, the view controls and pending notices for one owner.

    Every write goes through the persistence gateway and is followed by a
    refetch, except the listed toggle (patched in place) and drag reorders
    (applied optimistically, refetched only when saving fails). Failures
    are logged, queued as destructive notices and re-raised.
    """

    def __init__(
        self,
        session_factory,
        owner_id: Optional[str],
        lookup: Optional[LookupFn] = None,
        estimator: Optional[EstimatorFn] = None,
        default_country: str = "US",
    ):
        self._sessions = session_factory
        self.owner_id = owner_id
        self._lookup = lookup
        self._estimator = estimator
        self.default_country = default_country

        self.books: List[Book] = []
        self.search_term = ""
        self.sort_option = SortOption.MANUAL
        self.listed_only = False
        self.notices: List[Notice] = []

    # ─────────────────────── VIEW ───────────────────────

    def displayed_books(self) -> List[Book]:
        books = self.books
        if self.listed_only:
            books = listed_only_view(books)
        books = title_matches(books, self.search_term)
        return sort_books(books, self.sort_option)

    def find(self, book_id: str) -> Optional[Book]:
        return next((b for b in self.books if b.id == book_id), None)

    def drain_notices(self) -> List[Notice]:
        pending, self.notices = self.notices, []
        return pending

    def _fail(self, title: str, error: Exception) -> None:
        logger.error("%s for owner %s: %s", title, self.owner_id, error)
        self.notices.append(Notice(title, str(error), "destructive"))

    # ─────────────────────── LOADING ───────────────────────

    async def refresh(self) -> List[Book]:
        try:
            async with self._sessions() as db:
                self.books = await book_crud.list_books(db, self.owner_id)
        except InventoryError as e:
            self._fail("Error fetching books", e)
            raise
        return self.books

    # ─────────────────────── LOOKUP ───────────────────────

    def _local_match(self, isbn: str) -> Optional[Book]:
        return next((b for b in self.books if same_isbn(b.isbn, isbn)), None)

    async def lookup(self, isbn: str, country: Optional[str] = None) -> LookupOutcome:
        """Resolve an ISBN to an existing book or a new candidate.

        Books already in the collection are recognised without asking the
        lookup service; the service's answer is checked again because it
        may return the other ISBN form of a book we have.
        """
        cleaned = normalize_isbn(isbn or "")
        try:
            if not cleaned:
                raise InvalidInput("Please enter an ISBN.")
            existing = self._local_match(cleaned)
            if existing is not None:
                logger.info("ISBN %s is already in the collection as %s", cleaned, existing.id)
                return LookupOutcome(duplicate=True, book=existing)
            if self._lookup is None:
                raise InvalidInput("No lookup service is configured.")
            candidate = await self._lookup(cleaned, country or self.default_country)
        except InventoryError as e:
            self._fail("Lookup Error", e)
            raise

        existing = self._local_match(candidate.isbn)
        if existing is not None:
            return LookupOutcome(duplicate=True, book=existing)
        return LookupOutcome(duplicate=False, candidate=candidate)

    async def handle_scan(self, decoded: str) -> LookupOutcome:
        logger.debug("Scanned %r", decoded)
        return await self.lookup(decoded)

    # ─────────────────────── WRITES ───────────────────────

    async def add_book(self, draft: BookForm) -> Book:
        try:
            async with self._sessions() as db:
                created = await book_crud.create_book(db, self.owner_id, draft)
        except InventoryError as e:
            self._fail("Error adding book", e)
            raise
        await self.refresh()
        return self.find(created.id) or created

    async def update_book(self, book_id: str, changes: BookUpdate) -> Optional[Book]:
        try:
            async with self._sessions() as db:
                await book_crud.update_book_fields(db, self.owner_id, book_id, changes)
        except InventoryError as e:
            self._fail("Error updating book", e)
            raise
        await self.refresh()
        return self.find(book_id)

    async def save_copy(self, book_id: str, form: CopyForm, copy_id: Optional[str] = None) -> Copy:
        """Add a copy, or replace copy ``copy_id`` with the form's values."""
        copy = form.to_copy(copy_id or str(uuid.uuid4()), book_id)
        try:
            async with self._sessions() as db:
                saved = await copy_crud.upsert_copy(db, self.owner_id, book_id, copy)
        except InventoryError as e:
            self._fail("Error saving copy", e)
            raise
        await self.refresh()
        return saved

    async def delete_book(self, book_id: str) -> None:
        try:
            async with self._sessions() as db:
                await book_crud.delete_book(db, self.owner_id, book_id)
        except InventoryError as e:
            self._fail("Error deleting book", e)
            raise
        self.notices.append(Notice("Book Deleted", "The book and all its copies were removed."))
        await self.refresh()

    async def delete_copy(self, copy_id: str, book_id: Optional[str] = None) -> None:
        try:
            async with self._sessions() as db:
                await copy_crud.delete_copy(db, self.owner_id, copy_id, book_id)
        except InventoryError as e:
            self._fail("Error deleting copy", e)
            raise
        self.notices.append(Notice("Copy Deleted", "The copy was removed from your inventory."))
        await self.refresh()

    async def toggle_listed(self, book_id: str, copy_id: str, is_listed: bool) -> Optional[Copy]:
        """Flip one copy's listed flag, patching memory instead of refetching."""
        book = self.find(book_id)
        current = next((c for c in book.copies if c.id == copy_id), None) if book else None
        if current is None:
            return None

        updated = Copy.model_validate({**current.model_dump(exclude={"financials"}), "is_listed": is_listed})
        try:
            async with self._sessions() as db:
                saved = await copy_crud.upsert_copy(db, self.owner_id, book_id, updated)
        except InventoryError as e:
            self._fail("Error updating copy", e)
            raise

        copies = [saved if c.id == copy_id else c for c in book.copies]
        self.books = [
            b.model_copy(update={"copies": copies}) if b.id == book_id else b
            for b in self.books
        ]
        return saved

    # ─────────────────────── ORDERING ───────────────────────

    async def handle_drag_end(self, active: DragItem, over: Optional[DragItem]) -> bool:
        """Apply a drop locally, then persist it. Returns False for no-op drops."""
        match drop_target(active, over):
            case "book":
                moved = move(self.books, active.id, over.id)
                if moved is None:
                    return False
                self.books = moved
                save = partial(save_book_order, owner_id=self.owner_id, books=moved)
            case "copy":
                book = self.find(active.book_id)
                moved = move(book.copies, active.id, over.id) if book else None
                if moved is None:
                    return False
                self.books = [
                    b.model_copy(update={"copies": moved}) if b.id == book.id else b
                    for b in self.books
                ]
                save = partial(save_copy_order, owner_id=self.owner_id, book_id=book.id, copies=moved)
            case _:
                return False

        try:
            async with self._sessions() as db:
                await save(db)
        except InventoryError as e:
            self._fail("Error saving order", e)
            logger.warning("Reverting to the stored order for owner %s", self.owner_id)
            try:
                await self.refresh()
            except InventoryError as refresh_error:
                logger.error("Could not restore the stored order: %s", refresh_error)
            raise e
        return True

    # ─────────────────────── PRICING ───────────────────────

    async def suggest_price(self, book_id: str, condition: Condition | str) -> float:
        book = self.find(book_id) or await self._reload_for(book_id)
        try:
            if book is None:
                raise NotFound(f"Book {book_id} not found")
            if self._estimator is None:
                raise InvalidInput("No price estimator is configured.")
            price = await self._estimator(book.title, book.authors, book.isbn, Condition(condition).value)
        except InventoryError as e:
            self._fail("AI Suggestion Failed", e)
            raise
        return round(price, 2)

    async def _reload_for(self, book_id: str) -> Optional[Book]:
        await self.refresh()
        return self.find(book_id)
