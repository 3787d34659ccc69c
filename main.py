# main.py: JSON API over one collection view per owner
import logging
from contextlib import asynccontextmanager
from functools import partial
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse, Response

from config import Settings, get_settings
from database import AsyncSessionLocal, init_db
from errors import (
    BackendError,
    InvalidInput,
    InventoryError,
    LookupFailed,
    NotFound,
    Unauthenticated,
)
from schemas import (
    Book,
    BookForm,
    BookUpdate,
    Copy,
    CopyForm,
    DragEnd,
    ListedToggle,
    LookupOutcome,
    LookupRequest,
    NoticeOut,
    PriceEstimate,
    PriceRequest,
    ScanRequest,
    SortOption,
)
from services.collection import CollectionState
from services.google_books import google_lookup
from services.market_price import MarketPriceEstimator

logger = logging.getLogger(__name__)

app_settings = get_settings()
logging.basicConfig(
    level=logging.DEBUG if app_settings.debug else app_settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


app = FastAPI(title="Book Inventory", debug=app_settings.debug, lifespan=lifespan)
app.state.collections = {}
app.state.session_factory = AsyncSessionLocal

# most specific first; NotFound is a BackendError
STATUS_CODES = (
    (Unauthenticated, 401),
    (InvalidInput, 422),
    (NotFound, 404),
    (BackendError, 500),
    (LookupFailed, 502),
)


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    status = next((code for kind, code in STATUS_CODES if isinstance(exc, kind)), 500)
    logger.debug("%s %s -> %d: %s", request.method, request.url.path, status, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


# ─────────────────────── DEPENDENCIES ───────────────────────

def get_owner(
    x_owner_id: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> str:
    if x_owner_id and x_owner_id.strip():
        return x_owner_id.strip()
    if settings.require_session:
        raise Unauthenticated("You must be signed in to manage your collection.")
    return settings.default_owner_id


def build_collection(owner_id: str, settings: Settings, session_factory) -> CollectionState:
    lookup = partial(google_lookup, api_key=settings.google_api_key, timeout=settings.lookup_timeout)
    estimator = MarketPriceEstimator(api_key=settings.anthropic_api_key, model=settings.pricing_model)
    return CollectionState(
        session_factory,
        owner_id,
        lookup=lookup,
        estimator=estimator,
        default_country=settings.lookup_country,
    )


async def get_collection(
    request: Request,
    owner_id: str = Depends(get_owner),
    settings: Settings = Depends(get_settings),
) -> CollectionState:
    collections = request.app.state.collections
    state = collections.get(owner_id)
    if state is None:
        state = build_collection(owner_id, settings, request.app.state.session_factory)
        await state.refresh()
        collections[owner_id] = state
    return state


def dump(model) -> dict:
    return model.model_dump(by_alias=True, mode="json")


# ─────────────────────── BOOKS ───────────────────────

@app.get("/books", response_model=list[Book])
async def list_books(
    q: str = "",
    sort: SortOption = SortOption.MANUAL,
    listed_only: bool = False,
    state: CollectionState = Depends(get_collection),
):
    await state.refresh()
    state.search_term = q
    state.sort_option = sort
    state.listed_only = listed_only
    return state.displayed_books()


@app.post("/books", response_model=Book, status_code=201)
async def add_book(form: BookForm, state: CollectionState = Depends(get_collection)):
    return await state.add_book(form)


@app.patch("/books/{book_id}", response_model=Book)
async def update_book(book_id: str, changes: BookUpdate, state: CollectionState = Depends(get_collection)):
    book = await state.update_book(book_id, changes)
    if book is None:
        raise NotFound(f"Book {book_id} not found")
    return book


@app.delete("/books/{book_id}", status_code=204)
async def delete_book(book_id: str, state: CollectionState = Depends(get_collection)):
    await state.delete_book(book_id)
    return Response(status_code=204)


# ─────────────────────── COPIES ───────────────────────

@app.post("/books/{book_id}/copies", response_model=Copy, status_code=201)
async def add_copy(book_id: str, form: CopyForm, state: CollectionState = Depends(get_collection)):
    return await state.save_copy(book_id, form)


@app.put("/books/{book_id}/copies/{copy_id}", response_model=Copy)
async def edit_copy(book_id: str, copy_id: str, form: CopyForm, state: CollectionState = Depends(get_collection)):
    return await state.save_copy(book_id, form, copy_id=copy_id)


@app.delete("/books/{book_id}/copies/{copy_id}", status_code=204)
async def delete_copy(book_id: str, copy_id: str, state: CollectionState = Depends(get_collection)):
    await state.delete_copy(copy_id, book_id=book_id)
    return Response(status_code=204)


@app.post("/books/{book_id}/copies/{copy_id}/listed", response_model=Copy)
async def toggle_listed(
    book_id: str,
    copy_id: str,
    toggle: ListedToggle,
    state: CollectionState = Depends(get_collection),
):
    saved = await state.toggle_listed(book_id, copy_id, toggle.is_listed)
    if saved is None:
        raise NotFound(f"Copy {copy_id} not found in book {book_id}")
    return saved


@app.post("/books/{book_id}/price-estimate", response_model=PriceEstimate)
async def price_estimate(book_id: str, body: PriceRequest, state: CollectionState = Depends(get_collection)):
    price = await state.suggest_price(book_id, body.condition)
    return PriceEstimate(market_price=price)


# ─────────────────────── ORDERING / LOOKUP ───────────────────────

@app.post("/reorder")
async def reorder(event: DragEnd, state: CollectionState = Depends(get_collection)):
    changed = await state.handle_drag_end(event.active, event.over)
    return {"changed": changed, "books": [dump(b) for b in state.displayed_books()]}


@app.post("/lookup", response_model=LookupOutcome)
async def lookup(body: LookupRequest, state: CollectionState = Depends(get_collection)):
    return await state.lookup(body.isbn, body.country.upper() if body.country else None)


@app.post("/scan", response_model=LookupOutcome)
async def scan(body: ScanRequest, state: CollectionState = Depends(get_collection)):
    return await state.handle_scan(body.decoded)


@app.get("/notices", response_model=list[NoticeOut])
async def notices(state: CollectionState = Depends(get_collection)):
    return [NoticeOut.model_validate(n) for n in state.drain_notices()]
