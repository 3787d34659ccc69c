import enum
import math
from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from services.isbn_utils import NO_ISBN, is_valid, normalize_isbn


class Binding(str, enum.Enum):
    HARDCOVER = "Hardcover"
    PAPERBACK = "Paperback"
    TRADE_PB = "Trade PB/Uk-B"
    MASS_MARKET = "Mass Market/UK-A"
    UK_C = "UK-C"
    OVERSIZE = "Oversize/Softcover"
    SPECIALTY = "specialty binding"
    OTHER = "other"


class Condition(str, enum.Enum):
    BRAND_NEW = "Brand New"
    LIKE_NEW = "Like New"
    VERY_GOOD = "Very Good"
    GOOD = "Good"
    ACCEPTABLE = "Acceptable"


class SortOption(str, enum.Enum):
    MANUAL = "manual"
    TITLE_ASC = "title-asc"
    TITLE_DESC = "title-desc"
    YEAR_NEWEST = "year-newest"
    YEAR_OLDEST = "year-oldest"


ENTITY_CONFIG = ConfigDict(populate_by_name=True, use_enum_values=True)


class Financials(BaseModel):
    profit: Optional[float] = None
    margin: Optional[float] = None
    roi: Optional[float] = None


def compute_financials(purchase_price: Optional[float], market_price: Optional[float]) -> Financials:
    """Profit, margin % and ROI % of a copy.

    Margin is 0 when the market price is 0; ROI is absent when the copy
    was free. Everything is absent unless both prices are known.
    """
    if purchase_price is None or market_price is None:
        return Financials()
    profit = market_price - purchase_price
    margin = profit / market_price * 100 if market_price > 0 else 0.0
    roi = profit / purchase_price * 100 if purchase_price > 0 else None
    return Financials(profit=profit, margin=margin, roi=roi)


class Copy(BaseModel):
    model_config = ENTITY_CONFIG

    id: str
    book_id: Optional[str] = Field(None, alias="bookId")
    condition: Condition = Condition.GOOD
    purchase_price: Optional[float] = Field(None, alias="purchasePrice")
    market_price: Optional[float] = Field(None, alias="marketPrice")
    purchase_date: Optional[date] = Field(None, alias="purchaseDate")
    purchase_location: str = Field("", alias="purchaseLocation")
    notes: str = ""
    is_listed: bool = Field(False, alias="isListed")
    sort_index: int = Field(0, alias="sortIndex")

    @field_validator("purchase_location", "notes", mode="before")
    @classmethod
    def none_as_blank(cls, v):
        return "" if v is None else v

    @computed_field
    @property
    def financials(self) -> Financials:
        return compute_financials(self.purchase_price, self.market_price)


class Book(BaseModel):
    model_config = ENTITY_CONFIG

    id: str
    title: str
    authors: list[str] = Field(default_factory=list)
    year: Optional[int] = None
    publisher: str = ""
    binding: Binding = Binding.PAPERBACK
    isbn: str = NO_ISBN
    cover_url: str = Field("", alias="coverUrl")
    sort_index: int = Field(0, alias="sortIndex")
    copies: list[Copy] = Field(default_factory=list)

    @field_validator("publisher", "cover_url", mode="before")
    @classmethod
    def none_as_blank(cls, v):
        return "" if v is None else v

    @field_validator("isbn", mode="before")
    @classmethod
    def none_as_no_isbn(cls, v):
        return NO_ISBN if v in (None, "") else v


# ─────────────────────── FORMS ───────────────────────

def _split_authors(v):
    if isinstance(v, str):
        v = v.split(",")
    if isinstance(v, (list, tuple)):
        return [a.strip() for a in v if isinstance(a, str) and a.strip()]
    return v


def _blank_as_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


class BookUpdate(BaseModel):
    """Book details as edited; only the fields that were sent are applied."""

    model_config = ENTITY_CONFIG

    title: Optional[str] = Field(None, min_length=1)
    authors: Optional[list[str]] = None
    year: Optional[int] = Field(None, ge=0, le=9999)
    publisher: Optional[str] = None
    binding: Optional[Binding] = None
    isbn: Optional[str] = None
    cover_url: Optional[str] = Field(None, alias="coverUrl")

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("authors", mode="before")
    @classmethod
    def parse_authors(cls, v):
        return _split_authors(v)

    @field_validator("authors")
    @classmethod
    def require_author(cls, v):
        if v is not None and not v:
            raise ValueError("At least one author is required")
        return v

    # explicit nulls only; unsent fields never reach this validator
    @field_validator("title", "binding")
    @classmethod
    def not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be empty")
        return v

    @field_validator("year", mode="before")
    @classmethod
    def parse_year(cls, v):
        return _blank_as_none(v)

    @field_validator("publisher", mode="before")
    @classmethod
    def publisher_text(cls, v):
        return "" if v is None else v

    @field_validator("isbn", mode="before")
    @classmethod
    def check_isbn(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return NO_ISBN
        if not isinstance(v, str):
            return v
        cleaned = normalize_isbn(v)
        if cleaned == NO_ISBN:
            return cleaned
        if not is_valid(cleaned):
            raise ValueError("ISBN check digit does not match")
        return cleaned

    @field_validator("cover_url", mode="before")
    @classmethod
    def check_cover_url(cls, v):
        if v is None:
            return ""
        if isinstance(v, str):
            v = v.strip()
            if v and not v.startswith(("http://", "https://")):
                raise ValueError("Cover URL must be an http(s) URL")
        return v


class BookForm(BookUpdate):
    """A new book, entered by hand or confirmed from a lookup."""

    title: str = Field(..., min_length=1)
    authors: list[str]
    binding: Binding = Binding.PAPERBACK
    publisher: str = ""
    isbn: str = NO_ISBN
    cover_url: str = Field("", alias="coverUrl")


class CopyForm(BaseModel):
    model_config = ENTITY_CONFIG

    condition: Condition = Condition.GOOD
    purchase_price: Optional[float] = Field(None, alias="purchasePrice")
    market_price: Optional[float] = Field(None, alias="marketPrice")
    purchase_date: Optional[date] = Field(None, alias="purchaseDate")
    purchase_location: str = Field("", alias="purchaseLocation")
    notes: str = ""
    is_listed: bool = Field(False, alias="isListed")

    @field_validator("purchase_price", "market_price", mode="before")
    @classmethod
    def parse_price(cls, v):
        v = _blank_as_none(v)
        if isinstance(v, str):
            try:
                v = float(v.strip())
            except ValueError:
                raise ValueError("Invalid number") from None
            if not math.isfinite(v):
                raise ValueError("Invalid number")
        return v

    @field_validator("purchase_price", "market_price")
    @classmethod
    def non_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError("Price cannot be negative.")
        return v

    @field_validator("purchase_date", mode="before")
    @classmethod
    def parse_date(cls, v):
        return _blank_as_none(v)

    @field_validator("purchase_location", "notes", mode="before")
    @classmethod
    def none_as_blank(cls, v):
        return "" if v is None else v

    def to_copy(self, copy_id: str, book_id: str) -> Copy:
        return Copy(id=copy_id, book_id=book_id, **self.model_dump())


# ─────────────────────── LOOKUP / ACTIONS ───────────────────────

class BookLookup(BaseModel):
    """Metadata returned by an ISBN lookup, ready to confirm as a new book."""

    model_config = ENTITY_CONFIG

    title: str
    authors: list[str] = Field(default_factory=list)
    published_year: Optional[int] = Field(None, alias="publishedYear")
    publisher: Optional[str] = None
    binding: Binding = Binding.PAPERBACK
    isbn: str
    cover_url: Optional[str] = Field(None, alias="coverUrl")


class LookupOutcome(BaseModel):
    """Either an existing book to add a copy to, or a new book to confirm."""

    model_config = ENTITY_CONFIG

    duplicate: bool
    book: Optional[Book] = None
    candidate: Optional[BookLookup] = None


class DragItem(BaseModel):
    kind: Literal["book", "copy"]
    id: str
    book_id: Optional[str] = Field(None, alias="bookId")

    model_config = ConfigDict(populate_by_name=True)


class DragEnd(BaseModel):
    active: DragItem
    over: Optional[DragItem] = None


class LookupRequest(BaseModel):
    isbn: str
    country: Optional[str] = Field(None, pattern=r"^[A-Za-z]{2}$")


class ScanRequest(BaseModel):
    decoded: str


class ListedToggle(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_listed: bool = Field(..., alias="isListed")


class PriceRequest(BaseModel):
    condition: Condition


class PriceEstimate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    market_price: float = Field(..., alias="marketPrice")


class NoticeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str
    description: str
    variant: str = "default"
