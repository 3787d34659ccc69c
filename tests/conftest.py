"""Shared fixtures: in-memory databases, sessions and sample rows."""
import os

import pytest
import pytest_asyncio

from config import reset_settings
from database import init_db, make_engine, make_sessionmaker
from schemas import BookForm, BookLookup

OWNER = "owner-1"
OTHER_OWNER = "owner-2"
HOBBIT_ISBN = "9780547928227"


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Each test sees default settings, whatever the developer's environment."""
    for name in list(os.environ):
        if name.startswith("BOOK_INVENTORY_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(os.path.dirname(__file__))
    reset_settings()
    yield
    reset_settings()


@pytest_asyncio.fixture
async def engine():
    test_engine = make_engine("sqlite+aiosqlite://")
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def sessions(engine):
    return make_sessionmaker(engine)


@pytest_asyncio.fixture
async def db(sessions):
    async with sessions() as session:
        yield session


@pytest.fixture
def hobbit_form() -> BookForm:
    return BookForm(
        title="The Hobbit",
        authors="J.R.R. Tolkien",
        year=2012,
        publisher="Mariner Books",
        isbn=HOBBIT_ISBN,
    )


@pytest.fixture
def hobbit_lookup() -> BookLookup:
    return BookLookup(
        title="The Hobbit",
        authors=["J.R.R. Tolkien"],
        published_year=2012,
        publisher="Mariner Books",
        isbn=HOBBIT_ISBN,
        cover_url="https://books.google.com/hobbit.jpg",
    )
