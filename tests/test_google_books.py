"""Google Books lookups against a mocked transport."""
import httpx
import pytest

from errors import LookupFailed
from services.google_books import google_lookup, infer_binding

from .conftest import HOBBIT_ISBN

HOBBIT_VOLUME = {
    "title": "The Hobbit",
    "authors": ["J.R.R. Tolkien"],
    "publisher": "Mariner Books",
    "publishedDate": "2012-09-18",
    "industryIdentifiers": [
        {"type": "ISBN_10", "identifier": "054792822X"},
        {"type": "ISBN_13", "identifier": HOBBIT_ISBN},
    ],
    "imageLinks": {"smallThumbnail": "http://books.google.com/small", "thumbnail": "http://books.google.com/thumb"},
}


def client_for(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def answer(status=200, json=None):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(status, json=json)

    return handler, seen


async def test_parses_first_volume():
    handler, seen = answer(json={"items": [{"volumeInfo": HOBBIT_VOLUME}]})
    async with client_for(handler) as client:
        book = await google_lookup("978-0547928227", "gb", api_key="k", client=client)

    assert book.title == "The Hobbit"
    assert book.authors == ["J.R.R. Tolkien"]
    assert book.published_year == 2012
    assert book.publisher == "Mariner Books"
    assert book.isbn == HOBBIT_ISBN
    assert book.cover_url == "https://books.google.com/thumb"
    assert book.binding == "Paperback"

    params = seen[0].url.params
    assert params["q"] == f"isbn:{HOBBIT_ISBN}"
    assert params["country"] == "GB"
    assert params["key"] == "k"


async def test_falls_back_to_isbn_10_then_query():
    volume = dict(HOBBIT_VOLUME, industryIdentifiers=[{"type": "ISBN_10", "identifier": "054792822X"}])
    handler, _ = answer(json={"items": [{"volumeInfo": volume}]})
    async with client_for(handler) as client:
        assert (await google_lookup(HOBBIT_ISBN, api_key="k", client=client)).isbn == "054792822X"

    volume = {"title": "Untraceable", "publishedDate": "circa"}
    handler, _ = answer(json={"items": [{"volumeInfo": volume}]})
    async with client_for(handler) as client:
        book = await google_lookup(HOBBIT_ISBN, api_key="k", client=client)
    assert book.isbn == HOBBIT_ISBN
    assert book.published_year is None
    assert book.cover_url is None


async def test_no_items():
    handler, _ = answer(json={"totalItems": 0})
    async with client_for(handler) as client:
        with pytest.raises(LookupFailed, match="No book found for this ISBN in the CA catalog."):
            await google_lookup(HOBBIT_ISBN, "ca", api_key="k", client=client)


async def test_missing_key_never_calls_out():
    handler, seen = answer(json={})
    async with client_for(handler) as client:
        with pytest.raises(LookupFailed, match="not configured"):
            await google_lookup(HOBBIT_ISBN, api_key=None, client=client)
    assert seen == []


async def test_forbidden_mentions_the_key():
    handler, _ = answer(403, {"error": {"message": "API key not valid."}})
    async with client_for(handler) as client:
        with pytest.raises(LookupFailed) as excinfo:
            await google_lookup(HOBBIT_ISBN, api_key="bad", client=client)
    message = str(excinfo.value)
    assert "403" in message
    assert "API key not valid." in message
    assert "incorrect API key" in message


async def test_location_hint():
    handler, _ = answer(400, {"error": {"message": "Cannot determine user location for geographically restricted operation."}})
    async with client_for(handler) as client:
        with pytest.raises(LookupFailed, match="Please specify a country"):
            await google_lookup(HOBBIT_ISBN, api_key="k", client=client)


async def test_non_json_body():
    def handler(request):
        return httpx.Response(200, text="<html>Sign in to the network</html>")

    async with client_for(handler) as client:
        with pytest.raises(LookupFailed, match="Failed to fetch book data"):
            await google_lookup(HOBBIT_ISBN, api_key="k", client=client)


async def test_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with client_for(handler) as client:
        with pytest.raises(LookupFailed, match="Failed to fetch book data"):
            await google_lookup(HOBBIT_ISBN, api_key="k", client=client)


@pytest.mark.parametrize(
    "info, expected",
    [
        ({"title": "Dune (Hardcover Edition)"}, "Hardcover"),
        ({"description": "A mass market paperback"}, "Mass Market/UK-A"),
        ({"subtitle": "Trade Paperback"}, "Trade PB/Uk-B"),
        ({"title": "Atlas", "description": "An oversize art book"}, "Oversize/Softcover"),
        ({"title": "Plain"}, "Paperback"),
    ],
)
def test_infer_binding(info, expected):
    assert infer_binding(info) == expected
