# services/google_books.py: ISBN metadata from the Google Books API
import logging
import re
from typing import Optional

import httpx

from errors import LookupFailed
from schemas import Binding, BookLookup
from services.isbn_utils import normalize_isbn

logger = logging.getLogger(__name__)

VOLUMES_URL = "https://www.googleapis.com/books/v1/volumes"

# first match wins
BINDING_KEYWORDS = [
    (("mass market",), Binding.MASS_MARKET),
    (("trade paperback", "trade pb"), Binding.TRADE_PB),
    (("hardcover", "hardback", "hard cover"), Binding.HARDCOVER),
    (("oversize",), Binding.OVERSIZE),
    (("leather", "slipcase", "special edition"), Binding.SPECIALTY),
]


def infer_binding(info: dict) -> Binding:
    """Best guess at the binding from the volume's free text; Paperback if unsure."""
    text = " ".join(
        str(info.get(key, "")) for key in ("title", "subtitle", "description")
    ).lower()
    for keywords, binding in BINDING_KEYWORDS:
        if any(k in text for k in keywords):
            return binding
    return Binding.PAPERBACK


def pick_isbn(info: dict, queried: str) -> str:
    identifiers = {
        ident.get("type"): ident.get("identifier", "")
        for ident in info.get("industryIdentifiers", [])
    }
    for kind in ("ISBN_13", "ISBN_10"):
        if identifiers.get(kind):
            return normalize_isbn(identifiers[kind])
    return queried


def parse_volume(info: dict, queried: str) -> BookLookup:
    year_match = re.match(r"\s*(\d{4})", info.get("publishedDate") or "")
    images = info.get("imageLinks") or {}
    cover = images.get("thumbnail") or images.get("smallThumbnail")
    return BookLookup(
        title=info.get("title", ""),
        authors=info.get("authors", []),
        published_year=int(year_match.group(1)) if year_match else None,
        publisher=info.get("publisher"),
        binding=infer_binding(info),
        isbn=pick_isbn(info, queried),
        cover_url=cover.replace("http://", "https://") if cover else None,
    )


def _error_message(response: httpx.Response) -> str:
    message = f"Google Books API request failed with status: {response.status_code}"
    try:
        detail = response.json().get("error", {}).get("message")
    except ValueError:
        detail = None
        logger.error("Google Books API non-JSON error: %s", response.text[:500])
    if detail:
        if "location" in detail:
            message = (
                "Cannot determine user location for a geographically restricted operation. "
                "Please specify a country for the search."
            )
        else:
            message += f". Message: {detail}"
    if response.status_code == 403:
        message += (
            " This may be due to an incorrect API key, or the key may not have the "
            "'Google Books API' enabled in your Google Cloud project."
        )
    return message


async def google_lookup(
    isbn: str,
    country: Optional[str] = None,
    *,
    api_key: Optional[str],
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 6.0,
) -> BookLookup:
    """Look a book up by ISBN in the given country's catalog.

    Raises LookupFailed when the service is not configured, unreachable,
    refuses the request or has no match.
    """
    if not api_key:
        raise LookupFailed(
            "The book lookup service is not configured. "
            "Set BOOK_INVENTORY_GOOGLE_API_KEY to enable lookups."
        )
    queried = normalize_isbn(isbn)
    country_code = (country or "US").upper()
    params = {"q": f"isbn:{queried}", "country": country_code, "key": api_key}

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)
    try:
        r = await client.get(VOLUMES_URL, params=params)
    except httpx.HTTPError as e:
        logger.error("Google Books request for %s failed: %s", queried, e)
        raise LookupFailed(f"Failed to fetch book data: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if r.status_code != 200:
        message = _error_message(r)
        logger.error("Google Books lookup for %s failed: %s", queried, message)
        raise LookupFailed(message)

    try:
        payload = r.json()
    except ValueError as e:
        logger.error("Google Books returned a non-JSON body for %s: %s", queried, r.text[:500])
        raise LookupFailed(f"Failed to fetch book data: {e}") from e

    items = (payload.get("items") or []) if isinstance(payload, dict) else []
    if not items:
        raise LookupFailed(f"No book found for this ISBN in the {country_code} catalog.")

    result = parse_volume(items[0].get("volumeInfo", {}), queried)
    logger.info("Looked up %s: %r (%s)", queried, result.title, result.isbn)
    return result
