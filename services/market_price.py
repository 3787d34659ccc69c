# services/market_price.py: AI estimate of a copy's resale price
import json
import logging
import re
from typing import Optional, Sequence

import anthropic

from errors import LookupFailed

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert book appraiser. You estimate the current average market "
    "price of used books from listings on popular online marketplaces like eBay, "
    "AbeBooks and Amazon.\n\n"
    'Respond only with a JSON object of the form {"marketPrice": <number in USD>}.'
)


def build_prompt(title: str, authors: Sequence[str], isbn: str, condition: str) -> str:
    return (
        f'Estimate the current average market price for a used copy of this book in "{condition}" condition.\n\n'
        "Book Details:\n"
        f"- Title: {title}\n"
        f"- Author(s): {', '.join(authors)}\n"
        f"- ISBN: {isbn}\n"
    )


def parse_price(text: str) -> float:
    """Pull ``marketPrice`` out of the model's answer."""
    fenced = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
    if fenced:
        text = fenced.group(1)
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end < start:
        raise LookupFailed("The price estimator did not return a price.")
    try:
        payload = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise LookupFailed("The price estimator returned malformed JSON.") from e

    price = payload.get("marketPrice") if isinstance(payload, dict) else None
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        raise LookupFailed("The price estimator did not return a price.")
    if price < 0:
        raise LookupFailed("The price estimator returned a negative price.")
    return float(price)


class MarketPriceEstimator:
    """Await an instance with a book and a condition to get a USD estimate."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "claude-sonnet-4-20250514",
        client: Optional[anthropic.AsyncAnthropic] = None,
        max_tokens: int = 256,
    ):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self._client = client

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            if not self.api_key:
                raise LookupFailed(
                    "The price estimation service is not configured. "
                    "Set BOOK_INVENTORY_ANTHROPIC_API_KEY to enable price suggestions."
                )
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def __call__(self, title: str, authors: Sequence[str], isbn: str, condition: str) -> float:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_prompt(title, authors, isbn, condition)}],
                temperature=0.2,
            )
        except anthropic.APIError as e:
            logger.error("Anthropic API error while pricing %s: %s", isbn, e)
            raise LookupFailed(f"Failed to estimate market price: {e}") from e

        text = "".join(getattr(block, "text", "") for block in response.content)
        logger.debug("Raw price estimate for %s: %s", isbn, text[:200])
        price = parse_price(text)
        logger.info("Estimated %s (%s) at $%.2f", isbn, condition, price)
        return price
