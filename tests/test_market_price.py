"""Market price estimates with a stubbed Anthropic client."""
from types import SimpleNamespace

import anthropic
import httpx
import pytest

from errors import LookupFailed
from services.market_price import MarketPriceEstimator, build_prompt, parse_price


class StubMessages:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.text)])


def estimator_with(text=None, error=None):
    messages = StubMessages(text, error)
    client = SimpleNamespace(messages=messages)
    return MarketPriceEstimator(model="test-model", client=client), messages


async def test_returns_price_and_sends_book_details():
    estimator, messages = estimator_with('{"marketPrice": 18.5}')
    price = await estimator("The Hobbit", ["J.R.R. Tolkien"], "9780547928227", "Very Good")

    assert price == 18.5
    (request,) = messages.requests
    assert request["model"] == "test-model"
    prompt = request["messages"][0]["content"]
    assert '"Very Good" condition' in prompt
    assert "- Title: The Hobbit" in prompt
    assert "- ISBN: 9780547928227" in prompt


async def test_api_error_becomes_lookup_failed():
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    estimator, _ = estimator_with(error=anthropic.APIConnectionError(request=request))
    with pytest.raises(LookupFailed, match="Failed to estimate market price"):
        await estimator("Dune", ["Frank Herbert"], "N/A", "Good")


async def test_missing_key():
    estimator = MarketPriceEstimator(api_key=None)
    with pytest.raises(LookupFailed, match="not configured"):
        await estimator("Dune", ["Frank Herbert"], "N/A", "Good")


class TestParsePrice:
    def test_plain_and_fenced_json(self):
        assert parse_price('{"marketPrice": 7}') == 7.0
        assert parse_price('Here you go:\n```json\n{"marketPrice": 12.99}\n```') == 12.99

    @pytest.mark.parametrize(
        "text",
        [
            "about ten dollars",
            '{"marketPrice": "cheap"}',
            '{"price": 3}',
            '{"marketPrice": true}',
            '{"marketPrice": 3,}',
            '{"marketPrice": -1}',
        ],
    )
    def test_rejects(self, text):
        with pytest.raises(LookupFailed):
            parse_price(text)


def test_prompt_lists_all_authors():
    prompt = build_prompt("Good Omens", ["Neil Gaiman", "Terry Pratchett"], "9780060853983", "Acceptable")
    assert "- Author(s): Neil Gaiman, Terry Pratchett" in prompt
