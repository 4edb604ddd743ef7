import math
from decimal import Decimal

import pytest

from hybrid_categorizer.categories import DEFAULT_CATEGORIES
from hybrid_categorizer.classifiers.categorize import RemoteCategorizer, heuristic_category
from hybrid_categorizer.integration.openrouter import RemoteModelError
from hybrid_categorizer.models import CategorizeItem
from tests.helpers.chat_stub import StubChatClient, categorize_each, failing

VOCABULARY = list(DEFAULT_CATEGORIES)


def _items(*rows: tuple[str, str]) -> list[CategorizeItem]:
    return [
        CategorizeItem(id=f"tx_{index}", description=description, amount=Decimal(amount))
        for index, (description, amount) in enumerate(rows)
    ]


@pytest.mark.parametrize(
    ("description", "amount", "expected"),
    [
        ("Salary", "2500", "Salary"),
        ("Nómina Acme", "2500", "Salary"),
        ("Bonus Q4", "500", "Bonus"),
        ("Refund", "20", "Refunds"),
        ("Bizum Juan", "15", "Transfers"),
        ("Lottery", "100", "Other"),
        ("Mercadona", "-45.20", "Groceries"),
        ("Spotify", "-9.99", "Subscriptions"),
        ("Uber Eats", "-18", "Food Delivery"),
        ("Uber", "-12", "Taxi/Rideshare"),
        ("Amazon", "-30", "Shopping"),
        ("Renfe", "-7", "Public Transport"),
        ("Repsol", "-60", "Fuel"),
        ("Bank Fee", "-3", "Bank Fees"),
        ("ATM Withdrawal", "-50", "Cash Withdrawal"),
        ("Iberdrola", "-70", "Utilities"),
        ("Transfer Ana", "-40", "Transfers"),
        ("Starbucks", "-4.50", "Coffee"),
        ("Tienda Rara", "-10", "Other"),
    ],
)
def test_heuristic_category(description: str, amount: str, expected: str) -> None:
    assert heuristic_category(description, Decimal(amount), VOCABULARY) == expected


def test_heuristic_category_stays_within_a_custom_vocabulary() -> None:
    vocabulary = ["Food", "Transport", "Income", "Misc"]
    assert heuristic_category("Uber", Decimal("-12"), vocabulary) == "Transport"
    assert heuristic_category("Salary", Decimal("1000"), vocabulary) == "Income"
    assert heuristic_category("Mercadona", Decimal("-5"), vocabulary) == "Other"
    assert heuristic_category("Mercadona", Decimal("-5"), vocabulary + ["Other"]) == "Other"


@pytest.mark.anyio
async def test_categories_come_from_the_model() -> None:
    client = StubChatClient(categorize_each(lambda item: "Groceries"))
    results = await RemoteCategorizer(client).categorize_batch(
        _items(("Mercadona", "-45.20")), VOCABULARY
    )

    assert results["tx_0"].category == "Groceries"
    assert results["tx_0"].source == "ai"
    assert results["tx_0"].confidence == 0.9

    call = client.calls[0]
    assert call["model"] == "primary/categorize"
    assert call["temperature"] == 0.1
    assert call["items"] == [{"id": "t0", "description": "Mercadona", "amount": -45.2}]
    for name in VOCABULARY:
        assert name in call["system"]


@pytest.mark.anyio
async def test_model_categories_are_validated_against_the_vocabulary() -> None:
    proposals = {"Starbucks": "cafe", "Shell": "Fuel ", "Mystery": "Spaceships", "Zara": "SHOPPING"}
    client = StubChatClient(categorize_each(lambda item: proposals[item["description"]]))
    results = await RemoteCategorizer(client).categorize_batch(
        _items(("Starbucks", "-4"), ("Shell", "-50"), ("Mystery", "-1"), ("Zara", "-20")),
        VOCABULARY,
    )

    assert results["tx_0"].category == "Coffee"
    assert results["tx_1"].category == "Fuel"
    assert results["tx_2"].category == "Other"
    assert results["tx_3"].category == "Shopping"


@pytest.mark.anyio
async def test_batches_of_fifty_by_default() -> None:
    client = StubChatClient(categorize_each(lambda item: "Other"))
    items = _items(*((f"Shop {index}", "-1") for index in range(120)))

    results = await RemoteCategorizer(client).categorize_batch(items, VOCABULARY)

    assert len(client.calls) == math.ceil(120 / 50)
    assert len(results) == 120


@pytest.mark.anyio
async def test_rate_limited_primary_waits_before_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    def responder(model: str, items: list[dict]) -> object:
        if model == "primary/categorize":
            return RemoteModelError("slow down", status=429, model=model)
        return [{"id": item["id"], "category": "Groceries"} for item in items]

    client = StubChatClient(responder, rate_limit_backoff=2.0)
    monkeypatch.setattr(client, "_backoff", fake_sleep)
    results = await RemoteCategorizer(client).categorize_batch(_items(("Lidl", "-9")), VOCABULARY)

    assert sleeps == [2.0]
    assert client.models_called() == ["primary/categorize", "free/fallback"]
    assert results["tx_0"].category == "Groceries"


@pytest.mark.anyio
async def test_non_rate_limit_failures_do_not_wait(monkeypatch: pytest.MonkeyPatch) -> None:
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    client = StubChatClient(failing(500), rate_limit_backoff=2.0)
    monkeypatch.setattr(client, "_backoff", fake_sleep)
    await RemoteCategorizer(client).categorize_batch(_items(("Lidl", "-9")), VOCABULARY)

    assert sleeps == []


@pytest.mark.anyio
async def test_both_models_failing_gives_heuristic_categories() -> None:
    client = StubChatClient(failing(502))
    results = await RemoteCategorizer(client).categorize_batch(
        _items(("Mercadona", "-10"), ("Salary", "1200")), VOCABULARY
    )

    assert results["tx_0"].category == "Groceries"
    assert results["tx_1"].category == "Salary"
    for result in results.values():
        assert result.source == "fallback"
        assert result.confidence == 0.3


@pytest.mark.anyio
async def test_missing_items_get_heuristic_categories() -> None:
    client = StubChatClient(lambda model, items: {"results": [{"id": "t1", "category": "Travel"}]})
    results = await RemoteCategorizer(client).categorize_batch(
        _items(("Netflix", "-12"), ("Ryanair", "-80")), VOCABULARY
    )

    assert results["tx_0"].category == "Subscriptions"
    assert results["tx_0"].source == "fallback"
    assert results["tx_1"].category == "Travel"
    assert results["tx_1"].source == "ai"


@pytest.mark.anyio
async def test_without_api_key_uses_heuristic() -> None:
    client = StubChatClient(api_key=None)
    results = await RemoteCategorizer(client).categorize_batch(
        _items(("Glovo", "-20")), VOCABULARY
    )

    assert client.calls == []
    assert results["tx_0"].category == "Food Delivery"
    assert results["tx_0"].source == "fallback"


@pytest.mark.anyio
async def test_unexpected_batch_error_keeps_sibling_results() -> None:
    def responder(model: str, items: list[dict]) -> object:
        if any(item["description"] == "Mercadona" for item in items):
            return RuntimeError("socket exploded")
        return [{"id": item["id"], "category": "Travel"} for item in items]

    client = StubChatClient(responder)
    results = await RemoteCategorizer(client, batch_size=1).categorize_batch(
        _items(("Ryanair", "-80"), ("Mercadona", "-10")), VOCABULARY
    )

    assert results["tx_0"].category == "Travel"
    assert results["tx_0"].source == "ai"
    assert results["tx_1"].category == "Groceries"
    assert results["tx_1"].source == "fallback"
