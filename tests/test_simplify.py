import math

import pytest

from hybrid_categorizer.classifiers.simplify import RemoteSimplifier
from hybrid_categorizer.integration.openrouter import RemoteModelError
from hybrid_categorizer.models import SimplifyItem
from tests.helpers.chat_stub import StubChatClient, failing, label_each


def _items(*descriptions: str) -> list[SimplifyItem]:
    return [
        SimplifyItem(id=f"tx_{index}", sanitized_description=description)
        for index, description in enumerate(descriptions)
    ]


@pytest.mark.anyio
async def test_empty_input_makes_no_request() -> None:
    client = StubChatClient()
    assert await RemoteSimplifier(client).simplify_batch([]) == {}
    assert client.calls == []


@pytest.mark.anyio
async def test_labels_come_from_the_model_and_map_back_to_caller_ids() -> None:
    client = StubChatClient(label_each(lambda description: description.split()[-1].title()))
    results = await RemoteSimplifier(client).simplify_batch(
        _items("COMPRA MERCHANT ALPHA", "PAGO MERCHANT BETA")
    )

    assert results["tx_0"].simplified == "Alpha"
    assert results["tx_1"].simplified == "Beta"
    for result in results.values():
        assert result.matched_rule == "ai"
        assert result.source == "ai"
        assert result.type_hint == "other"
        assert result.confidence == 0.9

    call = client.calls[0]
    assert call["model"] == "primary/simplify"
    assert call["temperature"] == 0.3
    assert [item["id"] for item in call["items"]] == ["t0", "t1"]
    assert call["items"][0]["description"] == "COMPRA MERCHANT ALPHA"


@pytest.mark.anyio
async def test_long_labels_are_truncated() -> None:
    client = StubChatClient(label_each(lambda description: "X" * 80))
    results = await RemoteSimplifier(client).simplify_batch(_items("SOMETHING"))
    assert results["tx_0"].simplified == "X" * 50


@pytest.mark.anyio
@pytest.mark.parametrize(("count", "batch_size"), [(1, 25), (25, 25), (26, 25), (60, 25), (7, 3)])
async def test_one_request_per_batch(count: int, batch_size: int) -> None:
    client = StubChatClient()
    items = _items(*(f"MERCHANT {index}" for index in range(count)))

    results = await RemoteSimplifier(client, batch_size=batch_size).simplify_batch(items)

    assert len(client.calls) == math.ceil(count / batch_size)
    assert all(len(call["items"]) <= batch_size for call in client.calls)
    assert set(results) == {item.id for item in items}


@pytest.mark.anyio
async def test_primary_failure_falls_back_to_free_model() -> None:
    def responder(model: str, items: list[dict]) -> object:
        if model == "primary/simplify":
            return RemoteModelError("boom", status=500, model=model)
        return [{"id": item["id"], "simplified": "From Fallback"} for item in items]

    client = StubChatClient(responder)
    results = await RemoteSimplifier(client).simplify_batch(_items("A DESCRIPTION"))

    assert client.models_called() == ["primary/simplify", "free/fallback"]
    assert results["tx_0"].simplified == "From Fallback"
    assert results["tx_0"].source == "ai"
    assert results["tx_0"].confidence == 0.5


@pytest.mark.anyio
async def test_both_models_failing_gives_heuristic_labels() -> None:
    client = StubChatClient(failing(503))
    results = await RemoteSimplifier(client).simplify_batch(_items("COMPRA EN LA TASCA MADRID"))

    assert client.models_called() == ["primary/simplify", "free/fallback"]
    result = results["tx_0"]
    assert result.simplified == "Tasca Madrid"
    assert result.matched_rule == "fallback"
    assert result.source == "fallback"
    assert result.confidence == 0.3


@pytest.mark.anyio
async def test_unparseable_reply_gives_heuristic_labels_without_fallback_model() -> None:
    client = StubChatClient(lambda model, items: "I cannot help with that")
    results = await RemoteSimplifier(client).simplify_batch(_items("PAGO GIMNASIO CENTRAL"))

    assert client.models_called() == ["primary/simplify"]
    assert results["tx_0"].simplified == "Gimnasio Central"
    assert results["tx_0"].matched_rule == "fallback"


@pytest.mark.anyio
async def test_items_missing_from_reply_get_heuristic_labels() -> None:
    client = StubChatClient(lambda model, items: {"results": [{"id": "t0", "simplified": "Amazon"}]})
    results = await RemoteSimplifier(client).simplify_batch(
        _items("COMPRA AMAZON", "PAGO PANADERIA LUNA")
    )

    assert results["tx_0"].simplified == "Amazon"
    assert results["tx_0"].matched_rule == "ai"
    assert results["tx_1"].simplified == "Panaderia Luna"
    assert results["tx_1"].matched_rule == "ai_fallback"
    assert results["tx_1"].confidence == 0.3


@pytest.mark.anyio
async def test_without_api_key_no_request_is_made() -> None:
    client = StubChatClient(api_key=None)
    results = await RemoteSimplifier(client).simplify_batch(_items("PAGO FLORISTERIA ROSA"))

    assert client.calls == []
    assert results["tx_0"].simplified == "Floristeria Rosa"
    assert results["tx_0"].matched_rule == "fallback"


@pytest.mark.anyio
async def test_one_failed_batch_does_not_affect_its_siblings() -> None:
    def responder(model: str, items: list[dict]) -> object:
        if any(item["description"] == "POISON" for item in items):
            return RemoteModelError("bad batch", status=500, model=model)
        return [{"id": item["id"], "simplified": "Good"} for item in items]

    client = StubChatClient(responder)
    items = _items("ONE", "TWO", "POISON", "FOUR")
    results = await RemoteSimplifier(client, batch_size=2).simplify_batch(items)

    assert results["tx_0"].source == "ai"
    assert results["tx_1"].source == "ai"
    assert results["tx_2"].source == "fallback"
    assert results["tx_3"].source == "fallback"


@pytest.mark.anyio
async def test_unexpected_batch_error_keeps_sibling_results() -> None:
    def responder(model: str, items: list[dict]) -> object:
        if any(item["description"] == "PAGO TIENDA ROTA" for item in items):
            return RuntimeError("socket exploded")
        return [{"id": item["id"], "simplified": "Good"} for item in items]

    client = StubChatClient(responder)
    items = _items("ONE", "TWO", "PAGO TIENDA ROTA", "FOUR")
    results = await RemoteSimplifier(client, batch_size=2).simplify_batch(items)

    assert results["tx_0"].simplified == "Good"
    assert results["tx_1"].simplified == "Good"
    assert results["tx_2"].simplified == "Tienda Rota"
    assert results["tx_2"].source == "fallback"
    assert results["tx_3"].source == "fallback"
