import json

import pytest

from hybrid_categorizer.classifiers.response import (
    ResponseFormatError,
    extract_reply_items,
    parse_category_reply,
    parse_simplify_reply,
)


def test_bare_array() -> None:
    content = json.dumps([{"id": "t0", "simplified": "Amazon", "confidence": 0.9}])
    replies = parse_simplify_reply(content)
    assert replies["t0"].simplified == "Amazon"
    assert replies["t0"].confidence == 0.9


@pytest.mark.parametrize("wrapper", ["results", "items", "transactions", "data"])
def test_wrapped_array(wrapper: str) -> None:
    content = json.dumps({wrapper: [{"id": "t0", "category": "Groceries"}]})
    assert parse_category_reply(content)["t0"].category == "Groceries"


def test_field_aliases() -> None:
    content = json.dumps(
        [
            {"i": "t0", "merchant": "Spotify", "conf": 0.7},
            {"transaction_id": "t1", "label": "Uber"},
            {"id": "t2", "name": "Zara"},
        ]
    )
    replies = parse_simplify_reply(content)
    assert replies["t0"].simplified == "Spotify"
    assert replies["t0"].confidence == 0.7
    assert replies["t1"].simplified == "Uber"
    assert replies["t1"].confidence == 0.5
    assert replies["t2"].simplified == "Zara"


def test_category_aliases() -> None:
    content = json.dumps([{"id": "t0", "cat": "Coffee"}, {"id": "t1", "c": "Fuel"}])
    replies = parse_category_reply(content)
    assert replies["t0"].category == "Coffee"
    assert replies["t1"].category == "Fuel"


def test_confidence_is_clamped_and_defaults_when_unusable() -> None:
    content = json.dumps(
        [
            {"id": "t0", "category": "Fuel", "confidence": 7},
            {"id": "t1", "category": "Fuel", "confidence": -1},
            {"id": "t2", "category": "Fuel", "confidence": "very sure"},
            {"id": "t3", "category": "Fuel", "confidence": None},
        ]
    )
    replies = parse_category_reply(content)
    assert replies["t0"].confidence == 1.0
    assert replies["t1"].confidence == 0.0
    assert replies["t2"].confidence == 0.5
    assert replies["t3"].confidence == 0.5


def test_integer_ids_are_coerced() -> None:
    replies = parse_category_reply(json.dumps([{"id": 3, "category": "Fuel"}]))
    assert "3" in replies


def test_malformed_items_are_skipped() -> None:
    content = json.dumps(
        [
            {"id": "t0"},
            {"simplified": "No Id"},
            "not an object",
            {"id": "t1", "simplified": 42},
            {"id": "t2", "simplified": "Kept"},
        ]
    )
    assert list(parse_simplify_reply(content)) == ["t2"]


def test_markdown_fences_are_tolerated() -> None:
    content = '```json\n[{"id": "t0", "simplified": "Netflix"}]\n```'
    assert parse_simplify_reply(content)["t0"].simplified == "Netflix"


@pytest.mark.parametrize(
    "content",
    [
        "not json at all",
        '{"answer": "Groceries"}',
        '"just a string"',
        '{"results": "oops"}',
    ],
)
def test_unusable_replies_raise(content: str) -> None:
    with pytest.raises(ResponseFormatError):
        extract_reply_items(content)
