import json

import pytest
from typer.testing import CliRunner

from hybrid_categorizer import cli

runner = CliRunner()


@pytest.fixture(autouse=True)
def _no_logging_setup(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "setup_logging", lambda: None)


def _write(path, data) -> str:
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_enrich_writes_rows_and_stats(tmp_path) -> None:
    input_path = _write(
        tmp_path / "rows.json",
        [
            {"id": 1, "description": "COMPRA MERCADONA 12/03", "amount": -45.2},
            {"id": "2", "description": "NOMINA ACME SL", "amount": "2100"},
        ],
    )
    preferences_path = _write(
        tmp_path / "prefs.json",
        [{"description_key": "compra mercadona", "category": "Dairy"}],
    )
    output_path = tmp_path / "out.json"

    result = runner.invoke(
        cli.app,
        ["enrich", input_path, "--preferences", preferences_path, "--output", str(output_path)],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(output_path.read_text(encoding="utf-8"))
    first, second = payload["rows"]
    assert first["id"] == "1"
    assert first["simplified_description"] == "Mercadona"
    assert first["category"] == "Dairy"
    assert first["_metadata"]["categorize"]["source"] == "preference"
    assert second["simplified_description"] == "Salary"
    assert second["category"] == "Salary"
    assert payload["stats"]["total"] == 2
    assert payload["stats"]["rule_matched"] == 2
    assert payload["stats"]["rule_match_rate"] == 1.0


def test_enrich_with_custom_categories(tmp_path) -> None:
    input_path = _write(
        tmp_path / "rows.json", [{"id": "1", "description": "COMPRA LIDL", "amount": "-3"}]
    )
    categories_path = _write(tmp_path / "categories.json", ["Food", "Groceries", "Other"])
    output_path = tmp_path / "out.json"

    result = runner.invoke(
        cli.app,
        ["enrich", input_path, "--categories", categories_path, "--output", str(output_path)],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(output_path.read_text(encoding="utf-8"))
    assert payload["rows"][0]["category"] == "Groceries"


def test_enrich_rejects_an_empty_vocabulary(tmp_path) -> None:
    input_path = _write(
        tmp_path / "rows.json", [{"id": "1", "description": "COMPRA LIDL", "amount": "-3"}]
    )
    categories_path = _write(tmp_path / "categories.json", [])

    result = runner.invoke(cli.app, ["enrich", input_path, "--categories", categories_path])

    assert result.exit_code == 1
    assert "vocabulary is empty" in result.output


def test_enrich_rejects_bad_input(tmp_path) -> None:
    bad_json = tmp_path / "rows.json"
    bad_json.write_text("{not json", encoding="utf-8")
    not_a_list = _write(tmp_path / "object.json", {"id": "1"})

    assert runner.invoke(cli.app, ["enrich", str(bad_json)]).exit_code == 1
    assert runner.invoke(cli.app, ["enrich", not_a_list]).exit_code == 1
    assert runner.invoke(cli.app, ["enrich", str(tmp_path / "missing.json")]).exit_code == 1
