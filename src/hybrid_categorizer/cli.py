"""Command-line entry point.

``enrich`` runs the pipeline over a JSON array of rows and prints the enriched
rows (with ``_metadata``) and the coverage stats as JSON. Configuration is
read from the environment, ``.env`` and ``config.yaml`` like everywhere else.
"""

import json
from pathlib import Path
from typing import Annotated, Any

import typer

from hybrid_categorizer.core import settings
from hybrid_categorizer.logger import get_logger, setup_logging
from hybrid_categorizer.preferences import PreferenceBook
from hybrid_categorizer.services.pipeline import ConfigurationError, run_pipeline

logger = get_logger(__name__)

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Label and categorize bank transaction descriptions.",
)


def _read_json(path: Path, what: str) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except OSError as exc:
        raise ConfigurationError(f"Cannot read {what} file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{what.capitalize()} file {path} is not valid JSON: {exc}") from exc


def _load_preferences(path: Path | None) -> PreferenceBook | None:
    if path is None:
        return None
    data = _read_json(path, "preferences")
    if isinstance(data, dict):
        return PreferenceBook.from_mapping(data)
    if not isinstance(data, list):
        raise ConfigurationError("Preferences file must hold a JSON array of entries")
    return PreferenceBook.from_entries(data)


@app.command("enrich")
def enrich_cmd(
    input_path: Annotated[Path, typer.Argument(help="JSON array of {id, description, amount} rows.")],
    preferences_path: Annotated[
        Path | None,
        typer.Option("--preferences", help="JSON array of preference entries."),
    ] = None,
    categories_path: Annotated[
        Path | None,
        typer.Option("--categories", help="JSON array of category names (defaults built in)."),
    ] = None,
    output_path: Annotated[
        Path | None,
        typer.Option("--output", help="Write the result here instead of stdout."),
    ] = None,
) -> None:
    """Enrich transaction rows with a short label, a category and provenance metadata."""
    setup_logging()
    try:
        rows = _read_json(input_path, "input")
        if not isinstance(rows, list):
            raise ConfigurationError("Input file must hold a JSON array of rows")
        categories = _read_json(categories_path, "categories") if categories_path else None
        preferences = _load_preferences(preferences_path)
        result = run_pipeline(rows, preferences=preferences, categories=categories)
    except ValueError as exc:
        logger.error(f"Configuration error: {exc}")
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc

    payload = {
        "rows": [row.model_dump(mode="json", by_alias=True) for row in result.rows],
        "stats": result.stats.as_dict(),
    }
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output_path is None:
        typer.echo(text)
    else:
        output_path.write_text(text + "\n", encoding="utf-8")
        logger.info(f"Wrote {len(result.rows)} row(s) to {output_path}")


@app.command("env")
def env_cmd() -> None:
    """Log the configuration keys in effect, with secrets masked."""
    setup_logging()
    config_path = settings.get_config_path()
    if config_path:
        logger.info(f"[ENV] config.yaml: {config_path}")
    settings.log_environment()


def main() -> None:
    app()
