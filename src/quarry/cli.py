# src/quarry/cli.py
"""Quarry Command Line Interface.

Loads a CSV file into an AnalyticsEngine and runs one request against it.
The engine lives for a single invocation, so train can apply the fresh model
to vectors given with --predict in the same run.
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import pandas as pd
import typer
from pydantic import ValidationError

from quarry import __version__
from quarry.contracts import ColumnDef, ColumnType, QuarryError
from quarry.core.config import QuarrySettings, load_settings, resolve_config
from quarry.core.logging import configure_logging
from quarry.engine.service import AnalyticsEngine
from quarry.plugins.manager import PluginManager

app = typer.Typer(
    name="quarry",
    help="Quarry: tabular analytics with memoized computation.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"quarry version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Quarry: tabular analytics with memoized computation."""
    pass


# === Shared plumbing ===

DATA_OPTION = typer.Option(..., "--data", "-d", help="Path to CSV data file.")
SETTINGS_OPTION = typer.Option(None, "--settings", "-s", help="Path to settings YAML file.")


def _fail(message: str) -> typer.Exit:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    return typer.Exit(1)


def _load_settings(settings: str | None) -> QuarrySettings:
    if settings is None:
        return QuarrySettings()
    try:
        return load_settings(Path(settings))
    except FileNotFoundError:
        raise _fail(f"Settings file not found: {settings}") from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None


def infer_schema(frame: pd.DataFrame) -> list[ColumnDef]:
    """Declare a column numeric when every non-blank cell parses as a number."""
    schema = []
    for name in frame.columns:
        cells = frame[name].astype(str).str.strip()
        present = cells[cells != ""]
        numeric = pd.to_numeric(present, errors="coerce")
        is_numeric = len(present) > 0 and bool(numeric.notna().all())
        schema.append(
            ColumnDef(
                name=str(name),
                type=ColumnType.NUMERIC if is_numeric else ColumnType.CATEGORICAL,
                required=False,
            )
        )
    return schema


def _read_rows(data: str) -> tuple[list[dict[str, Any]], pd.DataFrame]:
    path = Path(data)
    if not path.exists():
        raise _fail(f"Data file not found: {data}")
    # Raw strings; the normalizer owns parsing and missing-value policy
    frame = pd.read_csv(path, dtype=str, keep_default_na=False)
    return frame.to_dict(orient="records"), frame


@contextmanager
def _engine(data: str, settings: str | None) -> Iterator[AnalyticsEngine]:
    """Configured engine with the CSV ingested; QuarryError exits with code 1."""
    config = _load_settings(settings)
    configure_logging(level=config.logging.level, json_output=config.logging.json_output)
    rows, frame = _read_rows(data)
    schema = config.dataset.schema() or infer_schema(frame)

    engine = AnalyticsEngine(config)
    try:
        engine.ingest(rows, schema)
        yield engine
    except QuarryError as e:
        raise _fail(str(e)) from None
    finally:
        engine.close()


def _emit(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def _read_query(spec: str) -> str:
    """Inline JSON, or the contents of the file named by '@path'."""
    if not spec.startswith("@"):
        return spec
    path = Path(spec[1:])
    try:
        return path.read_text()
    except FileNotFoundError:
        raise _fail(f"Query file not found: {path}") from None
    except OSError as e:
        raise _fail(f"Cannot read query file {path}: {e}") from None


def _parse_params(params: list[str]) -> dict[str, Any]:
    """key=value pairs; values are decoded as JSON when possible."""
    parsed: dict[str, Any] = {}
    for item in params:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {item!r}", param_hint="--param")
        try:
            parsed[key] = json.loads(raw)
        except json.JSONDecodeError:
            parsed[key] = raw
    return parsed


def _parse_vector(text: str) -> list[float]:
    try:
        return [float(part) for part in text.split(",")]
    except ValueError:
        raise typer.BadParameter(
            f"Expected comma-separated numbers, got {text!r}", param_hint="--predict"
        ) from None


# === Commands ===


@app.command()
def describe(
    column: str = typer.Argument(..., help="Numeric column to summarize."),
    data: str = DATA_OPTION,
    settings: str | None = SETTINGS_OPTION,
) -> None:
    """Summary statistics of one numeric column."""
    with _engine(data, settings) as engine:
        _emit(engine.describe(column).to_dict())


@app.command()
def query(
    spec: str = typer.Argument(..., help="Query as JSON, or @path to a JSON file."),
    data: str = DATA_OPTION,
    settings: str | None = SETTINGS_OPTION,
) -> None:
    """Filter, group, aggregate and page over the dataset.

    Examples:

        quarry query -d titanic.csv '{"group_by": {"column": "pclass"},
            "aggregations": [{"function": "avg", "column": "survived"}]}'
    """
    text = _read_query(spec)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise _fail(f"Query is not valid JSON: {e}") from None
    if not isinstance(payload, dict):
        raise _fail("Query must be a JSON object")

    with _engine(data, settings) as engine:
        _emit(engine.query(payload).to_dict())


@app.command()
def correlate(
    columns: list[str] = typer.Argument(..., help="Numeric columns to correlate."),
    data: str = DATA_OPTION,
    settings: str | None = SETTINGS_OPTION,
) -> None:
    """Pairwise Pearson correlation matrix."""
    with _engine(data, settings) as engine:
        _emit(engine.correlate(columns).to_dict())


@app.command()
def train(
    trainer: str = typer.Argument(
        ..., help="Trainer kind (regression, clustering, classification) or plugin name."
    ),
    features: list[str] = typer.Option(
        ..., "--feature", "-f", help="Feature column (repeat for more)."
    ),
    target: str | None = typer.Option(None, "--target", "-t", help="Target column."),
    params: list[str] = typer.Option(
        [], "--param", "-p", help="Trainer parameter as key=value (repeatable)."
    ),
    predict: list[str] = typer.Option(
        [], "--predict", help="Comma-separated feature vector to predict (repeatable)."
    ),
    data: str = DATA_OPTION,
    settings: str | None = SETTINGS_OPTION,
) -> None:
    """Train a model and optionally predict with it."""
    parsed = _parse_params(params)
    vectors = [_parse_vector(v) for v in predict]

    with _engine(data, settings) as engine:
        result = engine.train(trainer, features, target=target, params=parsed)
        output = result.to_dict()
        if vectors:
            output["predictions"] = [
                engine.predict(result.model_id, vector).value for vector in vectors
            ]
        _emit(output)


@app.command()
def validate(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    show_resolved: bool = typer.Option(
        False,
        "--show-resolved",
        help="Print the full configuration, defaults included, as JSON.",
    ),
) -> None:
    """Validate a settings file without loading data."""
    config = _load_settings(settings)
    if show_resolved:
        _emit(resolve_config(config))
        return
    typer.echo(f"Configuration valid: {Path(settings).name}")
    typer.echo(f"  Columns: {len(config.dataset.columns)}")
    typer.echo(f"  Max page size: {config.query.max_page_size}")
    typer.echo(f"  Cache budget: {config.cache.max_size_bytes} bytes")
    typer.echo(f"  Compute workers: {config.cache.compute_workers}")


# Plugins subcommand group
plugins_app = typer.Typer(help="Plugin management commands.")
app.add_typer(plugins_app, name="plugins")


@plugins_app.command("list")
def plugins_list() -> None:
    """List registered trainer plugins."""
    manager = PluginManager()
    manager.register_builtin_plugins()

    for spec in manager.get_specs():
        target = "supervised" if spec.requires_target else "unsupervised"
        typer.echo(
            f"  {spec.name:20} {spec.kind.value:15} {spec.determinism.value:14} "
            f"{target:12} v{spec.version}"
        )


if __name__ == "__main__":
    app()
