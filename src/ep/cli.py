"""CLI commands for generating and inspecting estimation presets."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from .cache import PresetCache
from .config import DEFAULT_CONFIG_NAME, PipelineConfig, load_config
from .metrics import MetricsRegistry
from .models import CompletionBackend, OpenAIChatBackend
from .pipeline import PresetPipeline
from .schema import FALLBACK_PRESET_VERSION, fallback_preset, preset_payload, validate_preset
from .splitting import DEFAULT_HOUR_CEILING, split_activities

APP_HELP = "Estimation preset engine CLI entry point."

app = typer.Typer(help=APP_HELP)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_pipeline_config(config: Optional[str]) -> PipelineConfig:
    try:
        return load_config(config)
    except FileNotFoundError as error:
        raise typer.BadParameter(str(error)) from error
    except ValueError as error:
        typer.echo(f"Failed to load config: {error}")
        raise typer.Exit(code=1) from error


def _build_backend(config: PipelineConfig) -> CompletionBackend:
    """Instantiate the completion backend configured for this run."""
    try:
        return OpenAIChatBackend(model=config.model, timeout=config.timeout_seconds)
    except ValueError as error:
        typer.echo(f"Failed to initialise completion backend: {error}")
        raise typer.Exit(code=1) from error


def _build_cache(config: PipelineConfig) -> PresetCache:
    return PresetCache.from_config(config)


def _read_json(path: Path) -> Any:
    if not path.exists():
        raise typer.BadParameter(f"File not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except json.JSONDecodeError as error:
        typer.echo(f"Failed to parse {path}: {error}")
        raise typer.Exit(code=1) from error


def _parse_answers(raw: Optional[str]) -> Dict[str, Any]:
    """Accept inline JSON or ``@path`` pointing at a JSON file."""
    if not raw:
        return {}
    if raw.startswith("@"):
        data = _read_json(Path(raw[1:]))
    else:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as error:
            raise typer.BadParameter(f"--answers must be a JSON object: {error}") from error
    if not isinstance(data, dict):
        raise typer.BadParameter("--answers must be a JSON object.")
    return data


def _emit(payload: Any, output: Optional[str]) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(text + "\n", encoding="utf-8")
        typer.echo(f"Wrote {output_path}")
    else:
        typer.echo(text)


@app.command()
def generate(
    description: str = typer.Argument(..., help="Free-text project description."),
    answers: Optional[str] = typer.Option(
        None,
        "--answers",
        "-a",
        help="Interview answers as a JSON object, or @path to a JSON file.",
    ),
    category: Optional[str] = typer.Option(None, "--category", help="Technology category hint."),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help=f"Path to the configuration file (defaults to ./{DEFAULT_CONFIG_NAME} when present).",
    ),
    user_id: str = typer.Option("cli", "--user-id", help="Caller identity recorded in metadata."),
    request_id: Optional[str] = typer.Option(None, "--request-id", help="Correlation id for logs."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the result JSON to this path."),
    show_metrics: bool = typer.Option(False, "--show-metrics", help="Print pipeline counters afterwards."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Generate a preset for DESCRIPTION and print the pipeline result."""
    _configure_logging(verbose)
    pipeline_config = _load_pipeline_config(config)
    answer_map = _parse_answers(answers)
    metrics = MetricsRegistry()
    pipeline = PresetPipeline(
        _build_backend(pipeline_config),
        config=pipeline_config,
        cache=_build_cache(pipeline_config),
        metrics=metrics,
    )
    result = pipeline.generate_preset(
        user_id,
        description,
        answer_map,
        category=category,
        request_id=request_id,
    )
    _emit(result.to_dict(), output)
    if show_metrics:
        typer.echo(metrics.render_prometheus().rstrip("\n"))
    if not result.success:
        raise typer.Exit(code=2)


@app.command()
def validate(
    path: str = typer.Argument(..., help="Preset JSON file to validate."),
    min_activities: int = typer.Option(5, "--min-activities", help="Minimum activity count."),
    max_activities: int = typer.Option(20, "--max-activities", help="Maximum activity count."),
) -> None:
    """Validate a preset file and list every violation."""
    candidate = _read_json(Path(path))
    validation = validate_preset(candidate, min_activities=min_activities, max_activities=max_activities)
    if validation.ok:
        typer.echo(f"{path}: valid preset ({len(candidate.get('activities', []))} activities).")
        return
    typer.echo(f"{path}: {len(validation.errors)} violation(s)")
    for error in validation.errors:
        typer.echo(f"- {error}")
    raise typer.Exit(code=1)


@app.command()
def fallback(
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the preset JSON to this path."),
) -> None:
    """Print the static fallback preset."""
    payload = preset_payload(fallback_preset())
    payload["version"] = FALLBACK_PRESET_VERSION
    _emit(payload, output)


@app.command()
def split(
    path: str = typer.Argument(..., help="Preset (or activity list) JSON file."),
    ceiling: float = typer.Option(DEFAULT_HOUR_CEILING, "--ceiling", help="Maximum hours per activity."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the result JSON to this path."),
) -> None:
    """Split oversized activities so none exceeds the hour ceiling."""
    if ceiling <= 0:
        raise typer.BadParameter("--ceiling must be positive.")
    data = _read_json(Path(path))
    if isinstance(data, list):
        _emit(split_activities(data, ceiling), output)
        return
    if not isinstance(data, dict) or not isinstance(data.get("activities"), list):
        typer.echo("Input must be a preset object with an 'activities' list or a list of activities.")
        raise typer.Exit(code=1)
    data["activities"] = split_activities(data["activities"], ceiling)
    _emit(data, output)


if __name__ == "__main__":
    app()
