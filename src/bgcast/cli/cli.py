import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer  # type: ignore
import yaml
from pydantic import ValidationError
from rich.console import Console  # type: ignore
from rich.table import Table  # type: ignore
from typing_extensions import Annotated

import bgcast
from bgcast.core.algorithm import AlgorithmEffectsOptions, LoopAlgorithm
from bgcast.core.errors import AlgorithmError
from bgcast.core.insulin import ExponentialInsulinModelPreset
from bgcast.utils.run_io import write_prediction
from bgcast.validation import (
    build_prediction_input,
    format_validation_error,
    load_algorithm_config,
    load_prediction_input_model,
    prediction_input_warnings,
)

app = typer.Typer(help="bgcast CLI - glucose forecasting from glucose, insulin and carb history.")


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )


def _print_errors(console: Console, title: str, lines: List[str]) -> None:
    console.print(f"[bold red]{title}[/bold red]")
    for line in lines:
        console.print(f"- {line}")


def _load_input_model(input_path: Path, console: Console):
    if not input_path.is_file():
        console.print(f"[bold red]Error: Input file '{input_path}' not found.[/bold red]")
        raise typer.Exit(code=1)
    try:
        return load_prediction_input_model(input_path)
    except ValidationError as e:
        _print_errors(console, "Input validation failed:", format_validation_error(e))
        raise typer.Exit(code=1)
    except (ValueError, yaml.YAMLError) as e:
        console.print(f"[bold red]Error: Could not parse '{input_path}': {e}[/bold red]")
        raise typer.Exit(code=1)


@app.command()
def predict(
    input_path: Annotated[Path, typer.Option("--input", help="Prediction input document (JSON or YAML)")],
    config_path: Annotated[Optional[Path], typer.Option("--config", help="Optional algorithm config YAML")] = None,
    start_date: Annotated[Optional[str], typer.Option(help="Forecast anchor as ISO 8601 (defaults to latest glucose)")] = None,
    output: Annotated[Optional[Path], typer.Option(help="Write the forecast to .csv or .json")] = None,
    effects: Annotated[Optional[str], typer.Option(help="Comma-separated effects overriding the input (carbs,insulin,momentum,retrospection,damper)")] = None,
):
    """Generate a glucose forecast and print it as a table."""
    console = Console()
    model = _load_input_model(input_path, console)

    config = None
    if config_path is not None:
        if not config_path.is_file():
            console.print(f"[bold red]Error: Config file '{config_path}' not found.[/bold red]")
            raise typer.Exit(code=1)
        try:
            config = load_algorithm_config(config_path)
        except ValidationError as e:
            _print_errors(console, "Config validation failed:", format_validation_error(e))
            raise typer.Exit(code=1)
        except (ValueError, yaml.YAMLError) as e:
            console.print(f"[bold red]Error: Could not parse '{config_path}': {e}[/bold red]")
            raise typer.Exit(code=1)

    options = None
    if effects is not None:
        try:
            options = AlgorithmEffectsOptions.from_names(effects.split(","))
        except ValueError as e:
            console.print(f"[bold red]Error: {e}[/bold red]")
            raise typer.Exit(code=1)

    anchor = None
    if start_date is not None:
        try:
            anchor = datetime.fromisoformat(start_date)
        except ValueError:
            console.print(f"[bold red]Error: Invalid --start-date '{start_date}'.[/bold red]")
            raise typer.Exit(code=1)

    prediction_input = build_prediction_input(model, config=config)
    history = prediction_input.glucose_history
    if anchor is not None and history and (anchor.tzinfo is None) != (history[-1].start_date.tzinfo is None):
        console.print("[bold red]Error: --start-date and the input dates must both be timezone-aware or both naive.[/bold red]")
        raise typer.Exit(code=1)
    if options is not None:
        settings = replace(prediction_input.settings, algorithm_effects_options=options)
        prediction_input = replace(prediction_input, settings=settings)
    try:
        prediction = LoopAlgorithm.generate_prediction(prediction_input, start_date=anchor)
    except (AlgorithmError, ValueError) as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1)

    table = Table(title="Glucose Forecast", show_lines=False)
    table.add_column("Date", style="cyan")
    table.add_column("Glucose (mg/dL)", justify="right")
    for value in prediction.glucose:
        table.add_row(value.start_date.isoformat(), f"{value.quantity:.1f}")
    console.print(table)

    if output is not None:
        written = write_prediction(output, prediction)
        console.print(f"[green]Forecast written to {written}[/green]")


@app.command()
def validate(
    input_path: Annotated[Path, typer.Option("--input", help="Prediction input document (JSON or YAML)")],
):
    """Validate a prediction input document and report warnings."""
    console = Console()
    model = _load_input_model(input_path, console)

    warnings = prediction_input_warnings(model)
    if warnings:
        console.print("[yellow]Warnings:[/yellow]")
        for warning in warnings:
            console.print(f"- {warning}")
    console.print(
        f"[green]Valid input:[/green] {len(model.glucose)} glucose samples, "
        f"{len(model.doses)} doses, {len(model.carb_entries)} carb entries"
    )


@app.command()
def models():
    """List insulin model presets."""
    console = Console()
    table = Table(title="Insulin Model Presets", show_lines=False)
    table.add_column("Name", style="cyan")
    table.add_column("Action (min)", justify="right")
    table.add_column("Peak (min)", justify="right")
    table.add_column("Delay (min)", justify="right")
    for preset in ExponentialInsulinModelPreset:
        model = preset.model
        table.add_row(
            preset.value,
            f"{model.action_duration.total_seconds() / 60:.0f}",
            f"{model.peak_activity_time.total_seconds() / 60:.0f}",
            f"{model.delay.total_seconds() / 60:.0f}",
        )
    console.print(table)
    console.print(f"bgcast {bgcast.__version__}")


if __name__ == "__main__":
    app()
