import json

import pandas as pd
import yaml
from typer.testing import CliRunner

from bgcast.cli.cli import app


runner = CliRunner()


def _write_input(path, **overrides):
    data = {
        "glucose": [
            {"date": "2024-01-01T11:50:00", "value": 110},
            {"date": "2024-01-01T11:55:00", "value": 105},
            {"date": "2024-01-01T12:00:00", "value": 100},
        ],
        "doses": [{"type": "bolus", "start": "2024-01-01T11:00:00", "value": 1.0}],
        "settings": {
            "basal": [{"time": "00:00", "value": 0.8}],
            "sensitivity": [{"time": "00:00", "value": 45}],
            "carb_ratio": [{"time": "00:00", "value": 12}],
            "target": [{"time": "00:00", "min": 100, "max": 110}],
        },
    }
    data.update(overrides)
    path.write_text(yaml.safe_dump(data))
    return path


def test_predict_prints_table_and_writes_csv(tmp_path):
    input_path = _write_input(tmp_path / "input.yaml")
    output = tmp_path / "out" / "forecast.csv"

    result = runner.invoke(app, ["predict", "--input", str(input_path), "--output", str(output)])

    assert result.exit_code == 0, result.output
    assert "Glucose Forecast" in result.output
    frame = pd.read_csv(output)
    assert list(frame.columns) == ["date", "glucose"]
    assert frame["glucose"].iloc[0] == 100.0
    assert len(frame) > 2


def test_predict_writes_effects_to_json(tmp_path):
    input_path = _write_input(tmp_path / "input.yaml")
    output = tmp_path / "forecast.json"

    result = runner.invoke(
        app, ["predict", "--input", str(input_path), "--output", str(output), "--effects", "insulin"]
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(output.read_text())
    assert payload["glucose"][0]["quantity"] == 100.0
    assert payload["effects"]["insulin"]
    assert payload["effects"]["momentum"] == []


def test_predict_with_config(tmp_path):
    input_path = _write_input(tmp_path / "input.yaml")
    config_path = tmp_path / "config.yaml"
    config_path.write_text("momentum_duration_minutes: 15\n")

    result = runner.invoke(app, ["predict", "--input", str(input_path), "--config", str(config_path)])

    assert result.exit_code == 0, result.output


def test_predict_rejects_naive_start_date_for_aware_input(tmp_path):
    input_path = _write_input(
        tmp_path / "input.yaml",
        glucose=[
            {"date": "2024-01-01T11:55:00+00:00", "value": 105},
            {"date": "2024-01-01T12:00:00+00:00", "value": 100},
        ],
        doses=[],
    )

    result = runner.invoke(app, ["predict", "--input", str(input_path), "--start-date", "2024-01-01T12:00:00"])

    assert result.exit_code == 1
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert "timezone" in result.output


def test_predict_accepts_aware_start_date_for_aware_input(tmp_path):
    input_path = _write_input(
        tmp_path / "input.yaml",
        glucose=[
            {"date": "2024-01-01T11:55:00+00:00", "value": 105},
            {"date": "2024-01-01T12:00:00+00:00", "value": 100},
        ],
        doses=[],
    )

    result = runner.invoke(
        app, ["predict", "--input", str(input_path), "--start-date", "2024-01-01T12:00:00+00:00"]
    )

    assert result.exit_code == 0, result.output


def test_predict_reports_unparseable_config(tmp_path):
    input_path = _write_input(tmp_path / "input.yaml")
    config_path = tmp_path / "config.yaml"
    config_path.write_text("momentum_duration_minutes: [15\n")

    result = runner.invoke(app, ["predict", "--input", str(input_path), "--config", str(config_path)])

    assert result.exit_code == 1
    assert "Could not parse" in result.output


def test_predict_rejects_unknown_effect(tmp_path):
    input_path = _write_input(tmp_path / "input.yaml")

    result = runner.invoke(app, ["predict", "--input", str(input_path), "--effects", "exercise"])

    assert result.exit_code == 1
    assert "Unknown effect" in result.output


def test_predict_with_empty_glucose_fails(tmp_path):
    input_path = _write_input(tmp_path / "input.yaml", glucose=[])

    result = runner.invoke(app, ["predict", "--input", str(input_path)])

    assert result.exit_code == 1
    assert "Glucose history is empty" in result.output


def test_predict_missing_input_file(tmp_path):
    result = runner.invoke(app, ["predict", "--input", str(tmp_path / "missing.yaml")])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_validate_reports_schema_errors(tmp_path):
    input_path = _write_input(tmp_path / "input.yaml", unexpected=1)

    result = runner.invoke(app, ["validate", "--input", str(input_path)])

    assert result.exit_code == 1
    assert "Input validation failed" in result.output
    assert "unexpected" in result.output


def test_validate_reports_warnings(tmp_path):
    input_path = _write_input(
        tmp_path / "input.yaml", carb_entries=[{"date": "2024-01-01T11:30:00", "grams": 250}]
    )

    result = runner.invoke(app, ["validate", "--input", str(input_path)])

    assert result.exit_code == 0, result.output
    assert "Warnings" in result.output
    assert "Valid input" in result.output


def test_models_lists_presets():
    result = runner.invoke(app, ["models"])

    assert result.exit_code == 0
    assert "fiasp" in result.output
    assert "rapid_acting_adult" in result.output
