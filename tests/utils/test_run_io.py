from datetime import datetime, timedelta
import json

from bgcast.core.algorithm import LoopAlgorithmEffects, LoopPrediction
from bgcast.core.models import GlucoseEffect, GlucoseEffectVelocity, PredictedGlucoseValue
from bgcast.utils.run_io import effects_to_dataframe, prediction_to_dataframe, write_json, write_prediction


T0 = datetime(2024, 1, 1, 12, 0)


def _prediction():
    return LoopPrediction(
        glucose=[PredictedGlucoseValue(T0, 100.0), PredictedGlucoseValue(T0 + timedelta(minutes=5), 98.0)],
        effects=LoopAlgorithmEffects(
            insulin=[GlucoseEffect(T0, 0.0), GlucoseEffect(T0 + timedelta(minutes=5), -2.0)],
            negative_insulin_damper=[],
            carbs=[],
            retrospective_correction=[],
            momentum=[],
            insulin_counteraction=[GlucoseEffectVelocity(T0 - timedelta(minutes=5), T0, 0.4)],
        ),
    )


def test_prediction_to_dataframe():
    frame = prediction_to_dataframe(_prediction())

    assert list(frame["glucose"]) == [100.0, 98.0]
    assert frame["date"].iloc[1] == T0 + timedelta(minutes=5)


def test_effects_to_dataframe_is_long_format():
    frame = effects_to_dataframe(_prediction())

    assert list(frame.columns) == ["curve", "start_date", "end_date", "value"]
    assert list(frame["curve"]) == ["insulin", "insulin", "insulin_counteraction"]
    velocity = frame[frame["curve"] == "insulin_counteraction"].iloc[0]
    assert velocity["end_date"] == T0
    assert velocity["value"] == 0.4


def test_write_prediction_json(tmp_path):
    path = write_prediction(tmp_path / "nested" / "forecast.json", _prediction())

    payload = json.loads(path.read_text())
    assert payload["glucose"][1] == {"start_date": "2024-01-01T12:05:00", "quantity": 98.0}
    assert payload["effects"]["insulin_counteraction"][0]["end_date"] == "2024-01-01T12:00:00"


def test_write_json_serializes_durations(tmp_path):
    path = tmp_path / "payload.json"

    write_json(path, {"duration": timedelta(minutes=90), "when": T0})

    assert json.loads(path.read_text()) == {"duration": 90.0, "when": "2024-01-01T12:00:00"}
