from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd

from bgcast.core.algorithm import LoopPrediction

EFFECT_CURVES = (
    "insulin",
    "carbs",
    "retrospective_correction",
    "momentum",
    "negative_insulin_damper",
    "insulin_counteraction",
)


def _serialize_payload(payload: Any) -> Any:
    if is_dataclass(payload) and not isinstance(payload, type):
        return _serialize_payload(asdict(payload))
    if isinstance(payload, dict):
        return {key: _serialize_payload(value) for key, value in payload.items()}
    if isinstance(payload, (list, tuple)):
        return [_serialize_payload(value) for value in payload]
    if isinstance(payload, datetime):
        return payload.isoformat()
    if isinstance(payload, timedelta):
        return payload.total_seconds() / 60.0
    if isinstance(payload, Enum):
        return payload.value
    if isinstance(payload, Path):
        return str(payload)
    return payload


def write_json(path: Path, payload: Dict[str, Any]) -> None:
    safe_payload = {key: _serialize_payload(value) for key, value in payload.items()}
    path.write_text(json.dumps(safe_payload, indent=2, sort_keys=True))


def prediction_to_dataframe(prediction: LoopPrediction) -> pd.DataFrame:
    """Forecast as a frame with ``date`` and ``glucose`` columns."""
    return pd.DataFrame(
        {
            "date": [value.start_date for value in prediction.glucose],
            "glucose": [value.quantity for value in prediction.glucose],
        }
    )


def effects_to_dataframe(prediction: LoopPrediction) -> pd.DataFrame:
    """All intermediate curves in long format: ``curve, start_date, end_date, value``."""
    rows: List[Dict[str, Any]] = []
    for curve in EFFECT_CURVES:
        for point in getattr(prediction.effects, curve):
            rows.append(
                {
                    "curve": curve,
                    "start_date": point.start_date,
                    "end_date": getattr(point, "end_date", point.start_date),
                    "value": point.quantity,
                }
            )
    return pd.DataFrame(rows, columns=["curve", "start_date", "end_date", "value"])


def prediction_to_dict(prediction: LoopPrediction) -> Dict[str, Any]:
    return {
        "glucose": _serialize_payload(prediction.glucose),
        "effects": _serialize_payload(prediction.effects),
    }


def write_prediction(path: Union[str, Path], prediction: LoopPrediction) -> Path:
    """Write the forecast as CSV or, for ``.json`` paths, with every effect curve."""
    output_path = Path(path).expanduser()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_path.suffix.lower() == ".json":
        write_json(output_path, prediction_to_dict(prediction))
    else:
        prediction_to_dataframe(prediction).to_csv(output_path, index=False)
    return output_path
