from __future__ import annotations


class AlgorithmError(Exception):
    """Base class for failures that abort a single forecast."""


class MissingGlucoseError(AlgorithmError):
    """Raised when the glucose history is empty and there is nothing to forecast from."""

    def __init__(self, message: str = "Glucose history is empty; cannot anchor a forecast.") -> None:
        super().__init__(message)


class IncompleteSchedulesError(AlgorithmError):
    """Raised when a therapy schedule has no value in effect at a required date."""

    def __init__(self, schedule_name: str, date) -> None:
        super().__init__(f"Schedule '{schedule_name}' has no value in effect at {date.isoformat()}.")
        self.schedule_name = schedule_name
        self.date = date
