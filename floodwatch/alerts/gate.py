"""
gate.py — Alert decision rule.

An alert is raised only when BOTH hold:

    likelihood >= 60        (inclusive)
    flood_expected is True

A high likelihood without flood_expected does not alert, and neither does
flood_expected with a likelihood below the threshold.
"""

from __future__ import annotations

from floodwatch.prediction.schemas import PredictionResult

ALERT_LIKELIHOOD_THRESHOLD = 60


def should_alert(result: PredictionResult) -> bool:
    """Return True if the prediction warrants a notification."""
    return result.likelihood >= ALERT_LIKELIHOOD_THRESHOLD and result.flood_expected is True
