"""
Maps a smoothed score onto the user's calibrated [0, 1] confusion level.
"""
from __future__ import annotations
from typing import Optional

from confusense.models import CalibrationBaseline

MIN_RANGE = 0.1
GAMMA = 0.8


def normalize(smoothed: float, baseline: Optional[CalibrationBaseline]) -> float:
    """
    Without a baseline the smoothed score passes through unchanged.

    With one, the score is placed on the neutral..confused range (range at least
    MIN_RANGE), clamped to [0, 1] and lifted with a 0.8 gamma. Scores under
    neutral land on 0.
    """
    if baseline is None:
        return smoothed

    span = max(MIN_RANGE, baseline.confused - baseline.neutral)
    if smoothed > baseline.neutral:
        level = min(1.0, (smoothed - baseline.neutral) / span)
    else:
        # mirrors the upper branch; always clamps to 0
        level = max(0.0, (smoothed - baseline.neutral) / span)
    return level ** GAMMA
