# confusense/calibration.py
"""
Two-phase personal calibration (neutral face, then confused face).

Phases: idle -> collecting_neutral (step 1) -> collecting_confused (step 2)
-> complete (step 3). Each phase ends with an outlier-trimmed mean of the last
CALIBRATION_SAMPLES scores in the window; the finished pair is written to the
store under ``confusionCalibration``.
"""
from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Optional, Sequence

import numpy as np

from confusense.aggregator import ScoreWindow
from confusense.models import CalibrationBaseline, CalibrationStatus

logger = logging.getLogger(__name__)

CALIBRATION_KEY = "confusionCalibration"
DEFAULT_REQUIRED_SAMPLES = 12
IQR_FENCE = 1.5

PHASES = {
    0: "idle",
    1: "collecting_neutral",
    2: "collecting_confused",
    3: "complete",
}


class CalibrationStore:
    """Tiny JSON key/value file. Unreadable content is treated as empty."""
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning(f"[calibration] ignoring unreadable store {self.path}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def get(self, key: str) -> Optional[Any]:
        return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def delete(self, key: str) -> None:
        data = self._read_all()
        if data.pop(key, None) is not None:
            self._write_all(data)


def robust_average(scores: Sequence[float]) -> float:
    """Mean of the scores inside the 1.5*IQR fences.

    Quartiles are taken by index on the sorted list (``floor(n * 0.25)`` and
    ``floor(n * 0.75)``), not interpolated.
    """
    ordered = sorted(float(s) for s in scores)
    n = len(ordered)
    if n == 0:
        return 0.0
    q1 = ordered[math.floor(n * 0.25)]
    q3 = ordered[math.floor(n * 0.75)]
    iqr = q3 - q1
    lo, hi = q1 - IQR_FENCE * iqr, q3 + IQR_FENCE * iqr
    kept = np.array([s for s in scores if lo <= s <= hi], dtype=float)
    return float(kept.mean())


class Calibrator:
    """Owns the calibration baseline and its collection procedure."""
    def __init__(self, store: CalibrationStore | None = None,
                 required_samples: int = DEFAULT_REQUIRED_SAMPLES):
        self.store = store
        self.required_samples = int(required_samples)
        self.baseline: Optional[CalibrationBaseline] = None
        self.step = 0

    @property
    def phase(self) -> str:
        return PHASES[self.step]

    def load(self) -> Optional[CalibrationBaseline]:
        """Restore a persisted baseline, if any. A stored baseline counts as complete."""
        if self.store is None:
            return None
        raw = self.store.get(CALIBRATION_KEY)
        if not isinstance(raw, dict):
            return None
        try:
            self.baseline = CalibrationBaseline(neutral=float(raw["neutral"]), confused=float(raw["confused"]))
        except (KeyError, TypeError, ValueError):
            logger.warning(f"[calibration] ignoring malformed stored baseline: {raw!r}")
            return None
        self.step = 3
        logger.info(f"[calibration] loaded baseline neutral={self.baseline.neutral:.3f} "
                    f"confused={self.baseline.confused:.3f}")
        return self.baseline

    def start(self, window: ScoreWindow) -> None:
        self.baseline = CalibrationBaseline(neutral=0.0, confused=0.0, step=1)
        self.step = 1
        window.clear()
        logger.info("[calibration] collecting neutral samples")

    def complete_step(self, window: ScoreWindow) -> bool:
        """Close the current collection phase. Returns False (and changes nothing)
        when not collecting or the window holds too few samples."""
        if self.step not in (1, 2) or self.baseline is None:
            return False
        if len(window) < self.required_samples:
            logger.debug(f"[calibration] step {self.step} needs {self.required_samples} samples, "
                         f"have {len(window)}")
            return False

        avg = robust_average([s.score for s in window.recent(self.required_samples)])
        if self.step == 1:
            self.baseline = self.baseline.model_copy(update={"neutral": avg, "step": 2})
            self.step = 2
            window.clear()
            logger.info(f"[calibration] neutral={avg:.3f}; collecting confused samples")
        else:
            self.baseline = self.baseline.model_copy(update={"confused": avg, "step": 3})
            self.step = 3
            if self.store is not None:
                self.store.set(CALIBRATION_KEY, self.baseline.persisted())
            logger.info(f"[calibration] complete neutral={self.baseline.neutral:.3f} confused={avg:.3f}")
        return True

    def reset(self) -> None:
        self.baseline = None
        self.step = 0
        if self.store is not None:
            self.store.delete(CALIBRATION_KEY)
        logger.info("[calibration] reset")

    def status(self, window: ScoreWindow) -> CalibrationStatus:
        return CalibrationStatus(
            phase=self.phase,
            step=self.step,
            samples=len(window),
            required_samples=self.required_samples,
            baseline=self.baseline,
        )
