# confusense/aggregator.py
"""
Recency-weighted smoothing of per-frame scores over a trailing time window.
"""
from __future__ import annotations

import collections
import logging
from typing import Deque, Iterator, List

import numpy as np

from confusense.models import ScoreSample

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 3.5
RECENCY_DECAY = 2.0


class ScoreWindow:
    """Samples no older than ``span`` seconds and not newer than the last update."""
    def __init__(self, span: float = DEFAULT_WINDOW_SECONDS):
        self.span = float(span)
        self._samples: Deque[ScoreSample] = collections.deque()

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[ScoreSample]:
        return iter(self._samples)

    def append(self, sample: ScoreSample) -> None:
        self._samples.append(sample)

    def evict(self, now: float) -> None:
        self._samples = collections.deque(s for s in self._samples if 0 <= now - s.time < self.span)

    def recent(self, n: int) -> List[ScoreSample]:
        return list(self._samples)[-n:] if n > 0 else []

    def clear(self) -> None:
        self._samples.clear()


class ScoreAggregator:
    """Appends each frame to the window and returns the recency-weighted mean score.

    ``weight = exp(-2 * age / span) * confidence`` so a fresh sample weighs its
    confidence and the weight falls towards ``exp(-2)`` of that at the window edge,
    where the sample is evicted.
    """
    def __init__(self, window: ScoreWindow | None = None, span: float = DEFAULT_WINDOW_SECONDS):
        self.window = window if window is not None else ScoreWindow(span)

    def update(self, raw_score: float, confidence: float, now: float) -> float:
        self.window.append(ScoreSample(score=raw_score * confidence, time=now, confidence=confidence))
        self.window.evict(now)
        smoothed = self.smoothed(now)
        logger.debug(f"[aggregator] n={len(self.window)} smoothed={smoothed:.3f}")
        return smoothed

    def weights(self, now: float) -> np.ndarray:
        ages = np.array([now - s.time for s in self.window], dtype=float)
        conf = np.array([s.confidence for s in self.window], dtype=float)
        return np.exp(-RECENCY_DECAY * ages / self.window.span) * conf

    def smoothed(self, now: float) -> float:
        if len(self.window) == 0:
            return 0.0
        w = self.weights(now)
        scores = np.array([s.score for s in self.window], dtype=float)
        total = float(w.sum())
        return float((scores * w).sum() / (total or 1.0))

    def reset(self) -> None:
        self.window.clear()
