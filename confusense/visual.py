"""Confusion meter drawing and display banding.

- confusion_label / confusion_band: display-only thresholds for the meter
- draw_confusion_meter: bar + label in the corner of a frame, optional landmark dots
"""
from __future__ import annotations
import cv2
import numpy as np
from typing import Optional, Sequence, Tuple

LABEL_THRESHOLD = 0.45
BAND_MEDIUM = 0.3
BAND_HIGH = 0.6

BAND_COLORS = {
    "low": (68, 255, 68),      # BGR
    "medium": (0, 136, 255),
    "high": (68, 68, 255),
}


def confusion_label(level: float) -> str:
    return "Confused" if level > LABEL_THRESHOLD else "Clear"


def confusion_band(level: float) -> str:
    if level > BAND_HIGH:
        return "high"
    if level > BAND_MEDIUM:
        return "medium"
    return "low"


def draw_confusion_meter(frame: np.ndarray,
                         level: float,
                         face_detected: bool = True,
                         landmarks: Optional[Sequence[Sequence[float]]] = None,
                         origin: Tuple[int, int] = (10, 10),
                         size: Tuple[int, int] = (200, 16)) -> np.ndarray:
    """Draw the confusion bar on a copy of ``frame``.

    Args:
        frame: BGR image
        level: confusion level, clipped to [0, 1] for drawing
        face_detected: when False only a NO_FACE flag is drawn
        landmarks: optional (x, y) points to dot onto the face
        origin: top-left of the bar
        size: bar (width, height)

    Returns:
        Annotated copy of the frame
    """
    out = frame.copy()
    h, w = out.shape[:2]

    if not face_detected:
        cv2.putText(out, "NO_FACE", (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (0, 0, 255), 2, cv2.LINE_AA)
        return out

    for p in landmarks or []:
        if p is None or len(p) < 2:
            continue
        x, y = int(p[0]), int(p[1])
        if 0 <= x < w and 0 <= y < h:
            cv2.circle(out, (x, y), 1, (200, 200, 200), -1)

    x0, y0 = origin
    bw, bh = size
    shown = max(0.0, min(1.0, float(level)))
    color = BAND_COLORS[confusion_band(shown)]
    cv2.rectangle(out, (x0, y0), (x0 + bw, y0 + bh), (240, 240, 240), -1)
    cv2.rectangle(out, (x0, y0), (x0 + int(bw * shown), y0 + bh), color, -1)
    cv2.rectangle(out, (x0, y0), (x0 + bw, y0 + bh), (221, 221, 221), 1)

    text = f"{confusion_label(level)} {round(shown * 100)}%"
    cv2.putText(out, text, (x0, y0 + bh + 20), cv2.FONT_HERSHEY_SIMPLEX, 0.6, color, 2, cv2.LINE_AA)
    return out
