# confusense/features.py
"""
Per-frame geometric heuristics over a face-mesh landmark set.

The score is a flat sum of fixed bumps, one per measurement that falls outside
its "relaxed face" range. Landmark indices follow the 478 point MediaPipe face
mesh topology in pixel space (z is ignored).

Each feature group is computed on its own: a group that raises contributes
nothing and is reported in ``FeatureReport.failed_groups``, the others still
count. Missing indices read as 0.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from confusense.models import FeatureReport

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Face-mesh indices
# -----------------------------------------------------------------------------
LEFT_BROW_INNER = (70, 63, 105)
LEFT_BROW_OUTER = (66, 107, 55)
RIGHT_BROW_INNER = (296, 334, 293)
RIGHT_BROW_OUTER = (300, 276, 285)

LEFT_EYE_INNER = (33, 7, 163)
LEFT_EYE_OUTER = (144, 145, 153)
LEFT_EYE_UPPER = (159, 158, 157, 173)
LEFT_EYE_LOWER = (145, 153, 154, 155)

RIGHT_EYE_INNER = (362, 382, 381)
RIGHT_EYE_OUTER = (380, 374, 373)
RIGHT_EYE_UPPER = (386, 385, 384, 398)
RIGHT_EYE_LOWER = (374, 373, 390, 249)

UPPER_LIP = (13, 82, 18, 17, 18, 200)
LOWER_LIP = (14, 87, 178, 88, 95, 179)
MOUTH_LEFT_CORNER = 61
MOUTH_RIGHT_CORNER = 291

NOSE_TIP = 1
NOSE_BRIDGE = 168
LEFT_CHEEK = 234
RIGHT_CHEEK = 454
CHIN = 18

FOREHEAD = (10, 151, 9, 10, 151)
JAWLINE = (172, 136, 150, 149, 176)

# -----------------------------------------------------------------------------
# Heuristic thresholds (px) and the score each one adds
# -----------------------------------------------------------------------------
BROW_LOW_DIST, BROW_LOW_BUMP = 20.0, 0.4
BROW_ASYM, BROW_ASYM_BUMP = 6.0, 0.3
BROW_ANGLE, BROW_ANGLE_BUMP = 8.0, 0.25

EYE_SQUINT, EYE_SQUINT_BUMP = 4.0, 0.35
EYE_WIDE, EYE_WIDE_BUMP = 20.0, 0.3
EYE_ASYM, EYE_ASYM_BUMP = 4.0, 0.2
EYE_RATIO_RANGE, EYE_RATIO_BUMP = (0.85, 1.15), 0.25

MOUTH_OPEN_RANGE, MOUTH_OPEN_BUMP = (8.0, 20.0), 0.3
MOUTH_OFFSET, MOUTH_OFFSET_BUMP = 5.0, 0.25
MOUTH_TILT, MOUTH_TILT_BUMP = 3.0, 0.2
MOUTH_NARROW, MOUTH_NARROW_BUMP = 25.0, 0.15

HEAD_ROLL, HEAD_ROLL_BUMP = 12.0, 0.25
HEAD_YAW, HEAD_YAW_BUMP = 8.0, 0.2
FACE_RATIO_RANGE, FACE_RATIO_BUMP = (0.6, 1.1), 0.15
DEFAULT_FACE_HEIGHT = 100.0

FACE_LENGTH_RANGE = (120.0, 200.0)
POOR_FRAMING_DISCOUNT = 0.8


# -----------------------------------------------------------------------------
# Landmark access
# -----------------------------------------------------------------------------
class Keypoints:
    """Index-tolerant view over one frame's landmarks.

    Accepts a sequence whose items are ``None``, ``(x, y[, z])`` sequences,
    ``{"x": .., "y": ..}`` mappings or numpy rows.
    """
    def __init__(self, landmarks: Optional[Sequence[Any]]):
        self._pts = landmarks if landmarks is not None else []

    def __len__(self) -> int:
        return len(self._pts)

    def point(self, idx: int) -> Optional[Any]:
        if idx < 0 or idx >= len(self._pts):
            return None
        return self._pts[idx]

    def coord(self, idx: int, axis: int) -> float:
        """Coordinate of a point, 0.0 when the point or the value is absent."""
        p = self.point(idx)
        if p is None:
            return 0.0
        if isinstance(p, dict):
            v = p.get("xy"[axis])
        else:
            v = p[axis] if len(p) > axis else None
        if v is None:
            return 0.0
        v = float(v)
        return 0.0 if math.isnan(v) else v

    def x(self, idx: int) -> float:
        return self.coord(idx, 0)

    def y(self, idx: int) -> float:
        return self.coord(idx, 1)

    def mean_x(self, idxs: Sequence[int]) -> float:
        return sum(self.x(i) for i in idxs) / len(idxs)

    def mean_y(self, idxs: Sequence[int]) -> float:
        return sum(self.y(i) for i in idxs) / len(idxs)


def _ratio(num: float, den: float) -> float:
    """Division that yields inf / nan instead of raising on a zero denominator."""
    if den == 0:
        return math.inf if num > 0 else math.nan
    return num / den


def _outside(value: float, bounds: Tuple[float, float]) -> bool:
    lo, hi = bounds
    return value < lo or value > hi


# -----------------------------------------------------------------------------
# Feature groups: each returns (measurements, score contribution)
# -----------------------------------------------------------------------------
def brow_features(kp: Keypoints) -> Tuple[Dict[str, float], float]:
    left_inner = kp.mean_y(LEFT_BROW_INNER)
    left_outer = kp.mean_y(LEFT_BROW_OUTER)
    right_inner = kp.mean_y(RIGHT_BROW_INNER)
    right_outer = kp.mean_y(RIGHT_BROW_OUTER)

    left_dist = left_inner - kp.mean_y(LEFT_EYE_INNER)
    right_dist = right_inner - kp.mean_y(RIGHT_EYE_INNER)
    feats = {
        "brow_distance": (left_dist + right_dist) / 2,
        "brow_asymmetry": abs(left_dist - right_dist),
        "left_brow_angle": abs(left_inner - left_outer),
        "right_brow_angle": abs(right_inner - right_outer),
    }

    score = 0.0
    if feats["brow_distance"] < BROW_LOW_DIST:
        score += BROW_LOW_BUMP
    if feats["brow_asymmetry"] > BROW_ASYM:
        score += BROW_ASYM_BUMP
    if feats["left_brow_angle"] > BROW_ANGLE or feats["right_brow_angle"] > BROW_ANGLE:
        score += BROW_ANGLE_BUMP
    return feats, score


def eye_features(kp: Keypoints) -> Tuple[Dict[str, float], float]:
    left_h = abs(kp.mean_y(LEFT_EYE_UPPER) - kp.mean_y(LEFT_EYE_LOWER))
    right_h = abs(kp.mean_y(RIGHT_EYE_UPPER) - kp.mean_y(RIGHT_EYE_LOWER))
    left_w = abs(kp.mean_x(LEFT_EYE_OUTER) - kp.mean_x(LEFT_EYE_INNER))
    right_w = abs(kp.mean_x(RIGHT_EYE_OUTER) - kp.mean_x(RIGHT_EYE_INNER))
    feats = {
        "eye_height": (left_h + right_h) / 2,
        "eye_asymmetry": abs(left_h - right_h),
        "eye_width_ratio": _ratio(left_w, right_w),
    }

    score = 0.0
    if feats["eye_height"] < EYE_SQUINT:
        score += EYE_SQUINT_BUMP
    if feats["eye_height"] > EYE_WIDE:
        score += EYE_WIDE_BUMP
    if feats["eye_asymmetry"] > EYE_ASYM:
        score += EYE_ASYM_BUMP
    if _outside(feats["eye_width_ratio"], EYE_RATIO_RANGE):
        score += EYE_RATIO_BUMP
    return feats, score


def mouth_features(kp: Keypoints) -> Tuple[Dict[str, float], float]:
    left_x, right_x = kp.x(MOUTH_LEFT_CORNER), kp.x(MOUTH_RIGHT_CORNER)
    center = (left_x + right_x) / 2
    nose_x = kp.x(NOSE_TIP) or center
    feats = {
        "mouth_height": abs(kp.mean_y(UPPER_LIP) - kp.mean_y(LOWER_LIP)),
        "mouth_offset": abs(center - nose_x),
        "mouth_tilt": abs(kp.y(MOUTH_LEFT_CORNER) - kp.y(MOUTH_RIGHT_CORNER)),
        "mouth_width": abs(left_x - right_x),
    }

    score = 0.0
    lo, hi = MOUTH_OPEN_RANGE
    if lo < feats["mouth_height"] < hi:
        score += MOUTH_OPEN_BUMP
    if feats["mouth_offset"] > MOUTH_OFFSET:
        score += MOUTH_OFFSET_BUMP
    if feats["mouth_tilt"] > MOUTH_TILT:
        score += MOUTH_TILT_BUMP
    if feats["mouth_width"] < MOUTH_NARROW:
        score += MOUTH_NARROW_BUMP
    return feats, score


def head_pose_features(kp: Keypoints) -> Tuple[Dict[str, float], float]:
    anchors = (NOSE_TIP, NOSE_BRIDGE, LEFT_CHEEK, RIGHT_CHEEK)
    if any(kp.point(i) is None for i in anchors):
        return {}, 0.0

    face_w = abs(kp.x(LEFT_CHEEK) - kp.x(RIGHT_CHEEK))
    if kp.point(CHIN) is not None:
        face_h = abs(kp.y(NOSE_BRIDGE) - kp.y(CHIN))
    else:
        face_h = DEFAULT_FACE_HEIGHT
    feats = {
        "head_tilt_x": abs(kp.y(LEFT_CHEEK) - kp.y(RIGHT_CHEEK)),
        "head_tilt_y": abs(kp.x(NOSE_TIP) - kp.x(NOSE_BRIDGE)),
        "face_ratio": _ratio(face_w, face_h),
    }

    score = 0.0
    if feats["head_tilt_x"] > HEAD_ROLL:
        score += HEAD_ROLL_BUMP
    if feats["head_tilt_y"] > HEAD_YAW:
        score += HEAD_YAW_BUMP
    if _outside(feats["face_ratio"], FACE_RATIO_RANGE):
        score += FACE_RATIO_BUMP
    return feats, score


def face_length_confidence(kp: Keypoints) -> Tuple[Dict[str, float], float]:
    """Returns the confidence multiplier in place of a score."""
    length = abs(kp.mean_y(FOREHEAD) - kp.mean_y(JAWLINE))
    confidence = POOR_FRAMING_DISCOUNT if _outside(length, FACE_LENGTH_RANGE) else 1.0
    return {"face_length": length}, confidence


FeatureGroup = Callable[[Keypoints], Tuple[Dict[str, float], float]]

SCORE_GROUPS: Tuple[Tuple[str, FeatureGroup], ...] = (
    ("brow", brow_features),
    ("eye", eye_features),
    ("mouth", mouth_features),
    ("head_pose", head_pose_features),
)


class FeatureExtractor:
    """Turns one frame of landmarks into a FeatureReport. Never raises."""
    def __init__(self, groups: Sequence[Tuple[str, FeatureGroup]] = SCORE_GROUPS):
        self.groups = tuple(groups)

    def extract(self, landmarks: Optional[Sequence[Any]]) -> FeatureReport:
        kp = Keypoints(landmarks)
        feats: Dict[str, float] = {}
        group_scores: Dict[str, float] = {}
        failed: list[str] = []

        for name, group in self.groups:
            try:
                values, score = group(kp)
            except Exception:
                logger.warning(f"[features] group '{name}' failed; contributing 0", exc_info=True)
                failed.append(name)
                continue
            feats.update(values)
            group_scores[name] = score

        confidence = 1.0
        try:
            values, confidence = face_length_confidence(kp)
            feats.update(values)
        except Exception:
            logger.warning("[features] face length failed; confidence left at 1.0", exc_info=True)
            failed.append("face_length")

        total = sum(group_scores.values())
        logger.debug(f"[features] score={total:.3f} confidence={confidence} failed={failed}")
        return FeatureReport(
            **feats,
            group_scores=group_scores,
            failed_groups=failed,
            score=total,
            confidence=confidence,
        )
