import pytest

from confusense.models import CalibrationBaseline
from confusense.normalizer import normalize

BASE = CalibrationBaseline(neutral=0.2, confused=0.6)


def test_uncalibrated_passes_raw_score_through():
    assert normalize(1.35, None) == 1.35
    assert normalize(0.0, None) == 0.0


@pytest.mark.parametrize("raw, expected", [
    (0.2, 0.0),
    (0.6, 1.0),
    (0.4, 0.5 ** 0.8),
    (0.9, 1.0),
    (0.05, 0.0),
])
def test_calibrated_levels(raw, expected):
    assert normalize(raw, BASE) == pytest.approx(expected)


def test_midpoint_gamma_value():
    assert normalize(0.4, BASE) == pytest.approx(0.574, abs=1e-3)


def test_narrow_range_is_floored():
    b = CalibrationBaseline(neutral=0.5, confused=0.52)
    assert normalize(0.55, b) == pytest.approx(0.5 ** 0.8)


def test_inverted_baseline_uses_minimum_range():
    b = CalibrationBaseline(neutral=0.6, confused=0.2)
    assert normalize(0.65, b) == pytest.approx(0.5 ** 0.8)


def test_normalize_is_pure():
    assert normalize(0.37, BASE) == normalize(0.37, BASE)
    assert BASE.neutral == 0.2 and BASE.confused == 0.6
