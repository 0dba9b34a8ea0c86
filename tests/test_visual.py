import numpy as np

from confusense.visual import confusion_band, confusion_label, draw_confusion_meter


def test_label_and_band_thresholds():
    assert confusion_label(0.45) == "Clear"
    assert confusion_label(0.46) == "Confused"
    assert confusion_band(0.3) == "low"
    assert confusion_band(0.31) == "medium"
    assert confusion_band(0.61) == "high"


def test_draw_confusion_meter_cases():
    frame = np.zeros((120, 240, 3), dtype=np.uint8)
    out1 = draw_confusion_meter(frame, 0.0, face_detected=False)
    assert out1.shape == frame.shape
    out2 = draw_confusion_meter(frame, 1.7, landmarks=[[10, 100], None, [999, 999]])
    assert out2.shape == frame.shape
    assert out2.any()
    # input frame untouched
    assert not frame.any()
