import pytest

from confusense.config import Settings

MESH_SIZE = 478

# Relaxed frontal face in pixel space: scores only the brow-height bump (0.4)
# and keeps full confidence (face length 160px).
NEUTRAL_FACE = {
    # brows
    70: (280, 150), 63: (280, 150), 105: (280, 150),
    66: (250, 150), 107: (250, 150), 55: (250, 150),
    296: (360, 150), 334: (360, 150), 293: (360, 150),
    300: (390, 150), 276: (390, 150), 285: (390, 150),
    # left eye
    33: (270, 180), 7: (270, 180), 163: (270, 180),
    144: (300, 186), 145: (300, 186), 153: (300, 186),
    159: (285, 176), 158: (285, 176), 157: (285, 176), 173: (285, 176),
    154: (285, 186), 155: (285, 186),
    # right eye
    362: (370, 180), 382: (370, 180), 381: (370, 180),
    380: (400, 186), 374: (400, 186), 373: (400, 186),
    386: (385, 176), 385: (385, 176), 384: (385, 176), 398: (385, 176),
    390: (385, 186), 249: (385, 186),
    # lips (18 doubles as chin)
    13: (320, 300), 82: (320, 300), 18: (320, 300), 17: (320, 300), 200: (320, 300),
    14: (320, 304), 87: (320, 304), 178: (320, 304), 88: (320, 304), 95: (320, 304), 179: (320, 304),
    61: (300, 302), 291: (340, 302),
    # nose and cheeks
    1: (320, 250), 168: (320, 190),
    234: (260, 220), 454: (380, 220),
    # forehead / jaw
    10: (320, 80), 151: (320, 80), 9: (320, 80),
    172: (320, 240), 136: (320, 240), 150: (320, 240), 149: (320, 240), 176: (320, 240),
}

NEUTRAL_SCORE = 0.4


def make_face(overrides=None, base=None):
    """Landmark list of MESH_SIZE entries; unspecified indices are None."""
    pts = dict(NEUTRAL_FACE if base is None else base)
    pts.update(overrides or {})
    out = [None] * MESH_SIZE
    for idx, p in pts.items():
        out[idx] = None if p is None else list(p)
    return out


class FakeTimer:
    """Stands in for threading.Timer; fire() runs the callback by hand."""
    created = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.daemon = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


@pytest.fixture
def fake_timer():
    FakeTimer.created = []
    yield FakeTimer
    FakeTimer.created = []


@pytest.fixture
def neutral_face():
    return make_face()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        OPENAI_API_KEY=None,
        GEMINI_API_KEY=None,
        CALIBRATION_PATH=str(tmp_path / "calibration.json"),
    )
