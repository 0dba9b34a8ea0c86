import pytest

from confusense.calibration import CALIBRATION_KEY, CalibrationStore
from confusense.document import StudyDocument
from confusense.models import RephraseResult
from confusense.pipeline import ConfusionPipeline, SessionNotActiveError
from conftest import NEUTRAL_SCORE, make_face

FURROWED = make_face({296: (360, 140), 334: (360, 140), 293: (360, 140)})   # scores 0.95


class FakeDispatcher:
    def __init__(self, result=None):
        self.requests = []
        self.result = result or RephraseResult(text="simpler words", ok=True, provider="openai")

    def dispatch(self, request):
        self.requests.append(request)
        return self.result


def _pipeline(settings, fake_timer, dispatcher=None, **kw):
    return ConfusionPipeline(settings, dispatcher=dispatcher or FakeDispatcher(),
                             document=StudyDocument("Closures capture scope."),
                             timer_factory=fake_timer, clock=lambda: 0.0, **kw)


def _feed(p, face, n, t0):
    out = None
    for i in range(n):
        out = p.process_frame(face, now=t0 + i * 0.2)
    return out


def test_neutral_frames_stay_clear(settings, fake_timer, neutral_face):
    p = _pipeline(settings, fake_timer)
    r = _feed(p, neutral_face, 8, 0.0)
    assert r.face_detected and r.samples == 8
    assert r.raw_score == pytest.approx(NEUTRAL_SCORE)
    assert r.level == pytest.approx(NEUTRAL_SCORE)
    assert r.confused is False
    assert fake_timer.created == []


def test_no_face_short_circuits(settings, fake_timer, neutral_face):
    p = _pipeline(settings, fake_timer)
    _feed(p, FURROWED, 7, 0.0)
    assert p.machine.state.confused
    r = p.process_frame([], now=2.0)
    assert r.face_detected is False and r.level == 0.0 and r.confused is False
    assert r.samples == 7
    assert p.process_frame(None, now=2.2).face_detected is False


def test_confusion_episode_dispatches_once_and_adds_suggestion(settings, fake_timer, neutral_face):
    d = FakeDispatcher()
    p = _pipeline(settings, fake_timer, dispatcher=d)
    _feed(p, neutral_face, 6, 0.0)
    r = p.process_frame(FURROWED, now=1.2)
    assert r.confused and r.debounce_armed
    _feed(p, FURROWED, 3, 1.4)
    assert len(fake_timer.created) == 1

    fake_timer.created[0].fire()
    assert len(d.requests) == 1
    req = d.requests[0]
    assert req.event_type == "facial-confusion"
    assert req.content == "Closures capture scope."
    assert req.confusion_level == pytest.approx(p.machine.state.level)
    assert [s.text for s in p.document.suggestions] == ["simpler words"]


def test_failed_dispatch_does_not_touch_document(settings, fake_timer, neutral_face):
    d = FakeDispatcher(RephraseResult(text="No API key provided.", ok=False))
    p = _pipeline(settings, fake_timer, dispatcher=d)
    _feed(p, neutral_face, 6, 0.0)
    p.process_frame(FURROWED, now=1.2)
    fake_timer.created[0].fire()
    assert p.document.suggestions == []


def test_trigger_disabled(settings, fake_timer, neutral_face):
    p = _pipeline(settings, fake_timer, on_trigger=None)
    _feed(p, neutral_face, 6, 0.0)
    assert p.process_frame(FURROWED, now=1.2).debounce_armed is True
    assert fake_timer.created == []


def test_calibration_requires_running_session(settings, fake_timer):
    p = _pipeline(settings, fake_timer)
    with pytest.raises(SessionNotActiveError):
        p.start_calibration()


def test_calibration_flow_normalizes_levels(settings, fake_timer, neutral_face):
    p = _pipeline(settings, fake_timer)
    assert p.start() is True and p.start() is False

    st = p.start_calibration()
    assert st.phase == "collecting_neutral" and st.samples == 0

    _feed(p, neutral_face, 11, 0.0)
    assert p.complete_calibration_step() is False
    _feed(p, neutral_face, 1, 2.2)
    assert p.complete_calibration_step() is True
    assert p.calibration_status().phase == "collecting_confused"

    _feed(p, FURROWED, 12, 3.0)
    assert p.complete_calibration_step() is True
    b = p.calibrator.baseline
    assert b.neutral == pytest.approx(0.4) and b.confused == pytest.approx(0.95)
    assert CalibrationStore(settings.CALIBRATION_PATH).get(CALIBRATION_KEY) is not None

    # back to a relaxed face long enough for the window to flush
    r = _feed(p, neutral_face, 20, 10.0)
    assert r.level == pytest.approx(0.0)
    r = _feed(p, FURROWED, 20, 20.0)
    assert r.level == pytest.approx(1.0)

    p.reset_calibration()
    assert p.calibrator.baseline is None
    assert CalibrationStore(settings.CALIBRATION_PATH).get(CALIBRATION_KEY) is None


def test_persisted_calibration_loaded_on_start(settings, fake_timer, neutral_face):
    CalibrationStore(settings.CALIBRATION_PATH).set(CALIBRATION_KEY, {"neutral": 0.2, "confused": 0.6})
    p = _pipeline(settings, fake_timer)
    assert p.calibration_status().phase == "complete"
    r = _feed(p, neutral_face, 1, 0.0)
    assert r.level == pytest.approx(0.5 ** 0.8)


def test_stop_clears_state_and_pending_trigger(settings, fake_timer, neutral_face):
    p = _pipeline(settings, fake_timer)
    p.start()
    _feed(p, neutral_face, 6, 0.0)
    p.process_frame(FURROWED, now=1.2)
    assert p.stop() is True and p.stop() is False
    assert fake_timer.created[0].cancelled
    st = p.status()
    assert st.running is False and st.state.confused is False and st.state.level == 0.0


def test_status_display_fields(settings, fake_timer):
    p = _pipeline(settings, fake_timer)
    p.start()
    _feed(p, FURROWED, 3, 0.0)
    st = p.status()
    assert st.label == "Confused" and st.band == "high"
    assert st.samples == 3 and st.last_frame.samples == 3
