# confusense/pipeline.py
"""
One capture session's scoring pipeline:

landmarks -> FeatureExtractor -> ScoreAggregator -> normalize (calibration
baseline) -> ConfusionStateMachine -> RephraseDispatcher on a debounced trigger.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional, Sequence

from confusense.aggregator import ScoreAggregator
from confusense.calibration import CalibrationStore, Calibrator
from confusense.config import Settings
from confusense.document import StudyDocument
from confusense.features import FeatureExtractor
from confusense.models import CalibrationStatus, FrameResult, RephraseRequest, RephraseResult, SessionStatus
from confusense.normalizer import normalize
from confusense.rephrase import RephraseDispatcher
from confusense.state import ConfusionStateMachine, TimerFactory
from confusense.visual import confusion_band, confusion_label

logger = logging.getLogger(__name__)

_DEFAULT = object()


class SessionNotActiveError(RuntimeError):
    """Raised for operations that need a running capture session."""


class ConfusionPipeline:
    """Owns all per-session scoring state.

    ``on_trigger=None`` (explicitly) disables dispatching; rising edges are still
    reported in FrameResult.debounce_armed.
    """
    def __init__(self,
                 settings: Settings,
                 dispatcher: Optional[RephraseDispatcher] = None,
                 document: Optional[StudyDocument] = None,
                 store: Optional[CalibrationStore] = None,
                 on_trigger: Any = _DEFAULT,
                 timer_factory: TimerFactory = threading.Timer,
                 clock: Callable[[], float] = time.time):
        self.s = settings
        self.clock = clock
        self.extractor = FeatureExtractor()
        self.aggregator = ScoreAggregator(span=settings.WINDOW_SECONDS)
        self.calibrator = Calibrator(
            store if store is not None else CalibrationStore(settings.CALIBRATION_PATH),
            required_samples=settings.CALIBRATION_SAMPLES,
        )
        self.dispatcher = dispatcher if dispatcher is not None else RephraseDispatcher.from_settings(settings)
        self.document = document if document is not None else StudyDocument()
        self.machine = ConfusionStateMachine(
            on_trigger=self._on_confusion if on_trigger is _DEFAULT else on_trigger,
            threshold=settings.CONFUSION_THRESHOLD,
            debounce_seconds=settings.DEBOUNCE_SECONDS,
            min_samples=settings.MIN_TRIGGER_SAMPLES,
            timer_factory=timer_factory,
            clock=clock,
        )
        self._lock = threading.RLock()
        self._running = False
        self._started_at: Optional[float] = None
        self._last_frame: Optional[FrameResult] = None
        self.calibrator.load()

    # ---- lifecycle ----
    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> bool:
        with self._lock:
            if self._running:
                return False
            self._running = True
            self._started_at = self.clock()
            logger.info("[pipeline] session started")
            return True

    def stop(self) -> bool:
        with self._lock:
            if not self._running:
                return False
            self._running = False
            self._started_at = None
            self.machine.reset()
            logger.info("[pipeline] session stopped")
            return True

    # ---- per-frame ----
    def process_frame(self, landmarks: Optional[Sequence[Any]], now: float | None = None) -> FrameResult:
        """Score one frame. ``None`` or an empty sequence means no face this tick."""
        now = self.clock() if now is None else now
        with self._lock:
            if landmarks is None or len(landmarks) == 0:
                self.machine.no_face()
                result = FrameResult(ts=now, face_detected=False, samples=len(self.aggregator.window))
                self._last_frame = result
                return result

            report = self.extractor.extract(landmarks)
            smoothed = self.aggregator.update(report.score, report.confidence, now)
            level = normalize(smoothed, self.calibrator.baseline)
            samples = len(self.aggregator.window)
            armed = self.machine.update(level, samples)

            result = FrameResult(
                ts=now,
                face_detected=True,
                raw_score=report.score,
                confidence=report.confidence,
                smoothed_score=smoothed,
                level=level,
                confused=self.machine.state.confused,
                debounce_armed=armed,
                samples=samples,
                failed_groups=report.failed_groups,
            )
            self._last_frame = result
            return result

    # ---- calibration ----
    def start_calibration(self) -> CalibrationStatus:
        with self._lock:
            if not self._running:
                raise SessionNotActiveError("Calibration needs an active capture session")
            self.calibrator.start(self.aggregator.window)
            return self.calibration_status()

    def complete_calibration_step(self) -> bool:
        with self._lock:
            return self.calibrator.complete_step(self.aggregator.window)

    def reset_calibration(self) -> None:
        with self._lock:
            self.calibrator.reset()

    def calibration_status(self) -> CalibrationStatus:
        return self.calibrator.status(self.aggregator.window)

    # ---- rephrase ----
    def rephrase(self, request: RephraseRequest) -> RephraseResult:
        return self.dispatcher.dispatch(request)

    def _on_confusion(self, level: float) -> None:
        request = RephraseRequest(event_type="facial-confusion", content=self.document.content,
                                  confusion_level=level)
        result = self.dispatcher.dispatch(request)
        if result.ok:
            self.document.add_suggestion(result.text, provider=result.provider)
        else:
            logger.warning(f"[pipeline] rephrase not applied: {result.text}")

    # ---- status ----
    def status(self, capturing: bool = False) -> SessionStatus:
        state = self.machine.state
        return SessionStatus(
            running=self._running,
            capturing=capturing,
            started_at=self._started_at,
            state=state,
            label=confusion_label(state.level),
            band=confusion_band(state.level),
            samples=len(self.aggregator.window),
            calibration=self.calibration_status(),
            last_frame=self._last_frame,
        )
