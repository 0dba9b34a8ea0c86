# confusense/live.py
"""
Live (real-time) capture utilities.

Reads webcam frames locally and feeds the scoring pipeline on a fixed tick:
- LiveConfusionSession: background thread, one frame + one landmark inference per tick
- run_live_overlay: camera window with the confusion meter drawn on top

The landmark detector is a black box returning pixel-space (x, y) points for
the first face, or None when no face is found.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import List, Optional, Protocol

import cv2
import numpy as np

from confusense.config import Settings
from confusense.models import FrameResult
from confusense.pipeline import ConfusionPipeline
from confusense.visual import draw_confusion_meter

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Tuning knobs
# -----------------------------------------------------------------------------
MIN_DETECTION_CONFIDENCE = 0.5
MIN_TRACKING_CONFIDENCE = 0.5
WINDOW_TITLE = "ConfuSense Live (q to quit)"
# -----------------------------------------------------------------------------


class LandmarkDetector(Protocol):
    def detect(self, frame: np.ndarray) -> Optional[List[List[float]]]: ...

    def close(self) -> None: ...


class FaceMeshDetector:
    """MediaPipe face mesh with refined landmarks (478 points), first face only."""
    def __init__(self,
                 min_detection_confidence: float = MIN_DETECTION_CONFIDENCE,
                 min_tracking_confidence: float = MIN_TRACKING_CONFIDENCE):
        # lazy import keeps mediapipe optional outside live capture
        import mediapipe as mp
        self._mesh = mp.solutions.face_mesh.FaceMesh(
            static_image_mode=False,
            max_num_faces=1,
            refine_landmarks=True,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

    def detect(self, frame: np.ndarray) -> Optional[List[List[float]]]:
        if frame is None or frame.size == 0:
            return None
        h, w = frame.shape[:2]
        results = self._mesh.process(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        if not results.multi_face_landmarks:
            return None
        face = results.multi_face_landmarks[0]
        return [[lm.x * w, lm.y * h] for lm in face.landmark]

    def close(self) -> None:
        self._mesh.close()


# -----------------------------------------------------------------------------
# LiveConfusionSession: background tick loop feeding the pipeline
# -----------------------------------------------------------------------------
class LiveConfusionSession:
    """Camera -> detector -> pipeline, once per TICK_INTERVAL on one thread.

    Detector calls never overlap: a slow inference just delays the next tick.
    """
    def __init__(self, settings: Settings, pipeline: ConfusionPipeline,
                 detector: Optional[LandmarkDetector] = None):
        self.s = settings
        self.pipeline = pipeline
        self._detector = detector
        self._run = False
        self._thread: Optional[threading.Thread] = None
        self.last_frame: Optional[np.ndarray] = None
        self.last_landmarks: Optional[List[List[float]]] = None

    # ---- lifecycle ----
    @property
    def running(self) -> bool:
        return self._run

    def start(self) -> None:
        if self._run:
            return
        self._run = True
        self.pipeline.start()
        self._thread = threading.Thread(target=self._tick_loop, daemon=True)
        self._thread.start()

    def stop(self, join_timeout: float = 2.0) -> None:
        self._run = False
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=join_timeout)
        self._thread = None
        self.pipeline.stop()

    def _get_detector(self) -> LandmarkDetector:
        if self._detector is None:
            self._detector = FaceMeshDetector()
        return self._detector

    def close_detector(self) -> None:
        if self._detector is None:
            return
        try:
            self._detector.close()
        except Exception:
            logger.warning("[live] detector close failed", exc_info=True)

    # ---- one tick ----
    def tick(self, cap) -> Optional[FrameResult]:
        ok, frame = cap.read()
        if not ok or frame is None:
            return None
        try:
            landmarks = self._get_detector().detect(frame)
        except Exception:
            logger.exception("[live] landmark detection failed; treating as no face")
            landmarks = None
        self.last_frame = frame
        self.last_landmarks = landmarks
        return self.pipeline.process_frame(landmarks)

    def _tick_loop(self):
        cap = cv2.VideoCapture(self.s.CAMERA_INDEX)
        if not cap.isOpened():
            logger.error(f"[live] could not open camera index {self.s.CAMERA_INDEX}")
            self._run = False
            self.pipeline.stop()
            return
        try:
            while self._run:
                t0 = time.time()
                self.tick(cap)
                time.sleep(max(0.0, self.s.TICK_INTERVAL - (time.time() - t0)))
        finally:
            cap.release()
            self.close_detector()


# -----------------------------------------------------------------------------
# Live camera overlay
# -----------------------------------------------------------------------------
def run_live_overlay(settings: Settings,
                     camera_index: Optional[int] = None,
                     pipeline: Optional[ConfusionPipeline] = None,
                     detector: Optional[LandmarkDetector] = None) -> None:
    """
    Open the webcam, score every TICK_INTERVAL and draw the confusion meter.

    Runs the tick loop on the calling thread. Press 'q' to quit.
    """
    cam_idx = settings.CAMERA_INDEX if camera_index is None else camera_index
    cap = cv2.VideoCapture(cam_idx)
    if not cap.isOpened():
        raise RuntimeError(f"Could not open camera index {cam_idx}")

    pipeline = pipeline if pipeline is not None else ConfusionPipeline(settings)
    session = LiveConfusionSession(settings, pipeline, detector=detector)
    pipeline.start()

    wait_ms = max(1, int(settings.TICK_INTERVAL * 1000))
    try:
        while True:
            result = session.tick(cap)
            if result is None:
                break
            annotated = draw_confusion_meter(
                session.last_frame,
                result.level,
                face_detected=result.face_detected,
                landmarks=session.last_landmarks,
            )
            cv2.imshow(WINDOW_TITLE, annotated)
            if (cv2.waitKey(wait_ms) & 0xFF) == ord("q"):
                break
    finally:
        pipeline.stop()
        session.close_detector()
        cap.release()
        cv2.destroyAllWindows()
