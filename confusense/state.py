# confusense/state.py
"""
Confused/clear thresholding with a debounced trigger.

A rising edge (clear -> confused) with enough evidence in the window arms a
single cancellable timer; if the state is still confused when it fires, the
trigger callback runs once. Staying confused never re-arms; the user must go
back to clear first.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from confusense.models import ConfusionState

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.42
DEFAULT_DEBOUNCE_SECONDS = 1.0
DEFAULT_MIN_SAMPLES = 6

TimerFactory = Callable[[float, Callable[[], None]], object]


class Debouncer:
    """At most one pending delayed call; restarting cancels the previous one."""
    def __init__(self, delay: float, timer_factory: TimerFactory = threading.Timer):
        self.delay = float(delay)
        self._timer_factory = timer_factory
        self._timer = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def restart(self, fn: Callable[[], None]) -> None:
        def _fire():
            with self._lock:
                if self._timer is not timer:
                    return
                self._timer = None
            fn()

        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = self._timer_factory(self.delay, _fire)
            timer.daemon = True
            self._timer = timer
        timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


class ConfusionStateMachine:
    """Consumes one level per tick and decides when confusion should be reported."""
    def __init__(self,
                 on_trigger: Optional[Callable[[float], None]] = None,
                 threshold: float = DEFAULT_THRESHOLD,
                 debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
                 min_samples: int = DEFAULT_MIN_SAMPLES,
                 timer_factory: TimerFactory = threading.Timer,
                 clock: Callable[[], float] = time.time):
        self.on_trigger = on_trigger
        self.threshold = float(threshold)
        self.min_samples = int(min_samples)
        self.debouncer = Debouncer(debounce_seconds, timer_factory)
        self.clock = clock
        self.state = ConfusionState()

    def update(self, level: float, samples: int) -> bool:
        """Apply one tick. Returns True when this tick armed the debounce timer."""
        was_confused = self.state.confused
        confused = level > self.threshold
        self.state = self.state.model_copy(update={"level": level, "confused": confused})

        if confused and not was_confused and samples >= self.min_samples:
            logger.debug(f"[state] rising edge level={level:.3f} samples={samples}")
            if self.on_trigger is not None:
                self.debouncer.restart(self._fire)
            return True
        return False

    def no_face(self) -> None:
        self.state = self.state.model_copy(update={"level": 0.0, "confused": False})

    def reset(self) -> None:
        """Back to clear; drops any pending trigger."""
        self.debouncer.cancel()
        self.no_face()

    def _fire(self) -> None:
        if not self.state.confused:
            logger.debug("[state] debounce elapsed but no longer confused")
            return
        level = self.state.level
        self.state = self.state.model_copy(update={"last_trigger_time": self.clock()})
        logger.info(f"[state] confusion trigger level={level:.3f}")
        if self.on_trigger is not None:
            self.on_trigger(level)
