from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import numpy as np

from voice_pitch.notes import NoteDetails, note_details
from voice_pitch.pitch import PitchDetector, PitchDetectorConfig, frame_rms
from voice_pitch.smoothing import ExponentialSmoother, RollingAverage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionConfig:
    min_hz: float = 80.0
    max_hz: float = 200.0
    smoothing_alpha: float = 0.055
    # Rolling average length and the silence gap that restarts it.
    window_seconds: float = 3.0
    pause_seconds: float = 0.5
    # How long the last reading is held on screen through silence.
    freeze_seconds: float = 5.0
    display_interval: float = 1.0
    display_deadzone_hz: float = 1.0


class SessionState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"


class ListeningPhase(str, Enum):
    ACTIVE = "active"
    PENDING_FREEZE = "pending_freeze"
    FROZEN = "frozen"


@dataclass(frozen=True)
class PitchReading:
    t: float
    raw_hz: float
    hz: float
    smoothed_hz: float
    displayed_hz: float
    average_hz: float | None
    note: NoteDetails | None
    voiced: bool
    rms: float
    phase: ListeningPhase

    def to_event(self) -> dict[str, object]:
        return {
            "type": "pitch_update",
            "t": float(self.t),
            "rawHz": float(self.raw_hz),
            "hz": float(self.hz),
            "smoothedHz": float(self.smoothed_hz),
            "displayedHz": float(self.displayed_hz),
            "averageHz": float(self.average_hz) if self.average_hz is not None else None,
            "note": self.note.to_dict() if self.note is not None else None,
            "voiced": bool(self.voiced),
            "rms": float(self.rms),
            "phase": self.phase.value,
        }


class PitchSession:
    """
    Turns a stream of audio frames into a steady pitch reading.

    Each frame is analysed, in-band estimates feed an exponential smoother and
    a rolling 3 s average, and two deadlines run alongside: the freeze deadline
    (zero the reading after a long silence) and the display deadline (copy the
    smoothed value to the slow-moving displayed value once per interval).
    Deadlines are checked whenever the session is touched with a timestamp.
    """

    def __init__(
        self,
        config: SessionConfig | None = None,
        *,
        detector: PitchDetector | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or SessionConfig()
        self.detector = detector or PitchDetector(
            PitchDetectorConfig(min_hz=self.config.min_hz, max_hz=self.config.max_hz)
        )
        self._clock = clock
        self._lock = threading.Lock()
        self._smoother = ExponentialSmoother(self.config.smoothing_alpha)
        self._history = RollingAverage(self.config.window_seconds, self.config.pause_seconds)

        self._state = SessionState.IDLE
        self._instant_hz = 0.0
        self._displayed_hz = 0.0
        self._last_sound_t: float | None = None
        self._freeze_deadline: float | None = None
        self._frozen = False
        self._display_deadline: float | None = None
        # Bumped by start and stop so a frame analysed across either is dropped.
        self._generation = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_listening(self) -> bool:
        return self._state == SessionState.LISTENING

    @property
    def phase(self) -> ListeningPhase | None:
        with self._lock:
            return self._phase()

    @property
    def instant_hz(self) -> float:
        return self._instant_hz

    @property
    def smoothed_hz(self) -> float:
        return self._smoother.value

    @property
    def displayed_hz(self) -> float:
        return self._displayed_hz

    def start(self, now: float | None = None) -> None:
        now = self._now(now)
        with self._lock:
            self._reset()
            self._display_deadline = now + self.config.display_interval
            self._generation += 1
            self._state = SessionState.LISTENING
        logger.info("Pitch session started")

    def stop(self) -> None:
        with self._lock:
            if self._state == SessionState.IDLE:
                return
            self._reset()
            self._state = SessionState.IDLE
            self._generation += 1
        logger.info("Pitch session stopped")

    def submit_frame(
        self, samples: np.ndarray, sample_rate: int, now: float | None = None
    ) -> PitchReading | None:
        now = self._now(now)
        with self._lock:
            generation = self._generation
        # Detection runs outside the lock; it touches no session state.
        raw_hz = self.detector.detect(samples, sample_rate)
        rms = frame_rms(np.asarray(samples, dtype=np.float64))

        with self._lock:
            if self._state != SessionState.LISTENING or self._generation != generation:
                return None
            self._fire_freeze(now)

            voiced = self.config.min_hz <= raw_hz <= self.config.max_hz
            if voiced:
                self._freeze_deadline = None
                self._frozen = False
                smoothed = self._smoother.update(raw_hz)
                self._instant_hz = smoothed
                self._last_sound_t = now
                self._history.record(smoothed, now)
            elif self._freeze_deadline is None and not self._frozen:
                self._freeze_deadline = now + self.config.freeze_seconds

            had_history = len(self._history) > 0
            average = self._history.refresh(now, self._last_sound_t)
            if had_history and average is None:
                logger.debug("Pause detected, rolling average reset")

            return PitchReading(
                t=now,
                raw_hz=float(raw_hz),
                hz=self._instant_hz,
                smoothed_hz=self._smoother.value,
                displayed_hz=self._displayed_hz,
                average_hz=average,
                note=note_details(self._instant_hz),
                voiced=voiced,
                rms=rms,
                phase=self._phase(),
            )

    def sample_display_value(self, now: float | None = None) -> float:
        now = self._now(now)
        with self._lock:
            if self._state != SessionState.LISTENING:
                return self._displayed_hz
            self._fire_freeze(now)
            deadline = self._display_deadline
            if deadline is not None and now >= deadline:
                if self._smoother.value > self.config.display_deadzone_hz:
                    self._displayed_hz = self._smoother.value
                # Skip missed ticks instead of replaying them.
                interval = self.config.display_interval
                missed = int((now - deadline) // interval)
                self._display_deadline = deadline + (missed + 1) * interval
            return self._displayed_hz

    def poll(self, now: float | None = None) -> None:
        now = self._now(now)
        with self._lock:
            if self._state == SessionState.LISTENING:
                self._fire_freeze(now)

    def current_average(self) -> float | None:
        with self._lock:
            return self._history.average

    def current_note(self) -> NoteDetails | None:
        with self._lock:
            return note_details(self._instant_hz)

    def _now(self, now: float | None) -> float:
        return float(self._clock() if now is None else now)

    def _fire_freeze(self, now: float) -> None:
        if self._freeze_deadline is None or now < self._freeze_deadline:
            return
        self._instant_hz = 0.0
        self._displayed_hz = 0.0
        self._smoother.reset()
        self._freeze_deadline = None
        self._frozen = True
        logger.debug("No pitch for %.1fs, reading frozen at zero", self.config.freeze_seconds)

    def _phase(self) -> ListeningPhase | None:
        if self._state != SessionState.LISTENING:
            return None
        if self._freeze_deadline is not None:
            return ListeningPhase.PENDING_FREEZE
        if self._frozen:
            return ListeningPhase.FROZEN
        return ListeningPhase.ACTIVE

    def _reset(self) -> None:
        self._smoother.reset()
        self._history.clear()
        self._instant_hz = 0.0
        self._displayed_hz = 0.0
        self._last_sound_t = None
        self._freeze_deadline = None
        self._frozen = False
        self._display_deadline = None
