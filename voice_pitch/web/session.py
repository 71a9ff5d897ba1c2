from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass

import numpy as np

from voice_pitch.filters import BandpassFilter
from voice_pitch.notes import note_details
from voice_pitch.pitch import InvalidFrameError
from voice_pitch.session import PitchReading, PitchSession, SessionConfig
from voice_pitch.smoothing import REFERENCE_FRAME_RATE, retune_alpha

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamConfig:
    sample_rate: int = 44_100
    frame_size: int = 2048
    frames_per_second: float = 60.0
    min_hz: float = 80.0
    max_hz: float = 200.0
    filter_order: int = 4

    @property
    def hop_size(self) -> int:
        return max(1, int(self.sample_rate // self.frames_per_second))


class NotInitializedError(RuntimeError):
    pass


class StreamSession:
    """
    Feeds a raw sample stream to a `PitchSession` at a fixed frame rate.

    Incoming chunks are appended to a pending buffer. Every `hop_size` samples
    are band-passed to the detector range, the analysis window slides forward
    and one frame is submitted, stamped with a clock derived from the sample
    count.
    """

    def __init__(self, config: StreamConfig) -> None:
        self.config = config
        self._clock = 0.0
        frame_rate = config.sample_rate / float(config.hop_size)
        base = SessionConfig()
        self.pitch = PitchSession(
            SessionConfig(
                min_hz=config.min_hz,
                max_hz=config.max_hz,
                smoothing_alpha=retune_alpha(base.smoothing_alpha, REFERENCE_FRAME_RATE, frame_rate),
            ),
            clock=lambda: self._clock,
        )
        self._bandpass = BandpassFilter(config.sample_rate, config.min_hz, config.max_hz, config.filter_order)
        self._window = np.zeros(config.frame_size, dtype=np.float32)
        self._filled = 0
        self._pending = np.zeros(0, dtype=np.float32)

    @property
    def clock(self) -> float:
        return self._clock

    def start(self) -> None:
        self._window[:] = 0.0
        self._filled = 0
        self._pending = np.zeros(0, dtype=np.float32)
        self._bandpass.reset()
        self.pitch.start(self._clock)

    def stop(self) -> None:
        self.pitch.stop()
        self._pending = np.zeros(0, dtype=np.float32)

    def feed(self, samples: np.ndarray) -> list[PitchReading]:
        if samples.size == 0 or not self.pitch.is_listening:
            return []

        x = np.asarray(samples, dtype=np.float32)
        if not np.isfinite(x).all():
            # Rejected before the filter so its state stays clean.
            raise InvalidFrameError("audio contains non-finite samples")

        hop = self.config.hop_size
        self._pending = np.concatenate((self._pending, x))
        readings: list[PitchReading] = []
        while self._pending.size >= hop:
            chunk = self._pending[:hop]
            self._pending = self._pending[hop:]
            self._clock += hop / float(self.config.sample_rate)
            self._slide(self._bandpass.process(chunk))
            if self._filled < self.config.frame_size:
                continue
            self.pitch.sample_display_value(self._clock)
            reading = self.pitch.submit_frame(self._window, self.config.sample_rate, self._clock)
            if reading is not None:
                readings.append(reading)
        return readings

    def _slide(self, chunk: np.ndarray) -> None:
        n = int(chunk.size)
        size = self.config.frame_size
        if n >= size:
            self._window[:] = chunk[-size:]
        else:
            self._window[:-n] = self._window[n:]
            self._window[-n:] = chunk
        self._filled = min(size, self._filled + n)


class RealtimeSession:
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.stream: StreamSession | None = None

    def init(self, *, sample_rate: int, frame_size: int, min_hz: float, max_hz: float) -> None:
        if self.stream is not None:
            self.stream.stop()
        self.stream = StreamSession(
            StreamConfig(
                sample_rate=int(sample_rate),
                frame_size=int(frame_size),
                min_hz=float(min_hz),
                max_hz=float(max_hz),
            )
        )
        self.stream.start()
        logger.info("Session %s initialized at %d Hz", self.session_id, sample_rate)

    def start(self) -> None:
        self._require_stream().start()

    def stop(self) -> None:
        self._require_stream().stop()

    def process_audio_bytes(self, payload: bytes) -> list[dict[str, object]]:
        stream = self._require_stream()
        if not payload:
            return []
        # Trailing bytes that do not make up a whole float32 are dropped.
        usable = len(payload) - (len(payload) % 4)
        frame = np.frombuffer(payload[:usable], dtype="<f4")
        return [reading.to_event() for reading in stream.feed(frame)]

    def _require_stream(self) -> StreamSession:
        if self.stream is None:
            raise NotInitializedError("Send an init message before audio.")
        return self.stream


class SessionManager:
    def __init__(self) -> None:
        self._sessions: dict[str, RealtimeSession] = {}
        self._lock = threading.Lock()

    def create(self) -> RealtimeSession:
        session_id = uuid.uuid4().hex
        session = RealtimeSession(session_id)
        with self._lock:
            self._sessions[session_id] = session
        return session

    def remove(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None and session.stream is not None:
            session.stream.stop()

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)


def analyze_waveform(audio: np.ndarray, sample_rate: int) -> dict[str, object]:
    """Run a whole recording through a stream session and summarise it."""
    stream = StreamSession(StreamConfig(sample_rate=int(sample_rate)))
    stream.start()
    readings = stream.feed(np.asarray(audio, dtype=np.float32))
    stream.stop()

    voiced = [r.raw_hz for r in readings if r.voiced]
    median_hz = float(np.median(np.array(voiced, dtype=np.float64))) if voiced else None
    averages = [r.average_hz for r in readings if r.average_hz is not None]
    note = note_details(median_hz) if median_hz is not None else None
    return {
        "frames": len(readings),
        "voicedFrames": len(voiced),
        "medianHz": median_hz,
        "averageHz": averages[-1] if averages else None,
        "note": note.to_dict() if note is not None else None,
    }
