from __future__ import annotations

from collections import deque
from dataclasses import dataclass

# ~300 ms settling when updated once per 60 Hz display refresh.
DEFAULT_ALPHA = 0.055
REFERENCE_FRAME_RATE = 60.0


def retune_alpha(alpha: float, reference_rate: float, frame_rate: float) -> float:
    """Alpha giving the same time constant at `frame_rate` as `alpha` at `reference_rate`."""
    if frame_rate <= 0 or reference_rate <= 0:
        raise ValueError("frame rates must be positive")
    return float(1.0 - (1.0 - alpha) ** (reference_rate / frame_rate))


class ExponentialSmoother:
    def __init__(self, alpha: float = DEFAULT_ALPHA) -> None:
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        self.alpha = float(alpha)
        self.value = 0.0

    @classmethod
    def for_frame_rate(cls, frame_rate: float, alpha: float = DEFAULT_ALPHA) -> ExponentialSmoother:
        return cls(retune_alpha(alpha, REFERENCE_FRAME_RATE, frame_rate))

    def update(self, hz: float) -> float:
        # Silent ticks hold the last value until an explicit reset.
        if hz > 0:
            self.value = self.alpha * float(hz) + (1.0 - self.alpha) * self.value
        return self.value

    def reset(self) -> None:
        self.value = 0.0


@dataclass(frozen=True)
class FrequencyReading:
    hz: float
    t: float


class RollingAverage:
    """
    Mean of the readings heard over the last `window_seconds`.

    A gap longer than `pause_seconds` since the last sound empties the window,
    so the average restarts with each phrase instead of blending across pauses.
    """

    def __init__(self, window_seconds: float = 3.0, pause_seconds: float = 0.5) -> None:
        self.window_seconds = float(window_seconds)
        self.pause_seconds = float(pause_seconds)
        self._readings: deque[FrequencyReading] = deque()
        self._average: float | None = None

    def __len__(self) -> int:
        return len(self._readings)

    @property
    def average(self) -> float | None:
        return self._average

    def readings(self) -> list[FrequencyReading]:
        return list(self._readings)

    def record(self, hz: float, t: float) -> None:
        self._readings.append(FrequencyReading(hz=float(hz), t=float(t)))

    def refresh(self, now: float, last_sound_t: float | None) -> float | None:
        while self._readings and now - self._readings[0].t >= self.window_seconds:
            self._readings.popleft()

        if last_sound_t is None or (now - last_sound_t) > self.pause_seconds:
            self._readings.clear()

        if self._readings:
            self._average = sum(r.hz for r in self._readings) / len(self._readings)
        else:
            self._average = None
        return self._average

    def clear(self) -> None:
        self._readings.clear()
        self._average = None
