from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


class InvalidFrameError(ValueError):
    pass


@dataclass(frozen=True)
class PitchDetectorConfig:
    min_hz: float = 80.0
    max_hz: float = 200.0
    silence_rms: float = 0.01
    clarity: float = 0.9


class PitchDetector:
    """
    Autocorrelation fundamental-frequency detector for a single voice.

    Strategy:
    - Gate by RMS (silence threshold).
    - Unnormalized autocorrelation, only over lags inside [min_hz, max_hz].
    - Take the first local maximum within `clarity` of the tallest peak, so a
      harmonic cannot win just by being slightly taller.
    - Parabolic interpolation around the chosen lag.

    Stateless: identical frames give identical results.
    """

    def __init__(self, config: PitchDetectorConfig | None = None) -> None:
        self._cfg = config or PitchDetectorConfig()

    @property
    def config(self) -> PitchDetectorConfig:
        return self._cfg

    def detect(self, frame: np.ndarray, sample_rate: int) -> float:
        return detect_fundamental(frame, sample_rate, self._cfg)


def detect_fundamental(
    frame: np.ndarray, sample_rate: int, config: PitchDetectorConfig | None = None
) -> float:
    """Return the fundamental of `frame` in Hz, or 0.0 for silence/no pitch."""
    cfg = config or PitchDetectorConfig()
    x = _validate(frame, sample_rate)

    if frame_rms(x) < cfg.silence_rms:
        return 0.0

    min_period = int(math.floor(sample_rate / cfg.max_hz))
    max_period = int(math.ceil(sample_rate / cfg.min_hz))
    r = _lag_correlations(x, min_period, max_period)
    size = r.size
    if size < 2:
        return 0.0

    # Skip the region still falling away from lag 0.
    first_dip = 0
    while first_dip < size - 1 and r[first_dip] > r[first_dip + 1]:
        first_dip += 1
    start = max(min_period, first_dip, 1)
    if start >= size:
        return 0.0

    seg = r[start:]
    max_val = float(np.max(seg))
    if max_val <= 0.0:
        return 0.0

    period = _first_clear_peak(r, start, cfg.clarity * max_val)
    if period < 0:
        period = int(np.argmax(seg)) + start
    if period <= 0:
        return 0.0

    lag = _refine_lag(r, period)
    if lag <= 0.0:
        return 0.0
    return float(sample_rate) / lag


def frame_rms(x: np.ndarray) -> float:
    if x.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(x, dtype=np.float64))))


def _validate(frame: np.ndarray, sample_rate: int) -> np.ndarray:
    x = np.asarray(frame, dtype=np.float64)
    if x.ndim != 1:
        raise InvalidFrameError(f"expected a mono 1-D frame, got shape {x.shape}")
    if x.size == 0:
        raise InvalidFrameError("frame is empty")
    if not np.isfinite(x).all():
        raise InvalidFrameError("frame contains NaN or infinite samples")
    if not sample_rate or sample_rate <= 0:
        raise InvalidFrameError(f"sample rate must be positive, got {sample_rate}")
    return x


def _lag_correlations(x: np.ndarray, min_period: int, max_period: int) -> np.ndarray:
    # R(lag) = sum_i x[i] * x[i + lag], zero outside [min_period, max_period).
    out = np.zeros(max(max_period, 0), dtype=np.float64)
    if max_period <= min_period or max_period <= 0:
        return out

    # Zero padding to 2n keeps the FFT correlation linear instead of circular.
    n = int(x.size)
    spec = np.fft.rfft(x, n=2 * n)
    full = np.fft.irfft(spec * np.conj(spec), n=2 * n)[:n]

    lo = max(min_period, 0)
    hi = min(max_period, n)
    if hi > lo:
        out[lo:hi] = full[lo:hi]
    return out


def _first_clear_peak(r: np.ndarray, start: int, threshold: float) -> int:
    if r.size - 1 <= start:
        return -1
    mid = r[start:-1]
    peaks = (mid > threshold) & (mid > r[start - 1 : -2]) & (mid > r[start + 1 :])
    hits = np.flatnonzero(peaks)
    if hits.size == 0:
        return -1
    return int(hits[0]) + start


def _refine_lag(r: np.ndarray, period: int) -> float:
    """Parabolic peak position around `period`; unrefined at the last lag or on a flat top."""
    if period >= r.size - 1:
        return float(period)
    y_prev = float(r[period - 1])
    y0 = float(r[period])
    y_next = float(r[period + 1])
    denom = 2.0 * (2.0 * y0 - y_next - y_prev)
    if denom == 0.0:
        return float(period)
    return period + (y_next - y_prev) / denom
