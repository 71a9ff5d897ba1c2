from __future__ import annotations

import numpy as np
import pytest

from voice_pitch.pitch import (
    InvalidFrameError,
    PitchDetector,
    PitchDetectorConfig,
    _lag_correlations,
    _refine_lag,
    detect_fundamental,
    frame_rms,
)

SAMPLE_RATE = 16_000
FRAME_SIZE = 2048


def _tone(*partials: tuple[float, float], n: int = FRAME_SIZE, sr: int = SAMPLE_RATE) -> np.ndarray:
    t = np.arange(n, dtype=np.float64) / sr
    out = np.zeros(n, dtype=np.float64)
    for freq, amp in partials:
        out += amp * np.sin(2 * np.pi * freq * t)
    return out.astype(np.float32)


def test_silent_frame_returns_zero() -> None:
    assert detect_fundamental(np.zeros(FRAME_SIZE, dtype=np.float32), SAMPLE_RATE) == 0.0


def test_quiet_tone_below_rms_gate_returns_zero() -> None:
    # RMS of a 0.01 amplitude sine is ~0.007, under the 0.01 gate.
    frame = _tone((120.0, 0.01))
    assert detect_fundamental(frame, SAMPLE_RATE) == 0.0


@pytest.mark.parametrize("freq", [85.0, 110.0, 150.0, 190.0])
def test_detects_sine_within_one_percent(freq: float) -> None:
    hz = detect_fundamental(_tone((freq, 0.5)), SAMPLE_RATE)
    assert abs(hz - freq) / freq < 0.01


def test_detects_sine_at_common_device_rate() -> None:
    frame = _tone((130.0, 0.3), n=4096, sr=44_100)
    hz = detect_fundamental(frame, 44_100)
    assert abs(hz - 130.0) / 130.0 < 0.01


def test_first_clear_peak_wins_over_taller_double_period() -> None:
    # A 180 Hz tone with a weak 90 Hz partial: the lag at 2T correlates a bit
    # more strongly than the lag at T, but both clear the 90% threshold.
    frame = _tone((180.0, 0.5), (90.0, 0.5 * np.sqrt(0.05)))
    x = frame.astype(np.float64)
    r = _lag_correlations(x, 80, 200)
    short_peak = float(np.max(r[80:120]))
    long_peak = float(np.max(r[160:200]))
    assert long_peak > short_peak > 0.9 * long_peak

    hz = detect_fundamental(frame, SAMPLE_RATE)
    assert abs(hz - 180.0) / 180.0 < 0.02


def test_detection_is_deterministic() -> None:
    frame = _tone((140.0, 0.4), (280.0, 0.2))
    detector = PitchDetector()
    assert detector.detect(frame, SAMPLE_RATE) == detector.detect(frame.copy(), SAMPLE_RATE)


def test_custom_band_limits_search() -> None:
    cfg = PitchDetectorConfig(min_hz=150.0, max_hz=400.0)
    hz = detect_fundamental(_tone((300.0, 0.5)), SAMPLE_RATE, cfg)
    assert abs(hz - 300.0) / 300.0 < 0.01


def test_empty_frame_is_rejected() -> None:
    with pytest.raises(InvalidFrameError):
        detect_fundamental(np.zeros(0, dtype=np.float32), SAMPLE_RATE)


@pytest.mark.parametrize("sample_rate", [0, -16_000])
def test_non_positive_sample_rate_is_rejected(sample_rate: int) -> None:
    with pytest.raises(InvalidFrameError):
        detect_fundamental(_tone((120.0, 0.5)), sample_rate)


def test_stereo_frame_is_rejected() -> None:
    stereo = np.zeros((FRAME_SIZE, 2), dtype=np.float32)
    with pytest.raises(ValueError):
        PitchDetector().detect(stereo, SAMPLE_RATE)


def test_frame_rms() -> None:
    assert frame_rms(np.full(64, 0.5)) == pytest.approx(0.5)
    assert frame_rms(np.zeros(0)) == 0.0


@pytest.mark.parametrize("bad", [np.nan, np.inf, -np.inf])
def test_non_finite_samples_are_rejected(bad: float) -> None:
    frame = _tone((120.0, 0.5))
    frame[10] = bad
    with pytest.raises(InvalidFrameError):
        detect_fundamental(frame, SAMPLE_RATE)


def test_no_positive_correlation_in_band_returns_zero() -> None:
    # A 55 Hz period (~291 samples) puts every lag in [80, 200) past a quarter
    # cycle and before three quarters, so the whole band correlates negatively.
    frame = _tone((55.0, 0.5))
    r = _lag_correlations(frame.astype(np.float64), 80, 200)
    assert float(np.max(r[80:])) <= 0.0
    assert detect_fundamental(frame, SAMPLE_RATE) == 0.0


def test_rising_band_falls_back_to_last_lag_without_refinement() -> None:
    # 70 Hz sits below the band: correlation keeps rising up to the last lag,
    # so no local maximum clears the threshold and the global max is used as is.
    frame = _tone((70.0, 0.5))
    r = _lag_correlations(frame.astype(np.float64), 80, 200)
    assert int(np.argmax(r[80:])) + 80 == 199

    assert detect_fundamental(frame, SAMPLE_RATE) == pytest.approx(SAMPLE_RATE / 199)


def test_flat_top_skips_interpolation(monkeypatch: pytest.MonkeyPatch) -> None:
    r = np.zeros(200, dtype=np.float64)
    r[79:82] = 5.0
    monkeypatch.setattr("voice_pitch.pitch._lag_correlations", lambda x, lo, hi: r)

    assert detect_fundamental(_tone((120.0, 0.5)), SAMPLE_RATE) == pytest.approx(SAMPLE_RATE / 80)


def test_refine_lag() -> None:
    assert _refine_lag(np.array([0.0, 1.0, 3.0, 2.0, 0.0]), 2) == pytest.approx(2.0 + 1.0 / 6.0)
    # Equal neighbours on a flat top: zero denominator, lag unchanged.
    assert _refine_lag(np.array([0.0, 3.0, 3.0, 3.0, 0.0]), 2) == 2.0
    # The last lag has no right neighbour.
    assert _refine_lag(np.array([0.0, 1.0, 2.0, 3.0]), 3) == 3.0
