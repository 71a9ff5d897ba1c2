from __future__ import annotations

import numpy as np
import pytest

from voice_pitch.filters import BandpassFilter

SAMPLE_RATE = 16_000


def _sine(freq: float, seconds: float = 1.0, sr: int = SAMPLE_RATE) -> np.ndarray:
    t = np.arange(int(sr * seconds), dtype=np.float64) / sr
    return (0.5 * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def _settled_rms(x: np.ndarray) -> float:
    tail = x[len(x) // 2 :].astype(np.float64)
    return float(np.sqrt(np.mean(tail * tail)))


def test_passes_voice_band_and_attenuates_overtones() -> None:
    passed = BandpassFilter(SAMPLE_RATE).process(_sine(120.0))
    assert _settled_rms(passed) == pytest.approx(0.5 / np.sqrt(2), rel=0.1)

    blocked = BandpassFilter(SAMPLE_RATE).process(_sine(400.0))
    assert _settled_rms(blocked) < 0.05 * _settled_rms(_sine(400.0))

    hum = BandpassFilter(SAMPLE_RATE).process(_sine(30.0))
    assert _settled_rms(hum) < 0.05 * _settled_rms(_sine(30.0))


def test_block_by_block_matches_one_pass() -> None:
    x = _sine(120.0) + _sine(400.0)
    whole = BandpassFilter(SAMPLE_RATE).process(x)

    streamed = BandpassFilter(SAMPLE_RATE)
    pieces = [streamed.process(x[i : i + 266]) for i in range(0, x.size, 266)]
    assert np.allclose(np.concatenate(pieces), whole, atol=1e-5)


def test_reset_forgets_previous_signal() -> None:
    bandpass = BandpassFilter(SAMPLE_RATE)
    bandpass.process(_sine(120.0, 0.25))
    bandpass.reset()
    assert np.all(bandpass.process(np.zeros(64, dtype=np.float32)) == 0.0)


def test_empty_block_passes_through() -> None:
    assert BandpassFilter(SAMPLE_RATE).process(np.zeros(0, dtype=np.float32)).size == 0


@pytest.mark.parametrize(("low", "high"), [(200.0, 80.0), (0.0, 200.0), (80.0, 9_000.0)])
def test_band_must_fit_below_nyquist(low: float, high: float) -> None:
    with pytest.raises(ValueError):
        BandpassFilter(SAMPLE_RATE, low, high)
