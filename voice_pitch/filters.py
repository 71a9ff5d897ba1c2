from __future__ import annotations

import numpy as np
from scipy import signal


class BandpassFilter:
    """
    Streaming Butterworth bandpass that keeps its state between blocks.

    Feeding a signal block by block gives the same output as filtering it in
    one go, so the analysis window never sees a seam at block boundaries.
    """

    def __init__(
        self,
        sample_rate: int,
        low_hz: float = 80.0,
        high_hz: float = 200.0,
        order: int = 4,
    ) -> None:
        nyquist = 0.5 * float(sample_rate)
        if not 0.0 < low_hz < high_hz < nyquist:
            raise ValueError(
                f"band {low_hz}-{high_hz} Hz does not fit below Nyquist ({nyquist} Hz)"
            )
        self.sample_rate = int(sample_rate)
        self._sos = signal.butter(
            int(order),
            [float(low_hz), float(high_hz)],
            btype="bandpass",
            output="sos",
            fs=self.sample_rate,
        )
        self._zi = np.zeros((self._sos.shape[0], 2), dtype=np.float64)

    def reset(self) -> None:
        self._zi = np.zeros_like(self._zi)

    def process(self, block: np.ndarray) -> np.ndarray:
        x = np.asarray(block, dtype=np.float64)
        if x.size == 0:
            return x.astype(np.float32)
        y, self._zi = signal.sosfilt(self._sos, x, zi=self._zi)
        return y.astype(np.float32)
