from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

import numpy as np
import sounddevice as sd

from voice_pitch.filters import BandpassFilter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioInputConfig:
    sample_rate: int = 44100
    channels: int = 1
    block_size: int = 512
    # Samples handed to the detector on each read.
    frame_size: int = 2048
    # Bandpass applied to every block before it reaches the window.
    min_hz: float = 80.0
    max_hz: float = 200.0
    filter_order: int = 4


class AudioInput:
    """Microphone stream that always holds the most recent `frame_size` band-passed samples."""

    def __init__(self, config: AudioInputConfig | None = None) -> None:
        self._cfg = config or AudioInputConfig()
        self._lock = threading.Lock()
        self._window = np.zeros(self._cfg.frame_size, dtype=np.float32)
        self._filled = 0
        self._stream: sd.InputStream | None = None
        self._bandpass = BandpassFilter(
            self._cfg.sample_rate, self._cfg.min_hz, self._cfg.max_hz, self._cfg.filter_order
        )

    @property
    def sample_rate(self) -> int:
        return self._cfg.sample_rate

    @property
    def frame_size(self) -> int:
        return self._cfg.frame_size

    @property
    def is_running(self) -> bool:
        return self._stream is not None

    def start(self) -> None:
        if self._stream is not None:
            return

        with self._lock:
            self._window[:] = 0.0
            self._filled = 0
            self._bandpass.reset()

        def callback(indata, frames, time_info, status) -> None:  # noqa: ARG001
            if status:
                # Drop blocks on over/underflow; the next read uses the last good window.
                return
            self._push(np.asarray(indata[:, 0], dtype=np.float32))

        stream = sd.InputStream(
            samplerate=self._cfg.sample_rate,
            channels=self._cfg.channels,
            blocksize=self._cfg.block_size,
            dtype="float32",
            callback=callback,
        )
        stream.start()
        self._stream = stream
        logger.info("Microphone opened at %d Hz", self._cfg.sample_rate)

    def stop(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.stop()
            self._stream.close()
        finally:
            self._stream = None
            logger.info("Microphone closed")

    def read_latest(self) -> np.ndarray | None:
        with self._lock:
            if self._filled < self._cfg.frame_size:
                return None
            return self._window.copy()

    def _push(self, x: np.ndarray) -> None:
        n = int(x.size)
        if n == 0:
            return
        size = self._cfg.frame_size
        with self._lock:
            x = self._bandpass.process(x)
            if n >= size:
                self._window[:] = x[-size:]
            else:
                self._window[:-n] = self._window[n:]
                self._window[-n:] = x
            self._filled = min(size, self._filled + n)
