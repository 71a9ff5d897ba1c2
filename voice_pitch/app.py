from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import dataclass

import sounddevice as sd
from PySide6 import QtCore, QtWidgets

from voice_pitch.audio import AudioInput, AudioInputConfig
from voice_pitch.notes import PitchZone, pitch_zone
from voice_pitch.session import PitchSession, SessionConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MeterUiConfig:
    tick_ms: int = 16  # ~60 FPS, the cadence the smoothing alpha is tuned for
    big_font_px: int = 160
    note_font_px: int = 40
    average_font_px: int = 48


class MeterWindow(QtWidgets.QMainWindow):
    def __init__(
        self,
        *,
        audio_config: AudioInputConfig | None = None,
        session_config: SessionConfig | None = None,
    ) -> None:
        super().__init__()
        self.setWindowTitle("Voice Pitch")

        self._ui = MeterUiConfig()
        self._audio = AudioInput(audio_config)
        self._session = PitchSession(session_config)

        self._build_ui()
        self._apply_zone(PitchZone.IDLE)

        # One precise frame timer; the session owns the 1 s display deadline.
        self._timer = QtCore.QTimer(self)
        self._timer.setTimerType(QtCore.Qt.TimerType.PreciseTimer)
        self._timer.setInterval(self._ui.tick_ms)
        self._timer.timeout.connect(self._on_tick)

    def _build_ui(self) -> None:
        root = QtWidgets.QWidget()
        root.setObjectName("meterRoot")
        layout = QtWidgets.QVBoxLayout(root)
        layout.setContentsMargins(24, 24, 24, 24)

        self.average_caption = QtWidgets.QLabel("Average (3s)")
        self.average_label = QtWidgets.QLabel("--")
        self.freq_label = QtWidgets.QLabel("--")
        self.note_label = QtWidgets.QLabel(" ")
        self.status = QtWidgets.QLabel("Press Start to listen")
        self.btn_toggle = QtWidgets.QPushButton("Start")
        self.btn_toggle.setMinimumSize(120, 48)

        for label in (self.average_caption, self.average_label, self.freq_label, self.note_label, self.status):
            label.setAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)
        self.average_caption.setStyleSheet("color: rgba(255, 255, 255, 0.75); font-size: 14px;")
        self.average_label.setStyleSheet(f"color: #f3f4f6; font-size: {self._ui.average_font_px}px; font-weight: 600;")
        self.freq_label.setStyleSheet(f"color: #ffffff; font-size: {self._ui.big_font_px}px; font-weight: bold;")
        self.note_label.setStyleSheet(f"color: rgba(255, 255, 255, 0.8); font-size: {self._ui.note_font_px}px;")

        layout.addWidget(self.average_caption)
        layout.addWidget(self.average_label)
        layout.addStretch(1)
        layout.addWidget(self.freq_label)
        layout.addWidget(self.note_label)
        layout.addStretch(1)
        layout.addWidget(self.status)
        layout.addWidget(self.btn_toggle, alignment=QtCore.Qt.AlignmentFlag.AlignHCenter)

        self.btn_toggle.clicked.connect(self._on_toggle)
        self.setCentralWidget(root)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        try:
            self._stop_listening()
        finally:
            super().closeEvent(event)

    @QtCore.Slot()
    def _on_toggle(self) -> None:
        if self._session.is_listening:
            self._stop_listening()
        else:
            self._start_listening()

    def _start_listening(self) -> None:
        try:
            self._audio.start()
        except (sd.PortAudioError, OSError) as exc:
            logger.warning("Unable to open microphone: %s", exc)
            self._set_status(f"Microphone error: {exc}", "error")
            return

        self._session.start(time.monotonic())
        self._timer.start()
        self.btn_toggle.setText("Stop")
        self._set_status("Listening...", "info")

    def _stop_listening(self) -> None:
        self._timer.stop()
        self._audio.stop()
        self._session.stop()
        self.btn_toggle.setText("Start")
        self._set_status("Press Start to listen", "ready")
        self._render(hz=0.0, displayed=0.0, average=None, note_label=None)

    def _on_tick(self) -> None:
        now = time.monotonic()
        displayed = self._session.sample_display_value(now)
        frame = self._audio.read_latest()
        if frame is None:
            self._session.poll(now)
            self.freq_label.setText(_format_hz(displayed))
            return

        reading = self._session.submit_frame(frame, self._audio.sample_rate, now)
        if reading is None:
            return
        self._render(
            hz=reading.hz,
            displayed=reading.displayed_hz,
            average=reading.average_hz,
            note_label=reading.note.label if reading.note is not None else None,
        )

    def _render(self, *, hz: float, displayed: float, average: float | None, note_label: str | None) -> None:
        self.freq_label.setText(_format_hz(displayed))
        self.average_label.setText(f"{average:.1f}" if average is not None else "--")
        self.note_label.setText(note_label or " ")
        self._apply_zone(pitch_zone(hz))

    def _apply_zone(self, zone: PitchZone) -> None:
        self.centralWidget().setStyleSheet(f"QWidget#meterRoot {{ background-color: {zone.color}; }}")

    def _set_status(self, text: str, kind: str) -> None:
        if kind == "error":
            self.status.setStyleSheet("color: #fecaca; font-weight: bold;")
        elif kind == "info":
            self.status.setStyleSheet("color: #bae6fd; font-weight: bold;")
        else:
            self.status.setStyleSheet("color: #f5f5f5; font-weight: bold;")
        self.status.setText(text)


def _format_hz(hz: float) -> str:
    return f"{hz:.1f}" if hz > 1.0 else "--"


def main() -> None:
    parser = argparse.ArgumentParser(description="Live voice pitch meter")
    parser.add_argument("--sample-rate", type=int, default=AudioInputConfig.sample_rate)
    parser.add_argument("--min-hz", type=float, default=SessionConfig.min_hz)
    parser.add_argument("--max-hz", type=float, default=SessionConfig.max_hz)
    parser.add_argument("--log-level", default="INFO")
    args, qt_args = parser.parse_known_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    app = QtWidgets.QApplication([sys.argv[0], *qt_args])
    win = MeterWindow(
        audio_config=AudioInputConfig(sample_rate=args.sample_rate, min_hz=args.min_hz, max_hz=args.max_hz),
        session_config=SessionConfig(min_hz=args.min_hz, max_hz=args.max_hz),
    )
    win.resize(720, 900)
    win.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
