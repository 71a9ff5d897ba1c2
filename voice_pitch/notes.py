from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


A4_HZ = 440.0
# Note numbers count semitones up from C0, which puts A4 at 57.
A4_NOTE_NUMBER = 57
NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]


@dataclass(frozen=True)
class NoteDetails:
    name: str
    octave: int
    target_hz: float
    cents: float

    @property
    def label(self) -> str:
        return f"{self.name}{self.octave}"

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "octave": int(self.octave),
            "label": self.label,
            "targetHz": float(self.target_hz),
            "cents": float(self.cents),
        }


def note_details(hz: float) -> NoteDetails | None:
    """Nearest equal-tempered note to `hz` and the deviation from it in cents."""
    if hz <= 0:
        return None
    semitones = 12.0 * math.log2(hz / A4_HZ)
    # Half-up rounding; Python's round() would send x.5 to the even neighbour.
    number = int(math.floor(semitones + 0.5)) + A4_NOTE_NUMBER
    name = NOTE_NAMES[number % 12]
    octave = number // 12
    target = note_number_hz(number)
    cents = 1200.0 * math.log2(hz / target)
    return NoteDetails(name=name, octave=octave, target_hz=target, cents=cents)


def note_number_hz(number: int) -> float:
    return float(A4_HZ * (2.0 ** ((number - A4_NOTE_NUMBER) / 12.0)))


def note_frequency(name: str, octave: int) -> float:
    try:
        index = NOTE_NAMES.index(name)
    except ValueError:
        raise ValueError(f"unknown note name: {name!r}") from None
    return note_number_hz(index + 12 * int(octave))


class PitchZone(str, Enum):
    IDLE = "idle"
    TARGET = "target"
    HIGH = "high"
    TOO_HIGH = "too_high"

    @property
    def color(self) -> str:
        return _ZONE_COLORS[self]


_ZONE_COLORS = {
    PitchZone.IDLE: "#111827",
    PitchZone.TARGET: "#16a34a",
    PitchZone.HIGH: "#ca8a04",
    PitchZone.TOO_HIGH: "#dc2626",
}


def pitch_zone(hz: float) -> PitchZone:
    if 80.0 <= hz <= 160.0:
        return PitchZone.TARGET
    if 160.0 < hz <= 180.0:
        return PitchZone.HIGH
    if hz > 180.0:
        return PitchZone.TOO_HIGH
    return PitchZone.IDLE
