from __future__ import annotations

import pytest

from voice_pitch.notes import NOTE_NAMES, PitchZone, note_details, note_frequency, pitch_zone


def test_a4_maps_to_itself() -> None:
    details = note_details(440.0)
    assert details is not None
    assert details.label == "A4"
    assert details.target_hz == pytest.approx(440.0)
    assert details.cents == pytest.approx(0.0, abs=1e-9)


def test_zero_frequency_has_no_note() -> None:
    assert note_details(0.0) is None


@pytest.mark.parametrize(
    ("hz", "label"),
    [(82.41, "E2"), (110.0, "A2"), (130.81, "C3"), (146.83, "D3"), (196.0, "G3"), (261.63, "C4")],
)
def test_vocal_range_note_names(hz: float, label: str) -> None:
    details = note_details(hz)
    assert details is not None
    assert details.label == label
    assert abs(details.cents) < 1.0


def test_cents_deviation_sign() -> None:
    sharp = note_details(445.0)
    flat = note_details(435.0)
    assert sharp is not None and flat is not None
    assert sharp.label == flat.label == "A4"
    assert sharp.cents == pytest.approx(19.56, abs=0.01)
    assert flat.cents < 0.0


def test_just_past_quarter_tone_goes_to_next_note() -> None:
    details = note_details(440.0 * 2 ** (0.51 / 12))
    assert details is not None
    assert details.label == "A#4"
    assert details.cents == pytest.approx(-49.0, abs=1e-6)


def test_round_trip_every_note_in_vocal_range() -> None:
    for octave in range(1, 6):
        for name in NOTE_NAMES:
            hz = note_frequency(name, octave)
            details = note_details(hz)
            assert details is not None
            assert (details.name, details.octave) == (name, octave)
            assert details.target_hz == pytest.approx(hz)
            assert details.cents == pytest.approx(0.0, abs=1e-6)


def test_unknown_note_name() -> None:
    with pytest.raises(ValueError):
        note_frequency("H", 3)


def test_note_to_dict() -> None:
    details = note_details(110.0)
    assert details is not None
    assert details.to_dict()["label"] == "A2"
    assert details.to_dict()["targetHz"] == pytest.approx(110.0)


@pytest.mark.parametrize(
    ("hz", "zone"),
    [
        (0.0, PitchZone.IDLE),
        (60.0, PitchZone.IDLE),
        (80.0, PitchZone.TARGET),
        (160.0, PitchZone.TARGET),
        (170.0, PitchZone.HIGH),
        (180.0, PitchZone.HIGH),
        (195.0, PitchZone.TOO_HIGH),
    ],
)
def test_pitch_zone(hz: float, zone: PitchZone) -> None:
    assert pitch_zone(hz) is zone
    assert pitch_zone(hz).color.startswith("#")
