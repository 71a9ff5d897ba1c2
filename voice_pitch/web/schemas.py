from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class InitMessage(_Model):
    type: Literal["init"]
    sample_rate: int = Field(alias="sampleRate", ge=8_000, le=192_000)
    frame_size: int = Field(alias="frameSize", default=2048, ge=256, le=16_384)
    min_hz: float = Field(alias="minHz", default=80.0, gt=0.0, le=2_000.0)
    max_hz: float = Field(alias="maxHz", default=200.0, gt=0.0, le=2_000.0)

    @model_validator(mode="after")
    def _check_band(self) -> InitMessage:
        if self.min_hz >= self.max_hz:
            raise ValueError("minHz must be below maxHz")
        return self


class StartMessage(_Model):
    type: Literal["start"]


class StopMessage(_Model):
    type: Literal["stop"]


class TransportPingMessage(_Model):
    type: Literal["transport_ping"]
    client_ts: float = Field(alias="clientTs")


class StatusEvent(_Model):
    type: Literal["status"] = "status"
    message: str


class ErrorEvent(_Model):
    type: Literal["error"] = "error"
    code: str
    message: str


class NoteModel(_Model):
    name: str
    octave: int
    label: str
    target_hz: float = Field(alias="targetHz")
    cents: float


class PitchUpdateEvent(_Model):
    type: Literal["pitch_update"] = "pitch_update"
    t: float
    raw_hz: float = Field(alias="rawHz")
    hz: float
    smoothed_hz: float = Field(alias="smoothedHz")
    displayed_hz: float = Field(alias="displayedHz")
    average_hz: float | None = Field(alias="averageHz")
    note: NoteModel | None
    voiced: bool
    rms: float
    phase: str | None


class TransportPongEvent(_Model):
    type: Literal["transport_pong"] = "transport_pong"
    client_ts: float = Field(alias="clientTs")
    server_ts: float = Field(alias="serverTs")


class AnalysisSummary(_Model):
    frames: int
    voiced_frames: int = Field(alias="voicedFrames")
    median_hz: float | None = Field(alias="medianHz")
    average_hz: float | None = Field(alias="averageHz")
    note: NoteModel | None
