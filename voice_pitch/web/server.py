from __future__ import annotations

import argparse
import io
import json
import logging
import time

import numpy as np
import soundfile as sf
import uvicorn
from fastapi import FastAPI, File, HTTPException, UploadFile, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from voice_pitch import __version__
from voice_pitch.pitch import InvalidFrameError
from voice_pitch.web.schemas import (
    AnalysisSummary,
    ErrorEvent,
    InitMessage,
    StartMessage,
    StatusEvent,
    StopMessage,
    TransportPingMessage,
    TransportPongEvent,
)
from voice_pitch.web.session import NotInitializedError, RealtimeSession, SessionManager, analyze_waveform

logger = logging.getLogger(__name__)


def create_app(sessions: SessionManager | None = None) -> FastAPI:
    sessions = sessions or SessionManager()
    app = FastAPI(title="Voice Pitch", version=__version__)
    app.state.sessions = sessions

    @app.get("/api/health")
    async def health() -> dict[str, object]:
        return {
            "status": "ok",
            "version": __version__,
            "activeSessions": sessions.active_count,
        }

    @app.post("/api/analyze", response_model=AnalysisSummary, response_model_by_alias=True)
    async def analyze(audio: UploadFile = File(...)) -> dict[str, object]:
        payload = await audio.read()
        if not payload:
            raise HTTPException(status_code=400, detail="Audio file is empty")

        try:
            waveform, sample_rate = _decode_audio(payload)
        except Exception as exc:  # noqa: BLE001
            raise HTTPException(status_code=400, detail=f"Unable to decode audio: {exc}") from exc

        try:
            return analyze_waveform(waveform, sample_rate)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Unable to analyze audio: {exc}") from exc

    @app.websocket("/ws/realtime")
    async def realtime_ws(websocket: WebSocket) -> None:
        await websocket.accept()
        session = sessions.create()
        logger.info("Realtime session %s connected", session.session_id)
        await websocket.send_json(_status("Connected."))

        try:
            while True:
                message = await websocket.receive()
                if message.get("type") == "websocket.disconnect":
                    break
                text = message.get("text")
                binary = message.get("bytes")

                if text is not None:
                    events = _handle_text_message(session, text)
                elif binary is not None:
                    events = _handle_audio(session, binary)
                else:
                    events = []
                for event in events:
                    await websocket.send_json(event)
        except WebSocketDisconnect:
            pass
        finally:
            sessions.remove(session.session_id)
            logger.info("Realtime session %s closed", session.session_id)

    return app


def _status(message: str) -> dict[str, object]:
    return StatusEvent(message=message).model_dump(by_alias=True)


def _error(code: str, message: str) -> dict[str, object]:
    return ErrorEvent(code=code, message=message).model_dump(by_alias=True)


def _handle_audio(session: RealtimeSession, payload: bytes) -> list[dict[str, object]]:
    try:
        return session.process_audio_bytes(payload)
    except NotInitializedError as exc:
        return [_error("not_initialized", str(exc))]
    except InvalidFrameError as exc:
        return [_error("invalid_audio", str(exc))]


def _handle_text_message(session: RealtimeSession, text: str) -> list[dict[str, object]]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return [_error("invalid_json", "Invalid JSON payload")]

    if not isinstance(payload, dict):
        return [_error("invalid_payload", "Expected JSON object")]

    msg_type = payload.get("type")
    try:
        if msg_type == "init":
            msg = InitMessage.model_validate(payload)
            session.init(
                sample_rate=msg.sample_rate,
                frame_size=msg.frame_size,
                min_hz=msg.min_hz,
                max_hz=msg.max_hz,
            )
            return [_status("Session initialized.")]

        if msg_type == "start":
            StartMessage.model_validate(payload)
            session.start()
            return [_status("Listening.")]

        if msg_type == "stop":
            StopMessage.model_validate(payload)
            session.stop()
            return [_status("Stopped.")]

        if msg_type == "transport_ping":
            msg = TransportPingMessage.model_validate(payload)
            pong = TransportPongEvent(client_ts=msg.client_ts, server_ts=time.time())
            return [pong.model_dump(by_alias=True)]

    except ValidationError as exc:
        return [_error("invalid_message", str(exc))]
    except NotInitializedError as exc:
        return [_error("not_initialized", str(exc))]

    return [_error("unknown_message", f"Unknown type: {msg_type}")]


def _decode_audio(payload: bytes) -> tuple[np.ndarray, int]:
    data, sample_rate = sf.read(io.BytesIO(payload), dtype="float32", always_2d=False)
    audio = np.asarray(data, dtype=np.float32)
    if audio.ndim == 2:
        audio = np.mean(audio, axis=1, dtype=np.float32)
    if audio.size == 0:
        raise ValueError("decoded audio is empty")
    return audio, int(sample_rate)


app = create_app()


def main() -> None:
    parser = argparse.ArgumentParser(description="Voice pitch realtime server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--log-level", default="info")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    uvicorn.run(
        "voice_pitch.web.server:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        reload=False,
    )


if __name__ == "__main__":
    main()
