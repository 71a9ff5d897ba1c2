from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import FastAPI

__all__ = ["app", "create_app"]


# FastAPI is only imported when the web app is actually requested.
def __getattr__(name: str):
    if name in __all__:
        from voice_pitch.web import server

        return getattr(server, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
