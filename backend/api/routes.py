"""REST API routes for the speller frontend."""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

import config
from database.store import redis_store
from speller.engine import SpellerEngine

router = APIRouter(prefix="/api")


class ConfigUpdate(BaseModel):
    flash_interval_ms: int | None = Field(default=None, gt=0)
    threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    trigger_mode: Literal["level", "edge"] | None = None
    refractory_ms: float | None = Field(default=None, ge=0.0)


class ProbabilityIn(BaseModel):
    value: float


class StatusResponse(BaseModel):
    connected: bool
    source: str | None
    flashing: bool
    highlighted_axis: str | None
    highlighted_index: int | None
    state: str
    pending_row: int | None
    pending_col: int | None
    probability: float | None
    last_symbol: str | None
    transcript: str
    flash_count: int
    redis_connected: bool
    flash_interval_ms: int
    threshold: float
    trigger_mode: str
    refractory_ms: float
    flash_log_size: int


def _engine(request: Request) -> SpellerEngine:
    return request.app.state.engine


@router.get("/status", response_model=StatusResponse)
async def get_status(request: Request) -> StatusResponse:
    return StatusResponse(**_engine(request).status)


@router.get("/grid")
async def get_grid(request: Request) -> dict[str, Any]:
    return _engine(request).grid.to_json()


@router.post("/flash/start")
async def start_flashing(request: Request) -> dict[str, str]:
    if not _engine(request).start_flashing():
        raise HTTPException(status_code=409, detail="Flashing already running")
    return {"status": "flashing_started"}


@router.post("/flash/stop")
async def stop_flashing(request: Request) -> dict[str, str]:
    if not _engine(request).stop_flashing():
        raise HTTPException(status_code=409, detail="Flashing not running")
    return {"status": "flashing_stopped"}


@router.get("/flashes")
async def get_flashes(request: Request) -> dict[str, Any]:
    engine = _engine(request)
    return {
        "flashes": [e.to_json() for e in engine.event_log.snapshot()],
        "total": engine.event_log.total,
    }


@router.get("/selection")
async def get_selection(request: Request) -> dict[str, Any]:
    return _engine(request).decoder.snapshot()


@router.post("/selection/reset")
async def reset_selection(request: Request) -> dict[str, str]:
    _engine(request).reset_selection()
    return {"status": "selection_reset"}


@router.post("/probability")
async def push_probability(sample: ProbabilityIn, request: Request) -> dict[str, str]:
    if not 0.0 <= sample.value <= 1.0:
        raise HTTPException(status_code=400, detail="Probability must be within [0, 1]")
    _engine(request).submit_sample(sample.value)
    return {"status": "queued"}


@router.get("/config")
async def get_config(request: Request) -> dict[str, Any]:
    return {
        **_engine(request).settings,
        "simulate_probability": config.SIMULATE_PROBABILITY,
        "redis_events": config.REDIS_EVENTS,
    }


@router.patch("/config")
async def update_config(update: ConfigUpdate, request: Request) -> dict[str, str]:
    _engine(request).update_settings(
        interval_ms=update.flash_interval_ms,
        threshold=update.threshold,
        mode=update.trigger_mode,
        refractory_ms=update.refractory_ms,
    )
    if update.flash_interval_ms is not None:
        config.FLASH_INTERVAL_MS = update.flash_interval_ms
    if update.threshold is not None:
        config.PROBABILITY_THRESHOLD = update.threshold
    if update.trigger_mode is not None:
        config.TRIGGER_MODE = update.trigger_mode
    if update.refractory_ms is not None:
        config.DECODE_REFRACTORY_MS = update.refractory_ms
    return {"status": "config_updated"}


@router.get("/transcript")
async def get_transcript(request: Request) -> dict[str, Any]:
    transcript = _engine(request).transcript
    return {"text": transcript.text, "symbols": transcript.symbols}


@router.delete("/transcript/last")
async def delete_last(request: Request) -> dict[str, Any]:
    engine = _engine(request)
    removed = engine.delete_last_symbol()
    if removed is None:
        raise HTTPException(status_code=404, detail="Transcript is empty")
    return {"removed": removed, "text": engine.transcript.text}


@router.delete("/transcript")
async def clear_transcript(request: Request) -> dict[str, str]:
    _engine(request).clear_transcript()
    return {"status": "transcript_cleared"}


@router.get("/events")
async def get_events(seconds: float = 60.0) -> dict[str, Any]:
    if not config.REDIS_EVENTS:
        raise HTTPException(status_code=404, detail="Event recording is disabled")
    events = redis_store.get_recent_events(seconds)
    return {"events": events}
