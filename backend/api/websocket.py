"""WebSocket manager for broadcasting speller events to the frontend."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from utils.events import Event, EventBus, EventType, event_bus

logger = logging.getLogger(__name__)


class WebSocketManager:

    def __init__(self, bus: EventBus | None = None) -> None:
        self._clients: list[WebSocket] = []
        self._probability_clients: list[WebSocket] = []
        self._lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None

        bus = bus or event_bus
        for event_type in EventType:
            if event_type is EventType.PROBABILITY:
                bus.on(event_type, self._on_probability)
            else:
                bus.on(event_type, self._on_event)

    def set_loop(self, loop: asyncio.AbstractEventLoop | None) -> None:
        self._loop = loop

    def _schedule(self, coro_factory) -> None:
        if self._loop is None or self._loop.is_closed():
            return
        try:
            self._loop.call_soon_threadsafe(
                lambda: asyncio.ensure_future(coro_factory())
            )
        except RuntimeError:
            logger.debug("Event loop closed, dropping broadcast")

    def _on_event(self, event: Event) -> None:
        payload = event.to_json()
        self._schedule(lambda: self._broadcast(payload, self._clients))

    def _on_probability(self, event: Event) -> None:
        if not self._probability_clients:
            return
        payload = event.to_json()
        self._schedule(lambda: self._broadcast(payload, self._probability_clients))

    async def connect(self, ws: WebSocket, stream_probability: bool = False) -> None:
        await ws.accept()
        async with self._lock:
            self._clients.append(ws)
            if stream_probability:
                self._probability_clients.append(ws)
        logger.info("WebSocket client connected (stream_probability=%s)", stream_probability)

    async def disconnect(self, ws: WebSocket) -> None:
        async with self._lock:
            if ws in self._clients:
                self._clients.remove(ws)
            if ws in self._probability_clients:
                self._probability_clients.remove(ws)

    async def _broadcast(self, data: dict[str, Any], clients: list[WebSocket]) -> None:
        async with self._lock:
            targets = list(clients)
        if not targets:
            return
        dead: list[WebSocket] = []
        message = json.dumps(data)
        for ws in targets:
            try:
                await ws.send_text(message)
            except Exception:
                dead.append(ws)
        for ws in dead:
            await self.disconnect(ws)

    async def handle(self, ws: WebSocket) -> None:
        await self.connect(ws)
        try:
            while True:
                msg = await ws.receive_text()
                try:
                    payload = json.loads(msg)
                except json.JSONDecodeError:
                    logger.debug("Ignoring non-JSON WebSocket message")
                    continue
                cmd = payload.get("command") if isinstance(payload, dict) else None
                if cmd == "subscribe_probability":
                    async with self._lock:
                        if ws not in self._probability_clients:
                            self._probability_clients.append(ws)
                elif cmd == "unsubscribe_probability":
                    async with self._lock:
                        if ws in self._probability_clients:
                            self._probability_clients.remove(ws)
        except WebSocketDisconnect:
            pass
        finally:
            await self.disconnect(ws)


ws_manager = WebSocketManager()
