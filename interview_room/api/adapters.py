from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from interview_room.channels import QueueSpeechSource

logger = logging.getLogger("interview_room.ws_adapters")


class WebSocketOutbox:
    """
    Serializes all outbound frames for one connection.
    post() is usable from sync code (mic toggles); a single writer task drains
    the queue, and send() writes directly under the same lock.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.send_lock = asyncio.Lock()
        self._queue: asyncio.Queue[dict] = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None
        self.failed = False

    @property
    def connected(self) -> bool:
        return not self.failed and self.websocket.client_state == WebSocketState.CONNECTED

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._run())

    def post(self, payload: dict) -> None:
        self._queue.put_nowait(payload)

    async def send(self, payload: dict) -> bool:
        if not self.connected:
            return False
        try:
            async with self.send_lock:
                await self.websocket.send_text(json.dumps(payload))
            return True
        except Exception as exc:
            self.failed = True
            logger.warning("WebSocket send failed | err=%s", exc)
            return False

    async def _run(self) -> None:
        while True:
            payload = await self._queue.get()
            try:
                await self.send(payload)
            finally:
                self._queue.task_done()

    async def drain(self, timeout_sec: float = 2.0) -> None:
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout_sec)
        except asyncio.TimeoutError:
            logger.warning("Outbox drain timed out | pending=%s", self._queue.qsize())

    async def close(self) -> None:
        if self._writer is not None and not self._writer.done():
            self._writer.cancel()
            await asyncio.gather(self._writer, return_exceptions=True)
        self._writer = None


class WebSocketSpeechSource(QueueSpeechSource):
    """Client-side recognizer over the socket; mic state changes are pushed to the client."""

    def __init__(self, outbox: WebSocketOutbox):
        super().__init__()
        self.outbox = outbox

    def start(self) -> None:
        super().start()
        self.outbox.post({"type": "mic", "enabled": True})

    def stop(self) -> None:
        was_listening = self.listening
        super().stop()
        if was_listening:
            self.outbox.post({"type": "mic", "enabled": False})


class WebSocketSpeechSink:
    """
    Client-side text-to-speech. speak() resolves when the client reports
    playback_finished for the utterance id, or raises after the timeout.
    """

    def __init__(self, outbox: WebSocketOutbox, playback_timeout_sec: float = 30.0):
        self.outbox = outbox
        self.playback_timeout_sec = max(0.1, float(playback_timeout_sec))
        self._pending: dict[int, asyncio.Future] = {}
        self._counter = 0

    async def speak(self, text: str) -> None:
        self._counter += 1
        speech_id = self._counter
        future = asyncio.get_running_loop().create_future()
        self._pending[speech_id] = future
        self.outbox.post({"type": "agent_speech", "id": speech_id, "text": text})
        try:
            await asyncio.wait_for(future, timeout=self.playback_timeout_sec)
        finally:
            self._pending.pop(speech_id, None)

    def playback_finished(self, speech_id: Optional[int] = None) -> bool:
        if speech_id is None:
            # no id means "whatever is playing now"
            targets = list(self._pending.values())
        else:
            future = self._pending.get(int(speech_id))
            targets = [future] if future is not None else []

        resolved = False
        for future in targets:
            if not future.done():
                future.set_result(None)
                resolved = True
        return resolved

    def cancel_all(self) -> None:
        for future in list(self._pending.values()):
            if not future.done():
                future.set_result(None)
        self.outbox.post({"type": "cancel_speech"})
