from __future__ import annotations

import asyncio
import logging
from typing import Optional

from interview_room.interfaces import EmotionHandler, UtteranceHandler
from interview_room.models import EmotionSample, Utterance

logger = logging.getLogger("interview_room.channels")


class QueueSpeechSource:
    """
    Speech source fed through an asyncio queue of typed events.
    A single pump task delivers utterances to the subscriber one at a time,
    so handler order always equals arrival order.
    Utterances pushed while the source is stopped are discarded (mic closed).
    """

    def __init__(self):
        self._queue: asyncio.Queue[Optional[Utterance]] = asyncio.Queue()
        self._handler: Optional[UtteranceHandler] = None
        self._pump_task: Optional[asyncio.Task] = None
        self.listening = False
        self.start_calls = 0
        self.stop_calls = 0

    def subscribe(self, handler: UtteranceHandler) -> None:
        self._handler = handler

    def start(self) -> None:
        self.start_calls += 1
        self.listening = True
        if self._pump_task is None or self._pump_task.done():
            self._pump_task = asyncio.create_task(self._pump())

    def stop(self) -> None:
        self.stop_calls += 1
        self.listening = False

    def push(self, utterance: Utterance) -> bool:
        if not self.listening:
            logger.debug("Utterance discarded (source stopped)")
            return False
        self._queue.put_nowait(utterance)
        return True

    async def close(self) -> None:
        self.stop()
        if self._pump_task is not None and not self._pump_task.done():
            self._pump_task.cancel()
            await asyncio.gather(self._pump_task, return_exceptions=True)
        self._pump_task = None

    async def _pump(self) -> None:
        while True:
            utterance = await self._queue.get()
            try:
                if utterance is not None and self._handler is not None:
                    await self._handler(utterance)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Utterance handler failed")
            finally:
                self._queue.task_done()


class QueueEmotionSource:
    """
    Emotion samples are delivered synchronously to every subscriber.
    No start/stop coupling with the speech source.
    """

    def __init__(self):
        self._handlers: list[EmotionHandler] = []

    def subscribe(self, handler: EmotionHandler) -> None:
        self._handlers.append(handler)

    def push(self, sample: EmotionSample) -> None:
        for handler in list(self._handlers):
            try:
                handler(sample)
            except Exception:
                logger.exception("Emotion handler failed")


class RecordingSpeechSink:
    """
    Sink that records spoken text and completes after an optional delay.
    Useful offline and in tests.
    """

    def __init__(self, playback_sec: float = 0.0, fail: bool = False):
        self.playback_sec = max(0.0, float(playback_sec))
        self.fail = fail
        self.spoken: list[str] = []
        self.cancelled = 0
        self._pending: set[asyncio.Future] = set()

    async def speak(self, text: str) -> None:
        self.spoken.append(text)
        if self.fail:
            raise RuntimeError("synthesis failed")
        if self.playback_sec <= 0:
            return
        loop = asyncio.get_running_loop()
        done = loop.create_future()
        handle = loop.call_later(self.playback_sec, lambda: done.done() or done.set_result(None))
        self._pending.add(done)
        try:
            await done
        finally:
            handle.cancel()
            self._pending.discard(done)

    def cancel_all(self) -> None:
        self.cancelled += 1
        for future in list(self._pending):
            if not future.done():
                future.set_result(None)
