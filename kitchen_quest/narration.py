"""CDM narration coordinator.

Every line the Culinary Dungeon Master says goes through narrate():

  1. Blank text            → nothing happens, not even a log line.
  2. Otherwise             → the trimmed text is logged, always.
  3. Demo mode             → stop after logging.
  4. speak_aloud is False  → stop after logging.
  5. Otherwise the line is synthesized and played on the shared audio output.

At most one utterance plays at a time. A newer request preempts the one that
is playing (stop + disconnect) instead of queueing behind it, and a request
overtaken by a newer one while it was still synthesizing is dropped. The call
for an utterance that started playing returns when playback ends naturally,
or as soon as a newer line (or close()) stops it. Either way nothing is left
waiting on a source that will never play again.

Calls are not queued. Callers that need lines in order await each call before
issuing the next; un-awaited calls race and the last one to reach the
preemption point gets the speaker.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Protocol

from kitchen_quest.audio import (
    DEFAULT_CHANNELS,
    DEFAULT_SAMPLE_RATE,
    AudioHandle,
    AudioSource,
    AudioUnavailableError,
    decode_pcm16,
)
from kitchen_quest.models import NarrationRequest

logger = logging.getLogger(__name__)

Narrate = Callable[[NarrationRequest], Awaitable[None]]


class SpeechSynthesizer(Protocol):
    async def __call__(self, text: str) -> bytes | None: ...


class NarrationCoordinator:
    """Serializes CDM narration onto a single audio output.

    Args:
        audio:       Handle owning the audio output. Only this coordinator
                     starts, stops or inspects sources on it.
        synthesize:  Text-to-speech capability returning raw PCM16 or None.
        demo_mode:   When True, narration is logged but never spoken.
    """

    def __init__(
        self,
        audio: AudioHandle,
        synthesize: SpeechSynthesizer,
        *,
        demo_mode: bool = False,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        channels: int = DEFAULT_CHANNELS,
    ) -> None:
        self._audio = audio
        self._synthesize = synthesize
        self.demo_mode = demo_mode
        self._sample_rate = sample_rate
        self._channels = channels
        self._current: AudioSource | None = None
        self._finished: asyncio.Future[None] | None = None
        self._generation = 0

    @property
    def is_playing(self) -> bool:
        return self._current is not None

    async def say(self, text: str | None, *, speak_aloud: bool = False) -> None:
        await self.narrate(NarrationRequest(text=text, speak_aloud=speak_aloud))

    async def narrate(self, request: NarrationRequest) -> None:
        text = (request.text or "").strip()
        if not text:
            return

        logger.info("[CDM] %s", text)

        if self.demo_mode or not request.speak_aloud:
            return

        try:
            output = self._audio.acquire()
        except AudioUnavailableError:
            logger.error("Audio output not initialized; line not spoken: %r", text)
            raise

        self._generation += 1
        generation = self._generation
        source: AudioSource | None = None
        try:
            if output.state == "suspended":
                await output.resume()

            self._release_current()

            audio = await self._synthesize(text)
            if not audio:
                logger.warning("Speech synthesis returned no audio for %r", text)
                return

            buffer = decode_pcm16(audio, self._sample_rate, self._channels)
            if generation != self._generation:
                logger.debug("Narration superseded before playback: %r", text)
                return

            self._release_current()
            source = output.create_source(buffer)
            source.connect()
            finished: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            source.start(self._ended_callback(source, finished))
            self._current = source
            self._finished = finished
        except Exception:
            logger.exception("Narration playback failed for %r", text)
            if source is not None:
                self._discard(source)
            raise

        try:
            await finished
        except asyncio.CancelledError:
            if self._current is source:
                self._release_current()
            raise

    def close(self) -> None:
        """Stop whatever is playing and drop any in-flight request."""
        self._generation += 1
        self._release_current()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ended_callback(
        self, source: AudioSource, finished: asyncio.Future[None]
    ) -> Callable[[], None]:
        def on_ended() -> None:
            if self._current is source:
                self._current = None
                self._finished = None
            source.disconnect()
            if not finished.done():
                finished.set_result(None)

        return on_ended

    def _release_current(self) -> None:
        current, self._current = self._current, None
        finished, self._finished = self._finished, None
        # wake the call waiting on the stopped source
        if finished is not None and not finished.done():
            finished.set_result(None)
        if current is not None:
            current.stop()
            current.disconnect()

    def _discard(self, source: AudioSource) -> None:
        if self._current is source:
            self._current = None
            self._finished = None
        # Best effort: the original failure is what the caller needs to see.
        with contextlib.suppress(Exception):
            source.stop()
        with contextlib.suppress(Exception):
            source.disconnect()


# ---------------------------------------------------------------------------
# Background narration
# ---------------------------------------------------------------------------

class BackgroundTasks:
    """Fire-and-forget narration tasks that are still tracked.

    Keeps a reference to every task until it finishes, logs failures instead
    of losing them, and cancels whatever is left on close().
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._done)
        return task

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for running tasks to finish (or the timeout to pass)."""
        if self._tasks:
            await asyncio.wait(list(self._tasks), timeout=timeout)

    async def close(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def _done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("background narration failed: %s", exc, exc_info=exc)
