"""Audio output resource for CDM narration.

The narration coordinator plays synthesized speech through an AudioOutput
handed to it by an AudioHandle. The handle is the process-scoped resource
with an explicit init / acquire / release lifecycle; nothing reaches for a
global audio device.

Protocols:

    AudioOutput  — state, resume(), create_source(buffer), close()
    AudioSource  — connect(), start(on_ended), stop(), disconnect()

on_ended fires only when a source plays to its natural end. stop() never
triggers it.

SoundDeviceOutput is the real implementation (PortAudio via sounddevice).
Tests substitute their own fake output.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal, Protocol

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 24000  # Gemini TTS emits 24 kHz mono PCM16
DEFAULT_CHANNELS = 1

OutputState = Literal["running", "suspended", "closed"]


class AudioUnavailableError(RuntimeError):
    """Raised when narration needs the speaker but no audio output was initialised."""


@dataclass(frozen=True)
class AudioBuffer:
    """Decoded audio: float32 samples shaped (frames, channels) in [-1, 1)."""

    samples: np.ndarray
    sample_rate: int

    @property
    def channels(self) -> int:
        return self.samples.shape[1]

    @property
    def duration(self) -> float:
        return self.samples.shape[0] / self.sample_rate


def decode_pcm16(
    data: bytes,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    channels: int = DEFAULT_CHANNELS,
) -> AudioBuffer:
    """Decode little-endian signed 16-bit PCM into an AudioBuffer.

    Raises ValueError when the byte count is not a whole number of frames.
    """
    frame_bytes = 2 * channels
    if len(data) % frame_bytes:
        raise ValueError(
            f"PCM16 payload of {len(data)} bytes is not a multiple of {frame_bytes}"
        )
    pcm = np.frombuffer(data, dtype="<i2").reshape(-1, channels)
    return AudioBuffer(samples=pcm.astype(np.float32) / 32768.0, sample_rate=sample_rate)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

class AudioSource(Protocol):
    def connect(self) -> None: ...

    def start(self, on_ended: Callable[[], None]) -> None: ...

    def stop(self) -> None: ...

    def disconnect(self) -> None: ...


class AudioOutput(Protocol):
    @property
    def state(self) -> OutputState: ...

    async def resume(self) -> None: ...

    def create_source(self, buffer: AudioBuffer) -> AudioSource: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# AudioHandle: the single owner of the output device
# ---------------------------------------------------------------------------

class AudioHandle:
    """Holds the process's audio output between init() and release()."""

    def __init__(self) -> None:
        self._output: AudioOutput | None = None

    @property
    def initialized(self) -> bool:
        return self._output is not None

    def init(self, output: AudioOutput) -> None:
        if self._output is not None and self._output is not output:
            self._output.close()
        self._output = output

    def acquire(self) -> AudioOutput:
        if self._output is None:
            raise AudioUnavailableError("Audio output not initialized.")
        return self._output

    def release(self) -> None:
        if self._output is not None:
            self._output.close()
            self._output = None


# ---------------------------------------------------------------------------
# sounddevice implementation
# ---------------------------------------------------------------------------

class SoundDeviceSource:
    """Plays one AudioBuffer through a PortAudio output stream."""

    def __init__(self, buffer: AudioBuffer, device: int | str | None = None) -> None:
        self._buffer = buffer
        self._device = device
        self._stream = None
        self._position = 0
        self._stopped = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._on_ended: Callable[[], None] | None = None

    def connect(self) -> None:
        import sounddevice as sd

        self._stream = sd.OutputStream(
            samplerate=self._buffer.sample_rate,
            channels=self._buffer.channels,
            dtype="float32",
            device=self._device,
            callback=self._fill,
            finished_callback=self._finished,
        )

    def _fill(self, outdata, frames, time, status) -> None:
        import sounddevice as sd

        if status:
            logger.debug("audio stream status: %s", status)
        chunk = self._buffer.samples[self._position:self._position + frames]
        self._position += len(chunk)
        outdata[: len(chunk)] = chunk
        if len(chunk) < frames:
            outdata[len(chunk):] = 0
            raise sd.CallbackStop

    def _finished(self) -> None:
        # Runs on the PortAudio thread; hop back onto the event loop.
        if self._stopped or self._on_ended is None or self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._on_ended)

    def start(self, on_ended: Callable[[], None]) -> None:
        if self._stream is None:
            raise RuntimeError("start() called before connect()")
        self._loop = asyncio.get_running_loop()
        self._on_ended = on_ended
        self._stream.start()

    def stop(self) -> None:
        self._stopped = True
        if self._stream is not None:
            self._stream.abort()

    def disconnect(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None


class SoundDeviceOutput:
    """AudioOutput backed by the default (or a named) PortAudio device."""

    def __init__(self, device: int | str | None = None) -> None:
        self._device = device
        self._state: OutputState = "suspended"

    @property
    def state(self) -> OutputState:
        return self._state

    async def resume(self) -> None:
        if self._state == "closed":
            raise AudioUnavailableError("Audio output has been closed.")
        self._state = "running"

    def create_source(self, buffer: AudioBuffer) -> SoundDeviceSource:
        return SoundDeviceSource(buffer, device=self._device)

    def close(self) -> None:
        self._state = "closed"
