import asyncio

import numpy as np
import pytest

from kitchen_quest.audio import AudioBuffer, AudioHandle
from kitchen_quest.models import DecomposedStep, MicroStep

PCM_SILENCE = b"\x00\x00" * 240  # 10 ms at 24 kHz


class FakeSource:
    """Records calls; finish() simulates the natural end of playback."""

    def __init__(self, output: "FakeOutput", buffer: AudioBuffer) -> None:
        self.output = output
        self.buffer = buffer
        self.calls: list[str] = []
        self.on_ended = None

    @property
    def playing(self) -> bool:
        return "start" in self.calls and "stop" not in self.calls and "ended" not in self.calls

    def connect(self) -> None:
        self.calls.append("connect")

    def start(self, on_ended) -> None:
        self.calls.append("start")
        self.on_ended = on_ended

    def stop(self) -> None:
        self.calls.append("stop")

    def disconnect(self) -> None:
        self.calls.append("disconnect")

    def finish(self) -> None:
        self.calls.append("ended")
        self.on_ended()


class FakeOutput:
    def __init__(self, state: str = "suspended") -> None:
        self.state = state
        self.sources: list[FakeSource] = []
        self.resumed = 0
        self.closed = False

    async def resume(self) -> None:
        self.resumed += 1
        self.state = "running"

    def create_source(self, buffer: AudioBuffer) -> FakeSource:
        source = FakeSource(self, buffer)
        self.sources.append(source)
        return source

    def close(self) -> None:
        self.closed = True
        self.state = "closed"

    def playing(self) -> list[FakeSource]:
        return [s for s in self.sources if s.playing]


class FakeSynth:
    """Speech synthesizer returning fixed PCM; gate() makes calls wait."""

    def __init__(self, audio: bytes | None = PCM_SILENCE) -> None:
        self.audio = audio
        self.calls: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}

    def gate(self, text: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[text] = event
        return event

    async def __call__(self, text: str) -> bytes | None:
        self.calls.append(text)
        gate = self.gates.get(text)
        if gate is not None:
            await gate.wait()
        return self.audio


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks run up to their next real suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_steps(count: int, *, instruction: str = "Chop the onion. [HEAT: N/A]") -> list[MicroStep]:
    return [
        MicroStep(
            id=i + 1,
            level_name=f"LEVEL {i + 1}",
            name=f"Step {i + 1}",
            raw_instruction=instruction,
            mini_game_type="PREP",
        )
        for i in range(count)
    ]


def make_decomposed(name: str, instruction: str = "Stir. [HEAT: 🔥 (Simmer)]") -> DecomposedStep:
    return DecomposedStep(
        level_name=name.upper(),
        name=name,
        raw_instruction=instruction,
        mini_game_type="PREP",
    )


@pytest.fixture
def fake_output() -> FakeOutput:
    return FakeOutput()


@pytest.fixture
def audio_handle(fake_output: FakeOutput) -> AudioHandle:
    handle = AudioHandle()
    handle.init(fake_output)
    return handle


@pytest.fixture
def fake_synth() -> FakeSynth:
    return FakeSynth()


@pytest.fixture
def silence() -> np.ndarray:
    return np.zeros((240, 1), dtype=np.float32)
