"""Tests for kitchen_quest.narration: logging, demo mode, single-flight playback
and preemption."""

import asyncio
import logging

import pytest

from conftest import FakeOutput, FakeSynth, settle
from kitchen_quest.audio import AudioHandle, AudioUnavailableError
from kitchen_quest.models import NarrationRequest
from kitchen_quest.narration import BackgroundTasks, NarrationCoordinator


def _cdm_lines(caplog) -> list[str]:
    return [r.getMessage() for r in caplog.records if r.getMessage().startswith("[CDM]")]


@pytest.fixture(autouse=True)
def _capture_info(caplog) -> None:
    caplog.set_level(logging.INFO, logger="kitchen_quest.narration")


@pytest.fixture
def coordinator(audio_handle: AudioHandle, fake_synth: FakeSynth) -> NarrationCoordinator:
    return NarrationCoordinator(audio_handle, fake_synth)


def _spoken(text: str) -> NarrationRequest:
    return NarrationRequest(text=text, speak_aloud=True)


# ---------------------------------------------------------------------------
# Logging gates
# ---------------------------------------------------------------------------

class TestLogging:
    @pytest.mark.parametrize("text", [None, "", "   \n "])
    async def test_blank_text_does_nothing(
        self, coordinator: NarrationCoordinator, fake_synth: FakeSynth, caplog, text,
    ) -> None:
        await coordinator.narrate(NarrationRequest(text=text, speak_aloud=True))
        assert _cdm_lines(caplog) == []
        assert fake_synth.calls == []

    async def test_log_only_by_default(
        self, coordinator: NarrationCoordinator, fake_synth: FakeSynth, caplog,
    ) -> None:
        await coordinator.narrate(NarrationRequest(text="  Timer started, Chef!  "))
        assert _cdm_lines(caplog) == ["[CDM] Timer started, Chef!"]
        assert fake_synth.calls == []

    async def test_demo_mode_never_speaks(self, fake_synth: FakeSynth, caplog) -> None:
        # no audio output at all: demo mode must not need one
        coordinator = NarrationCoordinator(AudioHandle(), fake_synth, demo_mode=True)
        await coordinator.narrate(_spoken("Welcome to demo mode, Chef!"))
        assert _cdm_lines(caplog) == ["[CDM] Welcome to demo mode, Chef!"]
        assert fake_synth.calls == []

    async def test_say_helper(self, coordinator: NarrationCoordinator, caplog) -> None:
        await coordinator.say("Hello, Chef!")
        assert _cdm_lines(caplog) == ["[CDM] Hello, Chef!"]


# ---------------------------------------------------------------------------
# Playback
# ---------------------------------------------------------------------------

class TestPlayback:
    async def test_resolves_on_natural_end(
        self, coordinator: NarrationCoordinator, fake_output: FakeOutput, fake_synth: FakeSynth,
    ) -> None:
        task = asyncio.create_task(coordinator.narrate(_spoken("Sizzle sizzle!")))
        await settle()
        assert fake_synth.calls == ["Sizzle sizzle!"]
        assert fake_output.resumed == 1
        [source] = fake_output.sources
        assert source.calls == ["connect", "start"]
        assert not task.done()
        assert coordinator.is_playing

        source.finish()
        await settle()
        assert task.done()
        assert source.calls[-1] == "disconnect"
        assert not coordinator.is_playing

    async def test_running_output_not_resumed(
        self, fake_synth: FakeSynth,
    ) -> None:
        output = FakeOutput(state="running")
        handle = AudioHandle()
        handle.init(output)
        coordinator = NarrationCoordinator(handle, fake_synth)
        task = asyncio.create_task(coordinator.narrate(_spoken("Chop-chop-chop!")))
        await settle()
        output.sources[0].finish()
        await task
        assert output.resumed == 0

    async def test_decodes_24khz_mono(
        self, coordinator: NarrationCoordinator, fake_output: FakeOutput,
    ) -> None:
        task = asyncio.create_task(coordinator.narrate(_spoken("Go!")))
        await settle()
        buffer = fake_output.sources[0].buffer
        assert buffer.sample_rate == 24000
        assert buffer.channels == 1
        assert buffer.samples.shape == (240, 1)
        fake_output.sources[0].finish()
        await task

    async def test_no_audio_is_silent_success(
        self, audio_handle: AudioHandle, fake_output: FakeOutput, caplog,
    ) -> None:
        coordinator = NarrationCoordinator(audio_handle, FakeSynth(audio=None))
        await coordinator.narrate(_spoken("Anyone there?"))
        assert fake_output.sources == []
        assert _cdm_lines(caplog) == ["[CDM] Anyone there?"]

    async def test_preemption_stops_previous(
        self, coordinator: NarrationCoordinator, fake_output: FakeOutput,
    ) -> None:
        first = asyncio.create_task(coordinator.narrate(_spoken("First line")))
        await settle()
        second = asyncio.create_task(coordinator.narrate(_spoken("Second line")))
        await settle()

        a, b = fake_output.sources
        assert a.calls == ["connect", "start", "stop", "disconnect"]
        assert b.calls == ["connect", "start"]
        assert fake_output.playing() == [b]
        # the stopped line returns at once, without waiting for its natural end
        assert first.done() and first.exception() is None
        assert "ended" not in a.calls
        assert not second.done()

        b.finish()
        await settle()
        assert second.done()

    async def test_preempted_say_returns(
        self, coordinator: NarrationCoordinator, fake_output: FakeOutput,
    ) -> None:
        a = asyncio.create_task(coordinator.say("Line A", speak_aloud=True))
        await settle()
        b = asyncio.create_task(coordinator.say("Line B", speak_aloud=True))
        await settle()
        fake_output.sources[-1].finish()
        done, pending = await asyncio.wait({a, b}, timeout=1.0)
        assert done == {a, b}
        assert pending == set()

    async def test_superseded_during_synthesis_is_dropped(
        self, coordinator: NarrationCoordinator, fake_output: FakeOutput, fake_synth: FakeSynth,
    ) -> None:
        gate = fake_synth.gate("Slow line")
        slow = asyncio.create_task(coordinator.narrate(_spoken("Slow line")))
        await settle()
        fast = asyncio.create_task(coordinator.narrate(_spoken("Fast line")))
        await settle()
        assert len(fake_output.sources) == 1

        gate.set()
        await settle()
        assert slow.done() and slow.exception() is None
        assert len(fake_output.sources) == 1
        assert fake_output.playing() == fake_output.sources

        fake_output.sources[0].finish()
        await fast

    async def test_at_most_one_source_plays(
        self, coordinator: NarrationCoordinator, fake_output: FakeOutput,
    ) -> None:
        tasks = [asyncio.create_task(coordinator.narrate(_spoken(f"Line {i}"))) for i in range(4)]
        await settle(10)
        assert len(fake_output.playing()) == 1
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def test_close_stops_current(
        self, coordinator: NarrationCoordinator, fake_output: FakeOutput,
    ) -> None:
        task = asyncio.create_task(coordinator.narrate(_spoken("Long speech")))
        await settle()
        coordinator.close()
        assert fake_output.sources[0].calls[-2:] == ["stop", "disconnect"]
        assert not coordinator.is_playing
        await asyncio.wait_for(task, timeout=1.0)


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

class TestFailures:
    async def test_uninitialized_audio_raises_after_logging(self, fake_synth: FakeSynth, caplog) -> None:
        coordinator = NarrationCoordinator(AudioHandle(), fake_synth)
        with pytest.raises(AudioUnavailableError):
            await coordinator.narrate(_spoken("Can you hear me?"))
        assert _cdm_lines(caplog) == ["[CDM] Can you hear me?"]
        assert any(r.levelno == logging.ERROR for r in caplog.records)
        assert fake_synth.calls == []

    async def test_uninitialized_audio_fine_when_not_spoken(self, fake_synth: FakeSynth) -> None:
        coordinator = NarrationCoordinator(AudioHandle(), fake_synth)
        await coordinator.narrate(NarrationRequest(text="Log only"))

    async def test_synthesis_error_propagates(self, audio_handle: AudioHandle, fake_output: FakeOutput) -> None:
        async def broken(text: str) -> bytes | None:
            raise RuntimeError("tts down")

        coordinator = NarrationCoordinator(audio_handle, broken)
        with pytest.raises(RuntimeError, match="tts down"):
            await coordinator.narrate(_spoken("Hello"))
        assert fake_output.sources == []
        assert not coordinator.is_playing

    async def test_partial_frame_rejected(self, audio_handle: AudioHandle, fake_output: FakeOutput) -> None:
        coordinator = NarrationCoordinator(audio_handle, FakeSynth(audio=b"\x00\x00\x00"))
        with pytest.raises(ValueError):
            await coordinator.narrate(_spoken("Glitch"))
        assert fake_output.sources == []

    async def test_start_failure_releases_source(self, audio_handle: AudioHandle, fake_output: FakeOutput) -> None:
        def broken_start(on_ended) -> None:
            raise RuntimeError("device busy")

        create_source = fake_output.create_source

        def create_broken(buffer):
            source = create_source(buffer)
            source.start = broken_start
            return source

        fake_output.create_source = create_broken
        coordinator = NarrationCoordinator(audio_handle, FakeSynth())
        with pytest.raises(RuntimeError, match="device busy"):
            await coordinator.narrate(_spoken("Hello"))
        [source] = fake_output.sources
        assert source.calls == ["connect", "stop", "disconnect"]
        assert not coordinator.is_playing


# ---------------------------------------------------------------------------
# BackgroundTasks
# ---------------------------------------------------------------------------

class TestBackgroundTasks:
    async def test_failures_are_logged(self, caplog) -> None:
        async def boom() -> None:
            raise AudioUnavailableError("no speaker")

        tasks = BackgroundTasks()
        tasks.spawn(boom())
        await tasks.drain()
        assert len(tasks) == 0
        assert any("no speaker" in r.getMessage() for r in caplog.records)

    async def test_close_cancels_pending(self) -> None:
        never = asyncio.Event()
        tasks = BackgroundTasks()
        task = tasks.spawn(never.wait())
        await settle()
        await tasks.close()
        assert task.cancelled()
        assert len(tasks) == 0

    async def test_preempted_lines_leave_the_set(
        self, coordinator: NarrationCoordinator, fake_output: FakeOutput,
    ) -> None:
        tasks = BackgroundTasks()
        for i in range(20):
            tasks.spawn(coordinator.narrate(_spoken(f"Line {i}")))
        await settle(20)
        assert len(fake_output.playing()) == 1
        fake_output.playing()[0].finish()
        await tasks.drain(timeout=1.0)
        assert len(tasks) == 0
        assert not coordinator.is_playing
