"""Quest session: one attempt at one recipe quest, from selection to reward.

The session is where the pieces meet. Each player or system event is an
explicit method:

    start()            decompose every high-level step, number the micro-steps
                       1..N, begin on the first one
    evaluate(photo)    grade the current step and bank its bonus
    advance() / skip() move on; the last step completes the quest
    abandon()          give up; the bonus is discarded
    start_timer() / pause_timer() / restart_timer()

Entering a step re-arms the timer from the step's own directive and has the
CDM read the cleaned instruction.

Spoken lines are never awaited by these methods. Each group of lines that
must play in order (intro then first step, verdict then safety alert) runs as
one tracked background task; a newer group preempts an older one at the
narration coordinator. Log-only lines are awaited inline, so they are logged
before the method returns.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from kitchen_quest.directives import format_countdown, format_heat, parse_instruction
from kitchen_quest.models import (
    EvaluationResult,
    MicroStep,
    NarrationRequest,
    ParsedInstruction,
    RecipeQuest,
)
from kitchen_quest.narration import BackgroundTasks, Narrate
from kitchen_quest.sequencer import (
    EmptyQuestError,
    InvalidStateError,
    QuestState,
    RewardSink,
    StepSequencer,
)
from kitchen_quest.services import DecompositionService, EvaluationService, number_steps
from kitchen_quest.timer import TimerEngine, TimerState, TimerStatus

logger = logging.getLogger(__name__)

PROCESSING_NARRATION = "Processing quest details, Chef! Preparing your micro-steps!"
PROCESSING_FAILED_NARRATION = "Quest processing failed, Chef! Try another quest!"
ANALYZING_NARRATION = "Analyzing your technique, Chef! The CDM is watching!"
CAPTURE_NARRATION = "Capturing your progress, Chef!"
ABANDON_NARRATION = "Abandoning the quest, Chef. Perhaps another time!"
TIMER_STARTED_NARRATION = "Timer started, Chef!"
TIMER_PAUSED_NARRATION = "Timer paused, Chef."
TIMER_RESTARTED_NARRATION = "Timer restarted, Chef!"


def step_entry_narration(clean_instruction: str) -> str:
    return f"Alright, Chef! {clean_instruction}"


def intro_narration(quest: RecipeQuest) -> str:
    return quest.cdm_intro_narration or f"Commencing Quest: {quest.quest_name}!"


def completion_narration(final_xp: int, gold_saved: str) -> str:
    return (
        f"Quest completed, Chef! You earned {final_xp} XP and {gold_saved} gold! "
        "Consumed ingredients have been removed from your inventory!"
    )


# ---------------------------------------------------------------------------
# Snapshot returned to the HTTP layer
# ---------------------------------------------------------------------------

class TimerView(BaseModel):
    label: str | None = None
    remaining_seconds: int = 0
    countdown: str = "00:00"
    status: TimerStatus = "idle"


class QuestView(BaseModel):
    quest_id: str
    quest_name: str
    state: str
    current_index: int
    total_steps: int
    step: MicroStep | None = None
    instruction: str = ""
    heat: str | None = None
    timer: TimerView = Field(default_factory=TimerView)
    xp_bonus: int = 0
    final_xp: int = 0
    evaluation: EvaluationResult | None = None


# ---------------------------------------------------------------------------
# QuestSession
# ---------------------------------------------------------------------------

class QuestSession:
    """Runs one quest attempt.

    Args:
        quest:         The selected quest with its high-level steps.
        narrate:       Narration entry point (NarrationCoordinator.narrate).
        decomposer:    Splits each high-level step into micro-steps.
        evaluator:     Grades step photos.
        on_complete:   Reward sink for (final_xp, gold_saved).
        timer:         Timer engine; a default one is built if omitted.
    """

    def __init__(
        self,
        quest: RecipeQuest,
        *,
        narrate: Narrate,
        decomposer: DecompositionService,
        evaluator: EvaluationService,
        on_complete: RewardSink | None = None,
        timer: TimerEngine | None = None,
    ) -> None:
        self.quest = quest
        self._narrate = narrate
        self._decomposer = decomposer
        self._evaluator = evaluator
        self._reward = on_complete
        self.timer = timer or TimerEngine(narrate=narrate)
        self.sequencer = StepSequencer(
            xp_reward=quest.xp_reward,
            gold_saved=quest.gold_saved,
            narrate=narrate,
            on_complete=self._complete,
        )
        self.parsed: ParsedInstruction | None = None
        self.tasks = BackgroundTasks()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> QuestView:
        """Decompose the quest and begin on its first micro-step.

        Raises EmptyQuestError when the quest yields no micro-steps. A quest
        with no high-level steps fails before anything is decomposed.
        """
        if not self.quest.steps:
            logger.error("quest %s has no steps", self.quest.id)
            self._speak(PROCESSING_FAILED_NARRATION)
            raise EmptyQuestError(f"Quest {self.quest.id} has no steps")

        self._speak(PROCESSING_NARRATION)
        groups = []
        for high_level in self.quest.steps:
            groups.append(await self._decomposer.decompose(high_level.instruction))
        steps = number_steps(groups)
        try:
            self.sequencer.initialize(steps)
        except EmptyQuestError:
            logger.error("quest %s produced no playable steps", self.quest.id)
            self._speak(PROCESSING_FAILED_NARRATION)
            raise

        logger.info(
            "quest %s started: %d high-level steps, %d micro-steps",
            self.quest.id, len(self.quest.steps), len(steps),
        )
        self.sequencer.begin()
        self._speak(intro_narration(self.quest), *self._enter_step())
        return self.view()

    async def close(self) -> None:
        """Stop the timer and cancel any narration still in flight."""
        self.timer.close()
        await self.tasks.close()

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight narration to finish (or the timeout to pass)."""
        await self.tasks.drain(timeout)

    # ------------------------------------------------------------------
    # Player actions
    # ------------------------------------------------------------------

    def capture(self) -> None:
        """The player is about to photograph the current step."""
        self.sequencer.require_on_step("capture")
        self._speak(CAPTURE_NARRATION)

    async def evaluate(self, photo: bytes, mime_type: str = "image/jpeg") -> EvaluationResult:
        self.sequencer.require_on_step("evaluate")
        step = self.sequencer.current_step
        self._speak(ANALYZING_NARRATION)
        result = await self._evaluator.evaluate(
            photo, step.name, self.quest.id, step.raw_instruction, mime_type=mime_type,
        )
        # the player may have moved on while the backend was grading
        if self.sequencer.state is not QuestState.ON_STEP or self.sequencer.current_step is not step:
            raise InvalidStateError("The step changed while it was being evaluated")
        self.sequencer.bank_evaluation(result)
        self.tasks.spawn(self.sequencer.announce_evaluation(result))
        return result

    async def advance(self) -> QuestView:
        await self.sequencer.advance()
        return self._after_advance()

    async def skip(self) -> QuestView:
        await self.sequencer.advance(skipped=True)
        return self._after_advance()

    def abandon(self) -> QuestView:
        self.sequencer.abandon()
        self.timer.close()
        logger.info("quest %s abandoned", self.quest.id)
        self._speak(ABANDON_NARRATION)
        return self.view()

    # ------------------------------------------------------------------
    # Timer controls
    # ------------------------------------------------------------------

    async def start_timer(self) -> TimerState:
        self.sequencer.require_on_step("start the timer")
        state = self.timer.start()
        await self._narrate(NarrationRequest(text=TIMER_STARTED_NARRATION))
        return state

    async def pause_timer(self) -> TimerState:
        self.sequencer.require_on_step("pause the timer")
        state = self.timer.pause()
        await self._narrate(NarrationRequest(text=TIMER_PAUSED_NARRATION))
        return state

    async def restart_timer(self) -> TimerState:
        self.sequencer.require_on_step("restart the timer")
        state = self.timer.restart()
        await self._narrate(NarrationRequest(text=TIMER_RESTARTED_NARRATION))
        return state

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def view(self) -> QuestView:
        seq = self.sequencer
        on_step = seq.state is QuestState.ON_STEP
        parsed = self.parsed if on_step else None
        directive = self.timer.directive if on_step else None
        timer_state = self.timer.state
        return QuestView(
            quest_id=self.quest.id,
            quest_name=self.quest.quest_name,
            state=seq.state.value,
            current_index=seq.current_index,
            total_steps=len(seq.steps),
            step=seq.current_step if on_step else None,
            instruction=parsed.clean_instruction if parsed else "",
            heat=format_heat(parsed.heat) if parsed else None,
            timer=TimerView(
                label=directive.label if directive else None,
                remaining_seconds=timer_state.remaining_seconds,
                countdown=format_countdown(timer_state.remaining_seconds),
                status=timer_state.status,
            ) if on_step else TimerView(),
            xp_bonus=seq.xp_bonus_accumulated,
            final_xp=seq.final_xp,
            evaluation=seq.pending_evaluation,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _enter_step(self) -> list[str]:
        """Parse the current step, re-arm the timer and return its entry line."""
        step = self.sequencer.current_step
        self.parsed = parse_instruction(step.raw_instruction)
        self.timer.sync(self.quest.id, self.sequencer.current_index, self.parsed.timer)
        logger.debug("entered step %d/%d: %s", step.id, len(self.sequencer.steps), step.name)
        return [step_entry_narration(self.parsed.clean_instruction)]

    def _after_advance(self) -> QuestView:
        if self.sequencer.state is QuestState.ON_STEP:
            self._speak(*self._enter_step())
        else:
            self.timer.close()
        return self.view()

    async def _complete(self, final_xp: int, gold_saved: str) -> None:
        if self._reward is not None:
            await self._reward(final_xp, gold_saved)
        self._speak(completion_narration(final_xp, gold_saved))

    def _speak(self, *lines: str) -> None:
        """Say lines in order, in the background."""
        self.tasks.spawn(self._say_in_order(lines))

    async def _say_in_order(self, lines: tuple[str, ...] | list[str]) -> None:
        for line in lines:
            await self._narrate(NarrationRequest(text=line, speak_aloud=True))

