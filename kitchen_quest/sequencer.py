"""Step sequencer: the state machine for one quest attempt.

    AWAITING_FIRST_STEP ──begin()──▶ ON_STEP(0) ──advance()──▶ ON_STEP(1) … ON_STEP(n-1)
                                                                        │
                                                     advance() at n-1 ──▶ COMPLETE
    any non-terminal state ──abandon()──▶ ABANDONED

current_index never decreases during a run. COMPLETE reports
(xp_reward + accumulated bonus, gold_saved) to the reward sink; ABANDONED
discards the bonus. Once terminal, every operation raises InvalidStateError.

Narration is injected as an async callable so the sequencer never touches the
audio output itself.
"""

from __future__ import annotations

import enum
import logging
from typing import Protocol

from kitchen_quest.models import EvaluationResult, MicroStep, NarrationRequest
from kitchen_quest.narration import Narrate

logger = logging.getLogger(__name__)

SKIP_NARRATION = "Skipping this trial, Chef. Onward to the next challenge!"


class EmptyQuestError(ValueError):
    """Raised when a quest is initialized without any micro-steps."""


class InvalidStateError(RuntimeError):
    """Raised when an operation is not allowed in the current state."""


class RewardSink(Protocol):
    async def __call__(self, final_xp: int, gold_saved: str) -> None: ...


class QuestState(enum.Enum):
    AWAITING_FIRST_STEP = "awaiting_first_step"
    ON_STEP = "on_step"
    COMPLETE = "complete"
    ABANDONED = "abandoned"

    @property
    def terminal(self) -> bool:
        return self in (QuestState.COMPLETE, QuestState.ABANDONED)


async def _silent(request: NarrationRequest) -> None:
    return None


class StepSequencer:
    """Owns the micro-step list, current index and XP bonus of one attempt."""

    def __init__(
        self,
        *,
        xp_reward: int = 0,
        gold_saved: str = "",
        narrate: Narrate | None = None,
        on_complete: RewardSink | None = None,
    ) -> None:
        self.xp_reward = xp_reward
        self.gold_saved = gold_saved
        self._narrate = narrate or _silent
        self._on_complete = on_complete
        self.steps: list[MicroStep] = []
        self.current_index = 0
        self.xp_bonus_accumulated = 0
        self.pending_evaluation: EvaluationResult | None = None
        self.state = QuestState.AWAITING_FIRST_STEP

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def current_step(self) -> MicroStep:
        return self.steps[self.current_index]

    @property
    def is_last_step(self) -> bool:
        return self.current_index == len(self.steps) - 1

    @property
    def final_xp(self) -> int:
        return self.xp_reward + self.xp_bonus_accumulated

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def initialize(self, steps: list[MicroStep]) -> None:
        if self.state.terminal:
            raise InvalidStateError(f"Quest is already {self.state.value}")
        if not steps:
            raise EmptyQuestError("A quest needs at least one micro-step")
        self.steps = list(steps)
        self.current_index = 0
        self.xp_bonus_accumulated = 0
        self.pending_evaluation = None
        self.state = QuestState.AWAITING_FIRST_STEP

    def begin(self) -> MicroStep:
        """Render the first step."""
        if self.state is not QuestState.AWAITING_FIRST_STEP or not self.steps:
            raise InvalidStateError(f"Cannot begin a quest that is {self.state.value}")
        self.state = QuestState.ON_STEP
        return self.current_step

    async def record_evaluation(self, result: EvaluationResult) -> None:
        """Bank an evaluation's bonus for the current step and narrate the verdict."""
        self.bank_evaluation(result)
        await self.announce_evaluation(result)

    def bank_evaluation(self, result: EvaluationResult) -> None:
        """Add the bonus and keep the result as the step's pending evaluation."""
        self.require_on_step("record an evaluation")
        self.xp_bonus_accumulated += result.xp_bonus
        self.pending_evaluation = result
        logger.debug(
            "step %d evaluated rank=%s bonus=%d total_bonus=%d",
            self.current_step.id, result.rank, result.xp_bonus, self.xp_bonus_accumulated,
        )

    async def announce_evaluation(self, result: EvaluationResult) -> None:
        """The verdict, then the safety alert if any, each spoken to its end."""
        await self._narrate(NarrationRequest(text=result.cdm_speech, speak_aloud=True))
        if result.safety_alert:
            await self._narrate(NarrationRequest(text=result.safety_alert, speak_aloud=True))

    async def advance(self, skipped: bool = False) -> QuestState:
        """Move past the current step; the last step completes the quest.

        skipped only changes what the CDM says, never the transition. A skipped
        step simply contributes no bonus.
        """
        self.require_on_step("advance")
        if skipped:
            await self._narrate(NarrationRequest(text=SKIP_NARRATION, speak_aloud=False))
            # The narrator may have yielded; re-check before mutating.
            self.require_on_step("advance")

        self.current_step.completed = True
        self.pending_evaluation = None

        if not self.is_last_step:
            self.current_index += 1
            return self.state

        self.state = QuestState.COMPLETE
        logger.info(
            "quest complete: xp=%d (base %d + bonus %d) gold=%s",
            self.final_xp, self.xp_reward, self.xp_bonus_accumulated, self.gold_saved,
        )
        if self._on_complete is not None:
            await self._on_complete(self.final_xp, self.gold_saved)
        return self.state

    def abandon(self) -> None:
        if self.state.terminal:
            raise InvalidStateError(f"Quest is already {self.state.value}")
        self.state = QuestState.ABANDONED
        self.xp_bonus_accumulated = 0
        self.pending_evaluation = None

    # ------------------------------------------------------------------

    def require_on_step(self, action: str) -> None:
        if self.state is not QuestState.ON_STEP:
            raise InvalidStateError(f"Cannot {action}: quest is {self.state.value}")
