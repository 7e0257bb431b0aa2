"""Quest decomposition: one high-level recipe step into beginner micro-steps.

The backend is asked for a JSON array of micro-steps that carry timer and heat
directives inside their instruction text. Whatever goes wrong (backend error,
non-list output, a step failing validation, an empty list) the caller gets the
fixed fallback sequence instead, so a quest can always start.

Ids are not assigned here; number_steps() does that across a whole quest.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pydantic import ValidationError

from kitchen_quest import demo
from kitchen_quest.gemini import GeminiClient, GeminiError
from kitchen_quest.models import DecomposedStep, MicroStep
from kitchen_quest.prompts import CDM_SYSTEM_INSTRUCTION, SPLIT_INSTRUCTION_PROMPT, render_prompt

logger = logging.getLogger(__name__)

MICRO_STEP_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "level_name": {"type": "STRING"},
            "name": {"type": "STRING"},
            "instruction": {"type": "STRING"},
            "miniGameType": {"type": "STRING", "enum": ["CHOP", "SIZZLE", "PREP", "WAIT"]},
            "reference_visual": {"type": "STRING"},
            "reference_image_prompt": {"type": "STRING"},
        },
        "required": [
            "level_name", "name", "instruction", "miniGameType",
            "reference_visual", "reference_image_prompt",
        ],
    },
}


def number_steps(groups: Iterable[Iterable[DecomposedStep]], start: int = 1) -> list[MicroStep]:
    """Flatten per-step decompositions into MicroSteps with ids start, start+1, ..."""
    steps: list[MicroStep] = []
    for group in groups:
        for step in group:
            steps.append(MicroStep(
                **step.model_dump(),
                id=start + len(steps),
                completed=False,
            ))
    return steps


class DecompositionService:
    """Splits instructions into micro-steps via the text model.

    Args:
        client:     Backend client (anything with GeminiClient.generate_json).
        model:      Text model name.
        demo_mode:  Skip the backend and return the fallback sequence.
    """

    def __init__(self, client: GeminiClient, *, model: str, demo_mode: bool = False) -> None:
        self._client = client
        self._model = model
        self.demo_mode = demo_mode

    async def decompose(self, instruction: str) -> list[DecomposedStep]:
        """Never returns an empty list."""
        if self.demo_mode:
            logger.info("[DEMO MODE] returning fallback micro-steps")
            return demo.fallback_steps()

        prompt = render_prompt(SPLIT_INSTRUCTION_PROMPT, {"instruction": instruction})
        try:
            raw = await self._client.generate_json(
                self._model,
                prompt,
                schema=MICRO_STEP_SCHEMA,
                system_instruction=CDM_SYSTEM_INSTRUCTION,
            )
        except GeminiError as e:
            logger.warning("decomposition failed, using fallback steps: %s", e)
            return demo.fallback_steps()

        if not isinstance(raw, list) or not raw:
            logger.warning("decomposition returned no steps, using fallback steps")
            return demo.fallback_steps()

        try:
            steps = [DecomposedStep.model_validate(item) for item in raw]
        except ValidationError as e:
            logger.warning("decomposition returned invalid steps, using fallback steps: %s", e)
            return demo.fallback_steps()

        logger.debug("decomposed %r into %d micro-steps", instruction[:50], len(steps))
        return steps
