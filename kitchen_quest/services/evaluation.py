"""Technique evaluation: food safety check on the instruction, then photo grading.

    evaluate(photo, step_name, quest_id, instruction)
      1. demo mode      → scripted result, no backend call
      2. safety check   → unsafe instruction short-circuits to rank F/D, no bonus
      3. photo grading  → rank S–F, XP bonus and a CDM line

The returned EvaluationResult always satisfies its model: a response missing
a required field becomes the "malfunction" result and a backend failure the
"API evaluation failed" result, both rank F with no bonus.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from kitchen_quest import demo
from kitchen_quest.gemini import GeminiClient, GeminiError
from kitchen_quest.models import EvaluationResult, FoodSafetyResult, FoodSafetyRisk
from kitchen_quest.prompts import (
    CDM_SYSTEM_INSTRUCTION,
    EVALUATION_PROMPT,
    FOOD_SAFETY_PROMPT,
    FOOD_SAFETY_SYSTEM_INSTRUCTION,
    render_prompt,
)

logger = logging.getLogger(__name__)

MALFUNCTION_RESULT = EvaluationResult(
    rank="F",
    feedback="Evaluation system malfunction, Chef! Try again!",
    xp_bonus=0,
    cdm_speech="Error in evaluation, Chef! Try again!",
)

API_FAILURE_RESULT = EvaluationResult(
    rank="F",
    feedback="API evaluation failed, Chef! The culinary spirits are not responding!",
    xp_bonus=0,
    cdm_speech="API evaluation failed, Chef!",
)

SAFETY_CHECK_UNAVAILABLE = FoodSafetyResult(
    is_safe=True,
    risk_level="none",
    safety_advice="Could not perform safety check. Proceed with caution.",
)

FOOD_SAFETY_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "is_safe": {"type": "BOOLEAN"},
        "risk_level": {"type": "STRING", "enum": ["none", "low", "medium", "high"]},
        "detected_risks": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "type": {
                        "type": "STRING",
                        "enum": [
                            "knife", "raw_meat", "oil_splatter", "undercooking",
                            "cross_contamination", "burn", "allergen", "other",
                        ],
                    },
                    "description": {"type": "STRING"},
                },
                "required": ["type", "description"],
            },
        },
        "safety_advice": {"type": "STRING"},
        "requires_confirmation": {"type": "BOOLEAN"},
        "confirmation_message": {"type": "STRING"},
    },
    "required": [
        "is_safe", "risk_level", "detected_risks", "safety_advice",
        "requires_confirmation", "confirmation_message",
    ],
}

EVALUATION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "rank": {"type": "STRING"},
        "feedback": {"type": "STRING"},
        "xpBonus": {"type": "NUMBER"},
        "safety_alert": {"type": "STRING", "description": "Only include if visual hazard detected"},
        "cdmSpeech": {"type": "STRING", "description": "CDM's narration message for the user"},
    },
    "required": ["rank", "feedback", "xpBonus", "cdmSpeech"],
}


# ---------------------------------------------------------------------------
# Response coercion
# ---------------------------------------------------------------------------

def coerce_food_safety(raw: Any) -> FoodSafetyResult:
    """Fill defaults for missing fields; a missing is_safe counts as unsafe."""
    if not isinstance(raw, dict):
        raw = {}
    risks = []
    for item in raw.get("detected_risks") or []:
        try:
            risks.append(FoodSafetyRisk.model_validate(item))
        except ValidationError:
            logger.debug("dropping malformed safety risk: %r", item)
    is_safe = raw.get("is_safe")
    requires = raw.get("requires_confirmation")
    risk_level = raw.get("risk_level")
    return FoodSafetyResult(
        is_safe=is_safe if isinstance(is_safe, bool) else False,
        risk_level=risk_level if risk_level in ("none", "low", "medium", "high") else "none",
        detected_risks=risks,
        safety_advice=raw.get("safety_advice") or "",
        requires_confirmation=requires if isinstance(requires, bool) else False,
        confirmation_message=raw.get("confirmation_message") or "",
    )


def coerce_evaluation(raw: Any) -> EvaluationResult:
    """Validate a backend evaluation; anything incomplete is a malfunction."""
    if not isinstance(raw, dict):
        logger.warning("evaluation response is not an object: %r", raw)
        return MALFUNCTION_RESULT
    data = dict(raw)
    if isinstance(data.get("cdmSpeech"), str):
        data["cdmSpeech"] = data["cdmSpeech"].strip()
    if not data.get("safety_alert"):
        data.pop("safety_alert", None)
    try:
        return EvaluationResult.model_validate(data)
    except ValidationError as e:
        logger.warning("evaluation response failed validation: %s", e)
        return MALFUNCTION_RESULT


def safety_verdict(check: FoodSafetyResult) -> EvaluationResult:
    """Turn an unsafe food check into the evaluation shown to the player."""
    risks = "; ".join(r.description for r in check.detected_risks)
    return EvaluationResult(
        rank="F" if check.risk_level == "high" else "D",
        feedback=check.safety_advice or "Review the safety advice before continuing, Chef.",
        xp_bonus=0,
        safety_alert=f"Safety Hazard: {risks}",
        cdm_speech=check.confirmation_message or f"WARNING, CHEF! {risks} Please review the safety advice!",
    )


# ---------------------------------------------------------------------------
# EvaluationService
# ---------------------------------------------------------------------------

class EvaluationService:
    """Grades a step photo, after vetting the step's instruction for hazards.

    Args:
        client:     Backend client (anything with GeminiClient.generate_json).
        model:      Text/vision model name.
        demo_mode:  Return scripted results without calling the backend.
    """

    def __init__(self, client: GeminiClient, *, model: str, demo_mode: bool = False) -> None:
        self._client = client
        self._model = model
        self.demo_mode = demo_mode

    async def check_food_safety(self, step: str) -> FoodSafetyResult:
        try:
            raw = await self._client.generate_json(
                self._model,
                render_prompt(FOOD_SAFETY_PROMPT, {"step": step}),
                schema=FOOD_SAFETY_SCHEMA,
                system_instruction=FOOD_SAFETY_SYSTEM_INSTRUCTION,
            )
        except GeminiError as e:
            logger.warning("food safety check failed for %r: %s", step[:50], e)
            return SAFETY_CHECK_UNAVAILABLE
        result = coerce_food_safety(raw)
        logger.debug(
            "food safety for %r: safe=%s level=%s", step[:50], result.is_safe, result.risk_level,
        )
        return result

    async def evaluate(
        self,
        photo: bytes,
        step_name: str,
        quest_id: str,
        instruction: str,
        mime_type: str = "image/jpeg",
    ) -> EvaluationResult:
        if self.demo_mode:
            logger.info("[DEMO MODE] evaluating quest=%s step=%s", quest_id, step_name)
            return demo.demo_evaluation(quest_id, step_name, instruction)

        check = await self.check_food_safety(instruction)
        if not check.is_safe:
            return safety_verdict(check)

        try:
            raw = await self._client.generate_json(
                self._model,
                render_prompt(EVALUATION_PROMPT, {"step_name": step_name}),
                schema=EVALUATION_SCHEMA,
                system_instruction=CDM_SYSTEM_INSTRUCTION,
                image=photo,
                image_mime_type=mime_type,
            )
        except GeminiError as e:
            logger.error("technique evaluation failed for %s: %s", step_name, e)
            return API_FAILURE_RESULT

        result = coerce_evaluation(raw)
        logger.info("evaluation quest=%s step=%s rank=%s bonus=%d",
                    quest_id, step_name, result.rank, result.xp_bonus)
        return result
