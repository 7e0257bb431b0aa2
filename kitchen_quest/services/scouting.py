"""Scouting: fridge scans, the quest board and step reference images.

These feed the quest loop rather than drive it. Demo mode answers from the
demo dataset; otherwise each call goes to the backend once (plus the client's
own retry for transient unavailability).
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from kitchen_quest import demo
from kitchen_quest.gemini import GeminiClient, GeminiError
from kitchen_quest.models import FridgeScan, Ingredient, MicroStep, RecipeQuest
from kitchen_quest.prompts import (
    CDM_SYSTEM_INSTRUCTION,
    FRIDGE_SCAN_PROMPT,
    QUEST_BOARD_PROMPT,
    STEP_REFERENCE_IMAGE_PROMPT,
    render_prompt,
)

logger = logging.getLogger(__name__)

EMPTY_SCAN_NARRATION = "No items found, Chef!"
DEFAULT_INTRO_NARRATION = "A new quest awaits, Chef!"

FRIDGE_SCAN_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "inventory": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING"},
                    "quantity": {"type": "STRING"},
                    "status": {"type": "STRING", "description": "Fresh, Expiring, or Pantry"},
                    "burnHazard": {"type": "BOOLEAN"},
                },
                "required": ["name", "quantity", "status"],
            },
        },
        "cdmSpeech": {"type": "STRING", "description": "CDM's narration message for the user"},
    },
    "required": ["inventory", "cdmSpeech"],
}

QUEST_BOARD_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "id": {"type": "STRING"},
            "quest_name": {"type": "STRING"},
            "difficulty": {"type": "STRING"},
            "loot_preview": {"type": "STRING"},
            "ingredients": {
                "type": "ARRAY",
                "items": {
                    "type": "OBJECT",
                    "properties": {
                        "name": {"type": "STRING"},
                        "quantity": {"type": "STRING"},
                        "status": {"type": "STRING"},
                    },
                },
            },
            "steps": {
                "type": "ARRAY",
                "items": {
                    "type": "OBJECT",
                    "properties": {
                        "id": {"type": "NUMBER"},
                        "name": {"type": "STRING"},
                        "instruction": {"type": "STRING"},
                        "completed": {"type": "BOOLEAN"},
                    },
                    "required": ["id", "name", "instruction", "completed"],
                },
            },
            "xp_reward": {"type": "NUMBER"},
            "gold_saved": {"type": "STRING"},
            "boss_defeated": {"type": "STRING"},
            "cdm_intro_narration": {"type": "STRING"},
        },
        "required": [
            "id", "quest_name", "difficulty", "loot_preview", "ingredients", "steps",
            "xp_reward", "gold_saved", "boss_defeated", "cdm_intro_narration",
        ],
    },
}


def _ingredient(item: dict, index: int) -> Ingredient | None:
    data = dict(item)
    if data.get("status") not in ("Fresh", "Expiring", "Pantry"):
        data["status"] = "Fresh"
    data.setdefault("id", f"ing-{index + 1:03d}")
    try:
        return Ingredient.model_validate(data)
    except ValidationError:
        logger.debug("dropping malformed ingredient: %r", item)
        return None


def _quest(item: dict) -> RecipeQuest | None:
    data = dict(item)
    if isinstance(data.get("xp_reward"), float):
        data["xp_reward"] = round(data["xp_reward"])
    ingredients = [
        ing for i, raw in enumerate(data.get("ingredients") or [])
        if isinstance(raw, dict) and (ing := _ingredient(raw, i)) is not None
    ]
    data["ingredients"] = ingredients
    steps = data.get("steps") or []
    data["steps"] = [
        {**s, "id": round(s["id"])} if isinstance(s, dict) and isinstance(s.get("id"), float) else s
        for s in steps
    ]
    data["cdm_intro_narration"] = data.get("cdm_intro_narration") or DEFAULT_INTRO_NARRATION
    try:
        return RecipeQuest.model_validate(data)
    except ValidationError as e:
        logger.warning("dropping malformed quest %r: %s", item.get("quest_name"), e)
        return None


class ScoutingService:
    """Fridge scan, quest board and reference image generation.

    Args:
        client:       Backend client.
        text_model:   Model for scan and quest board JSON.
        image_model:  Model for reference images.
        demo_mode:    Answer from the demo dataset.
    """

    def __init__(
        self,
        client: GeminiClient,
        *,
        text_model: str,
        image_model: str,
        demo_mode: bool = False,
    ) -> None:
        self._client = client
        self._text_model = text_model
        self._image_model = image_model
        self.demo_mode = demo_mode

    async def scan_fridge(self, photo: bytes, mime_type: str = "image/jpeg") -> FridgeScan:
        """Identify fridge contents. Raises GeminiError if the backend fails."""
        if self.demo_mode:
            logger.info("[DEMO MODE] returning demo inventory")
            return FridgeScan(inventory=demo.demo_inventory(), cdm_speech=demo.DEMO_SCAN_NARRATION)

        raw = await self._client.generate_json(
            self._text_model,
            render_prompt(FRIDGE_SCAN_PROMPT, {"expiring_count": 3}),
            schema=FRIDGE_SCAN_SCHEMA,
            system_instruction=CDM_SYSTEM_INSTRUCTION,
            image=photo,
            image_mime_type=mime_type,
        )
        if not isinstance(raw, dict):
            raw = {}
        inventory = [
            ing for i, item in enumerate(raw.get("inventory") or [])
            if isinstance(item, dict) and (ing := _ingredient(item, i)) is not None
        ]
        speech = (raw.get("cdmSpeech") or "").strip() or EMPTY_SCAN_NARRATION
        logger.info("fridge scan found %d items", len(inventory))
        return FridgeScan(inventory=inventory, cdm_speech=speech)

    async def generate_quest_board(
        self, inventory: list[Ingredient], budget_goal: str, count: int = 3,
    ) -> list[RecipeQuest]:
        """Propose recipe quests for the inventory. Raises GeminiError if the backend fails."""
        if self.demo_mode:
            logger.info("[DEMO MODE] returning demo quests")
            return demo.demo_quests()

        context = {
            "quest_count": count,
            "inventory": [i.model_dump(by_alias=True) for i in inventory],
            "budget_goal": budget_goal,
        }
        raw = await self._client.generate_json(
            self._text_model,
            render_prompt(QUEST_BOARD_PROMPT, context),
            schema=QUEST_BOARD_SCHEMA,
            system_instruction=CDM_SYSTEM_INSTRUCTION,
        )
        if not isinstance(raw, list):
            logger.warning("quest board response is not a list")
            return []
        quests = [q for item in raw if isinstance(item, dict) and (q := _quest(item)) is not None]
        logger.info("quest board generated %d quests", len(quests))
        return quests

    async def generate_step_reference_image(self, step: MicroStep) -> str | None:
        """Image of the finished result of a step, as a data: URL, or None."""
        if self.demo_mode:
            return demo.DEMO_REFERENCE_IMAGE

        guide = step.reference_visual or ""
        stripped = guide[6:] if guide[:6].lower() == "image:" else guide
        if not (step.reference_image_prompt or stripped).strip():
            logger.warning("no image prompt for step %r, skipping reference image", step.name)
            return None

        prompt = render_prompt(STEP_REFERENCE_IMAGE_PROMPT, {
            "step_name": step.name,
            "instruction": step.raw_instruction,
            "technique_guide": guide,
            "image_prompt": step.reference_image_prompt,
        })
        try:
            return await self._client.generate_image(self._image_model, prompt)
        except GeminiError as e:
            logger.error("reference image generation failed for %r: %s", step.name, e)
            return None
