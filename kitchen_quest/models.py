"""Core domain models.

Every component (parser, sequencer, timer, narration, services) operates on
these types. Pydantic is used for validation and serialisation at every data
boundary, including the JSON coming back from the generative backend, which
uses camelCase / snake_case field names of its own. Those wire names are
accepted as aliases.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

MiniGameType = Literal["CHOP", "PREP", "SIZZLE", "WAIT"]

IngredientStatus = Literal["Fresh", "Expiring", "Pantry"]

RiskLevel = Literal["none", "low", "medium", "high"]

RiskType = Literal[
    "knife",
    "raw_meat",
    "oil_splatter",
    "undercooking",
    "cross_contamination",
    "burn",
    "allergen",
    "other",
]


class _WireModel(BaseModel):
    """Accepts both the Python field name and the backend's alias."""

    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Directives
# ---------------------------------------------------------------------------

class TimerDirective(BaseModel):
    """A countdown embedded in an instruction. Compared by value."""

    model_config = ConfigDict(frozen=True)

    minutes: int = Field(gt=0)
    label: str

    @property
    def total_seconds(self) -> int:
        return self.minutes * 60


class HeatDirective(BaseModel):
    """A heat level embedded in an instruction.

    flames is either "N/A" or one to three adjacent fire glyphs.
    """

    model_config = ConfigDict(frozen=True)

    flames: str
    label: str = ""


class ParsedInstruction(BaseModel):
    clean_instruction: str
    timer: TimerDirective | None = None
    heat: HeatDirective | None = None


# ---------------------------------------------------------------------------
# Quest steps
# ---------------------------------------------------------------------------

class DecomposedStep(_WireModel):
    """One micro-step as returned by the decomposition service (no id yet)."""

    level_name: str
    name: str
    raw_instruction: str = Field(alias="instruction")
    mini_game_type: MiniGameType = Field(alias="miniGameType")
    reference_visual: str | None = None
    reference_image_prompt: str | None = None


class MicroStep(DecomposedStep):
    """A beginner-actionable unit of an active quest.

    id is assigned sequentially (from 1) across the flattened quest.
    completed flips to True only when the sequencer advances past the step.
    """

    id: int = Field(ge=1)
    completed: bool = False


class QuestStep(_WireModel):
    """A high-level recipe step, before decomposition."""

    id: int
    name: str
    instruction: str
    completed: bool = False


class Ingredient(_WireModel):
    id: str = ""
    name: str
    quantity: str = ""
    status: IngredientStatus = "Fresh"
    burn_hazard: bool = Field(default=False, alias="burnHazard")


class RecipeQuest(_WireModel):
    id: str
    quest_name: str
    difficulty: str = ""
    loot_preview: str = ""
    ingredients: list[Ingredient] = Field(default_factory=list)
    steps: list[QuestStep] = Field(default_factory=list)
    xp_reward: int = Field(default=0, ge=0)
    gold_saved: str = "$0.00"
    boss_defeated: str = ""
    cdm_intro_narration: str | None = None


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

class EvaluationResult(_WireModel):
    rank: str = Field(min_length=1)
    feedback: str = Field(min_length=1)
    xp_bonus: int = Field(ge=0, alias="xpBonus")
    safety_alert: str | None = None
    cdm_speech: str = Field(min_length=1, alias="cdmSpeech")

    @field_validator("xp_bonus", mode="before")
    @classmethod
    def _round_bonus(cls, value):
        # the backend schema declares a NUMBER, so fractional bonuses happen
        if isinstance(value, float):
            return round(value)
        return value


class FoodSafetyRisk(BaseModel):
    type: RiskType = "other"
    description: str


class FoodSafetyResult(BaseModel):
    is_safe: bool
    risk_level: RiskLevel = "none"
    detected_risks: list[FoodSafetyRisk] = Field(default_factory=list)
    safety_advice: str = ""
    requires_confirmation: bool = False
    confirmation_message: str = ""


# ---------------------------------------------------------------------------
# Narration
# ---------------------------------------------------------------------------

class NarrationRequest(BaseModel):
    """A line for the CDM. Always logged; spoken only when speak_aloud is set."""

    text: str | None = None
    speak_aloud: bool = False


# ---------------------------------------------------------------------------
# Character / kitchen
# ---------------------------------------------------------------------------

class CharacterStats(_WireModel):
    knife_skills: int = Field(default=1, alias="knifeSkills")
    heat_control: int = Field(default=1, alias="heatControl")
    gold_saved: float = Field(default=0.0, alias="goldSaved")
    level: int = 1
    xp: int = 0


class FridgeScan(_WireModel):
    inventory: list[Ingredient] = Field(default_factory=list)
    cdm_speech: str = Field(default="", alias="cdmSpeech")
