"""Tests for kitchen_quest.models: wire aliases, validation and value semantics."""

import pytest
from pydantic import ValidationError

from kitchen_quest.models import (
    DecomposedStep,
    EvaluationResult,
    FridgeScan,
    HeatDirective,
    Ingredient,
    MicroStep,
    RecipeQuest,
    TimerDirective,
)


class TestTimerDirective:
    def test_equal_by_value(self) -> None:
        assert TimerDirective(minutes=5, label="SEAR") == TimerDirective(minutes=5, label="SEAR")
        assert TimerDirective(minutes=5, label="SEAR") != TimerDirective(minutes=5, label="REST")

    def test_hashable(self) -> None:
        assert len({TimerDirective(minutes=1, label="A"), TimerDirective(minutes=1, label="A")}) == 1

    def test_minutes_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            TimerDirective(minutes=0, label="X")

    def test_heat_label_defaults_empty(self) -> None:
        assert HeatDirective(flames="🔥").label == ""


class TestSteps:
    def test_decomposed_step_from_backend_json(self) -> None:
        step = DecomposedStep.model_validate({
            "level_name": "LEVEL 1",
            "name": "Dice",
            "instruction": "Dice it. [HEAT: N/A]",
            "miniGameType": "CHOP",
        })
        assert step.raw_instruction == "Dice it. [HEAT: N/A]"
        assert step.mini_game_type == "CHOP"
        assert step.reference_visual is None

    def test_unknown_mini_game_rejected(self) -> None:
        with pytest.raises(ValidationError):
            DecomposedStep(level_name="L", name="n", raw_instruction="i", mini_game_type="BAKE")

    def test_micro_step_dumps_wire_names(self) -> None:
        step = MicroStep(id=3, level_name="L", name="n", raw_instruction="i", mini_game_type="WAIT")
        data = step.model_dump(by_alias=True)
        assert data["instruction"] == "i"
        assert data["miniGameType"] == "WAIT"
        assert data["id"] == 3
        assert data["completed"] is False

    def test_micro_step_id_starts_at_one(self) -> None:
        with pytest.raises(ValidationError):
            MicroStep(id=0, level_name="L", name="n", raw_instruction="i", mini_game_type="WAIT")


class TestEvaluationResult:
    def test_aliases_and_rounding(self) -> None:
        result = EvaluationResult.model_validate(
            {"rank": "A", "feedback": "Good", "xpBonus": 12.5, "cdmSpeech": "Nice!"}
        )
        assert result.xp_bonus == 12
        assert result.cdm_speech == "Nice!"

    def test_rounds_up_past_half(self) -> None:
        result = EvaluationResult(rank="A", feedback="Good", xp_bonus=12.7, cdm_speech="x")
        assert result.xp_bonus == 13

    @pytest.mark.parametrize("field", ["rank", "feedback", "cdm_speech"])
    def test_required_text_not_empty(self, field: str) -> None:
        data = {"rank": "A", "feedback": "Good", "xp_bonus": 1, "cdm_speech": "x", field: ""}
        with pytest.raises(ValidationError):
            EvaluationResult(**data)


class TestKitchenModels:
    def test_ingredient_defaults(self) -> None:
        item = Ingredient.model_validate({"name": "Eggs", "burnHazard": True})
        assert item.status == "Fresh"
        assert item.burn_hazard is True

    def test_quest_defaults(self) -> None:
        quest = RecipeQuest(id="q", quest_name="Toast Trial")
        assert quest.steps == []
        assert quest.gold_saved == "$0.00"
        assert quest.cdm_intro_narration is None

    def test_negative_reward_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RecipeQuest(id="q", quest_name="x", xp_reward=-1)

    def test_fridge_scan_alias(self) -> None:
        scan = FridgeScan.model_validate({"inventory": [], "cdmSpeech": "Empty fridge!"})
        assert scan.model_dump(by_alias=True) == {"inventory": [], "cdmSpeech": "Empty fridge!"}
