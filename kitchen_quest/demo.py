"""Demo-mode dataset: fridge, quests, fallback micro-steps and scripted evaluations.

Demo mode never calls the generative backend. The fallback micro-steps double
as the safe default whenever decomposition fails.
"""

from kitchen_quest.models import (
    CharacterStats,
    DecomposedStep,
    EvaluationResult,
    Ingredient,
    QuestStep,
    RecipeQuest,
)

DEMO_SCAN_NARRATION = "Welcome to demo mode, Chef! Your demo fridge has been scanned!"
DEMO_REFERENCE_IMAGE = "https://via.placeholder.com/200x200?text=DEMO+REF+IMAGE"

DEMO_STATS = CharacterStats(knife_skills=5, heat_control=4, gold_saved=125.75, level=7, xp=750)


def demo_inventory() -> list[Ingredient]:
    return [
        Ingredient(id="ing-spinach-001", name="Wilted Spinach", quantity="1 bag", status="Expiring", burn_hazard=True),
        Ingredient(id="ing-mushrooms-001", name="Mushrooms", quantity="5 oz", status="Expiring", burn_hazard=True),
        Ingredient(id="ing-chicken-001", name="Chicken Breast", quantity="2 pcs", status="Expiring", burn_hazard=True),
        Ingredient(id="ing-eggs-001", name="Eggs", quantity="6", status="Fresh"),
        Ingredient(id="ing-milk-001", name="Milk", quantity="1/2 gallon", status="Fresh"),
        Ingredient(id="ing-flour-001", name="Flour", quantity="2 lbs", status="Pantry"),
        Ingredient(id="ing-oliveoil-001", name="Olive Oil", quantity="1 bottle", status="Pantry"),
        Ingredient(id="ing-garlic-001", name="Garlic", quantity="1 head", status="Fresh"),
        Ingredient(id="ing-onion-001", name="Onion", quantity="2", status="Fresh"),
        Ingredient(id="ing-rice-001", name="Rice", quantity="1 box", status="Pantry"),
    ]


def fallback_steps() -> list[DecomposedStep]:
    """The fixed five-step sequence used in demo mode and on decomposition failure."""
    return [
        DecomposedStep(
            level_name="LEVEL 1: THE PEPPER CHOP",
            name="Dice Peppers",
            raw_instruction="Take the expiring peppers. Carefully cut them into very small, square-shaped pieces. [HEAT: N/A]",
            mini_game_type="CHOP",
            reference_visual="Small, even, square pieces of red and green bell peppers on a cutting board.",
            reference_image_prompt="Diced red and green bell peppers, small and uniform cubes, on a dark wooden cutting board, photorealistic, no hands, no tools, food only.",
        ),
        DecomposedStep(
            level_name="LEVEL 2: PAN HEAT-UP",
            name="Heat the Pan",
            raw_instruction="Place a pan on the stove. Turn on the stove to a medium-high heat setting. Let the pan warm up for a few minutes. [HEAT: 🔥🔥 (Steady)]",
            mini_game_type="WAIT",
            reference_visual="A flat-bottomed pan on a stove burner, no visible food, surface shimmering slightly with heat.",
            reference_image_prompt="Empty stainless steel frying pan on a gas stove burner, burner glowing red, slight heat shimmer above pan, dark kitchen background, photorealistic, no hands, no tools, food only.",
        ),
        DecomposedStep(
            level_name="LEVEL 3: OIL UP!",
            name="Add Cooking Oil",
            raw_instruction="Carefully pour a small amount of cooking oil into the hot pan. Just enough to lightly coat the bottom. [HEAT: 🔥🔥 (Steady)]",
            mini_game_type="PREP",
            reference_visual="A thin, even layer of glistening oil coating the bottom of a hot pan.",
            reference_image_prompt="Close-up of olive oil shimmering lightly in a hot black frying pan, thin layer covering the bottom, dark kitchen background, photorealistic, no hands, no tools, food only.",
        ),
        DecomposedStep(
            level_name="LEVEL 4: MEAT DROP",
            name="Add Ground Meat",
            raw_instruction="Gently place the ground meat into the hot pan. [HEAT: 🔥🔥🔥 (Searing!)]",
            mini_game_type="PREP",
            reference_visual="Raw ground meat in small chunks spread out in a single layer in the hot pan.",
            reference_image_prompt="Raw ground beef, broken into small pieces, spread evenly across a hot cast iron skillet, photorealistic, dark kitchen background, no hands, no tools, food only.",
        ),
        DecomposedStep(
            level_name="LEVEL 5: THE SEAR",
            name="Cook Ground Meat",
            raw_instruction=(
                "Cook the ground meat for 7 minutes, using a spoon or spatula to break it apart "
                "into small pieces as it cooks. Stir it often until it's browned. "
                '[ACTION: SET_TIMER | TIME: 7m | LABEL: "BROWN THE MEAT"]. [HEAT: 🔥🔥🔥 (Searing!)]'
            ),
            mini_game_type="SIZZLE",
            reference_visual="All the ground meat should be cooked through and turned brown, with no pink parts left.",
            reference_image_prompt="Cooked ground beef, evenly browned with some crispy edges, no pink visible, in a black frying pan, dark kitchen background, photorealistic, no hands, no tools, food only.",
        ),
    ]


def demo_quests() -> list[RecipeQuest]:
    return [
        RecipeQuest(
            id="quest-001",
            quest_name="The Wilted Spinach Rescue",
            difficulty="Medium",
            loot_preview="A vibrant frittata, golden-brown and studded with green spinach and earthy mushrooms, ready to be devoured.",
            ingredients=[
                Ingredient(id="ing-quest1-spinach-001", name="Wilted Spinach", quantity="1 bag", status="Expiring"),
                Ingredient(id="ing-quest1-mushrooms-001", name="Mushrooms", quantity="5 oz", status="Expiring"),
                Ingredient(id="ing-quest1-eggs-001", name="Eggs", quantity="6", status="Fresh"),
                Ingredient(id="ing-quest1-onion-001", name="Onion", quantity="1/2", status="Fresh"),
                Ingredient(id="ing-quest1-oliveoil-001", name="Olive Oil", quantity="1 tbsp", status="Pantry"),
            ],
            steps=[
                QuestStep(
                    id=1,
                    name="Prepare and Sauté Vegetables",
                    instruction=(
                        "Finely dice the onion and slice the mushrooms. Then, heat olive oil in a pan, "
                        "add onions and sauté for 3 minutes until translucent. Add mushrooms, sauté for "
                        "another 2 minutes. Finally, add the spinach and cook until it is completely "
                        "wilted and reduced in volume."
                    ),
                ),
                QuestStep(
                    id=2,
                    name="Assemble and Bake the Frittata",
                    instruction=(
                        "Whisk eggs thoroughly in a bowl until yolks and whites are fully combined. "
                        "Pour the whisked eggs evenly over the sautéed vegetables in an oven-safe pan. "
                        "Transfer the pan to a preheated oven and bake at 375°F (190°C) for 15-20 minutes "
                        "until the frittata is set, puffed, and golden brown on top."
                    ),
                ),
            ],
            xp_reward=450,
            gold_saved="$13.00",
            boss_defeated="1x Bag of Wilted Spinach (Expired in 24hrs)",
            cdm_intro_narration="A new quest appears, Chef! The wilted spinach calls for rescue!",
        ),
        RecipeQuest(
            id="quest-002",
            quest_name="Chicken & Rice of Resilience",
            difficulty="Easy",
            loot_preview="Succulent chicken pieces nestled on a bed of fluffy, perfectly cooked rice, infused with subtle aromatic herbs.",
            ingredients=[
                Ingredient(id="ing-quest2-chicken-001", name="Chicken Breast", quantity="2 pcs", status="Expiring"),
                Ingredient(id="ing-quest2-rice-001", name="Rice", quantity="1 cup", status="Pantry"),
                Ingredient(id="ing-quest2-garlic-001", name="Garlic", quantity="2 cloves", status="Fresh"),
                Ingredient(id="ing-quest2-water-001", name="Water", quantity="2 cups", status="Pantry"),
            ],
            steps=[
                QuestStep(
                    id=1,
                    name="Cook Chicken and Rice Together",
                    instruction=(
                        "Dice chicken breast into 1-inch cubes. Sear chicken cubes in a hot pan until "
                        "golden brown on all sides for 5 minutes. Then, add the uncooked rice, minced "
                        "garlic, and water to the same pan. Bring the mixture to a rolling boil, then "
                        "immediately reduce the heat to low, cover the pan tightly with a lid, and let "
                        "it simmer for 18 minutes until the rice is fluffy and all the water has been absorbed."
                    ),
                ),
            ],
            xp_reward=300,
            gold_saved="$10.00",
            boss_defeated="2x Chicken Breast (Expiring in 36hrs)",
            cdm_intro_narration="The chicken needs your culinary courage, Chef! Embark on the Chicken & Rice of Resilience!",
        ),
    ]


# ---------------------------------------------------------------------------
# Scripted evaluations
# ---------------------------------------------------------------------------

EVALUATION_SUCCESS = EvaluationResult(
    rank="S",
    feedback="Your technique is flawless, Chef! A true master of the culinary arts!",
    xp_bonus=50,
    cdm_speech="Magnificent, Chef! An S-rank performance!",
)

EVALUATION_FAIL_SAFETY = EvaluationResult(
    rank="D",
    feedback="Careful, Chef! Safety first! Your knife is too close to the edge. Adjust your stance.",
    xp_bonus=0,
    safety_alert="Knife left on edge!",
    cdm_speech="Whoa there, Chef! Safety first! Watch that blade!",
)

EVALUATION_BAD_COOKING = EvaluationResult(
    rank="C",
    feedback=(
        "Mama isn't mad, Chef! But your cooking is a bit off. Perhaps too much heat, or not "
        "enough stirring! Review the reference image for optimal results."
    ),
    xp_bonus=10,
    cdm_speech="A valiant effort, Chef! But your technique needs refining. The culinary gods demand perfection!",
)

EVALUATION_RAW_CHICKEN = EvaluationResult(
    rank="D",
    feedback="DEMO SAFETY WARNING: Raw chicken must be cooked thoroughly to avoid food poisoning!",
    xp_bonus=0,
    safety_alert="Raw Meat Handling",
    cdm_speech="WHOA, CHEF! SAFETY FIRST! Raw chicken needs thorough cooking! Don't risk it!",
)

_SCRIPTED: dict[tuple[str, str], EvaluationResult] = {
    ("quest-001", "Prepare Vegetables"): EVALUATION_FAIL_SAFETY,
    ("quest-001", "Sauté Onions and Mushrooms"): EVALUATION_BAD_COOKING,
    ("quest-001", "Wilt Spinach"): EVALUATION_SUCCESS,
    ("quest-002", "Dice Chicken"): EVALUATION_SUCCESS,
    ("quest-002", "Sear Chicken Cubes"): EVALUATION_BAD_COOKING,
    ("quest-002", "Simmer Rice"): EVALUATION_SUCCESS,
}


def demo_evaluation(quest_id: str, step_name: str, instruction: str) -> EvaluationResult:
    """Scripted evaluation: raw-chicken warning first, then per-step results, else success."""
    lowered = instruction.lower()
    if "raw chicken" in lowered and "cook thoroughly" not in lowered:
        return EVALUATION_RAW_CHICKEN
    return _SCRIPTED.get((quest_id, step_name), EVALUATION_SUCCESS)
