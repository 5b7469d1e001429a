"""Prompt builder: constraint clauses, preferences, special requests, modification and chat framing."""

import random

import pytest

from recipe_models import ChatMessage, Nutrition, ParsedRecipe, RecipeRequest, UserPreferences
from recipe_prompts import (
    MODIFICATION_NOTE_MARKER,
    HINT_PROTEINS,
    VarietyHints,
    build_chat_prompt,
    build_modification_prompt,
    build_preferences_clause,
    build_recipe_prompt,
    format_recipe_text,
    framing_exchange,
    pick_variety_hints,
)


def _recipe() -> ParsedRecipe:
    return ParsedRecipe(
        name="Creamy Garlic Pasta",
        cooking_time="25 minutes",
        serves="2 people",
        nutrition=Nutrition(calories="610", protein="19g", carbs="72g", fat="26g"),
        ingredients=["200g spaghetti", "2 tbsp butter", "100ml cream", "3 cloves garlic"],
        instructions=["Boil the pasta.", "Melt butter and fry garlic.", "Add cream and toss with pasta."],
    )


# ── Special request ──────────────────────────────────────────────────────────

@pytest.mark.parametrize("special", ["", "   ", "\n\t"])
def test_no_special_request_clause_when_blank(special):
    prompt = build_recipe_prompt(RecipeRequest(special_request=special))
    assert "SPECIAL REQUEST" not in prompt
    assert "incorporate" not in prompt


def test_special_request_included_verbatim():
    prompt = build_recipe_prompt(RecipeRequest(special_request="extra spicy, with peanuts"))
    assert "SPECIAL REQUEST: extra spicy, with peanuts" in prompt
    assert "while maintaining the other constraints" in prompt


# ── Constraints ──────────────────────────────────────────────────────────────

def test_vegan_constraint_present():
    prompt = build_recipe_prompt(RecipeRequest(dietary_preference="vegan", number_of_people=2))
    assert "Must be vegan" in prompt
    assert "Serves exactly 2 people" in prompt


def test_vegetarian_constraint_present():
    prompt = build_recipe_prompt(RecipeRequest(dietary_preference="vegetarian"))
    assert "Must be vegetarian" in prompt


def test_non_vegetarian_has_no_dietary_clause():
    prompt = build_recipe_prompt(RecipeRequest(dietary_preference="non-vegetarian"))
    assert "Must be vegetarian" not in prompt
    assert "Must be vegan" not in prompt


def test_common_constraints_always_present():
    prompt = build_recipe_prompt(RecipeRequest())
    assert "Cooking time: 30-45 minutes maximum" in prompt
    assert "common ingredients" in prompt
    assert "**Recipe Name:**" in prompt
    assert "**Ingredients:**" in prompt
    assert "**Instructions:**" in prompt
    assert "**Nutritional Information (per serving):**" in prompt


@pytest.mark.parametrize("people, expected", [(1, "1 person"), (8, "8 people")])
def test_serving_boundaries_propagate(people, expected):
    prompt = build_recipe_prompt(RecipeRequest(number_of_people=people))
    assert f"Serves exactly {expected}" in prompt
    assert f"**Serves:** {expected}" in prompt


def test_number_of_people_out_of_range_rejected():
    with pytest.raises(ValueError):
        RecipeRequest(number_of_people=9)
    with pytest.raises(ValueError):
        RecipeRequest(number_of_people=0)


def test_prompt_is_stable_without_hints():
    request = RecipeRequest(dietary_preference="vegetarian", number_of_people=3, special_request="quick")
    assert build_recipe_prompt(request) == build_recipe_prompt(request)


# ── Preferences ──────────────────────────────────────────────────────────────

def test_preferences_clause_only_lists_set_fields():
    prefs = UserPreferences(kitchen_equipment=["Oven", "Air Fryer"], cooking_experience="Beginner")
    clause = build_preferences_clause(prefs)
    assert "Available kitchen equipment: Oven, Air Fryer" in clause
    assert "Cooking experience: Beginner" in clause
    assert "cuisines" not in clause
    assert "Dietary restrictions" not in clause
    assert "Additional notes" not in clause
    assert "None" not in clause


def test_empty_preferences_omit_whole_clause():
    prompt = build_recipe_prompt(RecipeRequest(), UserPreferences(name="Sam"))
    assert "USER PREFERENCES" not in prompt
    assert build_preferences_clause(None) == ""


def test_store_row_with_nulls_and_blanks_is_unconstrained():
    prefs = UserPreferences.model_validate({
        "user_id": "u1",
        "kitchen_equipment": None,
        "preferred_cuisines": None,
        "cooking_experience": "",
        "dietary_restrictions": "   ",
        "profile_emoji": None,
    })
    assert build_preferences_clause(prefs) == ""
    assert prefs.profile_emoji == "👨‍🍳"


def test_preferences_threaded_into_prompt():
    prefs = UserPreferences(dietary_restrictions="no shellfish", preferred_cuisines=["Indian"])
    prompt = build_recipe_prompt(RecipeRequest(), prefs)
    assert "USER PREFERENCES" in prompt
    assert "Dietary restrictions: no shellfish" in prompt
    assert "Preferred cuisines: Indian" in prompt


# ── Variety hints ────────────────────────────────────────────────────────────

def test_hints_are_seeded():
    a = pick_variety_hints(random.Random(42), "vegan")
    b = pick_variety_hints(random.Random(42), "vegan")
    assert a == b


@pytest.mark.parametrize("diet", ["vegetarian", "vegan"])
def test_hint_protein_respects_diet(diet):
    rng = random.Random(0)
    for _ in range(50):
        assert pick_variety_hints(rng, diet).protein in HINT_PROTEINS[diet]


def test_hint_cuisine_drawn_from_preferences():
    prefs = UserPreferences(preferred_cuisines=["Mexican"])
    assert pick_variety_hints(random.Random(1), "non-vegetarian", prefs).cuisine == "Mexican"


def test_hint_is_non_binding_and_before_special_request():
    hints = VarietyHints(cuisine="Thai", protein="tofu", method="stir-fried")
    prompt = build_recipe_prompt(
        RecipeRequest(dietary_preference="vegan", special_request="Italian pasta"), hints=hints
    )
    assert "consider a Thai dish featuring tofu that is stir-fried" in prompt
    assert "ignore it if it conflicts" in prompt
    assert "Must be vegan" in prompt
    assert prompt.index("Thai") < prompt.index("SPECIAL REQUEST: Italian pasta")


# ── Modification mode ────────────────────────────────────────────────────────

def test_modification_prompt_embeds_recipe_and_rules():
    recipe = _recipe()
    prompt = build_modification_prompt(recipe, "make it dairy-free", number_of_people=2)

    assert format_recipe_text(recipe) in prompt
    assert "MODIFICATION REQUEST: make it dairy-free" in prompt
    assert "Preserve other ingredients unless they conflict" in prompt
    assert "Only change what the modification request asks for" in prompt
    assert "Keep the serving size at exactly 2 people" in prompt
    assert MODIFICATION_NOTE_MARKER in prompt


def test_format_recipe_text_shape():
    text = format_recipe_text(_recipe())
    assert "- 2 tbsp butter" in text
    assert "2. Melt butter and fry garlic." in text
    assert "- Protein: 19g" in text
    assert text.endswith("**Serves:** 2 people")


# ── Chat framing ─────────────────────────────────────────────────────────────

def test_chat_first_exchange_allows_clarifying_questions():
    prompt = build_chat_prompt([], "Miso marinade for salmon", 1)
    assert "Analyze this recipe request: Miso marinade for salmon" in prompt
    assert "ask 1-2 specific clarifying questions" in prompt


def test_chat_second_exchange_forces_recipe():
    history = [
        ChatMessage(role="user", content="Miso salmon"),
        ChatMessage(role="assistant", content="Baked or grilled?"),
    ]
    prompt = build_chat_prompt(history, "Baked please", 2)
    assert "user: Miso salmon\n\nassistant: Baked or grilled?" in prompt
    assert "Even if some details aren't perfect" in prompt
    assert "Baked please" in prompt


def test_chat_later_exchange_is_modification():
    history = [ChatMessage(role="user", content="Pasta"), ChatMessage(role="assistant", content="...")]
    prompt = build_chat_prompt(history, "less garlic", 3, last_recipe=_recipe())
    assert "User's new request: less garlic" in prompt
    assert "Please modify the recipe" in prompt
    assert format_recipe_text(_recipe()) in prompt


@pytest.mark.parametrize("exchange, has_recipe, expected", [(1, False, 1), (2, False, 2), (2, True, 3), (5, True, 5)])
def test_delivered_recipe_forces_modification_framing(exchange, has_recipe, expected):
    assert framing_exchange(exchange, _recipe() if has_recipe else None) == expected
