"""
recipe_prompts.py  -  Prompt Builder

Pure string construction: nothing in this module touches the network, the
store or the clock. The only source of variation is the VarietyHints value the
caller chooses to pass in, which is drawn by pick_variety_hints() from an
explicitly supplied random.Random so tests can pin or omit it.

Prompt anatomy (generation mode):
  1. Opening line (+ optional non-binding variety suggestion)
  2. CONSTRAINTS       - time ceiling, exact servings, dietary clause, common ingredients
  3. USER PREFERENCES  - only the fields the user actually set
  4. OUTPUT FORMAT     - the template the recipe parser expects back
  5. SPECIAL REQUEST   - only when the user typed one
"""

import random
from dataclasses import dataclass

from recipe_models import ChatMessage, ParsedRecipe, RecipeRequest, UserPreferences


# ──────────────────────────────────────────────────────────────────────────────
# CONFIG  -  Constants
# ──────────────────────────────────────────────────────────────────────────────

MAX_COOKING_TIME = "30-45 minutes maximum"

DIETARY_CLAUSES = {
    "vegetarian": "Must be vegetarian (no meat, poultry, or fish)",
    "vegan": (
        "Must be vegan (no meat, poultry, fish, dairy, eggs, honey, "
        "or any other animal products)"
    ),
}

HINT_CUISINES = ["Italian", "Mexican", "Asian", "Mediterranean", "American", "Indian", "Thai", "French"]
HINT_METHODS  = ["pan-fried", "baked", "grilled", "stir-fried", "roasted", "sautéed"]

# Protein pools per diet, so a hint can never contradict the dietary constraint.
HINT_PROTEINS = {
    "non-vegetarian": ["chicken", "beef", "pork", "fish", "shrimp", "eggs", "tofu", "beans"],
    "vegetarian":     ["eggs", "halloumi", "paneer", "tofu", "beans", "chickpeas", "lentils"],
    "vegan":          ["tofu", "tempeh", "beans", "chickpeas", "lentils", "seitan"],
}

MODIFICATION_NOTE_MARKER = "**What was modified:**"


# ──────────────────────────────────────────────────────────────────────────────
# Variety hints  (separately seeded)
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class VarietyHints:
    cuisine: str
    protein: str
    method:  str


def pick_variety_hints(
    rng: random.Random,
    dietary_preference: str = "non-vegetarian",
    preferences: UserPreferences | None = None,
) -> VarietyHints:
    """
    Draws one cuisine / protein / cooking-method suggestion.

    The cuisine comes from the user's preferred cuisines when they chose any.
    Proteins are drawn from the pool matching the dietary preference.
    """
    cuisines = HINT_CUISINES
    if preferences and preferences.preferred_cuisines:
        cuisines = list(preferences.preferred_cuisines)
    proteins = HINT_PROTEINS.get(dietary_preference, HINT_PROTEINS["vegan"])
    return VarietyHints(
        cuisine=rng.choice(cuisines),
        protein=rng.choice(proteins),
        method=rng.choice(HINT_METHODS),
    )


# ──────────────────────────────────────────────────────────────────────────────
# Shared fragments
# ──────────────────────────────────────────────────────────────────────────────

def _output_format(number_of_people: int, name_hint: str = "Creative but simple name") -> str:
    return (
        f"**Recipe Name:** [{name_hint}]\n"
        "\n"
        "**Nutritional Information (per serving):**\n"
        "- Calories: [X]\n"
        "- Protein: [X]g\n"
        "- Carbs: [X]g\n"
        "- Fat: [X]g\n"
        "\n"
        "**Cooking Time:** [X minutes]\n"
        "\n"
        "**Ingredients:**\n"
        "- [ingredient 1 with quantity]\n"
        "- [ingredient 2 with quantity]\n"
        "- [etc.]\n"
        "\n"
        "**Instructions:**\n"
        "1. [Step 1]\n"
        "2. [Step 2]\n"
        "3. [etc.]\n"
        "\n"
        f"**Serves:** {number_of_people} {_people(number_of_people)}"
    )


_NUTRITION_NOTE = (
    "Calculate the nutritional information based on the actual ingredients and "
    "quantities used. Provide realistic estimates based on standard nutritional values."
)


def _people(n: int) -> str:
    return "person" if n == 1 else "people"


def build_preferences_clause(preferences: UserPreferences | None) -> str:
    """
    Renders one line per preference the user actually set.
    Returns "" when nothing is set, so callers can drop the whole block.
    """
    if preferences is None:
        return ""

    lines = []
    if preferences.kitchen_equipment:
        lines.append(f"- Available kitchen equipment: {', '.join(preferences.kitchen_equipment)}")
    if preferences.preferred_cuisines:
        lines.append(f"- Preferred cuisines: {', '.join(preferences.preferred_cuisines)}")
    if preferences.cooking_experience:
        lines.append(f"- Cooking experience: {preferences.cooking_experience}")
    if preferences.protein_preferences:
        lines.append(f"- Preferred proteins: {', '.join(preferences.protein_preferences)}")
    if preferences.dietary_restrictions:
        lines.append(f"- Dietary restrictions: {preferences.dietary_restrictions.strip()}")
    if preferences.additional_context:
        lines.append(f"- Additional notes: {preferences.additional_context.strip()}")

    if not lines:
        return ""
    return "USER PREFERENCES (respect these):\n" + "\n".join(lines)


def format_recipe_text(recipe: ParsedRecipe) -> str:
    """Serialises a recipe back into the same shape the output template asks for."""
    lines = [
        f"**Recipe Name:** {recipe.name}",
        "",
        "**Nutritional Information (per serving):**",
        f"- Calories: {recipe.nutrition.calories}",
        f"- Protein: {recipe.nutrition.protein}",
        f"- Carbs: {recipe.nutrition.carbs}",
        f"- Fat: {recipe.nutrition.fat}",
        "",
        f"**Cooking Time:** {recipe.cooking_time}",
        "",
        "**Ingredients:**",
    ]
    lines.extend(f"- {ingredient}" for ingredient in recipe.ingredients)
    lines += ["", "**Instructions:**"]
    lines.extend(f"{i}. {step}" for i, step in enumerate(recipe.instructions, 1))
    lines += ["", f"**Serves:** {recipe.serves}"]
    return "\n".join(lines)


def _format_history(messages: list[ChatMessage]) -> str:
    return "\n\n".join(f"{m.role}: {m.content}" for m in messages)


# ──────────────────────────────────────────────────────────────────────────────
# Generation mode
# ──────────────────────────────────────────────────────────────────────────────

def build_recipe_prompt(
    request: RecipeRequest,
    preferences: UserPreferences | None = None,
    hints: VarietyHints | None = None,
) -> str:
    """Builds the single instruction string for a fresh recipe."""
    n = request.number_of_people
    sections = ["Generate a dinner recipe."]

    if hints:
        sections[0] += (
            f" For variety, consider a {hints.cuisine} dish featuring {hints.protein} "
            f"that is {hints.method}. This is only a suggestion: ignore it if it "
            "conflicts with any constraint, preference, or special request below."
        )

    constraints = [
        f"- Cooking time: {MAX_COOKING_TIME}",
        f"- Serves exactly {n} {_people(n)}",
    ]
    dietary = DIETARY_CLAUSES.get(request.dietary_preference)
    if dietary:
        constraints.append(f"- {dietary}")
    constraints += [
        "- Uses only common ingredients (no exotic or hard-to-find items)",
        "- Must include protein + vegetables + carbs for balanced nutrition",
        "- Suitable for a weekday dinner (not overly complex)",
    ]
    sections.append("CONSTRAINTS:\n" + "\n".join(constraints))

    prefs_clause = build_preferences_clause(preferences)
    if prefs_clause:
        sections.append(prefs_clause)

    sections.append(
        "OUTPUT FORMAT:\nPlease format your response exactly like this:\n\n"
        + _output_format(n)
        + "\n\n" + _NUTRITION_NOTE
    )

    special = request.special_request.strip()
    if special:
        sections.append(
            f"SPECIAL REQUEST: {special}\n"
            "Please incorporate this special request while maintaining the other constraints above."
        )

    return "\n\n".join(sections)


# ──────────────────────────────────────────────────────────────────────────────
# Modification mode
# ──────────────────────────────────────────────────────────────────────────────

def build_modification_prompt(
    recipe: ParsedRecipe,
    modification_request: str,
    number_of_people: int,
    preferences: UserPreferences | None = None,
) -> str:
    """
    Asks for a revised version of `recipe`. The current recipe is embedded in
    full so the completion endpoint needs no conversation state.
    """
    n = number_of_people
    sections = [
        "Modify the existing recipe below according to the user's request.",
        "CURRENT RECIPE:\n" + format_recipe_text(recipe),
        f"MODIFICATION REQUEST: {modification_request.strip()}",
        "RULES:\n"
        "- Only change what the modification request asks for\n"
        "- Preserve other ingredients unless they conflict with the modification request\n"
        f"- Keep the serving size at exactly {n} {_people(n)}\n"
        "- Keep the same structure and output format\n"
        f"- After the recipe, add a single line: {MODIFICATION_NOTE_MARKER} "
        "[one sentence describing what changed]",
    ]

    prefs_clause = build_preferences_clause(preferences)
    if prefs_clause:
        sections.append(prefs_clause)

    sections.append(
        "OUTPUT FORMAT:\n\n"
        + _output_format(n, name_hint="Recipe name, updated if needed")
        + f"\n\n{MODIFICATION_NOTE_MARKER} [what was modified]"
    )
    return "\n\n".join(sections)


# ──────────────────────────────────────────────────────────────────────────────
# Chat mode  (framing depends on the exchange number)
# ──────────────────────────────────────────────────────────────────────────────

def framing_exchange(exchange_number: int, last_recipe: ParsedRecipe | None) -> int:
    """Once a recipe has been delivered, every later message is a modification (3+)."""
    if last_recipe is not None:
        return max(exchange_number, 3)
    return exchange_number


def build_chat_prompt(
    messages: list[ChatMessage],
    user_input: str,
    exchange_number: int,
    last_recipe: ParsedRecipe | None = None,
    number_of_people: int = 2,
) -> str:
    """
    Exchange 1   - clarify (at most two questions) or answer with a recipe directly.
    Exchange 2   - a recipe is mandatory, even if details are still fuzzy.
    Exchange 3+  - modify the last delivered recipe, with full history.
    """
    template = _output_format(number_of_people) + "\n\n" + _NUTRITION_NOTE

    if exchange_number <= 1:
        return (
            f"Analyze this recipe request: {user_input}\n\n"
            "If the request is clear enough to generate a recipe immediately, "
            "generate it using the EXACT format below.\n"
            "If not, ask 1-2 specific clarifying questions to help create the recipe.\n"
            "Focus on the most important missing details:\n\n"
            "- Type of dish/component unclear? Ask for clarification\n"
            "- Cooking method preferences? Ask briefly\n"
            "- Dietary restrictions relevant? Check quickly\n\n"
            "Keep questions focused and recipe-oriented. "
            "Aim to generate a recipe within 2 exchanges maximum.\n\n"
            "If generating a recipe, use this EXACT format:\n\n"
            + template
        )

    history = _format_history(messages)

    if exchange_number == 2:
        return (
            f"Based on previous conversation:\n{history}\n\n"
            f"User's latest answer: {user_input}\n\n"
            "Now generate a complete recipe using the EXACT format below. "
            "Even if some details aren't perfect, create a good recipe that "
            "addresses the user's core request.\n\n"
            + template
        )

    current = ""
    if last_recipe is not None:
        current = "CURRENT RECIPE:\n" + format_recipe_text(last_recipe) + "\n\n"
    return (
        f"Based on our previous conversation:\n{history}\n\n"
        + current
        + f"User's new request: {user_input}\n\n"
        "Please modify the recipe using the EXACT format below. Make the requested "
        "changes while keeping the core structure, and preserve other ingredients "
        "unless they conflict with the request:\n\n"
        + template
    )
