"""
recipe_models.py  -  Shared data model for the Recipe Chef service

Every structure that crosses a module boundary lives here as a Pydantic model:
  UserPreferences  - one row of the `profiles` table (read by the prompt builder)
  RecipeRequest    - the per-call generation inputs
  ParsedRecipe     - what the recipe parser extracts from a completion
  SavedRecipe      - one row of the `saved_recipes` table
  UserSession      - explicit per-request context (current user + preferences)
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator


# ──────────────────────────────────────────────────────────────────────────────
# Fixed enumerations (mirrors the options offered on the preferences screen)
# ──────────────────────────────────────────────────────────────────────────────

DietaryPreference = Literal["non-vegetarian", "vegetarian", "vegan"]
KitchenEquipment  = Literal["Oven", "Air Fryer", "Stovetop", "Microwave", "Slow Cooker"]
Cuisine           = Literal["Italian", "Asian", "Mexican", "Mediterranean", "American", "Indian"]
CookingExperience = Literal["Beginner", "Intermediate", "Advanced"]

DEFAULT_PROFILE_EMOJI = "👨‍🍳"

MIN_PEOPLE = 1
MAX_PEOPLE = 8

# Placeholders used when the completion omits a field.
PLACEHOLDER_NAME         = "Untitled Recipe"
PLACEHOLDER_COOKING_TIME = "30-45 minutes"
PLACEHOLDER_SERVES       = "2 people"
PLACEHOLDER_NUTRITION    = "N/A"


# ──────────────────────────────────────────────────────────────────────────────
# Preferences
# ──────────────────────────────────────────────────────────────────────────────

class UserPreferences(BaseModel):
    """
    Per-user attributes from the Preference Store.

    A missing or blank field means "no constraint". Store rows frequently carry
    NULL array columns or an empty cooking_experience string; both normalise to
    unset instead of failing validation.
    """

    user_id:              str | None = None
    name:                 str | None = None
    profile_emoji:        str = DEFAULT_PROFILE_EMOJI
    kitchen_equipment:    list[KitchenEquipment] = Field(default_factory=list)
    preferred_cuisines:   list[Cuisine] = Field(default_factory=list)
    cooking_experience:   CookingExperience | None = None
    protein_preferences:  list[str] = Field(default_factory=list)
    dietary_restrictions: str | None = None
    additional_context:   str | None = None

    @field_validator(
        "kitchen_equipment", "preferred_cuisines", "protein_preferences", mode="before"
    )
    @classmethod
    def _null_list_is_empty(cls, value):
        return [] if value is None else value

    @field_validator(
        "name", "cooking_experience", "dietary_restrictions", "additional_context",
        mode="before",
    )
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("profile_emoji", mode="before")
    @classmethod
    def _default_emoji(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_PROFILE_EMOJI
        return value


class ProfileCompletion(BaseModel):
    preferences_complete:      bool
    personal_profile_complete: bool
    complete:                  bool


# ──────────────────────────────────────────────────────────────────────────────
# Requests / conversation
# ──────────────────────────────────────────────────────────────────────────────

class ChatMessage(BaseModel):
    role:      Literal["user", "assistant"]
    content:   str
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())


class RecipeRequest(BaseModel):
    dietary_preference: DietaryPreference = "non-vegetarian"
    number_of_people:   int = Field(default=2, ge=MIN_PEOPLE, le=MAX_PEOPLE)
    special_request:    str = ""
    prior_conversation: list[ChatMessage] = Field(default_factory=list)


# ──────────────────────────────────────────────────────────────────────────────
# Recipes
# ──────────────────────────────────────────────────────────────────────────────

class Nutrition(BaseModel):
    """Per-serving values, carried verbatim as emitted by the model (e.g. '32g')."""

    calories: str = PLACEHOLDER_NUTRITION
    protein:  str = PLACEHOLDER_NUTRITION
    carbs:    str = PLACEHOLDER_NUTRITION
    fat:      str = PLACEHOLDER_NUTRITION


class ParsedRecipe(BaseModel):
    name:         str = PLACEHOLDER_NAME
    cooking_time: str = PLACEHOLDER_COOKING_TIME
    serves:       str = PLACEHOLDER_SERVES
    nutrition:    Nutrition = Field(default_factory=Nutrition)
    ingredients:  list[str] = Field(default_factory=list)
    instructions: list[str] = Field(default_factory=list)
    image_url:    str | None = None


class SavedRecipe(BaseModel):
    id:           str
    user_id:      str
    recipe_name:  str
    cooking_time: str
    serves:       str
    ingredients:  list[str]
    instructions: list[str]
    nutrition:    Nutrition | None = None
    image_url:    str | None = None
    created_at:   datetime

    def to_parsed(self) -> ParsedRecipe:
        return ParsedRecipe(
            name=self.recipe_name,
            cooking_time=self.cooking_time,
            serves=self.serves,
            nutrition=self.nutrition or Nutrition(),
            ingredients=list(self.ingredients),
            instructions=list(self.instructions),
            image_url=self.image_url,
        )


# ──────────────────────────────────────────────────────────────────────────────
# Session context
# ──────────────────────────────────────────────────────────────────────────────

class UserSession(BaseModel):
    """
    Explicit request context threaded into the prompt builder and store calls.
    user_id is None for anonymous visitors; they may generate but not save.
    """

    user_id:     str | None = None
    preferences: UserPreferences | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)
