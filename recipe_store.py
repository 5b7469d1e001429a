"""
recipe_store.py  -  Preference Store + Recipe Store (Supabase REST)

Two tables, both keyed by the auth provider's user id:
  profiles       - one row per user, written by upsert on user_id
  saved_recipes  - insert on save, list newest-first, delete by id; never updated

Every call receives an explicit UserSession instead of reading a global
"current user". Writes that need an owner raise SignUpRequiredError before any
request is made when the session is anonymous.

Row-level access rules live in the database; this module always filters by
user_id as well so a misconfigured policy cannot leak another user's rows.
"""

import logging
import os

import requests
from dotenv import load_dotenv

from recipe_models import (
    DEFAULT_PROFILE_EMOJI,
    ParsedRecipe,
    ProfileCompletion,
    SavedRecipe,
    UserPreferences,
    UserSession,
)

load_dotenv()

log = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# Errors
# ──────────────────────────────────────────────────────────────────────────────

class StoreError(RuntimeError):
    """A Supabase request failed (network error or non-2xx)."""


class StoreConfigError(StoreError):
    """SUPABASE_URL / SUPABASE_KEY are not configured."""


class SignUpRequiredError(RuntimeError):
    """The action needs an authenticated user and the session has none."""


# ──────────────────────────────────────────────────────────────────────────────
# LAYER 1  -  Connection helpers
# ──────────────────────────────────────────────────────────────────────────────

def _build_headers(supabase_key: str, extra: dict = None) -> dict:
    """Construct standard Supabase REST API headers."""
    headers = {
        "apikey":        supabase_key,
        "Authorization": f"Bearer {supabase_key}",
    }
    if extra:
        headers.update(extra)
    return headers


def _credentials() -> tuple[str, str]:
    supabase_url = os.environ.get("SUPABASE_URL")
    supabase_key = os.environ.get("SUPABASE_KEY")
    if not supabase_url or not supabase_key:
        raise StoreConfigError("Supabase credentials missing from environment.")
    return supabase_url.rstrip("/"), supabase_key


def is_configured() -> bool:
    return bool(os.environ.get("SUPABASE_URL") and os.environ.get("SUPABASE_KEY"))


def _require_user(session: UserSession) -> str:
    if not session.is_authenticated:
        raise SignUpRequiredError("Sign up required to save recipes and preferences.")
    return session.user_id


def _request(method: str, path: str, *, params: dict = None, json=None, extra_headers: dict = None):
    """One REST call against /rest/v1/<path>. Wraps transport and HTTP errors in StoreError."""
    supabase_url, supabase_key = _credentials()
    endpoint = f"{supabase_url}/rest/v1/{path}"
    try:
        response = requests.request(
            method,
            endpoint,
            params=params,
            json=json,
            headers=_build_headers(supabase_key, extra_headers),
        )
        response.raise_for_status()
    except requests.RequestException as e:
        log.error("Supabase %s %s failed: %s", method, path, e)
        raise StoreError(f"{method} {path} failed: {e}") from e

    if not response.content:
        return None
    return response.json()


# ──────────────────────────────────────────────────────────────────────────────
# LAYER 2  -  Preference Store  (profiles)
# ──────────────────────────────────────────────────────────────────────────────

def fetch_preferences(session: UserSession) -> UserPreferences | None:
    """Returns the user's profile row, or None when they never saved one."""
    user_id = _require_user(session)
    rows = _request(
        "GET",
        "profiles",
        params={"select": "*", "user_id": f"eq.{user_id}", "limit": "1"},
    )
    if not rows:
        return None
    return UserPreferences.model_validate(rows[0])


def upsert_preferences(session: UserSession, preferences: UserPreferences) -> UserPreferences:
    """
    Creates the profile on first save, updates it afterwards (keyed by user_id).
    The session's user id always wins over any user_id on the payload.
    """
    user_id = _require_user(session)
    payload = preferences.model_dump(mode="json", exclude={"user_id"})
    payload["user_id"] = user_id

    rows = _request(
        "POST",
        "profiles",
        params={"on_conflict": "user_id"},
        json=payload,
        extra_headers={
            "Content-Type": "application/json",
            "Prefer":       "resolution=merge-duplicates,return=representation",
        },
    )
    log.info("Profile upserted  user=%s", user_id)
    if rows:
        return UserPreferences.model_validate(rows[0])
    return preferences.model_copy(update={"user_id": user_id})


def profile_completion(preferences: UserPreferences | None) -> ProfileCompletion:
    """
    Preferences count as complete when any cooking preference is set.
    The personal profile needs a name and an emoji other than the default chef.
    """
    if preferences is None:
        return ProfileCompletion(
            preferences_complete=False, personal_profile_complete=False, complete=False
        )

    preferences_complete = bool(
        preferences.dietary_restrictions
        or preferences.cooking_experience
        or preferences.kitchen_equipment
        or preferences.preferred_cuisines
    )
    personal_complete = bool(preferences.name) and preferences.profile_emoji != DEFAULT_PROFILE_EMOJI
    return ProfileCompletion(
        preferences_complete=preferences_complete,
        personal_profile_complete=personal_complete,
        complete=preferences_complete and personal_complete,
    )


# ──────────────────────────────────────────────────────────────────────────────
# LAYER 3  -  Recipe Store  (saved_recipes)
# ──────────────────────────────────────────────────────────────────────────────

def save_recipe(session: UserSession, recipe: ParsedRecipe) -> SavedRecipe:
    """Inserts an immutable copy of the recipe. id and created_at come from the database."""
    user_id = _require_user(session)
    payload = {
        "user_id":      user_id,
        "recipe_name":  recipe.name,
        "cooking_time": recipe.cooking_time,
        "serves":       recipe.serves,
        "ingredients":  recipe.ingredients,
        "instructions": recipe.instructions,
        "nutrition":    recipe.nutrition.model_dump(),
        "image_url":    recipe.image_url,
    }
    rows = _request(
        "POST",
        "saved_recipes",
        json=payload,
        extra_headers={
            "Content-Type": "application/json",
            "Prefer":       "return=representation",
        },
    )
    if not rows:
        raise StoreError("Insert into saved_recipes returned no row.")

    saved = SavedRecipe.model_validate(rows[0])
    log.info("Recipe saved  user=%s  id=%s  name=%r", user_id, saved.id, saved.recipe_name)
    return saved


def list_saved_recipes(session: UserSession) -> list[SavedRecipe]:
    """All of the user's saved recipes, newest first."""
    user_id = _require_user(session)
    rows = _request(
        "GET",
        "saved_recipes",
        params={
            "select":  "*",
            "user_id": f"eq.{user_id}",
            "order":   "created_at.desc",
        },
    )
    return [SavedRecipe.model_validate(row) for row in rows or []]


def delete_saved_recipe(session: UserSession, recipe_id: str) -> bool:
    """Returns False when no row owned by the user had that id."""
    user_id = _require_user(session)
    rows = _request(
        "DELETE",
        "saved_recipes",
        params={"id": f"eq.{recipe_id}", "user_id": f"eq.{user_id}"},
        extra_headers={"Prefer": "return=representation"},
    )
    if not rows:
        log.warning("Delete matched no recipe  user=%s  id=%s", user_id, recipe_id)
        return False
    log.info("Recipe deleted  user=%s  id=%s", user_id, recipe_id)
    return True
