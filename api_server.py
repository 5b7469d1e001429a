"""
api_server.py  -  Recipe Chef REST API Server

Exposes the prompt builder, parser and upstream clients over HTTP for the
browser app. The app calls these endpoints directly, hence the permissive CORS
policy.

Architecture
────────────
  • FastAPI handles routing, request validation (Pydantic) and CORS.
  • Handlers are stateless: the chat endpoint receives the full history and the
    exchange number on every call.
  • Upstream clients are FastAPI dependencies. A missing GEMINI_API_KEY makes
    the dependency fail, so the handler answers 500 without calling out.
  • Image generation runs after the completion returns, only when the text
    holds a recipe, and can never fail the request.
  • Every error leaves as {"error": "..."} with a non-2xx status.

Run (development)
─────────────────
  uvicorn api_server:app --reload --port 8000

Endpoints
─────────
  GET    /health                          - liveness check
  POST   /generate-recipe                 - generate (or modify) a recipe
  POST   /chat-recipe                     - one chat exchange
  GET    /profile/{user_id}               - stored preferences
  PUT    /profile/{user_id}               - upsert preferences
  GET    /profile/{user_id}/completion    - profile completion flags
  GET    /saved-recipes?userId=           - saved recipes, newest first
  POST   /saved-recipes                   - save a parsed recipe
  DELETE /saved-recipes/{recipe_id}       - delete a saved recipe
"""

import logging
import random
from datetime import datetime

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

import recipe_store
from chef_agent import CompletionClient, ConfigurationError, ImageClient
from recipe_models import (
    MAX_PEOPLE,
    MIN_PEOPLE,
    ChatMessage,
    DietaryPreference,
    ParsedRecipe,
    ProfileCompletion,
    RecipeRequest,
    SavedRecipe,
    UserPreferences,
    UserSession,
)
from recipe_parser import parse_chat_recipe, split_modification_note
from recipe_prompts import (
    build_chat_prompt,
    build_modification_prompt,
    build_recipe_prompt,
    framing_exchange,
    pick_variety_hints,
)

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# App + CORS
# ──────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Recipe Chef API",
    description="Recipe generation, chat refinement and saved recipes.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


@app.exception_handler(StarletteHTTPException)
async def _http_error(request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def _validation_error(request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", [])[1:])
    message = f"Invalid request: {field} {first.get('msg', '')}".strip()
    return JSONResponse(status_code=422, content={"error": message})


# ──────────────────────────────────────────────────────────────────────────────
# Dependencies
# ──────────────────────────────────────────────────────────────────────────────

def get_completion_client() -> CompletionClient:
    try:
        return CompletionClient.from_env()
    except ConfigurationError as e:
        log.error("Refusing request: %s", e)
        raise HTTPException(status_code=500, detail=str(e))


def get_image_client() -> ImageClient:
    return ImageClient.from_env()


def get_variety_rng() -> random.Random:
    return random.Random()


# ──────────────────────────────────────────────────────────────────────────────
# Pydantic request / response models  (camelCase on the wire)
# ──────────────────────────────────────────────────────────────────────────────

class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GenerateRecipeRequest(_WireModel):
    dietary_preference:   DietaryPreference = Field(..., alias="dietaryPreference")
    number_of_people:     int = Field(..., ge=MIN_PEOPLE, le=MAX_PEOPLE, alias="numberOfPeople",
                                      description="Accepts an int or a numeric string")
    special_request:      str = Field(default="", alias="specialRequest")
    user_id:              str | None = Field(default=None, alias="userId")
    current_recipe:       ParsedRecipe | None = Field(default=None, alias="currentRecipe")
    modification_request: str | None = Field(default=None, alias="modificationRequest")


class GenerateRecipeResponse(_WireModel):
    recipe:            str
    image_url:         str | None = Field(default=None, alias="imageUrl")
    modification_note: str | None = Field(default=None, alias="modificationNote")


class ChatRecipeRequest(_WireModel):
    messages:        list[ChatMessage] = Field(default_factory=list)
    user_input:      str = Field(..., alias="userInput")
    exchange_number: int = Field(..., ge=1, alias="exchangeNumber")


class ChatRecipeResponse(_WireModel):
    response:        str
    exchange_number: int = Field(..., alias="exchangeNumber")
    image_url:       str | None = Field(default=None, alias="imageUrl")


class SaveRecipeRequest(_WireModel):
    user_id: str | None = Field(default=None, alias="userId")
    recipe:  ParsedRecipe


# ──────────────────────────────────────────────────────────────────────────────
# Internal helpers
# ──────────────────────────────────────────────────────────────────────────────

def _load_session(user_id: str | None) -> UserSession:
    """
    Builds the request context. Preferences are an enrichment here: a store
    failure is logged and generation continues without them.
    """
    session = UserSession(user_id=user_id)
    if not user_id or not recipe_store.is_configured():
        return session
    try:
        session.preferences = recipe_store.fetch_preferences(session)
    except recipe_store.StoreError as e:
        log.warning("Could not load preferences for user=%s (%s); continuing without.", user_id, e)
    return session


def _complete(completion: CompletionClient, prompt: str) -> str:
    try:
        return completion.complete(prompt)
    except Exception as e:
        log.error("LLM error: %s", e)
        raise HTTPException(status_code=502, detail=f"Recipe generation failed: {e}")


def _store_call(action: str, fn, *args):
    """Runs a store operation and maps its errors onto HTTP statuses."""
    try:
        return fn(*args)
    except recipe_store.SignUpRequiredError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except recipe_store.StoreConfigError as e:
        log.error("Store not configured: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    except recipe_store.StoreError as e:
        log.error("Store error during %s: %s", action, e)
        raise HTTPException(status_code=502, detail=f"Failed to {action}.")


# ──────────────────────────────────────────────────────────────────────────────
# Endpoints  -  Meta + Chef
# ──────────────────────────────────────────────────────────────────────────────

@app.get("/health", tags=["Meta"])
def health() -> dict:
    """Liveness check - returns server status and current timestamp."""
    return {"status": "ok", "timestamp": datetime.now().isoformat()}


@app.post(
    "/generate-recipe",
    response_model=GenerateRecipeResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
    tags=["Chef"],
)
def generate_recipe(
    body: GenerateRecipeRequest,
    completion: CompletionClient = Depends(get_completion_client),
    image: ImageClient = Depends(get_image_client),
    rng: random.Random = Depends(get_variety_rng),
) -> GenerateRecipeResponse:
    """
    Generates a recipe, or modifies `currentRecipe` when `modificationRequest`
    is given.

    Flow:
      1. Load the user's preferences when a userId is supplied (best effort).
      2. Build the prompt (randomised variety hint for fresh recipes only).
      3. One completion call; failure aborts with 502.
      4. Modification mode: split the "What was modified" note off the body.
      5. Image only if the text holds a recipe; failure just omits imageUrl.
    """
    log.info(
        "generate_recipe  user=%s  diet=%s  people=%d  special=%r",
        body.user_id, body.dietary_preference, body.number_of_people, body.special_request,
    )
    session = _load_session(body.user_id)

    modifying = body.current_recipe is not None and bool((body.modification_request or "").strip())
    if modifying:
        prompt = build_modification_prompt(
            body.current_recipe,
            body.modification_request,
            body.number_of_people,
            preferences=session.preferences,
        )
    else:
        request = RecipeRequest(
            dietary_preference=body.dietary_preference,
            number_of_people=body.number_of_people,
            special_request=body.special_request,
        )
        hints = pick_variety_hints(rng, body.dietary_preference, session.preferences)
        prompt = build_recipe_prompt(request, session.preferences, hints)

    text = _complete(completion, prompt)

    note = None
    if modifying:
        text, note = split_modification_note(text)

    image_url = image.image_for_response(text)
    log.info("Recipe generated  image=%s  modified=%s", bool(image_url), modifying)
    return GenerateRecipeResponse(recipe=text, image_url=image_url, modification_note=note)


@app.post(
    "/chat-recipe",
    response_model=ChatRecipeResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
    tags=["Chef"],
)
def chat_recipe(
    body: ChatRecipeRequest,
    completion: CompletionClient = Depends(get_completion_client),
    image: ImageClient = Depends(get_image_client),
) -> ChatRecipeResponse:
    """
    One exchange of the recipe chat. The exchange number selects the framing:
    1 clarifies or answers, 2 forces a recipe, 3+ modifies the last recipe found
    in the history. A recipe already in the history always means modification.
    """
    log.info(
        "chat_recipe  exchange=%d  messages=%d  input=%r",
        body.exchange_number, len(body.messages), body.user_input,
    )

    last_recipe = None
    for message in reversed(body.messages):
        if message.role == "assistant":
            last_recipe = parse_chat_recipe(message.content)
            if last_recipe is not None:
                break

    prompt = build_chat_prompt(
        body.messages,
        body.user_input,
        framing_exchange(body.exchange_number, last_recipe),
        last_recipe=last_recipe,
    )
    text = _complete(completion, prompt)

    return ChatRecipeResponse(
        response=text,
        exchange_number=body.exchange_number,
        image_url=image.image_for_response(text),
    )


# ──────────────────────────────────────────────────────────────────────────────
# Endpoints  -  Preferences
# ──────────────────────────────────────────────────────────────────────────────

@app.get("/profile/{user_id}", response_model=UserPreferences, tags=["Profile"])
def get_profile(user_id: str) -> UserPreferences:
    session = UserSession(user_id=user_id)
    prefs = _store_call("load profile", recipe_store.fetch_preferences, session)
    return prefs or UserPreferences(user_id=user_id)


@app.put("/profile/{user_id}", response_model=UserPreferences, tags=["Profile"])
def put_profile(user_id: str, body: UserPreferences) -> UserPreferences:
    session = UserSession(user_id=user_id)
    return _store_call("save profile", recipe_store.upsert_preferences, session, body)


@app.get("/profile/{user_id}/completion", response_model=ProfileCompletion, tags=["Profile"])
def get_profile_completion(user_id: str) -> ProfileCompletion:
    session = UserSession(user_id=user_id)
    prefs = _store_call("load profile", recipe_store.fetch_preferences, session)
    return recipe_store.profile_completion(prefs)


# ──────────────────────────────────────────────────────────────────────────────
# Endpoints  -  Saved recipes
# ──────────────────────────────────────────────────────────────────────────────

@app.get("/saved-recipes", response_model=list[SavedRecipe], tags=["Recipes"])
def get_saved_recipes(user_id: str | None = Query(default=None, alias="userId")) -> list[SavedRecipe]:
    session = UserSession(user_id=user_id)
    return _store_call("load saved recipes", recipe_store.list_saved_recipes, session)


@app.post("/saved-recipes", response_model=SavedRecipe, status_code=201, tags=["Recipes"])
def post_saved_recipe(body: SaveRecipeRequest) -> SavedRecipe:
    session = UserSession(user_id=body.user_id)
    return _store_call("save recipe", recipe_store.save_recipe, session, body.recipe)


@app.delete("/saved-recipes/{recipe_id}", tags=["Recipes"])
def delete_saved_recipe(
    recipe_id: str,
    user_id: str | None = Query(default=None, alias="userId"),
) -> dict:
    session = UserSession(user_id=user_id)
    if not _store_call("delete recipe", recipe_store.delete_saved_recipe, session, recipe_id):
        raise HTTPException(status_code=404, detail="Recipe not found.")
    return {"status": "deleted", "id": recipe_id}
