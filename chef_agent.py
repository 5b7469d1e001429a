"""
chef_agent.py  -  Recipe Chef engine

Responsibility boundary:
  Python (this file): upstream calls, partial-failure policy for images,
                      conversation state, recipe display, CLI loop control.
  LLM (Gemini):       culinary creativity - recipe design, clarifying questions,
                      recipe modification.
  Prompt text lives in recipe_prompts.py, text extraction in recipe_parser.py.

Upstream services:
  Completion  - google.genai `models.generate_content`, one prompt in, text out.
                Missing GEMINI_API_KEY is a configuration error, raised before
                any call is attempted.
  Image       - Stability AI text-to-image over REST. Best-effort enrichment:
                every failure is logged and becomes "no image".

Chat flow (RecipeConversation):
  awaiting_first_message ──▶ clarifying ──▶ recipe_delivered ──▶ modification_loop
            └──────────────────────────────────▲                   (loops on itself)
  reset() returns to awaiting_first_message from any state.

CLI entry point: `recipe-chat` (run_recipe_chat()).
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

import requests
from dotenv import load_dotenv
from google import genai
from google.genai import errors

from recipe_models import ChatMessage, ParsedRecipe
from recipe_parser import contains_recipe, extract_recipe_name, parse_chat_recipe
from recipe_prompts import build_chat_prompt, framing_exchange

load_dotenv()

log = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# CONFIG  -  Constants
# ──────────────────────────────────────────────────────────────────────────────

DEFAULT_MODEL = "gemini-2.5-flash"

# Returned when the upstream answered 2xx but with no text part.
COMPLETION_FALLBACK_TEXT = "Sorry, I could not generate a recipe."

STABILITY_ENDPOINT = (
    "https://api.stability.ai/v1/generation/stable-diffusion-xl-1024-v1-0/text-to-image"
)
IMAGE_TIMEOUT_SECONDS = 60

GENERATION_FAILED_MESSAGE   = "I couldn't put a recipe together from that. Please try again."
MODIFICATION_FAILED_MESSAGE = "I couldn't modify the recipe. Please try rephrasing your request."


class ConfigurationError(RuntimeError):
    """A required credential is missing from the environment."""


class CompletionError(RuntimeError):
    """The completion API answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


# ──────────────────────────────────────────────────────────────────────────────
# LAYER 1  -  Completion Client
# ──────────────────────────────────────────────────────────────────────────────

class CompletionClient:
    """Sends one prompt to Gemini and returns the text of the first candidate."""

    def __init__(self, api_key: str | None, model: str = DEFAULT_MODEL, client=None):
        if not api_key:
            raise ConfigurationError("Completion API key not configured")
        self.model = model
        self._client = client or genai.Client(api_key=api_key)

    @classmethod
    def from_env(cls) -> "CompletionClient":
        return cls(
            api_key=os.environ.get("GEMINI_API_KEY"),
            model=os.environ.get("GEMINI_MODEL", DEFAULT_MODEL),
        )

    def complete(self, prompt: str) -> str:
        try:
            response = self._client.models.generate_content(model=self.model, contents=prompt)
        except errors.APIError as e:
            log.error("Completion API error: %s %s", e.code, e.message)
            raise CompletionError(
                f"Completion API call failed with status {e.code}", status_code=e.code
            ) from e

        text = (getattr(response, "text", None) or "").strip()
        if not text:
            log.warning("Completion API returned no text; using fallback message.")
            return COMPLETION_FALLBACK_TEXT
        return text


# ──────────────────────────────────────────────────────────────────────────────
# LAYER 2  -  Image Client  (best-effort)
# ──────────────────────────────────────────────────────────────────────────────

def build_image_prompt(recipe_name: str) -> str:
    return (
        f"Professional food photography of {recipe_name}, appetizing, restaurant quality, "
        "well-lit, beautifully plated, high resolution, no text, no watermark"
    )


class ImageClient:
    """
    Requests a food photo for a recipe. Never raises: any failure is logged and
    returned as None so the recipe itself is always delivered.
    """

    def __init__(self, api_key: str | None, endpoint: str = STABILITY_ENDPOINT,
                 timeout: float = IMAGE_TIMEOUT_SECONDS):
        self.api_key  = api_key
        self.endpoint = endpoint
        self.timeout  = timeout

    @classmethod
    def from_env(cls) -> "ImageClient":
        api_key = os.environ.get("STABILITY_API_KEY")
        if not api_key:
            log.warning("Stability API key not configured - images will not be generated")
        return cls(api_key=api_key)

    def generate(self, recipe_name: str) -> str | None:
        if not self.api_key:
            return None

        log.info("Generating image for recipe: %s", recipe_name)
        payload = {
            "text_prompts": [{"text": build_image_prompt(recipe_name), "weight": 1}],
            "cfg_scale": 7,
            "height":    1024,
            "width":     1024,
            "steps":     30,
            "samples":   1,
        }
        headers = {
            "Content-Type":  "application/json",
            "Accept":        "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        try:
            response = requests.post(self.endpoint, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            log.error("Error generating image: %s", e)
            return None

        if not response.ok:
            log.error("Image generation failed: %s %s", response.status_code, response.text[:200])
            return None

        try:
            artifacts = response.json().get("artifacts") or []
            encoded = artifacts[0]["base64"] if artifacts else None
        except (ValueError, AttributeError, KeyError, TypeError) as e:
            log.error("Malformed image payload: %s", e)
            return None

        if not encoded:
            log.error("Image generation returned no artifacts")
            return None

        log.info("Image generated successfully")
        return f"data:image/png;base64,{encoded}"

    def image_for_response(self, completion_text: str) -> str | None:
        """Generates an image only when the completion text actually holds a recipe."""
        if not contains_recipe(completion_text):
            return None
        return self.generate(extract_recipe_name(completion_text))


# ──────────────────────────────────────────────────────────────────────────────
# LAYER 3  -  Conversation State Machine  (chat variant)
# ──────────────────────────────────────────────────────────────────────────────

class ConversationState(str, Enum):
    AWAITING_FIRST_MESSAGE = "awaiting_first_message"
    CLARIFYING             = "clarifying"
    RECIPE_DELIVERED       = "recipe_delivered"
    MODIFICATION_LOOP      = "modification_loop"


@dataclass
class ChatTurn:
    response:        str
    exchange_number: int
    recipe:          ParsedRecipe | None = None
    image_url:       str | None = None
    error:           str | None = None


@dataclass
class RecipeConversation:
    """
    Client-side chat session: history, exchange counter and last delivered recipe.

    Once a recipe has been delivered every further message is framed as a
    modification (exchange >= 3), even when the recipe arrived on exchange 1.
    """

    completion:       CompletionClient
    image:            ImageClient | None = None
    number_of_people: int = 2
    history:          list[ChatMessage] = field(default_factory=list)
    exchange_number:  int = 0
    last_recipe:      ParsedRecipe | None = None
    state:            ConversationState = ConversationState.AWAITING_FIRST_MESSAGE

    def send(self, user_input: str) -> ChatTurn:
        """
        Runs one exchange. Completion failures propagate and leave the
        conversation untouched so the user can simply retry.
        """
        exchange_number = self.exchange_number + 1
        prompt = build_chat_prompt(
            self.history,
            user_input,
            framing_exchange(exchange_number, self.last_recipe),
            last_recipe=self.last_recipe,
            number_of_people=self.number_of_people,
        )
        text = self.completion.complete(prompt)

        self.exchange_number = exchange_number
        self.history.append(ChatMessage(role="user", content=user_input))
        self.history.append(ChatMessage(role="assistant", content=text))

        recipe = parse_chat_recipe(text)
        if recipe is None:
            return self._no_recipe_turn(text, exchange_number)

        if self.image is not None:
            recipe.image_url = self.image.image_for_response(text)

        had_recipe = self.last_recipe is not None
        self.last_recipe = recipe
        self.state = (
            ConversationState.MODIFICATION_LOOP if had_recipe else ConversationState.RECIPE_DELIVERED
        )
        log.info("Exchange %d delivered recipe %r", exchange_number, recipe.name)
        return ChatTurn(
            response=text,
            exchange_number=exchange_number,
            recipe=recipe,
            image_url=recipe.image_url,
        )

    def _no_recipe_turn(self, text: str, exchange_number: int) -> ChatTurn:
        if self.last_recipe is not None:
            # The previous recipe stays on display.
            return ChatTurn(text, exchange_number, error=MODIFICATION_FAILED_MESSAGE)
        if exchange_number == 1:
            self.state = ConversationState.CLARIFYING
            return ChatTurn(text, exchange_number)
        return ChatTurn(text, exchange_number, error=GENERATION_FAILED_MESSAGE)

    def reset(self) -> None:
        """Start a new conversation."""
        self.history = []
        self.exchange_number = 0
        self.last_recipe = None
        self.state = ConversationState.AWAITING_FIRST_MESSAGE


# ──────────────────────────────────────────────────────────────────────────────
# LAYER 4  -  Recipe Display  (Deterministic)
# ──────────────────────────────────────────────────────────────────────────────

_ANSI_YELLOW_BOLD = "\033[1;93m"
_ANSI_RESET       = "\033[0m"


def _format_recipe_for_display(recipe: ParsedRecipe) -> str:
    """Renders a recipe card for the terminal."""
    lines = [
        _ANSI_YELLOW_BOLD + f"  {recipe.name}" + _ANSI_RESET,
        f"  {recipe.cooking_time}  ·  serves {recipe.serves}",
        "",
    ]

    n = recipe.nutrition
    lines.append("─── Nutrition (per serving) ───────────────────────────")
    lines.append(f"  Calories: {n.calories}   Protein: {n.protein}   Carbs: {n.carbs}   Fat: {n.fat}")
    lines.append("")

    lines.append("─── Ingredients ───────────────────────────────────────")
    for ingredient in recipe.ingredients:
        lines.append(f"    • {ingredient}")

    lines.append("")
    lines.append("─── Instructions ──────────────────────────────────────")
    for i, step in enumerate(recipe.instructions, 1):
        lines.append(f"  {i}.  {step}")

    if recipe.image_url:
        lines.append("")
        lines.append("  (a photo was generated for this recipe)")

    return "\n".join(lines)


# ──────────────────────────────────────────────────────────────────────────────
# LAYER 5  -  User I/O Helpers
# ──────────────────────────────────────────────────────────────────────────────

_QUIT_COMMANDS  = {"quit", "exit", "bye", "q"}
_RESET_COMMANDS = {"new", "reset", "start over"}


def _read_input(prompt: str) -> str:
    try:
        return input(prompt).strip()
    except (UnicodeDecodeError, EOFError):
        return ""


# ──────────────────────────────────────────────────────────────────────────────
# LAYER 6  -  Orchestration  (CLI entry point)
# ──────────────────────────────────────────────────────────────────────────────

def run_recipe_chat() -> None:
    """
    Interactive chat loop over RecipeConversation.

      'new'  - start a new conversation
      'quit' - leave
    """
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s  %(levelname)-8s  %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        completion = CompletionClient.from_env()
    except ConfigurationError as e:
        print(f"CONFIG ERROR: {e}")
        return

    conversation = RecipeConversation(completion=completion, image=ImageClient.from_env())

    print("\n" + "═" * 56)
    print("  Recipe Chef  ·  describe what you want to cook")
    print("═" * 56)
    print("(e.g. 'Miso marinade for salmon', 'Quick pasta with pantry ingredients')")
    print("Type 'new' to start over, 'quit' to leave.\n")

    while True:
        user_input = _read_input(">> ")
        if not user_input:
            continue

        command = user_input.lower()
        if command in _QUIT_COMMANDS:
            print("\n[chef]: Happy cooking!")
            return
        if command in _RESET_COMMANDS:
            conversation.reset()
            print("\n[chef]: Fresh start. What would you like to cook?")
            continue

        try:
            turn = conversation.send(user_input)
        except CompletionError as e:
            print(f"AI ERROR: {e}. Try again.")
            continue

        if turn.recipe is not None:
            print("\n" + "═" * 56)
            print(_format_recipe_for_display(turn.recipe))
            print("═" * 56)
            print("\nWant to change anything? Describe the modification, or type 'new'.")
        elif turn.error:
            print(f"\n[chef]: {turn.error}")
        else:
            print(f"\n[chef]: {turn.response}")


if __name__ == "__main__":
    run_recipe_chat()
