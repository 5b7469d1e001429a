"""
recipe_parser.py  -  Recipe text parser

Turns the semi-structured completion text back into a ParsedRecipe.

The upstream model is asked to reproduce a fixed template, but nothing forces
it to. Parsing is therefore tolerant: one forward pass over non-blank lines,
a small ordered marker table, and a "current section" flag. Anything that does
not match is skipped, so prose asides before, between or after the sections
never break extraction.

Public surface:
  parse_recipe(text)             -> ParsedRecipe          (standalone, never None)
  parse_chat_recipe(text)        -> ParsedRecipe | None   (None = not a recipe)
  contains_recipe(text)          -> bool                  (cheap image trigger)
  extract_recipe_name(text)      -> str
  split_modification_note(text)  -> (body, note | None)
"""

import re

from recipe_models import (
    PLACEHOLDER_COOKING_TIME,
    PLACEHOLDER_NAME,
    PLACEHOLDER_SERVES,
    Nutrition,
    ParsedRecipe,
)


# ──────────────────────────────────────────────────────────────────────────────
# Marker table  (checked in this order)
# ──────────────────────────────────────────────────────────────────────────────

_SCALAR_MARKERS = [
    ("name",         re.compile(r"^recipe name\s*:\s*(.*)$", re.IGNORECASE)),
    ("cooking_time", re.compile(r"^cooking time\s*:\s*(.*)$", re.IGNORECASE)),
    ("serves",       re.compile(r"^serves\s*:\s*(.*)$", re.IGNORECASE)),
]

# A section header is the section word, an optional qualifier and an optional
# trailing colon, e.g. "Nutritional Information (per serving):" or "## Ingredients".
# A period marks a sentence, never a header.
_SECTION_MARKERS = [
    ("nutrition",    re.compile(r"^nutrition(?:al)?\b[^:.]*:?$", re.IGNORECASE)),
    ("ingredients",  re.compile(r"^ingredients\b[^:.]*:?$", re.IGNORECASE)),
    ("instructions", re.compile(r"^instructions\b[^:.]*:?$", re.IGNORECASE)),
]

_NUTRITION_FIELDS = [
    ("calories", re.compile(r"^calories\s*:\s*(.+)$", re.IGNORECASE)),
    ("protein",  re.compile(r"^protein\s*:\s*(.+)$", re.IGNORECASE)),
    ("carbs",    re.compile(r"^carb(?:s|ohydrates)?\s*:\s*(.+)$", re.IGNORECASE)),
    ("fat",      re.compile(r"^fats?\s*:\s*(.+)$", re.IGNORECASE)),
]

_BULLET_RE   = re.compile(r"^[-*•]\s*(.*)$")
_NUMBERED_RE = re.compile(r"^\d+\.\s*(.*)$")
_EMPHASIS_RE = re.compile(r"\*\*|__")
_HEADING_RE  = re.compile(r"^#+\s*")

_NAME_RE = re.compile(r"Recipe Name:?\**:?\s*(.+)", re.IGNORECASE)
_MODIFICATION_NOTE_RE = re.compile(r"^\W*what was modified\W*:\s*\**\s*(.*)$", re.IGNORECASE)

RECIPE_MARKERS = ("Recipe Name", "Ingredients", "Instructions")
FALLBACK_IMAGE_NAME = "Delicious recipe"


def _plain(line: str) -> str:
    """Drops markdown emphasis and heading hashes so markers match bare text."""
    return _HEADING_RE.sub("", _EMPHASIS_RE.sub("", line)).strip()


def _match_first(table: list, line: str) -> tuple[str | None, re.Match | None]:
    for name, rx in table:
        match = rx.match(line)
        if match:
            return name, match
    return None, None


# ──────────────────────────────────────────────────────────────────────────────
# Line scanner
# ──────────────────────────────────────────────────────────────────────────────

def _scan(text: str) -> tuple[dict, dict, list[str], list[str]]:
    scalars:      dict[str, str] = {}
    nutrition:    dict[str, str] = {}
    ingredients:  list[str] = []
    instructions: list[str] = []
    section = None

    for raw in text.splitlines():
        line = _plain(raw)
        if not line:
            continue

        field, match = _match_first(_SCALAR_MARKERS, line)
        if match:
            value = match.group(1).strip()
            # First occurrence wins, matching extract_recipe_name.
            if value:
                scalars.setdefault(field, value)
            continue

        header, match = _match_first(_SECTION_MARKERS, line)
        if match:
            section = header
            continue

        if section == "nutrition":
            bullet = _BULLET_RE.match(line)
            entry = bullet.group(1).strip() if bullet else line
            field, match = _match_first(_NUTRITION_FIELDS, entry)
            if match:
                nutrition[field] = match.group(1).strip()

        elif section == "ingredients":
            bullet = _BULLET_RE.match(line)
            if bullet and bullet.group(1).strip():
                ingredients.append(bullet.group(1).strip())

        elif section == "instructions":
            step = _NUMBERED_RE.match(line)
            if step and step.group(1).strip():
                instructions.append(step.group(1).strip())

    return scalars, nutrition, ingredients, instructions


def _build(scalars: dict, nutrition: dict, ingredients: list, instructions: list) -> ParsedRecipe:
    return ParsedRecipe(
        name=scalars.get("name", PLACEHOLDER_NAME),
        cooking_time=scalars.get("cooking_time", PLACEHOLDER_COOKING_TIME),
        serves=scalars.get("serves", PLACEHOLDER_SERVES),
        nutrition=Nutrition(**nutrition),
        ingredients=ingredients,
        instructions=instructions,
    )


def parse_recipe(text: str) -> ParsedRecipe:
    """Standalone parse: always returns a record, missing fields get placeholders."""
    return _build(*_scan(text or ""))


def parse_chat_recipe(text: str) -> ParsedRecipe | None:
    """
    Chat parse: returns None unless a name, at least one ingredient and at
    least one instruction were found. A clarifying question yields None.
    """
    scalars, nutrition, ingredients, instructions = _scan(text or "")
    if not (scalars.get("name") and ingredients and instructions):
        return None
    return _build(scalars, nutrition, ingredients, instructions)


# ──────────────────────────────────────────────────────────────────────────────
# Cheap checks used before / around parsing
# ──────────────────────────────────────────────────────────────────────────────

def contains_recipe(text: str) -> bool:
    return bool(text) and all(marker in text for marker in RECIPE_MARKERS)


def extract_recipe_name(text: str) -> str:
    match = _NAME_RE.search(text or "")
    if not match:
        return FALLBACK_IMAGE_NAME
    name = match.group(1).replace("**", "").strip()
    return name or FALLBACK_IMAGE_NAME


def split_modification_note(text: str) -> tuple[str, str | None]:
    """
    Separates the trailing "What was modified:" line from the recipe body.
    Returns the body unchanged and None when there is no such line.
    """
    body_lines = []
    note = None
    for line in (text or "").splitlines():
        m = _MODIFICATION_NOTE_RE.match(line.strip())
        if m and note is None:
            note = m.group(1).replace("**", "").strip() or None
            continue
        body_lines.append(line)
    return "\n".join(body_lines).strip(), note
