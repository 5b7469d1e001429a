import random

import pytest
from fastapi.testclient import TestClient

from api_server import app, get_completion_client, get_image_client, get_variety_rng


SAMPLE_RECIPE_TEXT = """\
**Recipe Name:** Chickpea Coconut Curry

**Nutritional Information (per serving):**
- Calories: 520
- Protein: 18g
- Carbs: 64g
- Fat: 21g

**Cooking Time:** 35 minutes

**Ingredients:**
- 1 can chickpeas, drained
- 1 can coconut milk
- 1 onion, diced
- 2 cloves garlic, minced
- 1 cup basmati rice

**Instructions:**
1. Rinse the rice and cook it according to the package.
2. Soften the onion and garlic in a large pan.
3. Add chickpeas and coconut milk and simmer for 15 minutes.
4. Serve the curry over the rice.

**Serves:** 2 people
"""

CLARIFYING_TEXT = """\
Happy to help! A couple of quick questions:
1. Do you want a sweet or savory marinade?
2. Will you bake or grill the salmon?
"""


class FakeCompletion:
    """Stands in for CompletionClient; records every prompt it receives."""

    def __init__(self, responses=None, error: Exception | None = None):
        self.responses = list(responses or [SAMPLE_RECIPE_TEXT])
        self.error = error
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


class FakeImage:
    def __init__(self, url: str | None = "data:image/png;base64,AAAA"):
        self.url = url
        self.calls: list[str] = []

    def image_for_response(self, text: str) -> str | None:
        self.calls.append(text)
        return self.url


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("GEMINI_API_KEY", "GEMINI_MODEL", "STABILITY_API_KEY", "SUPABASE_URL", "SUPABASE_KEY"):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def sample_recipe_text():
    return SAMPLE_RECIPE_TEXT


@pytest.fixture
def clarifying_text():
    return CLARIFYING_TEXT


@pytest.fixture
def fake_completion():
    return FakeCompletion()


@pytest.fixture
def fake_image():
    return FakeImage()


@pytest.fixture
def client(fake_completion, fake_image):
    """Test client with upstream clients replaced by fakes."""
    app.dependency_overrides[get_completion_client] = lambda: fake_completion
    app.dependency_overrides[get_image_client] = lambda: fake_image
    app.dependency_overrides[get_variety_rng] = lambda: random.Random(7)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def raw_client():
    """Test client with no overrides (real dependency wiring)."""
    app.dependency_overrides.clear()
    with TestClient(app) as c:
        yield c
