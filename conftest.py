import json
import random

import pytest

from azure_dao.narrative import Narrator
from azure_dao.session import GameSession


# ---------------------------------------------------------------------------
# Stub generators: deterministic stand-ins for the HTTP clients
# ---------------------------------------------------------------------------

class StubLLM:
    """Deterministic text generator for tests.

    Provide responses in call order; each may be a str, a dict (dumped to
    JSON) or an exception instance (raised). Raises if called more times
    than responses were provided.
    """

    def __init__(self, responses: list) -> None:
        self._queue = list(responses)
        self.calls: list[tuple[str, str]] = []

    async def __call__(self, stage: str, prompt: str) -> str:
        self.calls.append((stage, prompt))
        if not self._queue:
            raise AssertionError(
                f"StubLLM: unexpected call to stage={stage!r} (no responses queued)"
            )
        response = self._queue.pop(0)
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, dict):
            return json.dumps(response)
        return response


class StubImages:
    """Returns a fixed data URL, or raises the configured error."""

    def __init__(self, url: str = "data:image/png;base64,AAAA", error: Exception | None = None) -> None:
        self._url = url
        self._error = error
        self.prompts: list[str] = []

    async def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self._error is not None:
            raise self._error
        return self._url


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

DUNGEON_PAYLOAD = {
    "title": "The Lighthouse Ledger",
    "type": "Mystery",
    "difficulty": "B",
    "rating": "B",
    "scenario": "Two keepers are questioned in separate rooms about a missing ledger.",
    "question": "Which strategy keeps you alive?",
    "options": ["Confess", "Stay silent", "Blame the other keeper", "Flee"],
    "correctIndex": 2,
    "rewardText": "You obtained a shard of higher dimension.",
    "penaltyText": "Your mind is polluted; sanity drains away.",
    "summary": "A prisoner's dilemma in a lighthouse.",
}


@pytest.fixture
def dungeon_payload() -> dict:
    return dict(DUNGEON_PAYLOAD)


@pytest.fixture
def images() -> StubImages:
    return StubImages()


@pytest.fixture
def make_session(images: StubImages):
    """Factory: session wired to a StubLLM with the given responses."""

    def _make(responses: list, **kwargs) -> tuple[GameSession, StubLLM]:
        llm = StubLLM(responses)
        narrator = Narrator(llm, kwargs.pop("images", images), timeout=5)
        session = GameSession(narrator, rng=random.Random(7), **kwargs)
        return session, llm

    return _make
