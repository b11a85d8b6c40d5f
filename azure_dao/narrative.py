"""Narrative service: turns a player action into a validated ActionOutcome.

Flow for one action:
  1. Offline (no generator configured) → OFFLINE_OUTCOME, no remote call.
  2. Render the story or dungeon prompt and call the text generator.
  3. Strip markdown fences, parse JSON, validate into ActionOutcome.
  4. Any transport, parse or schema failure → FALLBACK_OUTCOME.

Scene visuals are a separate, optional call made after the narrative. They
never raise: failures degrade to None.
"""

from __future__ import annotations

import asyncio
import json
import logging

from pydantic import ValidationError

from azure_dao.config import Settings
from azure_dao.llm import LLM, GeminiImages, GeminiLLM, ImageGenerator, LLMError
from azure_dao.models import ActionOutcome, DungeonData, PlayerState, Realm
from azure_dao.prompts import PromptError, image_prompt, story_prompt

logger = logging.getLogger(__name__)

OFFLINE_OUTCOME = ActionOutcome(
    narrative=(
        "The Heavenly Dao is silent (no API key configured). "
        "You can only meditate quietly in your heart."
    ),
    qi_change=5,
)

FALLBACK_OUTCOME = ActionOutcome(
    narrative="The link to the Heavenly Dao was severed... the data is lost.",
    qi_change=0,
)

MISSING_KEY_WARNING = (
    "Warning: no API_KEY found in the environment. "
    "The Heavenly Dao (AI narration) may not work."
)

ERROR_MARKER = "Error"

_STAT_SCHEMA = {"type": "INTEGER"}
_RATING_SCHEMA = {"type": "STRING", "enum": ["S", "A", "B", "C", "D"]}

OUTCOME_SCHEMA: dict = {
    "type": "OBJECT",
    "properties": {
        "narrative": {"type": "STRING"},
        "qiChange": {"type": "INTEGER"},
        "statChanges": {
            "type": "OBJECT",
            "properties": {
                "body": _STAT_SCHEMA,
                "spirit": _STAT_SCHEMA,
                "daoHeart": _STAT_SCHEMA,
            },
        },
        "itemGained": {"type": "STRING"},
        "newRealm": {"type": "STRING", "enum": [r.value for r in Realm]},
        "dungeonResult": {
            "type": "OBJECT",
            "properties": {
                "title": {"type": "STRING"},
                "type": {
                    "type": "STRING",
                    "enum": ["Horror", "SciFi", "Wasteland", "Mystery", "Historical"],
                },
                "difficulty": _RATING_SCHEMA,
                "rating": _RATING_SCHEMA,
                "summary": {"type": "STRING"},
                "scenario": {"type": "STRING"},
                "question": {"type": "STRING"},
                "options": {"type": "ARRAY", "items": {"type": "STRING"}},
                "correctIndex": {"type": "INTEGER"},
                "rewardText": {"type": "STRING"},
                "penaltyText": {"type": "STRING"},
            },
        },
    },
    "required": ["narrative"],
}


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def strip_fences(text: str) -> str:
    """Remove markdown code fences a model may wrap around JSON."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned.strip()


def parse_outcome(text: str) -> ActionOutcome:
    """Parse and validate generator output.

    Raises ValueError (including json.JSONDecodeError and pydantic's
    ValidationError) when the payload does not match the contract.
    """
    data = json.loads(strip_fences(text))
    if not isinstance(data, dict):
        raise ValueError(f"Outcome must be a JSON object, got {type(data).__name__}")
    return ActionOutcome.model_validate(data)


# ---------------------------------------------------------------------------
# Narrator
# ---------------------------------------------------------------------------

class Narrator:
    """Wraps the text and image generators behind a fail-safe interface.

    Args:
        llm:     Text generator, or None for offline mode.
        images:  Image generator, or None to skip illustrations.
        timeout: Upper bound in seconds for each generator call.
    """

    def __init__(
        self,
        llm: LLM | None,
        images: ImageGenerator | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._llm = llm
        self._images = images
        self._timeout = timeout

    @property
    def offline(self) -> bool:
        return self._llm is None

    async def story_event(self, action: str, state: PlayerState) -> ActionOutcome:
        """Generate the outcome of an action. Never raises."""
        if self._llm is None:
            return OFFLINE_OUTCOME

        stage = "dungeon" if action == "Dungeon" else "story"
        try:
            prompt = story_prompt(action, state)
            text = await asyncio.wait_for(self._llm(stage, prompt), self._timeout)
            return parse_outcome(text)
        except (LLMError, PromptError, ValueError, ValidationError, asyncio.TimeoutError) as e:
            logger.warning("Narrative generation failed for %s: %s", action, e)
            return FALLBACK_OUTCOME

    def should_illustrate(self, outcome: ActionOutcome) -> bool:
        if self._images is None or outcome in (FALLBACK_OUTCOME, OFFLINE_OUTCOME):
            return False
        text = outcome.dungeon_result.scenario if outcome.dungeon_result else outcome.narrative
        return bool(text) and ERROR_MARKER not in text

    async def scene_visual(
        self, narrative: str, dungeon: DungeonData | None = None
    ) -> str | None:
        """Illustrate a scene. Returns a data: URL, or None on any failure."""
        if self._images is None:
            return None
        try:
            prompt = image_prompt(narrative, dungeon)
            return await asyncio.wait_for(self._images(prompt), self._timeout)
        except (LLMError, PromptError, asyncio.TimeoutError) as e:
            logger.warning("Image generation failed: %s", e)
            return None


def build_narrator(settings: Settings) -> Narrator:
    """Construct the narrator for the configured backend."""
    if settings.offline:
        logger.warning("No API key configured; narrative runs offline")
        return Narrator(None, None, settings.request_timeout)

    llm = GeminiLLM(
        api_key=settings.api_key,
        model=settings.narrative_model,
        base_url=settings.base_url,
        timeout=settings.request_timeout,
        response_schema=OUTCOME_SCHEMA,
    )
    images = None
    if settings.images_enabled:
        images = GeminiImages(
            api_key=settings.api_key,
            model=settings.image_model,
            base_url=settings.base_url,
            timeout=settings.request_timeout,
        )
    return Narrator(llm, images, settings.request_timeout)
