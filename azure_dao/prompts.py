"""Handlebars prompt rendering for the narrative and image generators."""

from collections.abc import Callable
from typing import Any

import pybars

from azure_dao.models import DungeonData, PlayerState, Realm


_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Templates ────────────────────────────────────────────

CULTIVATION_TEMPLATE = """\
You are the Heavenly Dao, the game master of the cultivation game "Purple Pole Births Azure".

Current state:
- Core concept: "Purple Pole Births Azure" (purple essence gives birth to azure).
- Player: {{{player.name}}}, realm: {{player.realm}}, location: {{{player.location}}}.
- Qi: {{player.qi}} / {{player.max_qi}}.
- Stats: body ({{player.body}}), spirit ({{player.spirit}}), dao heart ({{player.dao_heart}}).
- Player action: the player attempts "{{{action}}}".

Task:
Write a short, atmospheric cultivation narrative for the player's action.
{{#if is_meditate}}Describe the flow of spiritual qi.{{/if}}
{{#if is_explore}}Describe an encounter or discovery fitting {{{player.location}}}.{{/if}}

Rules:
{{#if is_breakthrough}}
- The action is a Breakthrough:
  - From WhiteMist to PurplePole: requires 100 qi. Moderate difficulty.
  - From PurplePole to AzureOrigin: this is the core "Purple Pole Births Azure" event.
    It requires full qi and a high dao heart. Very hard. On failure describe backlash
    or heart demons. On success describe the lotus turning from purple to azure.
  - On success set newRealm to one of: {{#each realms}}{{this}} {{/each}}
{{/if}}
- Never return the dungeonResult field.
- Return valid JSON matching the schema.
"""

DUNGEON_TEMPLATE = """\
You are now the "System" of a thriller-paradise infinite dungeon. Your tone is cold,
mechanical, with dark humour and sarcasm.

Player: {{{player.name}}}, realm: {{player.realm}}, dao heart: {{player.dao_heart}}.

Core task: generate a crisis multiple-choice question grounded in game theory.

Steps:
1. Pick a dungeon genre at random: Horror, SciFi, Wasteland, Mystery or Historical.
2. Design a scenario where the player must apply game-theoretic reasoning (prisoner's
   dilemma, boxed pigs, Nash equilibrium, zero-sum game, chicken game...) to survive.
3. Ask one single-choice question about the best strategy or outcome.
4. Provide exactly 4 options; only one is the game-theoretic optimum.

Schema fields:
- narrative: a short description of entering the dungeon.
- dungeonResult.scenario: detailed crisis scenario (about 100 words).
- dungeonResult.question: the concrete question.
- dungeonResult.options: array of 4 option strings.
- dungeonResult.correctIndex: index of the correct option (0-3).
- dungeonResult.rewardText: reward description on success.
- dungeonResult.penaltyText: penalty description on failure.
- dungeonResult.difficulty: S/A/B/C/D.
- dungeonResult.rating: S/A/B/C/D, usually equal to difficulty.
- dungeonResult.summary: a one-line plot summary for the log.

The question must be logical, never pure luck.
"""

IMAGE_TEMPLATE = """\
Generate a pixel art style image (16-bit retro RPG video game style) depicting the following scene:
"{{{scene}}}"

Visual Style Requirements:
- Art Style: High-quality Pixel Art, 16-bit, SNES-era aesthetic.
- Theme/Genre: {{{style}}}
- View: Side-scrolling or Isometric game view.
- Content: No text, no UI elements. Just the scene/environment or character action.
"""

DEFAULT_STYLE = "Eastern Fantasy (Xianxia), Mystical, Ethereal, Ancient Chinese aesthetics."

GENRE_STYLES: dict[str, str] = {
    "Horror": "Horror, Dark, Gritty, Lovecraftian, Red and Black color palette, Spooky.",
    "SciFi": "Cyberpunk, Neon, High-tech, Futuristic city, Blue and Pink lights.",
    "Wasteland": "Post-apocalyptic, Rusty, Desert, Mad Max style, Desolate.",
    "Mystery": "Noir, Rainy, Shadows, Detective, Victorian London vibe.",
    "Historical": "Ancient War, Sepia tones, Realistic, Battlefield.",
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def build_context(state: PlayerState, action: str) -> dict[str, Any]:
    """Assemble template variables from the player state."""
    return {
        "action": action,
        "is_meditate": action == "Meditate",
        "is_explore": action == "Explore",
        "is_breakthrough": action == "Breakthrough",
        "realms": [r.value for r in Realm],
        "player": {
            "name": state.player_name,
            "realm": state.realm.value,
            "location": state.location.display_name,
            "qi": state.current_qi,
            "max_qi": state.max_qi,
            "body": state.stats.body,
            "spirit": state.stats.spirit,
            "dao_heart": state.stats.dao_heart,
        },
    }


def story_prompt(action: str, state: PlayerState) -> str:
    template = DUNGEON_TEMPLATE if action == "Dungeon" else CULTIVATION_TEMPLATE
    return render_prompt(template, build_context(state, action))


def image_prompt(narrative: str, dungeon: DungeonData | None = None) -> str:
    """Scene prompt: the dungeon scenario and genre style win over the narrative."""
    if dungeon is not None:
        scene, style = dungeon.scenario, GENRE_STYLES.get(dungeon.genre, DEFAULT_STYLE)
    else:
        scene, style = narrative, DEFAULT_STYLE
    return render_prompt(IMAGE_TEMPLATE, {"scene": scene, "style": style})
