"""Core domain models.

Every engine function and the session controller operate on these types.
Pydantic validates at every data boundary: the narrative service parses
untrusted generator output straight into ActionOutcome / DungeonData, and the
HTTP layer serialises PlayerState with camelCase aliases.

PlayerState and LogEntry are frozen. State transitions build a new instance
with model_copy(update=...) and the session swaps the reference.
"""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True,
    )


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Realm(str, Enum):
    """Cultivation realms, lowest first."""

    MORTAL = "Mortal"
    WHITE_MIST = "WhiteMist"
    PURPLE_POLE = "PurplePole"
    AZURE_ORIGIN = "AzureOrigin"
    GOLD_IMMORTAL = "GoldImmortal"

    @property
    def rank(self) -> int:
        return list(Realm).index(self)

    @property
    def display_name(self) -> str:
        return REALM_NAMES[self]


REALM_NAMES: dict[Realm, str] = {
    Realm.MORTAL: "Mortal",
    Realm.WHITE_MIST: "White Mist Realm",
    Realm.PURPLE_POLE: "Purple Pole Realm",
    Realm.AZURE_ORIGIN: "Azure Origin Realm",
    Realm.GOLD_IMMORTAL: "Golden Immortal Realm",
}


class Location(str, Enum):
    SECT = "Sect"
    CITY = "City"
    RUINS = "Ruins"
    POND = "Pond"
    TOWN = "Town"

    @property
    def display_name(self) -> str:
        return LOCATION_NAMES[self]


LOCATION_NAMES: dict[Location, str] = {
    Location.SECT: "Taixu Sword Sect",
    Location.CITY: "Tianji City",
    Location.RUINS: "Guixu Ruins",
    Location.POND: "Enlightenment Pond",
    Location.TOWN: "Mortal Town",
}

LogKind = Literal["narrative", "dialogue", "system", "combat", "dungeon"]

Genre = Literal["Horror", "SciFi", "Wasteland", "Mystery", "Historical"]

Rating = Literal["S", "A", "B", "C", "D"]

Action = Literal["Meditate", "Explore", "Breakthrough", "Dungeon"]


# ---------------------------------------------------------------------------
# Encounter and outcome payloads (generator output)
# ---------------------------------------------------------------------------

class DungeonData(_FrozenModel):
    """A one-shot multiple-choice crisis produced by the generator."""

    title: str
    genre: Genre = Field(alias="type")
    difficulty: Rating
    rating: Rating
    scenario: str
    question: str
    options: tuple[str, str, str, str]
    correct_index: int = Field(ge=0, le=3)
    reward_text: str
    penalty_text: str
    summary: str


class StatChanges(_WireModel):
    """Partial stat deltas. Missing fields mean no change."""

    body: int | None = None
    spirit: int | None = None
    dao_heart: int | None = None


class ActionOutcome(_WireModel):
    """Validated narrative response.

    When dungeon_result is present every other reward field is ignored.
    """

    narrative: str
    qi_change: int | None = None
    stat_changes: StatChanges | None = None
    item_gained: str | None = None
    new_realm: Realm | None = None
    dungeon_result: DungeonData | None = None


# ---------------------------------------------------------------------------
# Player state
# ---------------------------------------------------------------------------

def _now_ms() -> int:
    return int(time.time() * 1000)


class LogEntry(_FrozenModel):
    """A single entry in the append-only story log."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    text: str
    kind: LogKind = Field(default="narrative", alias="type")
    timestamp: int = Field(default_factory=_now_ms)
    image_url: str | None = None
    dungeon_data: DungeonData | None = None


class PlayerStats(_FrozenModel):
    body: int = 10
    spirit: int = 10
    dao_heart: int = 5


class PlayerState(_FrozenModel):
    """The sole mutable aggregate of a game, held as an immutable value."""

    player_name: str = "Wandering Cultivator"
    realm: Realm = Realm.WHITE_MIST
    current_qi: int = 10
    max_qi: int = 100
    stats: PlayerStats = Field(default_factory=PlayerStats)
    location: Location = Location.TOWN
    inventory: tuple[str, ...] = ("Rusty Iron Sword", "Dry Rations")
    history: tuple[LogEntry, ...] = ()
    is_thinking: bool = False


def initial_state(player_name: str = "Wandering Cultivator") -> PlayerState:
    """Fresh game: a wanderer awakening in the White Mist realm."""
    greeting = LogEntry(
        id="init",
        kind="system",
        text=(
            "You awaken among the mortal dust. Spiritual qi is thin here, "
            "but the great road to the Nine Heavens lies ahead. "
            f"Your current cultivation: {Realm.WHITE_MIST.display_name}."
        ),
    )
    return PlayerState(player_name=player_name, history=(greeting,))
