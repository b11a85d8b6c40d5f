"""Cultivation rules: pure state transitions for the player.

Every function takes the current PlayerState and returns a new one (plus a
log entry where the rule produces one). Nothing here performs I/O or keeps a
reference to the state it was given.

Qi capacity per realm (realms not listed keep their previous cap):
  PurplePole    500
  AzureOrigin  2000
  GoldImmortal 10000

A breakthrough always resets qi to 20% of the new capacity, overriding any
qi delta that arrived with it.

Stat floors are asymmetric: narrative stat deltas are applied unclamped,
while the dungeon penalty path floors spirit at zero (see dungeon.py).
"""

from __future__ import annotations

import logging

from azure_dao.models import (
    ActionOutcome,
    Location,
    LogEntry,
    PlayerState,
    Realm,
)

logger = logging.getLogger(__name__)

REALM_MAX_QI: dict[Realm, int] = {
    Realm.PURPLE_POLE: 500,
    Realm.AZURE_ORIGIN: 2000,
    Realm.GOLD_IMMORTAL: 10000,
}

BREAKTHROUGH_QI_RATIO = 0.2

ENLIGHTENMENT_QI_PER_JUMP = 5
ENLIGHTENMENT_JUMPS_PER_SPIRIT = 3


def clamp_qi(value: int, max_qi: int) -> int:
    return max(0, min(value, max_qi))


def max_qi_for(realm: Realm, previous_max: int) -> int:
    """Capacity for a realm; realms missing from the table keep previous_max."""
    return REALM_MAX_QI.get(realm, previous_max)


def is_qi_full(state: PlayerState) -> bool:
    return state.current_qi >= state.max_qi


def can_breakthrough(state: PlayerState) -> bool:
    """A breakthrough is only offered once the dantian is full."""
    return is_qi_full(state)


def realm_changed(before: PlayerState, after: PlayerState) -> bool:
    return before.realm != after.realm


# ---------------------------------------------------------------------------
# Narrative outcome
# ---------------------------------------------------------------------------

def apply_outcome(state: PlayerState, outcome: ActionOutcome) -> PlayerState:
    """Apply a validated narrative outcome and return the next state.

    Order matters: the qi delta is clamped first, then a realm change
    replaces the capacity and overrides qi with the breakthrough reset.
    """
    if outcome.dungeon_result is not None:
        raise ValueError("Dungeon outcomes are resolved by the dungeon flow, not applied")

    qi = clamp_qi(state.current_qi + (outcome.qi_change or 0), state.max_qi)
    max_qi = state.max_qi
    realm = state.realm

    if outcome.new_realm is not None and outcome.new_realm != state.realm:
        if outcome.new_realm.rank < state.realm.rank:
            logger.warning(
                "Realm regression accepted: %s -> %s",
                state.realm.value, outcome.new_realm.value,
            )
        realm = outcome.new_realm
        max_qi = max_qi_for(realm, state.max_qi)
        qi = int(max_qi * BREAKTHROUGH_QI_RATIO)
        logger.info("Realm changed to %s (max qi %d)", realm.value, max_qi)

    stats = state.stats
    changes = outcome.stat_changes
    if changes is not None:
        stats = stats.model_copy(update={
            "body": stats.body + (changes.body or 0),
            "spirit": stats.spirit + (changes.spirit or 0),
            "dao_heart": stats.dao_heart + (changes.dao_heart or 0),
        })

    inventory = state.inventory
    if outcome.item_gained:
        inventory = (*inventory, outcome.item_gained)

    return state.model_copy(update={
        "current_qi": qi,
        "max_qi": max_qi,
        "realm": realm,
        "stats": stats,
        "inventory": inventory,
    })


def breakthrough_entry(realm: Realm) -> LogEntry:
    return LogEntry(
        kind="system",
        text=f"Breakthrough succeeded! You have stepped into the {realm.display_name}!",
    )


# ---------------------------------------------------------------------------
# Travel
# ---------------------------------------------------------------------------

def move_to(state: PlayerState, location: Location) -> tuple[PlayerState, LogEntry]:
    entry = LogEntry(kind="system", text=f"You travel to {location.display_name}.")
    return state.model_copy(update={"location": location}), entry


# ---------------------------------------------------------------------------
# Enlightenment rewards
# ---------------------------------------------------------------------------

def _enlightenment_comment(score: int) -> str:
    if score > 10:
        return "Your spirit darts between the platforms like a roaming dragon. Astonishing!"
    if score > 5:
        return "You enter a state where self and world are both forgotten."
    return "Your heart stirs faintly."


def reward_enlightenment(state: PlayerState, score: int) -> tuple[PlayerState, LogEntry]:
    """Convert a finished minigame score into qi and spirit."""
    if score <= 0:
        entry = LogEntry(
            kind="system",
            text=(
                "[Spirit Trial] Distracting thoughts cloud your heart; "
                "at the very first step you fall back into the mortal dust."
            ),
        )
        return state, entry

    qi_reward = score * ENLIGHTENMENT_QI_PER_JUMP
    spirit_reward = score // ENLIGHTENMENT_JUMPS_PER_SPIRIT
    new_state = state.model_copy(update={
        "current_qi": min(state.current_qi + qi_reward, state.max_qi),
        "stats": state.stats.model_copy(
            update={"spirit": state.stats.spirit + spirit_reward}
        ),
    })
    entry = LogEntry(
        kind="system",
        text=(
            f"[Spirit Trial] You leapt between the spirit platforms {score} times. "
            f"{_enlightenment_comment(score)} Qi +{qi_reward}, Spirit +{spirit_reward}."
        ),
    )
    return new_state, entry


# ---------------------------------------------------------------------------
# Bookkeeping
# ---------------------------------------------------------------------------

def append_log(state: PlayerState, *entries: LogEntry) -> PlayerState:
    if not entries:
        return state
    return state.model_copy(update={"history": (*state.history, *entries)})


def set_thinking(state: PlayerState, thinking: bool) -> PlayerState:
    return state.model_copy(update={"is_thinking": thinking})
