"""Dungeon resolution: settles a pending multiple-choice encounter.

The encounter itself was fetched earlier by the narrative service. Resolving
it is synchronous and never calls a generator:

  correct choice  qi +50 (capped), dao heart +5, spirit +2,
                  50% chance of a bonus shard in the inventory
  wrong choice    qi -30 (floored at 0), spirit -5 (floored at 0)
"""

from __future__ import annotations

import random

from azure_dao.models import DungeonData, LogEntry, PlayerState

REWARD_QI = 50
REWARD_DAO_HEART = 5
REWARD_SPIRIT = 2
BONUS_ITEM = "Unknown Dimensional Shard"
BONUS_ITEM_CHANCE = 0.5

PENALTY_QI = 30
PENALTY_SPIRIT = 5


def is_correct(dungeon: DungeonData, chosen_index: int) -> bool:
    return chosen_index == dungeon.correct_index


def resolve(
    state: PlayerState,
    dungeon: DungeonData,
    chosen_index: int,
    image_url: str | None = None,
    rng: random.Random | None = None,
) -> tuple[PlayerState, LogEntry]:
    """Apply the reward or penalty for chosen_index and build the dungeon log entry.

    The returned state does not include the entry; the caller appends it.
    """
    if not 0 <= chosen_index < len(dungeon.options):
        raise ValueError(f"Option index {chosen_index} out of range")
    rng = rng or random.Random()

    if is_correct(dungeon, chosen_index):
        inventory = state.inventory
        if rng.random() < BONUS_ITEM_CHANCE:
            inventory = (*inventory, BONUS_ITEM)
        new_state = state.model_copy(update={
            "current_qi": min(state.current_qi + REWARD_QI, state.max_qi),
            "stats": state.stats.model_copy(update={
                "dao_heart": state.stats.dao_heart + REWARD_DAO_HEART,
                "spirit": state.stats.spirit + REWARD_SPIRIT,
            }),
            "inventory": inventory,
        })
        text = (
            "[System Settlement] Check passed. You gained the upper hand in the game.\n"
            f"Reward: {dungeon.reward_text}\n"
            f"(Qi +{REWARD_QI}, Dao Heart +{REWARD_DAO_HEART}, Spirit +{REWARD_SPIRIT})"
        )
    else:
        new_state = state.model_copy(update={
            "current_qi": max(state.current_qi - PENALTY_QI, 0),
            "stats": state.stats.model_copy(update={
                "spirit": max(state.stats.spirit - PENALTY_SPIRIT, 0),
            }),
        })
        text = (
            "[System Settlement] Check failed. Your strategy led to dire consequences.\n"
            f"Penalty: {dungeon.penalty_text}\n"
            f"(Qi -{PENALTY_QI}, Spirit -{PENALTY_SPIRIT})"
        )

    entry = LogEntry(
        kind="dungeon",
        text=text,
        image_url=image_url,
        dungeon_data=dungeon,
    )
    return new_state, entry
