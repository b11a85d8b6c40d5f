"""Game session: owns the single player state and sequences every intent.

The session is the only holder of a PlayerState reference. Each intent reads
the current state, derives a new one through the pure rule modules
(cultivation, dungeon) and swaps it in together with its log entries.

Single-flight: a narrative action sets is_thinking before the generator is
called and clears it in a finally block. While it is set, or while a dungeon
decision or the minigame is open, every other intent is rejected with a
system log entry instead of an exception.

Caller contract violations (choosing with no dungeon pending, minigame
signals with no minigame open) raise SessionError.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any

from azure_dao import dungeon
from azure_dao.cultivation import (
    append_log,
    apply_outcome,
    breakthrough_entry,
    can_breakthrough,
    is_qi_full,
    move_to,
    realm_changed,
    reward_enlightenment,
    set_thinking,
)
from azure_dao.enlightenment import ChargeDriver, EnlightenmentGame, Landing
from azure_dao.models import (
    Action,
    DungeonData,
    Location,
    LogEntry,
    PlayerState,
    initial_state,
)
from azure_dao.narrative import MISSING_KEY_WARNING, Narrator

logger = logging.getLogger(__name__)

REJECT_THINKING = "The Heavenly Dao is still deliberating. Wait for it to answer."
REJECT_DUNGEON = "A dungeon crisis awaits your decision."
REJECT_MINIGAME = "Your spirit is still wandering the spirit platforms."
REJECT_QI_FULL = (
    "Your dantian is full. You cannot absorb more qi before breaking through the bottleneck."
)
REJECT_NOT_READY = "Your qi is not yet full. A breakthrough now would be reckless."


class SessionError(RuntimeError):
    """Raised when a caller sends an intent the session cannot accept."""


@dataclass(frozen=True)
class PendingDungeon:
    data: DungeonData
    image_url: str | None = None


class GameSession:
    """One player's game, held in memory."""

    def __init__(
        self,
        narrator: Narrator,
        state: PlayerState | None = None,
        player_name: str = "Wandering Cultivator",
        rng: random.Random | None = None,
    ) -> None:
        self._narrator = narrator
        self._rng = rng or random.Random()
        self.state = state or initial_state(player_name)
        self.pending_dungeon: PendingDungeon | None = None
        self.minigame: EnlightenmentGame | None = None
        self._driver: ChargeDriver | None = None
        if narrator.offline:
            self._commit(self.state, LogEntry(kind="system", text=MISSING_KEY_WARNING))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _commit(self, state: PlayerState, *entries: LogEntry) -> list[LogEntry]:
        self.state = append_log(state, *entries)
        return list(entries)

    def _reject(self, text: str) -> list[LogEntry]:
        logger.debug("intent rejected: %s", text)
        return self._commit(self.state, LogEntry(kind="system", text=text))

    def _blocked_reason(self) -> str | None:
        if self.state.is_thinking:
            return REJECT_THINKING
        if self.pending_dungeon is not None:
            return REJECT_DUNGEON
        if self.minigame is not None:
            return REJECT_MINIGAME
        return None

    def _require_minigame(self) -> EnlightenmentGame:
        if self.minigame is None:
            raise SessionError("The enlightenment minigame is not open")
        return self.minigame

    # ------------------------------------------------------------------
    # Narrative actions
    # ------------------------------------------------------------------

    async def perform(self, action: Action) -> list[LogEntry]:
        """Run one narrative action and return the log entries it appended."""
        blocked = self._blocked_reason()
        if blocked:
            return self._reject(blocked)
        if action == "Meditate" and is_qi_full(self.state):
            return self._reject(REJECT_QI_FULL)
        if action == "Breakthrough" and not can_breakthrough(self.state):
            return self._reject(REJECT_NOT_READY)

        self.state = set_thinking(self.state, True)
        try:
            outcome = await self._narrator.story_event(action, self.state)

            image_url = None
            if self._narrator.should_illustrate(outcome):
                image_url = await self._narrator.scene_visual(
                    outcome.narrative, outcome.dungeon_result
                )

            if outcome.dungeon_result is not None:
                self.pending_dungeon = PendingDungeon(outcome.dungeon_result, image_url)
                logger.info("dungeon opened: %s", outcome.dungeon_result.title)
                return []

            before = self.state
            after = apply_outcome(before, outcome)
            entries = [LogEntry(kind="narrative", text=outcome.narrative, image_url=image_url)]
            if realm_changed(before, after):
                entries.append(breakthrough_entry(after.realm))
            return self._commit(after, *entries)
        finally:
            self.state = set_thinking(self.state, False)

    def change_location(self, location: Location) -> list[LogEntry]:
        blocked = self._blocked_reason()
        if blocked:
            return self._reject(blocked)
        if location == self.state.location:
            return self._reject(f"You are already at {location.display_name}.")
        new_state, entry = move_to(self.state, location)
        return self._commit(new_state, entry)

    # ------------------------------------------------------------------
    # Dungeon
    # ------------------------------------------------------------------

    def choose_dungeon_option(self, index: int) -> list[LogEntry]:
        """Resolve the pending dungeon with the chosen option. Single use."""
        pending = self.pending_dungeon
        if pending is None:
            raise SessionError("No dungeon is awaiting a decision")
        if not 0 <= index < len(pending.data.options):
            raise SessionError(f"Option index {index} out of range")

        self.pending_dungeon = None
        new_state, entry = dungeon.resolve(
            self.state, pending.data, index, image_url=pending.image_url, rng=self._rng,
        )
        return self._commit(new_state, entry)

    # ------------------------------------------------------------------
    # Enlightenment minigame
    # ------------------------------------------------------------------

    def start_minigame(self) -> list[LogEntry]:
        blocked = self._blocked_reason()
        if blocked:
            return self._reject(blocked)
        self.minigame = EnlightenmentGame(self._rng)
        self._driver = ChargeDriver(self.minigame)
        return []

    def minigame_engage(self) -> bool:
        """Begin charging. Must be called from inside the running event loop."""
        game = self._require_minigame()
        if not game.engage():
            return False
        self._driver.start()
        return True

    async def minigame_release(self) -> Landing | None:
        """Stop charging, jump, and wait for the landing judgement."""
        game = self._require_minigame()
        self._driver.stop()
        if game.release() is None:
            return None
        return await self._driver.fly()

    def finish_minigame(self) -> list[LogEntry]:
        game = self._require_minigame()
        try:
            score = game.finish()
        except RuntimeError as e:
            raise SessionError(str(e)) from e
        return self._close_minigame(score)

    def abort_minigame(self) -> list[LogEntry]:
        game = self._require_minigame()
        self._driver.stop()
        return self._close_minigame(game.abort())

    def _close_minigame(self, score: int) -> list[LogEntry]:
        self.minigame = None
        self._driver = None
        new_state, entry = reward_enlightenment(self.state, score)
        return self._commit(new_state, entry)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def offline(self) -> bool:
        return self._narrator.offline

    def pending_view(self) -> dict[str, Any] | None:
        """The pending dungeon as shown to the player, without the answer."""
        if self.pending_dungeon is None:
            return None
        data = self.pending_dungeon.data.model_dump(
            by_alias=True,
            mode="json",
            exclude={"correct_index", "reward_text", "penalty_text"},
        )
        data["imageUrl"] = self.pending_dungeon.image_url
        return data

    def view(self) -> dict[str, Any]:
        return {
            "player": self.state.model_dump(by_alias=True, mode="json"),
            "dungeon": self.pending_view(),
            "minigame": self.minigame.snapshot() if self.minigame else None,
            "offline": self.offline,
        }
