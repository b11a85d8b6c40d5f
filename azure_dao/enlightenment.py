"""Enlightenment minigame: a charge / jump / land timing challenge.

World coordinates are percentages of the screen width (0–100). The player
stands on the current platform and jumps toward the target platform:

  WAITING ──engage──▶ CHARGING ──release──▶ JUMPING ──flight over──▶ judge
     ▲                                                                │
     └────────────── LANDED ◀── hit target (score +1) / stayed put ◀──┤
                                                   FAILED ◀── fell ◀──┘

While charging, power ping-pongs between 0 and 100 at CHARGE_RATE per tick,
so holding longer is not always better. The landing position is computed at
release; the flight duration only delays judgement.

After a successful landing the world is re-based so the player stands at
START_X again: the old target becomes the current platform and one new
target is generated a random gap further on.

The engine is synchronous and knows nothing about time sources. ChargeDriver
runs it on an asyncio loop: one tick per frame strictly while charging.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

CHARGE_RATE = 1.5
MAX_POWER = 100.0
MAX_JUMP_DISTANCE = 60.0
JUMP_DURATION_MS = 500
START_X = 15.0
PLAYER_HALF_WIDTH = 2.0
GAP_RANGE = (15, 40)
WIDTH_RANGE = (15, 25)
FRAME_SECONDS = 1 / 60


class GamePhase(str, Enum):
    WAITING = "waiting"
    CHARGING = "charging"
    JUMPING = "jumping"
    LANDED = "landed"
    FAILED = "failed"
    FINISHED = "finished"


class Landing(str, Enum):
    TARGET = "target"
    SAME_PLATFORM = "same_platform"
    FELL = "fell"


@dataclass(frozen=True)
class Platform:
    id: int
    left: float
    width: float

    @property
    def right(self) -> float:
        return self.left + self.width

    def contains(self, x: float) -> bool:
        return self.left <= x <= self.right

    def shifted(self, dx: float) -> Platform:
        return Platform(self.id, self.left - dx, self.width)


class EnlightenmentGame:
    """One run of the minigame. Reports only an integer score."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self._ids = itertools.count(3)
        self.phase = GamePhase.WAITING
        self.score = 0
        self.power = 0.0
        self.direction = 1
        self.player_x = START_X
        self.current = Platform(1, 5.0, 20.0)
        self.target = Platform(2, 40.0, 20.0)
        self.jump_distance = 0.0
        self._flight_remaining = 0.0

    @property
    def charging(self) -> bool:
        """The active flag a host scheduler checks before every re-tick."""
        return self.phase is GamePhase.CHARGING

    @property
    def finished(self) -> bool:
        return self.phase is GamePhase.FINISHED

    # -- input ------------------------------------------------------------

    def engage(self) -> bool:
        """Start charging. Returns False when the current phase forbids it."""
        if self.phase not in (GamePhase.WAITING, GamePhase.LANDED):
            return False
        self.phase = GamePhase.CHARGING
        self.power = 0.0
        self.direction = 1
        return True

    def tick(self) -> float:
        """Advance the power ramp by one frame. No-op unless charging."""
        if not self.charging:
            return self.power
        power = self.power + CHARGE_RATE * self.direction
        if power >= MAX_POWER:
            power = MAX_POWER
            self.direction = -1
        elif power <= 0:
            power = 0.0
            self.direction = 1
        self.power = power
        return power

    def release(self) -> float | None:
        """Jump with the captured power. Returns the landing x, or None if not charging."""
        if not self.charging:
            return None
        self.phase = GamePhase.JUMPING
        self.jump_distance = (self.power / MAX_POWER) * MAX_JUMP_DISTANCE
        self.player_x = self.player_x + self.jump_distance
        self._flight_remaining = JUMP_DURATION_MS
        return self.player_x

    def advance(self, elapsed_ms: float) -> Landing | None:
        """Let flight time pass; judges the landing once the jump is over."""
        if self.phase is not GamePhase.JUMPING:
            return None
        self._flight_remaining -= elapsed_ms
        if self._flight_remaining > 0:
            return None
        return self._judge_landing()

    # -- landing ----------------------------------------------------------

    def _judge_landing(self) -> Landing:
        centre = self.player_x + PLAYER_HALF_WIDTH
        if self.target.contains(centre):
            self._on_success()
            return Landing.TARGET
        if self.current.contains(centre):
            self.phase = GamePhase.LANDED
            return Landing.SAME_PLATFORM
        self.phase = GamePhase.FAILED
        logger.debug("minigame fell at x=%.1f score=%d", self.player_x, self.score)
        return Landing.FELL

    def _on_success(self) -> None:
        self.score += 1
        shift = self.player_x - START_X
        new_current = self.target.shifted(shift)
        gap = self._rng.randint(*GAP_RANGE)
        width = self._rng.randint(*WIDTH_RANGE)
        self.current = new_current
        self.target = Platform(next(self._ids), new_current.right + gap, width)
        self.player_x = START_X
        self.phase = GamePhase.LANDED

    # -- completion -------------------------------------------------------

    def finish(self) -> int:
        """End the run and report the accumulated score."""
        if self.phase in (GamePhase.CHARGING, GamePhase.JUMPING):
            raise RuntimeError(f"Cannot finish while {self.phase.value}")
        if self.phase is not GamePhase.FINISHED:
            self.phase = GamePhase.FINISHED
            logger.info("minigame finished score=%d", self.score)
        return self.score

    def abort(self) -> int:
        """Close the run at any point. Always reports zero."""
        self.phase = GamePhase.FINISHED
        return 0

    def snapshot(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "score": self.score,
            "power": self.power,
            "playerX": self.player_x,
            "platforms": [
                {"id": p.id, "left": p.left, "width": p.width}
                for p in (self.current, self.target)
            ],
        }


class ChargeDriver:
    """Drives an EnlightenmentGame from the asyncio loop.

    start() schedules a per-frame tick task that checks game.charging before
    every tick; stop() cancels it synchronously so no tick lands after a
    release or abort.
    """

    def __init__(self, game: EnlightenmentGame, frame_seconds: float = FRAME_SECONDS) -> None:
        self._game = game
        self._frame = frame_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while self._game.charging:
            self._game.tick()
            await asyncio.sleep(self._frame)

    async def fly(self) -> Landing | None:
        """Wait out the jump animation, then judge the landing."""
        await asyncio.sleep(JUMP_DURATION_MS / 1000)
        return self._game.advance(JUMP_DURATION_MS)
