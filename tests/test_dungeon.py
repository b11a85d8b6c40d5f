"""Tests for dungeon resolution."""

import random

import pytest

from azure_dao import dungeon
from azure_dao.models import DungeonData, initial_state


@pytest.fixture
def data(dungeon_payload) -> DungeonData:
    return DungeonData.model_validate(dungeon_payload)


class _FixedRandom(random.Random):
    def __init__(self, value: float) -> None:
        super().__init__()
        self._value = value

    def random(self) -> float:
        return self._value


class TestSuccess:
    def test_scenario_b_rewards(self, data: DungeonData) -> None:
        start = initial_state()
        s, entry = dungeon.resolve(start, data, 2, rng=_FixedRandom(0.9))
        assert s.current_qi == 60
        assert s.stats.dao_heart == 10
        assert s.stats.spirit == 12
        assert s.stats.body == 10
        assert entry.kind == "dungeon"
        assert data.reward_text in entry.text
        assert entry.dungeon_data == data

    def test_qi_reward_capped(self, data: DungeonData) -> None:
        start = initial_state().model_copy(update={"current_qi": 80})
        s, _ = dungeon.resolve(start, data, 2, rng=_FixedRandom(0.9))
        assert s.current_qi == 100

    def test_bonus_item_on_lucky_roll(self, data: DungeonData) -> None:
        s, _ = dungeon.resolve(initial_state(), data, 2, rng=_FixedRandom(0.1))
        assert s.inventory[-1] == dungeon.BONUS_ITEM
        assert len(s.inventory) == 3

    def test_no_bonus_item_on_unlucky_roll(self, data: DungeonData) -> None:
        s, _ = dungeon.resolve(initial_state(), data, 2, rng=_FixedRandom(0.9))
        assert dungeon.BONUS_ITEM not in s.inventory

    def test_image_attached(self, data: DungeonData) -> None:
        _, entry = dungeon.resolve(initial_state(), data, 2, image_url="data:x", rng=_FixedRandom(0.9))
        assert entry.image_url == "data:x"


class TestFailure:
    def test_penalties(self, data: DungeonData) -> None:
        start = initial_state().model_copy(update={"current_qi": 70})
        s, entry = dungeon.resolve(start, data, 0)
        assert s.current_qi == 40
        assert s.stats.spirit == 5
        assert s.stats.dao_heart == 5
        assert entry.kind == "dungeon"
        assert data.penalty_text in entry.text
        assert data.reward_text not in entry.text

    def test_penalties_floored_at_zero(self, data: DungeonData) -> None:
        start = initial_state().model_copy(update={
            "current_qi": 10,
            "stats": initial_state().stats.model_copy(update={"spirit": 3}),
        })
        s, _ = dungeon.resolve(start, data, 3)
        assert s.current_qi == 0
        assert s.stats.spirit == 0

    def test_inventory_untouched(self, data: DungeonData) -> None:
        start = initial_state()
        s, _ = dungeon.resolve(start, data, 1)
        assert s.inventory == start.inventory


@pytest.mark.parametrize("index", [-1, 4, 10])
def test_out_of_range_choice_rejected(data: DungeonData, index: int) -> None:
    with pytest.raises(ValueError):
        dungeon.resolve(initial_state(), data, index)


def test_qi_bounds_hold_for_every_choice(data: DungeonData) -> None:
    for qi in (0, 1, 30, 50, 99, 100):
        start = initial_state().model_copy(update={"current_qi": qi})
        for index in range(4):
            s, _ = dungeon.resolve(start, data, index, rng=random.Random(index))
            assert 0 <= s.current_qi <= s.max_qi


def test_is_correct(data: DungeonData) -> None:
    assert dungeon.is_correct(data, 2)
    assert not dungeon.is_correct(data, 1)
