"""Tests for the game session: guards, single-flight, dungeon and minigame flows."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from azure_dao.enlightenment import GamePhase, Landing
from azure_dao.llm import GeminiImages, LLMError
from azure_dao.models import Location, PlayerState, Realm
from azure_dao.narrative import FALLBACK_OUTCOME, MISSING_KEY_WARNING, OFFLINE_OUTCOME, Narrator
from azure_dao.session import (
    REJECT_DUNGEON,
    REJECT_MINIGAME,
    REJECT_NOT_READY,
    REJECT_QI_FULL,
    REJECT_THINKING,
    GameSession,
    SessionError,
)


def _full() -> PlayerState:
    return PlayerState(current_qi=100)


# ── Narrative actions ────────────────────────────────────


async def test_meditate_applies_outcome(make_session, images):
    session, llm = make_session([{"narrative": "Qi gathers.", "qiChange": 15}])
    entries = await session.perform("Meditate")

    assert session.state.current_qi == 25
    assert len(entries) == 1
    assert entries[0].kind == "narrative"
    assert entries[0].text == "Qi gathers."
    assert entries[0].image_url == "data:image/png;base64,AAAA"
    assert session.state.history[-1] == entries[0]
    assert llm.calls[0][0] == "story"
    assert len(images.prompts) == 1


async def test_meditate_at_full_qi_is_rejected(make_session):
    session, llm = make_session([], state=_full())
    entries = await session.perform("Meditate")

    assert llm.calls == []
    assert [e.text for e in entries] == [REJECT_QI_FULL]
    assert entries[0].kind == "system"
    assert session.state.current_qi == 100


async def test_breakthrough_before_full_qi_is_rejected(make_session):
    session, llm = make_session([])
    entries = await session.perform("Breakthrough")
    assert llm.calls == []
    assert entries[0].text == REJECT_NOT_READY


async def test_breakthrough_changes_realm(make_session):
    session, _ = make_session(
        [{"narrative": "Thunder splits the sky.", "qiChange": 40, "newRealm": "PurplePole"}],
        state=_full(),
    )
    entries = await session.perform("Breakthrough")

    assert session.state.realm is Realm.PURPLE_POLE
    assert session.state.max_qi == 500
    assert session.state.current_qi == 100
    assert [e.kind for e in entries] == ["narrative", "system"]
    assert "Purple Pole Realm" in entries[1].text


async def test_thinking_rejects_new_actions(make_session):
    session, llm = make_session([], state=PlayerState(is_thinking=True))
    entries = await session.perform("Explore")
    assert llm.calls == []
    assert entries[0].text == REJECT_THINKING


async def test_thinking_flag_spans_generator_call():
    seen = []

    async def llm(stage, prompt):
        seen.append(session.state.is_thinking)
        return '{"narrative": "The mist moves."}'

    session = GameSession(Narrator(llm))
    await session.perform("Explore")
    assert seen == [True]
    assert not session.state.is_thinking


async def test_failure_uses_fallback_and_clears_thinking(make_session, images):
    session, _ = make_session([LLMError("connection refused")])
    entries = await session.perform("Explore")

    assert entries[0].text == FALLBACK_OUTCOME.narrative
    assert entries[0].image_url is None
    assert images.prompts == []
    assert session.state.current_qi == 10
    assert not session.state.is_thinking


async def test_image_failure_keeps_narrative(make_session):
    from conftest import StubImages

    session, _ = make_session(
        [{"narrative": "A lotus opens.", "itemGained": "Lotus Seed"}],
        images=StubImages(error=LLMError("quota")),
    )
    entries = await session.perform("Explore")
    assert entries[0].image_url is None
    assert session.state.inventory[-1] == "Lotus Seed"


async def test_image_transport_error_keeps_narrative(make_session):
    session, _ = make_session(
        [{"narrative": "Qi gathers.", "qiChange": 5}],
        images=GeminiImages(api_key="k"),
    )
    post = AsyncMock(side_effect=httpx.RemoteProtocolError("closed"))
    with patch("httpx.AsyncClient.post", post):
        entries = await session.perform("Meditate")

    assert post.await_count == 1
    assert [e.text for e in entries] == ["Qi gathers."]
    assert entries[0].image_url is None
    assert session.state.current_qi == 15
    assert session.state.history[-1] == entries[0]
    assert not session.state.is_thinking


async def test_offline_session():
    session = GameSession(Narrator(None))
    assert session.offline
    assert session.state.history[-1].text == MISSING_KEY_WARNING

    entries = await session.perform("Meditate")
    assert entries[0].text == OFFLINE_OUTCOME.narrative
    assert session.state.current_qi == 15


# ── Travel ───────────────────────────────────────────────


def test_change_location(make_session):
    session, _ = make_session([])
    entries = session.change_location(Location.POND)
    assert session.state.location is Location.POND
    assert "Enlightenment Pond" in entries[0].text


def test_change_to_same_location_is_rejected(make_session):
    session, _ = make_session([])
    entries = session.change_location(Location.TOWN)
    assert session.state.location is Location.TOWN
    assert "already" in entries[0].text


# ── Dungeon flow ─────────────────────────────────────────


async def test_dungeon_flow_success(make_session, dungeon_payload):
    session, llm = make_session([{"narrative": "A rift opens.", "dungeonResult": dungeon_payload}])
    entries = await session.perform("Dungeon")

    assert entries == []
    assert llm.calls[0][0] == "dungeon"
    assert session.pending_dungeon is not None
    assert not session.state.is_thinking

    view = session.pending_view()
    assert view["title"] == "The Lighthouse Ledger"
    assert view["type"] == "Mystery"
    assert "correctIndex" not in view
    assert "rewardText" not in view
    assert view["imageUrl"] == "data:image/png;base64,AAAA"

    entries = session.choose_dungeon_option(2)
    assert session.pending_dungeon is None
    assert entries[0].kind == "dungeon"
    assert entries[0].image_url == "data:image/png;base64,AAAA"
    assert session.state.current_qi == 60
    assert session.state.stats.dao_heart == 10

    with pytest.raises(SessionError):
        session.choose_dungeon_option(2)


async def test_dungeon_flow_failure(make_session, dungeon_payload):
    session, _ = make_session([{"narrative": "A rift opens.", "dungeonResult": dungeon_payload}])
    await session.perform("Dungeon")
    entries = session.choose_dungeon_option(0)

    assert "Check failed" in entries[0].text
    assert session.state.current_qi == 0
    assert session.state.stats.spirit == 5


async def test_pending_dungeon_blocks_actions(make_session, dungeon_payload):
    session, llm = make_session([{"narrative": "A rift opens.", "dungeonResult": dungeon_payload}])
    await session.perform("Dungeon")

    entries = await session.perform("Explore")
    assert entries[0].text == REJECT_DUNGEON
    assert len(llm.calls) == 1
    assert session.change_location(Location.CITY)[0].text == REJECT_DUNGEON


def test_choose_without_dungeon(make_session):
    session, _ = make_session([])
    with pytest.raises(SessionError):
        session.choose_dungeon_option(0)


async def test_choose_out_of_range_keeps_dungeon(make_session, dungeon_payload):
    session, _ = make_session([{"narrative": "A rift opens.", "dungeonResult": dungeon_payload}])
    await session.perform("Dungeon")
    with pytest.raises(SessionError):
        session.choose_dungeon_option(4)
    assert session.pending_dungeon is not None


# ── Enlightenment minigame ───────────────────────────────


def test_minigame_abort_gives_nothing(make_session):
    session, _ = make_session([])
    assert session.start_minigame() == []
    assert session.view()["minigame"]["phase"] == GamePhase.WAITING.value

    entries = session.abort_minigame()
    assert session.minigame is None
    assert "mortal dust" in entries[0].text
    assert session.state.current_qi == 10


async def test_minigame_blocks_actions(make_session):
    session, llm = make_session([])
    session.start_minigame()
    entries = await session.perform("Meditate")
    assert entries[0].text == REJECT_MINIGAME
    assert llm.calls == []


def test_minigame_signals_require_open_game(make_session):
    session, _ = make_session([])
    with pytest.raises(SessionError):
        session.finish_minigame()
    with pytest.raises(SessionError):
        session.abort_minigame()


async def test_minigame_jump_and_finish(make_session):
    session, _ = make_session([])
    session.start_minigame()
    game = session.minigame

    assert session.minigame_engage()
    assert game.phase is GamePhase.CHARGING
    # Land the player's centre in the middle of the target platform.
    game.power = (game.target.left + 8 - 2 - 15) / 60 * 100
    landing = await session.minigame_release()

    assert landing is Landing.TARGET
    assert game.score == 1

    entries = session.finish_minigame()
    assert session.minigame is None
    assert "1 times" in entries[0].text
    assert session.state.current_qi == 15


async def test_release_without_engage(make_session):
    session, _ = make_session([])
    session.start_minigame()
    assert await session.minigame_release() is None


async def test_cannot_finish_mid_charge(make_session):
    session, _ = make_session([])
    session.start_minigame()
    session.minigame_engage()
    with pytest.raises(SessionError):
        session.finish_minigame()
    session.abort_minigame()
