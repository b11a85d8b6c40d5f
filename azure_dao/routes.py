"""FastAPI endpoints under /api.

Endpoint groups: health, state/history (read-only), narrative actions,
travel, dungeon choice, and the enlightenment minigame lifecycle. The single
GameSession lives on app.state; every mutating endpoint returns the new
session view plus the log entries the call appended.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from azure_dao.models import LogEntry
from azure_dao.session import GameSession, SessionError

from .schemas import ActionBody, DungeonChoiceBody, LocationBody

router = APIRouter()


def get_session(request: Request) -> GameSession:
    return request.app.state.session


def _result(session: GameSession, entries: list[LogEntry]) -> dict:
    return {
        "state": session.view(),
        "entries": [e.model_dump(by_alias=True, mode="json") for e in entries],
    }


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/state")
async def get_state(session: GameSession = Depends(get_session)):
    """Player state, pending dungeon, minigame snapshot and offline flag."""
    return session.view()


@router.get("/history")
async def get_history(session: GameSession = Depends(get_session)):
    """The full story log."""
    return [e.model_dump(by_alias=True, mode="json") for e in session.state.history]


@router.post("/actions")
async def perform_action(body: ActionBody, session: GameSession = Depends(get_session)):
    """Run a narrative action (Meditate, Explore, Breakthrough, Dungeon)."""
    entries = await session.perform(body.action)
    return _result(session, entries)


@router.post("/location")
async def change_location(body: LocationBody, session: GameSession = Depends(get_session)):
    """Travel to another location."""
    return _result(session, session.change_location(body.location))


@router.post("/dungeon/choice")
async def choose_dungeon_option(
    body: DungeonChoiceBody, session: GameSession = Depends(get_session)
):
    """Answer the pending dungeon crisis."""
    try:
        entries = session.choose_dungeon_option(body.index)
    except SessionError as e:
        raise HTTPException(409, str(e))
    return _result(session, entries)


# ── Enlightenment minigame ───────────────────────────────


@router.get("/minigame")
async def get_minigame(session: GameSession = Depends(get_session)):
    """Current minigame snapshot."""
    if session.minigame is None:
        raise HTTPException(404, "Minigame not open")
    return session.minigame.snapshot()


@router.post("/minigame/start")
async def start_minigame(session: GameSession = Depends(get_session)):
    """Open the minigame."""
    return _result(session, session.start_minigame())


@router.post("/minigame/engage")
async def engage_minigame(session: GameSession = Depends(get_session)):
    """Start charging a jump."""
    try:
        engaged = session.minigame_engage()
    except SessionError as e:
        raise HTTPException(409, str(e))
    return {"engaged": engaged, "minigame": session.minigame.snapshot()}


@router.post("/minigame/release")
async def release_minigame(session: GameSession = Depends(get_session)):
    """Release the charge; responds after the landing is judged."""
    try:
        landing = await session.minigame_release()
    except SessionError as e:
        raise HTTPException(409, str(e))
    return {
        "landing": landing.value if landing else None,
        "minigame": session.minigame.snapshot() if session.minigame else None,
    }


@router.post("/minigame/finish")
async def finish_minigame(session: GameSession = Depends(get_session)):
    """End the run and collect the reward."""
    try:
        entries = session.finish_minigame()
    except SessionError as e:
        raise HTTPException(409, str(e))
    return _result(session, entries)


@router.post("/minigame/abort")
async def abort_minigame(session: GameSession = Depends(get_session)):
    """Close the minigame without reward."""
    try:
        entries = session.abort_minigame()
    except SessionError as e:
        raise HTTPException(409, str(e))
    return _result(session, entries)
